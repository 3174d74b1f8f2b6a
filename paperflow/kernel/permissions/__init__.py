"""
Access control for exam files and administration.
"""

from paperflow.kernel.permissions.permission_service import AccessControl

__all__ = ["AccessControl"]
