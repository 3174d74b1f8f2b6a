"""
HTTP middleware.
"""

from paperflow.api.middleware.request_id import RequestIdMiddleware

__all__ = ["RequestIdMiddleware"]
