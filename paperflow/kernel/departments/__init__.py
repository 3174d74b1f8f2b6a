"""
Departments, subjects and their reviewers.
"""

from paperflow.kernel.departments.department_service import DepartmentService

__all__ = ["DepartmentService"]
