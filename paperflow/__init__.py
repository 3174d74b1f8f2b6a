"""
Exam paper approval service.

Lecturers upload encrypted exam documents; department heads and the
central exam unit review them through a fixed approval workflow.
"""

__version__ = "1.0.0"
