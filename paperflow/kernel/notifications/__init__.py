"""
Notifications - in-app records plus optional email delivery.
"""

from paperflow.kernel.notifications.dispatcher import NotificationDispatcher, NotificationRequest
from paperflow.kernel.notifications.email_sender import EmailSender
from paperflow.kernel.notifications.email_templates import RenderedEmail, render_notification_email
from paperflow.kernel.notifications.notification_service import NotificationService

__all__ = [
    "NotificationDispatcher",
    "NotificationRequest",
    "EmailSender",
    "RenderedEmail",
    "render_notification_email",
    "NotificationService",
]
