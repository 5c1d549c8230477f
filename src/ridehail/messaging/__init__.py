"""Ride chat and account notifications."""

from .models import MessageView, NotificationType, NotificationView, SendMessageRequest
from .notifications import notify
from .service import MessagingService

__all__ = [
    "MessageView",
    "MessagingService",
    "NotificationType",
    "NotificationView",
    "SendMessageRequest",
    "notify",
]
