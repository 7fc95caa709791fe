"""
Application services module.
"""

from app.services.notifications import NotificationService, get_notification_service
from app.services.dashboard import compute_stats, upcoming_payments, visible_loans

__all__ = [
    "NotificationService",
    "get_notification_service",
    "compute_stats",
    "upcoming_payments",
    "visible_loans",
]
