"""Notification backends."""

from sentinel.notifiers.dispatcher import NotificationDispatcher
from sentinel.notifiers.email import send_email_alert
from sentinel.notifiers.telegram import send_telegram_alert

__all__ = ["NotificationDispatcher", "send_email_alert", "send_telegram_alert"]
