"""Reservation notification hooks."""

from .hooks import BackgroundNotifier, LoggingNotificationHook, NotificationHook

__all__ = ["BackgroundNotifier", "LoggingNotificationHook", "NotificationHook"]
