"""Notification adapters for different channels."""

from osmora.adapters.notifications.console import ConsoleNotifier
from osmora.adapters.notifications.email import EmailConfig, EmailNotifier

__all__ = [
    "ConsoleNotifier",
    "EmailNotifier",
    "EmailConfig",
]
