"""Feedback adapters (console, logs, webhooks)."""

from boxbuddy.feedback.status import ConsoleStatusReporter, LoggingNotifier
from boxbuddy.feedback.webhook import WebhookNotifier

__all__ = ["ConsoleStatusReporter", "LoggingNotifier", "WebhookNotifier"]
