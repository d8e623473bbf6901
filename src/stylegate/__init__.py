"""Stylegate - rule-based style linter with safe autofix."""

__version__ = "0.1.0"
