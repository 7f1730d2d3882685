"""BoxBuddy smart-lockbox controller."""

__version__ = "0.1.0"
