"""callwatch - watches a job listing and notifies Telegram subscribers of changes."""

__version__ = "0.1.0"
