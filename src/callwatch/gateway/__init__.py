"""
Telegram Gateway module.

Delivers broadcasts to subscribers (Telegram plus an optional ntfy topic)
and answers chat commands.
"""

from .broadcast import BroadcastDispatcher, BroadcastReport
from .commands import CommandService, CooldownRegistry
from .formatters import format_for_telegram
from .ntfy import NtfyPublisher
from .telegram_client import TelegramClient

__all__ = [
    "BroadcastDispatcher",
    "BroadcastReport",
    "CommandService",
    "CooldownRegistry",
    "NtfyPublisher",
    "TelegramClient",
    "format_for_telegram",
]
