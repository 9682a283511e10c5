"""
Client layer for external API communication.

This package contains thin wrappers around the Telegram and Discord APIs.
Clients should be stateless or have minimal state and focus on transport concerns.
"""

from .discord import DiscordClient
from .telegram import TelegramClient

__all__ = ["DiscordClient", "TelegramClient"]
