"""
Discord gateway client.

Wraps a discord.py client: turns gateway message events into SourceEvent
objects and exposes the few REST lookups the relay needs. Lookup failures
are logged and reported as missing data, never raised.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

import discord
import structlog

from discogram.core.errors import ConfigurationError, TransportError
from discogram.core.models import ChannelInfo, GuildInfo, SourceEvent

MessageHandler = Callable[[SourceEvent], Awaitable[None]]


class DiscordClient:
    def __init__(self, token: str, ready_timeout: float = 60.0):
        self.log = structlog.get_logger(self.__class__.__name__)
        self._token = token
        self._ready_timeout = ready_timeout
        self._handler: Optional[MessageHandler] = None
        self._gateway_task: Optional[asyncio.Task] = None
        self._closing = False

        intents = discord.Intents.default()
        intents.message_content = True
        intents.guilds = True
        self._client = discord.Client(intents=intents)

        @self._client.event
        async def on_message(message: discord.Message) -> None:
            await self._handle_message(message)

        @self._client.event
        async def on_ready() -> None:
            self.log.info("Connected to Discord", user=str(self._client.user))

    def set_message_handler(self, handler: MessageHandler) -> None:
        self._handler = handler

    @staticmethod
    def to_source_event(message: discord.Message) -> SourceEvent:
        author = message.author
        return SourceEvent(
            message_id=str(message.id),
            channel_id=str(message.channel.id),
            guild_id=str(message.guild.id) if message.guild else None,
            author_name=getattr(author, "display_name", None) or str(author),
            content=message.content or "",
        )

    async def _handle_message(self, message: discord.Message) -> None:
        if self._handler is None:
            return

        event = self.to_source_event(message)
        try:
            await self._handler(event)
        except Exception as e:
            # A failing relay must never tear down the gateway connection
            self.log.error(
                "Failed to relay Discord message",
                channel_id=event.channel_id,
                message_id=event.message_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def start(self) -> None:
        """
        Log in and connect to the gateway, returning once the session is ready.

        Raises:
            ConfigurationError: If Discord rejects the token
            TransportError: If the gateway cannot be reached in time
        """
        try:
            await self._client.login(self._token)
        except discord.LoginFailure as e:
            raise ConfigurationError(f"Discord rejected the bot token: {e}") from e
        except discord.HTTPException as e:
            raise TransportError(f"Failed to log in to Discord: {e}") from e

        self._gateway_task = asyncio.create_task(self._client.connect(reconnect=True))
        ready_task = asyncio.create_task(self._client.wait_until_ready())

        done, _ = await asyncio.wait(
            {self._gateway_task, ready_task},
            timeout=self._ready_timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
        if ready_task in done:
            self._gateway_task.add_done_callback(self._on_gateway_done)
            return

        ready_task.cancel()
        if self._gateway_task in done:
            error = self._gateway_task.exception()
            raise TransportError(f"Discord gateway connection failed: {error}")

        await self.close()
        raise TransportError(f"Discord gateway not ready after {self._ready_timeout}s")

    @property
    def connected(self) -> bool:
        return self._gateway_task is not None and not self._gateway_task.done()

    def _on_gateway_done(self, task: asyncio.Task) -> None:
        if self._closing or task.cancelled():
            return
        error = task.exception()
        self.log.error(
            "Discord gateway stopped, relay is no longer receiving messages",
            error=str(error) if error else None,
            error_type=type(error).__name__ if error else None,
        )

    async def resolve_channel(self, channel_id: str) -> Optional[ChannelInfo]:
        channel = await self._get_channel(channel_id)
        if channel is None:
            return None

        guild = getattr(channel, "guild", None)
        return ChannelInfo(
            id=str(channel.id),
            name=getattr(channel, "name", None) or str(channel.id),
            guild_id=str(guild.id) if guild else None,
        )

    async def resolve_guild(self, guild_id: str) -> Optional[GuildInfo]:
        guild = self._client.get_guild(int(guild_id))
        if guild is None:
            try:
                guild = await self._client.fetch_guild(int(guild_id))
            except discord.HTTPException as e:
                self.log.error("Error retrieving guild information", guild_id=guild_id, error=str(e))
                return None

        return GuildInfo(id=str(guild.id), name=guild.name)

    async def list_prior_messages(self, channel_id: str, before_message_id: str, limit: int) -> Optional[List[str]]:
        """
        Ids of up to ``limit`` messages posted before the given one, newest first.

        Returns:
            List of message ids, or None if the history could not be read
        """
        channel = await self._get_channel(channel_id)
        if channel is None or not hasattr(channel, "history"):
            return None

        try:
            return [
                str(message.id)
                async for message in channel.history(limit=limit, before=discord.Object(id=int(before_message_id)))
            ]
        except discord.HTTPException as e:
            self.log.error("Error retrieving channel history", channel_id=channel_id, error=str(e))
            return None

    async def join_thread(self, channel_id: str) -> bool:
        """Join the thread if the channel is one. Returns True when the bot is a member afterwards."""
        channel = await self._get_channel(channel_id)
        if not isinstance(channel, discord.Thread):
            return False
        if channel.me is not None:
            return True

        try:
            await channel.join()
        except discord.HTTPException as e:
            self.log.warning("Failed to join thread", channel_id=channel_id, error=str(e))
            return False

        self.log.debug("Joined thread", channel_id=channel_id)
        return True

    async def _get_channel(self, channel_id: str):
        channel = self._client.get_channel(int(channel_id))
        if channel is not None:
            return channel

        try:
            return await self._client.fetch_channel(int(channel_id))
        except (discord.HTTPException, discord.InvalidData) as e:
            self.log.error("Error retrieving channel information", channel_id=channel_id, error=str(e))
            return None

    async def close(self) -> None:
        """Close the gateway connection."""
        self._closing = True
        if not self._client.is_closed():
            await self._client.close()

        if self._gateway_task is not None and not self._gateway_task.done():
            self._gateway_task.cancel()
        if self._gateway_task is not None:
            try:
                await self._gateway_task
            except asyncio.CancelledError:
                pass
            except discord.DiscordException as e:
                self.log.warning("Discord gateway closed with error", error=str(e))
            self._gateway_task = None

        self.log.info("Discord connection closed")
