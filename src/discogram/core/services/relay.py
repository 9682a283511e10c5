import structlog

from discogram.core.clients.discord import DiscordClient
from discogram.core.models import RelayMessage, RoutingPolicy, SourceEvent
from discogram.core.services.dispatcher import Dispatcher
from discogram.core.services.names import NameResolver
from discogram.core.services.routing import RoutingEngine


class RelayService:
    """Handles Discord messages: route, resolve names, hand off for delivery."""

    def __init__(
        self,
        routing_engine: RoutingEngine,
        name_resolver: NameResolver,
        dispatcher: Dispatcher,
        discord_client: DiscordClient,
    ):
        self.log = structlog.get_logger(self.__class__.__name__)
        self._routing = routing_engine
        self._names = name_resolver
        self._dispatcher = dispatcher
        self._discord = discord_client

    async def handle_event(self, event: SourceEvent) -> int:
        """Relay one Discord message.

        Returns:
            Number of chats the message was queued for
        """
        if self._routing.policy == RoutingPolicy.GUILD:
            # Thread traffic only reaches members of the thread
            await self._discord.join_thread(event.channel_id)

        targets = await self._routing.route(event)
        if not targets:
            return 0

        channel = await self._names.channel(event.channel_id)
        if channel is None:
            self.log.error("Cannot relay event, channel lookup failed", channel_id=event.channel_id)
            return 0

        guild_id = channel.guild_id or event.guild_id
        guild = await self._names.guild(guild_id) if guild_id else None
        if guild is None:
            self.log.error("Cannot relay event, guild lookup failed", channel_id=event.channel_id, guild_id=guild_id)
            return 0

        messages = [
            RelayMessage(chat_id=chat_id, guild_name=guild.name, channel_name=channel.name, content=event.content)
            for chat_id in sorted(targets)
        ]
        self.log.info(
            "Relaying Discord message",
            guild=guild.name,
            channel=channel.name,
            author=event.author_name,
            targets=len(messages),
        )

        if not self._dispatcher.submit(messages):
            return 0
        return len(messages)
