"""
Routing engine.

Decides which Telegram chats receive a Discord message. The policy is
fixed per deployment:

* ``broadcast``: every registered chat gets every message.
* ``allowlist``: the message's channel must be on the in-memory allow-list.
* ``guild``: the message's guild must be subscribed, and the message must
  either carry the broadcast marker or open its thread.
* ``channel``: the message's channel maps to the one chat that subscribed it.
"""

from typing import Set

import structlog

from discogram.core.clients.discord import DiscordClient
from discogram.core.errors import StoreError
from discogram.core.infrastructure.store import SubscriptionStore
from discogram.core.models import AllowListScope, RoutingPolicy, SourceEvent
from discogram.core.services.allowlist import ChannelAllowList


class RoutingEngine:
    def __init__(
        self,
        policy: RoutingPolicy,
        store: SubscriptionStore,
        allow_list: ChannelAllowList,
        discord_client: DiscordClient,
        allowlist_scope: AllowListScope = AllowListScope.GLOBAL,
        broadcast_marker: str = "@everyone",
        first_message_lookback: int = 10,
    ):
        self.log = structlog.get_logger(self.__class__.__name__)
        self.policy = policy
        self._store = store
        self._allow_list = allow_list
        self._discord = discord_client
        self._allowlist_scope = allowlist_scope
        self._broadcast_marker = broadcast_marker
        self._lookback = first_message_lookback

    async def route(self, event: SourceEvent) -> Set[int]:
        """Compute the chats that should receive the event.

        Store failures are logged and treated as no match.

        Args:
            event: Message observed on Discord

        Returns:
            Set of Telegram chat ids, possibly empty
        """
        try:
            if self.policy == RoutingPolicy.BROADCAST:
                targets = self._store.all_conversations()
            elif self.policy == RoutingPolicy.ALLOWLIST:
                targets = self._route_allowlist(event)
            elif self.policy == RoutingPolicy.GUILD:
                targets = await self._route_guild(event)
            else:
                targets = self._route_channel(event)
        except StoreError as e:
            self.log.error(
                "Subscription lookup failed, dropping event",
                policy=self.policy.value,
                channel_id=event.channel_id,
                error=str(e),
            )
            return set()

        if targets:
            self.log.debug(
                "Event routed",
                policy=self.policy.value,
                channel_id=event.channel_id,
                guild_id=event.guild_id,
                targets=len(targets),
            )
        return targets

    def _route_allowlist(self, event: SourceEvent) -> Set[int]:
        if event.channel_id not in self._allow_list:
            return set()
        if self._allowlist_scope == AllowListScope.CONVERSATION and not self._allow_list.is_configured(
            event.channel_id
        ):
            return self._allow_list.owners(event.channel_id)
        return self._store.all_conversations()

    def _route_channel(self, event: SourceEvent) -> Set[int]:
        conversation_id = self._store.first_conversation(event.channel_id)
        return {conversation_id} if conversation_id is not None else set()

    async def _route_guild(self, event: SourceEvent) -> Set[int]:
        if event.guild_id is None:
            return set()

        targets = self._store.matching_conversations(event.guild_id)
        if not targets:
            return set()

        if self._broadcast_marker and self._broadcast_marker in event.content:
            return targets
        if await self.is_first_message(event):
            return targets

        self.log.debug("Event did not pass the thread gate", channel_id=event.channel_id, message_id=event.message_id)
        return set()

    async def is_first_message(self, event: SourceEvent) -> bool:
        """True when no earlier message exists in the event's channel.

        Only the last ``first_message_lookback`` messages are inspected. An
        unreadable history counts as not first.
        """
        prior = await self._discord.list_prior_messages(event.channel_id, event.message_id, self._lookback)
        if prior is None:
            return False
        return len(prior) == 0
