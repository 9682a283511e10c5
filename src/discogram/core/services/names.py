import time
from typing import Dict, Optional, Tuple, TypeVar

import structlog

from discogram.core.clients.discord import DiscordClient
from discogram.core.models import ChannelInfo, GuildInfo

T = TypeVar("T")


class NameResolver:
    """Caches Discord channel and guild lookups keyed by id.

    Names rarely change within a session, so lookups are kept for
    ``ttl_seconds``. A ttl of 0 disables caching. Failed lookups are never
    cached.
    """

    def __init__(self, discord_client: DiscordClient, ttl_seconds: float = 300.0):
        self.log = structlog.get_logger(self.__class__.__name__)
        self._discord = discord_client
        self._ttl = ttl_seconds
        self._channels: Dict[str, Tuple[float, ChannelInfo]] = {}
        self._guilds: Dict[str, Tuple[float, GuildInfo]] = {}

    def _cached(self, cache: Dict[str, Tuple[float, T]], key: str) -> Optional[T]:
        entry = cache.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if time.monotonic() - stored_at >= self._ttl:
            del cache[key]
            return None
        return value

    async def channel(self, channel_id: str) -> Optional[ChannelInfo]:
        info = self._cached(self._channels, channel_id)
        if info is not None:
            return info

        info = await self._discord.resolve_channel(channel_id)
        if info is not None and self._ttl > 0:
            self._channels[channel_id] = (time.monotonic(), info)
        return info

    async def guild(self, guild_id: str) -> Optional[GuildInfo]:
        info = self._cached(self._guilds, guild_id)
        if info is not None:
            return info

        info = await self._discord.resolve_guild(guild_id)
        if info is not None and self._ttl > 0:
            self._guilds[guild_id] = (time.monotonic(), info)
        return info

    def invalidate(self, object_id: Optional[str] = None) -> int:
        """Forget a cached channel or guild, or everything when no id is given.

        Returns:
            Number of cache entries dropped
        """
        if object_id is None:
            dropped = len(self._channels) + len(self._guilds)
            self._channels.clear()
            self._guilds.clear()
        else:
            dropped = int(self._channels.pop(object_id, None) is not None)
            dropped += int(self._guilds.pop(object_id, None) is not None)

        self.log.debug("Name cache invalidated", object_id=object_id, dropped=dropped)
        return dropped
