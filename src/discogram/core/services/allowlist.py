import threading
from typing import Dict, Iterable, Optional, Set

import structlog


class ChannelAllowList:
    """In-memory set of Discord channel ids relayed under the allow-list policy.

    Channels come from configuration or from ``/add`` commands, which record
    the chat that sent them. Ownership only matters when the allow-list is
    scoped per conversation; configured channels reach every chat in either
    scope.
    """

    def __init__(self, channel_ids: Optional[Iterable[str]] = None):
        self.log = structlog.get_logger(self.__class__.__name__)
        self._lock = threading.Lock()
        self._configured: Set[str] = set(channel_ids or [])
        # channel_id -> chats that added it
        self._channels: Dict[str, Set[int]] = {channel_id: set() for channel_id in self._configured}

    def add(self, channel_id: str, conversation_id: Optional[int] = None) -> None:
        with self._lock:
            owners = self._channels.setdefault(channel_id, set())
            if conversation_id is not None:
                owners.add(conversation_id)
        self.log.info("Channel allowed", channel_id=channel_id, conversation_id=conversation_id)

    def remove(self, channel_id: str, conversation_id: Optional[int] = None) -> bool:
        """Drop a chat's claim on a channel, or the whole channel when no chat is given.

        A channel added by commands leaves the allow-list once nobody owns it
        any more. A configured channel stays until it is removed without a chat.

        Returns:
            True if the channel was on the allow-list
        """
        with self._lock:
            owners = self._channels.get(channel_id)
            if owners is None:
                return False
            if conversation_id is None:
                del self._channels[channel_id]
                self._configured.discard(channel_id)
            else:
                owners.discard(conversation_id)
                if not owners and channel_id not in self._configured:
                    del self._channels[channel_id]
        self.log.info("Channel disallowed", channel_id=channel_id, conversation_id=conversation_id)
        return True

    def __contains__(self, channel_id: str) -> bool:
        with self._lock:
            return channel_id in self._channels

    def is_configured(self, channel_id: str) -> bool:
        with self._lock:
            return channel_id in self._configured

    def owners(self, channel_id: str) -> Set[int]:
        with self._lock:
            return set(self._channels.get(channel_id, ()))

    def channels(self) -> Set[str]:
        with self._lock:
            return set(self._channels)
