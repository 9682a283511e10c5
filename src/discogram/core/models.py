from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

# Selector of the row that marks a chat as known before it adds any channel
SENTINEL_SELECTOR = ""


class RoutingPolicy(str, Enum):
    """Matching strategy applied to every Discord message."""

    BROADCAST = "broadcast"
    ALLOWLIST = "allowlist"
    GUILD = "guild"
    CHANNEL = "channel"


class AllowListScope(str, Enum):
    """Who receives a channel that is on the allow-list."""

    GLOBAL = "global"
    CONVERSATION = "conversation"


class SourceEvent(BaseModel):
    """A message observed on Discord. Never persisted."""

    message_id: str
    channel_id: str
    guild_id: Optional[str] = None
    author_name: str = ""
    content: str = ""


class ChannelInfo(BaseModel):
    id: str
    name: str
    guild_id: Optional[str] = None


class GuildInfo(BaseModel):
    id: str
    name: str


class RelayMessage(BaseModel):
    """A routed event addressed to one Telegram chat."""

    chat_id: int
    guild_name: str
    channel_name: str
    content: str

    def render(self) -> str:
        return f"[{self.guild_name}/{self.channel_name}] {self.content}"


class Registration(BaseModel):
    """One row of the subscription store."""

    conversation_id: int
    selector: str
    created_at: Optional[datetime] = None

    @property
    def is_sentinel(self) -> bool:
        return self.selector == SENTINEL_SELECTOR
