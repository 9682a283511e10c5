from fastapi import Request

from discogram.core.clients.discord import DiscordClient
from discogram.core.infrastructure.store import SubscriptionStore
from discogram.core.services.allowlist import ChannelAllowList
from discogram.core.services.dispatcher import Dispatcher
from discogram.core.services.names import NameResolver


def get_subscription_store(request: Request) -> SubscriptionStore:
    """Returns the subscription store instance from the app state."""
    return request.app.state.subscription_store


def get_name_resolver(request: Request) -> NameResolver:
    """Returns the name resolver instance from the app state."""
    return request.app.state.name_resolver


def get_dispatcher(request: Request) -> Dispatcher:
    """Returns the dispatcher instance from the app state."""
    return request.app.state.dispatcher


def get_allow_list(request: Request) -> ChannelAllowList:
    """Returns the channel allow-list instance from the app state."""
    return request.app.state.allow_list


def get_discord_client(request: Request) -> DiscordClient:
    """Returns the Discord client instance from the app state."""
    return request.app.state.discord_client
