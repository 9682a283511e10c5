from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from discogram.api.dependencies import (
    get_allow_list,
    get_discord_client,
    get_dispatcher,
    get_name_resolver,
    get_subscription_store,
)
from discogram.core.clients.discord import DiscordClient
from discogram.core.errors import StoreError
from discogram.core.infrastructure.store import SubscriptionStore
from discogram.core.models import Registration
from discogram.core.services.allowlist import ChannelAllowList
from discogram.core.services.dispatcher import Dispatcher
from discogram.core.services.names import NameResolver

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/registrations", response_model=List[Registration])
async def list_registrations(
    include_sentinels: bool = True,
    store: SubscriptionStore = Depends(get_subscription_store),
):
    """Lists stored (chat, selector) rows; sentinel rows mark chats without subscriptions."""
    try:
        registrations = store.list_registrations()
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e

    if not include_sentinels:
        registrations = [r for r in registrations if not r.is_sentinel]
    return registrations


@router.get("/conversations/{conversation_id}")
async def conversation_selectors(
    conversation_id: int,
    store: SubscriptionStore = Depends(get_subscription_store),
):
    try:
        if not store.is_registered(conversation_id):
            raise HTTPException(status_code=404, detail=f"Chat {conversation_id} is not registered")
        selectors = store.selectors_for(conversation_id)
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e

    return {"conversation_id": conversation_id, "selectors": sorted(selectors)}


@router.get("/status")
async def relay_status(
    dispatcher: Dispatcher = Depends(get_dispatcher),
    store: SubscriptionStore = Depends(get_subscription_store),
    allow_list: ChannelAllowList = Depends(get_allow_list),
    discord_client: DiscordClient = Depends(get_discord_client),
):
    """Reports gateway state, queue depth and subscription counts."""
    try:
        return {
            "discord_connected": discord_client.connected,
            "pending_deliveries": dispatcher.pending,
            "conversations": len(store.all_conversations()),
            "selectors": len(store.all_selectors()),
            "rows": store.count(),
            "allowed_channels": sorted(allow_list.channels()),
        }
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e


@router.post("/names/invalidate")
async def invalidate_names(
    object_id: Optional[str] = None,
    name_resolver: NameResolver = Depends(get_name_resolver),
):
    """Drops cached channel and guild names, all of them unless an id is given."""
    dropped = name_resolver.invalidate(object_id)
    return {"status": "invalidated", "dropped": dropped}
