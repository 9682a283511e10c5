import asyncio
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from discogram.api import admin, health
from discogram.core.clients.discord import DiscordClient
from discogram.core.clients.telegram import TelegramClient
from discogram.core.config import Settings
from discogram.core.infrastructure.poller import TelegramPoller
from discogram.core.infrastructure.store import SubscriptionStore
from discogram.core.services.allowlist import ChannelAllowList
from discogram.core.services.commands import CommandInterpreter
from discogram.core.services.dispatcher import Dispatcher
from discogram.core.services.names import NameResolver
from discogram.core.services.relay import RelayService
from discogram.core.services.routing import RoutingEngine
from discogram.logging import configure_logging

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info("Starting Discogram relay")
    try:
        settings = Settings()  # type: ignore
        settings.validate_environment()
    except Exception as e:
        log.error(f"Configuration validation failed: {e}")
        raise

    store = SubscriptionStore(db_path=settings.database_path)
    telegram_client = TelegramClient(token=settings.telegram_bot_token)
    discord_client = DiscordClient(token=settings.discord_bot_token)

    allow_list = ChannelAllowList(settings.initial_channel_ids())
    routing_engine = RoutingEngine(
        policy=settings.routing_policy,
        store=store,
        allow_list=allow_list,
        discord_client=discord_client,
        allowlist_scope=settings.allowlist_scope,
        broadcast_marker=settings.broadcast_marker,
        first_message_lookback=settings.first_message_lookback,
    )
    name_resolver = NameResolver(discord_client=discord_client, ttl_seconds=settings.name_cache_ttl_seconds)
    dispatcher = Dispatcher(telegram_client=telegram_client, queue_size=settings.delivery_queue_size)
    relay_service = RelayService(
        routing_engine=routing_engine,
        name_resolver=name_resolver,
        dispatcher=dispatcher,
        discord_client=discord_client,
    )
    interpreter = CommandInterpreter(
        policy=settings.routing_policy,
        store=store,
        allow_list=allow_list,
        allowlist_scope=settings.allowlist_scope,
    )
    poller = TelegramPoller(interpreter=interpreter, telegram_client=telegram_client, settings=settings)
    discord_client.set_message_handler(relay_service.handle_event)

    # Both platforms must be reachable; there is no half-connected mode
    try:
        bot = await telegram_client.get_me()
        log.info("Connected to Telegram", username=bot.get("username"))
        interpreter.bot_username = bot.get("username")
        dispatcher.start()
        await discord_client.start()
    except Exception as e:
        log.error("Failed to connect to chat platforms", error=str(e), error_type=type(e).__name__)
        await dispatcher.stop()
        await discord_client.close()
        await telegram_client.close()
        store.close()
        raise

    # Store services in app state for DI
    app.state.subscription_store = store
    app.state.allow_list = allow_list
    app.state.routing_engine = routing_engine
    app.state.name_resolver = name_resolver
    app.state.dispatcher = dispatcher
    app.state.relay_service = relay_service
    app.state.command_interpreter = interpreter
    app.state.telegram_client = telegram_client
    app.state.discord_client = discord_client
    app.state.poller = poller

    poller_task = asyncio.create_task(poller.run())
    log.info("Started without errors", policy=settings.routing_policy.value)

    try:
        yield
    finally:
        # Shutdown
        log.info("Shutting down Discogram relay")
        await poller.stop()
        # Do not wait out a pending long poll
        poller_task.cancel()
        try:
            await poller_task
        except asyncio.CancelledError:
            pass
        await discord_client.close()
        await dispatcher.stop()
        await telegram_client.close()
        store.close()


def create_app() -> FastAPI:
    # Load settings early to get log level
    settings = Settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Discogram",
        description="Relays Discord channel messages into Telegram chats.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(health.router)
    app.include_router(admin.router)
    return app


def run() -> None:
    """Console entry point. uvicorn handles SIGINT/SIGTERM and runs the lifespan shutdown."""
    settings = Settings()
    uvicorn.run("discogram.main:create_app", factory=True, host=settings.host, port=settings.port)
