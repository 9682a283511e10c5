import logging
import os
from unittest.mock import AsyncMock, patch

import pytest
import structlog
from httpx import ASGITransport, AsyncClient

from discogram.core.infrastructure.store import SubscriptionStore
from discogram.core.models import ChannelInfo, GuildInfo
from discogram.main import create_app


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Set up required environment variables for all tests."""
    test_env = {
        "TELEGRAM_BOT_TOKEN": "test_bot_token_123",
        "DISCORD_BOT_TOKEN": "test_discord_token_456",
    }

    with patch.dict(os.environ, test_env, clear=False):
        yield


@pytest.fixture
def store(tmp_path):
    """A subscription store backed by a temporary SQLite file."""
    subscription_store = SubscriptionStore(db_path=str(tmp_path / "subscriptions.db"))
    yield subscription_store
    subscription_store.close()


@pytest.fixture
def mock_telegram_client():
    """Create a mock TelegramClient."""
    client = AsyncMock()
    client.send_message.return_value = {"message_id": 1}
    return client


@pytest.fixture
def mock_discord_client():
    """Create a mock DiscordClient that knows one guild with one channel."""
    client = AsyncMock()
    client.resolve_channel.return_value = ChannelInfo(id="12345", name="general", guild_id="g1")
    client.resolve_guild.return_value = GuildInfo(id="g1", name="My Guild")
    client.list_prior_messages.return_value = ["111"]
    client.join_thread.return_value = False
    return client


@pytest.fixture
def app_test():
    """Get test app"""
    return create_app()


@pytest.fixture
async def async_client(app_test):
    """Get async test client"""
    async with AsyncClient(transport=ASGITransport(app=app_test), base_url="http://test") as client:
        yield client


@pytest.fixture(autouse=True)
def caplog_setup_for_structlog(caplog):
    """Fixture to capture structlog logs in caplog."""

    original_config = structlog.get_config()

    # Route structlog through Python's logging module
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    caplog.set_level(logging.DEBUG)
    logging.getLogger().setLevel(logging.DEBUG)

    yield

    structlog.configure(**original_config)
