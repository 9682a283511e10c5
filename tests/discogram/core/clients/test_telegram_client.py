"""Tests for Telegram client."""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from discogram.core.clients.telegram import TelegramClient
from discogram.core.errors import TransportError


@pytest.fixture
def telegram_client():
    """Create a Telegram client instance."""
    return TelegramClient(token="test-token")


@pytest.mark.asyncio
async def test_get_me_success(telegram_client):
    mock_response = MagicMock()
    mock_response.json.return_value = {"ok": True, "result": {"id": 1, "is_bot": True, "username": "relay_bot"}}

    with patch.object(telegram_client._client, "get", return_value=mock_response) as mock_get:
        bot = await telegram_client.get_me()

        assert bot["username"] == "relay_bot"
        mock_get.assert_called_once_with("/getMe")


@pytest.mark.asyncio
async def test_get_me_rejected_token(telegram_client):
    mock_response = MagicMock()
    mock_response.json.return_value = {"ok": False, "error_code": 401, "description": "Unauthorized"}

    with patch.object(telegram_client._client, "get", return_value=mock_response):
        with pytest.raises(TransportError, match="Unauthorized"):
            await telegram_client.get_me()


@pytest.mark.asyncio
async def test_get_me_http_error(telegram_client):
    with patch.object(telegram_client._client, "get", side_effect=httpx.ConnectError("Network error")):
        with pytest.raises(TransportError):
            await telegram_client.get_me()


@pytest.mark.asyncio
async def test_get_updates_success(telegram_client):
    """Test successful get_updates call."""
    mock_response = MagicMock()
    mock_response.json.return_value = {
        "ok": True,
        "result": [
            {"update_id": 1, "message": {"text": "hello"}},
            {"update_id": 2, "message": {"text": "world"}},
        ],
    }

    with patch.object(telegram_client._client, "get", return_value=mock_response) as mock_get:
        updates = await telegram_client.get_updates(offset=123, timeout=30)

        assert len(updates) == 2
        assert updates[0]["update_id"] == 1
        assert updates[1]["update_id"] == 2
        mock_get.assert_called_once_with("/getUpdates", params={"timeout": 30, "offset": 123}, timeout=40)


@pytest.mark.asyncio
async def test_get_updates_api_error(telegram_client):
    """Test get_updates with API error response."""
    mock_response = MagicMock()
    mock_response.json.return_value = {"ok": False, "error_code": 400, "description": "Bad Request"}

    with patch.object(telegram_client._client, "get", return_value=mock_response):
        updates = await telegram_client.get_updates()

        assert updates == []


@pytest.mark.asyncio
async def test_get_updates_http_error(telegram_client):
    """Test get_updates with HTTP error."""
    with patch.object(telegram_client._client, "get", side_effect=httpx.HTTPError("Network error")):
        updates = await telegram_client.get_updates()

        assert updates == []


@pytest.mark.asyncio
async def test_send_message_success(telegram_client):
    """Test successful send_message call."""
    mock_response = MagicMock()
    mock_response.json.return_value = {"ok": True, "result": {"message_id": 123, "text": "[g/c] hello"}}

    with patch.object(telegram_client._client, "post", return_value=mock_response) as mock_post:
        result = await telegram_client.send_message(chat_id=456, text="[g/c] hello")

        assert result["message_id"] == 123
        mock_post.assert_called_once_with("/sendMessage", json={"chat_id": 456, "text": "[g/c] hello"})


@pytest.mark.asyncio
async def test_send_message_api_error(telegram_client):
    """Test send_message with API error response."""
    mock_response = MagicMock()
    mock_response.json.return_value = {"ok": False, "error_code": 403, "description": "bot was blocked by the user"}

    with patch.object(telegram_client._client, "post", return_value=mock_response):
        result = await telegram_client.send_message(chat_id=456, text="hello")

        assert result is None


@pytest.mark.asyncio
async def test_send_message_http_error(telegram_client):
    """Test send_message with HTTP error."""
    with patch.object(telegram_client._client, "post", side_effect=httpx.HTTPError("Network error")):
        result = await telegram_client.send_message(chat_id=456, text="hello")

        assert result is None


@pytest.mark.asyncio
async def test_close(telegram_client):
    """Test client cleanup."""
    mock_is_closed = MagicMock(return_value=False)
    with patch.object(type(telegram_client._client), "is_closed", property(mock_is_closed)):
        with patch.object(telegram_client._client, "aclose") as mock_close:
            await telegram_client.close()
            mock_close.assert_called_once()


@pytest.mark.asyncio
async def test_close_already_closed(telegram_client):
    """Test client cleanup when already closed."""
    mock_is_closed = MagicMock(return_value=True)
    with patch.object(type(telegram_client._client), "is_closed", property(mock_is_closed)):
        with patch.object(telegram_client._client, "aclose") as mock_close:
            await telegram_client.close()
            mock_close.assert_not_called()
