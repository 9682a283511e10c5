import asyncio
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from discogram.core.config import Settings
from discogram.core.infrastructure.poller import TelegramPoller

pytestmark = pytest.mark.asyncio


@pytest.fixture
def mock_interpreter():
    """Create a mock CommandInterpreter."""
    interpreter = AsyncMock()
    interpreter.process_update.return_value = []
    return interpreter


@pytest.fixture
def temp_settings():
    """Create settings with a temporary file for offset storage."""
    with tempfile.TemporaryDirectory() as temp_dir:
        settings = Settings()
        settings.update_id_file_path = str(Path(temp_dir) / "update_id.txt")
        settings.reply_max_retries = 2
        yield settings


@pytest.fixture
def telegram_poller(mock_interpreter, mock_telegram_client, temp_settings):
    """Create a TelegramPoller instance for testing."""
    return TelegramPoller(
        interpreter=mock_interpreter,
        telegram_client=mock_telegram_client,
        settings=temp_settings,
    )


class TestTelegramPoller:
    """Test cases for TelegramPoller."""

    async def test_sends_command_confirmation(self, telegram_poller, mock_telegram_client, mock_interpreter):
        """Test that replies produced by the interpreter are sent back."""
        update = {
            "update_id": 123,
            "message": {"message_id": 456, "chat": {"id": 999, "type": "private"}, "text": "/add 12345"},
        }
        mock_telegram_client.get_updates.return_value = [update]
        mock_interpreter.process_update.return_value = [(999, "Discord channel registered")]

        await telegram_poller._run_single_loop()

        mock_telegram_client.get_updates.assert_called_once_with(offset=None, timeout=30)
        mock_interpreter.process_update.assert_called_once_with(update)
        mock_telegram_client.send_message.assert_called_once_with(999, "Discord channel registered")

    async def test_sends_multiple_replies_in_order(self, telegram_poller, mock_telegram_client, mock_interpreter):
        """Test that every reply for one update is sent, in order."""
        update = {"update_id": 1, "message": {"chat": {"id": 999}, "text": "/add 12345"}}
        mock_telegram_client.get_updates.return_value = [update]
        mock_interpreter.process_update.return_value = [
            (999, "Discord channel registered"),
            (999, "Chat registered"),
        ]

        await telegram_poller._run_single_loop()

        assert [c.args for c in mock_telegram_client.send_message.call_args_list] == [
            (999, "Discord channel registered"),
            (999, "Chat registered"),
        ]

    async def test_no_reply_sends_nothing(self, telegram_poller, mock_telegram_client, mock_interpreter):
        """Test that plain messages from known chats produce no outbound message."""
        mock_telegram_client.get_updates.return_value = [
            {"update_id": 125, "message": {"chat": {"id": 999}, "text": "Silent message"}}
        ]

        await telegram_poller._run_single_loop()

        mock_interpreter.process_update.assert_called_once()
        mock_telegram_client.send_message.assert_not_called()

    async def test_offset_management(self, telegram_poller, mock_telegram_client, temp_settings):
        """Test that TelegramPoller correctly manages update offsets."""
        mock_telegram_client.get_updates.return_value = [
            {"update_id": 100, "message": {"chat": {"id": 999}, "text": "/add 1"}},
            {"update_id": 101, "message": {"chat": {"id": 999}, "text": "message"}},
        ]

        await telegram_poller._run_single_loop()

        offset_file = Path(temp_settings.update_id_file_path)
        assert offset_file.exists()
        assert offset_file.read_text().strip() == "102"

        mock_telegram_client.get_updates.return_value = []
        await telegram_poller._run_single_loop()
        mock_telegram_client.get_updates.assert_called_with(offset=102, timeout=30)

    async def test_loads_saved_offset(self, telegram_poller, temp_settings):
        """Test that a saved offset is picked up on start."""
        Path(temp_settings.update_id_file_path).write_text("555")

        telegram_poller._load_offset()

        assert telegram_poller._offset == 555

    async def test_corrupt_offset_file_starts_from_scratch(self, telegram_poller, temp_settings):
        Path(temp_settings.update_id_file_path).write_text("not-a-number")

        telegram_poller._load_offset()

        assert telegram_poller._offset is None

    async def test_handles_empty_updates(self, telegram_poller, mock_telegram_client, mock_interpreter):
        """Test that TelegramPoller handles empty update lists correctly."""
        mock_telegram_client.get_updates.return_value = []

        await telegram_poller._run_single_loop()

        mock_interpreter.process_update.assert_not_called()
        mock_telegram_client.send_message.assert_not_called()

    async def test_interpreter_failure_skips_update(
        self, telegram_poller, mock_telegram_client, mock_interpreter, temp_settings
    ):
        """Test that an update that blows up is logged and skipped, not retried forever."""
        mock_telegram_client.get_updates.return_value = [
            {"update_id": 200, "message": {"chat": {"id": 1}, "text": "boom"}},
            {"update_id": 201, "message": {"chat": {"id": 2}, "text": "/add 5"}},
        ]
        mock_interpreter.process_update.side_effect = [RuntimeError("unexpected"), [(2, "Discord channel registered")]]

        await telegram_poller._run_single_loop()

        mock_telegram_client.send_message.assert_called_once_with(2, "Discord channel registered")
        assert Path(temp_settings.update_id_file_path).read_text().strip() == "202"

    async def test_reply_retried_with_backoff(self, telegram_poller, mock_telegram_client):
        """Test that failed confirmations are retried before giving up."""
        mock_telegram_client.send_message.side_effect = [None, None, {"message_id": 1}]

        with patch("discogram.core.infrastructure.poller.asyncio.sleep", new=AsyncMock()) as mock_sleep:
            sent = await telegram_poller._send_message_with_backoff(999, "Chat registered")

        assert sent is True
        assert mock_telegram_client.send_message.call_count == 3
        assert mock_sleep.await_count == 2

    async def test_reply_gives_up_after_retries(self, telegram_poller, mock_telegram_client):
        mock_telegram_client.send_message.return_value = None

        with patch("discogram.core.infrastructure.poller.asyncio.sleep", new=AsyncMock()):
            sent = await telegram_poller._send_message_with_backoff(999, "Chat registered")

        assert sent is False
        assert mock_telegram_client.send_message.call_count == 3

    async def test_stop_functionality(self, telegram_poller, mock_telegram_client):
        """Test that TelegramPoller stops correctly when stop() is called."""
        call_count = 0

        async def mock_get_updates_controlled(*args, **kwargs):
            nonlocal call_count
            call_count += 1
            if call_count >= 3:
                asyncio.create_task(telegram_poller.stop())
            await asyncio.sleep(0)
            return []

        mock_telegram_client.get_updates.side_effect = mock_get_updates_controlled

        await asyncio.wait_for(telegram_poller.run(), timeout=2)

        assert call_count >= 3
