import asyncio
from typing import List, Optional, Sequence

import structlog

from discogram.core.clients.telegram import TelegramClient
from discogram.core.models import RelayMessage


class Dispatcher:
    """Delivers rendered relay messages to Telegram.

    The Discord handler hands batches over with :meth:`submit`, which never
    blocks; a worker task drains the queue. Each chat in a batch is sent to
    independently, so one failing chat does not affect the others.
    """

    def __init__(self, telegram_client: TelegramClient, queue_size: int = 1000):
        self.log = structlog.get_logger(self.__class__.__name__)
        self._telegram = telegram_client
        self._queue: asyncio.Queue[List[RelayMessage]] = asyncio.Queue(maxsize=queue_size)
        self._worker: Optional[asyncio.Task] = None

    def submit(self, messages: Sequence[RelayMessage]) -> bool:
        """Queue one event's messages for delivery.

        Returns:
            False if the queue is full and the event was dropped
        """
        if not messages:
            return True

        try:
            self._queue.put_nowait(list(messages))
        except asyncio.QueueFull:
            self.log.warning(
                "Delivery queue full, dropping event",
                targets=[message.chat_id for message in messages],
                queue_size=self._queue.maxsize,
            )
            return False
        return True

    async def deliver(self, messages: Sequence[RelayMessage]) -> int:
        """Send each message to its chat.

        Returns:
            Number of chats the message reached
        """
        delivered = 0
        for message in messages:
            try:
                result = await self._telegram.send_message(message.chat_id, message.render())
            except Exception as e:
                # Isolate the chat; the remaining targets still get the message
                self.log.error(
                    "Unexpected error sending message to Telegram",
                    chat_id=message.chat_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            if result is None:
                self.log.warning("Relay message not delivered", chat_id=message.chat_id)
                continue
            delivered += 1

        self.log.debug("Event delivered", delivered=delivered, targets=len(messages))
        return delivered

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def run(self) -> None:
        self.log.info("Delivery worker started")
        while True:
            messages = await self._queue.get()
            try:
                await self.deliver(messages)
            finally:
                self._queue.task_done()

    def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self.run())

    async def stop(self) -> None:
        """Stop the worker. Queued events that were not sent yet are dropped."""
        if self._worker is None:
            return

        self.log.info("Stopping delivery worker...", pending=self.pending)
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        self.log.info("Delivery worker stopped")
