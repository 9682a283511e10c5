"""
Subscription store backed by SQLite.

Each row pairs a Telegram chat with a selector (a Discord channel or guild
id). A chat that has talked to the bot but never added a selector is kept
as a single sentinel row so it is greeted only once.
"""

import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Set

import structlog

from discogram.core.errors import StoreError
from discogram.core.models import SENTINEL_SELECTOR, Registration

_CREATE_REGISTRATIONS = """
CREATE TABLE IF NOT EXISTS registrations (
    conversation_id INTEGER NOT NULL,
    selector        TEXT NOT NULL,
    created_at      TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (conversation_id, selector)
);
"""

_CREATE_IDX_SELECTOR = """
CREATE INDEX IF NOT EXISTS idx_registrations_selector ON registrations(selector);
"""


class SubscriptionStore:
    """Durable mapping of Telegram chats to Discord selectors.

    All operations share one connection and run under one lock, so the
    store can be used from the Discord handler, the Telegram poller and the
    admin API at the same time.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.log = structlog.get_logger(self.__class__.__name__)
        self._db_path = db_path
        self._lock = threading.Lock()

        try:
            if db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
            if db_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL")
            with self._conn:
                self._conn.execute(_CREATE_REGISTRATIONS)
                self._conn.execute(_CREATE_IDX_SELECTOR)
        except (OSError, sqlite3.Error) as e:
            raise StoreError(f"Failed to open subscription store at {db_path}: {e}") from e

        self.log.info("Subscription store opened", path=db_path)

    def _read(self, query: str, params: tuple = ()) -> list:
        with self._lock:
            try:
                return self._conn.execute(query, params).fetchall()
            except sqlite3.Error as e:
                raise StoreError(f"Store read failed: {e}") from e

    def is_registered(self, conversation_id: int) -> bool:
        rows = self._read("SELECT 1 FROM registrations WHERE conversation_id = ? LIMIT 1", (conversation_id,))
        return bool(rows)

    def register(self, conversation_id: int) -> bool:
        """Insert the sentinel row unless the chat already has any row.

        Returns:
            True if the chat was newly registered, False if it was already known
        """
        with self._lock:
            try:
                with self._conn:
                    cursor = self._conn.execute(
                        "INSERT INTO registrations (conversation_id, selector) "
                        "SELECT ?, ? WHERE NOT EXISTS "
                        "(SELECT 1 FROM registrations WHERE conversation_id = ?)",
                        (conversation_id, SENTINEL_SELECTOR, conversation_id),
                    )
            except sqlite3.Error as e:
                raise StoreError(f"Failed to register chat {conversation_id}: {e}") from e

        created = cursor.rowcount > 0
        if created:
            self.log.info("Chat registered", conversation_id=conversation_id)
        return created

    def add_selector(self, conversation_id: int, selector: str) -> None:
        """Subscribe a chat to a selector, replacing its sentinel row."""
        with self._lock:
            try:
                with self._conn:
                    self._conn.execute(
                        "INSERT OR IGNORE INTO registrations (conversation_id, selector) VALUES (?, ?)",
                        (conversation_id, selector),
                    )
                    self._conn.execute(
                        "DELETE FROM registrations WHERE conversation_id = ? AND selector = ?",
                        (conversation_id, SENTINEL_SELECTOR),
                    )
            except sqlite3.Error as e:
                raise StoreError(f"Failed to add selector {selector} for chat {conversation_id}: {e}") from e

        self.log.info("Selector added", conversation_id=conversation_id, selector=selector)

    def remove_selector(self, conversation_id: int, selector: str) -> bool:
        """Unsubscribe a chat from a selector. Unknown selectors are a no-op.

        When the last selector goes away the sentinel row is restored, so the
        chat stays registered.

        Returns:
            True if a row was deleted
        """
        with self._lock:
            try:
                with self._conn:
                    cursor = self._conn.execute(
                        "DELETE FROM registrations WHERE conversation_id = ? AND selector = ?",
                        (conversation_id, selector),
                    )
                    removed = cursor.rowcount > 0
                    if removed:
                        self._conn.execute(
                            "INSERT INTO registrations (conversation_id, selector) "
                            "SELECT ?, ? WHERE NOT EXISTS "
                            "(SELECT 1 FROM registrations WHERE conversation_id = ?)",
                            (conversation_id, SENTINEL_SELECTOR, conversation_id),
                        )
            except sqlite3.Error as e:
                raise StoreError(f"Failed to remove selector {selector} for chat {conversation_id}: {e}") from e

        if removed:
            self.log.info("Selector removed", conversation_id=conversation_id, selector=selector)
        else:
            self.log.debug("Selector was not registered", conversation_id=conversation_id, selector=selector)
        return removed

    def matching_conversations(self, selector: str) -> Set[int]:
        if selector == SENTINEL_SELECTOR:
            return set()
        rows = self._read("SELECT conversation_id FROM registrations WHERE selector = ?", (selector,))
        return {row[0] for row in rows}

    def first_conversation(self, selector: str) -> Optional[int]:
        """The chat that subscribed to the selector first, if any."""
        if selector == SENTINEL_SELECTOR:
            return None
        rows = self._read(
            "SELECT conversation_id FROM registrations WHERE selector = ? ORDER BY rowid LIMIT 1",
            (selector,),
        )
        return rows[0][0] if rows else None

    def all_selectors(self) -> Set[str]:
        rows = self._read("SELECT DISTINCT selector FROM registrations WHERE selector != ?", (SENTINEL_SELECTOR,))
        return {row[0] for row in rows}

    def all_conversations(self) -> Set[int]:
        rows = self._read("SELECT DISTINCT conversation_id FROM registrations")
        return {row[0] for row in rows}

    def selectors_for(self, conversation_id: int) -> Set[str]:
        rows = self._read(
            "SELECT selector FROM registrations WHERE conversation_id = ? AND selector != ?",
            (conversation_id, SENTINEL_SELECTOR),
        )
        return {row[0] for row in rows}

    def list_registrations(self) -> List[Registration]:
        rows = self._read(
            "SELECT conversation_id, selector, created_at FROM registrations ORDER BY conversation_id, rowid"
        )
        return [
            Registration(
                conversation_id=conversation_id,
                selector=selector,
                created_at=datetime.fromisoformat(created_at) if created_at else None,
            )
            for conversation_id, selector, created_at in rows
        ]

    def count(self) -> int:
        return self._read("SELECT COUNT(*) FROM registrations")[0][0]

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        self.log.info("Subscription store closed", path=self._db_path)
