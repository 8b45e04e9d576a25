"""Persistence for completed conversation turns (``chat_logs``)."""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Protocol

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from ..errors import StoreError
from .models import Turn

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parents[1] / "schema.sql"

RECENT_TURNS_LIMIT = 5
SUMMARY_TURNS_LIMIT = 100


class ConversationLogStore(Protocol):
    """Append-only log of turns plus the reads used by tools and search."""

    def append_turn(self, turn: Turn) -> Turn: ...

    def count_turns(self) -> int: ...

    def recent_turns(self, limit: int = RECENT_TURNS_LIMIT) -> List[Turn]: ...

    def oldest_turns(self, limit: int = SUMMARY_TURNS_LIMIT) -> List[Turn]: ...

    def search(self, query: str) -> List[Turn]: ...

    def ping(self) -> datetime: ...

    def close(self) -> None: ...


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostgresConversationLogStore:
    """PostgreSQL implementation of :class:`ConversationLogStore`.

    Connections are checked out of a ``psycopg_pool`` pool for every call, so
    one store instance is shared by all concurrent requests.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    @classmethod
    def connect(
        cls,
        database_url: str,
        *,
        min_size: int = 1,
        max_size: int = 10,
        timeout: float = 10.0,
    ) -> "PostgresConversationLogStore":
        pool = ConnectionPool(
            database_url, min_size=min_size, max_size=max_size, open=False
        )
        try:
            pool.open(wait=True, timeout=timeout)
        except psycopg.Error as exc:
            pool.close()
            raise StoreError(f"Could not open database pool: {exc}") from exc
        return cls(pool)

    # Utility -----------------------------------------------------------------
    def _fetch(self, query: str, params: tuple = ()) -> List[dict]:
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(query, params)
                    return cur.fetchall()
        except psycopg.Error as exc:
            logger.exception("chat_logs query failed")
            raise StoreError(f"Conversation log query failed: {exc}") from exc

    def ensure_schema(self, schema_sql_path: Path = SCHEMA_PATH) -> None:
        """Create ``chat_logs`` when missing; safe to call repeatedly."""

        try:
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(schema_sql_path.read_text(encoding="utf-8"))
        except psycopg.Error as exc:
            raise StoreError(f"Failed to apply schema: {exc}") from exc

    # Writes ------------------------------------------------------------------
    def append_turn(self, turn: Turn) -> Turn:
        rows = self._fetch(
            """
            INSERT INTO chat_logs (thread_id, user_message, assistant_reply)
            VALUES (%s, %s, %s)
            RETURNING id, thread_id, user_message, assistant_reply, created_at
            """,
            (turn.thread_id, turn.user_message, turn.assistant_reply),
        )
        return Turn(**rows[0])

    # Reads -------------------------------------------------------------------
    def count_turns(self) -> int:
        rows = self._fetch("SELECT COUNT(*) AS count FROM chat_logs")
        return int(rows[0]["count"]) if rows else 0

    def recent_turns(self, limit: int = RECENT_TURNS_LIMIT) -> List[Turn]:
        rows = self._fetch(
            """
            SELECT id, thread_id, user_message, assistant_reply, created_at
            FROM chat_logs ORDER BY created_at DESC, id DESC LIMIT %s
            """,
            (limit,),
        )
        return [Turn(**row) for row in rows]

    def oldest_turns(self, limit: int = SUMMARY_TURNS_LIMIT) -> List[Turn]:
        rows = self._fetch(
            """
            SELECT id, thread_id, user_message, assistant_reply, created_at
            FROM chat_logs ORDER BY created_at ASC, id ASC LIMIT %s
            """,
            (limit,),
        )
        return [Turn(**row) for row in rows]

    def search(self, query: str) -> List[Turn]:
        pattern = f"%{_escape_like(query)}%"
        rows = self._fetch(
            """
            SELECT id, thread_id, user_message, assistant_reply, created_at
            FROM chat_logs
            WHERE user_message ILIKE %s OR assistant_reply ILIKE %s
            ORDER BY created_at DESC, id DESC
            """,
            (pattern, pattern),
        )
        return [Turn(**row) for row in rows]

    def ping(self) -> datetime:
        rows = self._fetch("SELECT now() AS now")
        return rows[0]["now"]

    def close(self) -> None:
        self._pool.close()


class InMemoryConversationLogStore:
    """Thread-safe in-process store used for development and tests."""

    def __init__(self, turns: Optional[List[Turn]] = None) -> None:
        self._lock = threading.Lock()
        self._turns: List[Turn] = []
        for turn in turns or []:
            self.append_turn(turn)

    def append_turn(self, turn: Turn) -> Turn:
        with self._lock:
            stored = turn.model_copy(
                update={
                    "id": len(self._turns) + 1,
                    "created_at": turn.created_at or datetime.now(timezone.utc),
                }
            )
            self._turns.append(stored)
        return stored

    def _ordered(self, newest_first: bool) -> List[Turn]:
        with self._lock:
            turns = list(self._turns)
        return sorted(
            turns, key=lambda t: (t.created_at, t.id or 0), reverse=newest_first
        )

    def count_turns(self) -> int:
        with self._lock:
            return len(self._turns)

    def recent_turns(self, limit: int = RECENT_TURNS_LIMIT) -> List[Turn]:
        return self._ordered(newest_first=True)[:limit]

    def oldest_turns(self, limit: int = SUMMARY_TURNS_LIMIT) -> List[Turn]:
        return self._ordered(newest_first=False)[:limit]

    def search(self, query: str) -> List[Turn]:
        needle = query.lower()
        return [
            turn
            for turn in self._ordered(newest_first=True)
            if needle in turn.user_message.lower()
            or needle in turn.assistant_reply.lower()
        ]

    def ping(self) -> datetime:
        return datetime.now(timezone.utc)

    def close(self) -> None:
        return None


__all__ = [
    "ConversationLogStore",
    "InMemoryConversationLogStore",
    "PostgresConversationLogStore",
    "SCHEMA_PATH",
]
