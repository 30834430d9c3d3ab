"""Durable client-side state: the auth session and per-student submission flags."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

from hostel_portal.domain.models import SessionIdentity
from hostel_portal.utils.config import Settings, get_settings
from hostel_portal.utils.logger import get_logger


logger = get_logger(__name__)

_SESSION_KEY = "session"


def submission_flag_key(student_id: str) -> str:
    return f"student-{student_id}-submission-success"


class LocalStateStore:
    """Small SQLite key/value store that survives console restarts."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.state_database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        return connection

    def initialize_database(self) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Sessions (
                        id TEXT PRIMARY KEY,
                        role TEXT NOT NULL,
                        user_id TEXT NOT NULL,
                        token TEXT NOT NULL,
                        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Flags (
                        key TEXT PRIMARY KEY,
                        value INTEGER NOT NULL CHECK (value IN (0,1)),
                        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )
                conn.commit()
        except sqlite3.Error:
            logger.exception("Failed to initialize local state database at %s", self._db_path)
            raise

    def save_session(self, identity: SessionIdentity) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO Sessions (id, role, user_id, token)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    role = excluded.role,
                    user_id = excluded.user_id,
                    token = excluded.token,
                    updated_at = CURRENT_TIMESTAMP;
                """,
                (_SESSION_KEY, identity.role, identity.user_id, identity.token),
            )
            conn.commit()

    def load_session(self) -> Optional[SessionIdentity]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT role, user_id, token FROM Sessions WHERE id = ?;",
                (_SESSION_KEY,),
            ).fetchone()
        if row is None:
            return None
        return SessionIdentity(role=row["role"], user_id=row["user_id"], token=row["token"])

    def clear_session(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM Sessions WHERE id = ?;", (_SESSION_KEY,))
            conn.commit()

    def set_flag(self, key: str, value: bool) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO Flags (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP;
                """,
                (key, 1 if value else 0),
            )
            conn.commit()

    def get_flag(self, key: str) -> bool:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM Flags WHERE key = ?;", (key,)).fetchone()
        return bool(row["value"]) if row is not None else False

    def clear_flag(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM Flags WHERE key = ?;", (key,))
            conn.commit()
