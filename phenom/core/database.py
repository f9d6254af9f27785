import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

DB_FILE = "phenom_tokens.db"


@dataclass(frozen=True)
class LinkedCredential:
    """One linked institution for one user. Never updated once stored."""

    user_id: str
    access_secret: str
    institution_label: Optional[str] = None
    created_at: Optional[str] = None
    item_id: Optional[str] = None
    id: Optional[int] = None


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class CredentialStore(ABC):
    """Durable mapping from a user to the credentials linked for that user."""

    def initialize(self) -> None:
        """Prepare backing storage. Safe to call more than once."""

    @abstractmethod
    def save(self, user_id: str, credential: LinkedCredential) -> LinkedCredential:
        ...

    @abstractmethod
    def list_for(self, user_id: str) -> List[LinkedCredential]:
        ...

    def count_for(self, user_id: str) -> int:
        return len(self.list_for(user_id))


class SQLiteCredentialStore(CredentialStore):
    """File-backed store. Each credential is one row written in its own transaction."""

    def __init__(self, db_path: str = DB_FILE, timeout: float = 30.0):
        self.db_path = db_path
        self.timeout = timeout

    def get_db_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_column(self, conn: sqlite3.Connection, table: str, column: str, definition: str) -> None:
        """Ensure the given column exists on the table, adding it if necessary."""
        cursor = conn.execute(f"PRAGMA table_info({table})")
        columns = {row[1] for row in cursor.fetchall()}
        if column not in columns:
            logger.info("Adding column %s to table %s", column, table)
            conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition};")

    def initialize(self) -> None:
        conn = self.get_db_connection()
        try:
            conn.execute("PRAGMA journal_mode=WAL;")
            with conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS user_tokens (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id TEXT NOT NULL,
                        access_token TEXT NOT NULL,
                        institution_name TEXT,
                        created_at TEXT NOT NULL
                    );
                    """
                )
                self._ensure_column(conn, "user_tokens", "item_id", "TEXT")
                conn.execute("CREATE INDEX IF NOT EXISTS idx_user_tokens_user ON user_tokens (user_id, id);")
        finally:
            conn.close()
        logger.info("Credential store initialized at %s", self.db_path)

    def save(self, user_id: str, credential: LinkedCredential) -> LinkedCredential:
        created_at = credential.created_at or _utcnow_iso()
        conn = self.get_db_connection()
        try:
            with conn:
                cursor = conn.execute(
                    """
                    INSERT INTO user_tokens (user_id, access_token, institution_name, item_id, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (user_id, credential.access_secret, credential.institution_label, credential.item_id, created_at),
                )
                row_id = cursor.lastrowid
        finally:
            conn.close()
        logger.info("Stored credential #%s for user %s (%s)", row_id, user_id, credential.institution_label)
        return LinkedCredential(
            user_id=user_id,
            access_secret=credential.access_secret,
            institution_label=credential.institution_label,
            created_at=created_at,
            item_id=credential.item_id,
            id=row_id,
        )

    def list_for(self, user_id: str) -> List[LinkedCredential]:
        conn = self.get_db_connection()
        try:
            rows = conn.execute(
                """
                SELECT id, user_id, access_token, institution_name, item_id, created_at
                FROM user_tokens
                WHERE user_id = ?
                ORDER BY id ASC
                """,
                (user_id,),
            ).fetchall()
        finally:
            conn.close()
        return [
            LinkedCredential(
                user_id=row["user_id"],
                access_secret=row["access_token"],
                institution_label=row["institution_name"],
                created_at=row["created_at"],
                item_id=row["item_id"],
                id=row["id"],
            )
            for row in rows
        ]

    def count_for(self, user_id: str) -> int:
        conn = self.get_db_connection()
        try:
            row = conn.execute("SELECT COUNT(*) FROM user_tokens WHERE user_id = ?", (user_id,)).fetchone()
        finally:
            conn.close()
        return int(row[0])


class InMemoryCredentialStore(CredentialStore):
    """Process-local fallback. Credentials are lost on restart."""

    def __init__(self) -> None:
        self._rows: Dict[str, List[LinkedCredential]] = {}
        self._lock = threading.Lock()
        self._next_id = 1

    def save(self, user_id: str, credential: LinkedCredential) -> LinkedCredential:
        with self._lock:
            stored = LinkedCredential(
                user_id=user_id,
                access_secret=credential.access_secret,
                institution_label=credential.institution_label,
                created_at=credential.created_at or _utcnow_iso(),
                item_id=credential.item_id,
                id=self._next_id,
            )
            self._next_id += 1
            self._rows.setdefault(user_id, []).append(stored)
        return stored

    def list_for(self, user_id: str) -> List[LinkedCredential]:
        with self._lock:
            return list(self._rows.get(user_id, []))


def build_store(kind: str, db_path: str) -> CredentialStore:
    if kind == "memory":
        logger.warning("Using in-memory credential store; linked institutions will not survive a restart.")
        return InMemoryCredentialStore()
    if kind != "sqlite":
        raise ValueError(f"Unsupported credential store '{kind}'.")
    return SQLiteCredentialStore(db_path)
