from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Iterator

from domain.errors import DuplicateUserError, StoreError
from domain.models import Session, Transaction, TransactionType, User
from domain.schemas import TransactionFilters
from infrastructure.persistence.store import TransactionStore, UserStore, new_object_id

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    password_hash TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sessions (
    token TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    expires_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    type TEXT NOT NULL CHECK (type IN ('income', 'expense')),
    amount TEXT NOT NULL,
    category TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    occurred_at TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_transactions_owner_date ON transactions (owner_id, occurred_at DESC);
"""


def _to_text(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_text(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class SQLiteDatabase:
    """
    Owns a single SQLite connection shared by the stores.

    FastAPI runs sync handlers on a thread pool, so every statement goes
    through one lock and the connection is opened with check_same_thread off.
    """

    def __init__(self, db_path: Path | str = ":memory:"):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._connection: sqlite3.Connection | None = None

    def get_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            conn.execute("PRAGMA foreign_keys = ON")
            conn.row_factory = sqlite3.Row
            conn.executescript(SCHEMA)
            conn.commit()
            logger.info("SQLiteDatabase opened path=%s", self.db_path)
            self._connection = conn
        return self._connection

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back and re-raise on failure."""
        with self._lock:
            conn = self.get_connection()
            try:
                yield conn
                conn.commit()
            except sqlite3.IntegrityError:
                conn.rollback()
                raise
            except sqlite3.Error as exc:
                conn.rollback()
                raise StoreError(f"SQLite operation failed: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None


class SQLiteTransactionStore(TransactionStore):
    name = "sqlite"

    def __init__(self, db: SQLiteDatabase):
        self.db = db

    def insert(self, txn: Transaction) -> Transaction:
        if not txn.id:
            txn = txn.copy(id=new_object_id())
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO transactions (
                    id, owner_id, type, amount, category, description,
                    occurred_at, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    txn.id,
                    txn.owner_id,
                    txn.txn_type.value,
                    str(txn.amount),
                    txn.category,
                    txn.description,
                    _to_text(txn.occurred_at),
                    _to_text(txn.created_at),
                    _to_text(txn.updated_at),
                ),
            )
        return txn

    def list_for_owner(self, owner_id: str, filters: TransactionFilters | None = None) -> list[Transaction]:
        query = "SELECT * FROM transactions WHERE owner_id = ?"
        params: list[str] = [owner_id]

        if filters is not None:
            if filters.start_date:
                query += " AND substr(occurred_at, 1, 10) >= ?"
                params.append(filters.start_date.isoformat())
            if filters.end_date:
                query += " AND substr(occurred_at, 1, 10) <= ?"
                params.append(filters.end_date.isoformat())
            if filters.type:
                query += " AND type = ?"
                params.append(filters.type)
            if filters.category:
                query += " AND category = ?"
                params.append(filters.category)

        query += " ORDER BY occurred_at DESC, created_at DESC"

        with self.db.transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_transaction(row) for row in rows]

    def get_for_owner(self, owner_id: str, txn_id: str) -> Transaction | None:
        with self.db.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM transactions WHERE id = ? AND owner_id = ?",
                (txn_id, owner_id),
            ).fetchone()
        return self._row_to_transaction(row) if row is not None else None

    def replace_for_owner(self, owner_id: str, txn: Transaction) -> Transaction | None:
        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE transactions
                SET type = ?, amount = ?, category = ?, description = ?,
                    occurred_at = ?, updated_at = ?
                WHERE id = ? AND owner_id = ?
                """,
                (
                    txn.txn_type.value,
                    str(txn.amount),
                    txn.category,
                    txn.description,
                    _to_text(txn.occurred_at),
                    _to_text(txn.updated_at),
                    txn.id,
                    owner_id,
                ),
            )
            if cursor.rowcount == 0:
                return None
        return txn.copy(owner_id=owner_id)

    def delete_for_owner(self, owner_id: str, txn_id: str) -> Transaction | None:
        with self.db.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM transactions WHERE id = ? AND owner_id = ?",
                (txn_id, owner_id),
            ).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM transactions WHERE id = ?", (txn_id,))
        return self._row_to_transaction(row)

    def _row_to_transaction(self, row: sqlite3.Row) -> Transaction:
        return Transaction(
            id=row["id"],
            owner_id=row["owner_id"],
            txn_type=TransactionType(row["type"]),
            amount=Decimal(row["amount"]),
            category=row["category"],
            description=row["description"] or "",
            occurred_at=_from_text(row["occurred_at"]),
            created_at=_from_text(row["created_at"]),
            updated_at=_from_text(row["updated_at"]),
        )


class SQLiteUserStore(UserStore):
    def __init__(self, db: SQLiteDatabase):
        self.db = db

    def add_user(self, user: User) -> User:
        try:
            with self.db.transaction() as conn:
                conn.execute(
                    "INSERT INTO users (id, email, name, password_hash, created_at) VALUES (?, ?, ?, ?, ?)",
                    (user.id, user.email, user.name, user.password_hash, _to_text(user.created_at)),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicateUserError(f"User already exists: {user.email}") from exc
        return user

    def get_user(self, user_id: str) -> User | None:
        with self.db.transaction() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return self._row_to_user(row) if row is not None else None

    def find_by_email(self, email: str) -> User | None:
        with self.db.transaction() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email.strip().lower(),)).fetchone()
        return self._row_to_user(row) if row is not None else None

    def save_session(self, session: Session) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO sessions (token, user_id, expires_at) VALUES (?, ?, ?)",
                (session.token, session.user_id, _to_text(session.expires_at)),
            )

    def get_session(self, token: str) -> Session | None:
        with self.db.transaction() as conn:
            row = conn.execute("SELECT * FROM sessions WHERE token = ?", (token,)).fetchone()
        if row is None:
            return None
        return Session(token=row["token"], user_id=row["user_id"], expires_at=_from_text(row["expires_at"]))

    def delete_session(self, token: str) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM sessions WHERE token = ?", (token,))

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            email=row["email"],
            name=row["name"],
            password_hash=row["password_hash"],
            created_at=_from_text(row["created_at"]),
        )
