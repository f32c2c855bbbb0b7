from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from domain.errors import DuplicateUserError
from domain.models import Session, Transaction, TransactionType, User
from domain.schemas import TransactionFilters
from infrastructure.persistence.sqlite_store import SQLiteDatabase, SQLiteTransactionStore, SQLiteUserStore


def _txn(owner: str, day: int, amount: str = "10.00", txn_type=TransactionType.EXPENSE, category="Groceries") -> Transaction:
    return Transaction(
        id="",
        owner_id=owner,
        txn_type=txn_type,
        amount=Decimal(amount),
        category=category,
        occurred_at=datetime(2026, 1, day, 12, tzinfo=timezone.utc),
    )


class SQLiteTransactionStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = SQLiteDatabase(":memory:")
        self.store = SQLiteTransactionStore(self.db)

    def tearDown(self) -> None:
        self.db.close()

    def test_insert_assigns_id_and_round_trips_decimal(self) -> None:
        saved = self.store.insert(_txn("alice", 5, amount="1234.56"))

        loaded = self.store.get_for_owner("alice", saved.id)

        self.assertEqual(len(saved.id), 24)
        self.assertEqual(loaded.amount, Decimal("1234.56"))
        self.assertEqual(loaded.occurred_at, datetime(2026, 1, 5, 12, tzinfo=timezone.utc))

    def test_get_for_other_owner_returns_none(self) -> None:
        saved = self.store.insert(_txn("alice", 5))
        self.assertIsNone(self.store.get_for_owner("bob", saved.id))

    def test_list_filters_and_orders_newest_first(self) -> None:
        self.store.insert(_txn("alice", 3))
        self.store.insert(_txn("alice", 9))
        self.store.insert(_txn("alice", 20, txn_type=TransactionType.INCOME, category="Primary Income"))
        self.store.insert(_txn("bob", 4))

        rows = self.store.list_for_owner(
            "alice",
            TransactionFilters(start_date="2026-01-01", end_date="2026-01-15", type="expense"),
        )

        self.assertEqual([r.occurred_at.day for r in rows], [9, 3])

    def test_replace_and_delete_require_ownership(self) -> None:
        saved = self.store.insert(_txn("alice", 5))

        self.assertIsNone(self.store.replace_for_owner("bob", saved.copy(amount=Decimal("1"))))
        self.assertIsNone(self.store.delete_for_owner("bob", saved.id))

        replaced = self.store.replace_for_owner("alice", saved.copy(amount=Decimal("99")))
        self.assertEqual(replaced.amount, Decimal("99"))
        removed = self.store.delete_for_owner("alice", saved.id)
        self.assertEqual(removed.amount, Decimal("99"))
        self.assertEqual(self.store.list_for_owner("alice"), [])


class SQLiteUserStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = SQLiteDatabase(":memory:")
        self.users = SQLiteUserStore(self.db)

    def tearDown(self) -> None:
        self.db.close()

    def test_duplicate_email_rejected(self) -> None:
        self.users.add_user(User(id="u1", email="a@example.com", name="A", password_hash="x"))
        with self.assertRaises(DuplicateUserError):
            self.users.add_user(User(id="u2", email="a@example.com", name="B", password_hash="y"))

    def test_sessions_round_trip(self) -> None:
        self.users.add_user(User(id="u1", email="a@example.com", name="A", password_hash="x"))
        expires = datetime(2030, 1, 1, tzinfo=timezone.utc)
        self.users.save_session(Session(token="tok", user_id="u1", expires_at=expires))

        session = self.users.get_session("tok")
        self.assertEqual(session.user_id, "u1")
        self.assertEqual(session.expires_at, expires)
        self.assertFalse(session.is_expired(expires - timedelta(seconds=1)))

        self.users.delete_session("tok")
        self.assertIsNone(self.users.get_session("tok"))
        self.assertEqual(self.users.find_by_email("A@example.com ").id, "u1")


if __name__ == "__main__":
    unittest.main()
