from __future__ import annotations

import unittest
from datetime import date, datetime, timezone
from decimal import Decimal

from application.transactions import TransactionService
from domain.errors import TransactionNotFoundError, TransactionValidationError
from domain.models import TransactionType
from infrastructure.persistence.memory_store import InMemoryTransactionStore


def _payload(amount="500", txn_type="expense", category="Groceries", day="2026-01-05", description=""):
    return {
        "amount": amount,
        "type": txn_type,
        "category": category,
        "description": description,
        "date": day,
    }


class TransactionServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryTransactionStore()
        self.service = TransactionService(self.store)

    def test_create_assigns_id_and_owner(self) -> None:
        txn = self.service.create("alice", _payload(description="weekly shop"))

        self.assertTrue(txn.id)
        self.assertEqual(txn.owner_id, "alice")
        self.assertEqual(txn.txn_type, TransactionType.EXPENSE)
        self.assertEqual(txn.amount, Decimal("500"))
        self.assertEqual(txn.occurred_at, datetime(2026, 1, 5, tzinfo=timezone.utc))

    def test_create_rejects_invalid_payload_without_persisting(self) -> None:
        with self.assertRaises(TransactionValidationError) as ctx:
            self.service.create("alice", _payload(category="Primary Income"))

        self.assertIn("category", str(ctx.exception))
        self.assertEqual(self.service.list("alice"), [])

    def test_create_honors_configured_maximum(self) -> None:
        service = TransactionService(self.store, max_amount=Decimal("1000"))
        with self.assertRaises(TransactionValidationError):
            service.create("alice", _payload(amount="1500"))

    def test_create_allows_amount_under_raised_maximum(self) -> None:
        service = TransactionService(self.store, max_amount=Decimal("50000000"))
        txn = service.create("alice", _payload(amount="20000000"))
        self.assertEqual(txn.amount, Decimal("20000000"))

    def test_list_is_owner_scoped_and_newest_first(self) -> None:
        self.service.create("alice", _payload(day="2026-01-03"))
        self.service.create("alice", _payload(day="2026-01-07"))
        self.service.create("bob", _payload(day="2026-01-05"))

        rows = self.service.list("alice")

        self.assertEqual([r.occurred_at.date() for r in rows], [date(2026, 1, 7), date(2026, 1, 3)])
        self.assertTrue(all(r.owner_id == "alice" for r in rows))

    def test_list_applies_date_and_type_filters(self) -> None:
        self.service.create("alice", _payload(day="2026-01-03"))
        self.service.create("alice", _payload(day="2026-02-03"))
        self.service.create("alice", _payload(txn_type="income", category="Primary Income", day="2026-01-10"))

        january = self.service.list("alice", {"start_date": "2026-01-01", "end_date": "2026-01-31"})
        incomes = self.service.list("alice", {"type": "income"})

        self.assertEqual(len(january), 2)
        self.assertEqual([r.category for r in incomes], ["Primary Income"])

    def test_invalid_filters_raise_validation_error(self) -> None:
        with self.assertRaises(TransactionValidationError):
            self.service.list("alice", {"start_date": "2026-02-01", "end_date": "2026-01-01"})

    def test_update_merges_patch(self) -> None:
        txn = self.service.create("alice", _payload())

        updated = self.service.update("alice", txn.id, {"amount": "650.25", "description": "bulk"})

        self.assertEqual(updated.amount, Decimal("650.25"))
        self.assertEqual(updated.description, "bulk")
        self.assertEqual(updated.category, "Groceries")
        self.assertEqual(self.service.get("alice", txn.id).amount, Decimal("650.25"))

    def test_update_revalidates_merged_record(self) -> None:
        txn = self.service.create("alice", _payload())

        with self.assertRaises(TransactionValidationError):
            self.service.update("alice", txn.id, {"type": "income"})

        self.assertEqual(self.service.get("alice", txn.id).txn_type, TransactionType.EXPENSE)

    def test_update_of_foreign_transaction_is_not_found(self) -> None:
        txn = self.service.create("alice", _payload())
        before = self.service.list("alice")

        with self.assertRaises(TransactionNotFoundError):
            self.service.update("bob", txn.id, {"amount": "1"})

        self.assertEqual(self.service.list("alice"), before)

    def test_delete_is_owner_scoped(self) -> None:
        txn = self.service.create("alice", _payload())

        with self.assertRaises(TransactionNotFoundError):
            self.service.delete("bob", txn.id)
        self.service.delete("alice", txn.id)
        with self.assertRaises(TransactionNotFoundError):
            self.service.get("alice", txn.id)

    def test_summary_uses_filtered_rows(self) -> None:
        self.service.create("alice", _payload(amount="200", day="2026-01-02"))
        self.service.create("alice", _payload(txn_type="income", category="Primary Income", amount="1000", day="2026-01-02"))
        self.service.create("alice", _payload(amount="999", day="2025-12-31"))

        summary = self.service.summary("alice", {"start_date": "2026-01-01", "end_date": "2026-01-02"})

        self.assertEqual(summary.total_income, 1000.0)
        self.assertEqual(summary.total_expenses, 200.0)
        self.assertEqual(summary.balance, 800.0)
        self.assertEqual(len(summary.daily), 2)


if __name__ == "__main__":
    unittest.main()
