from __future__ import annotations

import unittest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from pydantic import ValidationError

from domain.errors import TransactionValidationError
from domain.schemas import (
    ExtractedTransaction,
    RegisterRequest,
    TransactionFilters,
    TransactionPatch,
    TransactionPayload,
    check_transaction_rules,
    coerce_datetime,
    to_validation_error,
)


class TransactionPayloadTests(unittest.TestCase):
    def _payload(self, **overrides):
        data = {
            "amount": 500,
            "type": "expense",
            "category": "Groceries",
            "description": "  weekly shop  ",
            "date": "2026-01-05T10:30:00Z",
        }
        data.update(overrides)
        return data

    def test_valid_payload_is_normalized(self) -> None:
        payload = TransactionPayload.model_validate(self._payload())

        self.assertEqual(payload.amount, Decimal("500"))
        self.assertEqual(payload.description, "weekly shop")
        self.assertEqual(payload.date, datetime(2026, 1, 5, 10, 30, tzinfo=timezone.utc))

    def test_date_only_string_becomes_utc_midnight(self) -> None:
        payload = TransactionPayload.model_validate(self._payload(date="2026-01-05"))
        self.assertEqual(payload.date, datetime(2026, 1, 5, tzinfo=timezone.utc))

    def test_missing_description_defaults_to_empty(self) -> None:
        data = self._payload()
        del data["description"]
        self.assertEqual(TransactionPayload.model_validate(data).description, "")

    def test_rejects_non_positive_amount(self) -> None:
        with self.assertRaises(ValidationError):
            TransactionPayload.model_validate(self._payload(amount=0))
        with self.assertRaises(ValidationError):
            TransactionPayload.model_validate(self._payload(amount=-5))

    def test_amount_cap_left_to_service(self) -> None:
        payload = TransactionPayload.model_validate(self._payload(amount=10_000_001))
        self.assertEqual(payload.amount, Decimal("10000001"))

    def test_default_cap_applies_when_checked_directly(self) -> None:
        with self.assertRaises(TransactionValidationError):
            check_transaction_rules(
                "expense", Decimal("10000001"), "Groceries", "", datetime(2026, 1, 1, tzinfo=timezone.utc),
            )

    def test_rejects_category_from_other_type(self) -> None:
        with self.assertRaises(ValidationError):
            TransactionPayload.model_validate(self._payload(type="income", category="Groceries"))

    def test_rejects_unknown_type(self) -> None:
        with self.assertRaises(ValidationError):
            TransactionPayload.model_validate(self._payload(type="transfer"))

    def test_rejects_long_description(self) -> None:
        with self.assertRaises(ValidationError):
            TransactionPayload.model_validate(self._payload(description="x" * 501))

    def test_rejects_future_date(self) -> None:
        future = (datetime.now(timezone.utc) + timedelta(days=2)).isoformat()
        with self.assertRaises(ValidationError):
            TransactionPayload.model_validate(self._payload(date=future))

    def test_to_validation_error_lists_fields(self) -> None:
        try:
            TransactionPayload.model_validate({"type": "expense", "category": "Groceries"})
        except ValidationError as exc:
            error = to_validation_error(exc)
        else:
            self.fail("expected ValidationError")

        self.assertIsInstance(error, TransactionValidationError)
        self.assertIn("amount", error.fields)


class CheckTransactionRulesTests(unittest.TestCase):
    def test_collects_every_broken_rule(self) -> None:
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        with self.assertRaises(TransactionValidationError) as ctx:
            check_transaction_rules(
                "income",
                Decimal("0"),
                "Groceries",
                "",
                now + timedelta(days=1),
                now=now,
            )
        self.assertEqual(set(ctx.exception.fields), {"amount", "category", "date"})

    def test_respects_custom_maximum(self) -> None:
        with self.assertRaises(TransactionValidationError):
            check_transaction_rules(
                "expense", Decimal("101"), "Groceries", "", datetime(2026, 1, 1, tzinfo=timezone.utc),
                max_amount=Decimal("100"),
            )


class OtherSchemaTests(unittest.TestCase):
    def test_patch_reports_only_supplied_fields(self) -> None:
        patch = TransactionPatch.model_validate({"amount": "12.5", "description": None})
        self.assertEqual(patch.changes(), {"amount": Decimal("12.5")})

    def test_filters_accept_iso_timestamps_and_check_order(self) -> None:
        filters = TransactionFilters.model_validate({"start_date": "2026-01-01T00:00:00.000Z", "end_date": "2026-01-31"})
        self.assertEqual(filters.start_date, date(2026, 1, 1))
        with self.assertRaises(ValidationError):
            TransactionFilters.model_validate({"start_date": "2026-02-01", "end_date": "2026-01-01"})

    def test_register_request_normalizes_email(self) -> None:
        request = RegisterRequest(name="Asha", email="  Asha@Example.COM ", password="secret1")
        self.assertEqual(request.email, "asha@example.com")
        with self.assertRaises(ValidationError):
            RegisterRequest(name="Asha", email="not-an-email", password="secret1")

    def test_extracted_transaction_cleans_amount(self) -> None:
        row = ExtractedTransaction(date="01/05/2026", amount="-$1,250.00", description="Rent")
        self.assertEqual(row.amount, Decimal("1250.00"))
        self.assertEqual(row.date.date(), date(2026, 1, 5))

    def test_coerce_datetime_leaves_garbage_untouched(self) -> None:
        self.assertEqual(coerce_datetime("yesterday"), "yesterday")


if __name__ == "__main__":
    unittest.main()
