from __future__ import annotations

import logging
import time
from datetime import timezone
from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from application.analytics import summarize_transactions
from domain.errors import TransactionNotFoundError
from domain.models import MAX_TRANSACTION_AMOUNT, Transaction, TransactionType, utcnow
from domain.schemas import (
    TransactionFilters,
    TransactionPatch,
    TransactionPayload,
    TransactionSummary,
    check_transaction_rules,
    to_validation_error,
)
from infrastructure.persistence.store import TransactionStore

logger = logging.getLogger(__name__)


class TransactionService:
    """Owner-scoped create/list/update/delete over a TransactionStore."""

    def __init__(self, store: TransactionStore, max_amount: Decimal = MAX_TRANSACTION_AMOUNT):
        self._store = store
        self._max_amount = max_amount

    def create(self, owner_id: str, data: TransactionPayload | dict[str, Any]) -> Transaction:
        payload = self._parse_payload(data)
        check_transaction_rules(
            payload.type, payload.amount, payload.category, payload.description, payload.date,
            max_amount=self._max_amount,
        )
        now = utcnow()
        txn = Transaction(
            id="",
            owner_id=owner_id,
            txn_type=TransactionType(payload.type),
            amount=payload.amount,
            category=payload.category,
            description=payload.description,
            occurred_at=payload.date.astimezone(timezone.utc),
            created_at=now,
            updated_at=now,
        )
        t = time.perf_counter()
        saved = self._store.insert(txn)
        logger.info(
            "TransactionService created id=%s owner=%s type=%s in %.3fs",
            saved.id, owner_id, saved.txn_type.value, time.perf_counter() - t,
        )
        return saved

    def list(self, owner_id: str, filters: TransactionFilters | dict[str, Any] | None = None) -> list[Transaction]:
        query = self._parse_filters(filters)
        rows = self._store.list_for_owner(owner_id, query)
        logger.info("TransactionService listed owner=%s count=%d", owner_id, len(rows))
        return rows

    def get(self, owner_id: str, txn_id: str) -> Transaction:
        txn = self._store.get_for_owner(owner_id, txn_id)
        if txn is None:
            raise TransactionNotFoundError(f"Transaction not found: {txn_id}")
        return txn

    def update(self, owner_id: str, txn_id: str, patch: TransactionPatch | dict[str, Any]) -> Transaction:
        if not isinstance(patch, TransactionPatch):
            try:
                patch = TransactionPatch.model_validate(patch)
            except ValidationError as exc:
                raise to_validation_error(exc) from exc

        current = self.get(owner_id, txn_id)
        changes = patch.changes()
        merged = current.copy(
            txn_type=TransactionType(changes.get("type", current.txn_type)),
            amount=changes.get("amount", current.amount),
            category=changes.get("category", current.category),
            description=changes.get("description", current.description),
            occurred_at=changes.get("date", current.occurred_at).astimezone(timezone.utc),
            updated_at=utcnow(),
        )
        check_transaction_rules(
            merged.txn_type, merged.amount, merged.category, merged.description, merged.occurred_at,
            max_amount=self._max_amount,
        )

        saved = self._store.replace_for_owner(owner_id, merged)
        if saved is None:
            raise TransactionNotFoundError(f"Transaction not found: {txn_id}")
        logger.info("TransactionService updated id=%s owner=%s fields=%s", txn_id, owner_id, sorted(changes))
        return saved

    def delete(self, owner_id: str, txn_id: str) -> Transaction:
        removed = self._store.delete_for_owner(owner_id, txn_id)
        if removed is None:
            raise TransactionNotFoundError(f"Transaction not found: {txn_id}")
        logger.info("TransactionService deleted id=%s owner=%s", txn_id, owner_id)
        return removed

    def summary(self, owner_id: str, filters: TransactionFilters | dict[str, Any] | None = None) -> TransactionSummary:
        query = self._parse_filters(filters)
        rows = self._store.list_for_owner(owner_id, query)
        start = query.start_date if query else None
        end = query.end_date if query else None
        return summarize_transactions(rows, start=start, end=end)

    def _parse_payload(self, data: TransactionPayload | dict[str, Any]) -> TransactionPayload:
        if isinstance(data, TransactionPayload):
            return data
        try:
            return TransactionPayload.model_validate(data)
        except ValidationError as exc:
            raise to_validation_error(exc) from exc

    def _parse_filters(self, filters: TransactionFilters | dict[str, Any] | None) -> TransactionFilters | None:
        if filters is None or isinstance(filters, TransactionFilters):
            return filters
        try:
            return TransactionFilters.model_validate(filters)
        except ValidationError as exc:
            raise to_validation_error(exc) from exc
