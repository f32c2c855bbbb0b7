from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from application.analytics import summarize_transactions
from domain.models import TransactionType, utcnow
from domain.schemas import TransactionPayload, TransactionSummary, coerce_datetime


class OptimisticStateError(RuntimeError):
    """A temp id was added twice, or retired when it was not pending."""


@dataclass
class TransactionRecord:
    """Client-side view of a transaction, confirmed or provisional."""

    id: str
    txn_type: TransactionType
    amount: Decimal
    category: str
    occurred_at: datetime
    description: str = ""
    is_optimistic: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "TransactionRecord":
        occurred_at = coerce_datetime(data["date"])
        if not isinstance(occurred_at, datetime):
            raise ValueError(f"Unparseable transaction date: {data['date']!r}")
        return cls(
            id=str(data.get("_id") or data["id"]),
            txn_type=TransactionType(data["type"]),
            amount=Decimal(str(data["amount"])),
            category=str(data["category"]),
            occurred_at=occurred_at,
            description=str(data.get("description") or ""),
        )

    @classmethod
    def provisional(cls, temp_id: str, payload: TransactionPayload) -> "TransactionRecord":
        return cls(
            id=temp_id,
            txn_type=TransactionType(payload.type),
            amount=payload.amount,
            category=payload.category,
            occurred_at=payload.date,
            description=payload.description,
            is_optimistic=True,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "_id": self.id,
            "type": self.txn_type.value,
            "amount": float(self.amount),
            "category": self.category,
            "description": self.description,
            "date": self.occurred_at.isoformat(),
            "isOptimistic": self.is_optimistic,
        }


@dataclass
class PendingOperation:
    temp_id: str
    record: TransactionRecord
    payload: dict[str, Any]
    submitted_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class Notification:
    message: str
    severity: Literal["info", "success", "error"] = "info"
    created_at: datetime = field(default_factory=utcnow)


class TransactionState:
    """
    Confirmed transactions plus the provisional ones still waiting on the server.

    Confirmed records are kept newest first. Pending records live in a mapping
    keyed by temp id, in submission order, and leave it exactly once: through
    confirm_optimistic or revert_optimistic. The merged view is always
    confirmed followed by pending.
    """

    def __init__(self, confirmed: list[TransactionRecord] | None = None):
        self._confirmed: list[TransactionRecord] = []
        self._pending: dict[str, PendingOperation] = {}
        self._notifications: list[Notification] = []
        self.last_error: str | None = None
        self._lock = threading.RLock()
        if confirmed:
            self.replace_confirmed(confirmed)

    @property
    def confirmed(self) -> list[TransactionRecord]:
        with self._lock:
            return list(self._confirmed)

    @property
    def optimistic(self) -> dict[str, TransactionRecord]:
        with self._lock:
            return {temp_id: op.record for temp_id, op in self._pending.items()}

    @property
    def notifications(self) -> list[Notification]:
        with self._lock:
            return list(self._notifications)

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return bool(self._pending)

    def is_pending(self, temp_id: str) -> bool:
        with self._lock:
            return temp_id in self._pending

    def add_optimistic(self, operation: PendingOperation) -> None:
        with self._lock:
            if operation.temp_id in self._pending:
                raise OptimisticStateError(f"Temp id already pending: {operation.temp_id}")
            self._pending[operation.temp_id] = operation

    def confirm_optimistic(self, temp_id: str, record: TransactionRecord) -> TransactionRecord:
        with self._lock:
            self._retire(temp_id)
            confirmed = replace(record, is_optimistic=False)
            self._upsert(confirmed)
            return confirmed

    def revert_optimistic(self, temp_id: str, error: str | None = None) -> PendingOperation:
        with self._lock:
            operation = self._retire(temp_id)
            if error:
                self.last_error = error
            return operation

    def replace_confirmed(self, records: list[TransactionRecord]) -> None:
        with self._lock:
            self._confirmed = sorted(
                (replace(r, is_optimistic=False) for r in records),
                key=lambda r: r.occurred_at,
                reverse=True,
            )

    def upsert_confirmed(self, record: TransactionRecord) -> None:
        with self._lock:
            self._upsert(replace(record, is_optimistic=False))

    def remove_confirmed(self, txn_id: str) -> bool:
        with self._lock:
            before = len(self._confirmed)
            self._confirmed = [r for r in self._confirmed if r.id != txn_id]
            return len(self._confirmed) != before

    def merged_view(self) -> list[TransactionRecord]:
        with self._lock:
            return list(self._confirmed) + [op.record for op in self._pending.values()]

    def summary(self) -> TransactionSummary:
        return summarize_transactions(self.merged_view())

    def notify(self, message: str, severity: Literal["info", "success", "error"] = "info") -> Notification:
        notification = Notification(message=message, severity=severity)
        with self._lock:
            self._notifications.append(notification)
            if severity == "error":
                self.last_error = message
        return notification

    def _retire(self, temp_id: str) -> PendingOperation:
        try:
            return self._pending.pop(temp_id)
        except KeyError:
            raise OptimisticStateError(f"Temp id is not pending: {temp_id}") from None

    def _upsert(self, record: TransactionRecord) -> None:
        for i, existing in enumerate(self._confirmed):
            if existing.id == record.id:
                self._confirmed[i] = record
                return
        self._confirmed.append(record)
        self._confirmed.sort(key=lambda r: r.occurred_at, reverse=True)
