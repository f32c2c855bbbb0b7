from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

MAX_TRANSACTION_AMOUNT = Decimal("10000000")
MAX_DESCRIPTION_LENGTH = 500


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


INCOME_CATEGORIES: tuple[str, ...] = (
    "Primary Income",
    "Contract Work",
    "Investment Returns",
    "Property Revenue",
    "Business Profit",
    "Monetary Gift",
    "Performance Bonus",
    "Interest Yield",
    "Dividend Payment",
    "Misc Income",
)

EXPENSE_CATEGORIES: tuple[str, ...] = (
    "Nutrition & Dining",
    "Groceries",
    "Mobility Services",
    "Retail Purchases",
    "Leisure Activities",
    "Utility Payments",
    "Medical Services",
    "Learning & Development",
    "Journey Expenses",
    "Accommodation",
    "Protection Plans",
    "Supply Procurement",
    "Energy Costs",
    "Network Services",
    "Communication",
    "Wardrobe",
    "Personal Maintenance",
    "Other Expenses",
)

FALLBACK_CATEGORY = {
    TransactionType.INCOME: "Misc Income",
    TransactionType.EXPENSE: "Other Expenses",
}


def categories_for(txn_type: TransactionType | str) -> tuple[str, ...]:
    if TransactionType(txn_type) == TransactionType.INCOME:
        return INCOME_CATEGORIES
    return EXPENSE_CATEGORIES


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Transaction:
    id: str
    owner_id: str
    txn_type: TransactionType
    amount: Decimal
    category: str
    occurred_at: datetime
    description: str = ""
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.txn_type == TransactionType.INCOME else -self.amount

    def copy(self, **changes: Any) -> "Transaction":
        return replace(self, **changes)


@dataclass
class User:
    id: str
    email: str
    name: str
    password_hash: str
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Session:
    token: str
    user_id: str
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) >= self.expires_at
