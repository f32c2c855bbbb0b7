from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from domain.errors import TransactionValidationError
from domain.models import (
    MAX_DESCRIPTION_LENGTH,
    MAX_TRANSACTION_AMOUNT,
    Transaction,
    TransactionType,
    categories_for,
    utcnow,
)

FUTURE_DATE_TOLERANCE = timedelta(minutes=5)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y", "%m-%d-%Y")


def coerce_datetime(value: Any) -> Any:
    """Accept date-only strings and naive datetimes; everything ends up UTC-aware."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if not isinstance(value, str):
        return value

    text = value.strip()
    if not text:
        return value
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return value
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def check_transaction_rules(
    txn_type: TransactionType | str,
    amount: Decimal,
    category: str,
    description: str,
    occurred_at: datetime,
    max_amount: Decimal | None = MAX_TRANSACTION_AMOUNT,
    now: datetime | None = None,
) -> None:
    """Raise TransactionValidationError listing every broken field rule. max_amount=None skips the cap."""
    fields: dict[str, str] = {}

    if amount is None or amount <= 0:
        fields["amount"] = "Amount must be greater than zero"
    elif max_amount is not None and amount > max_amount:
        fields["amount"] = f"Amount exceeds maximum of {max_amount}"

    if not category:
        fields["category"] = "Category is required"
    elif category not in categories_for(txn_type):
        fields["category"] = f"Category {category!r} is not valid for {TransactionType(txn_type).value}"

    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        fields["description"] = f"Description exceeds {MAX_DESCRIPTION_LENGTH} characters"

    if occurred_at > (now or utcnow()) + FUTURE_DATE_TOLERANCE:
        fields["date"] = "Date cannot be in the future"

    if fields:
        message = "; ".join(f"{name}: {reason}" for name, reason in fields.items())
        raise TransactionValidationError(message, fields)


class TransactionPayload(BaseModel):
    """Body of a create request."""

    model_config = ConfigDict(extra="ignore")

    amount: Decimal
    type: Literal["income", "expense"]
    category: str
    description: str = ""
    date: datetime = Field(default_factory=utcnow)

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, value: Any) -> Any:
        return coerce_datetime(value)

    @field_validator("category", "description", mode="before")
    @classmethod
    def strip_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        return value.strip() if isinstance(value, str) else value

    @model_validator(mode="after")
    def validate_rules(self) -> "TransactionPayload":
        # Amount cap is applied by TransactionService with its configured limit.
        check_transaction_rules(self.type, self.amount, self.category, self.description, self.date, max_amount=None)
        return self


class TransactionPatch(BaseModel):
    """Body of an update request; every field is optional."""

    model_config = ConfigDict(extra="ignore")

    amount: Optional[Decimal] = None
    type: Optional[Literal["income", "expense"]] = None
    category: Optional[str] = None
    description: Optional[str] = None
    date: Optional[datetime] = None

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, value: Any) -> Any:
        return coerce_datetime(value)

    @field_validator("category", "description", mode="before")
    @classmethod
    def strip_text(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class TransactionFilters(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    type: Optional[Literal["income", "expense"]] = None
    category: Optional[str] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def coerce_day(cls, value: Any) -> Any:
        coerced = coerce_datetime(value)
        return coerced.date() if isinstance(coerced, datetime) else coerced

    @model_validator(mode="after")
    def validate_order(self) -> "TransactionFilters":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be <= end_date")
        return self

    def matches(self, txn: Transaction) -> bool:
        day = txn.occurred_at.date()
        if self.start_date and day < self.start_date:
            return False
        if self.end_date and day > self.end_date:
            return False
        if self.type and txn.txn_type.value != self.type:
            return False
        if self.category and txn.category != self.category:
            return False
        return True


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str
    password: str = Field(min_length=6)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not _EMAIL_RE.match(value):
            raise ValueError("email is not a valid address")
        return value


class LoginRequest(BaseModel):
    email: str
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class StatementUpload(BaseModel):
    text: str = Field(min_length=1, description="Text of a receipt or bank statement, typed in or extracted from an uploaded file.")
    default_type: Literal["income", "expense"] = "expense"
    save: bool = False
    filename: Optional[str] = None


class ExtractedTransaction(BaseModel):
    date: datetime
    description: str = ""
    amount: Decimal = Field(gt=0)
    type: Literal["income", "expense"] = "expense"
    category: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, value: Any) -> Any:
        return coerce_datetime(value)

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, value: Any) -> Any:
        if isinstance(value, str):
            cleaned = value.replace(",", "").replace("$", "").replace("₹", "").strip()
            return cleaned.lstrip("-")
        if isinstance(value, (int, float)):
            return abs(value)
        return value


class ExtractionResult(BaseModel):
    transactions: List[ExtractedTransaction] = Field(default_factory=list)


class CategoryTotal(BaseModel):
    name: str
    value: float


class DailyPoint(BaseModel):
    date: date
    income: float = 0.0
    expenses: float = 0.0
    net: float = 0.0


class TransactionSummary(BaseModel):
    total_income: float = 0.0
    total_expenses: float = 0.0
    balance: float = 0.0
    savings: float = 0.0
    savings_rate: float = 0.0
    transaction_count: int = 0
    highest_income: float = 0.0
    highest_expense: float = 0.0
    average_expense: float = 0.0
    average_daily_spending: float = 0.0
    expenses_by_category: List[CategoryTotal] = Field(default_factory=list)
    daily: List[DailyPoint] = Field(default_factory=list)


def serialize_transaction(txn: Transaction) -> dict[str, Any]:
    return {
        "_id": txn.id,
        "id": txn.id,
        "user": txn.owner_id,
        "type": txn.txn_type.value,
        "amount": float(txn.amount),
        "category": txn.category,
        "description": txn.description,
        "date": txn.occurred_at.isoformat(),
        "createdAt": txn.created_at.isoformat(),
        "updatedAt": txn.updated_at.isoformat(),
    }


def to_validation_error(exc: ValidationError) -> TransactionValidationError:
    """Flatten a pydantic ValidationError into field -> message."""
    fields: dict[str, str] = {}
    for err in exc.errors():
        name = ".".join(str(p) for p in err["loc"] if p != "body") or "body"
        fields[name] = str(err["msg"]).removeprefix("Value error, ")
    message = "; ".join(f"{name}: {reason}" for name, reason in fields.items())
    return TransactionValidationError(message, fields)
