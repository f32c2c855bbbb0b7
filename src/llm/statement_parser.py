from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

from pydantic import ValidationError

from domain.models import EXPENSE_CATEGORIES, FALLBACK_CATEGORY, INCOME_CATEGORIES, TransactionType, categories_for, utcnow
from domain.schemas import ExtractedTransaction, ExtractionResult, coerce_datetime
from infrastructure.llm.llm_client import LLMClient
from infrastructure.settings import Settings

logger = logging.getLogger(__name__)

DocumentKind = Literal["receipt", "bank_statement"]

# Lowercase keyword -> category, checked in order against descriptions.
KEYWORD_CATEGORIES: dict[str, list[str]] = {
    "Groceries": ["grocery", "supermarket", "mart", "bigbasket", "whole foods", "trader joe"],
    "Nutrition & Dining": ["restaurant", "cafe", "coffee", "swiggy", "zomato", "pizza", "starbucks"],
    "Mobility Services": ["uber", "ola", "lyft", "taxi", "metro", "fuel", "petrol"],
    "Utility Payments": ["electricity", "water bill", "gas bill", "utility"],
    "Network Services": ["internet", "broadband", "wifi"],
    "Communication": ["mobile", "recharge", "airtel", "jio", "verizon"],
    "Leisure Activities": ["netflix", "spotify", "cinema", "movie", "prime video"],
    "Medical Services": ["pharmacy", "hospital", "clinic", "medical"],
    "Accommodation": ["rent", "hotel", "airbnb"],
    "Retail Purchases": ["amazon", "flipkart", "store", "shop"],
    "Primary Income": ["salary", "payroll"],
    "Interest Yield": ["interest"],
    "Dividend Payment": ["dividend"],
}

_DATE = r"(?P<date>\d{4}-\d{2}-\d{2}|\d{4}/\d{2}/\d{2}|\d{1,2}/\d{1,2}/\d{4}|\d{1,2}-\d{1,2}-\d{4})"
_AMOUNT = r"(?P<sign>[-+])?\s*(?:rs\.?|inr|usd|[₹$])?\s*(?P<amount>\d[\d,]*(?:\.\d{1,2})?)"
_STATEMENT_LINE = re.compile(rf"^\s*{_DATE}\s+(?P<desc>.+?)\s+{_AMOUNT}\s*(?P<flag>CR|DR|Cr|Dr)?\s*$", re.IGNORECASE)
_TOTAL_LINE = re.compile(rf"\b(?:grand\s+total|total|amount\s+due|net\s+payable)\b[^\d₹$]*{_AMOUNT}", re.IGNORECASE)
_ANY_DATE = re.compile(_DATE)


def guess_category(description: str, txn_type: str) -> str:
    allowed = categories_for(txn_type)
    text = description.lower()
    for category, keywords in KEYWORD_CATEGORIES.items():
        if category in allowed and any(keyword in text for keyword in keywords):
            return category
    return FALLBACK_CATEGORY[TransactionType(txn_type)]


def normalize_category(row: ExtractedTransaction) -> ExtractedTransaction:
    if row.category and row.category in categories_for(row.type):
        return row
    return row.model_copy(update={"category": guess_category(row.description, row.type)})


@dataclass
class ParsedDocument:
    transactions: list[ExtractedTransaction] = field(default_factory=list)
    source: Literal["llm", "fallback"] = "fallback"


class StatementParser:
    """Extracts transactions from receipt / statement text, LLM first, regex second."""

    def __init__(self, llm_client: LLMClient | None = None):
        self._llm = llm_client or LLMClient.from_settings(Settings.from_env())

    def build_prompt(self, text: str, kind: DocumentKind, default_type: str) -> str:
        prompt_payload = {
            "task": f"Extract every transaction from this {kind.replace('_', ' ')}.",
            "default_type": default_type,
            "allowed_categories": {
                "income": list(INCOME_CATEGORIES),
                "expense": list(EXPENSE_CATEGORIES),
            },
            "output_contract": ExtractionResult.model_json_schema(),
            "rules": [
                "Return JSON only.",
                "Amounts are positive numbers; use type to mark income or expense.",
                "Dates use YYYY-MM-DD.",
                "A receipt yields a single expense for its total.",
            ],
            "document": text,
        }
        return json.dumps(prompt_payload, indent=2)

    def parse(self, text: str, kind: DocumentKind = "bank_statement", default_type: str = "expense") -> ParsedDocument:
        logger.info("StatementParser parse start kind=%s chars=%d", kind, len(text))
        raw = self._llm.complete(self.build_prompt(text, kind, default_type), json_mode=True).strip()

        if raw:
            try:
                parsed = ExtractionResult.model_validate_json(raw)
            except ValidationError:
                logger.info("StatementParser invalid LLM JSON; using fallback parser")
            else:
                if parsed.transactions:
                    rows = [normalize_category(self._clamp_date(row)) for row in parsed.transactions]
                    logger.info("StatementParser accepted LLM rows=%d", len(rows))
                    return ParsedDocument(transactions=rows, source="llm")
                logger.info("StatementParser LLM returned no rows; using fallback parser")
        else:
            logger.info("StatementParser empty LLM response; using fallback parser")

        if kind == "receipt":
            rows = self._fallback_receipt(text)
        else:
            rows = self._fallback_statement(text, default_type)
        logger.info("StatementParser fallback rows=%d", len(rows))
        return ParsedDocument(transactions=[normalize_category(row) for row in rows], source="fallback")

    def _fallback_statement(self, text: str, default_type: str) -> list[ExtractedTransaction]:
        rows: list[ExtractedTransaction] = []
        for line in text.splitlines():
            match = _STATEMENT_LINE.match(line)
            if not match:
                continue
            flag = (match.group("flag") or "").upper()
            sign = match.group("sign")
            if flag == "CR" or sign == "+":
                txn_type = "income"
            elif flag == "DR" or sign == "-":
                txn_type = "expense"
            else:
                txn_type = default_type
            try:
                row = ExtractedTransaction(
                    date=match.group("date"),
                    description=match.group("desc").strip(),
                    amount=match.group("amount"),
                    type=txn_type,
                )
            except ValidationError:
                continue
            rows.append(self._clamp_date(row))
        return rows

    def _fallback_receipt(self, text: str) -> list[ExtractedTransaction]:
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        totals = [m for m in (_TOTAL_LINE.search(line) for line in lines) if m]
        if not totals:
            return []
        date_match = _ANY_DATE.search(text)
        occurred = coerce_datetime(date_match.group("date")) if date_match else utcnow()
        if not isinstance(occurred, datetime):
            occurred = utcnow()
        merchant = lines[0] if lines else "Receipt"
        try:
            row = ExtractedTransaction(
                date=occurred,
                description=merchant[:500],
                amount=totals[-1].group("amount"),
                type="expense",
            )
        except ValidationError:
            return []
        return [self._clamp_date(row)]

    def _clamp_date(self, row: ExtractedTransaction) -> ExtractedTransaction:
        now = datetime.now(timezone.utc)
        if row.date > now:
            return row.model_copy(update={"date": now})
        return row
