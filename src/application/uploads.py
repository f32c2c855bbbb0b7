from __future__ import annotations

import logging
from typing import Any

from application.transactions import TransactionService
from domain.errors import TransactionValidationError
from domain.schemas import StatementUpload, serialize_transaction
from llm.statement_parser import DocumentKind, StatementParser

logger = logging.getLogger(__name__)


class UploadService:
    """Turns uploaded receipt / statement text into (optionally saved) transactions."""

    def __init__(self, parser: StatementParser, transactions: TransactionService):
        self._parser = parser
        self._transactions = transactions

    def process(self, owner_id: str, upload: StatementUpload, kind: DocumentKind) -> dict[str, Any]:
        parsed = self._parser.parse(upload.text, kind=kind, default_type=upload.default_type)
        extracted = [row.model_dump(mode="json") for row in parsed.transactions]

        saved: list[dict[str, Any]] = []
        rejected: list[dict[str, Any]] = []
        if upload.save:
            for row in parsed.transactions:
                payload = {
                    "amount": row.amount,
                    "type": row.type,
                    "category": row.category,
                    "description": row.description,
                    "date": row.date,
                }
                try:
                    saved.append(serialize_transaction(self._transactions.create(owner_id, payload)))
                except TransactionValidationError as exc:
                    rejected.append({"row": row.model_dump(mode="json"), "error": str(exc)})

        logger.info(
            "UploadService processed kind=%s owner=%s file=%s source=%s extracted=%d saved=%d rejected=%d",
            kind, owner_id, upload.filename, parsed.source, len(extracted), len(saved), len(rejected),
        )
        return {
            "filename": upload.filename,
            "extracted": extracted,
            "saved": saved,
            "rejected": rejected,
            "source": parsed.source,
        }
