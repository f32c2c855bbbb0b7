from __future__ import annotations

import logging
from dataclasses import dataclass

from application.auth import AuthService
from application.transactions import TransactionService
from application.uploads import UploadService
from infrastructure.llm.llm_client import LLMClient
from infrastructure.persistence.memory_store import InMemoryTransactionStore, InMemoryUserStore
from infrastructure.persistence.sqlite_store import SQLiteDatabase, SQLiteTransactionStore, SQLiteUserStore
from infrastructure.settings import Settings
from llm.statement_parser import StatementParser

logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """Everything a request handler needs, wired once and passed in explicitly."""

    settings: Settings
    transactions: TransactionService
    auth: AuthService
    uploads: UploadService


def build_container(settings: Settings | None = None, llm_client: LLMClient | None = None) -> AppContainer:
    settings = settings or Settings.from_env()

    if settings.store_backend == "sqlite":
        db = SQLiteDatabase(settings.database_path)
        transaction_store = SQLiteTransactionStore(db)
        user_store = SQLiteUserStore(db)
    elif settings.store_backend == "memory":
        transaction_store = InMemoryTransactionStore()
        user_store = InMemoryUserStore()
    else:
        raise ValueError(f"Unknown STORE_BACKEND: {settings.store_backend!r}")
    logger.info("Container built store=%s", transaction_store.name)

    transactions = TransactionService(transaction_store, max_amount=settings.max_transaction_amount)
    parser = StatementParser(llm_client or LLMClient.from_settings(settings))
    return AppContainer(
        settings=settings,
        transactions=transactions,
        auth=AuthService(user_store, token_ttl_seconds=settings.token_ttl_seconds),
        uploads=UploadService(parser, transactions),
    )
