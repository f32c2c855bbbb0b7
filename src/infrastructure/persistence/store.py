from __future__ import annotations

import uuid
from abc import ABC, abstractmethod

from domain.models import Session, Transaction, User
from domain.schemas import TransactionFilters


def new_object_id() -> str:
    return uuid.uuid4().hex[:24]


def newest_first(transactions: list[Transaction]) -> list[Transaction]:
    return sorted(transactions, key=lambda t: (t.occurred_at, t.created_at), reverse=True)


class TransactionStore(ABC):
    """
    Persistence contract for transactions.

    Every read and write is keyed by owner: a record that exists but belongs
    to someone else is reported exactly like a missing one. Each call is
    atomic for the document it touches; nothing spans calls.
    """

    name: str = "store"

    @abstractmethod
    def insert(self, txn: Transaction) -> Transaction:
        """Persist a new transaction, assigning its id when empty."""
        raise NotImplementedError

    @abstractmethod
    def list_for_owner(self, owner_id: str, filters: TransactionFilters | None = None) -> list[Transaction]:
        """Owner's transactions matching filters, newest first."""
        raise NotImplementedError

    @abstractmethod
    def get_for_owner(self, owner_id: str, txn_id: str) -> Transaction | None:
        raise NotImplementedError

    @abstractmethod
    def replace_for_owner(self, owner_id: str, txn: Transaction) -> Transaction | None:
        """Overwrite an owned record; None when it is gone or owned by someone else."""
        raise NotImplementedError

    @abstractmethod
    def delete_for_owner(self, owner_id: str, txn_id: str) -> Transaction | None:
        """Remove an owned record and return it; None when nothing matched."""
        raise NotImplementedError


class UserStore(ABC):
    @abstractmethod
    def add_user(self, user: User) -> User:
        """Raises DuplicateUserError when the email is taken."""
        raise NotImplementedError

    @abstractmethod
    def get_user(self, user_id: str) -> User | None:
        raise NotImplementedError

    @abstractmethod
    def find_by_email(self, email: str) -> User | None:
        raise NotImplementedError

    @abstractmethod
    def save_session(self, session: Session) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_session(self, token: str) -> Session | None:
        raise NotImplementedError

    @abstractmethod
    def delete_session(self, token: str) -> None:
        raise NotImplementedError
