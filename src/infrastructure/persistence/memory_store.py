from __future__ import annotations

import threading

from domain.errors import DuplicateUserError
from domain.models import Session, Transaction, User
from domain.schemas import TransactionFilters
from infrastructure.persistence.store import TransactionStore, UserStore, new_object_id, newest_first


class InMemoryTransactionStore(TransactionStore):
    name = "memory"

    def __init__(self) -> None:
        self._docs: dict[str, Transaction] = {}
        self._lock = threading.Lock()

    def insert(self, txn: Transaction) -> Transaction:
        with self._lock:
            if not txn.id:
                txn = txn.copy(id=new_object_id())
            self._docs[txn.id] = txn
            return txn.copy()

    def list_for_owner(self, owner_id: str, filters: TransactionFilters | None = None) -> list[Transaction]:
        with self._lock:
            owned = [
                t.copy() for t in self._docs.values()
                if t.owner_id == owner_id and (filters is None or filters.matches(t))
            ]
        return newest_first(owned)

    def get_for_owner(self, owner_id: str, txn_id: str) -> Transaction | None:
        with self._lock:
            txn = self._docs.get(txn_id)
            if txn is None or txn.owner_id != owner_id:
                return None
            return txn.copy()

    def replace_for_owner(self, owner_id: str, txn: Transaction) -> Transaction | None:
        with self._lock:
            current = self._docs.get(txn.id)
            if current is None or current.owner_id != owner_id:
                return None
            self._docs[txn.id] = txn.copy(owner_id=owner_id)
            return self._docs[txn.id].copy()

    def delete_for_owner(self, owner_id: str, txn_id: str) -> Transaction | None:
        with self._lock:
            current = self._docs.get(txn_id)
            if current is None or current.owner_id != owner_id:
                return None
            return self._docs.pop(txn_id)


class InMemoryUserStore(UserStore):
    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def add_user(self, user: User) -> User:
        with self._lock:
            if any(u.email == user.email for u in self._users.values()):
                raise DuplicateUserError(f"User already exists: {user.email}")
            self._users[user.id] = user
            return user

    def get_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def find_by_email(self, email: str) -> User | None:
        email = email.strip().lower()
        return next((u for u in self._users.values() if u.email == email), None)

    def save_session(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.token] = session

    def get_session(self, token: str) -> Session | None:
        return self._sessions.get(token)

    def delete_session(self, token: str) -> None:
        with self._lock:
            self._sessions.pop(token, None)
