from __future__ import annotations

import logging
import uuid
from typing import Any, Callable

from pydantic import ValidationError

from client.api_client import ApiError, TransactionApiClient
from client.state import PendingOperation, TransactionRecord, TransactionState
from domain.schemas import TransactionPatch, TransactionPayload, to_validation_error

logger = logging.getLogger(__name__)


def new_temp_id() -> str:
    return f"temp_{uuid.uuid4().hex}"


class OptimisticCoordinator:
    """
    Makes creates visible before the server answers.

    submit() runs the whole flow. begin/confirm/revert are the same flow split
    into phases so callers with several requests in flight can drive each one
    independently; every temp id handed out by begin must be passed to exactly
    one of confirm or revert.
    """

    def __init__(
        self,
        api: TransactionApiClient,
        state: TransactionState,
        id_factory: Callable[[], str] = new_temp_id,
    ):
        self._api = api
        self._state = state
        self._id_factory = id_factory

    @property
    def state(self) -> TransactionState:
        return self._state

    def begin(self, data: TransactionPayload | dict[str, Any]) -> PendingOperation:
        payload = self._validate(data)
        temp_id = self._id_factory()
        operation = PendingOperation(
            temp_id=temp_id,
            record=TransactionRecord.provisional(temp_id, payload),
            payload={
                "amount": float(payload.amount),
                "type": payload.type,
                "category": payload.category,
                "description": payload.description,
                "date": payload.date.isoformat(),
            },
        )
        self._state.add_optimistic(operation)
        self._state.notify("Transaction saving...", "info")
        logger.info("Optimistic add temp_id=%s type=%s amount=%s", temp_id, payload.type, payload.amount)
        return operation

    def confirm(self, temp_id: str, server_data: TransactionRecord | dict[str, Any]) -> TransactionRecord:
        record = server_data if isinstance(server_data, TransactionRecord) else TransactionRecord.from_api(server_data)
        confirmed = self._state.confirm_optimistic(temp_id, record)
        self._state.notify("Transaction saved", "success")
        logger.info("Optimistic confirm temp_id=%s id=%s", temp_id, confirmed.id)
        return confirmed

    def revert(self, temp_id: str, error: Exception | str) -> PendingOperation:
        message = str(error) or error.__class__.__name__
        operation = self._state.revert_optimistic(temp_id, message)
        self._state.notify(f"Transaction could not be saved: {message}", "error")
        logger.warning("Optimistic revert temp_id=%s error=%s", temp_id, message)
        return operation

    def submit(self, data: TransactionPayload | dict[str, Any]) -> TransactionRecord:
        """Create a transaction optimistically. Raises ApiError after reverting on failure."""
        operation = self.begin(data)
        try:
            created = self._api.create(operation.payload)
            record = TransactionRecord.from_api(created)
        except ApiError as exc:
            self.revert(operation.temp_id, exc)
            raise
        except (KeyError, TypeError, ValueError) as exc:
            self.revert(operation.temp_id, f"Malformed server response: {exc}")
            raise ApiError(502, f"Malformed server response: {exc}") from exc
        except Exception as exc:
            self.revert(operation.temp_id, f"Network error: {exc!r}")
            raise ApiError(0, f"Network error: {exc!r}") from exc
        return self.confirm(operation.temp_id, record)

    def refresh(self, filters: dict[str, Any] | None = None) -> list[TransactionRecord]:
        try:
            rows = self._api.list(filters)
        except ApiError as exc:
            self._state.notify(f"Could not load transactions: {exc}", "error")
            raise
        records = [TransactionRecord.from_api(row) for row in rows]
        self._state.replace_confirmed(records)
        logger.info("Refreshed confirmed transactions count=%d", len(records))
        return self._state.confirmed

    def update(self, txn_id: str, patch: TransactionPatch | dict[str, Any]) -> TransactionRecord:
        if not isinstance(patch, TransactionPatch):
            try:
                patch = TransactionPatch.model_validate(patch)
            except ValidationError as exc:
                raise to_validation_error(exc) from exc
        try:
            updated = self._api.update(txn_id, patch.model_dump(mode="json", exclude_unset=True, exclude_none=True))
        except ApiError as exc:
            self._state.notify(f"Transaction could not be updated: {exc}", "error")
            raise
        record = TransactionRecord.from_api(updated)
        self._state.upsert_confirmed(record)
        self._state.notify("Transaction updated", "success")
        return record

    def delete(self, txn_id: str) -> None:
        try:
            self._api.delete(txn_id)
        except ApiError as exc:
            self._state.notify(f"Transaction could not be deleted: {exc}", "error")
            raise
        self._state.remove_confirmed(txn_id)
        self._state.notify("Transaction deleted", "success")

    def _validate(self, data: TransactionPayload | dict[str, Any]) -> TransactionPayload:
        if isinstance(data, TransactionPayload):
            return data
        try:
            return TransactionPayload.model_validate(data)
        except ValidationError as exc:
            raise to_validation_error(exc) from exc
