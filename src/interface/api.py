from __future__ import annotations

import logging
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError

from domain.errors import (
    AuthenticationError,
    DocumentError,
    DuplicateUserError,
    TransactionNotFoundError,
    TransactionValidationError,
)
from domain.models import EXPENSE_CATEGORIES, INCOME_CATEGORIES, User
from domain.schemas import (
    LoginRequest,
    RegisterRequest,
    StatementUpload,
    TransactionPatch,
    TransactionPayload,
    serialize_transaction,
)
from infrastructure.documents import extract_document_text
from interface.container import AppContainer, build_container

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)

_QUERY_ALIASES = {"startDate": "start_date", "endDate": "end_date"}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _format_validation_errors(errors: list[dict[str, Any]]) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        msg = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Invalid request"


def _filters_from_query(request: Request) -> dict[str, Any]:
    return {_QUERY_ALIASES.get(key, key): value for key, value in request.query_params.items() if value != ""}


def _user_payload(user: User) -> dict[str, Any]:
    return {"id": user.id, "name": user.name, "email": user.email}


async def read_upload(request: Request) -> StatementUpload:
    """Build a StatementUpload from a multipart `file` (plus form fields) or a JSON `{text}` body."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        fields: dict[str, Any] = {
            key: form[key] for key in ("text", "default_type", "save") if isinstance(form.get(key), str)
        }
        upload = form.get("file")
        if upload is not None and not isinstance(upload, str):
            data = await upload.read()
            fields["text"] = await run_in_threadpool(
                extract_document_text, upload.filename or "", upload.content_type or "", data
            )
            fields["filename"] = upload.filename
    else:
        try:
            fields = await request.json()
        except ValueError:
            raise RequestValidationError(
                [{"loc": ("body",), "msg": "Expected a multipart file or a JSON body", "type": "value_error"}]
            ) from None

    try:
        return StatementUpload.model_validate(fields)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False)) from exc


def create_app(container: AppContainer | None = None) -> FastAPI:
    container = container or build_container()
    app = FastAPI(title="Expense Tracker API")
    app.state.container = container

    def current_user(credentials: HTTPAuthorizationCredentials | None = Depends(_bearer)) -> User:
        token = credentials.credentials if credentials else None
        return container.auth.authenticate(token)

    @app.exception_handler(AuthenticationError)
    def handle_auth(request: Request, exc: AuthenticationError) -> JSONResponse:
        return _error(401, str(exc))

    @app.exception_handler(TransactionNotFoundError)
    def handle_not_found(request: Request, exc: TransactionNotFoundError) -> JSONResponse:
        return _error(404, "Transaction not found")

    @app.exception_handler(TransactionValidationError)
    def handle_invalid(request: Request, exc: TransactionValidationError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(DocumentError)
    def handle_document(request: Request, exc: DocumentError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(DuplicateUserError)
    def handle_duplicate(request: Request, exc: DuplicateUserError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, _format_validation_errors(exc.errors()))

    @app.exception_handler(Exception)
    def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error method=%s path=%s", request.method, request.url.path)
        return _error(500, f"Server error: {exc}")

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/auth/register", status_code=201)
    def register(body: RegisterRequest) -> dict:
        user, session = container.auth.register(body)
        return {"success": True, "data": {"token": session.token, "user": _user_payload(user)}}

    @app.post("/api/auth/login")
    def login(body: LoginRequest) -> dict:
        user, session = container.auth.login(body)
        return {"success": True, "data": {"token": session.token, "user": _user_payload(user)}}

    @app.post("/api/auth/logout")
    def logout(
        user: User = Depends(current_user),
        credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    ) -> dict:
        container.auth.logout(credentials.credentials)
        return {"success": True, "message": "Logged out"}

    @app.get("/api/auth/me")
    def me(user: User = Depends(current_user)) -> dict:
        return {"success": True, "data": _user_payload(user)}

    @app.get("/api/categories")
    def categories() -> dict:
        return {"success": True, "data": {"income": list(INCOME_CATEGORIES), "expense": list(EXPENSE_CATEGORIES)}}

    @app.post("/api/transactions", status_code=201)
    def create_transaction(body: TransactionPayload, user: User = Depends(current_user)) -> dict:
        txn = container.transactions.create(user.id, body)
        return {"success": True, "data": serialize_transaction(txn)}

    @app.get("/api/transactions")
    def list_transactions(request: Request, user: User = Depends(current_user)) -> dict:
        rows = container.transactions.list(user.id, _filters_from_query(request))
        return {"success": True, "data": [serialize_transaction(t) for t in rows]}

    @app.get("/api/transactions/summary")
    def transaction_summary(request: Request, user: User = Depends(current_user)) -> dict:
        summary = container.transactions.summary(user.id, _filters_from_query(request))
        return {"success": True, "data": summary.model_dump(mode="json")}

    @app.get("/api/transactions/{txn_id}")
    def get_transaction(txn_id: str, user: User = Depends(current_user)) -> dict:
        return {"success": True, "data": serialize_transaction(container.transactions.get(user.id, txn_id))}

    @app.put("/api/transactions/{txn_id}")
    def update_transaction(txn_id: str, body: TransactionPatch, user: User = Depends(current_user)) -> dict:
        txn = container.transactions.update(user.id, txn_id, body)
        return {"success": True, "data": serialize_transaction(txn)}

    @app.delete("/api/transactions/{txn_id}")
    def delete_transaction(txn_id: str, user: User = Depends(current_user)) -> dict:
        container.transactions.delete(user.id, txn_id)
        return {"success": True, "message": "Transaction deleted successfully"}

    @app.post("/api/uploads/receipt")
    def upload_receipt(user: User = Depends(current_user), body: StatementUpload = Depends(read_upload)) -> dict:
        return {"success": True, "data": container.uploads.process(user.id, body, kind="receipt")}

    @app.post("/api/uploads/bank-statement")
    def upload_bank_statement(user: User = Depends(current_user), body: StatementUpload = Depends(read_upload)) -> dict:
        return {"success": True, "data": container.uploads.process(user.id, body, kind="bank_statement")}

    return app
