from __future__ import annotations

import http.client
import json
import logging
import os
import time
import urllib.error
import urllib.parse
import urllib.request
from datetime import date, datetime
from decimal import Decimal
from typing import Any

logger = logging.getLogger(__name__)


class ApiError(RuntimeError):
    """A request that did not come back as {success: true}. status 0 means it never got a response."""

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message

    @property
    def is_network_error(self) -> bool:
        return self.status == 0

    @property
    def is_not_found(self) -> bool:
        return self.status == 404


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class TransactionApiClient:
    """JSON client for the /api routes; no retries, timeouts come from the socket."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.base_url = (base_url or os.getenv("API_BASE_URL", "http://127.0.0.1:8000/api")).rstrip("/")
        self.token = token
        self.timeout_seconds = timeout_seconds or float(os.getenv("API_TIMEOUT_SECONDS", "15"))

    # ---- auth ----
    def register(self, name: str, email: str, password: str) -> dict[str, Any]:
        data = self._request("POST", "/auth/register", {"name": name, "email": email, "password": password})
        self.token = data["token"]
        return data["user"]

    def login(self, email: str, password: str) -> dict[str, Any]:
        data = self._request("POST", "/auth/login", {"email": email, "password": password})
        self.token = data["token"]
        return data["user"]

    # ---- transactions ----
    def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/transactions", payload)

    def list(self, filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        return self._request("GET", "/transactions", params=filters)

    def get(self, txn_id: str) -> dict[str, Any]:
        return self._request("GET", f"/transactions/{urllib.parse.quote(txn_id)}")

    def update(self, txn_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        return self._request("PUT", f"/transactions/{urllib.parse.quote(txn_id)}", patch)

    def delete(self, txn_id: str) -> None:
        self._request("DELETE", f"/transactions/{urllib.parse.quote(txn_id)}")

    def summary(self, filters: dict[str, Any] | None = None) -> dict[str, Any]:
        return self._request("GET", "/transactions/summary", params=filters)

    def _request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        if params:
            query = {k: (v.isoformat() if isinstance(v, (date, datetime)) else v) for k, v in params.items() if v is not None}
            if query:
                url = f"{url}?{urllib.parse.urlencode(query)}"

        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        data = json.dumps(body, default=_json_default).encode("utf-8") if body is not None else None
        req = urllib.request.Request(url=url, data=data, headers=headers, method=method)

        started = time.perf_counter()
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                status = resp.status
                payload = json.loads(resp.read().decode("utf-8") or "{}")
        except urllib.error.HTTPError as exc:
            message = self._error_message(exc)
            logger.warning("ApiClient %s %s failed status=%d error=%s", method, path, exc.code, message)
            raise ApiError(exc.code, message) from exc
        except (http.client.HTTPException, OSError) as exc:
            logger.warning("ApiClient %s %s network failure after %.2fs: %s", method, path, time.perf_counter() - started, exc)
            raise ApiError(0, f"Network error: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise ApiError(502, f"Invalid JSON from server: {exc}") from exc

        logger.info("ApiClient %s %s status=%d in %.2fs", method, path, status, time.perf_counter() - started)
        if not isinstance(payload, dict) or not payload.get("success", False):
            error = payload.get("error") if isinstance(payload, dict) else None
            raise ApiError(status, str(error or "Request was not successful"))
        return payload.get("data", payload.get("message"))

    def _error_message(self, exc: urllib.error.HTTPError) -> str:
        try:
            payload = json.loads(exc.read().decode("utf-8"))
        except (ValueError, OSError):
            return exc.reason if isinstance(exc.reason, str) else f"HTTP {exc.code}"
        if isinstance(payload, dict) and payload.get("error"):
            return str(payload["error"])
        return f"HTTP {exc.code}"
