from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any

from client.api_client import ApiError, TransactionApiClient
from client.coordinator import OptimisticCoordinator
from client.state import TransactionState
from domain.errors import TransactionValidationError
from infrastructure.settings import Settings

logger = logging.getLogger(__name__)


def _print(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="expense-tracker", description="Personal finance tracker")
    parser.add_argument("--api", default=None, help="API base URL (default: $API_BASE_URL)")
    parser.add_argument("--token", default=os.getenv("API_TOKEN"), help="Bearer token (default: $API_TOKEN)")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    for name in ("register", "login"):
        auth = sub.add_parser(name, help=f"{name.title()} and print a bearer token")
        auth.add_argument("--email", required=True)
        auth.add_argument("--password", required=True)
        if name == "register":
            auth.add_argument("--name", required=True)

    add = sub.add_parser("add", help="Record a transaction")
    add.add_argument("--amount", required=True)
    add.add_argument("--type", choices=["income", "expense"], default="expense")
    add.add_argument("--category", required=True)
    add.add_argument("--description", default="")
    add.add_argument("--date", default=None, help="YYYY-MM-DD or ISO timestamp (default: now)")

    for name in ("list", "summary"):
        query = sub.add_parser(name, help=f"{name.title()} transactions")
        query.add_argument("--start-date", default=None)
        query.add_argument("--end-date", default=None)
        query.add_argument("--type", choices=["income", "expense"], default=None)
        query.add_argument("--category", default=None)

    return parser


def _serve(settings: Settings, host: str, port: int) -> int:
    import uvicorn

    from interface.api import create_app
    from interface.container import build_container

    uvicorn.run(create_app(build_container(settings)), host=host, port=port, log_level=settings.log_level.lower())
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()

    if args.command == "serve":
        return _serve(settings, args.host, args.port)

    api = TransactionApiClient(
        base_url=args.api or settings.api_base_url,
        token=args.token,
        timeout_seconds=settings.api_timeout_seconds,
    )
    coordinator = OptimisticCoordinator(api, TransactionState())

    try:
        if args.command == "register":
            user = api.register(args.name, args.email, args.password)
            _print({"token": api.token, "user": user})
        elif args.command == "login":
            user = api.login(args.email, args.password)
            _print({"token": api.token, "user": user})
        elif args.command == "add":
            data = {
                "amount": args.amount,
                "type": args.type,
                "category": args.category,
                "description": args.description,
            }
            if args.date:
                data["date"] = args.date
            record = coordinator.submit(data)
            _print(record.to_dict())
        else:
            filters = {
                "start_date": args.start_date,
                "end_date": args.end_date,
                "type": args.type,
                "category": args.category,
            }
            if args.command == "list":
                _print([r.to_dict() for r in coordinator.refresh(filters)])
            else:
                _print(api.summary(filters))
    except TransactionValidationError as exc:
        print(f"invalid transaction: {exc}", file=sys.stderr)
        return 2
    except ApiError as exc:
        print(f"request failed ({exc.status}): {exc.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
