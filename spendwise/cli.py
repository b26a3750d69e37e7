"""Command-line interface for running and using the Spendwise API."""

from __future__ import annotations

import argparse
import json
from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

from .client import (
    CATEGORIES,
    DEFAULT_API_URL,
    DEFAULT_TOKEN_PATH,
    ApiError,
    AuthenticationRequired,
    ExpenseClient,
    TokenStore,
    filter_expenses,
    total_amount,
)
from .config import Settings
from .database import Database
from .logging import configure_cli_logging

DESCRIPTION = "Spendwise personal expense tracker"


def _parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:  # pragma: no cover - argparse validation
        raise argparse.ArgumentTypeError("Expected YYYY-MM-DD date format") from exc


def _parse_amount(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as exc:  # pragma: no cover - argparse validation
        raise argparse.ArgumentTypeError(f"Invalid amount: {value}") from exc


def _add_server_subparsers(sub: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1", help="Interface to bind")
    serve.add_argument("--port", type=int, default=8000, help="Port to listen on")
    serve.add_argument(
        "--reload",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Restart the server when source files change",
    )
    sub.add_parser("init-db", help="Create the database tables and exit")


def _add_client_subparsers(sub: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    for name in ("register", "login"):
        cmd = sub.add_parser(name, help=f"{name.capitalize()} a user")
        cmd.add_argument("email")
        cmd.add_argument("password")
    sub.add_parser("logout", help="Forget the stored token")

    add = sub.add_parser("add", help="Record an expense")
    add.add_argument("amount", type=_parse_amount)
    add.add_argument("category", help=f"Any text; suggested: {', '.join(CATEGORIES)}")
    add.add_argument("--date", type=_parse_date, default=date.today(), help="Expense date (YYYY-MM-DD)")
    add.add_argument("--description", default=None)

    listing = sub.add_parser("list", help="List expenses, newest first")
    listing.add_argument("--category", default=None, help="Only this category")
    listing.add_argument("--search", default=None, help="Match description or category")
    listing.add_argument("--date", type=_parse_date, default=None, help="Only this date")

    update = sub.add_parser("update", help="Change some fields of an expense")
    update.add_argument("expense_id")
    update.add_argument("--amount", type=_parse_amount, default=None)
    update.add_argument("--category", default=None)
    update.add_argument("--date", type=_parse_date, default=None)
    update.add_argument("--description", default=None)

    delete = sub.add_parser("delete", help="Delete an expense")
    delete.add_argument("expense_id")

    sub.add_parser("analytics", help="Show spending totals")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="spendwise", description=DESCRIPTION)
    parser.add_argument(
        "--json-logs",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Mirror logs to logs/spendwise.log in JSON format",
    )
    parser.add_argument("--api-url", default=DEFAULT_API_URL, help="Base URL of the API for client commands")
    parser.add_argument(
        "--token-file",
        type=Path,
        default=DEFAULT_TOKEN_PATH,
        help="Where the bearer token is kept between commands",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)
    _add_server_subparsers(sub)
    _add_client_subparsers(sub)
    return parser


def _format_expense(expense: dict) -> str:
    description = expense.get("description") or ""
    return f"{expense['date']}  {float(expense['amount']):>10.2f}  {expense['category']:<20} {description}  [{expense['id']}]"


def _handle_serve(args: argparse.Namespace) -> None:
    import uvicorn

    uvicorn.run(
        "spendwise.server:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


def _handle_init_db(_: argparse.Namespace) -> None:
    settings = Settings.from_env()
    database = Database(settings.database_url)
    try:
        database.init_db()
    finally:
        database.close()
    print(f"[spendwise] init-db url={settings.database_url}")


def _handle_client(args: argparse.Namespace, client: ExpenseClient) -> None:
    if args.cmd == "register":
        user = client.register(args.email, args.password)
        print(f"[spendwise] registered id={user['id']} email={user['email']}")
    elif args.cmd == "login":
        user = client.login(args.email, args.password)
        print(f"[spendwise] logged in as {user['email']}")
    elif args.cmd == "logout":
        client.logout()
        print("[spendwise] logged out")
    elif args.cmd == "add":
        expense = client.create_expense(args.amount, args.category, args.date, args.description)
        print(f"[spendwise] created {_format_expense(expense)}")
    elif args.cmd == "list":
        expenses = client.list_expenses()
        selected = filter_expenses(expenses, category=args.category, search=args.search, on_date=args.date)
        for expense in selected:
            print(_format_expense(expense))
        print(f"[spendwise] showing {len(selected)} of {len(expenses)} expenses total={total_amount(selected):.2f}")
    elif args.cmd == "update":
        changes = {
            key: getattr(args, key)
            for key in ("amount", "category", "date", "description")
            if getattr(args, key) is not None
        }
        expense = client.update_expense(args.expense_id, **changes)
        print(f"[spendwise] updated {_format_expense(expense)}")
    elif args.cmd == "delete":
        client.delete_expense(args.expense_id)
        print(f"[spendwise] deleted {args.expense_id}")
    elif args.cmd == "analytics":
        print(json.dumps(client.analytics(), indent=2))


def main(argv: Sequence[str] | None = None, client: ExpenseClient | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_cli_logging(json_logs=bool(args.json_logs))
    if args.cmd == "serve":
        _handle_serve(args)
        return
    if args.cmd == "init-db":
        _handle_init_db(args)
        return
    client = client or ExpenseClient(args.api_url, token_store=TokenStore(args.token_file))
    try:
        _handle_client(args, client)
    except AuthenticationRequired as exc:
        hint = "" if args.cmd == "login" else "; run 'spendwise login' first"
        raise SystemExit(f"[spendwise] {exc.message}{hint}") from exc
    except ApiError as exc:
        raise SystemExit(f"[spendwise] error: {exc.message}") from exc


if __name__ == "__main__":
    main()
