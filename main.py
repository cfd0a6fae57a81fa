#!/usr/bin/env python3
"""
WordLists -- operations command line.

Usage:
  python main.py serve [--host 127.0.0.1] [--port 8000] [--reload]
  python main.py purge-tokens
  python main.py create-user NAME

Environment variables:
  SECRET_KEY     JWT signing key (required unless DEBUG=true). See core/config.py.
  DATABASE_URL   SQLAlchemy URL. Defaults to the SQLite file wordlists.db.
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.models import User
from auth.revocation import purge_expired
from auth.store import UserStore
from auth.tokens import hash_password

MIN_PASSWORD_LENGTH = 6


def create_user(store: UserStore, name: str, password: str) -> Optional[int]:
    """Register a user from the command line. Returns the new id, or None on failure.

    Applies the same rules as POST /api/v1/auth/register: name 1-50
    characters after trimming, password at least 6 characters, names unique
    case-insensitively.
    """
    name = name.strip()
    if not name or len(name) > 50:
        print("  [!] Name must be 1-50 characters.")
        return None
    if len(password) < MIN_PASSWORD_LENGTH:
        print(f"  [!] Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        return None

    result = store.create_user(User(name=name, name_lower=name.lower(), password_hash=hash_password(password)))
    if result.is_conflict:
        print(f"  [!] Name '{name}' is already registered.")
        return None
    if not result.ok:
        print("  [!] Could not create user; see log for details.")
        return None
    return result.value


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _cmd_purge_tokens(args: argparse.Namespace) -> int:
    store = UserStore()
    try:
        removed = purge_expired(store)
        remaining = store.count_revoked_tokens()
    finally:
        store.close()
    print(f"  Purged {removed} expired revocation record(s); {remaining} still active.")
    return 0


def _cmd_create_user(args: argparse.Namespace) -> int:
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        print("  [!] Passwords do not match.")
        return 1

    store = UserStore()
    try:
        user_id = create_user(store, args.name, password)
    finally:
        store.close()
    if user_id is None:
        return 1
    print(f"  Created user '{args.name.strip()}' (id {user_id}).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wordlists",
        description="Operations commands for the WordLists API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --reload
  python main.py purge-tokens
  DATABASE_URL=postgresql://user:pw@host/db python main.py create-user alice
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the API server with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    serve.set_defaults(func=_cmd_serve)

    purge = sub.add_parser("purge-tokens", help="Delete expired token revocation records")
    purge.set_defaults(func=_cmd_purge_tokens)

    create = sub.add_parser("create-user", help="Register a user; the password is prompted for")
    create.add_argument("name", metavar="NAME", help="Display name (case-insensitively unique)")
    create.set_defaults(func=_cmd_create_user)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
