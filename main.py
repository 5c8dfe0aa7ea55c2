#!/usr/bin/env python3
"""
Tollgate admin CLI -- manage credential realm entries.

Usage:
  python main.py hash-password
  python main.py add-user foo --db-url sqlite:///users.db --role admin
  python main.py list-users --db-url sqlite:///users.db
  python main.py disable-user foo --db-url sqlite:///users.db

hash-password prints a bcrypt hash suitable for the [users] section of an
INI realm file. Passwords are read from the terminal (or from stdin with
--password-stdin) and never accepted as a command-line argument, where they
would land in shell history and the process table.

Environment variables:
  USERS_DB_URL   Default for --db-url.
  BCRYPT_ROUNDS  Cost factor for new hashes (default 12).
"""

import argparse
import getpass
import os
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.store import UserStore
from auth.tokens import DEFAULT_BCRYPT_ROUNDS, MAX_PASSWORD_BYTES, hash_password


def _read_password(from_stdin: bool) -> str:
    """Read a password once from stdin, or twice from the terminal to confirm."""
    if from_stdin:
        return sys.stdin.readline().rstrip("\n")
    first = getpass.getpass("Password: ")
    second = getpass.getpass("Confirm password: ")
    if first != second:
        raise SystemExit("  [!] Passwords do not match.")
    return first


def _check_password(password: str) -> bool:
    if not password:
        print("  [!] Password must not be empty.", file=sys.stderr)
        return False
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        print(f"  [!] Password must not be longer than {MAX_PASSWORD_BYTES} bytes.", file=sys.stderr)
        return False
    return True


def _require_db_url(args: argparse.Namespace) -> str:
    if not args.db_url:
        raise SystemExit("  [!] --db-url (or USERS_DB_URL) is required for this command.")
    return args.db_url


def cmd_hash_password(args: argparse.Namespace) -> int:
    password = _read_password(args.password_stdin)
    if not _check_password(password):
        return 1
    print(hash_password(password, rounds=args.rounds))
    return 0


def cmd_add_user(args: argparse.Namespace) -> int:
    password = _read_password(args.password_stdin)
    if not _check_password(password):
        return 1
    store = UserStore(_require_db_url(args))
    try:
        store.create_user(
            User(
                username=args.username,
                hashed_password=hash_password(password, rounds=args.rounds),
                name=args.name or "",
                email=args.email or "",
                roles=list(args.role or []),
            )
        )
    except IntegrityError:
        print(f"  [!] User '{args.username}' already exists.", file=sys.stderr)
        return 1
    finally:
        store.close()
    print(f"  Created user '{args.username}'.")
    return 0


def cmd_list_users(args: argparse.Namespace) -> int:
    store = UserStore(_require_db_url(args))
    try:
        users = store.list_users()
    finally:
        store.close()
    if not users:
        print("  No users.")
        return 0
    for user in users:
        status = "active" if user.is_active else "disabled"
        roles = ",".join(user.roles) or "-"
        print(f"  {user.username:<24} {status:<9} roles={roles} last_login={user.last_login or 'never'}")
    return 0


def cmd_set_active(args: argparse.Namespace) -> int:
    store = UserStore(_require_db_url(args))
    try:
        found = store.set_active(args.username, args.command == "enable-user")
    finally:
        store.close()
    if not found:
        print(f"  [!] No such user '{args.username}'.", file=sys.stderr)
        return 1
    print(f"  User '{args.username}' {'enabled' if args.command == 'enable-user' else 'disabled'}.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tollgate",
        description="Manage Tollgate credential realm entries.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--db-url",
        default=os.environ.get("USERS_DB_URL", ""),
        metavar="URL",
        help="SQLAlchemy URL of the SQL realm (default: $USERS_DB_URL)",
    )
    secret = argparse.ArgumentParser(add_help=False)
    secret.add_argument(
        "--password-stdin",
        action="store_true",
        help="Read the password from the first line of stdin instead of prompting",
    )
    secret.add_argument(
        "--rounds",
        type=int,
        default=int(os.environ.get("BCRYPT_ROUNDS", DEFAULT_BCRYPT_ROUNDS)),
        help="bcrypt cost factor (default: $BCRYPT_ROUNDS or 12)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("hash-password", parents=[secret], help="Print a bcrypt hash for an INI realm file")
    p.set_defaults(func=cmd_hash_password)

    p = sub.add_parser("add-user", parents=[common, secret], help="Create a user in the SQL realm")
    p.add_argument("username")
    p.add_argument("--name", help="Display name")
    p.add_argument("--email", help="Email address")
    p.add_argument("--role", action="append", metavar="ROLE", help="Role to grant (repeatable)")
    p.set_defaults(func=cmd_add_user)

    p = sub.add_parser("list-users", parents=[common], help="List users in the SQL realm")
    p.set_defaults(func=cmd_list_users)

    for name in ("enable-user", "disable-user"):
        p = sub.add_parser(name, parents=[common], help=f"{name.split('-')[0].capitalize()} a user in the SQL realm")
        p.add_argument("username")
        p.set_defaults(func=cmd_set_active)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
