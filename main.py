#!/usr/bin/env python3
"""
authstarter -- operator commands for the authentication backend.

Usage:
  python main.py check-db
  python main.py create-user --name "Alice" --email alice@example.com
  python main.py create-user --name "Alice" --email alice@example.com --password 'Secret123' --verified

Environment variables:
  DATABASE_URL   SQLAlchemy URL of the user/session database (see .env.example).
                 Every other setting is read the same way the API reads it.
"""

import argparse
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import User
from auth.passwords import generate_random_password, hash_password
from auth.store import UserStore, create_db_engine
from core.config import get_settings


def _open_store(db_url: Optional[str] = None) -> UserStore:
    return UserStore(create_db_engine(db_url or get_settings().database_url))


def check_db(db_url: Optional[str] = None) -> int:
    """Verify the database answers. Returns a process exit code."""
    try:
        store = _open_store(db_url)
    except SQLAlchemyError as e:
        print(f"  [!] Database unreachable: {e}")
        return 1
    try:
        store.check_connection(retries=0)
        users = store.count()
    except SQLAlchemyError as e:
        print(f"  [!] Database unreachable: {e}")
        return 1
    finally:
        store.engine.dispose()
    print(f"  Database OK ({users} users).")
    return 0


def create_user(
    name: str,
    email: str,
    password: Optional[str] = None,
    verified: bool = False,
    db_url: Optional[str] = None,
) -> int:
    """Create an account directly in the database. Returns a process exit code.

    When no password is given a random one is generated and printed once.
    """
    store = _open_store(db_url)
    generated = password is None
    plain = password or generate_random_password()
    try:
        if store.get_by_email(email, include_deleted=True) is not None:
            print(f"  [!] A user with email '{email}' already exists.")
            return 1
        user_id = store.create_user(
            User(
                name=name,
                email=email,
                password=hash_password(plain),
                is_email_verified=verified,
            )
        )
    except IntegrityError:
        print(f"  [!] A user with email '{email}' already exists.")
        return 1
    finally:
        store.engine.dispose()

    print(f"  Created user {user_id} <{email}>.")
    if generated:
        print(f"  Generated password: {plain}")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="authstarter",
        description="Operator commands for the authstarter API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py check-db
  python main.py create-user --name "Alice" --email alice@example.com --verified
  DATABASE_URL=sqlite:///./other.db python main.py check-db
        """,
    )
    parser.add_argument(
        "--database-url",
        metavar="URL",
        default=None,
        help="Override DATABASE_URL for this command",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("check-db", help="Check that the database is reachable")

    create = sub.add_parser("create-user", help="Create a user account")
    create.add_argument("--name", required=True, help="Display name (2-100 characters)")
    create.add_argument("--email", required=True, help="Login email address")
    create.add_argument(
        "--password",
        default=None,
        help="Initial password. A random one is generated and printed when omitted.",
    )
    create.add_argument(
        "--verified",
        action="store_true",
        help="Mark the email address as already verified",
    )

    args = parser.parse_args(argv)

    if args.command == "check-db":
        return check_db(args.database_url)

    name = args.name.strip()
    if not 2 <= len(name) <= 100:
        print("  [!] --name must be between 2 and 100 characters.")
        return 2
    return create_user(
        name=name,
        email=args.email.strip(),
        password=args.password,
        verified=args.verified,
        db_url=args.database_url,
    )


if __name__ == "__main__":
    sys.exit(main())
