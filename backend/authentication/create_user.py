"""Bootstrap catalog accounts from the command line.

    python -m authentication.create_user --email admin@example.com --role admin

The password is prompted for when ``--password`` is omitted. ``--deactivate``
disables an existing account instead of creating one.
"""

import argparse
import getpass

from email_validator import EmailNotValidError, validate_email

from authentication.identity import ROLE_USER, ROLES
from authentication.models import User
from authentication.repository import create_user, get_user_by_username
from authentication.security import hash_password
from db.base import Base
from db.session import SessionLocal, engine
from models.product import Product  # noqa: F401  (users are referenced by products)


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Create or deactivate a catalog user.")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", help="prompted for when omitted")
    parser.add_argument("--role", default=ROLE_USER, choices=list(ROLES))
    parser.add_argument("--deactivate", action="store_true")
    return parser.parse_args(argv)


def _deactivate(db, email: str) -> str:
    user: User | None = get_user_by_username(db, email)
    if user is None:
        raise SystemExit(f"No such user: {email}")
    user.is_active = False
    db.commit()
    return f"Deactivated user: {user.username}"


def _create(db, email: str, password: str, role: str) -> str:
    if len(password) < 8:
        raise SystemExit("Password must be at least 8 characters")
    user = create_user(db, username=email, password_hash=hash_password(password), role=role)
    if user is None:
        raise SystemExit("User already exists")
    db.commit()
    return f"Created user: {user.username} ({user.role})"


def main(argv=None):
    args = _parse_args(argv)
    try:
        email = validate_email(args.email, check_deliverability=False).normalized
    except EmailNotValidError as exc:
        raise SystemExit(f"Invalid email: {exc}")

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        if args.deactivate:
            print(_deactivate(db, email))
        else:
            password = args.password or getpass.getpass("Password: ")
            print(_create(db, email, password, args.role))
    finally:
        db.close()


if __name__ == "__main__":
    main()
