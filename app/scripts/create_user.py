"""
Create a Stackwatch user from the command line (there is no registration endpoint).

  python -m app.scripts.create_user USERNAME PASSWORD [admin|developer|viewer] [--email EMAIL] [--notify TYPE ...]

Examples:
  python -m app.scripts.create_user root a-long-admin-password admin
  python -m app.scripts.create_user alice another-password viewer --notify update --notify report

--notify opts the user in to a notification type. Admins and developers get
critical and high notifications whether or not they opt in.
"""
import argparse
import sys

from dotenv import load_dotenv

load_dotenv()

from pydantic import ValidationError as SchemaValidationError

from app.core.config import get_settings
from app.core.database import StoreContext
from app.core.security import hash_password
from app.models.user import User
from app.schemas.auth import LoginRequest
from app.schemas.common import NOTIFICATION_TYPES, USER_ROLES
from app.store.repository import Repository


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create a Stackwatch user.")
    parser.add_argument("username")
    parser.add_argument("password")
    parser.add_argument("role", nargs="?", default="viewer", choices=sorted(USER_ROLES))
    parser.add_argument("--email", default=None)
    parser.add_argument(
        "--notify",
        action="append",
        default=[],
        choices=sorted(NOTIFICATION_TYPES),
        help="Opt in to a notification type (repeatable)",
    )
    return parser


def main() -> int:
    args = _parser().parse_args()
    try:
        creds = LoginRequest(username=args.username.strip(), password=args.password)
    except SchemaValidationError as e:
        print(f"Invalid credentials: {e.errors()[0]['msg']}", file=sys.stderr)
        return 1

    store = StoreContext(get_settings().DATABASE_URL)
    db = store.session()
    try:
        users = Repository(db, User)
        if users.find_one(username=creds.username) is not None:
            print(f"User '{creds.username}' already exists.", file=sys.stderr)
            return 1
        if args.email and users.find_one(email=args.email) is not None:
            print(f"Email '{args.email}' is already in use.", file=sys.stderr)
            return 1
        users.create(
            username=creds.username,
            email=args.email,
            password_hash=hash_password(creds.password),
            role=args.role,
            notification_preferences={t: True for t in args.notify},
        )
        db.commit()
        opted = ", ".join(sorted(args.notify)) or "none"
        print(f"Created {args.role} '{creds.username}' (opted in: {opted}).")
        return 0
    finally:
        db.close()
        store.dispose()


if __name__ == "__main__":
    sys.exit(main())
