from __future__ import annotations

import argparse

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import Base, engine, session_scope
from app.models.role import Role
from app.models.user import User

# Accounts created here cannot log in until a password is set.
UNUSABLE_PASSWORD = "!"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create the board roster and an admin account.")
    parser.add_argument("--admin", default="admin@example.com", help="Admin account email")
    parser.add_argument(
        "--board",
        nargs="*",
        default=["board1@example.com", "board2@example.com", "board3@example.com"],
        help="Board member emails",
    )
    return parser.parse_args()


def ensure_role(db: Session, name: str) -> Role:
    role = db.query(Role).filter_by(name=name).first()
    if role is None:
        role = Role(name=name)
        db.add(role)
        db.flush()
    return role


def ensure_user(db: Session, email: str, roles: list[str]) -> User:
    user = db.query(User).filter_by(email=email).first()
    if user is None:
        user = User(
            email=email,
            full_name=email.split("@")[0].replace(".", " ").title(),
            hashed_password=UNUSABLE_PASSWORD,
            is_active=True,
        )
        db.add(user)
    for role_name in roles:
        role = ensure_role(db, role_name)
        if role not in user.roles:
            user.roles.append(role)
    db.flush()
    return user


def main() -> None:
    args = parse_args()
    Base.metadata.create_all(bind=engine)
    with session_scope() as db:
        for role_name in {settings.BOARD_ROLE, *settings.ADMIN_ROLES, *settings.REVIEWER_ROLES}:
            ensure_role(db, role_name)
        ensure_user(db, args.admin, list(settings.ADMIN_ROLES))
        for email in args.board:
            ensure_user(db, email, [settings.BOARD_ROLE])
    print(f"Board roster ready: {len(args.board)} member(s), admin {args.admin}")


if __name__ == "__main__":
    main()
