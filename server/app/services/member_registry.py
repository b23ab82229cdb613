from __future__ import annotations

import logging
from datetime import date

from slugify import slugify
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.member import Member
from app.models.membership_request import MembershipRequest
from app.services.membership_errors import MemberCreationFailed

logger = logging.getLogger(__name__)


def generate_username(db: Session, first_name: str, last_name: str) -> str:
    base = slugify(f"{first_name}.{last_name}", separator=".") or "member"
    candidate = base
    suffix = 1
    while db.query(Member).filter(Member.username == candidate).first():
        candidate = f"{base}-{suffix}"
        suffix += 1
    return candidate


def generate_member_number(db: Session, year: int | None = None) -> str:
    year = year or date.today().year
    prefix = f"{settings.MEMBER_NUMBER_PREFIX}{year}-"
    last = (
        db.query(Member.member_number)
        .filter(Member.member_number.like(f"{prefix}%"))
        .order_by(Member.member_number.desc())
        .first()
    )
    next_number = 1
    if last and last[0]:
        try:
            next_number = int(last[0].split("-")[-1]) + 1
        except ValueError:
            next_number = 1
    return f"{prefix}{next_number:03d}"


def member_exists_with_email(db: Session, email: str) -> bool:
    return (
        db.query(Member.id).filter(func.lower(Member.email) == email.strip().lower()).first()
        is not None
    )


class MemberRegistry:
    """Turns an approved membership request into a member record."""

    def create_member(self, db: Session, request: MembershipRequest, *, actor_id: int | None = None) -> Member:
        if member_exists_with_email(db, request.email):
            raise MemberCreationFailed(f"A member with email {request.email} already exists")

        member = Member(
            member_number=generate_member_number(db),
            username=generate_username(db, request.first_name, request.last_name),
            first_name=request.first_name,
            last_name=request.last_name,
            first_name_native=request.first_name_native,
            last_name_native=request.last_name_native,
            email=request.email,
            phone=request.phone,
            address=request.address,
            city=request.city,
            postal_code=request.postal_code,
            country=request.country,
            membership_type=request.requested_member_type or "REGULAR",
            residence_status=request.residence_status,
            join_date=date.today(),
            status="Active",
            notes=f"Created from membership request {request.request_number}",
            source_request_id=request.id,
            created_by_id=actor_id,
        )
        try:
            with db.begin_nested():
                db.add(member)
        except IntegrityError as exc:
            raise MemberCreationFailed(
                f"Could not create member for request {request.request_number}"
            ) from exc

        logger.info(
            "member_created_from_request",
            extra={
                "request_id": request.id,
                "member_id": member.id,
                "member_number": member.member_number,
            },
        )
        return member
