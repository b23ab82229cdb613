"""Membership request lifecycle.

Every status change goes through :func:`apply_transition`, which validates the
move against the legal transition set and writes it with a compare-and-swap
on the current status so two writers can never both move the same request.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.models.membership_request import MembershipRequest
from app.services import audit_trail
from app.services.membership_errors import InvalidTransition, RequestClosed

logger = logging.getLogger(__name__)

PENDING = "PENDING"
UNDER_REVIEW = "UNDER_REVIEW"
ADDITIONAL_INFO_REQUESTED = "ADDITIONAL_INFO_REQUESTED"
APPROVED = "APPROVED"
REJECTED = "REJECTED"
WITHDRAWN = "WITHDRAWN"

OPEN_STATUSES = frozenset({PENDING, UNDER_REVIEW, ADDITIONAL_INFO_REQUESTED})
TERMINAL_STATUSES = frozenset({APPROVED, REJECTED, WITHDRAWN})
DECISION_STATUSES = frozenset({APPROVED, REJECTED})
OVERRIDABLE_STATUSES = frozenset({PENDING, UNDER_REVIEW})
MANUAL_TARGETS = frozenset({PENDING, UNDER_REVIEW, ADDITIONAL_INFO_REQUESTED, WITHDRAWN})

VIA_MANUAL = "manual"
VIA_VOTE = "vote"
VIA_OVERRIDE = "override"

# Legal transitions: (from_status, to_status)
_TRANSITIONS: set[tuple[str, str]] = {
    (PENDING, UNDER_REVIEW),
    (UNDER_REVIEW, PENDING),
    (UNDER_REVIEW, ADDITIONAL_INFO_REQUESTED),
    (ADDITIONAL_INFO_REQUESTED, UNDER_REVIEW),
    # Decisions
    (PENDING, APPROVED),
    (PENDING, REJECTED),
    (UNDER_REVIEW, APPROVED),
    (UNDER_REVIEW, REJECTED),
    (ADDITIONAL_INFO_REQUESTED, APPROVED),
    (ADDITIONAL_INFO_REQUESTED, REJECTED),
    # Withdraw from any open state
    (PENDING, WITHDRAWN),
    (UNDER_REVIEW, WITHDRAWN),
    (ADDITIONAL_INFO_REQUESTED, WITHDRAWN),
}


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def ensure_open(request: MembershipRequest) -> None:
    if is_terminal(request.status):
        raise RequestClosed(f"Request {request.request_number} has already been {request.status.lower()}")


def check_transition(current: str, target: str, *, via: str = VIA_MANUAL) -> None:
    if is_terminal(current):
        raise RequestClosed(f"Cannot leave terminal status {current}")
    if via == VIA_MANUAL and target not in MANUAL_TARGETS:
        raise InvalidTransition(f"{target} can only be reached through board voting or an admin override")
    if via == VIA_OVERRIDE and current not in OVERRIDABLE_STATUSES:
        raise InvalidTransition(f"Override is not available while the request is {current}")
    if via in (VIA_VOTE, VIA_OVERRIDE) and target not in DECISION_STATUSES:
        raise InvalidTransition(f"{via} cannot move a request to {target}")
    if (current, target) not in _TRANSITIONS:
        raise InvalidTransition(f"Illegal transition: {current} → {target}")


def apply_transition(
    db: Session,
    request: MembershipRequest,
    target: str,
    *,
    via: str = VIA_MANUAL,
    actor_id: int | None = None,
    notes: str | None = None,
    values: dict[str, Any] | None = None,
) -> str:
    """Move *request* to *target* and record the change. Returns the previous status.

    The update only matches while the row still holds the status this session
    read; if another writer got there first the move fails with RequestClosed.
    """

    previous = request.status
    check_transition(previous, target, via=via)

    db.flush()
    changes: dict[str, Any] = {"status": target, "updated_at": datetime.utcnow()}
    if values:
        changes.update(values)
    result = db.execute(
        update(MembershipRequest)
        .where(MembershipRequest.id == request.id, MembershipRequest.status == previous)
        .values(**changes)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.refresh(request)
        logger.warning(
            "membership_request_transition_lost",
            extra={"request_id": request.id, "expected": previous, "actual": request.status, "target": target},
        )
        raise RequestClosed(
            f"Request {request.request_number} changed from {previous} to {request.status} concurrently"
        )
    db.refresh(request)

    audit_trail.append_entry(
        db,
        request,
        from_status=previous,
        to_status=target,
        changed_by_id=actor_id,
        notes=notes,
    )
    logger.info(
        "membership_request_status_changed",
        extra={"request_id": request.id, "from_status": previous, "to_status": target, "via": via, "actor_id": actor_id},
    )
    return previous
