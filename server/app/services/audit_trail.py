"""Membership request timeline.

Entries are stored as free-text notes so existing timeline views keep working.
Every note is built and parsed here; nothing else in the code base should match
on note text.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.models.membership_request import MembershipRequest
from app.models.membership_request_history import MembershipRequestStatusHistory

VOTE_PREFIX = "Board vote: "
OVERRIDE_PREFIX = "Admin override: "
THRESHOLD_PREFIX = "Threshold met: "
SUBMITTED_PREFIX = "Request submitted"
MEMBER_FAILURE_PREFIX = "Member creation failed: "
DELETED_NOTE = "Request deleted"

_EMAIL_RE = re.compile(r"^(?P<label>.+?) email (?P<verb>sent|resent) to (?P<recipient>.+)$")


class EntryKind(str, enum.Enum):
    SUBMITTED = "submitted"
    STATUS_CHANGE = "status_change"
    VOTE = "vote"
    THRESHOLD = "threshold"
    OVERRIDE = "override"
    NOTIFICATION = "notification"
    MEMBER_CREATION_FAILED = "member_creation_failed"
    DELETED = "deleted"


@dataclass(frozen=True)
class VoteNote:
    choice: str
    notes: Optional[str]


@dataclass(frozen=True)
class EmailNote:
    label: str
    resent: bool
    recipient: str


def vote_note(choice: str, notes: str | None = None) -> str:
    text = f"{VOTE_PREFIX}{choice}"
    if notes:
        text += f" - {notes}"
    return text


def email_note(label: str, recipient: str, *, resent: bool = False) -> str:
    verb = "resent" if resent else "sent"
    return f"{label} email {verb} to {recipient}"


def override_note(outcome: str, notes: str | None = None) -> str:
    text = f"{OVERRIDE_PREFIX}{outcome}"
    if notes:
        text += f" - {notes}"
    return text


def threshold_note(outcome: str, *, kind: str, approvals: int, rejections: int, abstentions: int, eligible: int) -> str:
    verb = "approved" if outcome == "APPROVED" else "rejected"
    return (
        f"{THRESHOLD_PREFIX}{verb} by board vote "
        f"({approvals} approve, {rejections} reject, {abstentions} abstain "
        f"of {eligible} eligible; policy {kind})"
    )


def submission_note(approval_system: str, kind: str, board_size: int) -> str:
    return f"{SUBMITTED_PREFIX} (approval system {approval_system}, policy {kind}, board size {board_size})"


def member_failure_note(reason: str) -> str:
    return f"{MEMBER_FAILURE_PREFIX}{reason}"


def parse_vote_note(notes: str | None) -> VoteNote | None:
    if not notes or not notes.startswith(VOTE_PREFIX):
        return None
    body = notes[len(VOTE_PREFIX):]
    choice, _, extra = body.partition(" - ")
    return VoteNote(choice=choice.strip(), notes=extra or None)


def parse_email_note(notes: str | None) -> EmailNote | None:
    if not notes:
        return None
    match = _EMAIL_RE.match(notes)
    if not match:
        return None
    return EmailNote(
        label=match.group("label"),
        resent=match.group("verb") == "resent",
        recipient=match.group("recipient"),
    )


def is_override(notes: str | None) -> bool:
    return bool(notes and notes.startswith(OVERRIDE_PREFIX))


def classify(entry: MembershipRequestStatusHistory) -> EntryKind:
    notes = entry.notes
    if entry.from_status is None and notes and notes.startswith(SUBMITTED_PREFIX):
        return EntryKind.SUBMITTED
    if parse_vote_note(notes):
        return EntryKind.VOTE
    if is_override(notes):
        return EntryKind.OVERRIDE
    if notes and notes.startswith(THRESHOLD_PREFIX):
        return EntryKind.THRESHOLD
    if parse_email_note(notes):
        return EntryKind.NOTIFICATION
    if notes and notes.startswith(MEMBER_FAILURE_PREFIX):
        return EntryKind.MEMBER_CREATION_FAILED
    if notes == DELETED_NOTE:
        return EntryKind.DELETED
    return EntryKind.STATUS_CHANGE


def append_entry(
    db: Session,
    request: MembershipRequest,
    *,
    from_status: str | None,
    to_status: str,
    changed_by_id: int | None = None,
    notes: str | None = None,
    changed_at: datetime | None = None,
) -> MembershipRequestStatusHistory:
    entry = MembershipRequestStatusHistory(
        request_id=request.id,
        from_status=from_status,
        to_status=to_status,
        changed_by_id=changed_by_id,
        changed_at=changed_at or datetime.utcnow(),
        notes=notes,
    )
    db.add(entry)
    db.flush()
    return entry


def list_entries(db: Session, request_id: int) -> list[MembershipRequestStatusHistory]:
    """Timeline for one request, newest first."""

    return (
        db.query(MembershipRequestStatusHistory)
        .filter(MembershipRequestStatusHistory.request_id == request_id)
        .order_by(MembershipRequestStatusHistory.changed_at.desc(), MembershipRequestStatusHistory.id.desc())
        .all()
    )
