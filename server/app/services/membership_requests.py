from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Query, Session

from app.core.config import settings
from app.models.membership_request import MembershipRequest
from app.models.user import User
from app.schemas.membership_request import (
    StatusHistoryOut,
    UserSummary,
    VoteOut,
    VoteStatusOut,
    VoteTallyOut,
)
from app.services import audit_trail, request_state, threshold_policy, vote_ledger
from app.services.approval_policy import BoardRosterProvider, resolve_policy
from app.services.membership_errors import PolicyMisconfigured, RequestNotFound
from app.services.notifications import NotificationGateway
from app.services.threshold_policy import VoteTally

logger = logging.getLogger(__name__)


def get_request(db: Session, request_id: int) -> MembershipRequest:
    request = (
        db.query(MembershipRequest)
        .filter(MembershipRequest.id == request_id, MembershipRequest.deleted_at.is_(None))
        .first()
    )
    if request is None:
        raise RequestNotFound("Membership request not found")
    return request


def build_requests_query(db: Session, *, status_filter: str | None = None) -> Query:
    query: Query = db.query(MembershipRequest).filter(MembershipRequest.deleted_at.is_(None))
    if status_filter:
        query = query.filter(MembershipRequest.status == status_filter)
    return query


def list_requests(
    db: Session,
    *,
    status_filter: str | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[MembershipRequest], int]:
    query = build_requests_query(db, status_filter=status_filter)
    total = query.count()
    items = (
        query.order_by(MembershipRequest.created_at.desc(), MembershipRequest.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return items, total


def _users_by_id(db: Session, user_ids) -> dict[int, User]:
    ids = list(user_ids)
    if not ids:
        return {}
    return {user.id: user for user in db.query(User).filter(User.id.in_(ids)).all()}


def tally_out(tally: VoteTally, kind_label: str, required: int | None) -> VoteTallyOut:
    return VoteTallyOut(
        approvals=tally.approvals,
        rejections=tally.rejections,
        abstentions=tally.abstentions,
        total=tally.total,
        eligible_voters=tally.eligible_voters,
        threshold=kind_label,
        approvals_required=required,
    )


def vote_status(
    db: Session,
    request_id: int,
    *,
    viewer: User,
    roster: BoardRosterProvider | None = None,
) -> VoteStatusOut:
    """Votes cast so far, the live tally and who still has to vote."""

    request = get_request(db, request_id)
    roster = roster or BoardRosterProvider()
    policy = resolve_policy(db, request, roster)
    eligible = policy.eligible_voters

    try:
        required = threshold_policy.approvals_required(policy.kind, len(eligible))
        description = policy.description
    except PolicyMisconfigured as exc:
        required = None
        description = str(exc)

    votes = vote_ledger.votes_for(db, request.id)
    tally = vote_ledger.tally(db, request.id, eligible)
    users = _users_by_id(db, set(eligible) | {vote.voter_id for vote in votes})
    own_vote = next((vote for vote in votes if vote.voter_id == viewer.id), None)

    return VoteStatusOut(
        approval_system=request.approval_system,
        status=request.status,
        policy_description=description,
        votes=[VoteOut.from_orm(vote) for vote in votes],
        vote_counts=tally_out(tally, policy.kind.value, required),
        current_user_vote=VoteOut.from_orm(own_vote) if own_vote else None,
        has_voted=own_vote is not None,
        pending_voters=[
            UserSummary.from_orm(users[voter_id])
            for voter_id in vote_ledger.pending_voters(db, request.id, eligible)
            if voter_id in users
        ],
        eligible_voters=[UserSummary.from_orm(users[voter_id]) for voter_id in sorted(eligible) if voter_id in users],
    )


def history(db: Session, request_id: int) -> list[StatusHistoryOut]:
    request = get_request(db, request_id)
    entries = audit_trail.list_entries(db, request.id)
    actors = _users_by_id(db, {entry.changed_by_id for entry in entries if entry.changed_by_id})
    return [
        StatusHistoryOut(
            id=entry.id,
            request_id=entry.request_id,
            from_status=entry.from_status,
            to_status=entry.to_status,
            changed_by_id=entry.changed_by_id,
            changed_at=entry.changed_at,
            notes=entry.notes,
            kind=audit_trail.classify(entry).value,
            changed_by=UserSummary.from_orm(actors[entry.changed_by_id])
            if entry.changed_by_id in actors
            else None,
        )
        for entry in entries
    ]


def send_vote_reminders(
    db: Session,
    *,
    older_than_days: int | None = None,
    roster: BoardRosterProvider | None = None,
    notifier: NotificationGateway | None = None,
    now: datetime | None = None,
) -> list[int]:
    """Remind board members about open requests they have not voted on.

    Returns the ids of the requests a reminder went out for.
    """

    roster = roster or BoardRosterProvider()
    notifier = notifier or NotificationGateway()
    days = settings.VOTE_REMINDER_AFTER_DAYS if older_than_days is None else older_than_days
    cutoff = (now or datetime.utcnow()) - timedelta(days=days)

    stale = (
        db.query(MembershipRequest)
        .filter(
            MembershipRequest.deleted_at.is_(None),
            MembershipRequest.approval_system == "MULTI_BOARD",
            MembershipRequest.status.in_(sorted(request_state.OPEN_STATUSES)),
            MembershipRequest.created_at <= cutoff,
        )
        .order_by(MembershipRequest.created_at.asc())
        .all()
    )

    reminded: list[int] = []
    for request in stale:
        try:
            policy = resolve_policy(db, request, roster)
            waiting = vote_ledger.pending_voters(db, request.id, policy.eligible_voters)
            if not waiting:
                continue
            voters = db.query(User).filter(User.id.in_(waiting)).order_by(User.id.asc()).all()
            notifier.notify_board_vote_reminder(request, voters, policy.description)
        except Exception:
            logger.exception("membership_vote_reminder_failed", extra={"request_id": request.id})
            continue
        reminded.append(request.id)

    logger.info(
        "membership_vote_reminder_digest",
        extra={"candidates": len(stale), "reminded": len(reminded), "request_ids": reminded},
    )
    return reminded
