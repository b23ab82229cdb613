"""Board votes on membership requests.

One vote per (request, voter). The unique constraint on
``membership_request_votes`` is what enforces it; the insert runs inside a
savepoint so a duplicate only undoes itself, never the caller's transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.board_vote import VOTE_CHOICES, BoardVote
from app.models.membership_request import MembershipRequest
from app.services import request_state
from app.services.membership_errors import AlreadyVoted, NotEligible
from app.services.threshold_policy import VoteTally

logger = logging.getLogger(__name__)


def cast_vote(
    db: Session,
    request: MembershipRequest,
    *,
    voter_id: int,
    choice: str,
    notes: str | None,
    eligible_voters: Iterable[int],
) -> BoardVote:
    request_state.ensure_open(request)
    if choice not in VOTE_CHOICES:
        raise ValueError(f"Invalid vote. Must be one of {', '.join(VOTE_CHOICES)}")
    if voter_id not in set(eligible_voters):
        raise NotEligible(f"User {voter_id} is not eligible to vote on request {request.request_number}")

    vote = BoardVote(
        request_id=request.id,
        voter_id=voter_id,
        choice=choice,
        notes=notes or None,
        cast_at=datetime.utcnow(),
    )
    try:
        with db.begin_nested():
            db.add(vote)
    except IntegrityError as exc:
        logger.info(
            "membership_vote_duplicate",
            extra={"request_id": request.id, "voter_id": voter_id},
        )
        raise AlreadyVoted(f"User {voter_id} has already voted on request {request.request_number}") from exc

    logger.info(
        "membership_vote_cast",
        extra={"request_id": request.id, "voter_id": voter_id, "choice": choice},
    )
    return vote


def votes_for(db: Session, request_id: int) -> list[BoardVote]:
    return (
        db.query(BoardVote)
        .filter(BoardVote.request_id == request_id)
        .order_by(BoardVote.cast_at.asc(), BoardVote.id.asc())
        .all()
    )


def vote_of(db: Session, request_id: int, voter_id: int) -> BoardVote | None:
    return (
        db.query(BoardVote)
        .filter(BoardVote.request_id == request_id, BoardVote.voter_id == voter_id)
        .first()
    )


def has_voted(db: Session, request_id: int, voter_id: int) -> bool:
    return vote_of(db, request_id, voter_id) is not None


def tally(db: Session, request_id: int, eligible_voters: Iterable[int]) -> VoteTally:
    """Count stored votes from voters who are eligible right now.

    Recomputed from the table on every call. Votes from people who have since
    left the board are ignored.
    """

    eligible = set(eligible_voters)
    counts = {choice: 0 for choice in VOTE_CHOICES}
    for vote in votes_for(db, request_id):
        if vote.voter_id in eligible:
            counts[vote.choice] += 1
    return VoteTally(
        approvals=counts["APPROVE"],
        rejections=counts["REJECT"],
        abstentions=counts["ABSTAIN"],
        eligible_voters=len(eligible),
    )


def pending_voters(db: Session, request_id: int, eligible_voters: Iterable[int]) -> list[int]:
    voted = {vote.voter_id for vote in votes_for(db, request_id)}
    return sorted(set(eligible_voters) - voted)
