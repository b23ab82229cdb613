from __future__ import annotations

import pytest

from app.models.board_vote import BoardVote
from app.services import vote_ledger
from app.services.membership_errors import AlreadyVoted, NotEligible, RequestClosed
from app.services.threshold_policy import Outcome, ThresholdKind, evaluate


def test_duplicate_vote_is_refused_and_first_vote_kept(db_session, board, submit_request):
    members = board(3)
    request = submit_request()
    eligible = {member.id for member in members}

    vote_ledger.cast_vote(db_session, request, voter_id=members[0].id, choice="APPROVE", notes=None, eligible_voters=eligible)
    db_session.commit()

    with pytest.raises(AlreadyVoted):
        vote_ledger.cast_vote(
            db_session, request, voter_id=members[0].id, choice="REJECT", notes="retry", eligible_voters=eligible
        )
    db_session.rollback()

    votes = db_session.query(BoardVote).filter(BoardVote.request_id == request.id).all()
    assert [(vote.voter_id, vote.choice) for vote in votes] == [(members[0].id, "APPROVE")]


def test_voter_outside_roster_is_not_eligible(db_session, board, make_user, submit_request):
    members = board(2)
    stranger = make_user("stranger@example.com")
    request = submit_request()

    with pytest.raises(NotEligible):
        vote_ledger.cast_vote(
            db_session,
            request,
            voter_id=stranger.id,
            choice="APPROVE",
            notes=None,
            eligible_voters={member.id for member in members},
        )


def test_closed_request_takes_no_votes(db_session, board, submit_request):
    members = board(1)
    request = submit_request()
    request.status = "WITHDRAWN"
    db_session.commit()

    with pytest.raises(RequestClosed):
        vote_ledger.cast_vote(
            db_session, request, voter_id=members[0].id, choice="APPROVE", notes=None, eligible_voters={members[0].id}
        )


def test_tally_ignores_voters_no_longer_on_roster(db_session, board, submit_request):
    members = board(3)
    request = submit_request()
    everyone = {member.id for member in members}
    vote_ledger.cast_vote(db_session, request, voter_id=members[0].id, choice="APPROVE", notes=None, eligible_voters=everyone)
    vote_ledger.cast_vote(db_session, request, voter_id=members[1].id, choice="REJECT", notes=None, eligible_voters=everyone)
    db_session.commit()

    full = vote_ledger.tally(db_session, request.id, everyone)
    assert (full.approvals, full.rejections, full.eligible_voters) == (1, 1, 3)

    remaining = everyone - {members[1].id}
    reduced = vote_ledger.tally(db_session, request.id, remaining)
    assert (reduced.approvals, reduced.rejections, reduced.eligible_voters) == (1, 0, 2)
    assert vote_ledger.pending_voters(db_session, request.id, remaining) == [members[2].id]


def test_tally_does_not_depend_on_vote_order(db_session, board, submit_request):
    members = board(5)
    eligible = {member.id for member in members}
    ballots = list(zip(members, ["APPROVE", "REJECT", "ABSTAIN", "APPROVE", "APPROVE"]))
    orders = [ballots, list(reversed(ballots)), ballots[2:] + ballots[:2], ballots[1::2] + ballots[::2]]

    results = set()
    for index, order in enumerate(orders):
        request = submit_request(email=f"applicant{index}@example.com")
        for voter, choice in order:
            vote_ledger.cast_vote(
                db_session, request, voter_id=voter.id, choice=choice, notes=None, eligible_voters=eligible
            )
        db_session.commit()
        tally = vote_ledger.tally(db_session, request.id, eligible)
        results.add((tally, evaluate(ThresholdKind.MAJORITY, tally)))

    assert len(results) == 1
    tally, outcome = results.pop()
    assert (tally.approvals, tally.rejections, tally.abstentions) == (3, 1, 1)
    assert outcome is Outcome.APPROVED
