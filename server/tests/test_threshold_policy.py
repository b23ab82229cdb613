from __future__ import annotations

import pytest

from app.services.membership_errors import PolicyMisconfigured
from app.services.threshold_policy import (
    Outcome,
    ThresholdKind,
    VoteTally,
    approvals_required,
    describe,
    evaluate,
    parse_kind,
)


def tally(approvals: int = 0, rejections: int = 0, abstentions: int = 0, *, n: int) -> VoteTally:
    return VoteTally(approvals=approvals, rejections=rejections, abstentions=abstentions, eligible_voters=n)


@pytest.mark.parametrize(
    ("kind", "n", "expected"),
    [
        (ThresholdKind.UNANIMOUS, 3, 3),
        (ThresholdKind.MAJORITY, 5, 3),
        (ThresholdKind.MAJORITY, 4, 3),
        (ThresholdKind.SIMPLE_MAJORITY, 5, 3),
        (ThresholdKind.SIMPLE_MAJORITY, 4, 2),
        (ThresholdKind.ANY_TWO, 4, 2),
        (ThresholdKind.SINGLE, 1, 1),
    ],
)
def test_approvals_required(kind, n, expected):
    assert approvals_required(kind, n) == expected


def test_no_eligible_voters_is_misconfigured():
    with pytest.raises(PolicyMisconfigured):
        evaluate(ThresholdKind.MAJORITY, tally(n=0))


def test_any_two_needs_two_eligible_voters():
    with pytest.raises(PolicyMisconfigured):
        approvals_required(ThresholdKind.ANY_TWO, 1)


def test_unknown_threshold_name_is_misconfigured():
    with pytest.raises(PolicyMisconfigured):
        parse_kind("THREE_QUARTERS")
    assert parse_kind(" majority ") is ThresholdKind.MAJORITY


def test_unanimous_needs_every_voter():
    assert evaluate(ThresholdKind.UNANIMOUS, tally(2, n=3)) is Outcome.PENDING
    assert evaluate(ThresholdKind.UNANIMOUS, tally(3, n=3)) is Outcome.APPROVED


def test_unanimous_single_rejection_rejects_immediately():
    assert evaluate(ThresholdKind.UNANIMOUS, tally(0, 1, n=3)) is Outcome.REJECTED
    assert evaluate(ThresholdKind.UNANIMOUS, tally(2, 1, n=3)) is Outcome.REJECTED


def test_unanimous_abstention_keeps_request_pending():
    assert evaluate(ThresholdKind.UNANIMOUS, tally(2, 0, 1, n=3)) is Outcome.PENDING


def test_majority_of_five():
    assert evaluate(ThresholdKind.MAJORITY, tally(2, n=5)) is Outcome.PENDING
    assert evaluate(ThresholdKind.MAJORITY, tally(3, n=5)) is Outcome.APPROVED


def test_majority_rejects_once_approval_is_out_of_reach():
    # 3 of 5 needed; two approvals plus nothing outstanding cannot get there.
    assert evaluate(ThresholdKind.MAJORITY, tally(2, 2, 1, n=5)) is Outcome.REJECTED
    assert evaluate(ThresholdKind.MAJORITY, tally(0, 3, n=5)) is Outcome.REJECTED
    assert evaluate(ThresholdKind.MAJORITY, tally(1, 2, n=5)) is Outcome.PENDING


def test_simple_majority_accepts_exact_half_on_even_board():
    assert evaluate(ThresholdKind.SIMPLE_MAJORITY, tally(2, 0, n=4)) is Outcome.APPROVED
    assert evaluate(ThresholdKind.MAJORITY, tally(2, 0, n=4)) is Outcome.PENDING


def test_any_two_on_board_of_four():
    assert evaluate(ThresholdKind.ANY_TWO, tally(1, n=4)) is Outcome.PENDING
    assert evaluate(ThresholdKind.ANY_TWO, tally(2, 1, n=4)) is Outcome.APPROVED
    assert evaluate(ThresholdKind.ANY_TWO, tally(1, 3, n=4)) is Outcome.REJECTED
    assert evaluate(ThresholdKind.ANY_TWO, tally(0, 3, n=4)) is Outcome.REJECTED


def test_single_approver():
    assert evaluate(ThresholdKind.SINGLE, tally(n=1)) is Outcome.PENDING
    assert evaluate(ThresholdKind.SINGLE, tally(1, n=1)) is Outcome.APPROVED
    assert evaluate(ThresholdKind.SINGLE, tally(0, 1, n=1)) is Outcome.REJECTED


def test_describe_mentions_required_approvals():
    assert describe(ThresholdKind.MAJORITY, 5) == "Majority (3 of 5 approvals required)"
    assert describe(ThresholdKind.UNANIMOUS, 0) == "Unanimous (no eligible voters)"
