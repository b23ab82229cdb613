"""Quorum rules for board voting on membership requests.

Pure functions only: callers supply the tally, this module decides whether the
request is still pending, approved or rejected. Rejection is reached once the
approval condition can no longer be met by the votes still outstanding, so a
board full of abstentions cannot stall a request forever.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from app.services.membership_errors import PolicyMisconfigured


class ThresholdKind(str, enum.Enum):
    UNANIMOUS = "UNANIMOUS"
    MAJORITY = "MAJORITY"
    SIMPLE_MAJORITY = "SIMPLE_MAJORITY"
    ANY_TWO = "ANY_TWO"
    SINGLE = "SINGLE"


class Outcome(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


_LABELS = {
    ThresholdKind.UNANIMOUS: "Unanimous",
    ThresholdKind.MAJORITY: "Majority",
    ThresholdKind.SIMPLE_MAJORITY: "Simple majority",
    ThresholdKind.ANY_TWO: "Any two",
    ThresholdKind.SINGLE: "Single approver",
}


@dataclass(frozen=True)
class VoteTally:
    approvals: int
    rejections: int
    abstentions: int
    eligible_voters: int

    @property
    def total(self) -> int:
        return self.approvals + self.rejections + self.abstentions

    @property
    def outstanding(self) -> int:
        return max(self.eligible_voters - self.total, 0)


def parse_kind(value: str | ThresholdKind | None) -> ThresholdKind:
    if isinstance(value, ThresholdKind):
        return value
    try:
        return ThresholdKind((value or "").strip().upper())
    except ValueError as exc:
        raise PolicyMisconfigured(f"Unknown approval threshold: {value!r}") from exc


def approvals_required(kind: ThresholdKind, eligible_voters: int) -> int:
    """Number of approvals needed for *kind* with *eligible_voters* on the board."""

    if eligible_voters <= 0:
        raise PolicyMisconfigured("No eligible voters for this request")

    if kind is ThresholdKind.UNANIMOUS:
        required = eligible_voters
    elif kind is ThresholdKind.MAJORITY:
        required = eligible_voters // 2 + 1
    elif kind is ThresholdKind.SIMPLE_MAJORITY:
        required = (eligible_voters + 1) // 2
    elif kind is ThresholdKind.ANY_TWO:
        required = 2
    elif kind is ThresholdKind.SINGLE:
        required = 1
    else:
        raise PolicyMisconfigured(f"Unsupported approval threshold: {kind!r}")

    if required > eligible_voters:
        raise PolicyMisconfigured(
            f"{_LABELS[kind]} needs {required} approvals but only {eligible_voters} voters are eligible"
        )
    return required


def evaluate(kind: ThresholdKind, tally: VoteTally) -> Outcome:
    """Decide the request outcome from the current tally.

    Depends only on the counts in *tally*, never on the order votes arrived in.
    """

    required = approvals_required(kind, tally.eligible_voters)
    if tally.approvals >= required:
        return Outcome.APPROVED

    # A single rejection ends unanimous and single-approver requests.
    if kind in (ThresholdKind.UNANIMOUS, ThresholdKind.SINGLE):
        return Outcome.REJECTED if tally.rejections >= 1 else Outcome.PENDING

    if tally.approvals + tally.outstanding < required:
        return Outcome.REJECTED
    return Outcome.PENDING


def describe(kind: ThresholdKind, eligible_voters: int) -> str:
    label = _LABELS[kind]
    if eligible_voters <= 0:
        return f"{label} (no eligible voters)"
    required = approvals_required(kind, eligible_voters)
    return f"{label} ({required} of {eligible_voters} approvals required)"
