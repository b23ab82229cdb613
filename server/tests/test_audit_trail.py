from __future__ import annotations

from app.models.membership_request_history import MembershipRequestStatusHistory
from app.services import audit_trail
from app.services.audit_trail import EntryKind


def _entry(notes: str | None, from_status: str | None = "PENDING", to_status: str = "PENDING"):
    return MembershipRequestStatusHistory(request_id=1, from_status=from_status, to_status=to_status, notes=notes)


def test_vote_note_keeps_choice_and_comment():
    note = audit_trail.vote_note("APPROVE", "Known volunteer")
    assert note == "Board vote: APPROVE - Known volunteer"
    parsed = audit_trail.parse_vote_note(note)
    assert parsed.choice == "APPROVE"
    assert parsed.notes == "Known volunteer"
    assert audit_trail.parse_vote_note("Board vote: ABSTAIN").notes is None


def test_email_notes_parse_back():
    parsed = audit_trail.parse_email_note(audit_trail.email_note("Approval", "a@example.com", resent=True))
    assert parsed.label == "Approval"
    assert parsed.resent is True
    assert parsed.recipient == "a@example.com"
    assert audit_trail.parse_email_note("Status updated") is None


def test_override_note_is_distinct_from_board_decision():
    override = _entry(audit_trail.override_note("APPROVED", "Urgent"), to_status="APPROVED")
    threshold = _entry(
        audit_trail.threshold_note("APPROVED", kind="MAJORITY", approvals=3, rejections=0, abstentions=0, eligible=5),
        to_status="APPROVED",
    )
    assert audit_trail.classify(override) is EntryKind.OVERRIDE
    assert audit_trail.classify(threshold) is EntryKind.THRESHOLD


def test_classify_other_entries():
    submitted = _entry(audit_trail.submission_note("MULTI_BOARD", "MAJORITY", 5), from_status=None)
    assert audit_trail.classify(submitted) is EntryKind.SUBMITTED
    assert audit_trail.classify(_entry("Board vote: REJECT")) is EntryKind.VOTE
    assert audit_trail.classify(_entry("Welcome email sent to a@example.com")) is EntryKind.NOTIFICATION
    assert audit_trail.classify(_entry(audit_trail.member_failure_note("boom"))) is EntryKind.MEMBER_CREATION_FAILED
    assert audit_trail.classify(_entry(audit_trail.DELETED_NOTE)) is EntryKind.DELETED
    assert audit_trail.classify(_entry(None, from_status="PENDING", to_status="UNDER_REVIEW")) is EntryKind.STATUS_CHANGE
