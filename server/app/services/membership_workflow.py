"""Approval workflow for membership requests.

:class:`ApprovalWorkflow` is the only place that changes a request's outcome.
A vote is recorded, the tally is recomputed from the ledger and handed to the
threshold policy, and a decisive result moves the request to APPROVED or
REJECTED in the same transaction as the vote. Approval also creates the member;
if that fails the status change is undone while the vote is kept.

Admin overrides skip the threshold policy and are recorded with their own
timeline note so they can always be told apart from board decisions.
Notifications go out after commit and never undo a state change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.board_vote import BoardVote
from app.models.member import Member
from app.models.membership_request import MembershipRequest
from app.models.user import User
from app.schemas.membership_request import MembershipRequestCreate, MembershipRequestUpdate
from app.services import audit_trail, request_state, threshold_policy, vote_ledger
from app.services.approval_policy import BoardRosterProvider, resolve_policy, threshold_kind_for
from app.services.member_registry import MemberRegistry, member_exists_with_email
from app.services.membership_errors import (
    DeleteBlocked,
    DuplicateApplication,
    InvalidTransition,
    MemberCreationFailed,
    MembershipWorkflowError,
    NotEligible,
    NotificationFailed,
    PolicyMisconfigured,
    RequestClosed,
    RequestNotFound,
)
from app.services.notifications import NotificationGateway
from app.services.threshold_policy import Outcome, ThresholdKind, VoteTally

logger = logging.getLogger(__name__)

DUPLICATE_BLOCKING_STATUSES = ("PENDING", "UNDER_REVIEW", "ADDITIONAL_INFO_REQUESTED", "APPROVED")
REQUEST_NUMBER_ATTEMPTS = 3

_OUTCOME_EMAIL_LABELS = {
    request_state.APPROVED: "Approval",
    request_state.REJECTED: "Rejection",
}


@dataclass
class VoteResult:
    request: MembershipRequest
    vote: BoardVote
    tally: VoteTally
    kind: ThresholdKind
    outcome: Outcome
    created_member: Optional[Member] = None

    @property
    def threshold_met(self) -> bool:
        return self.outcome is not Outcome.PENDING

    @property
    def approvals_required(self) -> int:
        return threshold_policy.approvals_required(self.kind, self.tally.eligible_voters)


def generate_request_number(db: Session, year: int | None = None) -> str:
    year = year or date.today().year
    prefix = f"{settings.REQUEST_NUMBER_PREFIX}-{year}-"
    last = (
        db.query(MembershipRequest.request_number)
        .filter(MembershipRequest.request_number.like(f"{prefix}%"))
        .order_by(MembershipRequest.request_number.desc())
        .first()
    )
    next_number = 1
    if last and last[0]:
        try:
            next_number = int(last[0].split("-")[-1]) + 1
        except ValueError:
            next_number = 1
    return f"{prefix}{next_number:03d}"


class ApprovalWorkflow:
    def __init__(
        self,
        roster: BoardRosterProvider | None = None,
        registry: MemberRegistry | None = None,
        notifier: NotificationGateway | None = None,
    ) -> None:
        self.roster = roster or BoardRosterProvider()
        self.registry = registry or MemberRegistry()
        self.notifier = notifier or NotificationGateway()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load_for_update(self, db: Session, request_id: int) -> MembershipRequest:
        request = (
            db.query(MembershipRequest)
            .filter(MembershipRequest.id == request_id, MembershipRequest.deleted_at.is_(None))
            .populate_existing()
            .with_for_update()
            .first()
        )
        if request is None:
            raise RequestNotFound("Membership request not found")
        return request

    def _ensure_admin(self, actor: User) -> None:
        if not actor.is_active or not actor.has_any_role(*settings.ADMIN_ROLES):
            raise NotEligible("Admin privileges are required to override a membership decision")

    # ------------------------------------------------------------------
    # Notifications (best effort, after commit)
    # ------------------------------------------------------------------

    def _deliver(
        self,
        db: Session,
        request: MembershipRequest,
        label: str,
        send: Callable[[], list[str]],
        *,
        resent: bool = False,
        actor_id: int | None = None,
    ) -> list[str] | None:
        try:
            recipients = send()
        except Exception:
            logger.exception(
                "membership_notification_failed",
                extra={"request_id": request.id, "notification": label},
            )
            return None
        if recipients:
            audit_trail.append_entry(
                db,
                request,
                from_status=request.status,
                to_status=request.status,
                changed_by_id=actor_id,
                notes=audit_trail.email_note(label, ", ".join(recipients), resent=resent),
            )
            db.commit()
        return recipients

    def _notify_board_once(self, db: Session, request: MembershipRequest) -> None:
        if request.board_notified_at is not None or request_state.is_terminal(request.status):
            return
        try:
            policy = resolve_policy(db, request, self.roster)
            description = policy.description
        except PolicyMisconfigured:
            logger.warning(
                "membership_board_notification_skipped",
                extra={"request_id": request.id, "reason": "policy_misconfigured"},
            )
            return
        voters = (
            db.query(User).filter(User.id.in_(policy.eligible_voters)).order_by(User.id.asc()).all()
            if policy.eligible_voters
            else []
        )
        recipients = self._deliver(
            db,
            request,
            "Board vote request",
            lambda: self.notifier.notify_board_vote_required(request, voters, description),
        )
        if recipients is not None:
            request.board_notified_at = datetime.utcnow()
            db.commit()

    def _notify_outcome(self, db: Session, request: MembershipRequest) -> None:
        label = _OUTCOME_EMAIL_LABELS.get(request.status)
        if label is None:
            return
        self._deliver(
            db,
            request,
            label,
            lambda: self.notifier.notify_applicant_outcome(request, request.status),
        )

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(
        self,
        db: Session,
        payload: MembershipRequestCreate,
        *,
        approval_system: str = "MULTI_BOARD",
        designated_approver_id: int | None = None,
    ) -> MembershipRequest:
        email = payload.email.strip().lower()
        existing = (
            db.query(MembershipRequest.id)
            .filter(
                func.lower(MembershipRequest.email) == email,
                MembershipRequest.status.in_(DUPLICATE_BLOCKING_STATUSES),
                MembershipRequest.deleted_at.is_(None),
            )
            .first()
        )
        if existing:
            raise DuplicateApplication(
                "An application with this email address already exists. "
                "Please contact us if you need to update your application."
            )
        if member_exists_with_email(db, email):
            raise DuplicateApplication(
                "This email address is already registered as a member. Please contact us if you need assistance."
            )

        data = payload.dict()
        data["email"] = email
        data["country"] = (payload.country or "").strip() or settings.DEFAULT_COUNTRY

        request: MembershipRequest | None = None
        for attempt in range(1, REQUEST_NUMBER_ATTEMPTS + 1):
            candidate = MembershipRequest(
                **data,
                request_number=generate_request_number(db),
                approval_system=approval_system,
                designated_approver_id=designated_approver_id,
                status=request_state.PENDING,
            )
            try:
                with db.begin_nested():
                    db.add(candidate)
            except IntegrityError:
                logger.warning("membership_request_number_collision", extra={"attempt": attempt})
                continue
            request = candidate
            break
        if request is None:
            db.rollback()
            raise MembershipWorkflowError("Could not allocate a request number, please retry")

        try:
            kind_label = threshold_kind_for(db, request).value
        except PolicyMisconfigured:
            logger.warning("membership_request_threshold_unknown", extra={"request_id": request.id})
            kind_label = "UNKNOWN"
        audit_trail.append_entry(
            db,
            request,
            from_status=None,
            to_status=request.status,
            notes=audit_trail.submission_note(request.approval_system, kind_label, self.roster.board_size(db)),
        )
        db.commit()
        db.refresh(request)
        logger.info(
            "membership_request_submitted",
            extra={
                "request_id": request.id,
                "request_number": request.request_number,
                "approval_system": request.approval_system,
                "threshold": kind_label,
            },
        )

        self._deliver(db, request, "Welcome", lambda: self.notifier.notify_applicant_received(request))
        self._notify_board_once(db, request)
        return request

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def _decide(
        self,
        db: Session,
        request: MembershipRequest,
        target: str,
        *,
        via: str,
        actor_id: int | None,
        notes: str,
        values: dict | None = None,
    ) -> Member | None:
        request_state.check_transition(request.status, target, via=via)
        decision_values = {"decided_by_id": actor_id, "decided_at": datetime.utcnow()}
        if values:
            decision_values.update(values)

        if target == request_state.REJECTED:
            request_state.apply_transition(
                db, request, target, via=via, actor_id=actor_id, notes=notes, values=decision_values
            )
            return None

        savepoint = db.begin_nested()
        try:
            request_state.apply_transition(
                db, request, target, via=via, actor_id=actor_id, notes=notes, values=decision_values
            )
            member = self.registry.create_member(db, request, actor_id=actor_id)
            request.created_member_id = member.id
            db.flush()
        except MemberCreationFailed:
            savepoint.rollback()
            db.refresh(request)
            raise
        except RequestClosed:
            savepoint.rollback()
            raise
        except SQLAlchemyError as exc:
            savepoint.rollback()
            db.refresh(request)
            raise MemberCreationFailed(f"Could not create member for request {request.request_number}") from exc
        except Exception as exc:
            savepoint.rollback()
            db.refresh(request)
            raise MemberCreationFailed(f"Member registry failed for request {request.request_number}: {exc}") from exc
        savepoint.commit()
        return member

    def _record_member_failure(self, db: Session, request: MembershipRequest, exc: MemberCreationFailed) -> None:
        audit_trail.append_entry(
            db,
            request,
            from_status=request.status,
            to_status=request.status,
            notes=audit_trail.member_failure_note(str(exc)),
        )
        db.commit()
        logger.warning(
            "membership_approval_rolled_back",
            extra={"request_id": request.id, "status": request.status, "reason": str(exc)},
        )

    def cast_vote(
        self,
        db: Session,
        request_id: int,
        *,
        voter_id: int,
        choice: str,
        notes: str | None = None,
    ) -> VoteResult:
        request = self._load_for_update(db, request_id)
        request_state.ensure_open(request)
        policy = resolve_policy(db, request, self.roster)
        threshold_policy.approvals_required(policy.kind, len(policy.eligible_voters))

        vote = vote_ledger.cast_vote(
            db,
            request,
            voter_id=voter_id,
            choice=choice,
            notes=notes,
            eligible_voters=policy.eligible_voters,
        )
        audit_trail.append_entry(
            db,
            request,
            from_status=request.status,
            to_status=request.status,
            changed_by_id=voter_id,
            notes=audit_trail.vote_note(choice, notes),
        )

        tally = vote_ledger.tally(db, request.id, policy.eligible_voters)
        outcome = threshold_policy.evaluate(policy.kind, tally)
        created_member: Member | None = None

        if outcome is not Outcome.PENDING:
            target = request_state.APPROVED if outcome is Outcome.APPROVED else request_state.REJECTED
            values = None
            if outcome is Outcome.REJECTED:
                values = {"rejection_reason": f"Rejected by board vote ({tally.rejections} rejections)"}
            note = audit_trail.threshold_note(
                target,
                kind=policy.kind.value,
                approvals=tally.approvals,
                rejections=tally.rejections,
                abstentions=tally.abstentions,
                eligible=tally.eligible_voters,
            )
            try:
                created_member = self._decide(
                    db, request, target, via=request_state.VIA_VOTE, actor_id=None, notes=note, values=values
                )
            except RequestClosed:
                db.rollback()
                raise
            except MemberCreationFailed as exc:
                self._record_member_failure(db, request, exc)
                raise

        db.commit()
        db.refresh(request)
        logger.info(
            "membership_vote_evaluated",
            extra={
                "request_id": request.id,
                "voter_id": voter_id,
                "threshold": policy.kind.value,
                "approvals": tally.approvals,
                "rejections": tally.rejections,
                "abstentions": tally.abstentions,
                "eligible_voters": tally.eligible_voters,
                "outcome": outcome.value,
            },
        )
        if outcome is not Outcome.PENDING:
            self._notify_outcome(db, request)

        return VoteResult(
            request=request,
            vote=vote,
            tally=tally,
            kind=policy.kind,
            outcome=outcome,
            created_member=created_member,
        )

    def override_approve(
        self,
        db: Session,
        request_id: int,
        *,
        admin: User,
        notes: str | None = None,
    ) -> MembershipRequest:
        self._ensure_admin(admin)
        request = self._load_for_update(db, request_id)
        request_state.ensure_open(request)
        values = {"admin_notes": notes} if notes else None
        try:
            self._decide(
                db,
                request,
                request_state.APPROVED,
                via=request_state.VIA_OVERRIDE,
                actor_id=admin.id,
                notes=audit_trail.override_note(request_state.APPROVED, notes),
                values=values,
            )
        except RequestClosed:
            db.rollback()
            raise
        except MemberCreationFailed as exc:
            self._record_member_failure(db, request, exc)
            raise
        db.commit()
        db.refresh(request)
        logger.info(
            "membership_request_override",
            extra={"request_id": request.id, "admin_id": admin.id, "outcome": request_state.APPROVED},
        )
        self._notify_outcome(db, request)
        return request

    def override_reject(
        self,
        db: Session,
        request_id: int,
        *,
        admin: User,
        reason: str,
    ) -> MembershipRequest:
        self._ensure_admin(admin)
        request = self._load_for_update(db, request_id)
        request_state.ensure_open(request)
        try:
            self._decide(
                db,
                request,
                request_state.REJECTED,
                via=request_state.VIA_OVERRIDE,
                actor_id=admin.id,
                notes=audit_trail.override_note(request_state.REJECTED, reason),
                values={"rejection_reason": reason},
            )
        except RequestClosed:
            db.rollback()
            raise
        db.commit()
        db.refresh(request)
        logger.info(
            "membership_request_override",
            extra={"request_id": request.id, "admin_id": admin.id, "outcome": request_state.REJECTED},
        )
        self._notify_outcome(db, request)
        return request

    # ------------------------------------------------------------------
    # Reviewer edits
    # ------------------------------------------------------------------

    def update_request(
        self,
        db: Session,
        request_id: int,
        payload: MembershipRequestUpdate,
        *,
        actor: User,
    ) -> MembershipRequest:
        request = self._load_for_update(db, request_id)
        request_state.ensure_open(request)
        fields = payload.dict(exclude_unset=True)

        if "approval_system" in fields or "designated_approver_id" in fields:
            if db.query(BoardVote.id).filter(BoardVote.request_id == request.id).first():
                raise InvalidTransition("The approval system cannot change once voting has started")
            if fields.get("approval_system"):
                request.approval_system = fields["approval_system"]
            if "designated_approver_id" in fields:
                approver_id = fields["designated_approver_id"]
                if approver_id is not None and db.get(User, approver_id) is None:
                    raise RequestNotFound("Designated approver not found")
                request.designated_approver_id = approver_id

        if "admin_notes" in fields:
            request.admin_notes = fields["admin_notes"]

        target = fields.get("status")
        if target and target != request.status:
            values = {}
            if request.status == request_state.PENDING and request.reviewed_by_id is None:
                values = {"reviewed_by_id": actor.id, "reviewed_at": datetime.utcnow()}
            request_state.apply_transition(
                db,
                request,
                target,
                via=request_state.VIA_MANUAL,
                actor_id=actor.id,
                notes=fields.get("admin_notes"),
                values=values,
            )

        db.commit()
        db.refresh(request)
        self._notify_board_once(db, request)
        return request

    def delete_request(self, db: Session, request_id: int, *, actor: User) -> None:
        request = self._load_for_update(db, request_id)
        if request.created_member_id is not None:
            raise DeleteBlocked(
                f"Request {request.request_number} produced member #{request.created_member_id} and cannot be deleted"
            )
        request.deleted_at = datetime.utcnow()
        audit_trail.append_entry(
            db,
            request,
            from_status=request.status,
            to_status=request.status,
            changed_by_id=actor.id,
            notes=audit_trail.DELETED_NOTE,
        )
        db.commit()
        logger.info("membership_request_deleted", extra={"request_id": request.id, "actor_id": actor.id})

    def resend_email(self, db: Session, request_id: int, email_type: str, *, actor: User) -> list[str]:
        request = self._load_for_update(db, request_id)
        if email_type == "approval":
            if request.status != request_state.APPROVED:
                raise InvalidTransition("Cannot send approval email - request is not approved")
            label = "Approval"
            send = lambda: self.notifier.notify_applicant_outcome(request, request.status)  # noqa: E731
        else:
            label = "Welcome"
            send = lambda: self.notifier.notify_applicant_received(request)  # noqa: E731

        recipients = self._deliver(db, request, label, send, resent=True, actor_id=actor.id)
        if recipients is None:
            raise NotificationFailed(f"Failed to send {label.lower()} email")
        return recipients


workflow = ApprovalWorkflow()


def get_workflow() -> ApprovalWorkflow:
    return workflow
