from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.auth.deps import get_current_user, require_roles
from app.core.config import settings
from app.core.db import get_db
from app.models.user import User
from app.schemas.membership_request import (
    MemberSummary,
    MembershipRequestCreate,
    MembershipRequestListResponse,
    MembershipRequestOut,
    MembershipRequestSubmitted,
    MembershipRequestUpdate,
    OverrideApproveRequest,
    OverrideRejectRequest,
    RequestStatus,
    ResendEmailRequest,
    ResendEmailResponse,
    StatusHistoryOut,
    VoteCreate,
    VoteOut,
    VoteResultOut,
    VoteStatusOut,
)
from app.services import membership_requests as requests_service
from app.services.membership_workflow import ApprovalWorkflow, get_workflow

READ_ROLES = tuple(settings.REVIEWER_ROLES)
ADMIN_ROLES = tuple(settings.ADMIN_ROLES)

router = APIRouter(prefix="/membership-requests", tags=["membership-requests"])


@router.post("", response_model=MembershipRequestSubmitted, status_code=status.HTTP_201_CREATED)
def submit_membership_request(
    payload: MembershipRequestCreate,
    db: Session = Depends(get_db),
    workflow: ApprovalWorkflow = Depends(get_workflow),
) -> MembershipRequestSubmitted:
    request = workflow.submit(db, payload)
    return MembershipRequestSubmitted(id=request.id, request_number=request.request_number)


@router.get("", response_model=MembershipRequestListResponse, status_code=status.HTTP_200_OK)
def list_membership_requests(
    *,
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*READ_ROLES)),
) -> MembershipRequestListResponse:
    items, total = requests_service.list_requests(db, status_filter=status_filter, page=page, page_size=page_size)
    return MembershipRequestListResponse(
        items=[MembershipRequestOut.from_orm(item) for item in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{request_id}", response_model=MembershipRequestOut, status_code=status.HTTP_200_OK)
def get_membership_request(
    request_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*READ_ROLES)),
) -> MembershipRequestOut:
    return MembershipRequestOut.from_orm(requests_service.get_request(db, request_id))


@router.patch("/{request_id}", response_model=MembershipRequestOut, status_code=status.HTTP_200_OK)
def update_membership_request(
    request_id: int,
    payload: MembershipRequestUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*READ_ROLES)),
    workflow: ApprovalWorkflow = Depends(get_workflow),
) -> MembershipRequestOut:
    request = workflow.update_request(db, request_id, payload, actor=user)
    return MembershipRequestOut.from_orm(request)


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_membership_request(
    request_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*ADMIN_ROLES)),
    workflow: ApprovalWorkflow = Depends(get_workflow),
) -> Response:
    workflow.delete_request(db, request_id, actor=user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{request_id}/votes", response_model=VoteStatusOut, status_code=status.HTTP_200_OK)
def get_vote_status(
    request_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*READ_ROLES)),
    workflow: ApprovalWorkflow = Depends(get_workflow),
) -> VoteStatusOut:
    return requests_service.vote_status(db, request_id, viewer=user, roster=workflow.roster)


@router.post("/{request_id}/votes", response_model=VoteResultOut, status_code=status.HTTP_201_CREATED)
def cast_vote(
    request_id: int,
    payload: VoteCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    workflow: ApprovalWorkflow = Depends(get_workflow),
) -> VoteResultOut:
    result = workflow.cast_vote(db, request_id, voter_id=user.id, choice=payload.vote, notes=payload.notes)
    return VoteResultOut(
        vote=VoteOut.from_orm(result.vote),
        vote_counts=requests_service.tally_out(result.tally, result.kind.value, result.approvals_required),
        outcome=result.outcome.value,
        threshold_met=result.threshold_met,
        final_status=result.request.status,
        created_member=MemberSummary.from_orm(result.created_member) if result.created_member else None,
    )


@router.post("/{request_id}/override/approve", response_model=MembershipRequestOut, status_code=status.HTTP_200_OK)
def override_approve(
    request_id: int,
    payload: OverrideApproveRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*ADMIN_ROLES)),
    workflow: ApprovalWorkflow = Depends(get_workflow),
) -> MembershipRequestOut:
    request = workflow.override_approve(db, request_id, admin=user, notes=payload.notes)
    return MembershipRequestOut.from_orm(request)


@router.post("/{request_id}/override/reject", response_model=MembershipRequestOut, status_code=status.HTTP_200_OK)
def override_reject(
    request_id: int,
    payload: OverrideRejectRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*ADMIN_ROLES)),
    workflow: ApprovalWorkflow = Depends(get_workflow),
) -> MembershipRequestOut:
    request = workflow.override_reject(db, request_id, admin=user, reason=payload.reason)
    return MembershipRequestOut.from_orm(request)


@router.get("/{request_id}/history", response_model=list[StatusHistoryOut], status_code=status.HTTP_200_OK)
def get_request_history(
    request_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*READ_ROLES)),
) -> list[StatusHistoryOut]:
    return requests_service.history(db, request_id)


@router.post("/{request_id}/resend-email", response_model=ResendEmailResponse, status_code=status.HTTP_200_OK)
def resend_email(
    request_id: int,
    payload: ResendEmailRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*READ_ROLES)),
    workflow: ApprovalWorkflow = Depends(get_workflow),
) -> ResendEmailResponse:
    recipients = workflow.resend_email(db, request_id, payload.email_type, actor=user)
    return ResendEmailResponse(
        message=f"{payload.email_type.capitalize()} email resent successfully",
        email_type=payload.email_type,
        sent_to=recipients,
    )
