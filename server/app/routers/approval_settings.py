from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.auth.deps import require_roles
from app.core.config import settings
from app.core.db import get_db
from app.models.user import User
from app.schemas.membership_request import ApprovalThresholdOut, ApprovalThresholdUpdate
from app.services import threshold_policy
from app.services.approval_policy import BoardRosterProvider, get_approval_threshold, set_approval_threshold
from app.services.membership_errors import PolicyMisconfigured

ADMIN_ROLES = tuple(settings.ADMIN_ROLES)

router = APIRouter(prefix="/settings", tags=["settings"])


def _threshold_out(db: Session, kind: threshold_policy.ThresholdKind) -> ApprovalThresholdOut:
    board_size = BoardRosterProvider().board_size(db)
    try:
        description = threshold_policy.describe(kind, board_size)
    except PolicyMisconfigured as exc:
        description = str(exc)
    return ApprovalThresholdOut(threshold=kind.value, description=description, board_size=board_size)


@router.get("/approval-threshold", response_model=ApprovalThresholdOut, status_code=status.HTTP_200_OK)
def read_approval_threshold(
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*ADMIN_ROLES)),
) -> ApprovalThresholdOut:
    return _threshold_out(db, get_approval_threshold(db))


@router.put("/approval-threshold", response_model=ApprovalThresholdOut, status_code=status.HTTP_200_OK)
def update_approval_threshold(
    payload: ApprovalThresholdUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*ADMIN_ROLES)),
) -> ApprovalThresholdOut:
    kind = threshold_policy.parse_kind(payload.threshold)
    set_approval_threshold(db, kind, actor_id=user.id)
    return _threshold_out(db, kind)
