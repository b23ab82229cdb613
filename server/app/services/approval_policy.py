from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.membership_request import MembershipRequest
from app.models.role import Role
from app.models.setting import Setting
from app.models.user import User
from app.services import threshold_policy
from app.services.threshold_policy import ThresholdKind

logger = logging.getLogger(__name__)

APPROVAL_THRESHOLD_KEY = "APPROVAL_THRESHOLD"
SETTINGS_CATEGORY = "membership"


@dataclass(frozen=True)
class ResolvedPolicy:
    kind: ThresholdKind
    eligible_voters: frozenset[int]

    @property
    def description(self) -> str:
        return threshold_policy.describe(self.kind, len(self.eligible_voters))


class BoardRosterProvider:
    """Looks up who may vote on a request right now.

    Nothing here is cached: the roster is queried on every call so board
    changes between votes are picked up immediately.
    """

    def __init__(self, board_role: str | None = None, admin_roles: list[str] | None = None) -> None:
        self.board_role = board_role or settings.BOARD_ROLE
        self.admin_roles = list(admin_roles or settings.ADMIN_ROLES)

    def _active_users_with_roles(self, db: Session, role_names: list[str]) -> list[User]:
        return (
            db.query(User)
            .join(User.roles)
            .filter(User.is_active.is_(True), Role.name.in_(role_names))
            .order_by(User.id.asc())
            .all()
        )

    def current_eligible_voters(self, db: Session, request: MembershipRequest) -> frozenset[int]:
        if request.approval_system == "SINGLE":
            if request.designated_approver_id is not None:
                approver = db.get(User, request.designated_approver_id)
                if approver is not None and approver.is_active:
                    return frozenset({approver.id})
                return frozenset()
            users = self._active_users_with_roles(db, self.admin_roles)
        else:
            users = self._active_users_with_roles(db, [self.board_role])
        return frozenset(user.id for user in users)

    def board_size(self, db: Session) -> int:
        return len(self._active_users_with_roles(db, [self.board_role]))


def get_approval_threshold(db: Session) -> ThresholdKind:
    setting = db.query(Setting).filter(Setting.key == APPROVAL_THRESHOLD_KEY).first()
    if setting is not None and setting.value:
        return threshold_policy.parse_kind(setting.value)
    return threshold_policy.parse_kind(settings.APPROVAL_THRESHOLD)


def set_approval_threshold(db: Session, kind: ThresholdKind, actor_id: int | None = None) -> Setting:
    setting = db.query(Setting).filter(Setting.key == APPROVAL_THRESHOLD_KEY).first()
    previous = setting.value if setting else None
    if setting is None:
        setting = Setting(key=APPROVAL_THRESHOLD_KEY, category=SETTINGS_CATEGORY)
        db.add(setting)
    setting.value = kind.value
    setting.updated_by_id = actor_id
    db.commit()
    db.refresh(setting)
    logger.info(
        "approval_threshold_updated",
        extra={"previous": previous, "current": kind.value, "actor_id": actor_id},
    )
    return setting


def threshold_kind_for(db: Session, request: MembershipRequest) -> ThresholdKind:
    if request.approval_system == "SINGLE":
        return ThresholdKind.SINGLE
    return get_approval_threshold(db)


def resolve_policy(db: Session, request: MembershipRequest, roster: BoardRosterProvider) -> ResolvedPolicy:
    return ResolvedPolicy(
        kind=threshold_kind_for(db, request),
        eligible_voters=roster.current_eligible_voters(db, request),
    )
