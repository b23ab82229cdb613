from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.core.db import Base

REQUEST_STATUSES = (
    "PENDING",
    "UNDER_REVIEW",
    "ADDITIONAL_INFO_REQUESTED",
    "APPROVED",
    "REJECTED",
    "WITHDRAWN",
)
APPROVAL_SYSTEMS = ("SINGLE", "MULTI_BOARD")
RESIDENCE_STATUSES = (
    "STUDENT",
    "WORK_PERMIT",
    "PERMANENT_RESIDENT",
    "CITIZEN",
    "EU_CITIZEN",
    "ASYLUM_SEEKER",
    "OTHER",
)

MembershipRequestStatus = Enum(*REQUEST_STATUSES, name="membership_request_status")
ApprovalSystem = Enum(*APPROVAL_SYSTEMS, name="membership_approval_system")
ResidenceStatus = Enum(*RESIDENCE_STATUSES, name="membership_residence_status")
RequestedMemberType = Enum("REGULAR", "VOLUNTEER", name="membership_requested_type")


class MembershipRequest(Base):
    __tablename__ = "membership_requests"

    id = Column(Integer, primary_key=True)
    request_number = Column(String(20), unique=True, nullable=False, index=True)

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    first_name_native = Column(String(100), nullable=True)
    last_name_native = Column(String(100), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(50), nullable=True)
    address = Column(String(255), nullable=False)
    city = Column(String(120), nullable=False)
    postal_code = Column(String(30), nullable=False)
    country = Column(String(120), nullable=False)
    residence_status = Column(ResidenceStatus, nullable=False)
    residence_since = Column(Date, nullable=True)
    motivation = Column(Text, nullable=False)
    hear_about_us = Column(Text, nullable=True)
    interests = Column(Text, nullable=True)
    skills = Column(Text, nullable=True)
    requested_member_type = Column(RequestedMemberType, nullable=False, default="REGULAR")
    preferred_language = Column(String(5), nullable=False, default="en")

    approval_system = Column(ApprovalSystem, nullable=False, default="MULTI_BOARD")
    designated_approver_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    status = Column(MembershipRequestStatus, nullable=False, default="PENDING", index=True)
    admin_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    reviewed_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    decided_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    decided_at = Column(DateTime, nullable=True)
    created_member_id = Column(
        Integer,
        ForeignKey("members.id", ondelete="RESTRICT", use_alter=True, name="fk_membership_requests_created_member_id"),
        nullable=True,
    )
    board_notified_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    designated_approver = relationship("User", foreign_keys=[designated_approver_id])
    reviewer = relationship("User", foreign_keys=[reviewed_by_id])
    decider = relationship("User", foreign_keys=[decided_by_id])
    created_member = relationship("Member", foreign_keys=[created_member_id])
    votes = relationship(
        "BoardVote",
        order_by="BoardVote.cast_at",
        viewonly=True,
    )
    status_history = relationship(
        "MembershipRequestStatusHistory",
        order_by="MembershipRequestStatusHistory.changed_at.desc()",
        viewonly=True,
    )

    @property
    def full_name(self) -> str:
        return " ".join(filter(None, [self.first_name, self.last_name]))
