from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.core.db import Base

MemberStatus = Enum("Active", "Inactive", "Pending", "Archived", name="member_status")
MembershipType = Enum("REGULAR", "VOLUNTEER", name="membership_type")


class Member(Base):
    __tablename__ = "members"

    id = Column(Integer, primary_key=True)
    member_number = Column(String(20), unique=True, nullable=False, index=True)
    username = Column(String(150), unique=True, nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    first_name_native = Column(String(100), nullable=True)
    last_name_native = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    address = Column(String(255), nullable=True)
    city = Column(String(120), nullable=True)
    postal_code = Column(String(30), nullable=True)
    country = Column(String(120), nullable=True)
    membership_type = Column(MembershipType, nullable=False, default="REGULAR")
    residence_status = Column(String(40), nullable=True)
    join_date = Column(Date, nullable=True)
    status = Column(MemberStatus, nullable=False, default="Active")
    notes = Column(Text, nullable=True)
    # At most one member per membership request, enforced by the database.
    source_request_id = Column(
        Integer,
        ForeignKey("membership_requests.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )
    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    source_request = relationship("MembershipRequest", foreign_keys=[source_request_id])
    created_by = relationship("User", foreign_keys=[created_by_id])

    @property
    def full_name(self) -> str:
        return " ".join(filter(None, [self.first_name, self.last_name]))
