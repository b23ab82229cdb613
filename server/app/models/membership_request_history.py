from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.core.db import Base


class MembershipRequestStatusHistory(Base):
    __tablename__ = "membership_request_status_history"

    id = Column(Integer, primary_key=True)
    request_id = Column(Integer, ForeignKey("membership_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    from_status = Column(String(40), nullable=True)
    to_status = Column(String(40), nullable=False)
    changed_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    changed_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    notes = Column(Text, nullable=True)

    request = relationship("MembershipRequest")
    actor = relationship("User", foreign_keys=[changed_by_id])
