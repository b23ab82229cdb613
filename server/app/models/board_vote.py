from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.db import Base

VOTE_CHOICES = ("APPROVE", "REJECT", "ABSTAIN")
VoteChoice = Enum(*VOTE_CHOICES, name="board_vote_choice")


class BoardVote(Base):
    __tablename__ = "membership_request_votes"
    __table_args__ = (
        UniqueConstraint("request_id", "voter_id", name="uq_membership_request_votes_request_voter"),
    )

    id = Column(Integer, primary_key=True)
    request_id = Column(Integer, ForeignKey("membership_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    voter_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    choice = Column(VoteChoice, nullable=False)
    notes = Column(Text, nullable=True)
    cast_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    request = relationship("MembershipRequest")
    voter = relationship("User", back_populates="board_votes")
