from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, validator

RequestStatus = Literal[
    "PENDING",
    "UNDER_REVIEW",
    "ADDITIONAL_INFO_REQUESTED",
    "APPROVED",
    "REJECTED",
    "WITHDRAWN",
]
ManualStatus = Literal["PENDING", "UNDER_REVIEW", "ADDITIONAL_INFO_REQUESTED", "WITHDRAWN"]
ApprovalSystem = Literal["SINGLE", "MULTI_BOARD"]
ResidenceStatus = Literal[
    "STUDENT",
    "WORK_PERMIT",
    "PERMANENT_RESIDENT",
    "CITIZEN",
    "EU_CITIZEN",
    "ASYLUM_SEEKER",
    "OTHER",
]
RequestedMemberType = Literal["REGULAR", "VOLUNTEER"]
PreferredLanguage = Literal["en", "sv", "km"]
VoteChoice = Literal["APPROVE", "REJECT", "ABSTAIN"]


class MembershipRequestCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    first_name_native: Optional[str] = Field(None, max_length=100)
    last_name_native: Optional[str] = Field(None, max_length=100)
    date_of_birth: Optional[date] = None
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=50)
    address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=120)
    postal_code: str = Field(..., min_length=1, max_length=30)
    country: Optional[str] = Field(None, max_length=120)
    residence_status: ResidenceStatus
    residence_since: Optional[date] = None
    motivation: str = Field(..., min_length=10)
    hear_about_us: Optional[str] = None
    interests: Optional[str] = None
    skills: Optional[str] = None
    requested_member_type: RequestedMemberType = "REGULAR"
    preferred_language: PreferredLanguage = "en"

    @validator("first_name", "last_name", "address", "city", "postal_code", "motivation")
    def strip_required(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Field cannot be blank")
        return cleaned

    @validator("motivation")
    def motivation_length(cls, value: str) -> str:
        if len(value) < 10:
            raise ValueError("Please tell us why you want to join (at least 10 characters)")
        return value

    @validator("date_of_birth", "residence_since")
    def not_in_future(cls, value: Optional[date]) -> Optional[date]:
        if value and value > date.today():
            raise ValueError("Date cannot be in the future")
        return value


class MembershipRequestSubmitted(BaseModel):
    id: int
    request_number: str
    message: str = "Membership request submitted successfully"


class MembershipRequestUpdate(BaseModel):
    status: Optional[ManualStatus] = None
    admin_notes: Optional[str] = None
    approval_system: Optional[ApprovalSystem] = None
    designated_approver_id: Optional[int] = None


class MemberSummary(BaseModel):
    id: int
    member_number: str
    first_name: str
    last_name: str
    email: Optional[str]

    class Config:
        from_attributes = True


class UserSummary(BaseModel):
    id: int
    email: str
    full_name: Optional[str]

    class Config:
        from_attributes = True


class MembershipRequestOut(BaseModel):
    id: int
    request_number: str
    first_name: str
    last_name: str
    first_name_native: Optional[str]
    last_name_native: Optional[str]
    date_of_birth: Optional[date]
    email: str
    phone: Optional[str]
    address: str
    city: str
    postal_code: str
    country: str
    residence_status: ResidenceStatus
    residence_since: Optional[date]
    motivation: str
    hear_about_us: Optional[str]
    interests: Optional[str]
    skills: Optional[str]
    requested_member_type: RequestedMemberType
    preferred_language: str
    approval_system: ApprovalSystem
    designated_approver_id: Optional[int]
    status: RequestStatus
    admin_notes: Optional[str]
    rejection_reason: Optional[str]
    reviewed_by_id: Optional[int]
    reviewed_at: Optional[datetime]
    decided_by_id: Optional[int]
    decided_at: Optional[datetime]
    created_member_id: Optional[int]
    created_member: Optional[MemberSummary] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MembershipRequestListResponse(BaseModel):
    items: list[MembershipRequestOut]
    total: int
    page: int
    page_size: int


class VoteCreate(BaseModel):
    vote: VoteChoice
    notes: Optional[str] = Field(None, max_length=2000)


class VoteOut(BaseModel):
    id: int
    request_id: int
    voter_id: int
    choice: VoteChoice
    notes: Optional[str]
    cast_at: datetime
    voter: Optional[UserSummary] = None

    class Config:
        from_attributes = True


class VoteTallyOut(BaseModel):
    approvals: int
    rejections: int
    abstentions: int
    total: int
    eligible_voters: int
    threshold: str
    approvals_required: Optional[int] = None


class VoteResultOut(BaseModel):
    message: str = "Vote cast successfully"
    vote: VoteOut
    vote_counts: VoteTallyOut
    outcome: Literal["PENDING", "APPROVED", "REJECTED"]
    threshold_met: bool
    final_status: RequestStatus
    created_member: Optional[MemberSummary] = None


class VoteStatusOut(BaseModel):
    approval_system: ApprovalSystem
    status: RequestStatus
    policy_description: str
    votes: list[VoteOut]
    vote_counts: VoteTallyOut
    current_user_vote: Optional[VoteOut] = None
    has_voted: bool
    pending_voters: list[UserSummary]
    eligible_voters: list[UserSummary]


class OverrideApproveRequest(BaseModel):
    notes: Optional[str] = None


class OverrideRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class StatusHistoryOut(BaseModel):
    id: int
    request_id: int
    from_status: Optional[str]
    to_status: str
    changed_by_id: Optional[int]
    changed_at: datetime
    notes: Optional[str]
    kind: str
    changed_by: Optional[UserSummary] = None


class ResendEmailRequest(BaseModel):
    email_type: Literal["welcome", "approval"]


class ResendEmailResponse(BaseModel):
    message: str
    email_type: str
    sent_to: list[str]


class ApprovalThresholdOut(BaseModel):
    threshold: str
    description: str
    board_size: int


class ApprovalThresholdUpdate(BaseModel):
    threshold: Literal["UNANIMOUS", "MAJORITY", "SIMPLE_MAJORITY", "ANY_TWO", "SINGLE"]
