from __future__ import annotations

import logging
from typing import Sequence

from app.models.membership_request import MembershipRequest
from app.models.user import User

logger = logging.getLogger(__name__)


class NotificationGateway:
    """Placeholder delivery hooks for the membership approval workflow.

    Each method is a request to notify someone; templating and delivery
    belong to whatever replaces this class. The default implementation only
    logs, and returns the recipients it addressed.
    """

    def notify_applicant_received(self, request: MembershipRequest) -> list[str]:
        logger.info(
            "membership_request_received",
            extra={
                "request_id": request.id,
                "request_number": request.request_number,
                "recipient": request.email,
                "language": request.preferred_language,
            },
        )
        return [request.email]

    def notify_board_vote_required(
        self,
        request: MembershipRequest,
        voters: Sequence[User],
        policy_description: str,
    ) -> list[str]:
        recipients = [voter.email for voter in voters if voter.email]
        logger.info(
            "membership_board_vote_required",
            extra={
                "request_id": request.id,
                "request_number": request.request_number,
                "recipients": recipients,
                "policy": policy_description,
            },
        )
        return recipients

    def notify_applicant_outcome(self, request: MembershipRequest, outcome: str) -> list[str]:
        logger.info(
            "membership_request_outcome",
            extra={
                "request_id": request.id,
                "request_number": request.request_number,
                "recipient": request.email,
                "outcome": outcome,
                "member_id": request.created_member_id,
            },
        )
        return [request.email]

    def notify_board_vote_reminder(
        self,
        request: MembershipRequest,
        voters: Sequence[User],
        policy_description: str,
    ) -> list[str]:
        recipients = [voter.email for voter in voters if voter.email]
        logger.info(
            "membership_board_vote_reminder",
            extra={
                "request_id": request.id,
                "request_number": request.request_number,
                "recipients": recipients,
                "policy": policy_description,
            },
        )
        return recipients
