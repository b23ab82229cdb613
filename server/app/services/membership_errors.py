from __future__ import annotations

from fastapi import status


class MembershipWorkflowError(Exception):
    """Base class for recoverable membership approval failures."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "membership_workflow_error"


class RequestNotFound(MembershipWorkflowError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "request_not_found"


class AlreadyVoted(MembershipWorkflowError):
    status_code = status.HTTP_409_CONFLICT
    code = "already_voted"


class NotEligible(MembershipWorkflowError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "not_eligible"


class RequestClosed(MembershipWorkflowError):
    status_code = status.HTTP_409_CONFLICT
    code = "request_closed"


class InvalidTransition(MembershipWorkflowError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_transition"


class PolicyMisconfigured(MembershipWorkflowError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "policy_misconfigured"


class MemberCreationFailed(MembershipWorkflowError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "member_creation_failed"


class DeleteBlocked(MembershipWorkflowError):
    status_code = status.HTTP_409_CONFLICT
    code = "delete_blocked"


class DuplicateApplication(MembershipWorkflowError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "duplicate_application"


class NotificationFailed(MembershipWorkflowError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "notification_failed"
