import logging
from fastapi import Depends, Request

from bankdesk.auth.models import ApprovalStatus, User
from bankdesk.shared.auth import get_current_user
from bankdesk.shared.errors import ApprovalRequired, AuthorizationError
from bankdesk.shared.roles import Capability, has_capability

logger = logging.getLogger(__name__)

PENDING_MESSAGE = "Your account is pending approval by the branch manager."
REJECTED_MESSAGE = "Your account has been rejected by the branch manager."
UNCLEAR_MESSAGE = "Your account status is unclear. Please contact support."
PENDING_ONLY_MESSAGE = "This resource is only available for users with pending approval status."


def _security_event(event: str, request: Request, user: User) -> None:
    logger.warning(
        "%s: user=%s status=%r resource=%s %s",
        event, user.id, user.approval_status, request.method, request.url.path,
    )


def require_approval(request: Request, user: User = Depends(get_current_user)) -> User:
    """
    Use as a FastAPI dependency on routes that need an approved account.
    Staff roles bypass the check; everyone else must be ``approved``.
    """
    if has_capability(user.role, Capability.BYPASS_APPROVAL):
        return user

    status = user.approval_status
    if status == ApprovalStatus.PENDING.value:
        _security_event("unauthorized_access_pending", request, user)
        raise ApprovalRequired(PENDING_MESSAGE, data={
            "approval_status": status,
            "pending_branch_id": user.pending_branch_id,
            "requiresApproval": True,
        })
    if status == ApprovalStatus.REJECTED.value:
        _security_event("unauthorized_access_rejected", request, user)
        raise ApprovalRequired(REJECTED_MESSAGE, data={
            "approval_status": status,
            "rejection_reason": user.rejection_reason,
            "requiresApproval": True,
        })
    if status != ApprovalStatus.APPROVED.value:
        _security_event("unauthorized_access_unknown_status", request, user)
        raise ApprovalRequired(UNCLEAR_MESSAGE, data={
            "approval_status": status,
            "requiresApproval": True,
        })
    return user


def require_pending_status(user: User = Depends(get_current_user)) -> User:
    """Inverse gate: waiting-room resources are for ``pending`` users only."""
    if user.approval_status != ApprovalStatus.PENDING.value:
        raise ApprovalRequired(PENDING_ONLY_MESSAGE, data={
            "approval_status": user.approval_status,
            "should_redirect": True,
        })
    return user


def require_capability(capability: Capability):
    def _dep(user: User = Depends(get_current_user)) -> User:
        if not has_capability(user.role, capability):
            raise AuthorizationError("Insufficient permissions")
        return user
    return _dep
