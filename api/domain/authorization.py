# SPDX-License-Identifier: Apache-2.0

"""
Authorization domain logic for the financial edit privilege.

Changing payment amounts, creating charges and deleting payments require
either the standing approver permission or an approved, unexpired unlock
request. This module contains pure functions for evaluating and reviewing
those time-boxed requests.
"""

from typing import List, Optional
from dataclasses import dataclass
from datetime import datetime, timedelta

from models.entities import FinancialUnlockRequest, UserContext
from models.enums import UnlockRequestStatus
from domain.exceptions import FinancialEditNotAllowed

FINANCIAL_APPROVE_PERMISSION = "financial:approve"
DEFAULT_UNLOCK_WINDOW_HOURS = 12


@dataclass
class AuthorizationResult:
    """Result of an authorization check."""
    allowed: bool
    reason: Optional[str] = None
    expires_at: Optional[datetime] = None


def is_grant_active(request: FinancialUnlockRequest, now: datetime) -> bool:
    """Check if an unlock request currently grants the privilege."""
    if request.status != UnlockRequestStatus.APPROVED:
        return False
    return request.granted_at <= now < request.expires_at


def check_amount_edit(
    user_context: UserContext,
    unlock_requests: List[FinancialUnlockRequest],
    now: datetime
) -> AuthorizationResult:
    """
    Check if a user may currently edit financial amounts.

    Args:
        user_context: Acting user
        unlock_requests: Unlock requests on record (any requester)
        now: Current timestamp from the clock collaborator

    Returns:
        AuthorizationResult with the expiry of the active grant, if any
    """
    if user_context.has_permission(FINANCIAL_APPROVE_PERMISSION):
        return AuthorizationResult(allowed=True)

    active = [
        request for request in unlock_requests
        if request.requested_by == user_context.user_id
        and request.organization_id == user_context.org_id
        and is_grant_active(request, now)
    ]
    if active:
        return AuthorizationResult(
            allowed=True,
            expires_at=max(request.expires_at for request in active)
        )

    return AuthorizationResult(
        allowed=False,
        reason="No approved financial unlock request is active"
    )


def is_amount_edit_allowed(
    user_context: UserContext,
    unlock_requests: List[FinancialUnlockRequest],
    now: datetime
) -> bool:
    return check_amount_edit(user_context, unlock_requests, now).allowed


def require_amount_edit(allowed: bool) -> None:
    """
    Guard a financial mutation with the caller-supplied privilege flag.

    Raises:
        FinancialEditNotAllowed: If the privilege is not held
    """
    if not allowed:
        raise FinancialEditNotAllowed()


def approve_unlock_request(
    request: FinancialUnlockRequest,
    approver: UserContext,
    now: datetime,
    window_hours: int = DEFAULT_UNLOCK_WINDOW_HOURS
) -> FinancialUnlockRequest:
    """
    Approve an unlock request for a fixed window starting now.

    Raises:
        FinancialEditNotAllowed: If the approver lacks the approve permission
    """
    if not approver.has_permission(FINANCIAL_APPROVE_PERMISSION):
        raise FinancialEditNotAllowed("Only financial approvers can review unlock requests")

    data = request.model_dump()
    data.update(
        status=UnlockRequestStatus.APPROVED,
        granted_at=now,
        expires_at=now + timedelta(hours=window_hours),
        reviewed_by=approver.user_id,
        updated_by=approver.user_id,
        updated_at=datetime.utcnow()
    )
    return FinancialUnlockRequest.model_validate(data)


def deny_unlock_request(
    request: FinancialUnlockRequest,
    approver: UserContext
) -> FinancialUnlockRequest:
    """
    Deny an unlock request, revoking any grant it carried.

    Raises:
        FinancialEditNotAllowed: If the approver lacks the approve permission
    """
    if not approver.has_permission(FINANCIAL_APPROVE_PERMISSION):
        raise FinancialEditNotAllowed("Only financial approvers can review unlock requests")

    denied = request.model_copy()
    denied.status = UnlockRequestStatus.DENIED
    denied.granted_at = None
    denied.expires_at = None
    denied.reviewed_by = approver.user_id
    denied.update_timestamp(approver.user_id)
    return denied
