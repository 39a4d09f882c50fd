# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for financial edit authorization.
"""

import pytest
from datetime import timedelta
from bson import ObjectId

from domain.authorization import (
    approve_unlock_request,
    check_amount_edit,
    deny_unlock_request,
    is_amount_edit_allowed,
    is_grant_active,
    require_amount_edit
)
from domain.exceptions import FinancialEditNotAllowed
from models.entities import FinancialUnlockRequest
from models.enums import UnlockRequestStatus


@pytest.fixture
def unlock_request(user_context):
    """Pending unlock request of the non-privileged user."""
    return FinancialUnlockRequest(
        organization_id=user_context.org_id,
        created_by=user_context.user_id,
        updated_by=user_context.user_id,
        requested_by=user_context.user_id,
        reason="Correct a duplicated charge"
    )


class TestUnlockReview:
    """Test approval and denial of unlock requests."""

    def test_approve_opens_twelve_hour_window(self, unlock_request, approver_context, now):
        approved = approve_unlock_request(unlock_request, approver_context, now)

        assert approved.status == UnlockRequestStatus.APPROVED
        assert approved.granted_at == now
        assert approved.expires_at == now + timedelta(hours=12)
        assert approved.reviewed_by == approver_context.user_id
        assert unlock_request.status == UnlockRequestStatus.PENDING

    def test_approve_custom_window(self, unlock_request, approver_context, now):
        approved = approve_unlock_request(unlock_request, approver_context, now, window_hours=2)
        assert approved.expires_at == now + timedelta(hours=2)

    def test_deny_revokes_grant(self, unlock_request, approver_context, now):
        """Test denying an approved request removes its window."""
        approved = approve_unlock_request(unlock_request, approver_context, now)

        denied = deny_unlock_request(approved, approver_context)

        assert denied.status == UnlockRequestStatus.DENIED
        assert denied.granted_at is None
        assert denied.expires_at is None
        assert approved.status == UnlockRequestStatus.APPROVED

    def test_review_requires_approver(self, unlock_request, user_context, now):
        with pytest.raises(FinancialEditNotAllowed) as exc_info:
            approve_unlock_request(unlock_request, user_context, now)

        assert exc_info.value.status_code == 403

        with pytest.raises(FinancialEditNotAllowed):
            deny_unlock_request(unlock_request, user_context)


class TestAmountEditCheck:
    """Test evaluation of the financial edit privilege."""

    def test_approver_always_allowed(self, approver_context, now):
        assert is_amount_edit_allowed(approver_context, [], now) is True

    def test_no_requests_denied(self, user_context, now):
        result = check_amount_edit(user_context, [], now)

        assert result.allowed is False
        assert result.reason == "No approved financial unlock request is active"

    def test_pending_request_does_not_grant(self, user_context, unlock_request, now):
        assert is_amount_edit_allowed(user_context, [unlock_request], now) is False

    def test_active_grant_allows_edit(self, user_context, unlock_request, approver_context, now):
        approved = approve_unlock_request(unlock_request, approver_context, now)

        result = check_amount_edit(user_context, [approved], now + timedelta(hours=1))

        assert result.allowed is True
        assert result.expires_at == now + timedelta(hours=12)

    def test_grant_expires(self, user_context, unlock_request, approver_context, now):
        """Test the window end is exclusive."""
        approved = approve_unlock_request(unlock_request, approver_context, now)

        assert is_grant_active(approved, now) is True
        assert is_grant_active(approved, now + timedelta(hours=12)) is False
        assert is_amount_edit_allowed(user_context, [approved], now + timedelta(hours=13)) is False

    def test_grant_of_another_user_ignored(self, user_context, unlock_request, approver_context, now):
        approved = approve_unlock_request(unlock_request, approver_context, now)
        other_user = user_context.model_copy(update={"user_id": str(ObjectId())})

        assert is_amount_edit_allowed(other_user, [approved], now) is False

    def test_require_amount_edit(self):
        require_amount_edit(True)

        with pytest.raises(FinancialEditNotAllowed) as exc_info:
            require_amount_edit(False)

        assert exc_info.value.error_type == "insufficient-permissions"
