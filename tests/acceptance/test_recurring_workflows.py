"""
Recurring occurrence workflow acceptance tests.

Drives the occurrence service end to end over the in-memory storage: plan
creation, cascading reschedules, status changes with overdue derivation and
the financial unlock flow.
"""

import pytest
from datetime import date
from decimal import Decimal

from domain.exceptions import FinancialEditNotAllowed, PartialWriteFailure
from models.enums import OccurrenceKind, PaymentStatus, TreatmentStatus
from models.requests import (
    CreatePaymentsRequest,
    CreateTreatmentsRequest,
    RecurrenceOptions,
    RescheduleRequest
)


def weekly_payments(amount="200.00"):
    return CreatePaymentsRequest(
        subject_id="patient-42",
        occurrence_date=date(2025, 1, 1),
        amount=Decimal(amount),
        description="Physiotherapy package",
        recurrence=RecurrenceOptions(end_date=date(2025, 1, 22), cadence="weekly")
    )


def weekly_treatments():
    return CreateTreatmentsRequest(
        subject_id="patient-42",
        occurrence_date=date(2025, 1, 1),
        recurrence=RecurrenceOptions(end_date=date(2025, 1, 22), cadence="1x semana")
    )


class TestWeeklySeriesWorkflow:
    """Weekly series from 2025-01-01 to 2025-01-22."""

    def test_cascade_moves_pending_siblings(self, service, storage, staff):
        """Test moving the first session two days carries the rest along."""
        created = service.create_treatments(weekly_treatments(), staff)
        assert [o.occurrence_date for o in created] == [
            date(2025, 1, 1), date(2025, 1, 8), date(2025, 1, 15), date(2025, 1, 22)
        ]

        preview = service.preview_reschedule(OccurrenceKind.TREATMENT, created[0].id, date(2025, 1, 3), staff)
        assert preview.cascade_offered is True
        assert preview.delta_days == 2

        result = service.reschedule(
            OccurrenceKind.TREATMENT, created[0].id,
            RescheduleRequest(new_date=date(2025, 1, 3), cascade=True), staff
        )
        assert result.updated_count == 4

        listed = service.list_for_subject(OccurrenceKind.TREATMENT, "patient-42", staff)
        assert [o.occurrence_date for o in listed] == [
            date(2025, 1, 3), date(2025, 1, 10), date(2025, 1, 17), date(2025, 1, 24)
        ]
        assert [o.id for o in listed] == [o.id for o in created]

    def test_completed_sessions_stay_put(self, service, staff):
        created = service.create_treatments(weekly_treatments(), staff)
        service.change_status(OccurrenceKind.TREATMENT, created[2].id, TreatmentStatus.COMPLETED, staff)

        service.reschedule(
            OccurrenceKind.TREATMENT, created[0].id,
            RescheduleRequest(new_date=date(2025, 1, 3), cascade=True), staff
        )

        listed = {o.id: o for o in service.list_for_subject(OccurrenceKind.TREATMENT, "patient-42", staff)}
        assert listed[created[1].id].occurrence_date == date(2025, 1, 10)
        assert listed[created[2].id].occurrence_date == date(2025, 1, 15)
        assert listed[created[3].id].occurrence_date == date(2025, 1, 24)

    def test_declined_cascade_moves_only_one(self, service, staff):
        created = service.create_treatments(weekly_treatments(), staff)

        service.reschedule(
            OccurrenceKind.TREATMENT, created[0].id,
            RescheduleRequest(new_date=date(2025, 1, 3), cascade=False), staff
        )

        listed = service.list_for_subject(OccurrenceKind.TREATMENT, "patient-42", staff)
        assert [o.occurrence_date for o in listed] == [
            date(2025, 1, 3), date(2025, 1, 8), date(2025, 1, 15), date(2025, 1, 22)
        ]

    def test_weekly_payments(self, service, finance, clock):
        """Test a weekly charge series with overdue derivation and payment."""
        created = service.create_payments(weekly_payments(), finance, amount_edit_allowed=True)
        assert len(created) == 4
        assert created[0].status == PaymentStatus.OVERDUE

        service.change_status(OccurrenceKind.PAYMENT, created[0].id, PaymentStatus.PAID, finance)

        clock.advance(days=10)
        listed = service.list_for_subject(OccurrenceKind.PAYMENT, "patient-42", finance)
        assert [p.status for p in listed] == [
            PaymentStatus.PAID, PaymentStatus.OVERDUE, PaymentStatus.PENDING, PaymentStatus.PENDING
        ]
        assert listed[0].paid_date == date(2025, 1, 2)

        summary = service.payment_summary(finance, subject_id="patient-42")
        assert summary.paid_total == Decimal("200.00")
        assert summary.overdue_total == Decimal("200.00")
        assert summary.pending_total == Decimal("400.00")


class TestAtomicity:
    """Test batches are applied completely or not at all."""

    def test_failed_creation_leaves_nothing(self, service, storage, staff):
        storage.fail_after = 2

        with pytest.raises(PartialWriteFailure) as exc_info:
            service.create_treatments(weekly_treatments(), staff)

        assert exc_info.value.message == "Nothing was saved, please retry"
        assert storage.count("treatments") == 0

    def test_failed_cascade_restores_dates(self, service, storage, staff):
        created = service.create_treatments(weekly_treatments(), staff)
        storage.fail_after = storage._writes + 2

        with pytest.raises(PartialWriteFailure):
            service.reschedule(
                OccurrenceKind.TREATMENT, created[0].id,
                RescheduleRequest(new_date=date(2025, 1, 3), cascade=True), staff
            )

        storage.fail_after = None
        listed = service.list_for_subject(OccurrenceKind.TREATMENT, "patient-42", staff)
        assert [o.occurrence_date for o in listed] == [
            date(2025, 1, 1), date(2025, 1, 8), date(2025, 1, 15), date(2025, 1, 22)
        ]


class TestFinancialUnlockWorkflow:
    """Test staff obtaining the financial edit privilege."""

    def test_unlock_then_edit_amount(self, service, staff, finance, clock):
        service.create_payments(weekly_payments(), finance, amount_edit_allowed=True)
        payment = service.list_for_subject(OccurrenceKind.PAYMENT, "patient-42", staff)[3]

        allowed = service.check_amount_edit(staff).allowed
        with pytest.raises(FinancialEditNotAllowed):
            service.update_payment_amount(payment.id, Decimal("180.00"), staff, allowed)

        unlock_request = service.request_financial_unlock(staff, reason="Discount agreed with patient")
        service.review_financial_unlock(unlock_request.id, True, finance)

        allowed = service.check_amount_edit(staff).allowed
        updated = service.update_payment_amount(payment.id, Decimal("180.00"), staff, allowed)
        assert updated.amount == Decimal("180.00")

        clock.advance(hours=13)
        assert service.check_amount_edit(staff).allowed is False
