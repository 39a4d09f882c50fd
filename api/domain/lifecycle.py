# SPDX-License-Identifier: Apache-2.0

"""
Status lifecycle domain logic for treatment, payment and medication occurrences.

Every state of a kind can be reached from every other state by explicit
staff action. The only passive rule is payment overdue derivation, which is
computed on read and never written back to storage.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Type, TypeVar, Union

from models.entities import Occurrence, PaymentOccurrence, MedicationOccurrence
from models.enums import OccurrenceKind, TreatmentStatus, PaymentStatus, MedicationStatus
from domain.exceptions import InvalidStatus

O = TypeVar("O", bound=Occurrence)


STATUS_ENUMS: Dict[OccurrenceKind, Type[Enum]] = {
    OccurrenceKind.TREATMENT: TreatmentStatus,
    OccurrenceKind.PAYMENT: PaymentStatus,
    OccurrenceKind.MEDICATION: MedicationStatus,
}

INITIAL_STATUS: Dict[OccurrenceKind, Enum] = {
    OccurrenceKind.TREATMENT: TreatmentStatus.SCHEDULED,
    OccurrenceKind.PAYMENT: PaymentStatus.PENDING,
    OccurrenceKind.MEDICATION: MedicationStatus.ACTIVE,
}


@dataclass
class PaymentSummary:
    """Totals per derived payment status."""
    pending_total: Decimal = Decimal("0.00")
    overdue_total: Decimal = Decimal("0.00")
    paid_total: Decimal = Decimal("0.00")
    counts: Dict[PaymentStatus, int] = field(
        default_factory=lambda: {status: 0 for status in PaymentStatus}
    )

    @property
    def outstanding_total(self) -> Decimal:
        return self.pending_total + self.overdue_total


def initial_status(kind: OccurrenceKind) -> Enum:
    """Return the state new occurrences of a kind start in."""
    return INITIAL_STATUS[OccurrenceKind(kind)]


def is_pending(occurrence: Occurrence) -> bool:
    """Check if an occurrence is still in its kind's initial state."""
    return occurrence.status == initial_status(occurrence.kind)


def parse_status(kind: OccurrenceKind, status: Union[Enum, str]) -> Enum:
    """
    Resolve a status value for an occurrence kind.

    Raises:
        InvalidStatus: If the value is not a status of the kind
    """
    status_enum = STATUS_ENUMS[OccurrenceKind(kind)]
    value = status.value if isinstance(status, Enum) else status
    try:
        return status_enum(value)
    except ValueError:
        raise InvalidStatus(kind, value)


def transition(occurrence: O, new_status: Union[Enum, str], today: date) -> O:
    """
    Apply an explicit staff status change.

    Args:
        occurrence: Current occurrence
        new_status: Desired status
        today: Current date, stamped as paid_date when a payment is marked paid

    Returns:
        Updated copy of the occurrence

    Raises:
        InvalidStatus: If the status does not belong to the kind, or is the
            derived payment overdue state
    """
    status = parse_status(occurrence.kind, new_status)

    if isinstance(occurrence, MedicationOccurrence):
        return _replace(occurrence, is_active=status == MedicationStatus.ACTIVE)

    if isinstance(occurrence, PaymentOccurrence):
        if status == PaymentStatus.OVERDUE:
            raise InvalidStatus(occurrence.kind, status.value)
        if status == PaymentStatus.PAID:
            if occurrence.status == PaymentStatus.PAID:
                return _replace(occurrence)
            return _replace(occurrence, status=status, paid_date=today)
        return _replace(occurrence, status=status, paid_date=None)

    return _replace(occurrence, status=status)


def toggle_active(medication: MedicationOccurrence) -> MedicationOccurrence:
    """Flip a medication between active and inactive."""
    return _replace(medication, is_active=not medication.is_active)


def derive_payment_status(payment: PaymentOccurrence, today: date) -> PaymentStatus:
    """Presented status: pending past its due date reads as overdue."""
    if payment.status == PaymentStatus.PENDING and payment.due_date < today:
        return PaymentStatus.OVERDUE
    return payment.status


def is_overdue(payment: PaymentOccurrence, today: date) -> bool:
    return derive_payment_status(payment, today) == PaymentStatus.OVERDUE


def present_payments(payments: List[PaymentOccurrence], today: date) -> List[PaymentOccurrence]:
    """
    Apply the overdue derivation to a listing.

    Returned entities are presentation copies and must not be persisted.
    """
    presented = []
    for payment in payments:
        derived = derive_payment_status(payment, today)
        if derived != payment.status:
            payment = payment.model_copy(update={"status": derived})
        presented.append(payment)
    return presented


def summarize_payments(payments: List[PaymentOccurrence], today: date) -> PaymentSummary:
    """Total amounts and counts per derived status."""
    summary = PaymentSummary()
    for payment in payments:
        derived = derive_payment_status(payment, today)
        summary.counts[derived] += 1
        if derived == PaymentStatus.PAID:
            summary.paid_total += payment.amount
        elif derived == PaymentStatus.OVERDUE:
            summary.overdue_total += payment.amount
        else:
            summary.pending_total += payment.amount
    return summary


def _replace(occurrence: O, **changes) -> O:
    data = occurrence.model_dump()
    data.update(changes)
    return type(occurrence).model_validate(data)
