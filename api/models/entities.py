# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the clinic scheduling engine.
"""

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Dict, Any, Type
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from .base import BaseEntity
from .enums import (
    OccurrenceKind,
    TreatmentStatus,
    PaymentStatus,
    MedicationStatus,
    UnlockRequestStatus
)


class Occurrence(BaseEntity):
    """One scheduled unit of work or charge for a patient."""

    kind: OccurrenceKind = Field(..., description="Occurrence kind discriminator")
    subject_id: str = Field(..., min_length=1, description="Patient the occurrence belongs to")
    occurrence_date: date = Field(..., description="Calendar date the occurrence is scheduled for")
    notes: Optional[str] = Field(None, max_length=2000, description="Free text notes")

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, v):
        """Normalize blank notes to None."""
        if v is None or not v.strip():
            return None
        return v.strip()


class TreatmentOccurrence(Occurrence):
    """Treatment session (an "application" in the portal)."""

    kind: OccurrenceKind = Field(default=OccurrenceKind.TREATMENT, description="Occurrence kind")
    status: TreatmentStatus = Field(default=TreatmentStatus.SCHEDULED, description="Treatment status")


class MedicationOccurrence(Occurrence):
    """Medication course entry."""

    kind: OccurrenceKind = Field(default=OccurrenceKind.MEDICATION, description="Occurrence kind")
    medication_name: str = Field(..., min_length=1, max_length=200, description="Medication name")
    dosage: str = Field(..., min_length=1, max_length=200, description="Dosage")
    frequency_label: str = Field(..., min_length=1, max_length=100, description="Dosing frequency shown to the patient")
    end_date: Optional[date] = Field(None, description="Display-only end date")
    is_active: bool = Field(default=True, description="Whether the medication is active")

    @field_validator('medication_name', 'dosage', 'frequency_label')
    @classmethod
    def validate_text(cls, v):
        if not v.strip():
            raise ValueError('Field cannot be empty')
        return v.strip()

    @property
    def status(self) -> MedicationStatus:
        return MedicationStatus.ACTIVE if self.is_active else MedicationStatus.INACTIVE


class PaymentOccurrence(Occurrence):
    """Financial charge. occurrence_date is the due date."""

    kind: OccurrenceKind = Field(default=OccurrenceKind.PAYMENT, description="Occurrence kind")
    amount: Decimal = Field(..., description="Charge amount")
    description: Optional[str] = Field(None, max_length=500, description="Charge description")
    status: PaymentStatus = Field(default=PaymentStatus.PENDING, description="Payment status")
    paid_date: Optional[date] = Field(None, description="Date the payment was marked paid")

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        """Amounts are positive with two decimal places."""
        if v <= 0:
            raise ValueError('Amount must be greater than zero')
        return v.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "PaymentOccurrence":
        # Older rows may carry a persisted overdue; overdue is derived on read only.
        if document.get("status") == PaymentStatus.OVERDUE.value:
            document = {**document, "status": PaymentStatus.PENDING.value}
        return super().from_document(document)

    @model_validator(mode='after')
    def validate_paid_date(self):
        """paid_date only accompanies the paid status."""
        if self.status != PaymentStatus.PAID and self.paid_date is not None:
            raise ValueError('paid_date is only allowed when status is paid')
        return self

    @property
    def due_date(self) -> date:
        return self.occurrence_date


OCCURRENCE_MODELS: Dict[OccurrenceKind, Type[Occurrence]] = {
    OccurrenceKind.TREATMENT: TreatmentOccurrence,
    OccurrenceKind.MEDICATION: MedicationOccurrence,
    OccurrenceKind.PAYMENT: PaymentOccurrence,
}


def occurrence_model(kind: OccurrenceKind) -> Type[Occurrence]:
    """Return the entity class for an occurrence kind."""
    return OCCURRENCE_MODELS[OccurrenceKind(kind)]


class FinancialUnlockRequest(BaseEntity):
    """Time-boxed request for the financial edit privilege."""

    requested_by: str = Field(..., description="User ID asking for the privilege")
    reason: Optional[str] = Field(None, max_length=500, description="Why access is needed")
    status: UnlockRequestStatus = Field(default=UnlockRequestStatus.PENDING, description="Request status")
    reviewed_by: Optional[str] = Field(None, description="User ID who approved or denied")
    granted_at: Optional[datetime] = Field(None, description="Grant timestamp")
    expires_at: Optional[datetime] = Field(None, description="Grant expiration")

    @model_validator(mode='after')
    def validate_grant_window(self):
        """Approved requests carry a valid grant window."""
        if self.status == UnlockRequestStatus.APPROVED:
            if self.granted_at is None or self.expires_at is None:
                raise ValueError('Approved requests require granted_at and expires_at')
            if self.expires_at <= self.granted_at:
                raise ValueError('expires_at must be after granted_at')
        return self


class UserContext(BaseModel):
    """Acting staff user for an engine operation."""

    user_id: str = Field(..., description="Authenticated user ID")
    org_id: str = Field(..., description="User's organization ID")
    email: Optional[str] = Field(None, description="User email")
    name: Optional[str] = Field(None, description="User display name")
    permissions: List[str] = Field(default_factory=list, description="User's effective permissions")

    model_config = ConfigDict(
        use_enum_values=True
    )

    def has_permission(self, permission: str) -> bool:
        """Check if user has a specific permission."""
        return permission in self.permissions

