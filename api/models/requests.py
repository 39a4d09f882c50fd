# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for engine operations.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, field_validator, ConfigDict
from .enums import TreatmentStatus, PaymentStatus


class RecurrencePlan(BaseModel):
    """Ephemeral recurrence plan, discarded once occurrences exist."""

    model_config = ConfigDict(frozen=True)

    start_date: date = Field(..., description="First occurrence date")
    end_date: date = Field(..., description="Last allowed occurrence date (inclusive)")
    cadence: str = Field(..., min_length=1, description="Cadence tag or legacy label")

    def is_empty_range(self) -> bool:
        """Check if the plan cannot produce any occurrence."""
        return self.start_date > self.end_date


class RecurrenceOptions(BaseModel):
    """Recurrence part of a create request."""

    end_date: date = Field(..., description="Recurrence end date (inclusive)")
    cadence: str = Field(..., min_length=1, description="Cadence tag or legacy label")


class CreateOccurrencesRequest(BaseModel):
    """Common fields for creating one occurrence or a recurring series."""

    subject_id: str = Field(..., min_length=1, description="Patient ID")
    occurrence_date: date = Field(..., description="Occurrence date, or series start date")
    notes: Optional[str] = Field(None, max_length=2000, description="Free text notes")
    recurrence: Optional[RecurrenceOptions] = Field(None, description="Recurrence options")

    def plan(self) -> Optional[RecurrencePlan]:
        """Build the recurrence plan, or None for a single occurrence."""
        if self.recurrence is None:
            return None
        return RecurrencePlan(
            start_date=self.occurrence_date,
            end_date=self.recurrence.end_date,
            cadence=self.recurrence.cadence
        )


class CreateTreatmentsRequest(CreateOccurrencesRequest):
    """Request model for creating treatment occurrences."""

    status: TreatmentStatus = Field(default=TreatmentStatus.SCHEDULED, description="Initial status")


class CreateMedicationsRequest(CreateOccurrencesRequest):
    """Request model for creating medication occurrences."""

    medication_name: str = Field(..., min_length=1, max_length=200, description="Medication name")
    dosage: str = Field(..., min_length=1, max_length=200, description="Dosage")
    frequency_label: str = Field(..., min_length=1, max_length=100, description="Dosing frequency")
    end_date: Optional[date] = Field(None, description="Display-only medication end date")


class CreatePaymentsRequest(CreateOccurrencesRequest):
    """Request model for creating payment occurrences. occurrence_date is the due date."""

    amount: Decimal = Field(..., gt=0, description="Charge amount per occurrence")
    description: Optional[str] = Field(None, max_length=500, description="Charge description")
    status: PaymentStatus = Field(default=PaymentStatus.PENDING, description="Initial status")

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        """Overdue cannot be stored."""
        if v == PaymentStatus.OVERDUE:
            raise ValueError('Overdue is derived from the due date and cannot be set')
        return v


class RescheduleRequest(BaseModel):
    """Request model for moving one occurrence, optionally cascading to its series."""

    new_date: date = Field(..., description="New occurrence date")
    cascade: bool = Field(default=False, description="Shift later pending occurrences of the series")
