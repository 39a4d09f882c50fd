# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the clinic scheduling engine.
"""

# Base models
from .base import BaseEntity

# Enumerations
from .enums import (
    Cadence,
    OccurrenceKind,
    TreatmentStatus,
    PaymentStatus,
    MedicationStatus,
    UnlockRequestStatus
)

# Core entities
from .entities import (
    Occurrence,
    TreatmentOccurrence,
    MedicationOccurrence,
    PaymentOccurrence,
    FinancialUnlockRequest,
    UserContext,
    occurrence_model
)

# Request models
from .requests import (
    RecurrencePlan,
    RecurrenceOptions,
    CreateTreatmentsRequest,
    CreateMedicationsRequest,
    CreatePaymentsRequest,
    RescheduleRequest
)

__all__ = [
    # Base models
    "BaseEntity",

    # Enumerations
    "Cadence",
    "OccurrenceKind",
    "TreatmentStatus",
    "PaymentStatus",
    "MedicationStatus",
    "UnlockRequestStatus",

    # Core entities
    "Occurrence",
    "TreatmentOccurrence",
    "MedicationOccurrence",
    "PaymentOccurrence",
    "FinancialUnlockRequest",
    "UserContext",
    "occurrence_model",

    # Request models
    "RecurrencePlan",
    "RecurrenceOptions",
    "CreateTreatmentsRequest",
    "CreateMedicationsRequest",
    "CreatePaymentsRequest",
    "RescheduleRequest"
]
