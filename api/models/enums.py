# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the clinic scheduling engine.
"""

from enum import Enum


class Cadence(str, Enum):
    """Repeat interval between consecutive occurrences of a series."""
    TWICE_WEEKLY = "twice-weekly"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    TRIWEEKLY = "triweekly"
    MONTHLY = "monthly"


class OccurrenceKind(str, Enum):
    """Kinds of dated occurrences kept per patient."""
    TREATMENT = "treatment"
    MEDICATION = "medication"
    PAYMENT = "payment"


class TreatmentStatus(str, Enum):
    """Treatment occurrence status."""
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    MISSED = "missed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment occurrence status. OVERDUE is only ever derived on read."""
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class MedicationStatus(str, Enum):
    """Medication occurrence status, backed by the is_active flag."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class UnlockRequestStatus(str, Enum):
    """Financial unlock request status."""
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
