# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import os
import pytest
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import MagicMock
from bson import ObjectId

from models.entities import (
    TreatmentOccurrence,
    MedicationOccurrence,
    PaymentOccurrence,
    UserContext
)
from services.clock import FixedClock
from config import SchedulingConfig

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['MONGODB_DATABASE'] = 'clinic_scheduling_test'


@pytest.fixture
def org_id():
    """Organization scope shared by the sample data."""
    return str(ObjectId())


@pytest.fixture
def user_context(org_id):
    """Staff user without financial privileges."""
    return UserContext(
        user_id=str(ObjectId()),
        org_id=org_id,
        email="reception@clinic.test",
        name="Reception",
        permissions=["occurrence:create", "occurrence:update"]
    )


@pytest.fixture
def approver_context(org_id):
    """Staff user holding the financial approve permission."""
    return UserContext(
        user_id=str(ObjectId()),
        org_id=org_id,
        email="finance@clinic.test",
        name="Finance",
        permissions=["financial:approve"]
    )


@pytest.fixture
def clock():
    """Clock frozen on 2025-01-15 at 09:00."""
    return FixedClock(date(2025, 1, 15))


@pytest.fixture
def scheduling_config():
    """Configuration with test defaults."""
    return SchedulingConfig(environment='test')


@pytest.fixture
def mock_mongo():
    """MongoDB service double for the occurrence service."""
    mongo = MagicMock()
    mongo.create_many.side_effect = lambda collection, documents, user_id: [
        str(document["_id"]) for document in documents
    ]
    mongo.update_many.side_effect = lambda collection, org_id, changes, user_id: len(changes)
    mongo.update_by_org.return_value = True
    mongo.delete_by_org.return_value = True
    mongo.list_by_subject.return_value = []
    mongo.find_by_org.return_value = []
    return mongo


@pytest.fixture
def stamps(org_id):
    """Organization and audit fields required by every entity."""
    user_id = str(ObjectId())
    return {
        "organization_id": org_id,
        "created_by": user_id,
        "updated_by": user_id
    }


@pytest.fixture
def make_treatment(stamps):
    """Factory for treatment occurrences."""
    def factory(occurrence_date, subject_id="patient-1", **fields):
        return TreatmentOccurrence(
            **stamps, subject_id=subject_id, occurrence_date=occurrence_date, **fields
        )
    return factory


@pytest.fixture
def make_medication(stamps):
    """Factory for medication occurrences."""
    def factory(occurrence_date, subject_id="patient-1", medication_name="Amoxicillin", **fields):
        return MedicationOccurrence(
            **stamps,
            subject_id=subject_id,
            occurrence_date=occurrence_date,
            medication_name=medication_name,
            dosage=fields.pop("dosage", "500mg"),
            frequency_label=fields.pop("frequency_label", "8/8h"),
            **fields
        )
    return factory


@pytest.fixture
def make_payment(stamps):
    """Factory for payment occurrences."""
    def factory(occurrence_date, subject_id="patient-1", amount=Decimal("150.00"), **fields):
        return PaymentOccurrence(
            **stamps, subject_id=subject_id, occurrence_date=occurrence_date, amount=amount, **fields
        )
    return factory


@pytest.fixture
def now():
    """Reference timestamp for authorization checks."""
    return datetime(2025, 1, 15, 9, 0, 0)
