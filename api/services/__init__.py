# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Storage, clock and occurrence orchestration.
"""

from .clock import Clock, SystemClock, FixedClock
from .mongodb import MongoDBService, get_mongodb_service, close_mongodb_connection
from .occurrences import (
    OccurrenceService,
    ReschedulePreview,
    RescheduleResult,
    create_occurrence_service
)

__all__ = [
    "Clock",
    "SystemClock",
    "FixedClock",
    "MongoDBService",
    "get_mongodb_service",
    "close_mongodb_connection",
    "OccurrenceService",
    "ReschedulePreview",
    "RescheduleResult",
    "create_occurrence_service"
]
