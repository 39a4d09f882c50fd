#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Script to create the MongoDB indexes used by occurrence listings and the
series lookups of cascading reschedules.
"""

import sys
import os
import logging

# Add the parent directory to the path so we can import from api
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import load_scheduling_config
from models.enums import OccurrenceKind
from observability.config import setup_structured_logging
from services.mongodb import MongoDBService, close_mongodb_connection, get_mongodb_service

logger = logging.getLogger(__name__)


def create_scheduling_indexes(mongodb_service: MongoDBService) -> None:
    """Create indexes for the collections named by the scheduling configuration."""
    config = load_scheduling_config()
    mongodb_service.create_indexes(
        occurrence_collections=[config.collection_for(kind) for kind in OccurrenceKind],
        medication_collection=config.collection_for(OccurrenceKind.MEDICATION),
        unlock_collection=config.unlock_requests_collection
    )


def main() -> int:
    """Create MongoDB indexes."""
    setup_structured_logging(os.getenv('ENVIRONMENT', 'development'))
    mongodb_service = get_mongodb_service()

    try:
        health = mongodb_service.health_check()
        if health['status'] != 'healthy':
            logger.error(f"MongoDB is not healthy: {health}")
            return 1

        logger.info(f"Connected to MongoDB {health['version']} - Database: {health['database']}")
        create_scheduling_indexes(mongodb_service)
        return 0
    finally:
        close_mongodb_connection()


if __name__ == "__main__":
    sys.exit(main())
