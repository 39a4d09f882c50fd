# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Environment-driven configuration for the scheduling engine.
"""

import os
from dataclasses import dataclass, field
from typing import Dict

from models.enums import OccurrenceKind


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == 'true'


@dataclass
class SchedulingConfig:
    """Scheduling engine configuration settings."""
    environment: str = 'development'
    timezone: str = 'America/Sao_Paulo'
    unlock_window_hours: int = 12
    use_transactions: bool = False
    collections: Dict[OccurrenceKind, str] = field(default_factory=lambda: {
        OccurrenceKind.TREATMENT: 'treatments',
        OccurrenceKind.MEDICATION: 'medications',
        OccurrenceKind.PAYMENT: 'payments',
    })
    unlock_requests_collection: str = 'financial_unlock_requests'

    def collection_for(self, kind: OccurrenceKind) -> str:
        """Collection name for an occurrence kind."""
        return self.collections[OccurrenceKind(kind)]


def load_scheduling_config() -> SchedulingConfig:
    """
    Create scheduling configuration from environment variables.

    Returns:
        SchedulingConfig: Configuration with environment overrides applied
    """
    return SchedulingConfig(
        environment=os.getenv('ENVIRONMENT', 'development'),
        timezone=os.getenv('CLINIC_TIMEZONE', 'America/Sao_Paulo'),
        unlock_window_hours=int(os.getenv('FINANCIAL_UNLOCK_HOURS', '12')),
        use_transactions=_env_flag('MONGODB_USE_TRANSACTIONS', 'false')
    )
