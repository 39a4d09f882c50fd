# SPDX-License-Identifier: Apache-2.0

"""
Recurrence domain logic for scheduled occurrences.

This module contains pure functions that step a date forward by a cadence
and expand a recurrence plan into the ordered list of dates to materialize.
Monthly steps use relativedelta, which clamps to the last valid day of the
target month (Jan 31 + 1 month = Feb 28/29).
"""

from datetime import date, timedelta
from typing import Dict, List, Union
from dateutil.relativedelta import relativedelta

from models.enums import Cadence
from models.requests import RecurrencePlan
from domain.exceptions import InvalidCadence


CADENCE_STEPS: Dict[Cadence, Union[timedelta, relativedelta]] = {
    Cadence.TWICE_WEEKLY: timedelta(days=3),
    Cadence.WEEKLY: timedelta(days=7),
    Cadence.BIWEEKLY: timedelta(days=14),
    Cadence.TRIWEEKLY: timedelta(days=21),
    Cadence.MONTHLY: relativedelta(months=1),
}

# Labels stored by the legacy portal forms
LEGACY_CADENCE_LABELS: Dict[str, Cadence] = {
    "2x semana": Cadence.TWICE_WEEKLY,
    "1x semana": Cadence.WEEKLY,
    "1x quinzena": Cadence.BIWEEKLY,
    "1x 3 semanas": Cadence.TRIWEEKLY,
    "1x mês": Cadence.MONTHLY,
}


def parse_cadence(tag: Union[Cadence, str]) -> Cadence:
    """
    Resolve a cadence tag or legacy label.

    Args:
        tag: Cadence enum, its value, or a legacy portal label

    Returns:
        The matching Cadence

    Raises:
        InvalidCadence: If the tag is not recognized
    """
    if isinstance(tag, Cadence):
        return tag

    if not isinstance(tag, str):
        raise InvalidCadence(tag)

    normalized = tag.strip().lower()
    try:
        return Cadence(normalized)
    except ValueError:
        pass

    if normalized in LEGACY_CADENCE_LABELS:
        return LEGACY_CADENCE_LABELS[normalized]

    raise InvalidCadence(tag)


def next_date(current: date, cadence: Union[Cadence, str]) -> date:
    """
    Calculate the date following current for a cadence.

    Args:
        current: Current occurrence date
        cadence: Cadence tag

    Returns:
        Next occurrence date

    Raises:
        InvalidCadence: If the cadence is not recognized
    """
    return current + CADENCE_STEPS[parse_cadence(cadence)]


def expand(start_date: date, end_date: date, cadence: Union[Cadence, str]) -> List[date]:
    """
    Expand a recurrence into its ordered occurrence dates.

    The end boundary is inclusive. A start after the end yields an empty
    list rather than an error. Each step advances from the previously
    emitted date, so monthly series starting on the 31st drift to the
    clamped day.

    Args:
        start_date: First occurrence date
        end_date: Last allowed occurrence date
        cadence: Cadence tag

    Returns:
        Strictly increasing list of dates within [start_date, end_date]

    Raises:
        InvalidCadence: If the cadence is not recognized, before any date is produced
    """
    resolved = parse_cadence(cadence)

    dates = []
    current = start_date
    while current <= end_date:
        dates.append(current)
        current = next_date(current, resolved)

    return dates


def preview(plan: RecurrencePlan) -> List[date]:
    """Expand a recurrence plan for display before it is submitted."""
    return expand(plan.start_date, plan.end_date, plan.cadence)
