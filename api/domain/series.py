# SPDX-License-Identifier: Apache-2.0

"""
Series domain logic for cascading date edits.

A series is never stored. It is reconstructed from the occurrences sharing
a series key, so these functions take the full sibling listing as input.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from models.entities import Occurrence
from models.enums import OccurrenceKind
from domain.lifecycle import is_pending


SeriesKey = Tuple[str, ...]


@dataclass(frozen=True)
class ShiftedOccurrence:
    """Occurrence paired with the date it moves to."""
    occurrence: Occurrence
    new_date: date

    @property
    def original_date(self) -> date:
        return self.occurrence.occurrence_date


SERIES_KEY_EXTRACTORS: Dict[OccurrenceKind, Callable[[Occurrence], Optional[SeriesKey]]] = {
    OccurrenceKind.TREATMENT: lambda o: (o.subject_id,),
    OccurrenceKind.MEDICATION: lambda o: (o.subject_id, o.medication_name),
    # Payments are generated in series but never cascaded
    OccurrenceKind.PAYMENT: lambda o: None,
}


def series_key(occurrence: Occurrence) -> Optional[SeriesKey]:
    """Return the attributes defining "same series", or None when the kind has none."""
    return SERIES_KEY_EXTRACTORS[OccurrenceKind(occurrence.kind)](occurrence)


def find_subsequent(edited: Occurrence, all_occurrences: List[Occurrence]) -> List[Occurrence]:
    """
    Find the siblings eligible for a cascading shift.

    Args:
        edited: The occurrence being edited, as stored before the edit
        all_occurrences: Candidate siblings (may include edited itself)

    Returns:
        Pending occurrences of the same series dated strictly after the
        edited occurrence's original date, ascending by date with ties in
        input order
    """
    key = series_key(edited)
    if key is None:
        return []

    original_date = edited.occurrence_date
    subsequent = [
        occurrence for occurrence in all_occurrences
        if occurrence.kind == edited.kind
        and occurrence.id != edited.id
        and series_key(occurrence) == key
        and occurrence.occurrence_date > original_date
        and is_pending(occurrence)
    ]

    # sorted() is stable, so equal dates keep input order
    return sorted(subsequent, key=lambda o: o.occurrence_date)


def day_delta(original_date: date, new_date: date) -> int:
    """Days between an occurrence's original and edited date."""
    return (new_date - original_date).days


def shift(siblings: List[Occurrence], delta_days: int) -> List[ShiftedOccurrence]:
    """
    Move each sibling by the same number of calendar days.

    No cadence is re-evaluated, so relative spacing is preserved exactly.
    """
    step = timedelta(days=delta_days)
    return [ShiftedOccurrence(occurrence=o, new_date=o.occurrence_date + step) for o in siblings]


def should_offer_cascade(edited: Occurrence, new_date: date, siblings: List[Occurrence]) -> bool:
    """Cascade is offered only for a real date change with siblings to move."""
    return day_delta(edited.occurrence_date, new_date) != 0 and len(siblings) > 0
