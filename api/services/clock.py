# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Clock collaborator supplying "today" to the status lifecycle.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo


class Clock(ABC):
    """Source of the current date and time."""

    @abstractmethod
    def now(self) -> datetime:
        """Current clinic-local time, naive."""

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall clock in the clinic's timezone, returned as naive local time."""

    def __init__(self, timezone: str = 'America/Sao_Paulo'):
        self.zone = ZoneInfo(timezone)

    def now(self) -> datetime:
        return datetime.now(self.zone).replace(tzinfo=None)


class FixedClock(Clock):
    """Clock frozen at a given moment, for tests and replays."""

    def __init__(self, moment):
        if isinstance(moment, datetime):
            self._now = moment
        else:
            self._now = datetime.combine(moment, time(9, 0))

    def now(self) -> datetime:
        return self._now

    def advance(self, **delta) -> None:
        """Move the clock forward by timedelta keyword arguments."""
        self._now = self._now + timedelta(**delta)
