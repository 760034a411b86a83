"""
lobstersage/protocol/streak.py

Daily activity streak tracking.

A streak is the number of consecutive UTC calendar days with at least one
recorded activity, counted back from the most recent one. The streak stays
alive through "yesterday": a participant who was active yesterday but not yet
today keeps their streak until the day rolls over again.
"""

import logging
import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, List, Optional

logger = logging.getLogger("lobstersage.protocol.streak")


class ActivityAction(Enum):
    """Kind of event that counts as daily activity."""
    PREDICTION = "prediction"
    YIELD = "yield"
    BURN = "burn"


@dataclass(frozen=True)
class ActivityRecord:
    """One day of activity for an address."""
    date: date
    timestamp: float
    action: ActivityAction = ActivityAction.PREDICTION

    def to_dict(self) -> dict:
        return {
            'date': self.date.isoformat(),
            'timestamp': self.timestamp,
            'action': self.action.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ActivityRecord":
        return cls(
            date=date.fromisoformat(data['date']),
            timestamp=data.get('timestamp', 0.0),
            action=ActivityAction(data.get('action', 'prediction')),
        )


def utc_today(now: Optional[float] = None) -> date:
    """UTC calendar day for a unix timestamp (defaults to now)."""
    ts = time.time() if now is None else now
    return datetime.fromtimestamp(ts, tz=timezone.utc).date()


def compute_streak(records: Iterable[ActivityRecord], today: Optional[date] = None) -> int:
    """
    Count consecutive active days ending today or yesterday.

    Args:
        records: Activity records (any order, at most one per day expected)
        today: Evaluation day, defaults to the current UTC day

    Returns:
        Streak length in days, 0 if the latest activity is older than yesterday
    """
    days = sorted({r.date for r in records}, reverse=True)
    if not days:
        return 0

    today = today or utc_today()
    yesterday = today - timedelta(days=1)
    if days[0] not in (today, yesterday):
        return 0

    streak = 1
    for newer, older in zip(days, days[1:]):
        if (newer - older).days == 1:
            streak += 1
        else:
            break
    return streak


def add_activity(
    records: List[ActivityRecord],
    action: ActivityAction = ActivityAction.PREDICTION,
    now: Optional[float] = None,
) -> bool:
    """
    Append today's activity unless the day is already recorded.

    Returns:
        True if a new record was added
    """
    ts = time.time() if now is None else now
    day = utc_today(ts)
    if any(r.date == day for r in records):
        return False
    records.append(ActivityRecord(date=day, timestamp=ts, action=action))
    return True
