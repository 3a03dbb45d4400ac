# attendance/presence.py
"""
Read-time derivation of what the teacher sees for each attendance row.

Nothing here touches storage. Every function takes `now` explicitly because
the result is time-dependent: a row that was ACTIVE a minute ago can be
OFFLINE now without any write having happened in between.
"""
from __future__ import annotations

import datetime as dt
import enum
from typing import Iterable, List, Optional

DEFAULT_OFFLINE_TIMEOUT = 60


class AttentionState(str, enum.Enum):
    """State reported by the student's client."""
    ACTIVE = "ACTIVE"
    DISTRACTED = "DISTRACTED"
    IDLE = "IDLE"

    @classmethod
    def choices(cls):
        return [(s.value, s.value.title()) for s in cls]


class EffectiveStatus(str, enum.Enum):
    """Display status: the reported state, or OFFLINE once heartbeats go stale."""
    ACTIVE = "ACTIVE"
    DISTRACTED = "DISTRACTED"
    IDLE = "IDLE"
    OFFLINE = "OFFLINE"


# Lower sorts first: students needing attention surface at the top.
STATUS_PRIORITY = {
    EffectiveStatus.DISTRACTED: 0,
    EffectiveStatus.IDLE: 1,
    EffectiveStatus.ACTIVE: 2,
    EffectiveStatus.OFFLINE: 3,
}


def _seconds_since(then: dt.datetime, now: dt.datetime) -> float:
    return (now - then).total_seconds()


def effective_status(record, now: dt.datetime, offline_timeout: int = DEFAULT_OFFLINE_TIMEOUT) -> EffectiveStatus:
    """OFFLINE iff the last heartbeat is strictly older than offline_timeout, else the stored state."""
    if _seconds_since(record.last_heartbeat, now) > offline_timeout:
        return EffectiveStatus.OFFLINE
    return EffectiveStatus(AttentionState(record.current_status).value)


def heartbeat_countdown(record, now: dt.datetime, offline_timeout: int = DEFAULT_OFFLINE_TIMEOUT) -> int:
    """Whole seconds left before the row is shown as OFFLINE (never negative)."""
    remaining = max(0.0, offline_timeout - _seconds_since(record.last_heartbeat, now))
    return int(remaining)


def status_elapsed(record, now: dt.datetime) -> int:
    """Seconds spent in the current DISTRACTED/IDLE state; 0 while ACTIVE."""
    if AttentionState(record.current_status) is AttentionState.ACTIVE:
        return 0
    return max(0, int(_seconds_since(record.last_status_change, now)))


def parse_status_filter(value: Optional[str]) -> Optional[EffectiveStatus]:
    """
    Turn a `status` query value into a filter. Empty/None/"ALL" means no filter.
    Raises ValueError for anything that is not an EffectiveStatus name.
    """
    if not value or value.upper() == "ALL":
        return None
    try:
        return EffectiveStatus(value.upper())
    except ValueError:
        raise ValueError(
            "status must be one of ALL|" + "|".join(s.value for s in EffectiveStatus)
        ) from None


def filter_by_status(records: Iterable, status: Optional[EffectiveStatus], now: dt.datetime,
                     offline_timeout: int = DEFAULT_OFFLINE_TIMEOUT) -> List:
    if status is None:
        return list(records)
    return [r for r in records if effective_status(r, now, offline_timeout) is status]


def sort_by_priority(records: Iterable, now: dt.datetime, offline_timeout: int = DEFAULT_OFFLINE_TIMEOUT) -> List:
    """Stable sort by STATUS_PRIORITY; rows with equal priority keep their input order."""
    return sorted(records, key=lambda r: STATUS_PRIORITY[effective_status(r, now, offline_timeout)])
