# attendance/tests/test_presence.py
from types import SimpleNamespace

import pytest

from attendance.presence import (
    EffectiveStatus,
    effective_status,
    filter_by_status,
    heartbeat_countdown,
    parse_status_filter,
    sort_by_priority,
    status_elapsed,
)
from attendance.tests.utils import T0, at


def row(status="ACTIVE", heartbeat=0, changed=0, name=""):
    return SimpleNamespace(
        current_status=status,
        last_heartbeat=at(heartbeat),
        last_status_change=at(changed),
        name=name,
    )


def test_stale_heartbeat_reads_offline_whatever_was_reported():
    r = row("ACTIVE", heartbeat=0)
    assert effective_status(r, at(65), 60) is EffectiveStatus.OFFLINE
    assert r.current_status == "ACTIVE"


@pytest.mark.parametrize("elapsed, expected", [
    (0, EffectiveStatus.IDLE),
    (59.9, EffectiveStatus.IDLE),
    (60, EffectiveStatus.IDLE),
    (60.001, EffectiveStatus.OFFLINE),
    (3600, EffectiveStatus.OFFLINE),
])
def test_offline_boundary_is_strictly_greater_than_timeout(elapsed, expected):
    assert effective_status(row("IDLE"), at(elapsed), 60) is expected


def test_countdown_never_negative():
    r = row(heartbeat=0)
    assert heartbeat_countdown(r, T0, 60) == 60
    assert heartbeat_countdown(r, at(57.5), 60) == 2
    assert heartbeat_countdown(r, at(60), 60) == 0
    assert heartbeat_countdown(r, at(600), 60) == 0


def test_status_elapsed_only_counts_non_active_states():
    assert status_elapsed(row("ACTIVE", changed=0), at(40)) == 0
    assert status_elapsed(row("DISTRACTED", changed=10), at(40)) == 30
    assert status_elapsed(row("IDLE", changed=10), at(10.5)) == 0


def test_priority_surfaces_students_needing_attention_first():
    rows = [
        row("ACTIVE", heartbeat=0, name="gone"),       # stale -> OFFLINE
        row("ACTIVE", heartbeat=50, name="active"),
        row("IDLE", heartbeat=50, name="idle"),
        row("DISTRACTED", heartbeat=50, name="distracted"),
        row("ACTIVE", heartbeat=55, name="active-2"),
    ]
    ordered = sort_by_priority(rows, at(70), 60)
    assert [r.name for r in ordered] == ["distracted", "idle", "active", "active-2", "gone"]


def test_filter_by_one_status_or_all():
    rows = [row("ACTIVE", heartbeat=0, name="gone"), row("ACTIVE", heartbeat=50, name="here")]
    assert [r.name for r in filter_by_status(rows, EffectiveStatus.OFFLINE, at(70), 60)] == ["gone"]
    assert [r.name for r in filter_by_status(rows, EffectiveStatus.ACTIVE, at(70), 60)] == ["here"]
    assert len(filter_by_status(rows, None, at(70), 60)) == 2


def test_parse_status_filter():
    assert parse_status_filter(None) is None
    assert parse_status_filter("all") is None
    assert parse_status_filter("offline") is EffectiveStatus.OFFLINE
    with pytest.raises(ValueError):
        parse_status_filter("AWAY")
