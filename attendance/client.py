# attendance/client.py
"""
Student and teacher side of the attendance protocol.

The student side is a focus detector plus a heartbeat reporter, wired
together by FocusTracker, which owns every timer and listener for one
joined session. The teacher side is DashboardPoller: a plain re-fetch loop
that recomputes effective status locally on every tick.

Everything here runs on one asyncio loop; the only blocking work (HTTP)
is pushed to the default executor so a slow request never delays a tick.
"""
from __future__ import annotations

import asyncio
import datetime as dt
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

import requests
from django.utils.dateparse import parse_datetime

from .presence import (
    DEFAULT_OFFLINE_TIMEOUT,
    AttentionState,
    EffectiveStatus,
    effective_status,
    filter_by_status,
    heartbeat_countdown,
    sort_by_priority,
    status_elapsed,
)

logger = logging.getLogger(__name__)

IDLE_THRESHOLD = 60.0          # seconds without input before ACTIVE becomes IDLE
CHECK_INTERVAL = 1.0           # detector re-evaluation tick
KEEP_ALIVE_INTERVAL = 30.0     # heartbeat cadence regardless of changes
POLL_INTERVAL = 5.0            # teacher dashboard re-fetch
REQUEST_TIMEOUT = 5.0


class SessionEnded(Exception):
    """The teacher ended the session; the student must log in again."""


class ActivityDetector:
    """
    Derives the local AttentionState from input, focus and visibility signals.

    Hidden or unfocused always means DISTRACTED; otherwise no input for
    longer than `idle_threshold` means IDLE; otherwise ACTIVE.
    """

    def __init__(self, idle_threshold: float = IDLE_THRESHOLD, clock: Callable[[], float] = time.monotonic):
        self.idle_threshold = idle_threshold
        self._clock = clock
        self.last_activity_at = clock()
        self.hidden = False
        self.focused = True
        self._state = AttentionState.ACTIVE
        self._listeners: List[Callable[[AttentionState], None]] = []

    @property
    def state(self) -> AttentionState:
        return self._state

    def subscribe(self, listener: Callable[[AttentionState], None]) -> Callable[[], None]:
        """Call `listener(new_state)` on every change; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def record_activity(self) -> None:
        """Pointer, keyboard or scroll input."""
        self.last_activity_at = self._clock()
        # Waking from IDLE should not wait for the next tick.
        if self._state is AttentionState.IDLE:
            self.evaluate()

    def set_focus(self, focused: bool) -> None:
        self.focused = focused
        self.evaluate()

    def set_hidden(self, hidden: bool) -> None:
        self.hidden = hidden
        self.evaluate()

    def tick(self) -> None:
        self.evaluate()

    def evaluate(self) -> AttentionState:
        if self.hidden or not self.focused:
            new_state = AttentionState.DISTRACTED
        elif self._clock() - self.last_activity_at > self.idle_threshold:
            new_state = AttentionState.IDLE
        else:
            new_state = AttentionState.ACTIVE

        if new_state is not self._state:
            self._state = new_state
            for listener in list(self._listeners):
                listener(new_state)
        return self._state


class HeartbeatReporter:
    """
    Sends the current state for one session. Failed pushes are logged and
    dropped: the next transition or keep-alive carries fresher state anyway.
    """

    def __init__(self, transport, session_id):
        self.transport = transport
        self.session_id = session_id

    def push(self, state: AttentionState) -> bool:
        try:
            self.transport.report(self.session_id, AttentionState(state))
        except requests.RequestException as e:
            logger.warning("heartbeat for session %s failed: %s", self.session_id, e)
            return False
        return True


class FocusTracker:
    """
    Lifecycle for one joined session: start() wires the detector to the
    reporter, sends the initial ACTIVE report and starts the check and
    keep-alive timers; stop() tears all of it down.
    """

    def __init__(self, detector: ActivityDetector, reporter: HeartbeatReporter,
                 check_interval: float = CHECK_INTERVAL, keep_alive_interval: float = KEEP_ALIVE_INTERVAL):
        self.detector = detector
        self.reporter = reporter
        self.check_interval = check_interval
        self.keep_alive_interval = keep_alive_interval
        self._tasks: List[asyncio.Task] = []
        self._pending: Set[asyncio.Future] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._unsubscribe = self.detector.subscribe(self._dispatch)
        self._dispatch(AttentionState.ACTIVE)
        self._tasks = [
            self._loop.create_task(self._every(self.check_interval, self.detector.tick)),
            self._loop.create_task(self._every(self.keep_alive_interval, self._keep_alive)),
        ]

    async def stop(self) -> None:
        """Cancel timers and listeners; reports already in flight are allowed to finish."""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def __aenter__(self):
        self.start()
        return self

    async def __aexit__(self, *exc):
        await self.stop()

    def _keep_alive(self) -> None:
        self._dispatch(self.detector.state)

    def _dispatch(self, state: AttentionState) -> None:
        fut = self._loop.run_in_executor(None, self.reporter.push, state)
        self._pending.add(fut)
        fut.add_done_callback(self._pending.discard)

    @staticmethod
    async def _every(interval: float, fn: Callable[[], None]) -> None:
        while True:
            await asyncio.sleep(interval)
            fn()


class ApiClient:
    """
    requests-based client for the HTTP API. Students call login() first;
    teachers pass `auth=(username, password)` for basic auth.
    """

    def __init__(self, base_url: str, *, auth=None, timeout: float = REQUEST_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = session or requests.Session()
        if auth is not None:
            self.http.auth = auth
        self.session_id = None

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api/{path.lstrip('/')}"

    def login(self, username: str, password: str) -> Dict[str, Any]:
        r = self.http.post(self._url("student/login"), json={"username": username, "password": password},
                           timeout=self.timeout)
        r.raise_for_status()
        data = r.json()
        self.session_id = data["sessionId"]
        self.http.headers["Authorization"] = f"Bearer {data['token']}"
        return data

    def report(self, session_id, state: AttentionState) -> None:
        r = self.http.post(self._url("student/session/heartbeat"),
                           json={"sessionId": str(session_id), "status": AttentionState(state).value},
                           timeout=self.timeout)
        r.raise_for_status()

    def raise_hand(self, raised: bool) -> None:
        r = self.http.post(self._url("student/session/hand"), json={"raised": bool(raised)}, timeout=self.timeout)
        r.raise_for_status()

    def fetch_content(self) -> Dict[str, Any]:
        r = self.http.get(self._url("student/session/content"), timeout=self.timeout)
        if r.status_code == 410:
            self.http.headers.pop("Authorization", None)
            raise SessionEnded("session ended")
        r.raise_for_status()
        return r.json()

    def fetch_attendance(self, session_id) -> List[Dict[str, Any]]:
        r = self.http.get(self._url(f"sessions/{session_id}/attendance"), timeout=self.timeout)
        r.raise_for_status()
        return r.json()


@dataclass
class AttendanceSnapshot:
    """One attendance row as received by the dashboard."""
    id: int
    student: Dict[str, Any]
    current_status: str
    last_heartbeat: dt.datetime
    last_status_change: dt.datetime
    hand_raised: bool = False

    @classmethod
    def from_json(cls, row: Dict[str, Any]) -> "AttendanceSnapshot":
        return cls(
            id=row["id"],
            student=row.get("student") or {},
            current_status=row["currentStatus"],
            last_heartbeat=parse_datetime(row["lastHeartbeat"]),
            last_status_change=parse_datetime(row["lastStatusChange"]),
            hand_raised=bool(row.get("handRaised", False)),
        )


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class DashboardPoller:
    """
    Teacher-side polling loop. Rows are re-fetched every `interval` seconds,
    but effective status is recomputed from the last rows at every view(),
    so a silent client still turns OFFLINE between fetches.
    """

    def __init__(self, fetch: Callable[[], List[Dict[str, Any]]], *, interval: float = POLL_INTERVAL,
                 offline_timeout: int = DEFAULT_OFFLINE_TIMEOUT, clock: Callable[[], dt.datetime] = _utcnow):
        self.fetch = fetch
        self.interval = interval
        self.offline_timeout = offline_timeout
        self._clock = clock
        self.rows: List[AttendanceSnapshot] = []

    def refresh(self) -> List[AttendanceSnapshot]:
        try:
            payload = self.fetch()
        except requests.RequestException as e:
            logger.warning("attendance refresh failed, keeping previous rows: %s", e)
            return self.rows
        self.rows = [AttendanceSnapshot.from_json(row) for row in payload]
        return self.rows

    def view(self, status: Optional[EffectiveStatus] = None, by_priority: bool = True) -> List[Dict[str, Any]]:
        now = self._clock()
        rows = filter_by_status(self.rows, status, now, self.offline_timeout)
        if by_priority:
            rows = sort_by_priority(rows, now, self.offline_timeout)
        return [
            {
                "id": r.id,
                "student": r.student,
                "handRaised": r.hand_raised,
                "effectiveStatus": effective_status(r, now, self.offline_timeout).value,
                "heartbeatCountdown": heartbeat_countdown(r, now, self.offline_timeout),
                "statusElapsed": status_elapsed(r, now),
            }
            for r in rows
        ]

    async def run(self, on_update: Callable[[List[Dict[str, Any]]], None], stop: asyncio.Event) -> None:
        """Refresh and publish until `stop` is set."""
        while not stop.is_set():
            await asyncio.get_running_loop().run_in_executor(None, self.refresh)
            on_update(self.view())
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
