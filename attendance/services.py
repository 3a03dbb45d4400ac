# attendance/services.py
from __future__ import annotations

import datetime as dt
import logging
import math
from typing import Dict, List, Optional, Tuple

import pytz
from django.db import transaction
from django.utils import timezone
from django.utils.crypto import get_random_string
from rest_framework.exceptions import AuthenticationFailed, NotFound, PermissionDenied

from .conf import get_setting
from .exceptions import Conflict, Gone, ValidationFailed
from .models import (
    ActivityLog,
    ClassSession,
    Group,
    PreparedLesson,
    ScheduledClass,
    SessionAttendance,
    Student,
)
from .presence import AttentionState
from .signals import notify_attendance_changed

logger = logging.getLogger(__name__)

RECENT_SESSIONS_LIMIT = 5
_PASSWORD_ATTEMPTS = 10


def _now(now: Optional[dt.datetime]) -> dt.datetime:
    """
    Server clock as tz-aware UTC unless the caller pins it, truncated to the
    second so whole-second durations chain without gaps.
    """
    d = now or timezone.now()
    if timezone.is_naive(d):
        d = timezone.make_aware(d, dt.timezone.utc)
    return d.astimezone(dt.timezone.utc).replace(microsecond=0)


def _whole_seconds(start: dt.datetime, end: dt.datetime) -> int:
    return max(0, math.floor((end - start).total_seconds()))


# --- Attendance reconciler -------------------------------------------------

def report_heartbeat(session_id, student_id, state: str | AttentionState,
                     *, now: Optional[dt.datetime] = None) -> SessionAttendance:
    """
    Apply one heartbeat to the (session, student) attendance row.

    On a transition the interval that just ended is appended to ActivityLog
    and the row is moved to the new state, in one transaction. Otherwise only
    last_heartbeat advances. The row is locked for the read-modify-write so
    two concurrent transitions cannot both close the same interval.
    """
    state = AttentionState(state)
    now = _now(now)

    with transaction.atomic():
        try:
            record = SessionAttendance.objects.select_for_update().get(
                session_id=session_id, student_id=student_id
            )
        except SessionAttendance.DoesNotExist:
            raise NotFound("No attendance record for this session; join first.") from None

        # A lagging clock must not move timestamps backwards.
        now = max(now, record.last_heartbeat)

        if record.current_status != state.value:
            previous = record.current_status
            duration = _whole_seconds(record.last_status_change, now)
            ActivityLog.objects.create(
                session_id=record.session_id,
                student_id=record.student_id,
                status=previous,
                timestamp=record.last_status_change,
                duration=duration,
            )
            record.current_status = state.value
            record.last_heartbeat = now
            record.last_status_change = now
            record.save(update_fields=["current_status", "last_heartbeat", "last_status_change"])
            logger.debug(
                "session=%s student=%s %s -> %s after %ss",
                session_id, student_id, previous, state.value, duration,
            )
        else:
            record.last_heartbeat = now
            record.save(update_fields=["last_heartbeat"])

        notify_attendance_changed(record.session_id, record.student_id)
    return record


def set_hand_raised(session_id, student_id, raised: bool) -> None:
    """Patch only hand_raised; status and timing fields are never written here."""
    updated = SessionAttendance.objects.filter(
        session_id=session_id, student_id=student_id
    ).update(hand_raised=raised)
    if not updated:
        raise NotFound("No attendance record for this session; join first.")
    notify_attendance_changed(session_id, student_id)


# --- Session lifecycle guard -----------------------------------------------

def generate_session_password() -> str:
    """Join code from an alphabet without look-alike characters (no 0/O/1/I)."""
    length = get_setting("SESSION_PASSWORD_LENGTH")
    alphabet = get_setting("SESSION_PASSWORD_ALPHABET")
    for _ in range(_PASSWORD_ATTEMPTS):
        password = get_random_string(length, allowed_chars=alphabet)
        # Join looks sessions up by password, so live codes must be unique.
        if not ClassSession.objects.filter(password=password, is_active=True).exists():
            return password
    raise RuntimeError("could not generate a unique session password")


def start_session(teacher, group_id, prepared_lesson_id, *, now: Optional[dt.datetime] = None) -> ClassSession:
    """Create an active session; at most one active session per group."""
    if not group_id or not prepared_lesson_id:
        raise ValidationFailed("Group and lesson must both be assigned before starting a session.")

    with transaction.atomic():
        # Locking the group serializes concurrent starts for it.
        group = Group.objects.select_for_update().filter(pk=group_id).first()
        if group is None or group.teacher_id != teacher.pk:
            raise PermissionDenied("Forbidden (Group)")

        lesson = PreparedLesson.objects.filter(pk=prepared_lesson_id).first()
        if lesson is None or lesson.teacher_id != teacher.pk:
            raise PermissionDenied("Forbidden (Lesson)")

        if ClassSession.objects.filter(group=group, is_active=True).exists():
            raise Conflict()

        session = ClassSession.objects.create(
            teacher=teacher,
            group=group,
            prepared_lesson=lesson,
            password=generate_session_password(),
            is_active=True,
            started_at=_now(now),
        )
    logger.info("session %s started for group %s by teacher %s", session.pk, group.pk, teacher.pk)
    return session


def start_scheduled_class(teacher, scheduled_class_id, *, now: Optional[dt.datetime] = None) -> ClassSession:
    scheduled = ScheduledClass.objects.filter(pk=scheduled_class_id, teacher=teacher).first()
    if scheduled is None:
        raise NotFound("Scheduled class not found")
    if not scheduled.group_id:
        raise ValidationFailed("Group must be assigned before starting a session")
    if not scheduled.prepared_lesson_id:
        raise ValidationFailed("Lesson must be assigned before starting a session")
    return start_session(teacher, scheduled.group_id, scheduled.prepared_lesson_id, now=now)


def get_owned_session(teacher, session_id) -> ClassSession:
    """Missing and foreign sessions both read as 403 so existence does not leak."""
    session = (
        ClassSession.objects.select_related("group", "prepared_lesson")
        .filter(pk=session_id)
        .first()
    )
    if session is None or session.teacher_id != teacher.pk:
        raise PermissionDenied("Forbidden")
    return session


def end_session(teacher, session_id, *, now: Optional[dt.datetime] = None) -> ClassSession:
    """Deactivate the session. Ending an already ended session changes nothing."""
    session = get_owned_session(teacher, session_id)
    if not session.is_active:
        return session
    session.is_active = False
    session.ended_at = _now(now)
    session.save(update_fields=["is_active", "ended_at"])
    logger.info("session %s ended", session.pk)
    return session


def join_session(username: str, password: str,
                 *, now: Optional[dt.datetime] = None) -> Tuple[ClassSession, Student, SessionAttendance]:
    """
    Validate a student's join and open a fresh ACTIVE window for them.

    A rejoin from IDLE or DISTRACTED closes that interval (so the history
    stays gapless) and restarts the row at ACTIVE. A rejoin while already
    ACTIVE is not a transition and only advances last_heartbeat.
    """
    session = (
        ClassSession.objects.select_related("group", "prepared_lesson")
        .filter(password=password, is_active=True)
        .first()
    )
    if session is None:
        raise AuthenticationFailed("Invalid session password or session not active")

    student = session.group.students.filter(username__iexact=username).first()
    if student is None:
        raise AuthenticationFailed("Student not found in this class group")

    now = _now(now)
    with transaction.atomic():
        record, created = SessionAttendance.objects.select_for_update().get_or_create(
            session=session,
            student=student,
            defaults={
                "current_status": AttentionState.ACTIVE.value,
                "last_heartbeat": now,
                "last_status_change": now,
            },
        )
        if not created and record.current_status == AttentionState.ACTIVE.value:
            # Still ACTIVE: the open interval simply continues.
            record.last_heartbeat = max(now, record.last_heartbeat)
            record.save(update_fields=["last_heartbeat"])
        elif not created:
            now = max(now, record.last_heartbeat)
            if now > record.last_status_change:
                ActivityLog.objects.create(
                    session=session,
                    student=student,
                    status=record.current_status,
                    timestamp=record.last_status_change,
                    duration=_whole_seconds(record.last_status_change, now),
                )
            record.current_status = AttentionState.ACTIVE.value
            record.last_heartbeat = now
            record.last_status_change = now
            record.save(update_fields=["current_status", "last_heartbeat", "last_status_change"])
        notify_attendance_changed(session.pk, student.pk)

    logger.info("student %s joined session %s (rejoin=%s)", student.pk, session.pk, not created)
    return session, student, record


def get_student_session(principal) -> ClassSession:
    """Session a student token points at; Gone once the teacher ended it."""
    session = (
        ClassSession.objects.select_related("teacher", "prepared_lesson")
        .filter(pk=principal.session_id)
        .first()
    )
    if session is None:
        raise NotFound("Session not found")
    if not session.is_active:
        raise Gone()
    return session


def list_attendance(teacher, session_id):
    get_owned_session(teacher, session_id)
    return (
        SessionAttendance.objects.filter(session_id=session_id)
        .select_related("student")
        .order_by("student__first_name", "student__last_name", "student_id")
    )


# --- Stats -----------------------------------------------------------------

def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def student_stats(teacher, student_id, *, tz: str = "UTC") -> Dict:
    """
    Aggregate a student's ActivityLog history:
      - focusScore: share of ACTIVE intervals among all intervals, in percent.
      - distractions: intervals spent in any non-ACTIVE state.
      - totalSessions: distinct sessions that produced history.
    Recent session dates are rendered in `tz`.
    """
    tzinfo = pytz.timezone(tz)

    student = (
        Student.objects.select_related("group")
        .filter(pk=student_id, group__teacher=teacher)
        .first()
    )
    if student is None:
        raise NotFound("Not Found")

    logs = list(ActivityLog.objects.filter(student=student).only("status", "session"))
    total = len(logs)
    active = sum(1 for log in logs if log.status == AttentionState.ACTIVE.value)
    distractions = total - active
    focus_score = _round_half_up(active / total * 100) if total else 0

    session_ids = {log.session_id for log in logs}
    recent: List[Dict] = []
    qs = (
        ClassSession.objects.filter(pk__in=session_ids)
        .select_related("prepared_lesson")
        .order_by("-started_at")[:RECENT_SESSIONS_LIMIT]
    )
    for s in qs:
        recent.append({
            "id": s.pk,
            "date": s.started_at.astimezone(tzinfo).isoformat(),
            "lessonTitle": s.prepared_lesson.title if s.prepared_lesson_id else "Untitled Lesson",
        })

    return {
        "studentName": student.full_name,
        "username": student.username,
        "focusScore": focus_score,
        "totalSessions": len(session_ids),
        "distractions": distractions,
        "recentSessions": recent,
    }
