# attendance/signals.py
import logging

from django.db import transaction
from django.dispatch import Signal

logger = logging.getLogger(__name__)

# Sent after any committed write to a SessionAttendance row.
# kwargs: session_id, student_id
attendance_changed = Signal()


def notify_attendance_changed(session_id, student_id) -> None:
    """Fire-and-forget: dispatched on commit, receiver errors are logged and dropped."""
    def _send():
        results = attendance_changed.send_robust(
            sender=None, session_id=session_id, student_id=student_id
        )
        for receiver, result in results:
            if isinstance(result, Exception):
                logger.warning(
                    "attendance_changed receiver %r failed for session=%s student=%s: %s",
                    receiver, session_id, student_id, result,
                )

    transaction.on_commit(_send)
