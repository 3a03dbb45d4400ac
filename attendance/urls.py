from django.urls import path

from .views import (
    HandRaiseView,
    HeartbeatView,
    ScheduledClassStartView,
    SessionAttendanceView,
    SessionContentView,
    SessionCreateView,
    SessionDetailView,
    StudentLoginView,
    StudentStatsView,
)

urlpatterns = [
    path("student/login", StudentLoginView.as_view(), name="student-login"),
    path("student/session/heartbeat", HeartbeatView.as_view(), name="student-heartbeat"),
    path("student/session/hand", HandRaiseView.as_view(), name="student-hand"),
    path("student/session/content", SessionContentView.as_view(), name="student-content"),
    path("sessions", SessionCreateView.as_view(), name="session-create"),
    path("sessions/<int:session_id>", SessionDetailView.as_view(), name="session-detail"),
    path("sessions/<int:session_id>/attendance", SessionAttendanceView.as_view(), name="session-attendance"),
    path("scheduled-classes/<int:scheduled_id>/start", ScheduledClassStartView.as_view(),
         name="scheduled-class-start"),
    path("students/<int:student_id>/stats", StudentStatsView.as_view(), name="student-stats"),
]
