# attendance/views.py
from __future__ import annotations

import pytz
from django.utils import timezone
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services
from .authentication import IsStudent, StudentTokenAuthentication, issue_student_token
from .conf import get_setting
from .presence import AttentionState, filter_by_status, parse_status_filter, sort_by_priority
from .serializers import (
    AttendanceSerializer,
    ClassSessionSerializer,
    ExerciseSerializer,
    StudentSerializer,
)

NO_CACHE_HEADERS = {
    'Cache-Control': 'no-store, no-cache, must-revalidate, proxy-revalidate',
    'Pragma': 'no-cache',
    'Expires': '0',
}


class StudentView(APIView):
    """Base for endpoints called by a joined student's client."""
    authentication_classes = [StudentTokenAuthentication]
    permission_classes = [IsStudent]


class StudentLoginView(APIView):
    """POST /api/student/login  {username, password} -> student token (cookie + body)."""
    authentication_classes = []
    permission_classes = [AllowAny]

    def get_authenticate_header(self, request):
        # Keeps failed logins at 401 instead of DRF's 403 fallback.
        return StudentTokenAuthentication().authenticate_header(request)

    def post(self, request):
        body = request.data or {}
        username = body.get('username')
        password = body.get('password')
        if not username or not password:
            return Response({'detail': 'Username and password are required.'}, status=400)

        session, student, _ = services.join_session(str(username), str(password))
        token = issue_student_token(student, session)

        response = Response({
            'success': True,
            'sessionId': session.pk,
            'lessonTitle': session.prepared_lesson.title,
            'student': StudentSerializer(student).data,
            'token': token,
        }, status=status.HTTP_200_OK)
        response.set_cookie(
            get_setting('STUDENT_TOKEN_COOKIE'),
            token,
            max_age=get_setting('STUDENT_TOKEN_TTL_HOURS') * 3600,
            httponly=True,
            secure=request.is_secure(),
            samesite='Lax',
            path='/',
        )
        return response


class HeartbeatView(StudentView):
    """POST /api/student/session/heartbeat  {sessionId, status}."""
    def post(self, request):
        body = request.data or {}
        session_id = body.get('sessionId')
        reported = body.get('status')
        if not session_id or not reported:
            return Response({'detail': 'Missing fields'}, status=400)
        try:
            state = AttentionState(reported)
        except ValueError:
            return Response({'detail': 'status must be ACTIVE|DISTRACTED|IDLE.'}, status=400)

        if str(session_id) != str(request.user.session_id):
            return Response({'detail': 'Session mismatch'}, status=status.HTTP_403_FORBIDDEN)

        services.report_heartbeat(request.user.session_id, request.user.student_id, state)
        return Response({'success': True}, status=status.HTTP_200_OK)


class HandRaiseView(StudentView):
    """POST /api/student/session/hand  {raised: bool}."""
    def post(self, request):
        raised = (request.data or {}).get('raised')
        if not isinstance(raised, bool):
            return Response({'detail': 'raised must be a boolean.'}, status=400)

        services.set_hand_raised(request.user.session_id, request.user.student_id, raised)
        return Response({'success': True, 'handRaised': raised}, status=status.HTTP_200_OK)


class SessionContentView(StudentView):
    """GET /api/student/session/content  (410 once the session is ended)."""
    def get(self, request):
        session = services.get_student_session(request.user)
        lesson = session.prepared_lesson
        exercises = lesson.exercises.select_related('resource').order_by('order_index', 'id')

        return Response({
            'session': {
                'id': session.pk,
                'startedAt': session.started_at,
                'teacher': {'email': session.teacher.email},
            },
            'lesson': {
                'title': lesson.title,
                'exercises': ExerciseSerializer(exercises, many=True).data,
            },
        }, status=status.HTTP_200_OK, headers=NO_CACHE_HEADERS)


class SessionCreateView(APIView):
    """POST /api/sessions  {groupId, preparedLessonId} (409 if the group already has an active session)."""
    def post(self, request):
        body = request.data or {}
        group_id = body.get('groupId')
        lesson_id = body.get('preparedLessonId')
        if not group_id or not lesson_id:
            return Response({'detail': 'Missing required fields'}, status=400)

        session = services.start_session(request.user, group_id, lesson_id)
        return Response(ClassSessionSerializer(session).data, status=status.HTTP_201_CREATED)


class SessionDetailView(APIView):
    """GET/DELETE /api/sessions/{session_id}. DELETE ends the session and is idempotent."""
    def get(self, request, session_id: int):
        session = services.get_owned_session(request.user, session_id)
        return Response(ClassSessionSerializer(session).data, status=status.HTTP_200_OK)

    def delete(self, request, session_id: int):
        services.end_session(request.user, session_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class SessionAttendanceView(APIView):
    """
    GET /api/sessions/{session_id}/attendance
      ?status=ALL|ACTIVE|DISTRACTED|IDLE|OFFLINE
      &sort=name|priority
    Rows are ordered by student name unless sort=priority. Never cached:
    effectiveStatus depends on the time of the read.
    """
    def get(self, request, session_id: int):
        try:
            wanted = parse_status_filter(request.query_params.get('status'))
        except ValueError as e:
            return Response({'detail': str(e)}, status=400)
        sort = request.query_params.get('sort', 'name')
        if sort not in ('name', 'priority'):
            return Response({'detail': 'sort must be name|priority.'}, status=400)

        rows = list(services.list_attendance(request.user, session_id))
        now = timezone.now()
        timeout = get_setting('OFFLINE_TIMEOUT')

        rows = filter_by_status(rows, wanted, now, timeout)
        if sort == 'priority':
            rows = sort_by_priority(rows, now, timeout)

        data = AttendanceSerializer(rows, many=True, context={'now': now, 'offline_timeout': timeout}).data
        return Response(data, status=status.HTTP_200_OK, headers=NO_CACHE_HEADERS)


class ScheduledClassStartView(APIView):
    """POST /api/scheduled-classes/{scheduled_id}/start."""
    def post(self, request, scheduled_id: int):
        session = services.start_scheduled_class(request.user, scheduled_id)
        return Response({
            'sessionId': session.pk,
            'password': session.password,
            'group': session.group.name,
            'lesson': session.prepared_lesson.title,
        }, status=status.HTTP_201_CREATED)


class StudentStatsView(APIView):
    """GET /api/students/{student_id}/stats?tz=Europe/Paris"""
    def get(self, request, student_id: int):
        tzname = request.query_params.get('tz', 'UTC')
        try:
            pytz.timezone(tzname)
        except pytz.UnknownTimeZoneError:
            return Response({'detail': 'invalid tz.'}, status=400)

        stats = services.student_stats(request.user, student_id, tz=tzname)
        return Response(stats, status=status.HTTP_200_OK)
