# attendance/serializers.py
import datetime as dt

from django.utils import timezone
from rest_framework import serializers

from .conf import get_setting
from .models import ClassSession, LessonExercise, SessionAttendance, Student
from .presence import effective_status, heartbeat_countdown, status_elapsed


class AwareDateTimeField(serializers.DateTimeField):
    """
    Datetime field that always outputs ISO in UTC (Z).
    Naive values are assumed to be UTC.
    """
    def to_representation(self, value):
        if value is None:
            return None
        if timezone.is_naive(value):
            value = timezone.make_aware(value, dt.timezone.utc)
        return super().to_representation(value.astimezone(dt.timezone.utc))


class StudentSerializer(serializers.ModelSerializer):
    firstName = serializers.CharField(source="first_name")
    lastName = serializers.CharField(source="last_name")

    class Meta:
        model = Student
        fields = ("id", "firstName", "lastName", "username")


class AttendanceSerializer(serializers.ModelSerializer):
    """
    One dashboard row. Besides the stored fields it carries the read-time
    derivations, computed against `context["now"]` (defaults to the server
    clock) so a whole listing is evaluated at one instant.
    """
    currentStatus = serializers.CharField(source="current_status")
    lastHeartbeat = AwareDateTimeField(source="last_heartbeat")
    lastStatusChange = AwareDateTimeField(source="last_status_change")
    handRaised = serializers.BooleanField(source="hand_raised")
    student = StudentSerializer()
    effectiveStatus = serializers.SerializerMethodField()
    heartbeatCountdown = serializers.SerializerMethodField()
    statusElapsed = serializers.SerializerMethodField()

    class Meta:
        model = SessionAttendance
        fields = (
            "id",
            "currentStatus",
            "lastHeartbeat",
            "lastStatusChange",
            "handRaised",
            "student",
            "effectiveStatus",
            "heartbeatCountdown",
            "statusElapsed",
        )

    def _now(self):
        return self.context.get("now") or timezone.now()

    def _timeout(self):
        return self.context.get("offline_timeout") or get_setting("OFFLINE_TIMEOUT")

    def get_effectiveStatus(self, obj) -> str:
        return effective_status(obj, self._now(), self._timeout()).value

    def get_heartbeatCountdown(self, obj) -> int:
        return heartbeat_countdown(obj, self._now(), self._timeout())

    def get_statusElapsed(self, obj) -> int:
        return status_elapsed(obj, self._now())


class ClassSessionSerializer(serializers.ModelSerializer):
    groupId = serializers.IntegerField(source="group_id")
    preparedLessonId = serializers.IntegerField(source="prepared_lesson_id")
    isActive = serializers.BooleanField(source="is_active")
    startedAt = AwareDateTimeField(source="started_at")
    endedAt = AwareDateTimeField(source="ended_at", allow_null=True)
    group = serializers.SerializerMethodField()
    preparedLesson = serializers.SerializerMethodField()

    class Meta:
        model = ClassSession
        fields = (
            "id",
            "password",
            "groupId",
            "preparedLessonId",
            "isActive",
            "startedAt",
            "endedAt",
            "group",
            "preparedLesson",
        )

    def get_group(self, obj):
        return {"id": obj.group_id, "name": obj.group.name}

    def get_preparedLesson(self, obj):
        return {"id": obj.prepared_lesson_id, "title": obj.prepared_lesson.title}


class ExerciseSerializer(serializers.ModelSerializer):
    orderIndex = serializers.IntegerField(source="order_index")
    resource = serializers.SerializerMethodField()

    class Meta:
        model = LessonExercise
        fields = ("id", "orderIndex", "resource")

    def get_resource(self, obj):
        r = obj.resource
        if r is None:
            return None
        return {
            "id": r.id,
            "title": r.title,
            "type": r.type,
            "url": r.url,
            "content": r.content,
            "duration": r.duration,
        }
