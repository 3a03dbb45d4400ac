from django.conf import settings
from django.db import models
from django.utils import timezone

from .presence import AttentionState


class Group(models.Model):
    teacher = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE,
                                related_name="class_groups")
    name = models.CharField(max_length=100)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name


class Student(models.Model):
    group = models.ForeignKey(Group, on_delete=models.CASCADE, related_name="students")
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    username = models.CharField(max_length=64)                      # Login name, unique inside a group
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["group", "username"], name="uq_group_username"),
        ]

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __str__(self):
        return self.username


class Resource(models.Model):
    TYPE_CHOICES = [
        ("VIDEO", "Video"),
        ("LINK", "Link"),
        ("TEXT", "Text"),
        ("EXERCISE", "Exercise"),
    ]

    teacher = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE,
                                related_name="resources")
    title = models.CharField(max_length=200)
    type = models.CharField(max_length=16, choices=TYPE_CHOICES, default="LINK")
    url = models.URLField(blank=True)
    content = models.TextField(blank=True)
    duration = models.PositiveIntegerField(null=True, blank=True)  # Minutes, optional

    def __str__(self):
        return self.title


class PreparedLesson(models.Model):
    teacher = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE,
                                related_name="prepared_lessons")
    title = models.CharField(max_length=200)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.title


class LessonExercise(models.Model):
    lesson = models.ForeignKey(PreparedLesson, on_delete=models.CASCADE, related_name="exercises")
    resource = models.ForeignKey(Resource, on_delete=models.SET_NULL, null=True, blank=True,
                                 related_name="exercises")
    order_index = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["order_index", "id"]


class ScheduledClass(models.Model):
    teacher = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE,
                                related_name="scheduled_classes")
    group = models.ForeignKey(Group, on_delete=models.SET_NULL, null=True, blank=True,
                              related_name="scheduled_classes")
    prepared_lesson = models.ForeignKey(PreparedLesson, on_delete=models.SET_NULL, null=True, blank=True,
                                        related_name="scheduled_classes")
    start_time = models.DateTimeField()
    duration = models.PositiveIntegerField()                        # Minutes


class ClassSession(models.Model):
    """A live lesson run by a teacher for one group; students join with `password`."""
    teacher = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE,
                                related_name="class_sessions")
    group = models.ForeignKey(Group, on_delete=models.CASCADE, related_name="sessions")
    prepared_lesson = models.ForeignKey(PreparedLesson, on_delete=models.CASCADE, related_name="sessions")
    password = models.CharField(max_length=32, db_index=True)      # Join code
    is_active = models.BooleanField(default=True)
    started_at = models.DateTimeField(default=timezone.now)
    ended_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["group", "is_active"], name="idx_group_active"),
        ]


class SessionAttendance(models.Model):
    """Live per-(session, student) attention row, mutated by heartbeats."""
    session = models.ForeignKey(ClassSession, on_delete=models.CASCADE, related_name="attendance")
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name="attendance")
    current_status = models.CharField(max_length=16, choices=AttentionState.choices(),
                                      default=AttentionState.ACTIVE.value)
    last_heartbeat = models.DateTimeField(default=timezone.now)     # Any report, transition or keep-alive
    last_status_change = models.DateTimeField(default=timezone.now) # When current_status last changed
    hand_raised = models.BooleanField(default=False)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["session", "student"], name="uq_session_student"),
        ]


class ActivityLog(models.Model):
    """Completed attention interval: `status` held from `timestamp` for `duration` seconds."""
    session = models.ForeignKey(ClassSession, on_delete=models.CASCADE, related_name="activity_logs")
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name="activity_logs")
    status = models.CharField(max_length=16, choices=AttentionState.choices())
    timestamp = models.DateTimeField()
    duration = models.PositiveIntegerField()                        # Seconds

    class Meta:
        indexes = [
            models.Index(fields=["session", "student", "timestamp"], name="idx_log_timeline"),
            models.Index(fields=["student", "session"], name="idx_log_student"),
        ]
