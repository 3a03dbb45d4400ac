import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

ATTENTION_CHOICES = [("ACTIVE", "Active"), ("DISTRACTED", "Distracted"), ("IDLE", "Idle")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Group",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("teacher", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                              related_name="class_groups", to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name="PreparedLesson",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=200)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("teacher", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                              related_name="prepared_lessons", to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name="Resource",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=200)),
                ("type", models.CharField(choices=[("VIDEO", "Video"), ("LINK", "Link"), ("TEXT", "Text"),
                                                   ("EXERCISE", "Exercise")], default="LINK", max_length=16)),
                ("url", models.URLField(blank=True)),
                ("content", models.TextField(blank=True)),
                ("duration", models.PositiveIntegerField(blank=True, null=True)),
                ("teacher", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                              related_name="resources", to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name="Student",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("first_name", models.CharField(max_length=100)),
                ("last_name", models.CharField(max_length=100)),
                ("username", models.CharField(max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("group", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                            related_name="students", to="attendance.group")),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=("group", "username"), name="uq_group_username")],
            },
        ),
        migrations.CreateModel(
            name="LessonExercise",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("order_index", models.PositiveIntegerField(default=0)),
                ("lesson", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                             related_name="exercises", to="attendance.preparedlesson")),
                ("resource", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                                               related_name="exercises", to="attendance.resource")),
            ],
            options={
                "ordering": ["order_index", "id"],
            },
        ),
        migrations.CreateModel(
            name="ScheduledClass",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("start_time", models.DateTimeField()),
                ("duration", models.PositiveIntegerField()),
                ("group", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                                            related_name="scheduled_classes", to="attendance.group")),
                ("prepared_lesson", models.ForeignKey(blank=True, null=True,
                                                      on_delete=django.db.models.deletion.SET_NULL,
                                                      related_name="scheduled_classes",
                                                      to="attendance.preparedlesson")),
                ("teacher", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                              related_name="scheduled_classes", to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name="ClassSession",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("password", models.CharField(db_index=True, max_length=32)),
                ("is_active", models.BooleanField(default=True)),
                ("started_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("ended_at", models.DateTimeField(blank=True, null=True)),
                ("group", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                            related_name="sessions", to="attendance.group")),
                ("prepared_lesson", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                                      related_name="sessions", to="attendance.preparedlesson")),
                ("teacher", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                              related_name="class_sessions", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "indexes": [models.Index(fields=["group", "is_active"], name="idx_group_active")],
            },
        ),
        migrations.CreateModel(
            name="SessionAttendance",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("current_status", models.CharField(choices=ATTENTION_CHOICES, default="ACTIVE", max_length=16)),
                ("last_heartbeat", models.DateTimeField(default=django.utils.timezone.now)),
                ("last_status_change", models.DateTimeField(default=django.utils.timezone.now)),
                ("hand_raised", models.BooleanField(default=False)),
                ("session", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                              related_name="attendance", to="attendance.classsession")),
                ("student", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                              related_name="attendance", to="attendance.student")),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=("session", "student"), name="uq_session_student")],
            },
        ),
        migrations.CreateModel(
            name="ActivityLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status", models.CharField(choices=ATTENTION_CHOICES, max_length=16)),
                ("timestamp", models.DateTimeField()),
                ("duration", models.PositiveIntegerField()),
                ("session", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                              related_name="activity_logs", to="attendance.classsession")),
                ("student", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                              related_name="activity_logs", to="attendance.student")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["session", "student", "timestamp"], name="idx_log_timeline"),
                    models.Index(fields=["student", "session"], name="idx_log_student"),
                ],
            },
        ),
    ]
