
import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from attendance import services
from attendance.models import Group, LessonExercise, PreparedLesson, Resource, Student
from attendance.tests.utils import T0


@pytest.fixture
def teacher(db):
    return get_user_model().objects.create_user("teacher", "teacher@example.com", "password123")


@pytest.fixture
def other_teacher(db):
    return get_user_model().objects.create_user("other", "other@example.com", "password123")


@pytest.fixture
def group(teacher):
    return Group.objects.create(teacher=teacher, name="5A")


@pytest.fixture
def lesson(teacher):
    lesson = PreparedLesson.objects.create(teacher=teacher, title="Fractions")
    video = Resource.objects.create(teacher=teacher, title="Intro video", type="VIDEO",
                                    url="https://example.com/v", duration=5)
    text = Resource.objects.create(teacher=teacher, title="Worksheet", type="TEXT", content="1/2 + 1/4")
    LessonExercise.objects.create(lesson=lesson, resource=text, order_index=2)
    LessonExercise.objects.create(lesson=lesson, resource=video, order_index=1)
    return lesson


@pytest.fixture
def alice(group):
    return Student.objects.create(group=group, first_name="Alice", last_name="Martin", username="alice")


@pytest.fixture
def bob(group):
    return Student.objects.create(group=group, first_name="Bob", last_name="Durand", username="bob")


@pytest.fixture
def live_session(teacher, group, lesson):
    return services.start_session(teacher, group.pk, lesson.pk, now=T0)


@pytest.fixture
def teacher_client(teacher):
    c = APIClient()
    c.force_authenticate(user=teacher)
    return c
