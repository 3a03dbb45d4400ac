# attendance/tests/test_sessions.py
import pytest
from rest_framework.test import APIClient

from attendance import services
from attendance.conf import get_setting
from attendance.models import ActivityLog, ClassSession, Group, PreparedLesson, ScheduledClass, SessionAttendance
from attendance.tests.utils import T0, at


def _login(username, password):
    c = APIClient()
    r = c.post("/api/student/login", {"username": username, "password": password}, format="json")
    return c, r


@pytest.mark.django_db
def test_start_then_second_start_conflicts_until_ended(teacher_client, group, lesson):
    payload = {"groupId": group.pk, "preparedLessonId": lesson.pk}

    r1 = teacher_client.post("/api/sessions", payload, format="json")
    assert r1.status_code == 201
    first = r1.json()
    assert first["isActive"] is True
    assert first["group"]["name"] == "5A"

    r2 = teacher_client.post("/api/sessions", payload, format="json")
    assert r2.status_code == 409
    assert "already an active session" in r2.json()["detail"]
    assert ClassSession.objects.filter(group=group, is_active=True).count() == 1

    assert teacher_client.delete(f"/api/sessions/{first['id']}").status_code == 204

    r3 = teacher_client.post("/api/sessions", payload, format="json")
    assert r3.status_code == 201
    assert r3.json()["id"] != first["id"]


@pytest.mark.django_db
def test_start_requires_both_assignments(teacher_client, group):
    r = teacher_client.post("/api/sessions", {"groupId": group.pk}, format="json")
    assert r.status_code == 400


@pytest.mark.django_db
def test_start_rejects_another_teachers_group(teacher_client, other_teacher, lesson):
    foreign = Group.objects.create(teacher=other_teacher, name="6B")
    r = teacher_client.post("/api/sessions", {"groupId": foreign.pk, "preparedLessonId": lesson.pk}, format="json")
    assert r.status_code == 403
    assert not ClassSession.objects.exists()


@pytest.mark.django_db
def test_start_rejects_another_teachers_lesson(teacher_client, other_teacher, group):
    foreign = PreparedLesson.objects.create(teacher=other_teacher, title="Not yours")
    r = teacher_client.post("/api/sessions", {"groupId": group.pk, "preparedLessonId": foreign.pk}, format="json")
    assert r.status_code == 403


@pytest.mark.django_db
def test_password_uses_unambiguous_alphabet(teacher, group, lesson):
    session = services.start_session(teacher, group.pk, lesson.pk)
    alphabet = get_setting("SESSION_PASSWORD_ALPHABET")
    assert len(session.password) == get_setting("SESSION_PASSWORD_LENGTH")
    assert all(ch in alphabet for ch in session.password)
    assert not set("0O1I") & set(session.password)


@pytest.mark.django_db
def test_end_is_idempotent_and_keeps_history(teacher, teacher_client, alice, live_session):
    services.join_session("alice", live_session.password, now=at(0))
    services.report_heartbeat(live_session.pk, alice.pk, "IDLE", now=at(8))

    services.end_session(teacher, live_session.pk, now=at(100))
    live_session.refresh_from_db()
    assert live_session.is_active is False
    assert live_session.ended_at == at(100)

    r = teacher_client.delete(f"/api/sessions/{live_session.pk}")
    assert r.status_code == 204
    live_session.refresh_from_db()
    assert live_session.ended_at == at(100)

    assert SessionAttendance.objects.filter(session=live_session).count() == 1
    assert ActivityLog.objects.filter(session=live_session).count() == 1


@pytest.mark.django_db
def test_session_detail_and_end_are_owner_only(other_teacher, live_session):
    c = APIClient()
    c.force_authenticate(user=other_teacher)
    assert c.get(f"/api/sessions/{live_session.pk}").status_code == 403
    assert c.delete(f"/api/sessions/{live_session.pk}").status_code == 403
    assert c.get("/api/sessions/999999").status_code == 403
    live_session.refresh_from_db()
    assert live_session.is_active is True


@pytest.mark.django_db
def test_session_endpoints_require_teacher_auth(live_session):
    c = APIClient()
    assert c.get(f"/api/sessions/{live_session.pk}").status_code == 401
    assert c.post("/api/sessions", {}, format="json").status_code == 401


@pytest.mark.django_db
def test_start_from_scheduled_class(teacher, teacher_client, group, lesson):
    sc = ScheduledClass.objects.create(teacher=teacher, group=group, prepared_lesson=lesson,
                                       start_time=T0, duration=45)
    r = teacher_client.post(f"/api/scheduled-classes/{sc.pk}/start")
    assert r.status_code == 201
    data = r.json()
    assert data["group"] == "5A"
    assert data["lesson"] == "Fractions"
    assert len(data["password"]) == 6

    again = teacher_client.post(f"/api/scheduled-classes/{sc.pk}/start")
    assert again.status_code == 409


@pytest.mark.django_db
def test_scheduled_class_needs_group_and_lesson(teacher, teacher_client, group):
    no_lesson = ScheduledClass.objects.create(teacher=teacher, group=group, start_time=T0, duration=45)
    r = teacher_client.post(f"/api/scheduled-classes/{no_lesson.pk}/start")
    assert r.status_code == 400
    assert "Lesson must be assigned" in r.json()["detail"]

    no_group = ScheduledClass.objects.create(teacher=teacher, start_time=T0, duration=45)
    r = teacher_client.post(f"/api/scheduled-classes/{no_group.pk}/start")
    assert r.status_code == 400
    assert "Group must be assigned" in r.json()["detail"]


@pytest.mark.django_db
def test_scheduled_class_of_another_teacher_is_not_found(other_teacher, teacher_client, group, lesson):
    sc = ScheduledClass.objects.create(teacher=other_teacher, group=group, prepared_lesson=lesson,
                                       start_time=T0, duration=45)
    assert teacher_client.post(f"/api/scheduled-classes/{sc.pk}/start").status_code == 404


# --- Join ------------------------------------------------------------------

@pytest.mark.django_db
def test_join_with_wrong_password_creates_nothing(alice, live_session):
    _, r = _login("alice", "WRONG1")
    assert r.status_code == 401
    assert not SessionAttendance.objects.exists()


@pytest.mark.django_db
def test_join_rejects_student_outside_group(teacher, live_session):
    other_group = Group.objects.create(teacher=teacher, name="Other")
    other_group.students.create(first_name="Eve", last_name="Roux", username="eve")
    _, r = _login("eve", live_session.password)
    assert r.status_code == 401
    assert not SessionAttendance.objects.exists()


@pytest.mark.django_db
def test_join_on_ended_session_is_unauthorized(teacher, alice, live_session):
    services.end_session(teacher, live_session.pk)
    _, r = _login("alice", live_session.password)
    assert r.status_code == 401


@pytest.mark.django_db
def test_join_requires_username_and_password(live_session):
    _, r = _login("", live_session.password)
    assert r.status_code == 400


@pytest.mark.django_db
def test_join_creates_active_record_and_sets_cookie(alice, live_session):
    c, r = _login("ALICE", live_session.password)
    assert r.status_code == 200
    data = r.json()
    assert data["sessionId"] == live_session.pk
    assert data["lessonTitle"] == "Fractions"
    assert data["student"]["username"] == "alice"
    assert get_setting("STUDENT_TOKEN_COOKIE") in r.cookies

    rec = SessionAttendance.objects.get(session=live_session, student=alice)
    assert rec.current_status == "ACTIVE"
    assert rec.hand_raised is False
    assert rec.last_status_change <= rec.last_heartbeat


@pytest.mark.django_db
def test_rejoin_resets_to_fresh_active_window(alice, live_session):
    services.join_session("alice", live_session.password, now=at(0))
    services.report_heartbeat(live_session.pk, alice.pk, "IDLE", now=at(5))

    services.join_session("alice", live_session.password, now=at(20))

    rec = SessionAttendance.objects.get(session=live_session, student=alice)
    assert rec.current_status == "ACTIVE"
    assert rec.last_status_change == at(20)
    assert rec.last_heartbeat == at(20)

    logs = list(ActivityLog.objects.filter(student=alice).order_by("timestamp"))
    assert [(log.status, log.timestamp, log.duration) for log in logs] == [
        ("ACTIVE", at(0), 5),
        ("IDLE", at(5), 15),
    ]
    assert SessionAttendance.objects.filter(student=alice).count() == 1


# --- Student content -------------------------------------------------------

@pytest.mark.django_db
def test_content_lists_resources_in_order_then_goes_away(teacher, alice, live_session):
    c, r = _login("alice", live_session.password)
    assert r.status_code == 200

    content = c.get("/api/student/session/content")
    assert content.status_code == 200
    assert content["Cache-Control"].startswith("no-store")
    body = content.json()
    assert body["session"]["id"] == live_session.pk
    assert body["lesson"]["title"] == "Fractions"
    assert [ex["resource"]["title"] for ex in body["lesson"]["exercises"]] == ["Intro video", "Worksheet"]

    services.end_session(teacher, live_session.pk)
    assert c.get("/api/student/session/content").status_code == 410


@pytest.mark.django_db
def test_content_requires_student_token(live_session):
    assert APIClient().get("/api/student/session/content").status_code == 401
