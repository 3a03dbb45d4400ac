# attendance/authentication.py
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any, Dict

from django.utils import timezone
from jose import JWTError, jwt
from rest_framework.authentication import BaseAuthentication, get_authorization_header
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.permissions import BasePermission

from .conf import get_setting

STUDENT_ROLE = "student"


@dataclass(frozen=True)
class StudentPrincipal:
    """Authenticated student, scoped to the session they joined."""
    student_id: int
    session_id: int
    username: str

    @property
    def is_authenticated(self) -> bool:
        return True


def issue_student_token(student, session, now: dt.datetime | None = None) -> str:
    now = now or timezone.now()
    exp = now + dt.timedelta(hours=get_setting("STUDENT_TOKEN_TTL_HOURS"))
    payload = {
        "studentId": str(student.pk),
        "sessionId": str(session.pk),
        "username": student.username,
        "role": STUDENT_ROLE,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(
        payload,
        get_setting("STUDENT_TOKEN_SECRET"),
        algorithm=get_setting("STUDENT_TOKEN_ALGORITHM"),
    )


def decode_student_token(token: str) -> StudentPrincipal:
    try:
        data: Dict[str, Any] = jwt.decode(
            token,
            get_setting("STUDENT_TOKEN_SECRET"),
            algorithms=[get_setting("STUDENT_TOKEN_ALGORITHM")],
        )
    except JWTError as e:
        raise AuthenticationFailed("Invalid token") from e

    if data.get("role") != STUDENT_ROLE:
        raise AuthenticationFailed("Unauthorized")
    try:
        return StudentPrincipal(
            student_id=int(data["studentId"]),
            session_id=int(data["sessionId"]),
            username=str(data.get("username", "")),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise AuthenticationFailed("Invalid token payload") from e


class StudentTokenAuthentication(BaseAuthentication):
    """
    Reads the student JWT from `Authorization: Bearer <token>` or, failing
    that, from the student cookie set at login.
    """
    keyword = "Bearer"

    def authenticate(self, request):
        token = None
        auth = get_authorization_header(request).split()
        if auth and auth[0].lower() == self.keyword.lower().encode():
            if len(auth) != 2:
                raise AuthenticationFailed("Invalid token header")
            token = auth[1].decode()
        else:
            token = request.COOKIES.get(get_setting("STUDENT_TOKEN_COOKIE"))

        if not token:
            return None
        return decode_student_token(token), token

    def authenticate_header(self, request):
        return f'{self.keyword} realm="student"'


class IsStudent(BasePermission):
    def has_permission(self, request, view):
        return isinstance(request.user, StudentPrincipal)
