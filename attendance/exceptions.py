# attendance/exceptions.py
import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler, set_rollback

logger = logging.getLogger(__name__)


class ValidationFailed(APIException):
    """A required assignment or field is missing."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request."
    default_code = "invalid"


class Conflict(APIException):
    """A session is already active for the group."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "There is already an active session for this group."
    default_code = "conflict"


class Gone(APIException):
    """The student's session was ended; the client must log in again."""
    status_code = status.HTTP_410_GONE
    default_detail = "Session ended."
    default_code = "gone"


def api_exception_handler(exc, context):
    """
    DRF handler for known API errors; anything else becomes a bare 500 so
    storage errors never leak to the caller.
    """
    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    logger.exception("[%s] unhandled error", type(view).__name__ if view else "api")
    set_rollback()
    return Response({"detail": "Internal Error"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
