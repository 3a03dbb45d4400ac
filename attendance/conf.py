from django.conf import settings

DEFAULTS = {
    "OFFLINE_TIMEOUT": 60,
    "STUDENT_TOKEN_SECRET": None,
    "STUDENT_TOKEN_ALGORITHM": "HS256",
    "STUDENT_TOKEN_TTL_HOURS": 4,
    "STUDENT_TOKEN_COOKIE": "student_token",
    "SESSION_PASSWORD_LENGTH": 6,
    "SESSION_PASSWORD_ALPHABET": "ABCDEFGHJKLMNPQRSTUVWXYZ23456789",
}


def get_setting(name: str):
    """Read an attendance tunable from settings.ATTENDANCE, falling back to DEFAULTS."""
    value = getattr(settings, "ATTENDANCE", {}).get(name, DEFAULTS[name])
    if name == "STUDENT_TOKEN_SECRET" and not value:
        return settings.SECRET_KEY
    return value
