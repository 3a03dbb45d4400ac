import datetime as dt

T0 = dt.datetime(2025, 10, 27, 10, 0, 0, tzinfo=dt.timezone.utc)


def at(seconds: float) -> dt.datetime:
    """T0 shifted by `seconds`."""
    return T0 + dt.timedelta(seconds=seconds)
