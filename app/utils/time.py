import datetime as dt


def utcnow() -> dt.datetime:
    """Naive UTC now; every timestamp column stores naive UTC."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)
