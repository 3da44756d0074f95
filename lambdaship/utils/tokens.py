import time
import uuid


def short_token() -> str:
    """First 8 hex characters of a random UUID, used to keep grant and policy names unique."""
    return uuid.uuid4().hex[:8]


def blocking_sleep(seconds: float) -> None:
    time.sleep(seconds)
