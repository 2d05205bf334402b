import logging
import math
import time
from collections import deque
from typing import Deque, Dict

from fastapi import HTTPException, status

from config.env import LOGIN_MAX_ATTEMPTS, LOGIN_WINDOW_SECONDS

logger = logging.getLogger(__name__)

# Per-process attempt log, keyed by normalized login email
_LOGIN_ATTEMPTS: Dict[str, Deque[float]] = {}


def check_login_attempt(email: str) -> None:
    """
    Sliding window over login attempts for one email.
    Raises 429 with Retry-After once the window is full.
    """

    key = email.strip().lower()
    now = time.monotonic()
    attempts = _LOGIN_ATTEMPTS.setdefault(key, deque())

    while attempts and attempts[0] <= now - LOGIN_WINDOW_SECONDS:
        attempts.popleft()

    if len(attempts) >= LOGIN_MAX_ATTEMPTS:
        retry_after = math.ceil(attempts[0] + LOGIN_WINDOW_SECONDS - now)
        logger.warning("LOGIN_RATE_LIMITED email=%s retry_after=%s", key, retry_after)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again later.",
            headers={"Retry-After": str(max(retry_after, 1))},
        )

    attempts.append(now)


def clear_login_attempts(email: str) -> None:
    _LOGIN_ATTEMPTS.pop(email.strip().lower(), None)


def reset_rate_limits() -> None:
    _LOGIN_ATTEMPTS.clear()
