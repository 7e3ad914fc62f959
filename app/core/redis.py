import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as redis
from redis.exceptions import LockError, RedisError

from app.core.errors import RateLimited

logger = logging.getLogger(__name__)

OTP_LOCK_PREFIX = "otp:issue:"
OTP_LOCK_TIMEOUT_S = 10
OTP_LOCK_WAIT_S = 3


def build_redis(redis_url: str | None) -> redis.Redis | None:
    if not redis_url:
        return None
    return redis.from_url(redis_url, decode_responses=True)


def _otp_lock_key(user_id: str) -> str:
    return f"{OTP_LOCK_PREFIX}{user_id}"


@asynccontextmanager
async def otp_issue_lock(redis_conn: redis.Redis | None, user_id: str) -> AsyncIterator[None]:
    """Serialise OTP issuance per user when Redis is available.

    Without Redis, or while it is unreachable, two concurrent resends may both
    pass the cooldown check; that window is tolerated.
    """
    if redis_conn is None:
        yield
        return
    lock = redis_conn.lock(
        _otp_lock_key(user_id),
        timeout=OTP_LOCK_TIMEOUT_S,
        blocking_timeout=OTP_LOCK_WAIT_S,
    )
    try:
        acquired = await lock.acquire()
    except LockError:
        acquired = False
    except RedisError as exc:
        logger.warning("OTP lock unavailable for user %s, issuing without it: %s", user_id, exc)
        yield
        return
    if not acquired:
        raise RateLimited("Please wait before requesting another OTP")
    try:
        yield
    finally:
        try:
            await lock.release()
        except LockError:
            # Lock expired while held; the next issuer already owns the key.
            pass
        except RedisError as exc:
            logger.warning("Could not release OTP lock for user %s: %s", user_id, exc)
