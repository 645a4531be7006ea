# kiosk/services/lock_service.py
import uuid
from contextlib import contextmanager

import redis

from kiosk.domain.errors import ConcurrencyConflict
from kiosk.utils.logging import get_logger
from kiosk.utils.retry import redis_retry
from kiosk.utils.settings import REDIS_URL, SESSION_LOCK_TTL_SECONDS

logger = get_logger(__name__)

# compare-and-delete: only the holder of the token may release the key
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class LockService:
    """
    -lock per kiosk session (one checkout at a time)
    -release only by the token holder
    -atomic compare-and-delete through lua
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(url or REDIS_URL, decode_responses=True)

    @staticmethod
    def _key(session_id: str) -> str:
        return f"session:{session_id}:checkout-lock"

    @redis_retry()
    def acquire_session_lock(self, session_id: str, token: str, ttl: int = SESSION_LOCK_TTL_SECONDS) -> bool:
        key = self._key(session_id)
        logger.info(f"Acquire lock {key}")
        # SET session:abc:checkout-lock <token> NX EX 30
        return bool(self.redis.set(name=key, value=token, nx=True, ex=ttl))

    @redis_retry()
    def release_session_lock(self, session_id: str, token: str) -> bool:
        key = self._key(session_id)
        logger.info(f"Release lock {key}")
        return bool(self.redis.eval(_RELEASE_LUA, 1, key, token))

    @contextmanager
    def session_lock(self, session_id: str, ttl: int = SESSION_LOCK_TTL_SECONDS):
        token = str(uuid.uuid4())
        if not self.acquire_session_lock(session_id, token, ttl):
            raise ConcurrencyConflict("Another checkout for this session is in progress")
        try:
            yield token
        finally:
            self.release_session_lock(session_id, token)

    def ping(self) -> bool:
        return bool(self.redis.ping())
