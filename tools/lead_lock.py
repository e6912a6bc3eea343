import os
import uuid
from typing import Dict, Optional

import redis
import redis.asyncio as aioredis
from loguru import logger

# delete only if the key still holds our token; an expired lock may belong to another run by now
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class LeadLock:
    """Redis-based lock so one lead is processed by one workflow run at a time."""

    def __init__(self, redis_url: Optional[str] = None, ttl: Optional[int] = None):
        self.ttl = ttl or int(os.getenv("LEAD_LOCK_TTL_SECONDS", "300"))
        self.redis_url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379")
        self.r = None
        self._connected = False
        self._memory_tokens: Dict[str, str] = {}

    async def connect(self) -> None:
        """Open the Redis connection once; fall back to in-memory locking when unreachable."""
        if self._connected:
            return
        self._connected = True
        try:
            client = aioredis.from_url(self.redis_url, decode_responses=True)
            await client.ping()
            self.r = client
            logger.info("Redis connection established successfully")
        except redis.RedisError as e:
            logger.error(f"Redis connection failed: {e}")
            # in-memory only guards runs inside this process
            self.r = None

    @staticmethod
    def _key(lead_id: str) -> str:
        return f"lead-workflow:{lead_id}"

    async def acquire(self, lead_id: str) -> Optional[str]:
        """
        Take the lock for a lead.

        Args:
            lead_id: Lead identifier

        Returns:
            Token to pass to release(), or None if another run holds the lock
        """
        if not lead_id:
            logger.warning("Empty lead id provided to lead lock")
            return None

        await self.connect()
        token = uuid.uuid4().hex

        if self.r is not None:
            try:
                result = await self.r.set(name=self._key(lead_id), value=token, ex=self.ttl, nx=True)
                return token if result else None
            except redis.RedisError as e:
                logger.error(f"Lead lock acquire failed, allowing run: {e}")
                return token

        if lead_id in self._memory_tokens:
            return None
        self._memory_tokens[lead_id] = token
        return token

    async def release(self, lead_id: str, token: str) -> bool:
        """Release the lock if this token still owns it."""
        if self.r is not None:
            try:
                released = await self.r.eval(RELEASE_SCRIPT, 1, self._key(lead_id), token)
            except redis.RedisError as e:
                logger.error(f"Lead lock release failed for {lead_id}: {e}")
                return False
            if not released:
                logger.warning(f"Lead lock for {lead_id} expired or was taken by another run")
            return bool(released)

        if self._memory_tokens.get(lead_id) != token:
            return False
        del self._memory_tokens[lead_id]
        return True

    @property
    def backend(self) -> str:
        return "redis" if self.r is not None else "memory"
