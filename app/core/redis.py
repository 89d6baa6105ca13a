import redis.asyncio as redis
from datetime import date
from typing import Set
from uuid import UUID

from app.core.config import settings

class RedisClient:
    def __init__(self, connection: redis.Redis | None = None):
        self.redis = connection or redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)

    @staticmethod
    def _skip_key(operator_id: str, doctor_id: UUID, day: date) -> str:
        return f"skipped:{operator_id}:{doctor_id}:{day.isoformat()}"

    async def add_skipped(self, operator_id: str, doctor_id: UUID, day: date, appointment_id: UUID):
        key = self._skip_key(operator_id, doctor_id, day)
        await self.redis.sadd(key, str(appointment_id))
        await self.redis.expire(key, settings.SKIP_SET_TTL_SECONDS)

    async def get_skipped(self, operator_id: str, doctor_id: UUID, day: date) -> Set[UUID]:
        members = await self.redis.smembers(self._skip_key(operator_id, doctor_id, day))
        return {UUID(m.decode() if isinstance(m, bytes) else m) for m in members}

    async def clear_skipped(self, operator_id: str, doctor_id: UUID, day: date):
        await self.redis.delete(self._skip_key(operator_id, doctor_id, day))

    async def close(self):
        await self.redis.close()

redis_client = RedisClient()

def get_redis() -> RedisClient:
    return redis_client
