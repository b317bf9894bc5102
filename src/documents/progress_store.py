"""Progress snapshots shared between the API process and task workers."""

import json
import logging
from typing import Protocol

from redis.asyncio import Redis

from src.documents.progress import ProgressState

logger = logging.getLogger(__name__)

PROGRESS_KEY = "doc_progress:{document_id}"


class ProgressStore(Protocol):
    async def save(self, document_id: str, state: ProgressState) -> None: ...

    async def load(self, document_id: str) -> ProgressState | None: ...

    async def clear(self, document_id: str) -> None: ...


class RedisProgressStore:
    def __init__(self, redis: Redis, ttl_seconds: int = 3600):
        self._redis = redis
        self._ttl = ttl_seconds

    async def save(self, document_id: str, state: ProgressState) -> None:
        key = PROGRESS_KEY.format(document_id=document_id)
        await self._redis.set(key, json.dumps(state.to_dict()), ex=self._ttl)

    async def load(self, document_id: str) -> ProgressState | None:
        raw = await self._redis.get(PROGRESS_KEY.format(document_id=document_id))
        if not raw:
            return None
        try:
            return ProgressState.from_dict(json.loads(raw))
        except (ValueError, TypeError) as e:
            logger.warning("Dropping unreadable progress snapshot for %s: %s", document_id, e)
            return None

    async def clear(self, document_id: str) -> None:
        await self._redis.delete(PROGRESS_KEY.format(document_id=document_id))


class InMemoryProgressStore:
    def __init__(self):
        self.snapshots: dict[str, ProgressState] = {}

    async def save(self, document_id: str, state: ProgressState) -> None:
        self.snapshots[document_id] = state

    async def load(self, document_id: str) -> ProgressState | None:
        return self.snapshots.get(document_id)

    async def clear(self, document_id: str) -> None:
        self.snapshots.pop(document_id, None)
