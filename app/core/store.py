import asyncio
import logging
from abc import ABC, abstractmethod

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.errors import StorageError


logger = logging.getLogger(__name__)


class Store(ABC):
    """Минимальный key-value контракт, который нужен игре.

    Всё, что конкурентно трогают разные игроки (счётчики статистики,
    лидерборд), делается атомарными операциями; сессии и колоды
    читаются и перезаписываются целиком.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    async def set_if_absent(self, key: str, value: str) -> bool:
        """Атомарный SET NX. True, если значение записано."""

    @abstractmethod
    async def exists(self, key: str) -> bool: ...

    @abstractmethod
    async def increment_by(self, key: str, delta: int) -> int: ...

    @abstractmethod
    async def hash_increment_by(self, key: str, field: str, delta: int) -> int: ...

    @abstractmethod
    async def hash_set(self, key: str, mapping: dict[str, str]) -> None: ...

    @abstractmethod
    async def hash_get_all(self, key: str) -> dict[str, str]: ...

    @abstractmethod
    async def hash_increment_with_total(
        self, key: str, fields: list[str], total_key: str
    ) -> None:
        """+1 каждому полю хэша и +1 счётчику total_key, одной транзакцией."""

    @abstractmethod
    async def sorted_set_add(self, key: str, member: str, score: float) -> None: ...

    @abstractmethod
    async def sorted_set_range(
        self, key: str, start: int, end: int
    ) -> list[tuple[str, float]]:
        """Элементы по убыванию score, end включительно (-1 = до конца)."""

    @abstractmethod
    async def sorted_set_rank(self, key: str, member: str) -> int | None:
        """0-based позиция по убыванию score, None если элемента нет."""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class RedisStore(Store):
    def __init__(self, redis_client: Redis):
        self.redis = redis_client

    async def _run(self, op: str, coro):
        try:
            return await coro
        except RedisError as e:
            logger.error("Redis %s failed: %s", op, e)
            raise StorageError("Storage is unavailable, try again") from e

    async def get(self, key: str) -> str | None:
        return await self._run("GET", self.redis.get(key))

    async def set(self, key: str, value: str) -> None:
        await self._run("SET", self.redis.set(key, value))

    async def set_if_absent(self, key: str, value: str) -> bool:
        return bool(await self._run("SET NX", self.redis.set(key, value, nx=True)))

    async def exists(self, key: str) -> bool:
        return bool(await self._run("EXISTS", self.redis.exists(key)))

    async def increment_by(self, key: str, delta: int) -> int:
        return int(await self._run("INCRBY", self.redis.incrby(key, delta)))

    async def hash_increment_by(self, key: str, field: str, delta: int) -> int:
        return int(await self._run("HINCRBY", self.redis.hincrby(key, field, delta)))

    async def hash_set(self, key: str, mapping: dict[str, str]) -> None:
        if not mapping:
            return
        await self._run("HSET", self.redis.hset(key, mapping=mapping))

    async def hash_get_all(self, key: str) -> dict[str, str]:
        return await self._run("HGETALL", self.redis.hgetall(key))

    async def hash_increment_with_total(
        self, key: str, fields: list[str], total_key: str
    ) -> None:
        async def _exec():
            async with self.redis.pipeline(transaction=True) as pipe:
                for field in fields:
                    pipe.hincrby(key, field, 1)
                pipe.incrby(total_key, 1)
                return await pipe.execute()

        await self._run("MULTI", _exec())

    async def sorted_set_add(self, key: str, member: str, score: float) -> None:
        await self._run("ZADD", self.redis.zadd(key, {member: score}))

    async def sorted_set_range(
        self, key: str, start: int, end: int
    ) -> list[tuple[str, float]]:
        rows = await self._run(
            "ZREVRANGE", self.redis.zrevrange(key, start, end, withscores=True)
        )
        return [(member, float(score)) for member, score in rows]

    async def sorted_set_rank(self, key: str, member: str) -> int | None:
        return await self._run("ZREVRANK", self.redis.zrevrank(key, member))

    async def ping(self) -> bool:
        return bool(await self._run("PING", self.redis.ping()))

    async def close(self) -> None:
        await self.redis.aclose()


class MemoryStore(Store):
    """In-process store for local runs and tests.

    No method awaits anything, so every call is atomic on a single event loop.
    """

    def __init__(self) -> None:
        self._strings: dict[str, str] = {}
        self._hashes: dict[str, dict[str, int]] = {}
        self._zsets: dict[str, dict[str, float]] = {}

    async def get(self, key: str) -> str | None:
        return self._strings.get(key)

    async def set(self, key: str, value: str) -> None:
        self._strings[key] = value

    async def set_if_absent(self, key: str, value: str) -> bool:
        if key in self._strings:
            return False
        self._strings[key] = value
        return True

    async def exists(self, key: str) -> bool:
        return key in self._strings or key in self._hashes or key in self._zsets

    async def increment_by(self, key: str, delta: int) -> int:
        value = int(self._strings.get(key, "0")) + delta
        self._strings[key] = str(value)
        return value

    async def hash_increment_by(self, key: str, field: str, delta: int) -> int:
        h = self._hashes.setdefault(key, {})
        h[field] = h.get(field, 0) + delta
        return h[field]

    async def hash_set(self, key: str, mapping: dict[str, str]) -> None:
        if not mapping:
            return
        h = self._hashes.setdefault(key, {})
        for field, value in mapping.items():
            h[field] = int(value)

    async def hash_get_all(self, key: str) -> dict[str, str]:
        return {field: str(v) for field, v in self._hashes.get(key, {}).items()}

    async def hash_increment_with_total(
        self, key: str, fields: list[str], total_key: str
    ) -> None:
        for field in fields:
            await self.hash_increment_by(key, field, 1)
        await self.increment_by(total_key, 1)

    async def sorted_set_add(self, key: str, member: str, score: float) -> None:
        self._zsets.setdefault(key, {})[member] = float(score)

    def _descending(self, key: str) -> list[tuple[str, float]]:
        # тот же порядок, что у ZREVRANGE: score по убыванию, при равенстве member по убыванию
        items = self._zsets.get(key, {}).items()
        return sorted(items, key=lambda kv: (kv[1], kv[0]), reverse=True)

    async def sorted_set_range(
        self, key: str, start: int, end: int
    ) -> list[tuple[str, float]]:
        items = self._descending(key)
        if end < 0:
            end = len(items) + end
        return items[start:end + 1]

    async def sorted_set_rank(self, key: str, member: str) -> int | None:
        for idx, (m, _) in enumerate(self._descending(key)):
            if m == member:
                return idx
        return None


_store: Store | None = None
_store_lock = asyncio.Lock()


async def connect_redis() -> RedisStore:
    """Подключаемся к Redis с ретраями, пока он поднимается."""
    client = Redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
    store = RedisStore(client)

    last_err = None
    retries = settings.REDIS_CONNECT_RETRIES
    for attempt in range(retries):
        try:
            await store.ping()
            logger.info("Connected to Redis at %s", settings.REDIS_URL)
            return store
        except StorageError as e:
            last_err = e
            logger.warning("Redis not ready (%s). Retry %d/%d...", e, attempt + 1, retries)
            await asyncio.sleep(1)

    logger.error("Failed to connect Redis after retries: %s", last_err)
    await store.close()
    raise last_err


async def get_store() -> Store:
    """FastAPI dependency: общий store на всё приложение (создаётся лениво)."""
    global _store
    if _store is not None:
        return _store

    # один клиент на процесс
    async with _store_lock:
        if _store is None:
            if settings.STORE_BACKEND == "memory":
                _store = MemoryStore()
                logger.info("Using in-memory store")
            else:
                _store = await connect_redis()
    return _store


async def close_store() -> None:
    global _store
    if _store is not None:
        await _store.close()
        _store = None
