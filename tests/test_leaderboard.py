"""Tests for the per-instance leaderboard."""

import pytest

from app.core.errors import StorageError
from app.core.store import MemoryStore
from app.models.game import LeaderboardEntry, ScoringMode
from app.services.leaderboard import get_entry, get_rank, get_top, upsert_entry

pytestmark = pytest.mark.anyio


def entry(user_id, score, username=None):
    return LeaderboardEntry(
        user_id=user_id,
        username=username or user_id,
        score=score,
        scoring_mode=ScoringMode.TRIVIA,
        completed_at=1,
    )


class FlakyZaddStore(MemoryStore):
    """Первый ZADD падает, как при обрыве связи с Redis."""

    def __init__(self):
        super().__init__()
        self.failures_left = 1

    async def sorted_set_add(self, key, member, score):
        if self.failures_left:
            self.failures_left -= 1
            raise StorageError("Storage is unavailable, try again")
        await super().sorted_set_add(key, member, score)


class TestUpsert:
    async def test_first_write_wins(self, store):
        assert await upsert_entry(store, instance_id="i1", entry=entry("u1", 500)) is True
        assert await upsert_entry(store, instance_id="i1", entry=entry("u1", 800)) is False

        stored = await get_entry(store, instance_id="i1", user_id="u1")
        assert stored.score == 500
        top = await get_top(store, instance_id="i1", limit=10)
        assert [(e.user_id, e.score) for e in top] == [("u1", 500)]

    async def test_repeated_upsert_does_not_move_rank(self, store):
        await upsert_entry(store, instance_id="i1", entry=entry("u1", 100))
        await upsert_entry(store, instance_id="i1", entry=entry("u2", 200))
        assert await get_rank(store, instance_id="i1", user_id="u1") == 2

        await upsert_entry(store, instance_id="i1", entry=entry("u1", 999))
        assert await get_rank(store, instance_id="i1", user_id="u1") == 2

    async def test_retry_after_failed_zadd_restores_rank(self):
        store = FlakyZaddStore()
        with pytest.raises(StorageError):
            await upsert_entry(store, instance_id="i1", entry=entry("u1", 500))

        assert await upsert_entry(store, instance_id="i1", entry=entry("u1", 800)) is False
        assert await get_rank(store, instance_id="i1", user_id="u1") == 1
        top = await get_top(store, instance_id="i1")
        assert [(e.user_id, e.score) for e in top] == [("u1", 500)]


class TestReads:
    async def test_top_is_descending_and_limited(self, store):
        for user_id, score in [("a", 10), ("b", 300), ("c", 150), ("d", 75)]:
            await upsert_entry(store, instance_id="i1", entry=entry(user_id, score))

        top = await get_top(store, instance_id="i1", limit=3)
        assert [e.user_id for e in top] == ["b", "c", "d"]

    async def test_rank_is_one_based(self, store):
        await upsert_entry(store, instance_id="i1", entry=entry("a", 10))
        await upsert_entry(store, instance_id="i1", entry=entry("b", 20))
        assert await get_rank(store, instance_id="i1", user_id="b") == 1
        assert await get_rank(store, instance_id="i1", user_id="a") == 2

    async def test_rank_absent_for_unknown_user(self, store):
        assert await get_rank(store, instance_id="i1", user_id="nobody") is None

    async def test_empty_board(self, store):
        assert await get_top(store, instance_id="i1") == []
