"""Per-instance leaderboard: a sorted set of user ids plus one JSON record per user.

First completion wins. Once a user has an entry, later completions never
change their score or rank.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from app.core.config import settings
from app.core.keys import leaderboard_entry_key, leaderboard_key
from app.core.store import Store
from app.models.game import LeaderboardEntry


logger = logging.getLogger(__name__)


async def upsert_entry(store: Store, *, instance_id: str, entry: LeaderboardEntry) -> bool:
    """Returns True if the entry was inserted, False if the user already had one.

    A repeated call also re-adds the stored entry to the sorted set, so a
    retry after a failed ZADD still gives the player a rank.
    """
    entry_key = leaderboard_entry_key(instance_id, entry.user_id)

    # SET NX: из двух конкурентных записей остаётся первая
    inserted = await store.set_if_absent(entry_key, entry.model_dump_json(by_alias=True))
    if not inserted:
        stored = await get_entry(store, instance_id=instance_id, user_id=entry.user_id)
        if stored is not None:
            # тот же member и тот же score: ZADD ничего не меняет, если он уже прошёл
            await store.sorted_set_add(leaderboard_key(instance_id), stored.user_id, stored.score)
        logger.warning("User %s already has a leaderboard entry on %s, first one kept", entry.user_id, instance_id)
        return False

    await store.sorted_set_add(leaderboard_key(instance_id), entry.user_id, entry.score)
    logger.info("Leaderboard %s: %s scored %d (%s)", instance_id, entry.username, entry.score, entry.scoring_mode.value)
    return True


async def get_entry(store: Store, *, instance_id: str, user_id: str) -> Optional[LeaderboardEntry]:
    raw = await store.get(leaderboard_entry_key(instance_id, user_id))
    return LeaderboardEntry.model_validate_json(raw) if raw else None


async def get_top(store: Store, *, instance_id: str, limit: Optional[int] = None) -> List[LeaderboardEntry]:
    limit = limit or settings.LEADERBOARD_LIMIT
    rows = await store.sorted_set_range(leaderboard_key(instance_id), 0, limit - 1)

    entries: List[LeaderboardEntry] = []
    for user_id, _ in rows:
        entry = await get_entry(store, instance_id=instance_id, user_id=user_id)
        if entry is not None:
            entries.append(entry)
    return entries


async def get_rank(store: Store, *, instance_id: str, user_id: str) -> Optional[int]:
    """1-based место по убыванию очков, None если записи нет."""
    rank = await store.sorted_set_rank(leaderboard_key(instance_id), user_id)
    return None if rank is None else rank + 1
