from __future__ import annotations

import logging
from typing import Iterable, Optional

from app.core.keys import stats_key, stats_total_key
from app.core.store import Store
from app.models.game import Choice, Deck, Question, QuestionStats
from app.services.answers import choice_card_ids


logger = logging.getLogger(__name__)


def _to_int(raw: str | None) -> int:
    try:
        return int(raw) if raw is not None else 0
    except ValueError:
        return 0


async def record_answer(
    store: Store,
    *,
    instance_id: str,
    question_id: str,
    choice: Choice,
    known_card_ids: Optional[Iterable[str]] = None,
) -> None:
    """Учитываем один ответ: +1 каждой выбранной карточке и +1 к total.

    total считает ответы, а не карточки: последовательность из 4 карточек
    даёт +1 к total. Если передан known_card_ids, чужие id в хэш не пишем.
    """
    fields = choice_card_ids(choice)
    if known_card_ids is not None:
        known = set(known_card_ids)
        fields = [cid for cid in fields if cid in known]

    await store.hash_increment_with_total(
        stats_key(instance_id, question_id),
        fields,
        stats_total_key(instance_id, question_id),
    )


async def get_stats(
    store: Store,
    *,
    instance_id: str,
    question_id: str,
    card_ids: list[str],
) -> QuestionStats:
    raw = await store.hash_get_all(stats_key(instance_id, question_id))
    total = await store.get(stats_total_key(instance_id, question_id))
    return QuestionStats(
        question_id=question_id,
        card_stats={cid: _to_int(raw.get(cid)) for cid in card_ids},
        total_responses=_to_int(total),
    )


async def get_deck_stats(store: Store, *, instance_id: str, deck: Deck) -> list[QuestionStats]:
    """Статистика по всем вопросам колоды, на которые уже кто-то ответил."""
    out: list[QuestionStats] = []
    for q in deck.questions:
        stats = await get_stats(store, instance_id=instance_id, question_id=q.id, card_ids=q.card_ids)
        if stats.total_responses > 0:
            out.append(stats)
    return out


async def init_question_stats(store: Store, *, instance_id: str, question: Question) -> None:
    """Нулевые счётчики для только что добавленного вопроса."""
    await store.hash_set(stats_key(instance_id, question.id), {cid: "0" for cid in question.card_ids})
    await store.set(stats_total_key(instance_id, question.id), "0")
    logger.debug("Initialized stats for question %s on %s", question.id, instance_id)
