# app/services/games.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from app.core.errors import InputError, NotFoundError, StateConflictError
from app.core.keys import session_key
from app.core.store import Store
from app.models.game import (
    Choice,
    Deck,
    GameState,
    LeaderboardEntry,
    PlayerAnswer,
    PlayerSession,
    Question,
    QuestionStats,
    ScoringMode,
    now_ms,
)
from app.services.answers import check_time_remaining, to_choice
from app.services.decks import get_deck
from app.services.leaderboard import upsert_entry
from app.services.scoring import score
from app.services.stats import get_stats, record_answer


logger = logging.getLogger(__name__)

NO_ACTIVE_SESSION = "No active game session found"


@dataclass(slots=True)
class AnswerResult:
    score: int
    question_stats: QuestionStats
    is_game_complete: bool
    next_question_index: Optional[int]
    total_score: int


@dataclass(slots=True)
class _PlannedAnswer:
    question: Question
    choice: Choice
    answer: PlayerAnswer


async def get_player_session(store: Store, *, instance_id: str, user_id: str) -> Optional[PlayerSession]:
    raw = await store.get(session_key(instance_id, user_id))
    return PlayerSession.model_validate_json(raw) if raw else None


async def _save_session(store: Store, *, instance_id: str, session: PlayerSession) -> None:
    await store.set(session_key(instance_id, session.user_id), session.model_dump_json(by_alias=True))


async def _require_deck(store: Store, instance_id: str) -> Deck:
    deck = await get_deck(store, instance_id=instance_id)
    if deck is None:
        raise NotFoundError("Game deck not found")
    return deck


async def _require_active_session(store: Store, instance_id: str, user_id: str) -> PlayerSession:
    session = await get_player_session(store, instance_id=instance_id, user_id=user_id)
    if session is None:
        raise NotFoundError(NO_ACTIVE_SESSION)
    if session.game_state != GameState.PLAYING:
        raise StateConflictError(NO_ACTIVE_SESSION)
    return session


def _parse_mode(scoring_mode: Any) -> ScoringMode:
    if scoring_mode is None:
        raise InputError("Valid scoring mode is required")
    try:
        return ScoringMode(scoring_mode)
    except ValueError:
        raise InputError("Valid scoring mode is required")


async def start_game(
    store: Store,
    *,
    instance_id: str,
    user_id: str,
    username: str,
    scoring_mode: ScoringMode | str,
) -> PlayerSession:
    """Новая сессия с нуля. Прежняя сессия игрока (даже незаконченная) перезаписывается."""
    mode = _parse_mode(scoring_mode)
    await _require_deck(store, instance_id)

    session = PlayerSession(
        user_id=user_id,
        username=username,
        scoring_mode=mode,
        answers=[],
        total_score=0,
        current_question_index=0,
        game_state=GameState.PLAYING,
        started_at=now_ms(),
    )
    await _save_session(store, instance_id=instance_id, session=session)
    logger.info("Started %s game for %s on %s", mode.value, username, instance_id)
    return session


async def _record_and_read(
    store: Store,
    *,
    instance_id: str,
    question: Question,
    choice: Choice,
) -> QuestionStats:
    """Пишем ответ в статистику и сразу читаем её: очки считаются по данным с учётом этого ответа."""
    await record_answer(
        store, instance_id=instance_id, question_id=question.id, choice=choice, known_card_ids=question.card_ids
    )
    return await get_stats(store, instance_id=instance_id, question_id=question.id, card_ids=question.card_ids)


async def _finish(store: Store, *, instance_id: str, session: PlayerSession) -> None:
    session.game_state = GameState.FINISHED
    session.finished_at = now_ms()

    # сначала лидерборд: он идемпотентен, поэтому повтор после сбоя записи сессии безопасен
    await upsert_entry(
        store,
        instance_id=instance_id,
        entry=LeaderboardEntry(
            user_id=session.user_id,
            username=session.username,
            score=session.total_score,
            scoring_mode=session.scoring_mode,
            completed_at=session.finished_at,
        ),
    )
    await _save_session(store, instance_id=instance_id, session=session)
    logger.info(
        "Game finished for %s on %s with score %d", session.username, instance_id, session.total_score
    )


async def submit_answer(
    store: Store,
    *,
    instance_id: str,
    user_id: str,
    answer: str | List[str],
    time_remaining: float,
    question_id: Optional[str] = None,
) -> AnswerResult:
    """
    Ответ на текущий вопрос сессии.

    Если это был последний вопрос колоды, сессия завершается и игрок
    попадает в лидерборд (один раз). Иначе индекс вопроса сдвигается на 1.
    """
    session = await _require_active_session(store, instance_id, user_id)
    deck = await _require_deck(store, instance_id)

    idx = session.current_question_index
    if idx >= len(deck.questions):
        raise StateConflictError("No question left to answer")
    question = deck.questions[idx]

    # клиент прислал ответ не на тот вопрос: повтор или гонка двух запросов
    if question_id is not None and question_id != question.id:
        raise StateConflictError(f"Question {question_id} is not the current question")

    choice = to_choice(question, answer)
    time_remaining = check_time_remaining(time_remaining)

    stats = await _record_and_read(store, instance_id=instance_id, question=question, choice=choice)
    points = score(session.scoring_mode, question, choice, stats, time_remaining)

    session.answers.append(
        PlayerAnswer(question_id=question.id, answer=answer, time_remaining=time_remaining)
    )
    session.total_score += points

    if idx >= len(deck.questions) - 1:
        await _finish(store, instance_id=instance_id, session=session)
        return AnswerResult(
            score=points,
            question_stats=stats,
            is_game_complete=True,
            next_question_index=None,
            total_score=session.total_score,
        )

    session.current_question_index = idx + 1
    await _save_session(store, instance_id=instance_id, session=session)
    return AnswerResult(
        score=points,
        question_stats=stats,
        is_game_complete=False,
        next_question_index=session.current_question_index,
        total_score=session.total_score,
    )


def _plan_batch(deck: Deck, answers: List[PlayerAnswer]) -> List[_PlannedAnswer]:
    """Проверяем весь пакет до любых записей в статистику."""
    if not answers:
        raise InputError("Valid answers required")

    seen: set[str] = set()
    plan: List[_PlannedAnswer] = []
    for ans in answers:
        question = deck.get_question(ans.question_id)
        if question is None:
            raise InputError(f"Unknown question {ans.question_id}")
        if ans.question_id in seen:
            raise InputError(f"Question {ans.question_id} answered more than once")
        seen.add(ans.question_id)
        check_time_remaining(ans.time_remaining)
        plan.append(_PlannedAnswer(question=question, choice=to_choice(question, ans.answer), answer=ans))
    return plan


def replay_score(
    mode: ScoringMode,
    deck: Deck,
    answers: List[PlayerAnswer],
    stats_by_question: Dict[str, QuestionStats],
) -> int:
    """Авторитетный пересчёт суммы очков без обращений к хранилищу.

    stats_by_question: статистика каждого вопроса сразу после учёта
    ответа игрока.
    """
    total = 0
    for item in _plan_batch(deck, answers):
        stats = stats_by_question[item.question.id]
        total += score(mode, item.question, item.choice, stats, item.answer.time_remaining)
    return total


async def complete_game(
    store: Store,
    *,
    instance_id: str,
    user_id: str,
    answers: List[PlayerAnswer],
    claimed_total_score: Optional[int] = None,
) -> PlayerSession:
    """
    Пакетное завершение игры: клиент играл с локальным подсчётом очков
    и присылает все ответы разом. Очки пересчитываются на сервере,
    присланной сумме не доверяем.
    """
    session = await _require_active_session(store, instance_id, user_id)
    # ответы уже идут по одному: пакетом их не переписать
    if session.answers:
        raise StateConflictError("Game is being played answer by answer, batch completion is not allowed")
    deck = await _require_deck(store, instance_id)
    plan = _plan_batch(deck, answers)

    stats_by_question: Dict[str, QuestionStats] = {}
    for item in plan:
        stats_by_question[item.question.id] = await _record_and_read(
            store, instance_id=instance_id, question=item.question, choice=item.choice
        )

    total = replay_score(session.scoring_mode, deck, [p.answer for p in plan], stats_by_question)
    if claimed_total_score is not None and claimed_total_score != total:
        logger.warning(
            "Client claimed %d for %s on %s, recomputed %d",
            claimed_total_score, user_id, instance_id, total,
        )

    session.answers = [p.answer for p in plan]
    session.total_score = total
    session.current_question_index = min(
        max(session.current_question_index, len(plan) - 1),
        max(len(deck.questions) - 1, 0),
    )
    await _finish(store, instance_id=instance_id, session=session)
    return session
