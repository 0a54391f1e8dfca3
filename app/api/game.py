from __future__ import annotations

from typing import List, Literal, Optional, Union

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from app.core.errors import NotFoundError
from app.core.security import Player, get_current_player, get_optional_player
from app.core.store import Store, get_store
from app.models.game import (
    CamelModel,
    Deck,
    LeaderboardEntry,
    PlayerAnswer,
    PlayerSession,
    Question,
    QuestionStats,
)
from app.services import decks as deck_service
from app.services import games as game_service
from app.services import leaderboard as leaderboard_service
from app.services.stats import get_deck_stats


router = APIRouter(prefix="/games/{instance_id}", tags=["games"])


class Success(CamelModel):
    status: Literal["success"] = "success"


class StartIn(CamelModel):
    # None пропускаем дальше: сервис вернёт понятную ошибку вместо 422
    scoring_mode: Optional[str] = None


class AnswerIn(CamelModel):
    answer: Union[str, List[str]]
    time_remaining: float = Field(default=0, ge=0, allow_inf_nan=False)
    question_id: Optional[str] = None


class CompletedAnswerIn(CamelModel):
    question_id: str
    answer: Union[str, List[str]]
    time_remaining: float = Field(default=0, ge=0, allow_inf_nan=False)
    timestamp: Optional[int] = None


class CompleteIn(CamelModel):
    answers: List[CompletedAnswerIn] = Field(default_factory=list)
    total_score: Optional[int] = None   # подсчёт клиента, только для сверки


class AddQuestionIn(CamelModel):
    question: Question


class InitOut(Success):
    deck: Deck
    player_session: Optional[PlayerSession] = None
    player_rank: Optional[int] = None
    all_question_stats: List[QuestionStats] = Field(default_factory=list)


class StartOut(Success):
    deck: Deck
    player_session: PlayerSession


class AnswerOut(Success):
    score: int
    question_stats: QuestionStats
    is_game_complete: bool
    next_question_index: Optional[int] = None
    total_score: int


class CompleteOut(Success):
    final_score: int
    session: PlayerSession


class LeaderboardOut(Success):
    leaderboard: List[LeaderboardEntry]
    player_rank: Optional[int] = None
    player_score: Optional[int] = None


class QuestionCreatedOut(Success):
    question_id: str


class StatsOut(Success):
    question_stats: List[QuestionStats]


@router.get("/init", response_model=InitOut)
async def init_game(
    instance_id: str,
    store: Store = Depends(get_store),
    player: Optional[Player] = Depends(get_optional_player),
):
    deck = await deck_service.get_or_create_deck(store, instance_id=instance_id)

    session = None
    rank = None
    if player is not None:
        session = await game_service.get_player_session(store, instance_id=instance_id, user_id=player.user_id)
        rank = await leaderboard_service.get_rank(store, instance_id=instance_id, user_id=player.user_id)

    stats = await get_deck_stats(store, instance_id=instance_id, deck=deck)
    return InitOut(deck=deck, player_session=session, player_rank=rank, all_question_stats=stats)


@router.post("/start", response_model=StartOut)
async def start_game(
    instance_id: str,
    body: StartIn,
    store: Store = Depends(get_store),
    player: Player = Depends(get_current_player),
):
    session = await game_service.start_game(
        store,
        instance_id=instance_id,
        user_id=player.user_id,
        username=player.username,
        scoring_mode=body.scoring_mode,
    )
    deck = await deck_service.get_deck(store, instance_id=instance_id)
    return StartOut(deck=deck, player_session=session)


@router.post("/answer", response_model=AnswerOut)
async def submit_answer(
    instance_id: str,
    body: AnswerIn,
    store: Store = Depends(get_store),
    player: Player = Depends(get_current_player),
):
    result = await game_service.submit_answer(
        store,
        instance_id=instance_id,
        user_id=player.user_id,
        answer=body.answer,
        time_remaining=body.time_remaining,
        question_id=body.question_id,
    )
    return AnswerOut(
        score=result.score,
        question_stats=result.question_stats,
        is_game_complete=result.is_game_complete,
        next_question_index=result.next_question_index,
        total_score=result.total_score,
    )


@router.post("/complete", response_model=CompleteOut)
async def complete_game(
    instance_id: str,
    body: CompleteIn,
    store: Store = Depends(get_store),
    player: Player = Depends(get_current_player),
):
    answers = [PlayerAnswer(**a.model_dump(exclude_none=True)) for a in body.answers]
    session = await game_service.complete_game(
        store,
        instance_id=instance_id,
        user_id=player.user_id,
        answers=answers,
        claimed_total_score=body.total_score,
    )
    return CompleteOut(final_score=session.total_score, session=session)


@router.get("/leaderboard", response_model=LeaderboardOut)
async def get_leaderboard(
    instance_id: str,
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    store: Store = Depends(get_store),
    player: Optional[Player] = Depends(get_optional_player),
):
    entries = await leaderboard_service.get_top(store, instance_id=instance_id, limit=limit)

    rank = None
    player_score = None
    if player is not None:
        rank = await leaderboard_service.get_rank(store, instance_id=instance_id, user_id=player.user_id)
        # на доске остаётся первый результат, даже если игрок начал заново
        entry = await leaderboard_service.get_entry(store, instance_id=instance_id, user_id=player.user_id)
        if entry is not None:
            player_score = entry.score
        else:
            session = await game_service.get_player_session(
                store, instance_id=instance_id, user_id=player.user_id
            )
            if session is not None:
                player_score = session.total_score

    return LeaderboardOut(leaderboard=entries, player_rank=rank, player_score=player_score)


@router.post("/questions", response_model=QuestionCreatedOut)
async def add_question(
    instance_id: str,
    body: AddQuestionIn,
    store: Store = Depends(get_store),
    player: Player = Depends(get_current_player),
):
    question = await deck_service.add_question(
        store,
        instance_id=instance_id,
        question=body.question,
        author_id=player.user_id,
        author_username=player.username,
    )
    return QuestionCreatedOut(question_id=question.id)


@router.get("/stats", response_model=StatsOut)
async def get_stats(
    instance_id: str,
    store: Store = Depends(get_store),
):
    deck = await deck_service.get_deck(store, instance_id=instance_id)
    if deck is None:
        raise NotFoundError("Game deck not found")
    stats = await get_deck_stats(store, instance_id=instance_id, deck=deck)
    return StatsOut(question_stats=stats)
