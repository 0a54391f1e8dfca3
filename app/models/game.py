from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    return int(time.time() * 1000)


class ScoringMode(str, Enum):
    CONTRARIAN = "contrarian"
    CONFORMIST = "conformist"
    TRIVIA = "trivia"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple-choice"
    SEQUENCE = "sequence"


class GameState(str, Enum):
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


class CamelModel(BaseModel):
    # в JSON (и в хранилище) поля в camelCase, в коде snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GameCard(CamelModel):
    id: str = ""
    text: str = ""
    is_correct: Optional[bool] = None       # trivia для multiple-choice
    sequence_order: Optional[int] = None    # 1-based, для sequence


class Question(CamelModel):
    id: str = ""
    prompt: str = ""
    cards: list[GameCard] = Field(default_factory=list)
    time_limit: Optional[int] = None   # секунды
    author_username: Optional[str] = None
    question_type: QuestionType = QuestionType.MULTIPLE_CHOICE

    @property
    def card_ids(self) -> list[str]:
        return [c.id for c in self.cards]

    def get_card(self, card_id: str) -> GameCard | None:
        return next((c for c in self.cards if c.id == card_id), None)

    def canonical_sequence(self) -> list[str]:
        """Правильный порядок карточек: по возрастанию sequence_order."""
        ordered = sorted(
            (c for c in self.cards if c.sequence_order is not None),
            key=lambda c: c.sequence_order,
        )
        return [c.id for c in ordered]


class Deck(CamelModel):
    id: str
    title: str
    description: str = ""
    theme: str = ""
    questions: list[Question] = Field(default_factory=list)
    created_by: str = "system"
    created_at: int = Field(default_factory=now_ms)

    def get_question(self, question_id: str) -> Question | None:
        return next((q for q in self.questions if q.id == question_id), None)


class PlayerAnswer(CamelModel):
    question_id: str
    answer: Union[str, list[str]]   # один card id или последовательность
    time_remaining: float = 0
    timestamp: int = Field(default_factory=now_ms)


class PlayerSession(CamelModel):
    user_id: str
    username: str
    scoring_mode: ScoringMode
    answers: list[PlayerAnswer] = Field(default_factory=list)
    total_score: int = 0
    current_question_index: int = 0
    game_state: GameState = GameState.PLAYING
    started_at: int = Field(default_factory=now_ms)
    finished_at: Optional[int] = None


class QuestionStats(CamelModel):
    question_id: str
    card_stats: dict[str, int] = Field(default_factory=dict)   # card id -> count
    total_responses: int = 0


class LeaderboardEntry(CamelModel):
    user_id: str
    username: str
    score: int
    scoring_mode: ScoringMode
    completed_at: int = Field(default_factory=now_ms)


@dataclass(frozen=True, slots=True)
class SingleChoice:
    card_id: str


@dataclass(frozen=True, slots=True)
class SequenceChoice:
    card_ids: tuple[str, ...]


Choice = Union[SingleChoice, SequenceChoice]
