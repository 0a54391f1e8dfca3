"""Scoring engine.

Pure functions only: the same mode, question, answer, statistics and
remaining time always give the same integer score, so a finished session
can be re-scored from persisted counters.
"""

from __future__ import annotations

import math

from app.models.game import (
    Choice,
    Question,
    QuestionStats,
    QuestionType,
    ScoringMode,
    SequenceChoice,
    SingleChoice,
)

POINTS_PER_SECOND = 5
BASE_POINTS = 100


def round_half_up(value: float) -> int:
    # round() в Python банковский (round(0.5) == 0), здесь нужен обычный
    return int(math.floor(value + 0.5))


def time_bonus(time_remaining: float) -> int:
    return round_half_up(max(0, time_remaining * POINTS_PER_SECOND))


def percentage(stats: QuestionStats, card_id: str) -> int:
    """Доля ответов за карточку в процентах, 0 если ответов ещё нет."""
    if stats.total_responses <= 0:
        return 0
    count = stats.card_stats.get(card_id, 0)
    return round_half_up(100 * count / max(1, stats.total_responses))


def sequence_accuracy(question: Question, card_ids: tuple[str, ...] | list[str]) -> float:
    """Доля позиций, совпавших с каноническим порядком.

    Сравниваются только позиции в пределах более короткой из двух
    последовательностей.
    """
    canonical = question.canonical_sequence()
    if not canonical:
        return 0.0
    correct = sum(1 for expected, given in zip(canonical, card_ids) if expected == given)
    return correct / len(canonical)


def _score_single(mode: ScoringMode, question: Question, card_id: str, stats: QuestionStats) -> int | None:
    """Base points for a single card; None means the answer scores 0 outright."""
    if mode == ScoringMode.TRIVIA:
        card = question.get_card(card_id)
        if card is None or not card.is_correct:
            return None
        return BASE_POINTS

    pct = percentage(stats, card_id) if question.get_card(card_id) else 0
    if mode == ScoringMode.CONFORMIST:
        return round_half_up(pct)
    return round_half_up(100 - pct)


def _score_sequence(mode: ScoringMode, question: Question, card_ids: tuple[str, ...], stats: QuestionStats) -> int:
    if mode == ScoringMode.TRIVIA:
        return round_half_up(sequence_accuracy(question, card_ids) * 100)

    known = set(question.card_ids)
    total_pct = sum(percentage(stats, cid) if cid in known else 0 for cid in card_ids)
    average = total_pct / len(card_ids)
    if mode == ScoringMode.CONFORMIST:
        return round_half_up(average)
    return round_half_up(100 - average)


def score(
    mode: ScoringMode,
    question: Question,
    choice: Choice,
    stats: QuestionStats,
    time_remaining: float,
) -> int:
    bonus = time_bonus(time_remaining)

    if question.question_type == QuestionType.SEQUENCE:
        if not isinstance(choice, SequenceChoice):
            raise TypeError("sequence question scored with a single-card answer")
        return _score_sequence(mode, question, choice.card_ids, stats) + bonus

    if not isinstance(choice, SingleChoice):
        raise TypeError("multiple-choice question scored with a sequence answer")
    base = _score_single(mode, question, choice.card_id, stats)
    if base is None:
        # неверный trivia-ответ: 0 без бонуса за время
        return 0
    return base + bonus
