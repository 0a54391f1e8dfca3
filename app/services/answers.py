from __future__ import annotations

import math
from typing import Any

from app.core.errors import InputError
from app.models.game import Choice, Question, QuestionType, SequenceChoice, SingleChoice
from app.services.scoring import POINTS_PER_SECOND


def to_choice(question: Question, raw: Any) -> Choice:
    """Проверяем форму ответа по типу вопроса.

    multiple-choice -> ровно один card id (строка)
    sequence        -> список минимум из двух разных card id
    """
    if question.question_type == QuestionType.SEQUENCE:
        if not isinstance(raw, list) or not all(isinstance(c, str) for c in raw):
            raise InputError("Sequence questions expect an ordered list of card ids")
        if len(raw) < 2:
            raise InputError("Sequence answer must contain at least 2 cards")
        if len(set(raw)) != len(raw):
            raise InputError("Sequence answer must not repeat cards")
        return SequenceChoice(card_ids=tuple(raw))

    if not isinstance(raw, str) or not raw:
        raise InputError("Multiple-choice questions expect a single card id")
    return SingleChoice(card_id=raw)


def check_time_remaining(time_remaining: Any) -> float:
    """Время должно давать конечный бонус, иначе округление падает уже после записи статистики."""
    try:
        value = float(time_remaining)
    except (TypeError, ValueError):
        raise InputError("timeRemaining must be a number")
    if not math.isfinite(value) or not math.isfinite(value * POINTS_PER_SECOND):
        raise InputError("timeRemaining must be a finite number of seconds")
    return value


def choice_card_ids(choice: Choice) -> list[str]:
    if isinstance(choice, SequenceChoice):
        return list(choice.card_ids)
    return [choice.card_id]
