from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from slugify import slugify

from app.core.config import settings
from app.core.errors import InputError
from app.core.keys import deck_key
from app.core.store import Store
from app.models.game import Deck, GameCard, Question, QuestionType, now_ms
from app.services.stats import init_question_stats


logger = logging.getLogger(__name__)

MIN_CARDS = 2
MAX_CARDS = 5
MIN_DECK_QUESTIONS = 3


def _mc(qid: str, prompt: str, cards: list[tuple[str, str, bool | None]], time_limit: int = 20) -> Question:
    return Question(
        id=qid,
        prompt=prompt,
        question_type=QuestionType.MULTIPLE_CHOICE,
        time_limit=time_limit,
        cards=[GameCard(id=cid, text=text, is_correct=ok) for cid, text, ok in cards],
    )


def _seq(qid: str, prompt: str, steps: list[str], time_limit: int = 30) -> Question:
    return Question(
        id=qid,
        prompt=prompt,
        question_type=QuestionType.SEQUENCE,
        time_limit=time_limit,
        cards=[
            GameCard(id=f"step{n}", text=text, sequence_order=n)
            for n, text in enumerate(steps, start=1)
        ],
    )


_HEIST_STEPS = ["Case the joint", "Disable security", "Grab the loot", "Escape clean"]


def battles_deck() -> Deck:
    return Deck(
        id="default-battles",
        title="Epic Battles",
        description="Who would win in these epic showdowns?",
        theme="battles",
        questions=[
            _mc("q1", "In a battle royale, who emerges victorious?", [
                ("bear", "🐻 Grizzly Bear", False),
                ("tiger", "🐅 Siberian Tiger", True),
                ("elephant", "🐘 African Elephant", False),
                ("rhino", "🦏 White Rhino", False),
            ]),
            _mc("q2", "Which superhero wins in a no-holds-barred fight?", [
                ("superman", "🦸‍♂️ Superman", True),
                ("batman", "🦇 Batman", False),
                ("hulk", "💚 Hulk", False),
                ("thor", "⚡ Thor", False),
            ]),
            _mc("q3", "In a zombie apocalypse, what's your best weapon?", [
                ("katana", "⚔️ Katana", False),
                ("crossbow", "🏹 Crossbow", True),
                ("baseball-bat", "⚾ Baseball Bat", False),
                ("chainsaw", "🪚 Chainsaw", False),
            ]),
            _mc("q4", "Which food would survive longest in your fridge?", [
                ("honey", "🍯 Honey", True),
                ("bread", "🍞 Bread", False),
                ("milk", "🥛 Milk", False),
                ("banana", "🍌 Banana", False),
            ]),
            _mc("q5", "What's the most useless superpower?", [
                ("talk-to-fish", "🐠 Talk to Fish", False),
                ("change-traffic-lights", "🚦 Change Traffic Lights", True),
                ("invisible-when-alone", "👻 Invisible When Alone", False),
                ("super-smell", "👃 Super Smell", False),
            ]),
            _seq("q6", "Order the steps for a perfect bank heist:", _HEIST_STEPS),
        ],
    )


def sequence_deck() -> Deck:
    return Deck(
        id="order-of-operations",
        title="Perfect Sequence",
        description="Arrange steps in the correct order",
        theme="sequence",
        questions=[
            _seq("q1", "Order the steps for a perfect bank heist:", _HEIST_STEPS),
            _seq("q2", "Arrange the steps to make a perfect omelette:", [
                "Crack eggs into bowl",
                "Whisk eggs with salt/pepper",
                "Heat butter in pan",
                "Pour eggs into pan",
                "Fold and serve",
            ]),
            # вопрос-мнение: правильного ответа нет, trivia даёт 0
            _mc("q3", "Which superpower would you want?", [
                ("fly", "Flight", None),
                ("invis", "Invisibility", None),
                ("strength", "Super strength", None),
                ("tele", "Teleportation", None),
            ]),
        ],
    )


BUILTIN_DECKS: Dict[str, Callable[[], Deck]] = {
    "battles": battles_deck,
    "sequence": sequence_deck,
}


def default_deck() -> Deck:
    factory = BUILTIN_DECKS.get(settings.DEFAULT_DECK, battles_deck)
    deck = factory()
    deck.created_at = now_ms()
    return deck


# ---------- валидация ----------

def _fill_card_ids(cards: List[GameCard]) -> None:
    """Карточкам без id даём id из текста (slug), с суффиксом при повторах."""
    taken = {c.id for c in cards if c.id}
    for idx, card in enumerate(cards, start=1):
        if card.id:
            continue
        base = slugify(card.text) or f"card{idx}"
        cid, n = base, 2
        while cid in taken:
            cid = f"{base}-{n}"
            n += 1
        card.id = cid
        taken.add(cid)


def normalize_question(question: Question) -> Question:
    """Копия вопроса с обрезанными строками и заполненными id карточек."""
    q = question.model_copy(deep=True)
    q.prompt = (q.prompt or "").strip()
    for card in q.cards:
        card.text = (card.text or "").strip()
        card.id = (card.id or "").strip()
    _fill_card_ids(q.cards)
    return q


def validate_question(question: Question, label: str = "Question") -> List[str]:
    errors: List[str] = []

    if not question.prompt.strip():
        errors.append(f"{label}: Prompt is required")

    cards = question.cards
    if len(cards) < MIN_CARDS:
        errors.append(f"{label}: Must have at least {MIN_CARDS} answer cards")
    if len(cards) > MAX_CARDS:
        errors.append(f"{label}: Cannot have more than {MAX_CARDS} answer cards")

    for idx, card in enumerate(cards, start=1):
        if not card.text.strip():
            errors.append(f"{label}, Card {idx}: Text is required")

    ids = [c.id for c in cards]
    if len(set(ids)) != len(ids):
        errors.append(f"{label}: Card ids must be unique")

    if question.time_limit is not None and question.time_limit <= 0:
        errors.append(f"{label}: Time limit must be a positive number of seconds")

    if question.question_type == QuestionType.SEQUENCE:
        orders = [c.sequence_order for c in cards]
        if any(o is None or o < 1 for o in orders):
            errors.append(f"{label}: Every sequence card needs a positive sequenceOrder")
        elif len(set(orders)) != len(orders):
            errors.append(f"{label}: sequenceOrder values must be distinct")

    return errors


def validate_deck(title: str, questions: List[Question]) -> List[str]:
    errors: List[str] = []
    if not (title or "").strip():
        errors.append("Deck title is required")
    if len(questions) < MIN_DECK_QUESTIONS:
        errors.append(f"Deck must have at least {MIN_DECK_QUESTIONS} questions")
    for idx, q in enumerate(questions, start=1):
        errors.extend(validate_question(q, label=f"Question {idx}"))
    return errors


# ---------- хранилище ----------

async def get_deck(store: Store, *, instance_id: str) -> Optional[Deck]:
    raw = await store.get(deck_key(instance_id))
    return Deck.model_validate_json(raw) if raw else None


async def save_deck(store: Store, *, instance_id: str, deck: Deck) -> None:
    await store.set(deck_key(instance_id), deck.model_dump_json(by_alias=True))
    logger.info("Saved deck %s for %s", deck.id, instance_id)


async def get_or_create_deck(store: Store, *, instance_id: str) -> Deck:
    deck = await get_deck(store, instance_id=instance_id)
    if deck is not None:
        return deck

    deck = default_deck()
    await save_deck(store, instance_id=instance_id, deck=deck)
    return deck


async def add_question(
    store: Store,
    *,
    instance_id: str,
    question: Question,
    author_id: str,
    author_username: str,
) -> Question:
    """Добавляем пользовательский вопрос в конец колоды и обнуляем его статистику."""
    prepared = normalize_question(question)
    errors = validate_question(prepared)
    if errors:
        raise InputError("; ".join(errors))

    deck = await get_or_create_deck(store, instance_id=instance_id)

    qid = f"user_{now_ms()}_{author_id}"
    if deck.get_question(qid) is not None:
        qid = f"{qid}_{uuid4().hex[:6]}"

    prepared.id = qid
    prepared.author_username = author_username
    prepared.time_limit = prepared.time_limit or settings.DEFAULT_TIME_LIMIT

    deck.questions.append(prepared)
    await save_deck(store, instance_id=instance_id, deck=deck)
    await init_question_stats(store, instance_id=instance_id, question=prepared)

    logger.info("Added question %s to deck for %s", qid, instance_id)
    return prepared


async def create_deck(
    store: Store,
    *,
    title: str,
    description: str,
    theme: str,
    questions: List[Question],
    author_username: str,
) -> tuple[str, Deck]:
    """Новая колода = новая игра. Возвращаем (instance_id, deck)."""
    prepared = [normalize_question(q) for q in questions]
    errors = validate_deck(title, prepared)
    if errors:
        raise InputError("; ".join(errors))

    for idx, q in enumerate(prepared, start=1):
        q.id = q.id or f"q{idx}"
        q.time_limit = q.time_limit or settings.DEFAULT_TIME_LIMIT
    if len({q.id for q in prepared}) != len(prepared):
        raise InputError("Question ids must be unique")

    created_at = now_ms()
    deck = Deck(
        id=f"{slugify(title) or 'deck'}-{created_at}",
        title=title.strip(),
        description=(description or "").strip(),
        theme=(theme or "custom").strip(),
        questions=prepared,
        created_by=author_username,
        created_at=created_at,
    )

    instance_id = uuid4().hex
    await save_deck(store, instance_id=instance_id, deck=deck)
    for q in prepared:
        await init_question_stats(store, instance_id=instance_id, question=q)

    logger.info("Created deck %s (%d questions) as %s", deck.id, len(prepared), instance_id)
    return instance_id, deck
