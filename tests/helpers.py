from app.core.keys import deck_key
from app.core.security import create_player_token
from app.core.store import Store
from app.models.game import Deck, GameCard, Question, QuestionType


def mc_question(qid: str = "mc1") -> Question:
    return Question(
        id=qid,
        prompt="Who wins?",
        question_type=QuestionType.MULTIPLE_CHOICE,
        time_limit=20,
        cards=[
            GameCard(id="A", text="Option A", is_correct=True),
            GameCard(id="B", text="Option B", is_correct=False),
        ],
    )


def seq_question(qid: str = "seq1") -> Question:
    return Question(
        id=qid,
        prompt="Put them in order",
        question_type=QuestionType.SEQUENCE,
        time_limit=30,
        cards=[
            # нарочно не по порядку: канонический порядок задаёт sequence_order
            GameCard(id="s3", text="Third", sequence_order=3),
            GameCard(id="s1", text="First", sequence_order=1),
            GameCard(id="s2", text="Second", sequence_order=2),
        ],
    )


def make_deck(*questions: Question) -> Deck:
    return Deck(id="test-deck", title="Test deck", questions=list(questions), created_by="tests")


async def put_deck(store: Store, instance_id: str, deck: Deck) -> None:
    await store.set(deck_key(instance_id), deck.model_dump_json(by_alias=True))


def auth(user_id: str = "u1", username: str = "alice") -> dict:
    return {"Authorization": f"Bearer {create_player_token(user_id, username)}"}
