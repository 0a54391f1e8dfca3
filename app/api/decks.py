from typing import List, Literal

from fastapi import APIRouter, Depends, status
from pydantic import Field

from app.core.security import Player, get_current_player
from app.core.store import Store, get_store
from app.models.game import CamelModel, Question
from app.services.decks import BUILTIN_DECKS, create_deck


router = APIRouter(prefix="/decks", tags=["decks"])


class DeckCreateIn(CamelModel):
    title: str = Field(..., max_length=200)
    description: str = ""
    theme: str = "custom"
    questions: List[Question] = Field(default_factory=list)


class DeckCreatedOut(CamelModel):
    status: Literal["success"] = "success"
    deck_id: str
    instance_id: str


@router.post("", response_model=DeckCreatedOut, status_code=status.HTTP_201_CREATED)
async def create_new_deck(
    payload: DeckCreateIn,
    store: Store = Depends(get_store),
    player: Player = Depends(get_current_player),
):
    # новая колода живёт в новой игре (раньше это был новый пост)
    instance_id, deck = await create_deck(
        store,
        title=payload.title,
        description=payload.description,
        theme=payload.theme,
        questions=payload.questions,
        author_username=player.username,
    )
    return DeckCreatedOut(deck_id=deck.id, instance_id=instance_id)


@router.get("/builtin")
async def list_builtin_decks():
    out = []
    for key, factory in BUILTIN_DECKS.items():
        deck = factory()
        out.append({"key": key, "id": deck.id, "title": deck.title, "questions": len(deck.questions)})
    return {"status": "success", "decks": out}
