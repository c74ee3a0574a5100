from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_llm_service
from app.core.security import get_api_key
from app.db.database import get_db
from app.models.flashcards import (
    Flashcard,
    FlashcardCreate,
    FlashcardListResponse,
    GenerateFlashcardsRequest,
    ReviewRequest,
)
from app.models.uploads import DeleteResponse
from app.services.flashcards import FlashcardService
from app.services.llm import LLMService

router = APIRouter(prefix="/flashcards", tags=["flashcards"])


def get_flashcard_service(
    db: Session = Depends(get_db),
    llm: LLMService = Depends(get_llm_service),
) -> FlashcardService:
    return FlashcardService(db, llm)


@router.get("", response_model=FlashcardListResponse)
def list_flashcards(
    topic: Optional[str] = Query(default=None, description="Filtre par sujet"),
    due_only: bool = Query(default=False, description="Seulement les cartes à réviser"),
    service: FlashcardService = Depends(get_flashcard_service),
):
    items = service.list(topic=topic, due_only=due_only)
    return FlashcardListResponse(items=[Flashcard.model_validate(c) for c in items])


@router.post("", response_model=Flashcard, status_code=201)
def create_flashcard(payload: FlashcardCreate, service: FlashcardService = Depends(get_flashcard_service)):
    return Flashcard.model_validate(service.create(payload))


@router.post("/generate", response_model=FlashcardListResponse, status_code=201)
def generate_flashcards(body: GenerateFlashcardsRequest, service: FlashcardService = Depends(get_flashcard_service)):
    cards = service.generate(body)
    return FlashcardListResponse(items=[Flashcard.model_validate(c) for c in cards])


@router.post("/{card_id}/review", response_model=Flashcard)
def review_flashcard(card_id: int, body: ReviewRequest, service: FlashcardService = Depends(get_flashcard_service)):
    return Flashcard.model_validate(service.review(card_id, body.quality))


@router.delete("/{card_id}", response_model=DeleteResponse)
def delete_flashcard(
    card_id: int,
    service: FlashcardService = Depends(get_flashcard_service),
    _: str = Depends(get_api_key),
):
    service.delete(card_id)
    return DeleteResponse(ok=True, id=str(card_id))
