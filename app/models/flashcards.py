from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class Difficulty(str, Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"


class FlashcardCreate(BaseModel):
    topic: str = Field(..., min_length=1, max_length=255)
    question: str = Field(..., min_length=1, max_length=8000, description="Question / recto")
    answer: str = Field(..., min_length=1, max_length=8000, description="Réponse / verso")
    difficulty: Difficulty = Difficulty.medium
    upload_id: Optional[str] = None


class GenerateFlashcardsRequest(BaseModel):
    topic: str = Field(..., min_length=1, max_length=255)
    upload_id: Optional[str] = None
    count: int = Field(default=5, ge=1, le=30)


class ReviewRequest(BaseModel):
    # 0 = black-out ... 5 = réponse parfaite (SM-2)
    quality: int = Field(..., ge=0, le=5)


class Flashcard(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    topic: str
    question: str
    answer: str
    difficulty: Difficulty
    upload_id: Optional[str] = None
    review_count: int = 0
    correct_count: int = 0
    ease_factor: float = 2.5
    interval_days: int = 0
    due_at: Optional[datetime] = None
    last_reviewed_at: Optional[datetime] = None


class FlashcardListResponse(BaseModel):
    items: List[Flashcard]
