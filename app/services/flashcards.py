import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session
from starlette.status import HTTP_404_NOT_FOUND

from app.db.models import Flashcard, Upload, UploadChunk
from app.models.flashcards import Difficulty, FlashcardCreate, GenerateFlashcardsRequest
from app.services.llm import LLMService
from app.utils.text_utils import split_sentences

logger = logging.getLogger(__name__)

MIN_EASE = 1.3
MAX_CONTEXT_CHARS = 12000

SYSTEM_PROMPT = (
    "You write exam revision flashcards. Each card has a short question, a precise answer "
    "and a difficulty (easy, medium or hard). Answer ONLY with JSON: "
    "{\"cards\":[{\"question\":str,\"answer\":str,\"difficulty\":\"easy\"|\"medium\"|\"hard\"}]}"
)


def utcnow() -> datetime:
    # colonnes DateTime naïves : on stocke de l'UTC sans tzinfo
    return datetime.now(timezone.utc).replace(tzinfo=None)


def apply_review(card: Flashcard, quality: int, now: Optional[datetime] = None) -> Flashcard:
    """
    Met à jour les statistiques d'une carte selon SM-2.
    quality >= 3 : réponse correcte, l'intervalle grandit (1, 6, puis intervalle x facilité).
    quality < 3  : on repart de zéro, révision le lendemain.
    """
    if not 0 <= quality <= 5:
        raise ValueError("quality must be within 0..5")
    now = now or utcnow()

    card.review_count = (card.review_count or 0) + 1
    repetitions = card.repetitions or 0
    ease = card.ease_factor or 2.5

    if quality >= 3:
        card.correct_count = (card.correct_count or 0) + 1
        if repetitions == 0:
            interval = 1
        elif repetitions == 1:
            interval = 6
        else:
            interval = max(1, round((card.interval_days or 1) * ease))
        card.repetitions = repetitions + 1
    else:
        card.repetitions = 0
        interval = 1

    card.ease_factor = round(max(MIN_EASE, ease + 0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02)), 4)
    card.interval_days = interval
    card.last_reviewed_at = now
    card.due_at = now + timedelta(days=interval)
    return card


def generate_local(topic: str, context: str, count: int) -> List[Dict[str, str]]:
    """
    Cartes sans modèle : phrases du support qui citent le sujet (texte à trous),
    complétées par des questions génériques sur le sujet.
    """
    cards: List[Dict[str, str]] = []
    pattern = re.compile(re.escape(topic), re.IGNORECASE)

    for sentence in split_sentences(context):
        if len(cards) >= count:
            break
        if not pattern.search(sentence) or len(sentence) > 300:
            continue
        cards.append({
            "question": "Fill in the blank: " + pattern.sub("_____", sentence),
            "answer": topic,
            "difficulty": Difficulty.easy.value,
        })

    generic = [
        (f"Define {topic}.", f"Write the textbook definition of {topic} and check it against your notes.", Difficulty.easy),
        (f"What are the key points of {topic}?", f"List the main sub-topics of {topic} from the syllabus.", Difficulty.medium),
        (f"Why is {topic} important for the exam?", f"Look at how {topic} was asked in previous year questions.", Difficulty.medium),
        (f"Give an example or application of {topic}.", f"Recall a worked example of {topic}.", Difficulty.hard),
    ]
    i = 0
    while len(cards) < count:
        q, a, d = generic[i % len(generic)]
        suffix = "" if i < len(generic) else f" ({i // len(generic) + 1})"
        cards.append({"question": q + suffix, "answer": a, "difficulty": d.value})
        i += 1
    return cards


def _coerce_card(item) -> Optional[Dict[str, str]]:
    if not isinstance(item, dict):
        return None
    question = str(item.get("question") or "").strip()
    answer = str(item.get("answer") or "").strip()
    if not question or not answer:
        return None
    difficulty = str(item.get("difficulty") or "medium").strip().lower()
    if difficulty not in {d.value for d in Difficulty}:
        difficulty = Difficulty.medium.value
    return {"question": question, "answer": answer, "difficulty": difficulty}


class FlashcardService:
    def __init__(self, db: Session, llm: LLMService):
        self.db = db
        self.llm = llm

    def get(self, card_id: int) -> Flashcard:
        card = self.db.get(Flashcard, card_id)
        if card is None:
            raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Flashcard not found")
        return card

    def list(self, topic: Optional[str] = None, due_only: bool = False) -> List[Flashcard]:
        stmt = select(Flashcard).order_by(Flashcard.created_at.desc(), Flashcard.id.desc())
        if topic:
            stmt = stmt.where(func.lower(Flashcard.topic) == topic.strip().lower())
        if due_only:
            stmt = stmt.where(or_(Flashcard.due_at.is_(None), Flashcard.due_at <= utcnow()))
        return list(self.db.execute(stmt).scalars())

    def _check_upload(self, upload_id: Optional[str]) -> None:
        if upload_id and self.db.get(Upload, upload_id) is None:
            raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Upload not found")

    def create(self, payload: FlashcardCreate) -> Flashcard:
        self._check_upload(payload.upload_id)
        card = Flashcard(
            topic=payload.topic.strip(),
            question=payload.question,
            answer=payload.answer,
            difficulty=payload.difficulty.value,
            upload_id=payload.upload_id,
        )
        self.db.add(card)
        self.db.commit()
        self.db.refresh(card)
        return card

    def _context(self, upload_id: Optional[str]) -> str:
        if not upload_id:
            return ""
        self._check_upload(upload_id)
        chunks = self.db.execute(
            select(UploadChunk.text).where(UploadChunk.upload_id == upload_id).order_by(UploadChunk.page)
        ).scalars()
        return "\n".join(chunks)[:MAX_CONTEXT_CHARS]

    def generate(self, req: GenerateFlashcardsRequest) -> List[Flashcard]:
        topic = req.topic.strip()
        context = self._context(req.upload_id)

        prompt = f"Topic: {topic}\nNumber of cards: {req.count}\n"
        if context:
            prompt += f"Study material:\n{context}"
        data = self.llm.complete_json(SYSTEM_PROMPT, prompt)

        raw: List[Dict[str, str]] = []
        items = data.get("cards") if data is not None else None
        if isinstance(items, list):
            raw = [c for c in (_coerce_card(i) for i in items) if c is not None][:req.count]
        elif data is not None:
            logger.warning("Model answer has no card list, using local generation.")
        if not raw:
            raw = generate_local(topic, context, req.count)

        cards = [
            Flashcard(
                topic=topic,
                upload_id=req.upload_id,
                question=c["question"],
                answer=c["answer"],
                difficulty=c["difficulty"],
            )
            for c in raw
        ]
        self.db.add_all(cards)
        self.db.commit()
        for c in cards:
            self.db.refresh(c)
        logger.info("Generated %d flashcards for topic '%s'", len(cards), topic)
        return cards

    def review(self, card_id: int, quality: int) -> Flashcard:
        card = apply_review(self.get(card_id), quality)
        self.db.commit()
        self.db.refresh(card)
        return card

    def delete(self, card_id: int) -> None:
        self.db.delete(self.get(card_id))
        self.db.commit()
