import logging
from collections import Counter
from typing import List, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session
from starlette.status import HTTP_404_NOT_FOUND

from app.core.errors import BedrockServiceError
from app.db.models import Upload, UploadChunk
from app.models.qa import AskQuestionRequest, AskQuestionResponse, Source
from app.models.uploads import UploadStatus
from app.services.knowledge_base import KnowledgeBase
from app.services.llm import LLMService
from app.utils.text_utils import split_sentences, tokenize

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are Exam-Sarthi, a study assistant for students preparing for exams. "
    "Answer concisely and pedagogically. When excerpts from the student's material are "
    "provided, base the answer on them and say so when they do not contain the answer."
)

NOT_FOUND_ANSWER = (
    "I could not find this in the uploaded material. "
    "Try rephrasing the question or upload the relevant chapter."
)


def rank_chunks(question: str, chunks: List[UploadChunk], top_k: int) -> List[Tuple[int, UploadChunk]]:
    """
    Classement par recouvrement de termes : nb de termes distincts de la question
    présents dans la page, puis nb total d'occurrences.
    """
    terms = set(tokenize(question))
    if not terms:
        return []

    scored = []
    for c in chunks:
        counts = Counter(tokenize(c.text))
        distinct = sum(1 for t in terms if counts[t])
        if distinct:
            scored.append(((distinct, sum(counts[t] for t in terms)), c))
    scored.sort(key=lambda s: (-s[0][0], -s[0][1], s[1].page))
    return [(score[0], c) for score, c in scored[:top_k]]


def _best_sentences(question: str, text: str, limit: int = 3) -> List[str]:
    terms = set(tokenize(question))
    scored = []
    for i, s in enumerate(split_sentences(text)):
        hits = len(terms.intersection(tokenize(s)))
        if hits:
            scored.append((-hits, i, s))
    return [s for _, _, s in sorted(scored)[:limit]]


class QAService:
    def __init__(self, db: Session, llm: LLMService, kb: KnowledgeBase):
        self.db = db
        self.llm = llm
        self.kb = kb

    def _chunks(self, upload_id: Optional[str]) -> List[UploadChunk]:
        stmt = (
            select(UploadChunk)
            .join(Upload, Upload.id == UploadChunk.upload_id)
            .where(Upload.status == UploadStatus.completed.value)
        )
        if upload_id:
            if self.db.get(Upload, upload_id) is None:
                raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Upload not found")
            stmt = stmt.where(UploadChunk.upload_id == upload_id)
        return list(self.db.execute(stmt).scalars())

    def ask(self, req: AskQuestionRequest) -> AskQuestionResponse:
        if self.kb.enabled:
            try:
                res = self.kb.ask(req.question)
                if res["answer"]:
                    return AskQuestionResponse(
                        answer=res["answer"],
                        sources=[Source(uri=s["uri"], excerpt=s["excerpt"]) for s in res["sources"]],
                        mode="knowledge_base",
                    )
            except BedrockServiceError as e:
                if not self.llm.fallback_local:
                    raise
                logger.warning("Knowledge base unavailable (%s), using local excerpts.", e.detail)

        ranked = rank_chunks(req.question, self._chunks(req.upload_id), req.top_k)
        sources = [
            Source(upload_id=c.upload_id, page=c.page, excerpt=c.text[:300])
            for _, c in ranked
        ]

        if ranked:
            context = "\n\n".join(f"[page {c.page}]\n{c.text[:4000]}" for _, c in ranked)
            prompt = f"Excerpts from the student's material:\n{context}\n\nQuestion: {req.question}"
        else:
            prompt = f"Question: {req.question}"

        answer = self.llm.complete(SYSTEM_PROMPT, prompt, max_tokens=req.maxTokens)
        if answer:
            return AskQuestionResponse(answer=answer, sources=sources, mode="context" if ranked else "model")

        # mode local : phrases les plus proches de la question
        if ranked:
            best = _best_sentences(req.question, ranked[0][1].text)
            if best:
                return AskQuestionResponse(
                    answer="From your material: " + " ".join(best),
                    sources=sources,
                    mode="local",
                )
        return AskQuestionResponse(answer=NOT_FOUND_ANSWER, sources=sources, mode="local")
