from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_knowledge_base, get_llm_service
from app.db.database import get_db
from app.models.qa import AskQuestionRequest, AskQuestionResponse
from app.services.knowledge_base import KnowledgeBase
from app.services.llm import LLMService
from app.services.qa import QAService

router = APIRouter(tags=["qa"])


@router.post("/ask-question", response_model=AskQuestionResponse)
def ask_question(
    body: AskQuestionRequest,
    db: Session = Depends(get_db),
    llm: LLMService = Depends(get_llm_service),
    kb: KnowledgeBase = Depends(get_knowledge_base),
):
    return QAService(db, llm, kb).ask(body)
