from typing import List, Optional
from pydantic import BaseModel, Field


class AskQuestionRequest(BaseModel):
    question: str = Field(..., min_length=3, max_length=2000)
    upload_id: Optional[str] = Field(
        default=None,
        description="Restreint la recherche à un document",
    )
    top_k: int = Field(default=4, ge=1, le=10)
    maxTokens: Optional[int] = Field(default=None, ge=16, le=4096)


class Source(BaseModel):
    upload_id: Optional[str] = None
    page: Optional[int] = None
    uri: Optional[str] = None
    excerpt: str = ""


class AskQuestionResponse(BaseModel):
    answer: str
    sources: List[Source] = Field(default_factory=list)
    mode: str = Field(..., description="knowledge_base | context | model | local")
