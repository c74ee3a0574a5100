from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class TopicIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    frequency: int = Field(default=0, ge=0, le=1_000_000, description="Nombre d'apparitions dans les PYQ")
    marks: float = Field(default=0, ge=0, allow_inf_nan=False, description="Barème associé")
    recency: Optional[float] = Field(default=None, ge=0, le=1, allow_inf_nan=False, description="1 = tombé récemment")

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        name = " ".join(v.split())
        if not name:
            raise ValueError("Topic name must not be empty")
        return name


class WeightageConfigIn(BaseModel):
    frequency_weight: float = Field(default=0.5, ge=0, allow_inf_nan=False)
    marks_weight: float = Field(default=0.35, ge=0, allow_inf_nan=False)
    recency_weight: float = Field(default=0.15, ge=0, allow_inf_nan=False)


class WeightageRequest(BaseModel):
    topics: List[TopicIn] = Field(..., min_length=1)
    weights: Optional[WeightageConfigIn] = None


class TopicOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    frequency: int
    marks: float
    recency: Optional[float] = None
    priority: float


class TopicListResponse(BaseModel):
    topics: List[TopicOut]
