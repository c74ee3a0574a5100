from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator

from app.models.topics import TopicIn, WeightageConfigIn


class GenerateScheduleRequest(BaseModel):
    title: str = Field(default="Crash course", min_length=1, max_length=200)
    upload_id: Optional[str] = Field(
        default=None,
        description="Upload dont on réutilise les sujets extraits (si topics est vide)",
    )
    topics: List[TopicIn] = Field(default_factory=list)
    days: Optional[int] = Field(default=None, ge=1, le=30)
    minutes_per_day: Optional[int] = Field(default=None, ge=15, le=24 * 60)
    min_topic_minutes: Optional[int] = Field(default=None, ge=5, le=600)
    slot_minutes: Optional[int] = Field(default=None, ge=5, le=120)
    max_topic_share: Optional[float] = Field(default=None, gt=0, le=1, allow_inf_nan=False)
    weights: Optional[WeightageConfigIn] = None

    @model_validator(mode="after")
    def _needs_source(self):
        if not self.topics and not self.upload_id:
            raise ValueError("Provide either topics or upload_id")
        return self


class ScheduleItem(BaseModel):
    topic: str
    minutes: int
    priority: float
    reasoning: str
    part: int = 1
    parts: int = 1


class ScheduleDay(BaseModel):
    day: int
    total_minutes: int
    items: List[ScheduleItem]


class ScheduleOut(BaseModel):
    id: str
    title: str
    upload_id: Optional[str] = None
    days: int
    minutes_per_day: int
    total_minutes: int
    allocated_minutes: int
    schedule: List[ScheduleDay]
    skipped: List[ScheduleItem] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class ScheduleSummary(BaseModel):
    id: str
    title: str
    days: int
    allocated_minutes: int
    created_at: Optional[datetime] = None


class ScheduleListResponse(BaseModel):
    items: List[ScheduleSummary]
