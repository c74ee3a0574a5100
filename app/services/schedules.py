import logging
from typing import Dict, List

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session
from starlette.status import HTTP_404_NOT_FOUND, HTTP_409_CONFLICT

from app.core.config import Settings
from app.core.errors import ScheduleError
from app.db.models import Schedule, ScheduleEntry, Topic, Upload
from app.models.schedule import (
    GenerateScheduleRequest,
    ScheduleDay,
    ScheduleItem,
    ScheduleOut,
    ScheduleSummary,
)
from app.models.uploads import UploadStatus
from app.services.allocator import AllocationConfig, allocate
from app.services.reasoning import annotate
from app.services.weightage import TopicSignal, WeightageConfig, normalize

logger = logging.getLogger(__name__)


def allocation_config(req: GenerateScheduleRequest, settings: Settings) -> AllocationConfig:
    """Paramètres de la requête, à défaut ceux de la configuration."""
    return AllocationConfig(
        days=req.days or settings.SCHEDULE_DAYS,
        minutes_per_day=req.minutes_per_day or settings.SCHEDULE_MINUTES_PER_DAY,
        min_topic_minutes=req.min_topic_minutes or settings.SCHEDULE_MIN_TOPIC_MINUTES,
        slot_minutes=req.slot_minutes or settings.SCHEDULE_SLOT_MINUTES,
        max_topic_share=req.max_topic_share or settings.SCHEDULE_MAX_TOPIC_SHARE,
    )


class ScheduleService:
    """
    Générateur de planning crash-course :
    pondération -> allocation du temps -> justification de chaque choix.
    """

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings

    def _signals(self, req: GenerateScheduleRequest) -> List[TopicSignal]:
        if req.topics:
            if req.upload_id and self.db.get(Upload, req.upload_id) is None:
                raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Upload not found")
            return [TopicSignal(name=t.name, frequency=t.frequency, marks=t.marks, recency=t.recency) for t in req.topics]

        upload = self.db.get(Upload, req.upload_id)
        if upload is None:
            raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Upload not found")
        if upload.status != UploadStatus.completed.value:
            raise HTTPException(
                status_code=HTTP_409_CONFLICT,
                detail=f"Upload is {upload.status}, topics are not available yet",
            )
        topics = self.db.execute(select(Topic).where(Topic.upload_id == upload.id)).scalars().all()
        if not topics:
            raise ScheduleError("No topics were extracted from this upload")
        return [TopicSignal(name=t.name, frequency=t.frequency, marks=t.marks, recency=t.recency) for t in topics]

    def generate(self, req: GenerateScheduleRequest) -> Schedule:
        config = allocation_config(req, self.settings)
        weights = WeightageConfig(**req.weights.model_dump()) if req.weights else WeightageConfig()

        try:
            weighted = normalize(self._signals(req), weights)
        except ValueError as e:
            raise ScheduleError(str(e)) from e

        result = allocate(weighted, config)
        notes = annotate(result)

        schedule = Schedule(
            title=req.title,
            upload_id=req.upload_id,
            days=config.days,
            minutes_per_day=config.minutes_per_day,
            total_minutes=result.total_minutes,
            allocated_minutes=result.allocated_minutes,
        )
        for block, reasoning in notes["blocks"]:
            schedule.entries.append(
                ScheduleEntry(
                    day=block.day,
                    position=block.position,
                    topic=block.topic.name,
                    minutes=block.minutes,
                    priority=block.topic.priority,
                    reasoning=reasoning,
                    part=block.part,
                    parts=block.parts,
                )
            )
        for position, (allocation, reasoning) in enumerate(notes["skipped"], start=1):
            schedule.entries.append(
                ScheduleEntry(
                    day=0,
                    position=position,
                    topic=allocation.topic.name,
                    minutes=0,
                    priority=allocation.topic.priority,
                    reasoning=reasoning,
                    skipped=True,
                )
            )

        self.db.add(schedule)
        self.db.commit()
        self.db.refresh(schedule)
        logger.info(
            "Schedule %s: %d topics, %d/%d min allocated, %d skipped",
            schedule.id, len(weighted), result.allocated_minutes, result.total_minutes, len(notes["skipped"]),
        )
        return schedule

    def get(self, schedule_id: str) -> Schedule:
        schedule = self.db.get(Schedule, schedule_id)
        if schedule is None:
            raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Schedule not found")
        return schedule

    def list(self) -> List[ScheduleSummary]:
        rows = self.db.execute(select(Schedule).order_by(Schedule.created_at.desc())).scalars()
        return [
            ScheduleSummary(
                id=s.id, title=s.title, days=s.days,
                allocated_minutes=s.allocated_minutes, created_at=s.created_at,
            )
            for s in rows
        ]

    def delete(self, schedule_id: str) -> None:
        self.db.delete(self.get(schedule_id))
        self.db.commit()


def to_out(schedule: Schedule) -> ScheduleOut:
    days: Dict[int, List[ScheduleItem]] = {d: [] for d in range(1, schedule.days + 1)}
    skipped: List[ScheduleItem] = []

    for e in sorted(schedule.entries, key=lambda e: (e.day, e.position)):
        item = ScheduleItem(
            topic=e.topic, minutes=e.minutes, priority=e.priority,
            reasoning=e.reasoning, part=e.part, parts=e.parts,
        )
        if e.skipped:
            skipped.append(item)
        else:
            days.setdefault(e.day, []).append(item)

    return ScheduleOut(
        id=schedule.id,
        title=schedule.title,
        upload_id=schedule.upload_id,
        days=schedule.days,
        minutes_per_day=schedule.minutes_per_day,
        total_minutes=schedule.total_minutes,
        allocated_minutes=schedule.allocated_minutes,
        schedule=[
            ScheduleDay(day=d, total_minutes=sum(i.minutes for i in items), items=items)
            for d, items in sorted(days.items())
        ],
        skipped=skipped,
        created_at=schedule.created_at,
    )
