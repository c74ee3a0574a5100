from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.deps import get_settings_dep
from app.core.security import get_api_key
from app.db.database import get_db
from app.models.schedule import GenerateScheduleRequest, ScheduleListResponse, ScheduleOut
from app.models.uploads import DeleteResponse
from app.services.schedules import ScheduleService, to_out

router = APIRouter(tags=["schedules"])


def get_schedule_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
) -> ScheduleService:
    return ScheduleService(db, settings)


@router.post("/generate-schedule", response_model=ScheduleOut, status_code=201)
def generate_schedule(body: GenerateScheduleRequest, service: ScheduleService = Depends(get_schedule_service)):
    return to_out(service.generate(body))


@router.get("/schedules", response_model=ScheduleListResponse)
def list_schedules(service: ScheduleService = Depends(get_schedule_service)):
    return ScheduleListResponse(items=service.list())


@router.get("/schedules/{schedule_id}", response_model=ScheduleOut)
def get_schedule(schedule_id: str, service: ScheduleService = Depends(get_schedule_service)):
    return to_out(service.get(schedule_id))


@router.delete("/schedules/{schedule_id}", response_model=DeleteResponse)
def delete_schedule(
    schedule_id: str,
    service: ScheduleService = Depends(get_schedule_service),
    _: str = Depends(get_api_key),
):
    service.delete(schedule_id)
    return DeleteResponse(ok=True, id=schedule_id)
