from fastapi import APIRouter, HTTPException
from starlette.status import HTTP_422_UNPROCESSABLE_ENTITY

from app.models.topics import TopicListResponse, TopicOut, WeightageRequest
from app.services.weightage import TopicSignal, WeightageConfig, normalize

router = APIRouter(prefix="/topics", tags=["topics"])


@router.post("/weightage", response_model=TopicListResponse)
def topic_weightage(body: WeightageRequest):
    """
    Aperçu des priorités normalisées (sans générer de planning).
    """
    weights = WeightageConfig(**body.weights.model_dump()) if body.weights else WeightageConfig()
    signals = [TopicSignal(name=t.name, frequency=t.frequency, marks=t.marks, recency=t.recency) for t in body.topics]
    try:
        weighted = normalize(signals, weights)
    except ValueError as e:
        raise HTTPException(status_code=HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    return TopicListResponse(
        topics=[
            TopicOut(name=t.name, frequency=t.frequency, marks=t.marks, recency=t.recency, priority=t.priority)
            for t in weighted
        ]
    )
