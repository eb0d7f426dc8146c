"""Scoring endpoints: engagement, attendance and sentiment."""

from dataclasses import asdict
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from tangohub.app.api.schemas import (
    AttendanceRequest,
    AttendanceResponse,
    EngagementRequest,
    EngagementResponse,
    SentimentBatchRequest,
    SentimentBatchResponse,
    SentimentRequest,
    SentimentResponse,
)
from tangohub.app.dependencies import AppComponents, get_components
from tangohub.app.services.scoring import EventFeatures, PostFeatures

router = APIRouter(prefix="/api/v1", tags=["predictions"])


@router.post("/predictions/engagement", response_model=EngagementResponse)
async def predict_engagement(
    payload: EngagementRequest,
    components: AppComponents = Depends(get_components),
) -> EngagementResponse:
    features = PostFeatures.from_content(
        payload.content,
        posted_at=payload.scheduled_at or datetime.now(timezone.utc),
        has_image=payload.has_image,
        has_video=payload.has_video,
    )
    history = components.post_store.history_for(payload.author_id) if payload.author_id else []
    prediction = components.engagement.predict(features, history)
    return EngagementResponse(**asdict(prediction))


@router.post("/predictions/attendance", response_model=AttendanceResponse)
async def predict_attendance(
    payload: AttendanceRequest,
    components: AppComponents = Depends(get_components),
) -> AttendanceResponse:
    event = EventFeatures(
        event_type=payload.event_type,
        start_time=payload.start_time,
        price=payload.price,
        capacity=payload.capacity,
    )
    prediction = components.attendance.predict(
        event, payload.organizer_history, payload.venue_history
    )
    data = asdict(prediction)
    data.pop("baseline")
    return AttendanceResponse(**data)


@router.post("/sentiment", response_model=SentimentResponse)
async def analyze_sentiment(
    payload: SentimentRequest,
    components: AppComponents = Depends(get_components),
) -> SentimentResponse:
    return SentimentResponse(**asdict(components.sentiment.analyze(payload.text)))


@router.post("/sentiment/batch", response_model=SentimentBatchResponse)
async def analyze_sentiment_batch(
    payload: SentimentBatchRequest,
    components: AppComponents = Depends(get_components),
) -> SentimentBatchResponse:
    results = components.sentiment.analyze_batch(payload.texts)
    average = components.sentiment.average_sentiment(payload.texts)
    return SentimentBatchResponse(
        results=[SentimentResponse(**asdict(r)) for r in results],
        average_score=average,
    )
