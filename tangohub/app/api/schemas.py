"""Request and response models for the HTTP API."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class PostCreate(BaseModel):
    author_id: str = Field(..., min_length=1)
    content: str
    created_at: Optional[datetime] = None
    likes: int = Field(0, ge=0)
    comments: int = Field(0, ge=0)
    shares: int = Field(0, ge=0)
    reach: int = Field(0, ge=0)


class PostOut(BaseModel):
    id: int
    author_id: str
    content: str
    created_at: datetime
    likes: int
    comments: int
    shares: int
    reach: int
    hashtags: List[str] = Field(default_factory=list)


class TopicOut(BaseModel):
    topic: str
    mentions: int
    velocity: float
    engagement: int
    participants: int
    trend: str
    score: float


class TrendingResponse(BaseModel):
    window_hours: float
    topics: List[TopicOut]


class EngagementRequest(BaseModel):
    author_id: Optional[str] = None
    content: str = ""
    has_image: bool = False
    has_video: bool = False
    scheduled_at: Optional[datetime] = None


class EngagementResponse(BaseModel):
    predicted_likes: int
    predicted_comments: int
    predicted_shares: int
    predicted_reach: int
    confidence: float
    feature_multiplier: float
    timing_multiplier: float
    recommendations: List[str]


class AttendanceRequest(BaseModel):
    event_type: str
    start_time: datetime
    price: float = Field(0.0, ge=0)
    capacity: int = Field(0, ge=0)
    organizer_history: List[int] = Field(default_factory=list)
    venue_history: List[int] = Field(default_factory=list)


class AttendanceFactorOut(BaseModel):
    name: str
    impact: int


class AttendanceResponse(BaseModel):
    predicted_attendance: int
    min_attendance: int
    max_attendance: int
    confidence: float
    factors: List[AttendanceFactorOut]


class SentimentRequest(BaseModel):
    text: str = ""


class SentimentBatchRequest(BaseModel):
    texts: List[str] = Field(default_factory=list)


class SentimentResponse(BaseModel):
    score: float
    sentiment: str
    confidence: float
    token_count: int
    positive_words: List[str]
    negative_words: List[str]
    emotions: Dict[str, float]


class SentimentBatchResponse(BaseModel):
    results: List[SentimentResponse]
    average_score: float


class InvalidateRequest(BaseModel):
    pattern: str = Field(..., min_length=1)
    regex: bool = False
