"""Scoring engine value objects."""
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional, Sequence, Tuple

HASHTAG_PATTERN = re.compile(r"#(\w+)")
MENTION_PATTERN = re.compile(r"@(\w+)")

TrendDirection = Literal["rising", "stable", "declining"]
SentimentLabel = Literal["positive", "negative", "neutral"]


def step_confidence(
    sample_size: int,
    tiers: Sequence[Tuple[int, float]],
    ceiling: float,
) -> float:
    """Map a sample size to a coarse confidence tier.

    Args:
        sample_size: Number of observations backing a prediction
        tiers: (exclusive upper bound, confidence) pairs in ascending order
        ceiling: Confidence when the sample size clears every bound
    """
    for upper, confidence in tiers:
        if sample_size < upper:
            return confidence
    return ceiling


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class PostFeatures:
    """Shape of a post about to be published."""
    has_image: bool = False
    has_video: bool = False
    hashtag_count: int = 0
    mention_count: int = 0
    content_length: int = 0
    hour_of_day: int = 12
    day_of_week: int = 0  # Monday=0 ... Sunday=6

    @classmethod
    def from_content(
        cls,
        content: str,
        posted_at: datetime,
        has_image: bool = False,
        has_video: bool = False,
    ) -> "PostFeatures":
        return cls(
            has_image=has_image,
            has_video=has_video,
            hashtag_count=len(HASHTAG_PATTERN.findall(content)),
            mention_count=len(MENTION_PATTERN.findall(content)),
            content_length=len(content),
            hour_of_day=posted_at.hour,
            day_of_week=posted_at.weekday(),
        )


@dataclass
class PostStats:
    """Observed engagement of a past post."""
    likes: int = 0
    comments: int = 0
    shares: int = 0
    reach: int = 0


@dataclass
class EngagementPrediction:
    predicted_likes: int
    predicted_comments: int
    predicted_shares: int
    predicted_reach: int
    confidence: float
    feature_multiplier: float
    timing_multiplier: float
    recommendations: List[str] = field(default_factory=list)

    @property
    def combined_multiplier(self) -> float:
        return self.feature_multiplier * self.timing_multiplier


@dataclass
class EventFeatures:
    """Event being announced."""
    event_type: str
    start_time: datetime
    price: float = 0.0
    capacity: int = 0


@dataclass
class AttendanceFactor:
    """A named adjustment and its signed percentage impact."""
    name: str
    impact: int


@dataclass
class AttendancePrediction:
    predicted_attendance: int
    min_attendance: int
    max_attendance: int
    confidence: float
    baseline: float
    factors: List[AttendanceFactor] = field(default_factory=list)


@dataclass
class SentimentResult:
    score: float
    sentiment: SentimentLabel
    confidence: float
    token_count: int
    positive_words: List[str] = field(default_factory=list)
    negative_words: List[str] = field(default_factory=list)
    emotions: Dict[str, float] = field(default_factory=dict)


@dataclass
class Post:
    """A published post as seen by the trending detector."""
    id: int
    author_id: str
    content: str
    created_at: datetime
    likes: int = 0
    comments: int = 0
    shares: int = 0
    reach: int = 0

    @property
    def engagement(self) -> int:
        return self.likes + self.comments + self.shares

    def stats(self) -> PostStats:
        return PostStats(
            likes=self.likes, comments=self.comments, shares=self.shares, reach=self.reach
        )


@dataclass
class TopicMetrics:
    topic: str
    mentions: int
    velocity: float
    engagement: int
    participants: int
    trend: TrendDirection
    score: float


@dataclass
class TopicSnapshot:
    """One recorded observation in a topic's history."""
    velocity: float
    mentions: int
    recorded_at: datetime
    previous_velocity: Optional[float] = None
