"""Scoring engine package.

Four independent heuristic scorers:
- engagement.py: Engagement prediction for draft posts
- attendance.py: Event attendance prediction
- sentiment.py: Lexicon sentiment and emotion analysis
- trending.py: Trending hashtag detection with velocity history
"""

from tangohub.app.services.scoring.attendance import AttendancePredictor
from tangohub.app.services.scoring.engagement import EngagementPredictor
from tangohub.app.services.scoring.models import (
    AttendanceFactor,
    AttendancePrediction,
    EngagementPrediction,
    EventFeatures,
    Post,
    PostFeatures,
    PostStats,
    SentimentResult,
    TopicMetrics,
    TopicSnapshot,
)
from tangohub.app.services.scoring.sentiment import SentimentAnalyzer, tokenize
from tangohub.app.services.scoring.trending import TrendingTopicDetector, extract_hashtags

__all__ = [
    "AttendanceFactor",
    "AttendancePrediction",
    "AttendancePredictor",
    "EngagementPrediction",
    "EngagementPredictor",
    "EventFeatures",
    "Post",
    "PostFeatures",
    "PostStats",
    "SentimentAnalyzer",
    "SentimentResult",
    "TopicMetrics",
    "TopicSnapshot",
    "TrendingTopicDetector",
    "extract_hashtags",
    "tokenize",
]
