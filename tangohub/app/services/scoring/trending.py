"""Trending hashtag detection over recent posts.

The detector keeps a short per-topic velocity history in memory, so the
trend direction of a topic depends on previous calls. Topics not seen for
``HISTORY_RETENTION`` are forgotten. ``score`` is pure against the current
history; ``record`` appends to it; ``detect`` does both, in that order.
"""

import threading
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Deque, Dict, Iterable, List, Optional, Sequence

from tangohub.app.core.logging import get_logger
from tangohub.app.services.scoring.models import (
    HASHTAG_PATTERN,
    Post,
    TopicMetrics,
    TopicSnapshot,
    TrendDirection,
    as_utc,
)

logger = get_logger(__name__)

HISTORY_LIMIT = 10
TOP_TOPICS = 10
DEFAULT_WINDOW_HOURS = 24.0
HISTORY_RETENTION = timedelta(days=7)

RISING_CHANGE = 0.5
DECLINING_CHANGE = -0.3

VELOCITY_WEIGHT, VELOCITY_CAP = 0.4, 10
ENGAGEMENT_WEIGHT, ENGAGEMENT_CAP = 0.3, 100
PARTICIPANT_WEIGHT, PARTICIPANT_CAP = 0.2, 50
RISING_BONUS = 0.1
DECLINING_FACTOR = 0.5


def extract_hashtags(text: str) -> List[str]:
    """Lower-cased hashtags in order of appearance, duplicates kept.

    Example:
        >>> extract_hashtags("Loved the #milonga last night! #tango #BuenosAires")
        ['#milonga', '#tango', '#buenosaires']
    """
    return [f"#{tag.lower()}" for tag in HASHTAG_PATTERN.findall(text)]


def classify_trend(velocity: float, previous: Optional[float]) -> TrendDirection:
    if previous is None:
        return "rising"
    if previous == 0:
        return "rising" if velocity > 0 else "stable"
    change = (velocity - previous) / previous
    if change > RISING_CHANGE:
        return "rising"
    if change < DECLINING_CHANGE:
        return "declining"
    return "stable"


def topic_score(
    velocity: float,
    engagement: int,
    participants: int,
    trend: TrendDirection,
) -> float:
    score = (
        VELOCITY_WEIGHT * min(velocity / VELOCITY_CAP, 1)
        + ENGAGEMENT_WEIGHT * min(engagement / ENGAGEMENT_CAP, 1)
        + PARTICIPANT_WEIGHT * min(participants / PARTICIPANT_CAP, 1)
    )
    if trend == "rising":
        score += RISING_BONUS
    elif trend == "declining":
        score *= DECLINING_FACTOR
    return score


class TrendingTopicDetector:
    """Finds trending hashtags and tracks their velocity over time."""

    def __init__(
        self,
        history_limit: int = HISTORY_LIMIT,
        retention: timedelta = HISTORY_RETENTION,
    ):
        self._history_limit = history_limit
        self._retention = retention
        self._history: Dict[str, Deque[TopicSnapshot]] = {}
        self._lock = threading.Lock()

    def previous_velocity(self, topic: str) -> Optional[float]:
        with self._lock:
            history = self._history.get(topic)
            if not history:
                return None
            return history[-1].velocity

    def score(
        self,
        posts: Iterable[Post],
        window_hours: float = DEFAULT_WINDOW_HOURS,
        now: Optional[datetime] = None,
    ) -> List[TopicMetrics]:
        """Score every hashtag seen in the window, best first.

        Does not touch the history.
        """
        if window_hours <= 0:
            raise ValueError("window_hours must be positive")

        now = as_utc(now or datetime.now(timezone.utc))
        cutoff = now - timedelta(hours=window_hours)

        grouped: Dict[str, List[Post]] = {}
        for post in posts:
            created = as_utc(post.created_at)
            if created < cutoff or created > now:
                continue
            for tag in dict.fromkeys(extract_hashtags(post.content)):
                grouped.setdefault(tag, []).append(post)

        with self._lock:
            previous = {
                topic: self._history[topic][-1].velocity
                for topic in grouped
                if self._history.get(topic)
            }

        results: List[TopicMetrics] = []
        for topic, topic_posts in grouped.items():
            mentions = len(topic_posts)
            velocity = mentions / window_hours
            engagement = sum(p.engagement for p in topic_posts)
            participants = len({p.author_id for p in topic_posts})
            trend = classify_trend(velocity, previous.get(topic))
            results.append(
                TopicMetrics(
                    topic=topic,
                    mentions=mentions,
                    velocity=velocity,
                    engagement=engagement,
                    participants=participants,
                    trend=trend,
                    score=topic_score(velocity, engagement, participants, trend),
                )
            )

        results.sort(key=lambda m: m.score, reverse=True)
        return results

    def record(self, metrics: Sequence[TopicMetrics], now: Optional[datetime] = None) -> None:
        """Append the observed velocities, then forget topics idle past the retention."""
        recorded_at = as_utc(now or datetime.now(timezone.utc))
        with self._lock:
            for m in metrics:
                history = self._history.setdefault(m.topic, deque(maxlen=self._history_limit))
                previous = history[-1].velocity if history else None
                history.append(
                    TopicSnapshot(
                        velocity=m.velocity,
                        mentions=m.mentions,
                        recorded_at=recorded_at,
                        previous_velocity=previous,
                    )
                )
            horizon = recorded_at - self._retention
            stale = [topic for topic, history in self._history.items() if history[-1].recorded_at < horizon]
            for topic in stale:
                del self._history[topic]
        if stale:
            logger.debug(f"Dropped {len(stale)} stale trending topics")

    def detect(
        self,
        posts: Iterable[Post],
        window_hours: float = DEFAULT_WINDOW_HOURS,
        now: Optional[datetime] = None,
        limit: int = TOP_TOPICS,
    ) -> List[TopicMetrics]:
        """Score, record, and return the top topics."""
        scored = self.score(posts, window_hours=window_hours, now=now)
        self.record(scored, now=now)
        logger.debug(f"Trending detection scored {len(scored)} topics over {window_hours}h")
        return scored[:limit]

    def get_history(self, topic: str) -> List[TopicSnapshot]:
        with self._lock:
            return list(self._history.get(topic, ()))

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()

    def tracked_topics(self) -> List[str]:
        with self._lock:
            return list(self._history)
