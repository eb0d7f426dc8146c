"""Engagement prediction for posts before they are published."""

import math
from typing import List, Sequence

from tangohub.app.core.logging import get_logger
from tangohub.app.services.scoring.models import (
    EngagementPrediction,
    PostFeatures,
    PostStats,
    step_confidence,
)

logger = get_logger(__name__)

HISTORY_SAMPLE_SIZE = 20

DEFAULT_BASELINE = PostStats(likes=10, comments=2, shares=1, reach=50)

PEAK_HOURS = (range(12, 15), range(19, 22))
DEAD_HOURS = range(2, 7)
WEEKEND_DAYS = (5, 6)

CONFIDENCE_TIERS = ((1, 0.3), (10, 0.5), (50, 0.7))
CONFIDENCE_CEILING = 0.9


def _round(value: float) -> int:
    """Round half up."""
    return int(math.floor(value + 0.5))


def _mean(values: Sequence[int]) -> float:
    return sum(values) / len(values)


class EngagementPredictor:
    """Predicts likes, comments, shares and reach for a draft post.

    The baseline is the author's recent average, scaled by a content
    feature boost and a posting-time boost. Both boosts are plain
    products, so their order does not matter.
    """

    def baseline(self, history: Sequence[PostStats]) -> PostStats:
        """Average engagement of the most recent posts (newest first)."""
        recent = list(history[:HISTORY_SAMPLE_SIZE])
        if not recent:
            return DEFAULT_BASELINE
        return PostStats(
            likes=_mean([p.likes for p in recent]),
            comments=_mean([p.comments for p in recent]),
            shares=_mean([p.shares for p in recent]),
            reach=_mean([p.reach for p in recent]),
        )

    def feature_boost(self, features: PostFeatures) -> float:
        boost = 1.0
        if features.has_image:
            boost *= 1.5
        if features.has_video:
            boost *= 2.0
        if 3 <= features.hashtag_count <= 5:
            boost *= 1.3
        elif features.hashtag_count > 5:
            boost *= 0.9
        boost *= 1 + 0.1 * features.mention_count
        if 100 <= features.content_length <= 300:
            boost *= 1.2
        elif features.content_length > 500:
            boost *= 0.8
        return boost

    def timing_boost(self, features: PostFeatures) -> float:
        boost = 1.0
        if any(features.hour_of_day in hours for hours in PEAK_HOURS):
            boost *= 1.4
        elif features.hour_of_day in DEAD_HOURS:
            boost *= 0.5
        if features.day_of_week in WEEKEND_DAYS:
            boost *= 1.2
        return boost

    def recommendations(
        self,
        features: PostFeatures,
        feature_boost: float,
        timing_boost: float,
    ) -> List[str]:
        tips: List[str] = []

        if not features.has_image and not features.has_video:
            tips.append("Add a photo or video - visual posts get 50-100% more engagement")
        if features.hashtag_count < 3:
            tips.append("Add 3-5 relevant hashtags such as #tango or #milonga to reach more dancers")
        elif features.hashtag_count > 5:
            tips.append("Use at most 5 hashtags; more tends to look like spam")
        if features.content_length < 100:
            tips.append("Add a little more detail - posts of 100-300 characters perform best")
        elif features.content_length > 500:
            tips.append("Consider shortening the post; readers drop off past 500 characters")
        if features.hour_of_day in DEAD_HOURS:
            tips.append("Few people are online between 2am and 6am; schedule for 12-2pm or 7-9pm")
        elif not any(features.hour_of_day in hours for hours in PEAK_HOURS):
            tips.append("Peak activity is 12-2pm and 7-9pm; consider scheduling for then")

        combined = feature_boost * timing_boost
        if combined < 1.0:
            tips.append("This post may underperform compared to your recent posts")
        elif combined > 1.5:
            tips.append("This post is optimized for high engagement")
        return tips

    def predict(
        self,
        features: PostFeatures,
        history: Sequence[PostStats] = (),
    ) -> EngagementPrediction:
        """Predict engagement for a draft post.

        Args:
            features: Draft post features
            history: Author's past posts, newest first. Only the most recent
                20 feed the baseline; the full length drives confidence.
        """
        base = self.baseline(history)
        features_x = self.feature_boost(features)
        timing_x = self.timing_boost(features)
        total = features_x * timing_x

        prediction = EngagementPrediction(
            predicted_likes=_round(base.likes * total),
            predicted_comments=_round(base.comments * total),
            predicted_shares=_round(base.shares * total),
            predicted_reach=_round(base.reach * total),
            confidence=step_confidence(len(history), CONFIDENCE_TIERS, CONFIDENCE_CEILING),
            feature_multiplier=features_x,
            timing_multiplier=timing_x,
            recommendations=self.recommendations(features, features_x, timing_x),
        )
        logger.debug(
            f"Engagement prediction: x{total:.2f} over {len(history)} posts "
            f"(confidence {prediction.confidence})"
        )
        return prediction
