"""Lexicon-based sentiment and emotion analysis for post and comment text."""

import re
from typing import Dict, FrozenSet, List, Sequence

from tangohub.app.services.scoring.models import SentimentResult, step_confidence

_PUNCTUATION = re.compile(r"[^\w\s]")

POSITIVE_WORDS: FrozenSet[str] = frozenset({
    "good", "great", "excellent", "amazing", "awesome", "wonderful", "fantastic",
    "beautiful", "love", "loved", "lovely", "like", "liked", "enjoy", "enjoyed",
    "happy", "glad", "fun", "best", "perfect", "brilliant", "nice", "incredible",
    "magical", "elegant", "graceful", "inspiring", "thanks", "thank", "grateful",
    "welcoming", "friendly", "recommend", "superb", "delightful", "exciting",
})

NEGATIVE_WORDS: FrozenSet[str] = frozenset({
    "bad", "terrible", "awful", "horrible", "hate", "hated", "dislike", "poor",
    "worst", "boring", "disappointing", "disappointed", "sad", "angry", "annoying",
    "rude", "crowded", "expensive", "late", "cancelled", "canceled", "ugly",
    "painful", "unfriendly", "problem", "broken", "wrong", "fail", "failed",
    "waste", "slippery", "noisy", "cold",
})

EMOTION_KEYWORDS: Dict[str, FrozenSet[str]] = {
    "joy": frozenset({
        "happy", "joy", "glad", "smile", "smiling", "delighted", "fun", "laugh",
        "cheerful", "love", "loved",
    }),
    "sadness": frozenset({
        "sad", "miss", "missed", "lonely", "cry", "crying", "tears", "unhappy",
        "heartbroken", "sorry",
    }),
    "anger": frozenset({
        "angry", "mad", "furious", "hate", "annoyed", "annoying", "rude",
        "frustrated", "outraged",
    }),
    "fear": frozenset({
        "afraid", "scared", "nervous", "anxious", "worried", "fear", "terrified",
        "panic",
    }),
    "excitement": frozenset({
        "excited", "exciting", "thrilled", "cant", "wait", "amazing", "wow",
        "incredible", "awesome",
    }),
}

POSITIVE_THRESHOLD = 0.2
NEGATIVE_THRESHOLD = -0.2

CONFIDENCE_TIERS = ((5, 0.3), (15, 0.6), (30, 0.8))
CONFIDENCE_CEILING = 0.9


def tokenize(text: str) -> List[str]:
    """Lower-case, strip punctuation and split on whitespace."""
    return _PUNCTUATION.sub("", text.lower()).split()


class SentimentAnalyzer:
    """Scores text against fixed positive/negative lexicons and emotion sets.

    Pure: the same text always yields the same result.
    """

    def analyze(self, text: str) -> SentimentResult:
        tokens = tokenize(text or "")

        positive = [t for t in tokens if t in POSITIVE_WORDS]
        negative = [t for t in tokens if t in NEGATIVE_WORDS]
        hits = len(positive) + len(negative)
        score = (len(positive) - len(negative)) / hits if hits else 0.0

        if score > POSITIVE_THRESHOLD:
            label = "positive"
        elif score < NEGATIVE_THRESHOLD:
            label = "negative"
        else:
            label = "neutral"

        counts = {
            emotion: sum(1 for t in tokens if t in keywords)
            for emotion, keywords in EMOTION_KEYWORDS.items()
        }
        peak = max(max(counts.values()), 1)
        emotions = {emotion: count / peak for emotion, count in counts.items()}

        return SentimentResult(
            score=score,
            sentiment=label,
            confidence=step_confidence(len(tokens), CONFIDENCE_TIERS, CONFIDENCE_CEILING),
            token_count=len(tokens),
            positive_words=positive,
            negative_words=negative,
            emotions=emotions,
        )

    def analyze_batch(self, texts: Sequence[str]) -> List[SentimentResult]:
        return [self.analyze(text) for text in texts]

    def average_sentiment(self, texts: Sequence[str]) -> float:
        """Mean score across texts; 0 for an empty batch."""
        if not texts:
            return 0.0
        return sum(r.score for r in self.analyze_batch(texts)) / len(texts)
