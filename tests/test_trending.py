"""Tests for trending hashtag detection."""

from datetime import datetime, timedelta, timezone

import pytest

from tangohub.app.services.scoring import Post, TrendingTopicDetector, extract_hashtags
from tangohub.app.services.scoring.trending import classify_trend, topic_score

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_post(post_id, author, content, hours_ago=1.0, likes=0, comments=0, shares=0):
    return Post(
        id=post_id,
        author_id=author,
        content=content,
        created_at=NOW - timedelta(hours=hours_ago),
        likes=likes,
        comments=comments,
        shares=shares,
    )


def _by_topic(metrics):
    return {m.topic: m for m in metrics}


@pytest.fixture
def detector():
    return TrendingTopicDetector()


class TestHelpers:

    def test_extract_hashtags(self):
        assert extract_hashtags("Loved the #milonga last night! #tango #BuenosAires") == [
            "#milonga",
            "#tango",
            "#buenosaires",
        ]

    def test_extract_hashtags_keeps_duplicates(self):
        assert extract_hashtags("#Tango and more #tango") == ["#tango", "#tango"]

    def test_extract_hashtags_none(self):
        assert extract_hashtags("no tags here") == []

    @pytest.mark.parametrize(
        "velocity,previous,expected",
        [
            (1.0, None, "rising"),
            (1.6, 1.0, "rising"),
            (1.5, 1.0, "stable"),
            (0.75, 1.0, "stable"),
            (0.6, 1.0, "declining"),
            (1.0, 0.0, "rising"),
            (0.0, 0.0, "stable"),
        ],
    )
    def test_classify_trend(self, velocity, previous, expected):
        assert classify_trend(velocity, previous) == expected

    def test_topic_score_caps_components(self):
        assert topic_score(100, 10_000, 1_000, "stable") == pytest.approx(0.9)
        assert topic_score(100, 10_000, 1_000, "rising") == pytest.approx(1.0)
        assert topic_score(100, 10_000, 1_000, "declining") == pytest.approx(0.45)


class TestScore:
    """Tests for scoring without touching history."""

    def test_metrics(self, detector):
        posts = [
            make_post(1, "ana", "Great #milonga tonight", likes=10, comments=2),
            make_post(2, "ana", "Another #milonga", likes=3),
            make_post(3, "luis", "#milonga and #tango", likes=5, shares=1),
        ]
        metrics = _by_topic(detector.score(posts, window_hours=24, now=NOW))

        milonga = metrics["#milonga"]
        assert milonga.mentions == 3
        assert milonga.velocity == pytest.approx(3 / 24)
        assert milonga.engagement == 21
        assert milonga.participants == 2
        assert milonga.trend == "rising"
        assert milonga.score == pytest.approx(
            0.4 * (0.125 / 10) + 0.3 * (21 / 100) + 0.2 * (2 / 50) + 0.1
        )
        assert metrics["#tango"].mentions == 1

    def test_sorted_by_score(self, detector):
        posts = [make_post(i, f"user{i}", "#big") for i in range(5)] + [make_post(9, "x", "#small")]
        metrics = detector.score(posts, now=NOW)
        assert [m.topic for m in metrics] == ["#big", "#small"]

    def test_window_filter(self, detector):
        posts = [
            make_post(1, "ana", "#inside", hours_ago=23),
            make_post(2, "ana", "#outside", hours_ago=25),
            make_post(3, "ana", "#future", hours_ago=-1),
        ]
        topics = [m.topic for m in detector.score(posts, window_hours=24, now=NOW)]
        assert topics == ["#inside"]

    def test_repeated_tag_counts_once_per_post(self, detector):
        posts = [make_post(1, "ana", "#tango #Tango #TANGO", likes=4)]
        metrics = detector.score(posts, now=NOW)
        assert metrics[0].mentions == 1
        assert metrics[0].engagement == 4

    def test_no_posts(self, detector):
        assert detector.score([], now=NOW) == []

    def test_rejects_non_positive_window(self, detector):
        with pytest.raises(ValueError):
            detector.score([], window_hours=0, now=NOW)

    def test_score_does_not_record(self, detector):
        posts = [make_post(1, "ana", "#tango")]
        first = detector.score(posts, now=NOW)
        second = detector.score(posts, now=NOW)

        assert first[0].trend == second[0].trend == "rising"
        assert detector.get_history("#tango") == []


class TestDetect:
    """Tests for detection with velocity history."""

    def test_first_sighting_is_rising(self, detector):
        result = detector.detect([make_post(1, "ana", "#vals")], now=NOW)
        assert result[0].trend == "rising"

    def test_same_velocity_is_stable(self, detector):
        posts = [make_post(1, "ana", "#vals"), make_post(2, "luis", "#vals")]
        detector.detect(posts, now=NOW)
        second = detector.detect(posts, now=NOW)
        assert second[0].trend == "stable"

    def test_declining(self, detector):
        posts = [make_post(i, "ana", "#cortina") for i in range(4)]
        detector.detect(posts, now=NOW)

        result = detector.detect(posts[:1], now=NOW)
        assert result[0].trend == "declining"
        expected = 0.5 * (0.4 * (1 / 24 / 10) + 0.3 * 0 + 0.2 * (1 / 50))
        assert result[0].score == pytest.approx(expected)

    def test_rising_again(self, detector):
        detector.detect([make_post(1, "ana", "#tanda")], now=NOW)
        posts = [make_post(i, "ana", "#tanda") for i in range(3)]
        assert detector.detect(posts, now=NOW)[0].trend == "rising"

    def test_returns_top_ten(self, detector):
        posts = []
        for n in range(12):
            posts.extend(make_post(n * 100 + i, f"u{i}", f"#tag{n}") for i in range(n + 1))

        result = detector.detect(posts, now=NOW)
        assert len(result) == 10
        assert result[0].topic == "#tag11"
        assert [m.score for m in result] == sorted((m.score for m in result), reverse=True)
        # Topics outside the top ten still get history
        assert len(detector.get_history("#tag0")) == 1

    def test_history_is_bounded(self, detector):
        posts = [make_post(1, "ana", "#milonga")]
        for _ in range(12):
            detector.detect(posts, now=NOW)

        history = detector.get_history("#milonga")
        assert len(history) == 10
        assert history[-1].previous_velocity == pytest.approx(1 / 24)
        assert detector.previous_velocity("#milonga") == pytest.approx(1 / 24)

    def test_idle_topics_are_forgotten(self, detector):
        for i in range(50):
            now = NOW + timedelta(hours=48 * i)
            post = Post(id=i, author_id="ana", content=f"#tag{i}", created_at=now - timedelta(hours=1))
            detector.detect([post], now=now)

        # seven days of retention covers the current tag and the three before it
        assert sorted(detector.tracked_topics()) == ["#tag46", "#tag47", "#tag48", "#tag49"]
        assert detector.get_history("#tag0") == []

    def test_retention_is_configurable(self):
        detector = TrendingTopicDetector(retention=timedelta(hours=1))
        detector.detect([make_post(1, "ana", "#milonga")], now=NOW)
        detector.detect([], now=NOW + timedelta(hours=2))

        assert detector.tracked_topics() == []
        assert detector.previous_velocity("#milonga") is None

    def test_clear_history(self, detector):
        posts = [make_post(1, "ana", "#milonga")]
        detector.detect(posts, now=NOW)
        detector.clear_history()

        assert detector.previous_velocity("#milonga") is None
        assert detector.detect(posts, now=NOW)[0].trend == "rising"
