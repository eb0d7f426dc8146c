"""In-memory post feed used as the scorers' post history source.

Stands in for the platform's database-backed feed: process-local, not
durable, cleared on restart.
"""

import itertools
import threading
from datetime import datetime, timezone
from typing import List, Optional

from tangohub.app.services.scoring.models import Post, PostStats, as_utc


class PostStore:
    """Thread-safe append-only list of posts."""

    def __init__(self) -> None:
        self._posts: List[Post] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def add_post(
        self,
        author_id: str,
        content: str,
        created_at: Optional[datetime] = None,
        likes: int = 0,
        comments: int = 0,
        shares: int = 0,
        reach: int = 0,
    ) -> Post:
        with self._lock:
            post = Post(
                id=next(self._ids),
                author_id=author_id,
                content=content,
                created_at=as_utc(created_at or datetime.now(timezone.utc)),
                likes=likes,
                comments=comments,
                shares=shares,
                reach=reach,
            )
            self._posts.append(post)
            return post

    def list_posts(self, author_id: Optional[str] = None) -> List[Post]:
        """Posts newest first, optionally for one author."""
        with self._lock:
            posts = [p for p in self._posts if author_id is None or p.author_id == author_id]
        return sorted(posts, key=lambda p: p.created_at, reverse=True)

    def history_for(self, author_id: str) -> List[PostStats]:
        return [p.stats() for p in self.list_posts(author_id)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._posts)
