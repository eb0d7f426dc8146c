"""Post feed and trending topic endpoints."""

from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from tangohub.app.api.schemas import PostCreate, PostOut, TopicOut, TrendingResponse
from tangohub.app.dependencies import AppComponents, get_components
from tangohub.app.services.scoring import Post, extract_hashtags

router = APIRouter(prefix="/api/v1", tags=["posts"])


def _post_out(post: Post) -> PostOut:
    return PostOut(**asdict(post), hashtags=extract_hashtags(post.content))


@router.post("/posts", response_model=PostOut, status_code=201)
async def create_post(
    payload: PostCreate,
    components: AppComponents = Depends(get_components),
) -> PostOut:
    post = components.post_store.add_post(**payload.model_dump())
    return _post_out(post)


@router.get("/posts", response_model=List[PostOut])
async def list_posts(
    author_id: Optional[str] = None,
    components: AppComponents = Depends(get_components),
) -> List[PostOut]:
    return [_post_out(p) for p in components.post_store.list_posts(author_id)]


@router.get("/trending", response_model=TrendingResponse)
async def trending_topics(
    window_hours: Optional[float] = Query(None, gt=0, le=24 * 30),
    components: AppComponents = Depends(get_components),
) -> TrendingResponse:
    window = window_hours or components.settings.trending_window_hours
    topics = components.trending.detect(components.post_store.list_posts(), window_hours=window)
    return TrendingResponse(
        window_hours=window,
        topics=[TopicOut(**asdict(t)) for t in topics],
    )
