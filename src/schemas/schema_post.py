from __future__ import annotations

from datetime import date, datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer


def _utc_iso(v: Optional[datetime]) -> Optional[str]:
    # DB 값은 naive UTC → 응답은 tz 붙여서
    if v is None:
        return None
    return v.replace(tzinfo=timezone.utc).isoformat()


class CreatePostReq(BaseModel):
    title: str = Field(min_length=1, description="제목")
    content: str = Field(min_length=1, description="인증 내용")
    image_urls: List[str] = Field(default_factory=list, description="업로드된 이미지 URL (표시 순서대로)")


class UpdatePostReq(BaseModel):
    content: str = Field(min_length=1)
    title: Optional[str] = None
    # None 이면 기존 이미지 유지
    image_urls: Optional[List[str]] = None


class PostAuthor(BaseModel):
    id: str
    name: str
    avatar_url: Optional[str] = None


class PostItem(BaseModel):
    id: str
    challenge_id: str
    group_id: str
    user_id: str
    title: str
    content: str
    image_urls: List[str]
    created_at: datetime
    updated_at: datetime
    local_day: date
    like_count: int = 0
    is_liked: bool = False
    is_author: bool = False
    author: Optional[PostAuthor] = None

    @field_serializer("created_at", "updated_at")
    def serialize_ts(self, v: datetime, _info):
        return _utc_iso(v)


class CreatePostRes(PostItem):
    # 진행도 기록은 부가 작업 → 실패해도 게시글 생성은 201
    progress_recorded: bool


class DeletePostRes(BaseModel):
    success: bool
    message: str
    progress_retracted: bool


class LikeToggleRes(BaseModel):
    liked: bool


class LikeStatusRes(BaseModel):
    total_likes: int
    has_liked: bool


class GroupPostsRes(BaseModel):
    """그룹 피드 한 페이지"""
    data: List[PostItem]
    total: int
