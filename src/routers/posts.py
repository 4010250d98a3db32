# src/routers/posts.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from src.auth.dependencies import get_current_user
from src.db.database import get_db
from src.models.post import Post
from src.models.users import User
from src.schemas.schema_post import (
    CreatePostReq,
    CreatePostRes,
    DeletePostRes,
    GroupPostsRes,
    LikeStatusRes,
    LikeToggleRes,
    PostAuthor,
    PostItem,
    UpdatePostReq,
)
from src.services.exceptions import ChallengeServiceError
from src.services.posts import (
    create_post,
    delete_post,
    get_post,
    like_status,
    like_summary,
    list_challenge_posts,
    list_group_posts,
    toggle_like,
    update_post,
)
from src.utils.dates import local_day, utc_now

router = APIRouter(tags=["게시글"])


def _to_item(p: Post, uid: str, likes: Optional[Dict[str, Tuple[int, bool]]] = None) -> PostItem:
    like_count, is_liked = (likes or {}).get(p.id, (0, False))
    author = None
    if p.author is not None:
        author = PostAuthor(id=p.author.id, name=p.author.name, avatar_url=p.author.avatar_url)
    return PostItem(
        id=p.id,
        challenge_id=p.challenge_id,
        group_id=p.group_id,
        user_id=p.user_id,
        title=p.title,
        content=p.content,
        image_urls=list(p.image_urls or []),
        created_at=p.created_at,
        updated_at=p.updated_at,
        local_day=local_day(p.created_at),
        like_count=like_count,
        is_liked=is_liked,
        is_author=p.user_id == uid,
        author=author,
    )


# ---------- 챌린지별 게시글 ----------
@router.get("/challenges/{challenge_id}/posts", response_model=List[PostItem])
def get_challenge_posts(
    challenge_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    uid = current_user.id
    try:
        rows = list_challenge_posts(db, uid, challenge_id)
    except ChallengeServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    likes = like_summary(db, uid, [p.id for p in rows])
    return [_to_item(p, uid, likes) for p in rows]


# ---------- 그룹 피드 ----------
@router.get("/groups/{group_id}/posts", response_model=GroupPostsRes)
def get_group_posts(
    group_id: str,
    page: int = Query(1, ge=1, description="1부터 시작"),
    page_size: int = Query(5, ge=1, le=50, description="페이지당 게시글 수"),
    challenge_id: Optional[str] = Query(default=None, description="특정 챌린지 글만 (선택)"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    ✅ GET /groups/{group_id}/posts?page=1&page_size=5
    [프론트용 요약]
    - 삭제 안 된 글만 최신순
    - total: 필터 적용된 전체 개수 (페이지 수 계산용)
    """
    uid = current_user.id
    try:
        rows, total = list_group_posts(
            db, uid, group_id, page=page, page_size=page_size, challenge_id=challenge_id
        )
    except ChallengeServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    likes = like_summary(db, uid, [p.id for p in rows])
    return GroupPostsRes(data=[_to_item(p, uid, likes) for p in rows], total=total)


@router.post(
    "/challenges/{challenge_id}/posts",
    response_model=CreatePostRes,
    status_code=status.HTTP_201_CREATED,
)
def create_challenge_post(
    challenge_id: str,
    req: CreatePostReq,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(utc_now),
):
    """
    ✅ POST /challenges/{challenge_id}/posts
    - 하루(KST)에 챌린지당 게시글 1개. 이미 있으면 409
    - 작성 성공 시 그날 진행도(progress=1.0) 자동 기록
    - 진행도 기록이 실패해도 게시글은 201 (progress_recorded=false)
    """
    uid = current_user.id
    try:
        result = create_post(
            db,
            uid,
            challenge_id,
            title=req.title,
            content=req.content,
            image_urls=req.image_urls,
            now=now,
        )
    except ChallengeServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    item = _to_item(result.post, uid)
    return CreatePostRes(**item.model_dump(), progress_recorded=result.bookkeeping.ok)


# ---------- 단건 ----------
@router.get("/posts/{post_id}", response_model=PostItem)
def get_one_post(
    post_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    uid = current_user.id
    try:
        post = get_post(db, uid, post_id)
    except ChallengeServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return _to_item(post, uid, like_summary(db, uid, [post.id]))


@router.patch("/posts/{post_id}", response_model=PostItem)
def patch_post(
    post_id: str,
    req: UpdatePostReq,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(utc_now),
):
    uid = current_user.id
    try:
        post = update_post(
            db,
            uid,
            post_id,
            content=req.content,
            title=req.title,
            image_urls=req.image_urls,
            now=now,
        )
    except ChallengeServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return _to_item(post, uid, like_summary(db, uid, [post.id]))


@router.delete("/posts/{post_id}", response_model=DeletePostRes)
def remove_post(
    post_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(utc_now),
):
    """
    soft delete (is_deleted=True). 그날 진행도도 같이 회수
    """
    try:
        result = delete_post(db, current_user.id, post_id, now=now)
    except ChallengeServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return DeletePostRes(
        success=True,
        message="게시글이 성공적으로 삭제되었습니다.",
        progress_retracted=result.bookkeeping.ok,
    )


# ---------- 좋아요 ----------
@router.get("/posts/{post_id}/likes", response_model=LikeStatusRes)
def get_post_likes(
    post_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        total, mine = like_status(db, current_user.id, post_id)
    except ChallengeServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return LikeStatusRes(total_likes=total, has_liked=mine)


@router.post("/posts/{post_id}/likes", response_model=LikeToggleRes)
def toggle_post_like(
    post_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(utc_now),
):
    try:
        liked = toggle_like(db, current_user.id, post_id, now=now)
    except ChallengeServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return LikeToggleRes(liked=liked)
