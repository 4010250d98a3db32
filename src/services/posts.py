# src/services/posts.py
from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from src.models.post import Post, PostLike
from src.services.exceptions import InvalidRequest, NotFound, NotPostAuthor, StoreFailure, DuplicateForDay
from src.services.membership import require_challenge_member, require_group_member
from src.services.progress import (
    BookkeepingResult,
    can_post_today,
    ensure_can_post_today,
    record_completion,
    retract_completion,
)
from src.utils.dates import as_naive_utc, local_day, utc_now

logger = logging.getLogger(__name__)


@dataclass
class PostWriteResult:
    """게시글 자체 결과(post)와 진행도 부가 기록 결과(bookkeeping)를 분리"""
    post: Post
    bookkeeping: BookkeepingResult


def _clean_image_urls(image_urls: Optional[Sequence[str]]) -> List[str]:
    if not image_urls:
        return []
    return [u for u in image_urls if isinstance(u, str) and u.strip()]


def _commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("[posts] %s commit failed", what)
        raise StoreFailure("게시글 저장 중 오류가 발생했습니다.") from e


def _get_live_post(db: Session, post_id: str) -> Post:
    post = db.get(Post, post_id)
    if post is None or post.is_deleted:
        raise NotFound("게시글을 찾을 수 없습니다.")
    return post


def create_post(
    db: Session,
    user_id: str,
    challenge_id: str,
    *,
    title: str,
    content: str,
    image_urls: Optional[Sequence[str]] = None,
    now: Optional[dt.datetime] = None,
) -> PostWriteResult:
    """
    1) 챌린지 존재 + 그룹 멤버 확인
    2) 오늘(KST) 같은 챌린지에 쓴 글이 있으면 DuplicateForDay
    3) 게시글 커밋
    4) 진행도 기록 (실패해도 게시글은 그대로 성공)
    """
    if not title or not title.strip() or not content or not content.strip():
        raise InvalidRequest("제목과 내용은 필수입니다.")

    challenge = require_challenge_member(db, challenge_id, user_id)
    now = as_naive_utc(now or utc_now())

    ensure_can_post_today(db, user_id, challenge, now)

    post = Post(
        challenge_id=challenge.id,
        group_id=challenge.group_id,
        user_id=user_id,
        title=title.strip(),
        content=content,
        image_urls=_clean_image_urls(image_urls),
        created_at=now,
        updated_at=now,
        is_deleted=False,
        active_day=local_day(now),
    )
    db.add(post)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        # 동시에 들어온 같은 날 요청이 먼저 커밋한 경우 (유니크 키 충돌)
        if not can_post_today(db, user_id, challenge.id, now):
            raise DuplicateForDay(challenge.id, challenge.title, local_day(now)) from e
        # FK 위반 등 중복이 아닌 무결성 오류
        logger.exception("[posts] create integrity error user=%s challenge=%s", user_id, challenge_id)
        raise StoreFailure("게시글 저장 중 오류가 발생했습니다.") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("[posts] create commit failed user=%s challenge=%s", user_id, challenge_id)
        raise StoreFailure("게시글 저장 중 오류가 발생했습니다.") from e
    db.refresh(post)

    bookkeeping = record_completion(db, user_id, challenge.id, challenge.group_id, post.created_at)
    return PostWriteResult(post=post, bookkeeping=bookkeeping)


def delete_post(
    db: Session,
    user_id: str,
    post_id: str,
    *,
    now: Optional[dt.datetime] = None,
) -> PostWriteResult:
    """soft delete 후 그날 진행도 회수 (작성자만)"""
    post = _get_live_post(db, post_id)
    require_group_member(db, post.group_id, user_id)
    if post.user_id != user_id:
        raise NotPostAuthor(post_id)

    post.is_deleted = True
    post.active_day = None
    post.updated_at = as_naive_utc(now or utc_now())
    _commit(db, "delete")

    bookkeeping = retract_completion(db, user_id, post.challenge_id, post.created_at)
    return PostWriteResult(post=post, bookkeeping=bookkeeping)


def update_post(
    db: Session,
    user_id: str,
    post_id: str,
    *,
    content: str,
    title: Optional[str] = None,
    image_urls: Optional[Sequence[str]] = None,
    now: Optional[dt.datetime] = None,
) -> Post:
    """
    제목/내용/이미지 수정. created_at 은 그대로라 진행도와는 무관
    - image_urls 를 안 보내면(None) 기존 이미지 유지
    """
    if not content or not content.strip():
        raise InvalidRequest("내용은 필수입니다.")

    post = _get_live_post(db, post_id)
    require_group_member(db, post.group_id, user_id)
    if post.user_id != user_id:
        raise NotPostAuthor(post_id)

    post.content = content
    if title is not None and title.strip():
        post.title = title.strip()
    if image_urls is not None:
        post.image_urls = _clean_image_urls(image_urls)
    post.updated_at = as_naive_utc(now or utc_now())
    _commit(db, "update")
    db.refresh(post)
    return post


def get_post(db: Session, user_id: str, post_id: str) -> Post:
    post = _get_live_post(db, post_id)
    require_group_member(db, post.group_id, user_id)
    return post


def list_challenge_posts(db: Session, user_id: str, challenge_id: str) -> List[Post]:
    """삭제 안 된 게시글, 최신순"""
    require_challenge_member(db, challenge_id, user_id)
    return (
        db.execute(
            select(Post)
            .options(joinedload(Post.author))
            .where(Post.challenge_id == challenge_id, Post.is_deleted.is_(False))
            .order_by(Post.created_at.desc())
        )
        .scalars()
        .all()
    )


def list_group_posts(
    db: Session,
    user_id: str,
    group_id: str,
    *,
    page: int = 1,
    page_size: int = 5,
    challenge_id: Optional[str] = None,
) -> Tuple[List[Post], int]:
    """
    그룹 게시글 피드 (최신순, 페이지 단위)
    - challenge_id 를 주면 해당 챌린지 글만
    - return (해당 페이지 게시글, 전체 개수)
    """
    if page < 1 or page_size < 1:
        raise InvalidRequest("page, page_size 는 1 이상이어야 합니다.")

    require_group_member(db, group_id, user_id)

    filters = [Post.group_id == group_id, Post.is_deleted.is_(False)]
    if challenge_id:
        filters.append(Post.challenge_id == challenge_id)

    total = db.execute(select(func.count(Post.id)).where(*filters)).scalar_one()
    rows = (
        db.execute(
            select(Post)
            .options(joinedload(Post.author))
            .where(*filters)
            .order_by(Post.created_at.desc(), Post.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        .scalars()
        .all()
    )
    return rows, int(total)


# --------------------- 좋아요 ---------------------
def like_summary(db: Session, user_id: str, post_ids: Sequence[str]) -> Dict[str, Tuple[int, bool]]:
    """post_id → (좋아요 수, 내가 눌렀는지)"""
    if not post_ids:
        return {}

    counts = dict(
        db.execute(
            select(PostLike.post_id, func.count(PostLike.id))
            .where(PostLike.post_id.in_(post_ids))
            .group_by(PostLike.post_id)
        ).all()
    )
    mine = set(
        db.execute(
            select(PostLike.post_id).where(
                PostLike.post_id.in_(post_ids),
                PostLike.user_id == user_id,
            )
        )
        .scalars()
        .all()
    )
    return {pid: (int(counts.get(pid, 0)), pid in mine) for pid in post_ids}


def like_status(db: Session, user_id: str, post_id: str) -> Tuple[int, bool]:
    get_post(db, user_id, post_id)
    return like_summary(db, user_id, [post_id])[post_id]


def toggle_like(
    db: Session, user_id: str, post_id: str, *, now: Optional[dt.datetime] = None
) -> bool:
    """이미 눌렀으면 취소, 아니면 추가. return 토글 후 liked 여부"""
    get_post(db, user_id, post_id)

    existing = (
        db.execute(
            select(PostLike).where(PostLike.post_id == post_id, PostLike.user_id == user_id)
        )
        .scalars()
        .first()
    )
    if existing is not None:
        db.delete(existing)
        _commit(db, "unlike")
        return False

    db.add(PostLike(post_id=post_id, user_id=user_id, created_at=as_naive_utc(now or utc_now())))
    try:
        db.commit()
    except IntegrityError:
        # 더블클릭 등으로 이미 들어간 경우 → 눌린 상태 유지
        db.rollback()
    return True
