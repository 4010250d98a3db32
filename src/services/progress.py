# src/services/progress.py
"""
챌린지 진행도(ChallengeProgress) 기록기

규칙
- (user, challenge, KST 하루) 당 진행도 1개
- 게시글 작성 → 그날 진행도 upsert (progress=1.0)
- 게시글 삭제 → 같은 날 살아있는 다른 게시글이 없으면 진행도 삭제
- 하루 판정은 항상 created_at + 9h 의 날짜 (서버 타임존 무관)

진행도는 부가 기록이라 실패해도 게시글 작성/삭제 결과를 바꾸지 않음
(예외를 올리지 않고 BookkeepingResult.ok=False 로 돌려줌)
"""
from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from src.models.challenge import Challenge
from src.models.post import Post
from src.models.progress import ChallengeProgress
from src.services.exceptions import DuplicateForDay
from src.utils.dates import as_naive_utc, day_bounds, local_day, utc_now

logger = logging.getLogger(__name__)

MAX_RETRY = 3
FULL_PROGRESS = 1.0


@dataclass
class BookkeepingResult:
    ok: bool
    progress: Optional[ChallengeProgress] = None
    error: Optional[str] = None


def find_progress_for_day(
    db: Session, user_id: str, challenge_id: str, day: dt.date
) -> Optional[ChallengeProgress]:
    start, end = day_bounds(day)
    return (
        db.execute(
            select(ChallengeProgress)
            .where(
                ChallengeProgress.challenge_id == challenge_id,
                ChallengeProgress.user_id == user_id,
                ChallengeProgress.created_at >= start,
                ChallengeProgress.created_at < end,
            )
            .order_by(ChallengeProgress.created_at.asc())
        )
        .scalars()
        .first()
    )


def count_live_posts_on_day(db: Session, user_id: str, challenge_id: str, day: dt.date) -> int:
    start, end = day_bounds(day)
    return db.execute(
        select(func.count(Post.id)).where(
            Post.user_id == user_id,
            Post.challenge_id == challenge_id,
            Post.is_deleted.is_(False),
            Post.created_at >= start,
            Post.created_at < end,
        )
    ).scalar_one()


def can_post_today(
    db: Session, user_id: str, challenge_id: str, now: Optional[dt.datetime] = None
) -> bool:
    day = local_day(now or utc_now())
    return count_live_posts_on_day(db, user_id, challenge_id, day) == 0


def ensure_can_post_today(
    db: Session, user_id: str, challenge: Challenge, now: Optional[dt.datetime] = None
) -> None:
    now = now or utc_now()
    if not can_post_today(db, user_id, challenge.id, now):
        raise DuplicateForDay(challenge.id, challenge.title, local_day(now))


def record_completion(
    db: Session,
    user_id: str,
    challenge_id: str,
    group_id: str,
    occurred_at: dt.datetime,
) -> BookkeepingResult:
    """
    게시글이 커밋된 뒤 호출. 그날 진행도가 있으면 1.0으로 갱신, 없으면 생성.
    (같은 날 두 번 불러도 row는 1개)

    동시 생성으로 유니크 충돌이 나면 rollback 후 다시 조회해서 갱신으로 처리.
    """
    occurred_at = as_naive_utc(occurred_at)
    day = local_day(occurred_at)

    for _ in range(MAX_RETRY):
        try:
            row = find_progress_for_day(db, user_id, challenge_id, day)
            if row is not None:
                row.progress = FULL_PROGRESS
                row.updated_at = utc_now()
                action = "update"
            else:
                # created_at 을 게시글 시각으로 둬야 같은 하루 범위로 다시 찾힘
                row = ChallengeProgress(
                    challenge_id=challenge_id,
                    user_id=user_id,
                    progress=FULL_PROGRESS,
                    date=day,
                    created_at=occurred_at,
                    updated_at=utc_now(),
                )
                db.add(row)
                action = "insert"
            db.commit()
            logger.info(
                "[progress] record %s user=%s challenge=%s group=%s day=%s",
                action, user_id, challenge_id, group_id, day,
            )
            return BookkeepingResult(ok=True, progress=row)
        except IntegrityError:
            db.rollback()
            logger.info(
                "[progress] record conflict, retry user=%s challenge=%s day=%s",
                user_id, challenge_id, day,
            )
            continue
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(
                "[progress] record failed user=%s challenge=%s day=%s",
                user_id, challenge_id, day,
            )
            return BookkeepingResult(ok=False, error=str(e))

    logger.warning(
        "[progress] record gave up after %d retries user=%s challenge=%s day=%s",
        MAX_RETRY, user_id, challenge_id, day,
    )
    return BookkeepingResult(ok=False, error="진행도 기록 재시도 초과")


def retract_completion(
    db: Session,
    user_id: str,
    challenge_id: str,
    occurred_at: dt.datetime,
) -> BookkeepingResult:
    """
    게시글 삭제가 커밋된 뒤 호출. occurred_at 은 삭제 시각이 아니라 게시글의 created_at.

    - 같은 날 살아있는 게시글이 아직 있으면 진행도 유지
    - 진행도가 없으면 아무것도 안 함 (에러 아님)
    """
    day = local_day(occurred_at)
    try:
        remaining = count_live_posts_on_day(db, user_id, challenge_id, day)
        if remaining > 0:
            logger.info(
                "[progress] retract skipped, %d live post(s) left user=%s challenge=%s day=%s",
                remaining, user_id, challenge_id, day,
            )
            return BookkeepingResult(ok=True, progress=find_progress_for_day(db, user_id, challenge_id, day))

        row = find_progress_for_day(db, user_id, challenge_id, day)
        if row is None:
            logger.info(
                "[progress] retract noop user=%s challenge=%s day=%s",
                user_id, challenge_id, day,
            )
            return BookkeepingResult(ok=True)

        db.delete(row)
        db.commit()
        logger.info(
            "[progress] retract delete user=%s challenge=%s day=%s",
            user_id, challenge_id, day,
        )
        return BookkeepingResult(ok=True)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(
            "[progress] retract failed user=%s challenge=%s day=%s",
            user_id, challenge_id, day,
        )
        return BookkeepingResult(ok=False, error=str(e))


def reconcile_day(db: Session, day: dt.date) -> Tuple[int, int]:
    """
    하루치 진행도를 게시글 기준으로 다시 맞춤 (스케줄러에서 전날 대상으로 실행)
    - 살아있는 게시글이 있는데 진행도가 없으면 생성
    - 게시글이 없는데 진행도만 남아있으면 삭제
    return (created, removed)
    """
    start, end = day_bounds(day)

    post_keys = db.execute(
        select(
            Post.user_id,
            Post.challenge_id,
            Post.group_id,
            func.min(Post.created_at),
        )
        .where(
            Post.is_deleted.is_(False),
            Post.created_at >= start,
            Post.created_at < end,
        )
        .group_by(Post.user_id, Post.challenge_id, Post.group_id)
    ).all()
    posted = {(u, c) for u, c, _, _ in post_keys}

    progress_rows = (
        db.execute(
            select(ChallengeProgress).where(
                ChallengeProgress.created_at >= start,
                ChallengeProgress.created_at < end,
            )
        )
        .scalars()
        .all()
    )
    recorded = {(p.user_id, p.challenge_id) for p in progress_rows}

    created = 0
    for user_id, challenge_id, group_id, first_created_at in post_keys:
        if (user_id, challenge_id) in recorded:
            continue
        result = record_completion(db, user_id, challenge_id, group_id, first_created_at)
        if result.ok:
            created += 1

    removed = 0
    for row in progress_rows:
        if (row.user_id, row.challenge_id) in posted:
            continue
        result = retract_completion(db, row.user_id, row.challenge_id, row.created_at)
        if result.ok:
            removed += 1

    logger.info("[progress] reconcile day=%s created=%d removed=%d", day, created, removed)
    return created, removed
