# src/services/records.py
"""
그룹 캘린더/통계용 조회 (읽기 전용)
진행도 쓰기는 src.services.progress 에서만 함
"""
from __future__ import annotations

import datetime as dt
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from src.models.challenge import Challenge
from src.models.progress import ChallengeProgress
from src.services.exceptions import InvalidRequest
from src.services.membership import require_group_member
from src.services.progress import FULL_PROGRESS
from src.utils.dates import day_bounds, local_day


@dataclass
class MemberChallengeTotal:
    user_id: str
    challenge_id: str
    total_progress: float
    completed_days: int


@dataclass
class GroupSummary:
    group_id: str
    totals: List[MemberChallengeTotal] = field(default_factory=list)
    # KST 날짜 → 그날 완료 기록 수
    daily_counts: Dict[dt.date, int] = field(default_factory=dict)


def _range_filters(since: Optional[dt.date], until: Optional[dt.date]) -> list:
    if since and until and since > until:
        raise InvalidRequest("since 는 until 보다 이후일 수 없습니다.")

    filters = []
    if since is not None:
        filters.append(ChallengeProgress.created_at >= day_bounds(since)[0])
    if until is not None:
        filters.append(ChallengeProgress.created_at < day_bounds(until)[1])
    return filters


def _group_challenge_ids(group_id: str):
    return select(Challenge.id).where(Challenge.group_id == group_id)


def list_group_records(
    db: Session,
    user_id: str,
    group_id: str,
    since: Optional[dt.date] = None,
    until: Optional[dt.date] = None,
) -> List[ChallengeProgress]:
    """
    그룹 챌린지들의 완료 기록 (progress >= 1.0), 최신순
    since/until 은 KST 날짜 기준 (양끝 포함)
    """
    require_group_member(db, group_id, user_id)

    stmt = (
        select(ChallengeProgress)
        .options(
            joinedload(ChallengeProgress.user),
            joinedload(ChallengeProgress.challenge),
        )
        .where(
            ChallengeProgress.challenge_id.in_(_group_challenge_ids(group_id)),
            ChallengeProgress.progress >= FULL_PROGRESS,
            *_range_filters(since, until),
        )
        .order_by(ChallengeProgress.created_at.desc())
    )
    return db.execute(stmt).scalars().all()


def summarize_group(
    db: Session,
    user_id: str,
    group_id: str,
    since: Optional[dt.date] = None,
    until: Optional[dt.date] = None,
) -> GroupSummary:
    require_group_member(db, group_id, user_id)
    range_filters = _range_filters(since, until)
    in_group = ChallengeProgress.challenge_id.in_(_group_challenge_ids(group_id))

    totals_rows = db.execute(
        select(
            ChallengeProgress.user_id,
            ChallengeProgress.challenge_id,
            func.sum(ChallengeProgress.progress),
        )
        .where(in_group, *range_filters)
        .group_by(ChallengeProgress.user_id, ChallengeProgress.challenge_id)
        .order_by(ChallengeProgress.user_id, ChallengeProgress.challenge_id)
    ).all()

    summary = GroupSummary(group_id=group_id)
    for uid, cid, total in totals_rows:
        summary.totals.append(
            MemberChallengeTotal(
                user_id=uid,
                challenge_id=cid,
                total_progress=float(total or 0.0),
                completed_days=0,
            )
        )

    # 하루 판정은 created_at 기준으로 통일 (date 컬럼은 표시용)
    created = db.execute(
        select(ChallengeProgress.user_id, ChallengeProgress.challenge_id, ChallengeProgress.created_at)
        .where(in_group, ChallengeProgress.progress >= FULL_PROGRESS, *range_filters)
    ).all()

    daily: Dict[dt.date, int] = defaultdict(int)
    days_per_key: Dict[tuple, set] = defaultdict(set)
    for uid, cid, created_at in created:
        day = local_day(created_at)
        daily[day] += 1
        days_per_key[(uid, cid)].add(day)

    for t in summary.totals:
        t.completed_days = len(days_per_key.get((t.user_id, t.challenge_id), ()))
    summary.daily_counts = dict(sorted(daily.items()))
    return summary
