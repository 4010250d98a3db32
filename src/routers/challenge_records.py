# src/routers/challenge_records.py
from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from src.auth.dependencies import get_current_user
from src.db.database import get_db
from src.models.users import User
from src.schemas.schema_record import (
    ChallengeRecordItem,
    GroupStatsRes,
    MemberChallengeTotalItem,
    RecordChallenge,
    RecordUser,
)
from src.services.exceptions import ChallengeServiceError
from src.services.records import list_group_records, summarize_group

router = APIRouter(prefix="/groups/{group_id}/challenge-records", tags=["챌린지 기록"])


@router.get("", response_model=List[ChallengeRecordItem])
def get_group_records(
    group_id: str,
    since: Optional[date] = Query(default=None, description="KST 시작 날짜 (포함)"),
    until: Optional[date] = Query(default=None, description="KST 끝 날짜 (포함)"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    ✅ GET /groups/{group_id}/challenge-records
    - 캘린더용: 그룹 챌린지들의 완료 기록(progress >= 1.0), 최신순
    - completed_at = created_at
    """
    try:
        rows = list_group_records(db, current_user.id, group_id, since, until)
    except ChallengeServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return [
        ChallengeRecordItem(
            id=r.id,
            challenge_id=r.challenge_id,
            user_id=r.user_id,
            progress=r.progress,
            date=r.date,
            created_at=r.created_at,
            completed_at=r.created_at,
            user=RecordUser(
                id=r.user.id, name=r.user.name, email=r.user.email, avatar_url=r.user.avatar_url
            ) if r.user else None,
            challenge=RecordChallenge(
                id=r.challenge.id, title=r.challenge.title, description=r.challenge.description
            ) if r.challenge else None,
        )
        for r in rows
    ]


@router.get("/stats", response_model=GroupStatsRes)
def get_group_stats(
    group_id: str,
    since: Optional[date] = Query(default=None),
    until: Optional[date] = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """멤버×챌린지별 누적 진행도 + KST 날짜별 완료 수"""
    try:
        summary = summarize_group(db, current_user.id, group_id, since, until)
    except ChallengeServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return GroupStatsRes(
        group_id=summary.group_id,
        totals=[
            MemberChallengeTotalItem(
                user_id=t.user_id,
                challenge_id=t.challenge_id,
                total_progress=t.total_progress,
                completed_days=t.completed_days,
            )
            for t in summary.totals
        ],
        daily_counts=summary.daily_counts,
    )
