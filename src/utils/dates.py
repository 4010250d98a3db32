# src/utils/dates.py
"""
KST(UTC+9) 기준 '하루' 계산 유틸

- 서버 로컬 타임존은 절대 보지 않음. 오프셋은 고정 상수(+9h)
- DB에는 tz 없는 UTC datetime으로 저장 (naive = UTC 로 간주)
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Tuple

KST_OFFSET = timedelta(hours=9)
KST = timezone(KST_OFFSET)  # Asia/Seoul (DST 없음)


def utc_now() -> datetime:
    """현재 시각 (naive UTC). 라우터에서는 Depends(utc_now)로 주입받음"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def local_day(instant: datetime) -> date:
    return (as_naive_utc(instant) + KST_OFFSET).date()


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """KST 하루 [00:00, 다음날 00:00) 를 UTC 구간으로 반환"""
    start = datetime.combine(day, time.min) - KST_OFFSET
    return start, start + timedelta(days=1)
