from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, field_serializer


class RecordUser(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    avatar_url: Optional[str] = None


class RecordChallenge(BaseModel):
    id: str
    title: str
    description: Optional[str] = None


class ChallengeRecordItem(BaseModel):
    id: str
    challenge_id: str
    user_id: str
    progress: float
    date: date
    created_at: datetime
    completed_at: datetime
    user: Optional[RecordUser] = None
    challenge: Optional[RecordChallenge] = None

    @field_serializer("created_at", "completed_at")
    def serialize_ts(self, v: datetime, _info):
        return v.replace(tzinfo=timezone.utc).isoformat()


class MemberChallengeTotalItem(BaseModel):
    user_id: str
    challenge_id: str
    total_progress: float
    completed_days: int


class GroupStatsRes(BaseModel):
    group_id: str
    totals: List[MemberChallengeTotalItem]
    daily_counts: Dict[date, int]
