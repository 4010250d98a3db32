from __future__ import annotations

import datetime as dt

from sqlalchemy import Date, DateTime, Float, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.db.database import Base
from src.models.users import new_uuid


class ChallengeProgress(Base):
    """
    (user, challenge, KST 하루) 당 1개인 파생 기록. 게시글 작성/삭제로만 바뀜

    - 조회 기준은 created_at 범위 (KST 하루 → UTC 구간)
    - date 는 created_at 의 KST 날짜. 표시용 + 유니크 키 용도
    """
    __tablename__ = "challenge_progress"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    challenge_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("challenges.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    # 현재는 0.0 / 1.0 만 씀 (부분 달성 대비로 float 유지)
    progress: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", "date", name="uq_progress_user_challenge_day"),
        Index("idx_progress_challenge_user_created", "challenge_id", "user_id", "created_at"),
    )

    user = relationship("User", uselist=False)
    challenge = relationship("Challenge", uselist=False)
