from __future__ import annotations

import datetime as dt
import uuid
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.db.database import Base
from src.utils.dates import utc_now

if TYPE_CHECKING:
    from src.models.group import GroupMember


def new_uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    인증은 외부 제공자에게 위임.
    auth_subject = 제공자 토큰의 sub (get_current_user에서 이걸로 조회)
    """
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("auth_subject", name="uq_users_auth_subject"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    auth_subject: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(254), nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False, default=utc_now)

    memberships: Mapped[List["GroupMember"]] = relationship(
        "GroupMember",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
