from __future__ import annotations

import datetime as dt
import enum
from typing import List, Optional

from sqlalchemy import DateTime, Enum as SqlEnum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.db.database import Base
from src.utils.dates import utc_now
from src.models.users import User, new_uuid


class GroupRole(str, enum.Enum):
    owner = "owner"
    member = "member"


class Group(Base):
    __tablename__ = "groups"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    created_by: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    created_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False, default=utc_now)

    members: Mapped[List["GroupMember"]] = relationship(
        "GroupMember",
        back_populates="group",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    challenges = relationship(
        "Challenge",
        back_populates="group",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class GroupMember(Base):
    """
    (group_id, user_id) 유니크.
    진행도/게시글 쓰기 전 권한 확인 용도로만 쓰임
    """
    __tablename__ = "group_members"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    group_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    role: Mapped[GroupRole] = mapped_column(
        SqlEnum(GroupRole, name="group_role"),
        nullable=False,
        default=GroupRole.member,
    )

    created_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False, default=utc_now)

    group: Mapped["Group"] = relationship("Group", back_populates="members")
    user: Mapped["User"] = relationship("User", back_populates="memberships")
