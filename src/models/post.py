from __future__ import annotations

import datetime as dt
from typing import List, Optional

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Index, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.db.database import Base
from src.models.users import new_uuid


class Post(Base):
    """
    챌린지 인증 게시글 (하루 1개)

    - 삭제는 soft delete (is_deleted=True), 실제 row는 남김
    - active_day: 살아있는 동안 created_at의 KST 날짜, 삭제되면 NULL
      → (user_id, challenge_id, active_day) 유니크로 '하루 1개' 동시성 보장
        (NULL끼리는 충돌하지 않으므로 삭제된 글은 막지 않음)
    """
    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    challenge_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("challenges.id", ondelete="CASCADE"),
        nullable=False,
    )
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
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    # 표시 순서 유지가 필요해서 JSON 배열로 저장
    image_urls: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False)

    is_deleted: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("0"),
    )

    active_day: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", "active_day", name="uq_posts_user_challenge_day"),
        Index("idx_posts_challenge_user_created", "challenge_id", "user_id", "created_at"),
    )

    author = relationship("User", uselist=False)
    challenge = relationship("Challenge", uselist=False)

    likes: Mapped[List["PostLike"]] = relationship(
        "PostLike",
        back_populates="post",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class PostLike(Base):
    __tablename__ = "post_likes"
    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_post_likes_post_user"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    post_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    created_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)

    post: Mapped["Post"] = relationship("Post", back_populates="likes")
