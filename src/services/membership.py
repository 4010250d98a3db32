# src/services/membership.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.models.challenge import Challenge
from src.models.group import Group, GroupMember
from src.services.exceptions import NotFound, NotGroupMember


def is_member(db: Session, group_id: str, user_id: str) -> bool:
    row = (
        db.execute(
            select(GroupMember.id).where(
                GroupMember.group_id == group_id,
                GroupMember.user_id == user_id,
            )
        )
        .scalars()
        .first()
    )
    return row is not None


def require_group_member(db: Session, group_id: str, user_id: str) -> Group:
    group = db.get(Group, group_id)
    if group is None:
        raise NotFound("그룹을 찾을 수 없습니다.")
    if not is_member(db, group_id, user_id):
        raise NotGroupMember(group_id)
    return group


def require_challenge_member(db: Session, challenge_id: str, user_id: str) -> Challenge:
    """
    챌린지 존재 확인 → 챌린지가 속한 그룹의 멤버인지 확인.
    게시글/진행도 쓰기 전에 항상 먼저 호출
    """
    challenge = db.get(Challenge, challenge_id)
    if challenge is None:
        raise NotFound("챌린지를 찾을 수 없습니다.")
    if not is_member(db, challenge.group_id, user_id):
        raise NotGroupMember(challenge.group_id)
    return challenge
