# src/services/exceptions.py
from __future__ import annotations

import datetime as dt


class ChallengeServiceError(Exception):
    """라우터에서 HTTPException(status_code=e.status_code)로 변환"""
    status_code = 400


class InvalidRequest(ChallengeServiceError):
    status_code = 400


class NotFound(ChallengeServiceError):
    status_code = 404


class NotGroupMember(ChallengeServiceError):
    status_code = 403

    def __init__(self, group_id: str):
        super().__init__("그룹 멤버만 접근할 수 있습니다.")
        self.group_id = group_id


class NotPostAuthor(ChallengeServiceError):
    status_code = 403

    def __init__(self, post_id: str):
        super().__init__("작성자만 수정/삭제할 수 있습니다.")
        self.post_id = post_id


class DuplicateForDay(ChallengeServiceError):
    """같은 챌린지에 오늘(KST) 이미 게시글이 있음"""
    status_code = 409

    def __init__(self, challenge_id: str, challenge_title: str, day: dt.date):
        super().__init__(
            f"이미 오늘({day.isoformat()}) '{challenge_title}' 챌린지에 게시글을 작성했습니다. "
            "하루에 챌린지당 1개의 게시글만 작성할 수 있습니다. "
            "다른 챌린지를 선택하거나 내일 다시 작성해주세요."
        )
        self.challenge_id = challenge_id
        self.challenge_title = challenge_title
        self.day = day


class StoreFailure(ChallengeServiceError):
    status_code = 500
