"""진행도 기록기(src.services.progress) 테스트"""
from __future__ import annotations

from datetime import date, datetime

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

import src.services.progress as progress_service
from src.models import ChallengeProgress, Post
from src.services.exceptions import DuplicateForDay
from src.utils.dates import local_day
from src.services.progress import (
    can_post_today,
    ensure_can_post_today,
    reconcile_day,
    record_completion,
    retract_completion,
)


def _progress_rows(db):
    stmt = select(ChallengeProgress).order_by(ChallengeProgress.created_at)
    return db.execute(stmt).scalars().all()


def _add_post(db, seed, created_at, *, user=None, challenge=None, deleted=False):
    user = user or seed.user
    challenge = challenge or seed.challenge
    post = Post(
        challenge_id=challenge.id,
        group_id=challenge.group_id,
        user_id=user.id,
        title="인증",
        content="오늘도 완료",
        image_urls=[],
        created_at=created_at,
        updated_at=created_at,
        is_deleted=deleted,
        active_day=None if deleted else local_day(created_at),
    )
    db.add(post)
    db.commit()
    return post


class TestRecordCompletion:
    def test_creates_record_for_local_day(self, db, seed) -> None:
        """19:00 KST → 6/1 로 기록"""
        result = record_completion(db, seed.user.id, seed.challenge.id, seed.group.id, datetime(2024, 6, 1, 10, 0))

        assert result.ok is True
        rows = _progress_rows(db)
        assert len(rows) == 1
        assert rows[0].challenge_id == seed.challenge.id
        assert rows[0].user_id == seed.user.id
        assert rows[0].progress == 1.0
        assert rows[0].date == date(2024, 6, 1)

    def test_idempotent_for_same_day(self, db, seed) -> None:
        """같은 날 두 번 호출해도 row 는 1개"""
        record_completion(db, seed.user.id, seed.challenge.id, seed.group.id, datetime(2024, 6, 1, 1, 0))
        second = record_completion(db, seed.user.id, seed.challenge.id, seed.group.id, datetime(2024, 6, 1, 14, 0))

        assert second.ok is True
        rows = _progress_rows(db)
        assert len(rows) == 1
        assert rows[0].progress == 1.0

    def test_updates_partial_record(self, db, seed) -> None:
        row = ChallengeProgress(
            challenge_id=seed.challenge.id,
            user_id=seed.user.id,
            progress=0.0,
            date=date(2024, 6, 1),
            created_at=datetime(2024, 6, 1, 0, 0),
            updated_at=datetime(2024, 6, 1, 0, 0),
        )
        db.add(row)
        db.commit()

        record_completion(db, seed.user.id, seed.challenge.id, seed.group.id, datetime(2024, 6, 1, 10, 0))

        rows = _progress_rows(db)
        assert len(rows) == 1
        assert rows[0].progress == 1.0

    def test_cross_midnight_creates_two_records(self, db, seed) -> None:
        """23:59 KST 와 00:01 KST 는 서로 다른 하루"""
        record_completion(db, seed.user.id, seed.challenge.id, seed.group.id, datetime(2024, 6, 1, 14, 59))
        record_completion(db, seed.user.id, seed.challenge.id, seed.group.id, datetime(2024, 6, 1, 15, 1))

        rows = _progress_rows(db)
        assert [r.date for r in rows] == [date(2024, 6, 1), date(2024, 6, 2)]

    def test_users_are_independent(self, db, seed) -> None:
        record_completion(db, seed.user.id, seed.challenge.id, seed.group.id, datetime(2024, 6, 1, 10, 0))
        record_completion(db, seed.friend.id, seed.challenge.id, seed.group.id, datetime(2024, 6, 1, 10, 0))

        assert len(_progress_rows(db)) == 2

    def test_store_failure_is_swallowed(self, db, seed, monkeypatch) -> None:
        """DB 오류는 예외 대신 ok=False"""
        def boom(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("connection lost"))

        monkeypatch.setattr(progress_service, "find_progress_for_day", boom)

        result = record_completion(db, seed.user.id, seed.challenge.id, seed.group.id, datetime(2024, 6, 1, 10, 0))

        assert result.ok is False
        assert result.error
        assert _progress_rows(db) == []

    def test_concurrent_insert_conflict_becomes_update(self, db, seed, monkeypatch) -> None:
        """
        다른 요청이 먼저 insert 한 상황: 첫 조회는 '없음'으로 보이지만
        유니크 키 충돌 후 재조회 → update 로 끝나야 함
        """
        record_completion(db, seed.user.id, seed.challenge.id, seed.group.id, datetime(2024, 6, 1, 9, 0))

        real_find = progress_service.find_progress_for_day
        calls = {"n": 0}

        def stale_then_real(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return real_find(*args, **kwargs)

        monkeypatch.setattr(progress_service, "find_progress_for_day", stale_then_real)

        result = record_completion(db, seed.user.id, seed.challenge.id, seed.group.id, datetime(2024, 6, 1, 10, 0))

        assert result.ok is True
        assert calls["n"] == 2
        assert len(_progress_rows(db)) == 1


class TestRetractCompletion:
    def test_noop_when_absent(self, db, seed) -> None:
        result = retract_completion(db, seed.user.id, seed.challenge.id, datetime(2024, 6, 1, 10, 0))

        assert result.ok is True
        assert _progress_rows(db) == []

    def test_deletes_record_of_post_day(self, db, seed) -> None:
        record_completion(db, seed.user.id, seed.challenge.id, seed.group.id, datetime(2024, 6, 1, 10, 0))
        record_completion(db, seed.user.id, seed.challenge.id, seed.group.id, datetime(2024, 6, 2, 10, 0))

        retract_completion(db, seed.user.id, seed.challenge.id, datetime(2024, 6, 1, 12, 0))

        rows = _progress_rows(db)
        assert [r.date for r in rows] == [date(2024, 6, 2)]

    def test_keeps_record_while_live_post_remains(self, db, seed) -> None:
        """같은 날 살아있는 게시글이 남아 있으면 진행도 유지"""
        _add_post(db, seed, datetime(2024, 6, 1, 11, 0))
        record_completion(db, seed.user.id, seed.challenge.id, seed.group.id, datetime(2024, 6, 1, 10, 0))

        result = retract_completion(db, seed.user.id, seed.challenge.id, datetime(2024, 6, 1, 10, 0))

        assert result.ok is True
        assert len(_progress_rows(db)) == 1

    def test_deleted_posts_do_not_keep_record(self, db, seed) -> None:
        _add_post(db, seed, datetime(2024, 6, 1, 11, 0), deleted=True)
        record_completion(db, seed.user.id, seed.challenge.id, seed.group.id, datetime(2024, 6, 1, 10, 0))

        retract_completion(db, seed.user.id, seed.challenge.id, datetime(2024, 6, 1, 10, 0))

        assert _progress_rows(db) == []

    def test_store_failure_is_swallowed(self, db, seed, monkeypatch) -> None:
        def boom(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("connection lost"))

        monkeypatch.setattr(progress_service, "count_live_posts_on_day", boom)

        result = retract_completion(db, seed.user.id, seed.challenge.id, datetime(2024, 6, 1, 10, 0))

        assert result.ok is False


class TestCanPostToday:
    def test_true_without_posts(self, db, seed) -> None:
        assert can_post_today(db, seed.user.id, seed.challenge.id, datetime(2024, 6, 1, 10, 0)) is True

    def test_false_after_post_same_local_day(self, db, seed) -> None:
        _add_post(db, seed, datetime(2024, 6, 1, 10, 0))

        # 6/1 05:00 KST, 23:59 KST 는 막히고 6/2 00:00 KST 부터 가능
        assert can_post_today(db, seed.user.id, seed.challenge.id, datetime(2024, 5, 31, 20, 0)) is False
        assert can_post_today(db, seed.user.id, seed.challenge.id, datetime(2024, 6, 1, 14, 59)) is False
        assert can_post_today(db, seed.user.id, seed.challenge.id, datetime(2024, 6, 1, 15, 0)) is True

    def test_other_challenge_and_deleted_posts_do_not_block(self, db, seed) -> None:
        _add_post(db, seed, datetime(2024, 6, 1, 10, 0), challenge=seed.other_challenge)
        _add_post(db, seed, datetime(2024, 6, 1, 9, 0), deleted=True)

        assert can_post_today(db, seed.user.id, seed.challenge.id, datetime(2024, 6, 1, 12, 0)) is True

    def test_ensure_raises_duplicate_for_day(self, db, seed) -> None:
        _add_post(db, seed, datetime(2024, 6, 1, 10, 0))

        with pytest.raises(DuplicateForDay) as exc_info:
            ensure_can_post_today(db, seed.user.id, seed.challenge, datetime(2024, 6, 1, 12, 0))

        err = exc_info.value
        assert err.challenge_id == seed.challenge.id
        assert err.day == date(2024, 6, 1)
        assert "매일 운동하기" in str(err)
        assert "하루에 챌린지당 1개" in str(err)


class TestReconcileDay:
    def test_creates_missing_and_removes_orphans(self, db, seed) -> None:
        # 게시글은 있는데 진행도 기록이 실패한 경우
        _add_post(db, seed, datetime(2024, 6, 1, 10, 0))
        # 게시글 없이 진행도만 남은 경우 (삭제 후 회수 실패)
        record_completion(db, seed.friend.id, seed.challenge.id, seed.group.id, datetime(2024, 6, 1, 11, 0))
        # 다른 날은 건드리지 않음
        record_completion(db, seed.friend.id, seed.challenge.id, seed.group.id, datetime(2024, 6, 2, 11, 0))

        created, removed = reconcile_day(db, date(2024, 6, 1))

        assert (created, removed) == (1, 1)
        rows = _progress_rows(db)
        assert {(r.user_id, r.date) for r in rows} == {
            (seed.user.id, date(2024, 6, 1)),
            (seed.friend.id, date(2024, 6, 2)),
        }

    def test_consistent_day_is_untouched(self, db, seed) -> None:
        _add_post(db, seed, datetime(2024, 6, 1, 10, 0))
        record_completion(db, seed.user.id, seed.challenge.id, seed.group.id, datetime(2024, 6, 1, 10, 0))

        assert reconcile_day(db, date(2024, 6, 1)) == (0, 0)
        assert len(_progress_rows(db)) == 1
