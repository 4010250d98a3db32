"""pytest 공용 fixture (in-memory SQLite + TestClient)"""
from __future__ import annotations

import os

# src.* import 전에 설정해야 MySQL 대신 sqlite 엔진이 만들어짐
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from datetime import datetime
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.auth.dependencies import get_current_user
from src.db.database import Base, get_db
from src.main import app
from src.models import Challenge, Group, GroupMember, GroupRole, User
from src.services.posts import create_post
from src.utils.dates import utc_now


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seed(db) -> SimpleNamespace:
    """
    그룹 1개, 챌린지 2개
    - user, friend: 그룹 멤버
    - outsider: 멤버 아님
    """
    user = User(id="u-1", auth_subject="sub-1", name="홍길동", email="hong@example.com")
    friend = User(id="u-2", auth_subject="sub-2", name="김철수")
    outsider = User(id="u-3", auth_subject="sub-3", name="이영희")
    db.add_all([user, friend, outsider])

    group = Group(id="g-1", name="아침 루틴", created_by=user.id)
    db.add(group)
    db.add_all(
        [
            GroupMember(group_id=group.id, user_id=user.id, role=GroupRole.owner),
            GroupMember(group_id=group.id, user_id=friend.id, role=GroupRole.member),
        ]
    )

    workout = Challenge(id="c-1", group_id=group.id, title="매일 운동하기", created_by=user.id)
    reading = Challenge(id="c-2", group_id=group.id, title="매일 독서하기", created_by=user.id)
    db.add_all([workout, reading])
    db.commit()

    return SimpleNamespace(
        user=user,
        friend=friend,
        outsider=outsider,
        group=group,
        challenge=workout,
        other_challenge=reading,
    )


@pytest.fixture
def feed(db, seed) -> SimpleNamespace:
    """
    그룹 피드용 게시글 7개 (최신순)
    6/4 user 운동, 6/3 user 운동, 6/2 friend 운동, 6/2 user 운동,
    6/1 friend 운동, 6/1 user 독서, 6/1 user 운동
    """
    plan = [
        (seed.user, seed.challenge, datetime(2024, 6, 1, 1, 0)),
        (seed.user, seed.other_challenge, datetime(2024, 6, 1, 2, 0)),
        (seed.friend, seed.challenge, datetime(2024, 6, 1, 3, 0)),
        (seed.user, seed.challenge, datetime(2024, 6, 2, 1, 0)),
        (seed.friend, seed.challenge, datetime(2024, 6, 2, 3, 0)),
        (seed.user, seed.challenge, datetime(2024, 6, 3, 1, 0)),
        (seed.user, seed.challenge, datetime(2024, 6, 4, 1, 0)),
    ]
    posts = [
        create_post(db, user.id, challenge.id, title="인증", content="완료", now=at).post
        for user, challenge, at in plan
    ]
    seed.newest_first = [p.id for p in reversed(posts)]
    return seed


@pytest.fixture
def clock() -> SimpleNamespace:
    """라우터의 Depends(utc_now)를 대체하는 고정 시계 (naive UTC)"""
    return SimpleNamespace(now=datetime(2024, 6, 1, 10, 0, 0))


@pytest.fixture
def login(seed) -> SimpleNamespace:
    """login.user 를 바꾸면 다음 요청부터 그 유저로 인증됨"""
    return SimpleNamespace(user=seed.user)


@pytest.fixture
def client(db, seed, clock, login):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_current_user] = lambda: login.user
    app.dependency_overrides[utc_now] = lambda: clock.now
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
