# src/main.py
import datetime as dt
import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config.settings import settings
from src.db.database import engine, Base, SessionLocal
from src.routers import posts, challenge_records
from src.services.progress import reconcile_day
from src.utils.dates import local_day, utc_now

# create_all이 테이블을 인식하도록 모델 import
import src.models  # noqa: F401

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
logger = logging.getLogger(__name__)


def _reconcile_yesterday_job():
    """
    매일 00:10 KST: 전날 진행도를 게시글 기준으로 다시 맞춤
    (작성/삭제 시 진행도 기록이 실패해서 어긋난 것 복구)
    """
    yesterday = local_day(utc_now()) - dt.timedelta(days=1)
    db = SessionLocal()
    try:
        created, removed = reconcile_day(db, yesterday)
        logger.info("[스케줄러] %s 진행도 정리 완료 created=%d removed=%d", yesterday, created, removed)
    except Exception:
        db.rollback()
        logger.exception("[스케줄러 오류][reconcile] day=%s", yesterday)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    - 앱 시작 시 테이블 생성 (SQLAlchemy로 정의한 테이블, 기존 테이블 컬럼 추가는 못함)
    - 스케줄러 등록 / 앱 종료 시 스케줄러 종료
    """
    Base.metadata.create_all(bind=engine)

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = AsyncIOScheduler(timezone="Asia/Seoul")
        scheduler.add_job(_reconcile_yesterday_job, CronTrigger(hour=0, minute=10))
        scheduler.start()

    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=False)
            logger.info("스케줄러 종료됨")


app = FastAPI(lifespan=lifespan)

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 라우터 등록
app.include_router(posts.router)
app.include_router(challenge_records.router)


# 확인용 엔드포인트
@app.get("/")
async def root():
    return {
        "message": "Challenge Tracker API가 정상 작동 중입니다",
        "version": "1.0.0"
    }
