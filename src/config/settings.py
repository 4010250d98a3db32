# src/config/settings.py
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ✅ extra="ignore" (다른 env 키들은 무시)
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # 값이 있으면 db_* 조합보다 우선 (테스트/로컬 sqlite 용)
    database_url: Optional[str] = None

    db_user: Optional[str] = None
    db_pass: Optional[str] = None
    db_host: str = "localhost"
    db_port: Optional[int] = None
    db_name: Optional[str] = None

    # 외부 인증 제공자 (JWKS 기반 access token 검증)
    auth_jwks_url: Optional[str] = None
    auth_issuer: Optional[str] = None
    auth_audience: Optional[str] = None

    cors_origins: List[str] = ["*"]

    scheduler_enabled: bool = True


settings = Settings()
