from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from src.db.database import get_db
from src.models.users import User
from src.auth.token_verifier import verify_access_token


bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    bearer: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> User:

    # Authorization: Bearer <token> 우선, 없으면 헤더 직접 확인
    if bearer and getattr(bearer, "scheme", "").lower() == "bearer":
        access_token = bearer.credentials
    else:
        auth = request.headers.get("Authorization")
        if not auth or not auth.startswith("Bearer "):
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "인증 헤더 없음")
        access_token = auth.replace("Bearer ", "", 1).strip()

    payload = verify_access_token(access_token)
    if payload is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "유효하지 않은 access_token")

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "access_token에 sub 없음")

    user = db.query(User).filter(User.auth_subject == subject).first()
    if not user:
        # 토큰은 유효하지만 우리 서비스에 가입 안 된 사용자 → 인증 실패로 처리
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "가입되지 않은 사용자")

    return user
