# src/auth/token_verifier.py
import json
import logging
import time

import jwt
import requests
from jwt.algorithms import RSAAlgorithm

from src.config.settings import settings

logger = logging.getLogger(__name__)

JWKS_TTL_SECONDS = 60 * 60  # 1시간 캐싱

jwks_cache = {
    "keys": None,
    "expires_at": 0,
}


def get_jwks() -> dict:
    now = time.time()

    if jwks_cache["keys"] and now < jwks_cache["expires_at"]:
        return jwks_cache["keys"]

    res = requests.get(settings.auth_jwks_url, timeout=5)
    res.raise_for_status()
    keys = {k["kid"]: k for k in res.json()["keys"]}

    jwks_cache["keys"] = keys
    jwks_cache["expires_at"] = now + JWKS_TTL_SECONDS
    return keys


def public_key_for(token: str):
    headers = jwt.get_unverified_header(token)
    key = get_jwks().get(headers.get("kid"))
    if not key:
        return None
    return RSAAlgorithm.from_jwk(json.dumps(key))


def verify_access_token(token: str):
    """
    외부 인증 제공자 access token 검증
    - RS256 서명 / exp
    - iss, aud 는 설정돼 있을 때만 검사
    실패하면 None
    """
    if not settings.auth_jwks_url:
        logger.warning("[auth] auth_jwks_url 미설정, 토큰 검증 불가")
        return None
    try:
        public_key = public_key_for(token)
        if public_key is None:
            return None
        options = {"verify_aud": bool(settings.auth_audience)}
        return jwt.decode(
            token,
            public_key,
            algorithms=["RS256"],
            audience=settings.auth_audience,
            issuer=settings.auth_issuer,
            options=options,
        )
    except (jwt.PyJWTError, requests.RequestException, KeyError, ValueError) as e:
        logger.info("[auth] token rejected: %s", e)
        return None
