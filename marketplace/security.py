# marketplace/security.py
# 호출자 식별: 외부 ID 제공자가 발급한 Bearer JWT 의 sub = caller id
# (자격 증명 검증 자체는 이 서비스의 일이 아니다. 서명만 확인하고 sub 를 믿는다)

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from marketplace.config.settings import SETTINGS

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """
    ✅ AUTH_DEV_BYPASS=True 면 X-User-Id 헤더를 그대로 호출자로 쓴다 (로컬 개발용).
    ✅ 그 외에는 JWT 서명/만료를 확인하고 sub 를 돌려준다.
    """
    if SETTINGS.auth_dev_bypass:
        dev_user = request.headers.get("X-User-Id")
        if dev_user:
            return dev_user

    if credentials is None:
        raise _unauthenticated("Not authenticated (token missing)")

    try:
        payload = jwt.decode(
            credentials.credentials,
            SETTINGS.secret_key,
            algorithms=[SETTINGS.jwt_algorithm],
        )
    except JWTError:
        raise _unauthenticated("Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise _unauthenticated("Invalid token payload")
    return str(user_id)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    개발/테스트용 토큰 발급. 운영에서는 외부 ID 제공자가 같은 키로 발급한다.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=SETTINGS.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SETTINGS.secret_key, algorithm=SETTINGS.jwt_algorithm)
