from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from interviewer.core.config import get_settings


UTC = timezone.utc

_settings = get_settings()
_jwt_secret = _settings.jwt_secret
_algorithm = _settings.jwt_algorithm
_audience = _settings.jwt_audience

auth_scheme = HTTPBearer(auto_error=False)


def create_access_token(*, subject: str, email: str | None = None, expires_minutes: int = 60) -> str:
    """Mint a token shaped like the auth provider's; used by tooling and tests."""
    now = datetime.now(UTC)
    exp = now + timedelta(minutes=expires_minutes)
    to_encode = {"sub": subject, "iat": int(now.timestamp()), "exp": int(exp.timestamp())}
    if email:
        to_encode["email"] = email
    if _audience:
        to_encode["aud"] = _audience
    return jwt.encode(to_encode, _jwt_secret, algorithm=_algorithm)


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, _jwt_secret, algorithms=[_algorithm], audience=_audience)
        return payload
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def get_token_claims(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(auth_scheme)],
) -> dict:
    if credentials is None or not credentials.scheme.lower() == "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    payload = decode_token(credentials.credentials)
    sub = payload.get("sub")
    if not sub or not isinstance(sub, str):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    return payload


def get_current_user_id(claims: Annotated[dict, Depends(get_token_claims)]) -> str:
    return claims["sub"]
