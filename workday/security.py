from __future__ import annotations

import hmac
import threading
from collections import defaultdict, deque
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from passlib.exc import UnknownHashError

from workday.errors import ApiError
from workday.settings import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"

_LOCK = threading.Lock()
_FAILED_LOGINS: dict[str, deque[datetime]] = defaultdict(deque)
_MAX_FAILED_LOGINS = 10
_FAILED_LOGIN_WINDOW = timedelta(minutes=10)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _prune_failures(ip: str, now: datetime) -> deque[datetime]:
    failures = _FAILED_LOGINS[ip]
    cutoff = now - _FAILED_LOGIN_WINDOW
    while failures and failures[0] < cutoff:
        failures.popleft()
    return failures


def ensure_login_attempt_allowed(ip: str) -> None:
    with _LOCK:
        failures = _prune_failures(ip, _utcnow())
        blocked = len(failures) >= _MAX_FAILED_LOGINS
        if not failures:
            _FAILED_LOGINS.pop(ip, None)
    if blocked:
        raise ApiError(
            status_code=429,
            code="TOO_MANY_ATTEMPTS",
            message="Too many failed login attempts. Please try again later.",
        )


def register_login_failure(ip: str) -> None:
    now = _utcnow()
    with _LOCK:
        _prune_failures(ip, now).append(now)


def register_login_success(ip: str) -> None:
    with _LOCK:
        _FAILED_LOGINS.pop(ip, None)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError, UnknownHashError):
        return False


def _strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def verify_admin_credentials(username: str, password: str) -> bool:
    settings = get_settings()
    configured_user = _strip_quotes(settings.admin_user or "")
    configured_hash = _strip_quotes(settings.admin_pass_hash or "")
    if not configured_hash:
        return False
    if not hmac.compare_digest(username, configured_user):
        return False
    return verify_password(password, configured_hash)


def create_access_token(*, username: str) -> tuple[str, int]:
    settings = get_settings()
    now = _utcnow()
    expires_in = settings.access_token_minutes * 60
    claims = {
        "sub": username,
        "role": "admin",
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
        "jti": str(uuid4()),
        "typ": ACCESS_TOKEN_TYPE,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=JWT_ALGORITHM), expires_in


def decode_access_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[JWT_ALGORITHM],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require_sub": True, "require_iat": True, "require_exp": True},
        )
    except JWTError as exc:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token is invalid.") from exc

    if payload.get("typ") != ACCESS_TOKEN_TYPE or not payload.get("sub"):
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token is invalid.")
    if payload.get("role") != "admin":
        raise ApiError(status_code=403, code="FORBIDDEN", message="Insufficient permissions.")
    return payload


def require_admin(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict[str, Any]:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Missing bearer token.")

    payload = decode_access_token(credentials.credentials)
    request.state.actor = "admin"
    request.state.actor_id = str(payload["sub"])
    return payload
