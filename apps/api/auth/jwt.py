"""Token authentication and password hashing for the API."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import secrets
import time
from datetime import timedelta
from typing import Any, Dict, Mapping

from fastapi import HTTPException, Request, status

from apps.api.db import models, repositories
from apps.api.db.session import session_scope
from core.config import settings

_PBKDF2_ITERATIONS = 200_000
_DEV_USER = {
    "email": "reader@example.com",
    "username": "reader",
    "name": "Reader",
}


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(raw: str) -> bytes:
    padding = "=" * (-len(raw) % 4)
    return base64.urlsafe_b64decode(raw + padding)


def _json_dumps(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), sort_keys=True)


def _json_loads(data: str) -> Mapping[str, Any]:
    loaded = json.loads(data)
    if not isinstance(loaded, Mapping):
        raise ValueError("JWT payload must be a mapping")
    return loaded


def _sign(message: str) -> str:
    secret = settings.jwt_secret.encode("utf-8")
    digest = hmac.new(secret, message.encode("utf-8"), hashlib.sha256).digest()
    return _b64encode(digest)


def hash_password(raw: str, *, salt: str | None = None) -> str:
    salt_value = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", raw.encode("utf-8"), salt_value.encode("ascii"), _PBKDF2_ITERATIONS
    )
    return f"pbkdf2_sha256${_PBKDF2_ITERATIONS}${salt_value}${digest.hex()}"


def verify_password(raw: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    try:
        _scheme, iterations, salt, expected = hashed.split("$", 3)
        rounds = int(iterations)
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", raw.encode("utf-8"), salt.encode("ascii"), rounds)
    return hmac.compare_digest(digest.hex(), expected)


def user_profile(user: models.User) -> dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "name": user.name,
    }


def register_user(*, username: str, email: str, password: str) -> dict[str, Any]:
    if not username.strip() or not email.strip() or not password:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST, "Username, email and password are required."
        )
    with session_scope() as db_session:
        repo = repositories.UserRepository(db_session)
        if repo.find_existing(email=email, username=username) is not None:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "Username or Email already exists.")
        user = repo.create(
            email=email,
            username=username,
            name=username.strip(),
            hashed_password=hash_password(password),
        )
        return user_profile(user)


def authenticate_user(email: str, password: str) -> dict[str, Any]:
    with session_scope() as db_session:
        user = repositories.UserRepository(db_session).get_by_email(email)
        if user is None or not verify_password(password, user.hashed_password):
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Incorrect email or password.")
        return user_profile(user)


def create_access_token(data: Mapping[str, Any], expires_delta: timedelta | int | None = None) -> str:
    expires_seconds: int | None
    if isinstance(expires_delta, timedelta):
        expires_seconds = int(expires_delta.total_seconds())
    else:
        expires_seconds = int(expires_delta) if expires_delta is not None else settings.jwt_expiration_seconds
    now = int(time.time())
    payload: Dict[str, Any] = dict(data)
    payload.setdefault("iat", now)
    if expires_seconds is not None:
        payload["exp"] = now + expires_seconds
    header = {"alg": "HS256", "typ": "JWT"}
    header_segment = _b64encode(_json_dumps(header).encode("utf-8"))
    payload_segment = _b64encode(_json_dumps(payload).encode("utf-8"))
    signature_segment = _sign(f"{header_segment}.{payload_segment}")
    return f"{header_segment}.{payload_segment}.{signature_segment}"


def verify_token(token: str) -> Mapping[str, Any]:
    try:
        header_segment, payload_segment, signature_segment = token.split(".")
    except ValueError as exc:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token") from exc
    expected_signature = _sign(f"{header_segment}.{payload_segment}")
    if not hmac.compare_digest(signature_segment, expected_signature):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token signature")
    try:
        payload = _json_loads(_b64decode(payload_segment).decode("utf-8"))
    except (ValueError, json.JSONDecodeError) as exc:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token payload") from exc
    exp = payload.get("exp")
    if isinstance(exp, (int, float)) and exp < time.time():
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token expired")
    return payload


def _development_user() -> dict[str, Any]:
    with session_scope() as db_session:
        repo = repositories.UserRepository(db_session)
        user = repo.get_by_email(_DEV_USER["email"])
        if user is None:
            user = repo.create(**_DEV_USER)
        return user_profile(user)


def optional_user(request: Request) -> dict[str, Any] | None:
    """Return the signed-in user, or ``None`` when the request carries no valid token."""

    token = request.cookies.get("access_token")
    if not token:
        return None
    try:
        payload = verify_token(token)
    except HTTPException:
        return None
    user_id = payload.get("sub")
    if not isinstance(user_id, int):
        return None
    with session_scope() as db_session:
        user = repositories.UserRepository(db_session).get(user_id)
        return user_profile(user) if user is not None else None


def get_current_user(request: Request) -> dict[str, Any]:
    if not settings.auth_required:
        profile = optional_user(request) or _development_user()
        request.state.user = profile
        return profile
    token = request.cookies.get("access_token")
    if not token:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Authentication required")
    if request.method in {"POST", "PUT", "PATCH", "DELETE"}:
        csrf_header = request.headers.get("x-csrf-token")
        if csrf_header != token:
            raise HTTPException(status.HTTP_403_FORBIDDEN, "Invalid CSRF token")
    payload = verify_token(token)
    user_id = payload.get("sub")
    if not isinstance(user_id, int):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token subject")
    with session_scope() as db_session:
        user = repositories.UserRepository(db_session).get(user_id)
        if user is None:
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Unknown user")
        profile = user_profile(user)
    request.state.user = profile
    return profile

