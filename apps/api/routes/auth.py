"""Signup, login and session endpoints."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from apps.api.auth import authenticate_user, create_access_token, optional_user, register_user
from apps.api.schemas import LoginRequest, SignupRequest
from core.config import settings

router = APIRouter(tags=["auth"])

log = structlog.get_logger(__name__)

COOKIE_NAME = "access_token"


@router.post("/signup")
def signup(req: SignupRequest) -> dict[str, Any]:
    profile = register_user(username=req.username, email=req.email, password=req.password)
    log.info("auth.signup", user_id=profile["id"])
    return {"message": "Signup successful! Please log in.", "redirectTo": "/login"}


@router.post("/login")
def login(req: LoginRequest) -> JSONResponse:
    profile = authenticate_user(req.email, req.password)
    token = create_access_token({"sub": profile["id"], "email": profile["email"]})
    response = JSONResponse(
        {"message": "Login successful!", "redirectTo": "/upload", "user": profile},
        headers={"x-csrf-token": token},
    )
    response.set_cookie(
        COOKIE_NAME,
        token,
        max_age=int(settings.jwt_expiration_seconds) or None,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
        path="/",
    )
    log.info("auth.login", user_id=profile["id"])
    return response


@router.get("/logout")
def logout() -> JSONResponse:
    response = JSONResponse(
        {"message": "Logged out.", "redirectTo": "/"}, headers={"x-csrf-token": ""}
    )
    response.delete_cookie(COOKIE_NAME, path="/")
    return response


@router.get("/check-auth")
def check_auth(request: Request) -> dict[str, Any]:
    profile = optional_user(request)
    if profile is None:
        return {"isAuthenticated": False}
    return {
        "isAuthenticated": True,
        "user": {"id": profile["id"], "username": profile["username"], "email": profile["email"]},
    }
