from __future__ import annotations

import pytest
from fastapi import HTTPException

from apps.api.auth import create_access_token, hash_password, verify_password, verify_token
from tests.helpers import signup_and_login


def test_signup_then_login_sets_session_cookie(client):
    response = client.post(
        "/signup", json={"username": "ada", "email": "Ada@Example.com", "password": "pw-123"}
    )
    assert response.json() == {"message": "Signup successful! Please log in.", "redirectTo": "/login"}

    login = client.post("/login", json={"email": "ada@example.com", "password": "pw-123"})

    assert login.status_code == 200
    body = login.json()
    assert body["redirectTo"] == "/upload"
    assert body["user"]["username"] == "ada"
    assert login.headers["x-csrf-token"]
    assert "access_token" in client.cookies

    status = client.get("/check-auth").json()
    assert status["isAuthenticated"] is True
    assert status["user"]["email"] == "ada@example.com"


def test_duplicate_signup_is_rejected(client):
    signup_and_login(client, "ada")

    response = client.post(
        "/signup", json={"username": "ada", "email": "other@example.com", "password": "x"}
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Username or Email already exists."


def test_wrong_password_is_unauthorized(client):
    signup_and_login(client, "ada")

    response = client.post("/login", json={"email": "ada@example.com", "password": "nope"})

    assert response.status_code == 401


def test_logout_clears_session(client):
    signup_and_login(client, "ada")

    client.get("/logout")

    assert client.get("/check-auth").json() == {"isAuthenticated": False}


def test_auth_required_rejects_anonymous_requests(client, monkeypatch):
    monkeypatch.setenv("AUTH_REQUIRED", "true")

    assert client.get("/user-books").status_code == 401


def test_auth_required_checks_csrf_on_mutations(client, monkeypatch):
    monkeypatch.setenv("AUTH_REQUIRED", "true")
    signup_and_login(client, "ada")
    token = client.cookies["access_token"]

    assert client.get("/user-books").status_code == 200
    assert client.post("/delete-book", json={"bookId": "1"}).status_code == 403
    response = client.post(
        "/delete-book", json={"bookId": "1"}, headers={"x-csrf-token": token}
    )
    assert response.status_code == 404


def test_speech_synthesis_requires_a_session(client, monkeypatch):
    monkeypatch.setenv("AUTH_REQUIRED", "true")

    anonymous = client.post("/synthesize-speech", json={"text": "Read me"})
    assert anonymous.status_code == 401

    signup_and_login(client, "grace")
    token = client.cookies["access_token"]
    response = client.post(
        "/synthesize-speech", json={"text": "Read me"}, headers={"x-csrf-token": token}
    )
    assert response.status_code == 200
    assert response.json()["mimeType"].startswith("audio/L16")


def test_password_hash_round_trip():
    hashed = hash_password("correct horse")

    assert hashed.startswith("pbkdf2_sha256$")
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("anything", None)


def test_token_signature_and_expiry():
    token = create_access_token({"sub": 7})
    assert verify_token(token)["sub"] == 7

    header, payload, _signature = token.split(".")
    with pytest.raises(HTTPException):
        verify_token(f"{header}.{payload}.forged")

    expired = create_access_token({"sub": 7}, expires_delta=-10)
    with pytest.raises(HTTPException) as excinfo:
        verify_token(expired)
    assert excinfo.value.detail == "Token expired"
