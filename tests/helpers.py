from __future__ import annotations

from typing import Any

from fastapi.testclient import TestClient


def signup_and_login(
    client: TestClient, username: str, password: str = "s3cret-pass"
) -> dict[str, Any]:
    email = f"{username}@example.com"
    response = client.post(
        "/signup", json={"username": username, "email": email, "password": password}
    )
    assert response.status_code == 200, response.text
    response = client.post("/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["user"]


def upload_text(client: TestClient, text: str, filename: str = "book.txt") -> str:
    response = client.post(
        "/upload-book", files={"book": (filename, text.encode("utf-8"), "text/plain")}
    )
    assert response.status_code == 200, response.text
    return response.json()["bookId"]
