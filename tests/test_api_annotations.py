from __future__ import annotations

from fastapi.testclient import TestClient

from tests.helpers import signup_and_login, upload_text


def _create(client: TestClient, book_id: str, text: str, start: int, end: int):
    return client.post(
        "/api/annotations",
        json={"bookId": book_id, "text": text, "startOffset": start, "endOffset": end},
    )


def test_create_and_list_annotations(client):
    user = signup_and_login(client, "alice")
    book_id = upload_text(client, "It was a bright cold day in April.")

    response = _create(client, book_id, "bright cold day", 9, 24)

    assert response.status_code == 200
    body = response.json()
    assert set(body) == {"_id", "userId", "bookId", "text", "startOffset", "endOffset", "timestamp"}
    assert body["userId"] == str(user["id"])
    assert body["bookId"] == book_id
    assert (body["startOffset"], body["endOffset"]) == (9, 24)

    listed = client.get(f"/api/annotations/{book_id}").json()
    assert [item["_id"] for item in listed] == [body["_id"]]
    assert listed[0]["timestamp"].endswith(("Z", "+00:00"))


def test_invalid_offsets_are_rejected(client):
    signup_and_login(client, "alice")
    book_id = upload_text(client, "text")

    assert _create(client, book_id, "text", 3, 3).status_code == 422
    assert _create(client, book_id, "text", -1, 3).status_code == 422
    assert _create(client, book_id, "   ", 0, 3).status_code == 422


def test_annotation_on_foreign_book_is_not_found(app):
    with TestClient(app) as alice, TestClient(app) as bob:
        signup_and_login(alice, "alice")
        signup_and_login(bob, "bob")
        book_id = upload_text(alice, "private text")

        response = _create(bob, book_id, "private", 0, 7)

        assert response.status_code == 404
        assert response.json()["detail"] == "Book not found"
        assert bob.get(f"/api/annotations/{book_id}").json() == []


def test_delete_annotation(client):
    signup_and_login(client, "alice")
    book_id = upload_text(client, "alpha beta")
    note_id = _create(client, book_id, "beta", 6, 10).json()["_id"]

    response = client.delete(f"/api/annotations/{note_id}")

    assert response.json() == {"message": "Annotation deleted successfully"}
    assert client.get(f"/api/annotations/{book_id}").json() == []
    missing = client.delete(f"/api/annotations/{note_id}")
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Annotation not found"


def test_other_users_cannot_delete_annotation(app):
    with TestClient(app) as alice, TestClient(app) as bob:
        signup_and_login(alice, "alice")
        signup_and_login(bob, "bob")
        book_id = upload_text(alice, "alpha beta")
        note_id = _create(alice, book_id, "beta", 6, 10).json()["_id"]

        assert bob.delete(f"/api/annotations/{note_id}").status_code == 404
        assert len(alice.get(f"/api/annotations/{book_id}").json()) == 1


def test_list_is_newest_first(client):
    signup_and_login(client, "alice")
    book_id = upload_text(client, "one two three")
    first = _create(client, book_id, "one", 0, 3).json()["_id"]
    second = _create(client, book_id, "two", 4, 7).json()["_id"]

    listed = client.get(f"/api/annotations/{book_id}").json()

    assert [item["_id"] for item in listed] == [second, first]
