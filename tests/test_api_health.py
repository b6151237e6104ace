from __future__ import annotations


def test_health_and_ready(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/ready").json() == {"status": "ready"}


def test_metrics_count_requests_by_route(client):
    client.get("/health")
    client.get("/get-book-content/12345")

    body = client.get("/metrics").text

    assert "api_requests_total" in body
    assert 'path="/health"' in body
    assert 'path="/get-book-content/{book_id}"' in body
