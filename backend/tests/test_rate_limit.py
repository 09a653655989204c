from starlette.requests import Request

from ledgerpost.core.rate_limit import RateLimiter
from ledgerpost.main import create_app

from fastapi.testclient import TestClient


def make_request(method, path, client_ip="10.0.0.1"):
    return Request({
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": [],
        "client": (client_ip, 5000),
        "server": ("testserver", 80),
        "scheme": "http",
    })


def test_writes_are_limited_per_path_and_client():
    limiter = RateLimiter({"/api/v1/transactions/journal-entries": (2, 60), "default": (100, 60)})
    path = "/api/v1/transactions/journal-entries"

    assert limiter.is_allowed(make_request("POST", path))[0]
    assert limiter.is_allowed(make_request("POST", path))[0]
    allowed, info = limiter.is_allowed(make_request("POST", path))

    assert not allowed
    assert info["retry_after"] >= 1
    assert limiter.is_allowed(make_request("POST", path, client_ip="10.0.0.2"))[0]


def test_reads_are_not_limited():
    limiter = RateLimiter({"default": (1, 60)})
    for _ in range(5):
        assert limiter.is_allowed(make_request("GET", "/api/v1/transactions"))[0]


def test_nested_paths_inherit_collection_limit():
    limiter = RateLimiter({"/api/v1/invoices": (3, 60), "default": (100, 60)})
    assert limiter._limit_for("/api/v1/invoices/12/post") == (3, 60)
    assert limiter._limit_for("/api/v1/invoices-archive") == (100, 60)


def test_middleware_returns_429(settings, database):
    limited = settings.model_copy(update={"RATE_LIMIT_ENABLED": True})
    app = create_app(limited)
    app.state.database = database

    with TestClient(app) as client:
        statuses = [
            client.post("/api/v1/organizations", json={"name": f"Company {i}"}).status_code
            for i in range(6)
        ]

    assert statuses == [201] * 5 + [429]
