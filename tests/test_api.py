from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from buckets.config import Settings
from buckets.main import create_app
from buckets.services.store import ConfigurationError


def make_settings(**overrides) -> Settings:
    params = dict(_env_file=None, base_url="http://test.local", ttl=0, max_buckets=10, max_storage_size=0.00001, seed=5)
    params.update(overrides)
    return Settings(**params)


@pytest.fixture
def client():
    with TestClient(create_app(make_settings())) as client:
        yield client


def test_index_page_uses_base_url(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert "text/html" in resp.headers["content-type"]
    assert "http://test.local/my-file" in resp.text
    assert "{{baseurl}}" not in resp.text


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "service": "Buckets", "version": "0.1.0"}


def test_upload_then_download(client):
    resp = client.post("/", content=b"\x00binary\xff")
    assert resp.status_code == 200
    location = resp.text
    assert location.startswith("http://test.local/")
    assert location.endswith("\n")

    key = location.strip().rsplit("/", 1)[1]
    assert len(key) == 4

    resp = client.get(f"/{key}")
    assert resp.status_code == 200
    assert resp.content == b"\x00binary\xff"
    assert resp.headers["content-length"] == "8"


def test_upload_to_path_and_overwrite(client):
    assert client.post("/notes/today", content=b"first").text == "http://test.local/notes/today\n"
    assert client.post("/notes/today", content=b"second").status_code == 200

    assert client.get("/notes/today").content == b"second"
    assert client.get("/api/stats").json()["count"] == 1


def test_missing_key_is_404(client):
    assert client.get("/nothing-here").status_code == 404
    assert client.delete("/nothing-here").status_code == 404


def test_delete(client):
    client.post("/gone", content=b"bye")
    assert client.delete("/gone").status_code == 200
    assert client.get("/gone").status_code == 404
    assert client.delete("/gone").status_code == 404


def test_too_large_is_413(client):
    # max_storage_size=0.00001 MB is 10 bytes
    resp = client.post("/big", content=b"x" * 11)
    assert resp.status_code == 413
    assert client.get("/big").status_code == 404
    assert client.get("/api/stats").json()["total_size"] == 0


def test_stats(client):
    client.post("/a", content=b"1234")
    client.post("/b", content=b"12")
    assert client.get("/api/stats").json() == {
        "count": 2,
        "total_size": 6,
        "max_buckets": 10,
        "max_storage_bytes": 10,
    }


def test_reserved_paths_cannot_be_written(client):
    assert client.post("/health", content=b"x").status_code == 400
    assert client.delete("/api/stats").status_code == 400


def test_unsupported_method_is_400(client):
    assert client.put("/anything", content=b"x").status_code == 400


def test_dead_worker_is_503(client):
    client.app.state.gateway.close()
    assert client.get("/health").status_code == 503
    assert client.get("/some-key").status_code == 503


def test_small_keyspace_prevents_startup():
    with pytest.raises(ConfigurationError):
        create_app(make_settings(charset="a", slug_size=1, max_buckets=1))


@pytest.mark.parametrize("path", ["docs", "redoc", "openapi.json", "docs/oauth2-redirect"])
def test_framework_page_names_are_ordinary_keys(client, path):
    assert client.post(f"/{path}", content=b"my-bytes").text == f"http://test.local/{path}\n"

    resp = client.get(f"/{path}")
    assert resp.status_code == 200
    assert resp.content == b"my-bytes"


def test_generated_slugs_skip_reserved_paths():
    settings = make_settings(charset="aehlt", slug_size=6, max_buckets=10)
    with TestClient(create_app(settings)) as client:
        assert "health" in client.app.state.gateway.worker.store.slugs.reserved
        for _ in range(10):
            key = client.post("/", content=b"x").text.strip().rsplit("/", 1)[1]
            assert key != "health"
        assert client.get("/health").json()["ok"] is True
