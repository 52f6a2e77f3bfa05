from __future__ import annotations

import asyncio

import aiohttp
import pytest

from buckets.client import BucketsClient, PayloadTooLarge


class FakeResponse:
    def __init__(self, status: int, body: bytes = b"") -> None:
        self.status = status
        self._body = body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def raise_for_status(self) -> None:
        if self.status >= 400:
            raise aiohttp.ClientResponseError(request_info=None, history=(), status=self.status)

    async def text(self) -> str:
        return self._body.decode()

    async def read(self) -> bytes:
        return self._body


class FakeSession:
    def __init__(self, *responses: FakeResponse) -> None:
        self.responses = list(responses)
        self.calls = []

    def _request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs.get("data")))
        return self.responses.pop(0)

    def get(self, url, **kwargs):
        return self._request("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._request("POST", url, **kwargs)

    def delete(self, url, **kwargs):
        return self._request("DELETE", url, **kwargs)


def test_upload_returns_location():
    session = FakeSession(FakeResponse(200, b"http://buckets.local/abcd\n"))
    client = BucketsClient(session, "http://buckets.local/")

    location = asyncio.run(client.upload(b"data"))

    assert location == "http://buckets.local/abcd"
    assert session.calls == [("POST", "http://buckets.local/", b"data")]


def test_upload_to_path():
    session = FakeSession(FakeResponse(200, b"http://buckets.local/mine\n"))
    client = BucketsClient(session, "http://buckets.local")

    assert asyncio.run(client.upload(b"data", path="/mine")) == "http://buckets.local/mine"
    assert session.calls[0][1] == "http://buckets.local/mine"


def test_upload_too_large():
    client = BucketsClient(FakeSession(FakeResponse(413)), "http://buckets.local")
    with pytest.raises(PayloadTooLarge):
        asyncio.run(client.upload(b"x" * 100))


def test_download_and_missing():
    session = FakeSession(FakeResponse(200, b"payload"), FakeResponse(404))
    client = BucketsClient(session, "http://buckets.local")

    assert asyncio.run(client.download("abcd")) == b"payload"
    assert asyncio.run(client.download("gone")) is None


def test_delete():
    session = FakeSession(FakeResponse(200), FakeResponse(404))
    client = BucketsClient(session, "http://buckets.local")

    assert asyncio.run(client.delete("abcd")) is True
    assert asyncio.run(client.delete("abcd")) is False
    assert [call[0] for call in session.calls] == ["DELETE", "DELETE"]


def test_server_errors_are_raised():
    client = BucketsClient(FakeSession(FakeResponse(503)), "http://buckets.local")
    with pytest.raises(aiohttp.ClientResponseError):
        asyncio.run(client.download("abcd"))
