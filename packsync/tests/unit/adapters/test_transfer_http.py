from __future__ import annotations

import hashlib
import io

import pytest
from requests import exceptions as req_exc

from packsync.adapters.api_errors import ApiClientError, ApiError, ApiServerError, ApiTimeoutError
from packsync.adapters.http_client import HttpConfig, RetryingSession, ensure_ok
from packsync.adapters.transfer_http import HttpTransfer


class _FakeResponse:
    def __init__(self, status_code=200, body=b"", headers=None, *, fail_after=None, text=""):
        self.status_code = status_code
        self._body = body
        self.headers = headers or {}
        self.fail_after = fail_after
        self.text = text
        self.closed = False

    def iter_content(self, chunk_size=1):
        for index in range(0, len(self._body), chunk_size):
            if self.fail_after is not None and index >= self.fail_after:
                raise req_exc.ChunkedEncodingError("connection broken")
            yield self._body[index:index + chunk_size]

    def json(self):
        raise ValueError("no json")

    def close(self):
        self.closed = True


class _FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        pass


def _transfer(*responses, cfg=None):
    session = _FakeSession(responses)
    return HttpTransfer(RetryingSession(cfg, session=session), chunk_size=4), session


def test_streams_body_hashes_and_reports_progress() -> None:
    body = b"hello world"
    response = _FakeResponse(200, body, {"Content-Length": str(len(body)), "ETag": '"abc"'})
    transfer, session = _transfer(response)
    sink = io.BytesIO()
    progress = []

    result = transfer.fetch(
        "http://mirror.test/a.bin",
        sink,
        digest_algorithm="SHA-1",
        on_progress=lambda received, total: progress.append((received, total)),
    )

    assert sink.getvalue() == body
    assert result.modified is True
    assert result.bytes_transferred == len(body)
    assert result.entity_tag == "abc"
    assert result.digest_hex == hashlib.sha1(body).hexdigest()
    assert progress[-1] == (11, 11)
    assert [received for received, _ in progress] == [4, 8, 11]
    assert response.closed

    _, kwargs = session.calls[0]
    assert "If-None-Match" not in kwargs["headers"]
    assert kwargs["timeout"] == (10, 60)
    assert kwargs["stream"] is True


def test_conditional_request_returns_not_modified() -> None:
    response = _FakeResponse(304)
    transfer, session = _transfer(response)
    sink = io.BytesIO()

    result = transfer.fetch("http://mirror.test/a.bin", sink, digest_algorithm="md5", prior_entity_tag='W/"abc"')

    assert result.modified is False
    assert result.entity_tag == "abc"
    assert sink.getvalue() == b""
    assert session.calls[0][1]["headers"]["If-None-Match"] == '"abc"'
    assert response.closed


def test_304_without_a_prior_tag_is_an_error() -> None:
    transfer, _ = _transfer(_FakeResponse(304))
    with pytest.raises(ApiError) as excinfo:
        transfer.fetch("http://mirror.test/a.bin", io.BytesIO())
    assert excinfo.value.status == 304


def test_missing_etag_yields_no_entity_tag() -> None:
    transfer, _ = _transfer(_FakeResponse(200, b"data"))
    result = transfer.fetch("http://mirror.test/a.bin", io.BytesIO())
    assert result.entity_tag is None
    assert result.digest_hex is None


def test_short_body_raises_timeout_error() -> None:
    response = _FakeResponse(200, b"abc", {"Content-Length": "10"})
    transfer, _ = _transfer(response)
    with pytest.raises(ApiTimeoutError, match="Incomplete download"):
        transfer.fetch("http://mirror.test/a.bin", io.BytesIO())
    assert response.closed


def test_dropped_connection_raises_timeout_error() -> None:
    response = _FakeResponse(200, b"abcdefgh", fail_after=4)
    transfer, _ = _transfer(response)
    with pytest.raises(ApiTimeoutError, match="Connection lost"):
        transfer.fetch("http://mirror.test/a.bin", io.BytesIO())


def test_http_404_raises_client_error() -> None:
    transfer, _ = _transfer(_FakeResponse(404, text="Not Found", headers={"Content-Type": "text/plain"}))
    with pytest.raises(ApiClientError) as excinfo:
        transfer.fetch("http://mirror.test/missing.bin", io.BytesIO())
    assert excinfo.value.status == 404
    assert "Not Found (HTTP 404)" in str(excinfo.value)


def test_connect_timeout_is_mapped() -> None:
    transfer, session = _transfer(req_exc.ConnectTimeout("slow"))
    with pytest.raises(ApiTimeoutError):
        transfer.fetch("http://mirror.test/a.bin", io.BytesIO())
    assert len(session.calls) == 1


def test_session_retries_connection_errors_when_configured() -> None:
    ok = _FakeResponse(200, b"x")
    transfer, session = _transfer(req_exc.ConnectionError("reset"), ok, cfg=HttpConfig(retries=1))
    result = transfer.fetch("http://mirror.test/a.bin", io.BytesIO())
    assert result.modified
    assert len(session.calls) == 2


def test_ensure_ok_hides_html_details() -> None:
    with pytest.raises(ApiServerError) as excinfo:
        ensure_ok(_FakeResponse(503, text="<html>busy</html>"), "GET x")
    assert str(excinfo.value) == "GET x: HTTP 503"
    ensure_ok(_FakeResponse(304), "GET x", allow_not_modified=True)
