"""
Tests for utils.http.HttpClient

GETs retry transient failures; POST/PUT are single-shot; anything that is not
a 2xx JSON object raises RemoteAPIError.
"""

from unittest.mock import Mock

import pytest
import requests

from socials.errors import RemoteAPIError
from utils.http import HttpClient


def _resp(status=200, payload=None, headers=None, text=None):
    resp = Mock()
    resp.status_code = status
    resp.headers = headers or {}
    if text is not None:
        resp.content = text.encode()
        resp.text = text
        resp.json.side_effect = ValueError("not json")
    else:
        resp.content = b"{}" if payload is None else b"x"
        resp.text = str(payload)
        resp.json.return_value = {} if payload is None else payload
    return resp


@pytest.fixture
def session():
    s = Mock()
    s.headers = {}
    return s


@pytest.fixture
def client(session, sleeps):
    return HttpClient(session, max_retries=3, sleep=sleeps.sleep)


class TestGetJson:
    def test_success(self, client, session):
        session.get.return_value = _resp(200, {"id": "1"})
        assert client.get_json("https://api.example.com/me", params={"a": 1}) == {"id": "1"}
        session.get.assert_called_once()

    def test_retries_server_errors(self, client, session, sleeps):
        session.get.side_effect = [_resp(503, {"error": {"message": "busy"}}), _resp(200, {"ok": True})]
        assert client.get_json("https://api.example.com/x") == {"ok": True}
        assert session.get.call_count == 2
        assert len(sleeps) == 1

    def test_honours_retry_after(self, client, session, sleeps):
        session.get.side_effect = [_resp(429, {}, headers={"Retry-After": "7"}), _resp(200, {"ok": True})]
        client.get_json("https://api.example.com/x")
        assert sleeps == [7.0]

    def test_gives_up_after_max_retries(self, client, session):
        session.get.return_value = _resp(500, {"error": {"message": "Internal"}})
        with pytest.raises(RemoteAPIError) as exc:
            client.get_json("https://api.example.com/x")
        assert exc.value.status_code == 500
        assert session.get.call_count == 3

    def test_connection_errors_retried_then_raised(self, client, session, sleeps):
        session.get.side_effect = requests.exceptions.ConnectionError("reset")
        with pytest.raises(requests.exceptions.ConnectionError):
            client.get_json("https://api.example.com/x")
        assert session.get.call_count == 3
        assert len(sleeps) == 2

    def test_client_error_not_retried(self, client, session):
        session.get.return_value = _resp(400, {"error": {"message": "Invalid OAuth access token."}})
        with pytest.raises(RemoteAPIError, match="Invalid OAuth access token"):
            client.get_json("https://api.example.com/x")
        session.get.assert_called_once()


class TestPostAndPut:
    def test_post_is_single_shot(self, client, session):
        session.post.return_value = _resp(500, {"error": {"message": "Please retry"}})
        with pytest.raises(RemoteAPIError, match="Please retry"):
            client.post_json("https://api.example.com/upload", data={"a": "b"})
        session.post.assert_called_once()

    def test_post_non_object_json(self, client, session):
        session.post.return_value = _resp(200, ["not", "a", "dict"])
        with pytest.raises(RemoteAPIError, match="Invalid JSON"):
            client.post_json("https://api.example.com/upload")

    def test_post_html_body(self, client, session):
        session.post.return_value = _resp(200, text="<html>oops</html>")
        with pytest.raises(RemoteAPIError):
            client.post_json("https://api.example.com/upload")

    def test_put_returns_status(self, client, session):
        session.put.return_value = _resp(201, None)
        assert client.put("https://upload.example.com/1", data=b"abc", headers={"Content-Range": "bytes 0-2/3"}) == 201

    def test_put_failure(self, client, session):
        session.put.return_value = _resp(416, {"error": {"message": "Range not satisfiable"}})
        with pytest.raises(RemoteAPIError) as exc:
            client.put("https://upload.example.com/1", data=b"abc")
        assert exc.value.status_code == 416


class TestFromConfig:
    def test_reads_http_section(self):
        client = HttpClient.from_config({"http": {"timeout": 12, "max_retries": 2}})
        assert client.timeout == 12.0
        assert client.max_retries == 2
