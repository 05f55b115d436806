"""Tests for the ingress upload client. HTTP is mocked; nothing leaves the host."""
import os
import sys
import unittest.mock as mock

import pytest
import requests

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from fleetcollect.config import Settings
from fleetcollect.errors import UploadFailed
from fleetcollect.ingress import IngressClient


URL = "https://ingress.example.com/api/ingress/v1/upload"


def _artifact(tmp_path):
    path = tmp_path / "mock-1700000000-abc.tar.xz"
    path.write_bytes(b"\xfd7zXZ\x00payload")
    return str(path)


def _response(status, text=""):
    resp = mock.Mock()
    resp.status_code = status
    resp.text = text
    return resp


def test_upload_posts_file_with_content_type(tmp_path):
    artifact = _artifact(tmp_path)
    client = IngressClient(URL, timeout=5)

    with mock.patch("requests.post", return_value=_response(202)) as post:
        client.upload(artifact, "application/vnd.example.mock+tgz")

    args, kwargs = post.call_args
    assert args[0] == URL
    name, _, content_type = kwargs["files"]["file"]
    assert name == "mock-1700000000-abc.tar.xz"
    assert content_type == "application/vnd.example.mock+tgz"
    assert kwargs["timeout"] == 5
    assert kwargs["cert"] is None
    assert kwargs["proxies"] is None
    assert kwargs["headers"]["User-Agent"].startswith("fleetcollect/")


def test_upload_uses_certificate_and_proxy(tmp_path):
    cert = tmp_path / "cert.pem"
    key = tmp_path / "key.pem"
    cert.write_text("cert", encoding="utf-8")
    key.write_text("key", encoding="utf-8")
    client = IngressClient(URL, cert_file=str(cert), key_file=str(key),
                           proxy="http://proxy.example.com:3128")

    with mock.patch("requests.post", return_value=_response(201)) as post:
        client.upload(_artifact(tmp_path), "application/x-test")

    kwargs = post.call_args.kwargs
    assert kwargs["cert"] == (str(cert), str(key))
    assert kwargs["proxies"] == {
        "http": "http://proxy.example.com:3128",
        "https": "http://proxy.example.com:3128",
    }


def test_missing_certificate_is_skipped(tmp_path):
    client = IngressClient(URL, cert_file=str(tmp_path / "no.pem"), key_file=str(tmp_path / "no.key"))
    assert client.cert is None


def test_http_error_status(tmp_path):
    with mock.patch("requests.post", return_value=_response(413, "payload too large" * 50)):
        with pytest.raises(UploadFailed) as excinfo:
            IngressClient(URL).upload(_artifact(tmp_path), "application/x-test")
    assert "HTTP 413" in str(excinfo.value)
    assert len(str(excinfo.value)) < 400


def test_connection_error(tmp_path):
    error = requests.ConnectionError("connection refused")
    with mock.patch("requests.post", side_effect=error):
        with pytest.raises(UploadFailed) as excinfo:
            IngressClient(URL).upload(_artifact(tmp_path), "application/x-test")
    assert "connection refused" in str(excinfo.value)


def test_missing_artifact(tmp_path):
    with pytest.raises(UploadFailed):
        IngressClient(URL).upload(str(tmp_path / "gone.tar.xz"), "application/x-test")


def test_empty_content_type_is_rejected(tmp_path):
    with mock.patch("requests.post") as post:
        with pytest.raises(UploadFailed):
            IngressClient(URL).upload(_artifact(tmp_path), "")
    post.assert_not_called()


def test_from_settings():
    settings = Settings(ingress_url=URL, proxy="http://p:1", upload_timeout=12.0,
                        cert_file="/c.pem", key_file="/k.pem")
    client = IngressClient.from_settings(settings)
    assert client.url == URL
    assert client.proxy == "http://p:1"
    assert client.timeout == 12.0
    assert client.cert_file == "/c.pem"
