"""远程拉取测试：使用 ``httpx.MockTransport`` 模拟远端。"""

import httpx
import pytest

from app.packages.cdn.core.exceptions import ValidationFailed
from app.packages.cdn.services.remote_fetch import fetch_remote, name_from_url


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_name_from_url():
    assert name_from_url("https://example.com/a/b/My%20File.pdf?x=1") == "My File.pdf"
    assert name_from_url("https://example.com/") == "downloaded_file"


def test_fetch_success_keeps_client_open():
    client = _client(lambda request: httpx.Response(200, content=b"payload", headers={"content-type": "text/plain"}))
    remote = fetch_remote("https://example.com/files/a.txt", client=client)

    assert remote.data == b"payload"
    assert remote.name == "a.txt"
    assert remote.content_type == "text/plain"
    assert client.is_closed is False
    client.close()


def test_explicit_filename_wins():
    client = _client(lambda request: httpx.Response(200, content=b"x"))
    remote = fetch_remote("https://example.com/download", filename="report.csv", client=client)
    assert remote.name == "report.csv"


def test_error_status_is_a_validation_failure():
    client = _client(lambda request: httpx.Response(404))
    with pytest.raises(ValidationFailed) as exc_info:
        fetch_remote("https://example.com/missing.png", client=client)
    assert "404" in exc_info.value.message


def test_oversized_response_is_rejected():
    client = _client(lambda request: httpx.Response(200, content=b"x" * 2048))
    with pytest.raises(ValidationFailed):
        fetch_remote("https://example.com/big.bin", client=client, max_bytes=1024)


def test_transport_error_is_a_validation_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ValidationFailed):
        fetch_remote("https://example.com/a.txt", client=_client(handler))


@pytest.mark.parametrize("url", ["ftp://example.com/a.txt", "file:///etc/passwd", "not a url", ""])
def test_only_http_urls_are_accepted(url):
    with pytest.raises(ValidationFailed):
        fetch_remote(url)
