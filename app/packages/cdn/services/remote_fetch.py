"""远程拉取：从 URL 下载文件内容，供"按 URL 上传"使用。"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional
from urllib.parse import unquote, urlparse

import httpx

from app.packages.cdn.core.constants import DEFAULT_MIME_TYPE
from app.packages.cdn.core.exceptions import ValidationFailed
from app.packages.cdn.core.logger import logger

FALLBACK_NAME = "downloaded_file"


@dataclass
class RemoteFile:
    data: bytes
    name: str
    content_type: str


def name_from_url(url: str) -> str:
    segment = PurePosixPath(unquote(urlparse(url).path)).name
    return segment or FALLBACK_NAME


def fetch_remote(
    url: str,
    *,
    filename: Optional[str] = None,
    timeout: float = 30.0,
    max_bytes: int = 500 * 1024 * 1024,
    client: Optional[httpx.Client] = None,
) -> RemoteFile:
    """下载 ``url`` 的内容；超出 ``max_bytes`` 或请求失败时抛出 ``ValidationFailed``。"""
    parsed = urlparse(url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationFailed("仅支持 http/https 地址")

    owns_client = client is None
    http = client or httpx.Client(timeout=timeout, follow_redirects=True)
    try:
        with http.stream("GET", url) as response:
            if response.status_code >= 400:
                raise ValidationFailed(f"拉取远程文件失败: {response.status_code} {response.reason_phrase}")
            chunks: list[bytes] = []
            received = 0
            for chunk in response.iter_bytes():
                received += len(chunk)
                if received > max_bytes:
                    raise ValidationFailed("远程文件超过允许的大小")
                chunks.append(chunk)
            content_type = response.headers.get("content-type") or DEFAULT_MIME_TYPE
    except httpx.HTTPError as exc:
        logger.warning("Remote fetch failed for %s: %s", url, exc)
        raise ValidationFailed(f"拉取远程文件失败: {exc}") from exc
    finally:
        if owns_client:
            http.close()

    return RemoteFile(data=b"".join(chunks), name=filename or name_from_url(url), content_type=content_type)
