"""文件读写工具：原子写入与安全路径拼接。"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """先写同目录临时文件并 fsync，再 ``os.replace`` 到目标路径。

    读方要么看不到文件，要么看到完整内容。
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp_path.unlink()
        raise


def atomic_write_text(path: Path, text: str) -> None:
    atomic_write_bytes(path, text.encode("utf-8"))


def remove_file(path: Path) -> bool:
    """删除文件；文件本就不存在时返回 ``False``，其它错误原样抛出。"""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True


def resolve_within(root: Path, relative: str) -> Path:
    """在 ``root`` 下拼接相对路径，越界时抛出 ``ValueError``。"""
    candidate = (root / relative.lstrip("/")).resolve()
    candidate.relative_to(root.resolve())
    return candidate
