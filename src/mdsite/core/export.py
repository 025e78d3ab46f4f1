"""Output paths, atomic writes, and per-path write serialization"""

import asyncio
import os
from collections import defaultdict
from contextlib import suppress
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from mdsite.core.models import PageMetadata, PostMetadata
from mdsite.core.parse import file_last_write
from mdsite.errors import FileSystemError


def output_path_for(output_root: Path, url_path: str) -> Path:
    """Map a URL path to its HTML file: '/' -> index.html, '/a/b' -> a/b.html, '/a/' -> a/index.html."""
    rel = url_path.strip("/")
    if not rel or url_path.endswith("/"):
        return output_root / rel / "index.html"
    return output_root / f"{rel}.html"


def output_state(path: Path) -> tuple[Optional[datetime], bool]:
    """Return (last write, exists) for an output file."""
    try:
        return file_last_write(path), True
    except FileNotFoundError:
        return None, False


def write_atomic(path: Path, text: str) -> None:
    """Write text to path via a sibling temp file so readers never see a partial file."""
    tmp = path.with_name(f".{path.name}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)
    except OSError as e:
        with suppress(OSError):
            tmp.unlink()
        raise FileSystemError(f"Failed to write {path}: {e}") from e


class PathLocks:
    """One asyncio.Lock per resolved path; writes to distinct paths do not contend."""

    def __init__(self):
        self._locks: dict[Path, asyncio.Lock] = defaultdict(asyncio.Lock)

    def __call__(self, path: Path) -> asyncio.Lock:
        return self._locks[path.resolve()]


async def write_record(record: Union[PageMetadata, PostMetadata], html: str, locks: PathLocks) -> Path:
    """Write a rendered page to the record's output path."""
    async with locks(record.output_path):
        await asyncio.to_thread(write_atomic, record.output_path, html)
    return record.output_path
