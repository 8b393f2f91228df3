"""
Models for aemupload.

Immutable description of a single file to upload.
"""
import asyncio
import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Dict, Optional, Union
from urllib.parse import quote, unquote, urlsplit

from .errors import ErrorCode, UploadError

DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class UploadFile:
    """
    One file to upload.

    The target is given either as ``file_name`` (appended to the upload's
    target folder URL) or as an absolute ``file_url``. Content comes from
    ``file_path`` on disk or from an in-memory ``blob``.
    """
    file_size: int
    file_name: Optional[str] = None
    file_url: Optional[str] = None
    file_path: Optional[Union[str, Path]] = None
    blob: Optional[bytes] = None
    create_version: bool = False
    version_label: Optional[str] = None
    version_comment: Optional[str] = None
    replace: bool = False
    part_headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.file_name and not self.file_url:
            raise UploadError(
                "UploadFile requires either file_name or file_url", ErrorCode.INVALID_OPTIONS
            )
        if self.file_size is None or self.file_size < 0:
            raise UploadError(
                f"UploadFile {self.display_name} has an invalid size: {self.file_size}",
                ErrorCode.INVALID_OPTIONS,
            )
        if self.file_path is None and self.blob is None:
            raise UploadError(
                f"UploadFile {self.display_name} requires either file_path or blob",
                ErrorCode.INVALID_OPTIONS,
            )
        if self.blob is not None and len(self.blob) < self.file_size:
            raise UploadError(
                f"UploadFile {self.display_name} blob is smaller than file_size",
                ErrorCode.INVALID_OPTIONS,
            )

    @property
    def display_name(self) -> str:
        return self.file_name or (self.file_url or "").rsplit("/", 1)[-1]

    def resolve(self, base_url: str) -> "UploadFile":
        """Return a copy with an absolute file_url under ``base_url``."""
        if self.file_url:
            return self
        url = f"{base_url.rstrip('/')}/{quote(self.file_name, safe='')}"
        return dataclasses.replace(self, file_url=url)

    def _require_url(self) -> str:
        if not self.file_url:
            raise UploadError(
                f"UploadFile {self.display_name} has not been resolved against a target URL",
                ErrorCode.INVALID_OPTIONS,
            )
        return self.file_url

    @property
    def name(self) -> str:
        """Decoded remote node name."""
        if not self.file_url:
            return self.file_name
        return unquote(self.file_url.rsplit("/", 1)[-1])

    @property
    def target_file_path(self) -> str:
        return unquote(urlsplit(self._require_url()).path)

    @property
    def folder_url(self) -> str:
        return self._require_url().rsplit("/", 1)[0]

    @property
    def target_folder_path(self) -> str:
        return unquote(urlsplit(self.folder_url).path)

    async def read_chunk(self, start: int, end: int) -> bytes:
        """Read bytes [start, end) of the source."""
        if self.blob is not None:
            return bytes(self.blob[start:end])

        def _read():
            with open(self.file_path, "rb") as f:
                f.seek(start)
                return f.read(end - start)

        return await asyncio.to_thread(_read)

    async def stream_range(
        self, start: int, end: int, chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> AsyncIterator[bytes]:
        """Yield bytes [start, end) of the source in chunks."""
        if self.blob is not None:
            for offset in range(start, end, chunk_size):
                yield bytes(self.blob[offset:min(offset + chunk_size, end)])
            return

        f = await asyncio.to_thread(open, self.file_path, "rb")
        try:
            await asyncio.to_thread(f.seek, start)
            remaining = end - start
            while remaining > 0:
                chunk = await asyncio.to_thread(f.read, min(chunk_size, remaining))
                if not chunk:
                    raise UploadError(
                        f"{self.file_path} is shorter than expected, file changed during upload",
                        ErrorCode.UNKNOWN,
                    )
                remaining -= len(chunk)
                yield chunk
        finally:
            await asyncio.to_thread(f.close)
