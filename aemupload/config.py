"""
Configuration for aemupload.

Immutable dataclasses populated by the caller (or the CLI) and consumed by
the upload pipeline.
"""
import base64
import dataclasses
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Union
from urllib.parse import unquote, urlsplit

from .controller import UploadController
from .errors import ErrorCode, UploadError
from .models import UploadFile
from .services.names import DEFAULT_REPLACE_VALUE, validate_replace_value

NameProcessor = Callable[[str], Union[str, Awaitable[str]]]

DEFAULT_MAX_CONCURRENT = 5
DEFAULT_RETRY_COUNT = 3
DEFAULT_RETRY_DELAY = 5.0
DEFAULT_REQUEST_TIMEOUT = 60.0
DEFAULT_PROGRESS_DELAY = 0.5
DEFAULT_MAX_UPLOAD_FILES = 1000
DEFAULT_MAX_PATHS = 5000


@dataclass(frozen=True)
class UploadConfig:
    """
    Options for a direct binary upload.

    ``url`` is the full URL of the target folder, for example
    ``http://localhost:4502/content/dam/target``. Durations are in seconds.
    """
    url: str
    upload_files: Sequence[UploadFile] = ()
    headers: Dict[str, str] = field(default_factory=dict)
    concurrent: bool = True
    max_concurrent: int = DEFAULT_MAX_CONCURRENT
    http_retry_count: int = DEFAULT_RETRY_COUNT
    http_retry_delay: float = DEFAULT_RETRY_DELAY
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    progress_delay: float = DEFAULT_PROGRESS_DELAY
    http_proxy: Optional[str] = None
    controller: UploadController = field(default_factory=UploadController, compare=False)

    def __post_init__(self):
        parts = urlsplit(self.url or "")
        if not parts.scheme or not parts.netloc:
            raise UploadError(
                f"target url must be absolute, got {self.url!r}", ErrorCode.INVALID_OPTIONS
            )
        if self.max_concurrent < 1:
            raise UploadError("max_concurrent must be at least 1", ErrorCode.INVALID_OPTIONS)
        if self.http_retry_count < 1:
            raise UploadError("http_retry_count must be at least 1", ErrorCode.INVALID_OPTIONS)
        if self.http_retry_delay < 0:
            raise UploadError("http_retry_delay must not be negative", ErrorCode.INVALID_OPTIONS)
        if self.http_proxy is not None:
            proxy = urlsplit(self.http_proxy)
            if proxy.scheme not in ("http", "https") or not proxy.netloc:
                raise UploadError(
                    f"http proxy must be an absolute http(s) url, got {self.http_proxy!r}",
                    ErrorCode.INVALID_OPTIONS,
                )
        object.__setattr__(self, "url", self.url.rstrip("/"))
        object.__setattr__(self, "upload_files", tuple(self.upload_files))

    @property
    def is_concurrent(self) -> bool:
        return self.concurrent and self.max_concurrent > 1

    @property
    def target_folder_path(self) -> str:
        return unquote(urlsplit(self.url).path)

    @property
    def url_prefix(self) -> str:
        parts = urlsplit(self.url)
        return f"{parts.scheme}://{parts.netloc}"

    def with_basic_auth(self, user: str, password: str):
        token = base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")
        headers = dict(self.headers)
        headers["Authorization"] = f"Basic {token}"
        return dataclasses.replace(self, headers=headers)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "url": self.url,
            "concurrent": self.is_concurrent,
            "maxConcurrent": self.max_concurrent,
            "httpRetryCount": self.http_retry_count,
            "httpRetryDelay": self.http_retry_delay,
            "requestTimeout": self.request_timeout,
            "uploadFiles": len(self.upload_files),
        }
        if self.http_proxy:
            data["httpProxy"] = self.http_proxy
        return data


@dataclass(frozen=True)
class FileSystemUploadConfig(UploadConfig):
    """Options for uploading local files and directories."""
    deep_upload: bool = False
    max_upload_files: int = DEFAULT_MAX_UPLOAD_FILES
    max_paths: int = DEFAULT_MAX_PATHS
    folder_node_name_processor: Optional[NameProcessor] = field(default=None, compare=False)
    asset_node_name_processor: Optional[NameProcessor] = field(default=None, compare=False)
    invalid_character_replace_value: str = DEFAULT_REPLACE_VALUE
    create_version: bool = False
    version_label: Optional[str] = None
    version_comment: Optional[str] = None
    replace: bool = False

    def __post_init__(self):
        super().__post_init__()
        validate_replace_value(self.invalid_character_replace_value)
        if self.max_upload_files < 1:
            raise UploadError("max_upload_files must be at least 1", ErrorCode.INVALID_OPTIONS)
        if self.max_paths < 1:
            raise UploadError("max_paths must be at least 1", ErrorCode.INVALID_OPTIONS)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "deepUpload": self.deep_upload,
                "maxUploadFiles": self.max_upload_files,
                "maxPaths": self.max_paths,
                "invalidCharacterReplaceValue": self.invalid_character_replace_value,
                "createVersion": self.create_version,
                "replace": self.replace,
            }
        )
        return data
