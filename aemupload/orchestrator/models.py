"""
Initiate-upload response models and part boundary math.

The repository answers an initiate call with one entry per requested file,
each carrying the storage URIs the file's parts are PUT to and the part
size limits those parts must respect.
"""
import math
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

from ..errors import ErrorCode, UploadError
from ..models import UploadFile
from ..utils.events import FileEvent


def compute_part_ranges(
    file_size: int,
    min_part_size: int,
    max_part_size: int,
    uri_count: int,
) -> List[Tuple[int, int]]:
    """
    Split ``file_size`` bytes into contiguous [start, end) ranges.

    One range per URI at most; ranges cover [0, file_size) exactly and any
    URIs not needed are left unused.
    """
    if uri_count < 1:
        raise UploadError("no upload URIs were provided for file", ErrorCode.UNEXPECTED_API_STATE)

    if file_size < min_part_size:
        if uri_count != 1:
            raise UploadError(
                f"file of {file_size} bytes is smaller than the minimum part size "
                f"{min_part_size} but {uri_count} upload URIs were provided",
                ErrorCode.INVALID_OPTIONS,
            )
        return [(0, file_size)]

    part_size = max(math.ceil(file_size / uri_count), min_part_size)

    if max_part_size > 0 and math.ceil(file_size / max_part_size) > uri_count:
        raise UploadError(
            f"{uri_count} upload URIs are not enough for {file_size} bytes "
            f"with a maximum part size of {max_part_size}",
            ErrorCode.UNEXPECTED_API_STATE,
        )

    ranges = []
    start = 0
    while start < file_size and len(ranges) < uri_count:
        end = min(start + part_size, file_size)
        ranges.append((start, end))
        start = end
    return ranges


@dataclass(frozen=True)
class InitResponseFilePart:
    """One byte range of a file bound to its upload URI."""
    file: "InitResponseFile"
    start: int
    end: int
    url: str

    @property
    def size(self) -> int:
        return self.end - self.start

    @property
    def target_file_path(self) -> str:
        return self.file.target_file_path

    def stream(self) -> AsyncIterator[bytes]:
        return self.file.upload_file.stream_range(self.start, self.end)


def _unexpected(message: str) -> UploadError:
    return UploadError(message, ErrorCode.UNEXPECTED_API_STATE)


class InitResponseFile:
    """One file entry of the initiate response, paired with its UploadFile."""

    def __init__(self, upload_file: UploadFile, file_data: Dict[str, Any], complete_uri: str):
        if not isinstance(file_data, dict):
            raise _unexpected(f"initiate response entry for {upload_file.name} is not an object")
        for key in ("fileName", "uploadToken", "uploadURIs"):
            if key not in file_data:
                raise _unexpected(f"initiate response for {upload_file.name} is missing {key}")
        for key in ("fileName", "uploadToken"):
            if not isinstance(file_data[key], str):
                raise _unexpected(f"{key} of {upload_file.name} is not a string")
        uris = file_data["uploadURIs"]
        if not isinstance(uris, list) or not all(isinstance(uri, str) for uri in uris):
            raise _unexpected(f"uploadURIs of {upload_file.name} is not a list of urls")
        for key in ("minPartSize", "maxPartSize"):
            value = file_data.get(key)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise _unexpected(f"{key} of {upload_file.name} is not an integer")
        self.upload_file = upload_file
        self.complete_uri = complete_uri
        self._data = file_data
        self._parts: Optional[List[InitResponseFilePart]] = None

    @property
    def file_name(self) -> str:
        return self._data["fileName"]

    @property
    def file_size(self) -> int:
        return self.upload_file.file_size

    @property
    def mime_type(self) -> Optional[str]:
        return self._data.get("mimeType")

    @property
    def upload_token(self) -> str:
        return self._data["uploadToken"]

    @property
    def upload_uris(self) -> List[str]:
        return list(self._data["uploadURIs"])

    @property
    def min_part_size(self) -> int:
        return int(self._data.get("minPartSize") or 0)

    @property
    def max_part_size(self) -> int:
        return int(self._data.get("maxPartSize") or 0)

    @property
    def target_file_path(self) -> str:
        return self.upload_file.target_file_path

    @property
    def target_folder_path(self) -> str:
        return self.upload_file.target_folder_path

    def get_parts(self) -> List[InitResponseFilePart]:
        if self._parts is None:
            uris = self.upload_uris
            ranges = compute_part_ranges(
                self.file_size, self.min_part_size, self.max_part_size, len(uris)
            )
            self._parts = [
                InitResponseFilePart(self, start, end, uri)
                for (start, end), uri in zip(ranges, uris)
            ]
        return list(self._parts)

    @property
    def part_count(self) -> int:
        return len(self.get_parts())

    def event_data(self, transferred: int = 0, errors: Sequence[UploadError] = ()) -> FileEvent:
        return FileEvent(
            file_name=self.file_name,
            file_size=self.file_size,
            target_folder=self.target_folder_path,
            target_file=self.target_file_path,
            mime_type=self.mime_type,
            transferred=transferred,
            errors=[e.to_dict() for e in errors],
        )


class InitResponse:
    """Parsed initiate-upload response for one folder batch."""

    def __init__(
        self,
        upload_files: Sequence[UploadFile],
        init_data: Dict[str, Any],
        url_prefix: str,
    ):
        if not isinstance(init_data, dict) or "completeURI" not in init_data or "files" not in init_data:
            raise _unexpected("initiate response is missing completeURI or files")
        if not isinstance(init_data["completeURI"], str):
            raise _unexpected("completeURI of the initiate response is not a string")
        files = init_data["files"]
        if not isinstance(files, list):
            raise _unexpected("files of the initiate response is not a list")
        if len(files) != len(upload_files):
            raise _unexpected(
                f"initiate response has {len(files)} files, expected {len(upload_files)}"
            )
        self._complete_uri = f"{url_prefix}{init_data['completeURI']}"
        self._files = [
            InitResponseFile(upload_file, file_data, self._complete_uri)
            for upload_file, file_data in zip(upload_files, files)
        ]

    @property
    def complete_uri(self) -> str:
        return self._complete_uri

    @property
    def files(self) -> List[InitResponseFile]:
        return list(self._files)
