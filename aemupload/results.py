"""
Result accumulators for an upload invocation.

All durations are integer milliseconds.
"""
import time
from typing import Any, Dict, List, Optional

from rich.filesize import decimal

from .errors import ErrorCode, UploadError


def _now_ms() -> int:
    return int(time.monotonic() * 1000)


def _average(values: List[int]) -> int:
    return round(sum(values) / len(values)) if values else 0


class Timer:
    """Monotonic start/stop timer."""

    def __init__(self):
        self._start: Optional[int] = None
        self._end: Optional[int] = None

    def start(self) -> None:
        self._start = _now_ms()
        self._end = None

    def stop(self) -> None:
        if self._start is not None and self._end is None:
            self._end = _now_ms()

    @property
    def started(self) -> bool:
        return self._start is not None

    @property
    def elapsed(self) -> int:
        if self._start is None:
            return 0
        end = self._end if self._end is not None else _now_ms()
        return end - self._start


class HttpResult:
    """Base for results produced by HTTP calls that may have been retried."""

    def __init__(self):
        self._retry_errors: List[UploadError] = []

    @property
    def retry_errors(self) -> List[UploadError]:
        return list(self._retry_errors)

    def add_retry_error(self, error: Any) -> None:
        self._retry_errors.append(UploadError.from_error(error))


class PartUploadResult(HttpResult):
    """Outcome of uploading one part."""

    def __init__(self, start: int, end: int, url: str, file_name: str = ""):
        super().__init__()
        self.start = start
        self.end = end
        self.url = url
        self.file_name = file_name
        self.upload_time = 0
        self._error: Optional[UploadError] = None

    @property
    def size(self) -> int:
        return self.end - self.start

    @property
    def error(self) -> Optional[UploadError]:
        return self._error

    def set_error(self, error: Any) -> None:
        self._error = UploadError.from_error(error)

    def is_successful(self) -> bool:
        return self._error is None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "start": self.start,
            "end": self.end,
            "url": self.url,
            "uploadTime": self.upload_time,
            "success": self.is_successful(),
        }
        if self._error:
            data["error"] = self._error.to_dict()
        if self._retry_errors:
            data["retryErrors"] = [e.to_dict() for e in self._retry_errors]
        return data


class FileUploadResult(HttpResult):
    """Mutable accumulator for one file's upload."""

    def __init__(
        self,
        file_name: str,
        file_size: int,
        target_file_path: str,
        mime_type: Optional[str] = None,
    ):
        super().__init__()
        self.file_name = file_name
        self.file_size = file_size
        self.target_file_path = target_file_path
        self.mime_type = mime_type
        self.complete_time = 0
        self._timer = Timer()
        self._part_results: List[PartUploadResult] = []
        self._error: Optional[UploadError] = None
        self._complete_error: Optional[UploadError] = None
        self._cancelled = False

    @classmethod
    def from_file_info(cls, file_info) -> "FileUploadResult":
        return cls(
            file_name=file_info.file_name,
            file_size=file_info.file_size,
            target_file_path=file_info.target_file_path,
            mime_type=file_info.mime_type,
        )

    def start_timer(self) -> None:
        self._timer.start()

    def stop_timer(self) -> None:
        self._timer.stop()

    @property
    def total_upload_time(self) -> int:
        return self._timer.elapsed

    @property
    def part_results(self) -> List[PartUploadResult]:
        return list(self._part_results)

    @property
    def part_count(self) -> int:
        return len(self._part_results)

    def add_part_result(self, part_result: PartUploadResult) -> None:
        self._part_results.append(part_result)

    @property
    def transferred(self) -> int:
        return sum(p.size for p in self._part_results if p.is_successful())

    @property
    def average_part_time(self) -> int:
        return _average([p.upload_time for p in self._part_results])

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def set_cancelled(self) -> None:
        self._cancelled = True

    def set_error(self, error: Any) -> None:
        self._error = UploadError.from_error(error)

    def set_complete_error(self, error: Any) -> None:
        self._complete_error = UploadError.from_error(error)

    def get_errors(self) -> List[UploadError]:
        errors = [self._error] if self._error else []
        errors.extend(p.error for p in self._part_results if p.error)
        if self._complete_error:
            errors.append(self._complete_error)
        return errors

    def has_errors(self) -> bool:
        return bool(self.get_errors())

    def is_successful(self) -> bool:
        return not self._cancelled and not self.has_errors()

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "fileSizeStr": decimal(self.file_size),
            "targetPath": self.target_file_path,
            "mimeType": self.mime_type,
            "totalUploadTime": self.total_upload_time,
            "partCount": self.part_count,
            "averagePartTime": self.average_part_time,
            "completeTime": self.complete_time,
            "cancelled": self._cancelled,
            "success": self.is_successful(),
            "parts": [p.to_dict() for p in self._part_results],
        }
        errors = self.get_errors()
        if errors:
            data["errors"] = [e.to_dict() for e in errors]
        if self._retry_errors:
            data["retryErrors"] = [e.to_dict() for e in self._retry_errors]
        return data


class CreateDirectoryResult(HttpResult):
    """Outcome of ensuring one remote folder exists."""

    def __init__(self, folder_path: str, folder_title: str):
        super().__init__()
        self.folder_path = folder_path
        self.folder_title = folder_title
        self.created = False
        self._timer = Timer()
        self._error: Optional[UploadError] = None

    def start_timer(self) -> None:
        self._timer.start()

    def stop_timer(self) -> None:
        self._timer.stop()

    @property
    def elapsed_time(self) -> int:
        return self._timer.elapsed

    @property
    def error(self) -> Optional[UploadError]:
        return self._error

    def set_error(self, error: Any) -> None:
        self._error = UploadError.from_error(error)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "folderPath": self.folder_path,
            "folderTitle": self.folder_title,
            "created": self.created,
            "elapsedTime": self.elapsed_time,
            "retryErrors": [e.to_dict() for e in self._retry_errors],
        }
        if self._error:
            data["error"] = self._error.to_dict()
        return data


class UploadResult:
    """Aggregate result of one upload invocation."""

    def __init__(self):
        self._timer = Timer()
        self._init_time = 0
        self._total_files = 0
        self._file_results: Dict[str, FileUploadResult] = {}
        self._directory_results: List[CreateDirectoryResult] = []
        self._upload_errors: List[UploadError] = []

    def start_timer(self) -> None:
        self._timer.start()

    def stop_timer(self) -> None:
        self._timer.stop()

    @property
    def elapsed_time(self) -> int:
        return self._timer.elapsed

    @property
    def init_time(self) -> int:
        return self._init_time

    def add_init_time(self, elapsed_ms: int) -> None:
        self._init_time += elapsed_ms

    @property
    def total_files(self) -> int:
        return self._total_files

    def add_total_files(self, count: int) -> None:
        self._total_files += count

    def add_file_upload_result(self, file_result: FileUploadResult) -> None:
        self._file_results[file_result.target_file_path] = file_result

    def get_file_upload_result(self, target_file_path: str) -> Optional[FileUploadResult]:
        return self._file_results.get(target_file_path)

    @property
    def file_upload_results(self) -> List[FileUploadResult]:
        return list(self._file_results.values())

    def add_create_directory_result(self, directory_result: CreateDirectoryResult) -> None:
        self._directory_results.append(directory_result)

    @property
    def create_directory_results(self) -> List[CreateDirectoryResult]:
        return list(self._directory_results)

    def add_upload_error(self, error: Any) -> None:
        self._upload_errors.append(UploadError.from_error(error))

    def get_upload_errors(self) -> List[UploadError]:
        return list(self._upload_errors)

    def _successful(self) -> List[FileUploadResult]:
        return [r for r in self._file_results.values() if r.is_successful()]

    @property
    def total_completed_files(self) -> int:
        return len(self._successful())

    @property
    def total_cancelled_files(self) -> int:
        return sum(1 for r in self._file_results.values() if r.cancelled)

    @property
    def total_size(self) -> int:
        return sum(r.file_size for r in self._successful())

    @property
    def average_file_size(self) -> int:
        return _average([r.file_size for r in self._successful()])

    @property
    def average_file_upload_time(self) -> int:
        return _average([r.total_upload_time for r in self._successful()])

    @property
    def average_part_upload_time(self) -> int:
        return _average([r.average_part_time for r in self._successful()])

    @property
    def average_complete_time(self) -> int:
        return _average([r.complete_time for r in self._successful()])

    @property
    def ninety_percentile_total(self) -> int:
        """90th percentile of upload plus complete time over successful files."""
        totals = sorted(r.total_upload_time + r.complete_time for r in self._successful())
        if not totals:
            return 0
        index = max(round(len(totals) * 0.9) - 1, 0)
        return totals[index]

    def get_errors(self) -> List[UploadError]:
        errors: List[UploadError] = []
        for file_result in self._file_results.values():
            errors.extend(
                e for e in file_result.get_errors() if e.code != ErrorCode.USER_CANCELLED
            )
        errors.extend(
            d.error
            for d in self._directory_results
            if d.error and d.error.code != ErrorCode.USER_CANCELLED
        )
        return errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalFiles": self._total_files,
            "totalTime": self.elapsed_time,
            "totalCompleted": self.total_completed_files,
            "totalCancelled": self.total_cancelled_files,
            "initSpent": self._init_time,
            "totalFileSize": self.total_size,
            "totalFileSizeStr": decimal(self.total_size),
            "avgFileSize": self.average_file_size,
            "avgFileSizeStr": decimal(self.average_file_size),
            "avgPutSpent": self.average_part_upload_time,
            "avgCompleteSpent": self.average_complete_time,
            "avgFileUploadSpent": self.average_file_upload_time,
            "ninetyPercentileTotal": self.ninety_percentile_total,
            "detailedResult": [r.to_dict() for r in self._file_results.values()],
            "createdFolders": [d.to_dict() for d in self._directory_results],
            "errors": [e.to_dict() for e in self.get_errors()],
            "uploadErrors": [e.to_dict() for e in self._upload_errors],
        }
