"""
Per-file transfer state machine.

Parts of many files start, progress and end in arbitrary order. The handler
folds those part signals into exactly one start notification and exactly one
terminal notification (succeeded, error or cancelled) per file, with
throttled progress in between.
"""
from typing import Dict, Optional
import logging
import time
from aemupload.orchestrator.models import InitResponseFile, InitResponseFilePart
from aemupload.protocols import IHttpClient, ITransferHooks
from aemupload.results import FileUploadResult, PartUploadResult, UploadResult
logger = logging.getLogger(__name__)


class FileTransferHandler:
    """Converts part level signals into file level lifecycle hooks."""

    def __init__(
        self,
        hooks: ITransferHooks,
        http_client: IHttpClient,
        upload_result: UploadResult,
        progress_delay: float = 0.5,
    ):
        self._hooks = hooks
        self._http_client = http_client
        self._upload_result = upload_result
        self._progress_delay = progress_delay
        self._results: Dict[str, FileUploadResult] = {}
        self._ended: Dict[str, bool] = {}
        self._part_bytes: Dict[str, Dict[int, int]] = {}
        self._last_progress: Dict[str, float] = {}

    def is_ended(self, file_info: InitResponseFile) -> bool:
        return self._ended.get(file_info.target_file_path, False)

    def _is_cancelled(self, file_info: InitResponseFile) -> bool:
        return self._http_client.is_cancelled(file_info.target_file_path)

    async def part_transfer_started(self, part: InitResponseFilePart) -> bool:
        """
        Register that ``part`` is about to transfer.

        Returns True when the part should actually be sent, False when the
        file was cancelled, already failed or already ended.
        """
        file_info = part.file
        key = file_info.target_file_path

        file_result = self._results.get(key)
        if file_result is None:
            file_result = FileUploadResult.from_file_info(file_info)
            self._results[key] = file_result
            self._upload_result.add_file_upload_result(file_result)
            file_result.start_timer()

            if self._is_cancelled(file_info):
                logger.debug(f"{key} was cancelled before its first part started")
            else:
                await self._hooks.on_started(file_result, file_info)

        if self._ended.get(key):
            return False
        return not self._is_cancelled(file_info) and not file_result.has_errors()

    async def part_transfer_progress(self, part: InitResponseFilePart, part_transferred: int) -> None:
        """
        Record that the current attempt of ``part`` has sent ``part_transferred`` bytes.

        A retried part starts again from zero, so the file total only counts
        each part's latest attempt.
        """
        file_info = part.file
        key = file_info.target_file_path
        file_result = self._results.get(key)
        if file_result is None or self._ended.get(key):
            return

        part_bytes = self._part_bytes.setdefault(key, {})
        part_bytes[part.start] = min(part_transferred, part.size)
        transferred = min(sum(part_bytes.values()), file_info.file_size)

        now = time.monotonic()
        last = self._last_progress.get(key)
        if last is not None and now - last < self._progress_delay:
            return
        self._last_progress[key] = now
        await self._hooks.on_progress(file_result, file_info, transferred)

    async def part_transfer_ended(
        self,
        part: InitResponseFilePart,
        part_result: Optional[PartUploadResult] = None,
    ) -> None:
        file_info = part.file
        key = file_info.target_file_path
        file_result = self._results.get(key)
        if file_result is None or self._ended.get(key):
            return

        if part_result is not None:
            file_result.add_part_result(part_result)

        if self._is_cancelled(file_info):
            self._ended[key] = True
            file_result.stop_timer()
            file_result.set_cancelled()
            logger.info(f"Upload of {key} was cancelled")
            await self._hooks.on_cancelled(file_result, file_info)
        elif file_result.has_errors():
            self._ended[key] = True
            file_result.stop_timer()
            logger.warning(f"Upload of {key} failed: {file_result.get_errors()[0].message}")
            await self._hooks.on_error(file_result, file_info)
        elif file_result.part_count >= file_info.part_count:
            self._ended[key] = True
            file_result.stop_timer()
            logger.debug(f"All {file_result.part_count} parts of {key} transferred")
            await self._hooks.on_succeeded(file_result, file_info)
