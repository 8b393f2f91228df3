from typing import AsyncIterator, List
import logging
import time
from aemupload.config import UploadConfig
from aemupload.errors import UploadError
from aemupload.orchestrator.models import InitResponseFilePart
from aemupload.orchestrator.queue import ConcurrentQueue
from aemupload.orchestrator.transfer_handler import FileTransferHandler
from aemupload.protocols import IHttpClient
from aemupload.results import PartUploadResult
logger = logging.getLogger(__name__)


class PartUploader:
    """
    Uploads the parts of one or more files.

    Parts go through the shared part queue when the upload is concurrent,
    otherwise they are sent one at a time. Every part reports to the
    transfer handler exactly once when it ends, whether it was sent,
    skipped or failed.
    """

    def __init__(self, config: UploadConfig, http_client: IHttpClient, queue: ConcurrentQueue):
        self._config = config
        self._http_client = http_client
        self._queue = queue

    async def upload_parts(
        self,
        parts: List[InitResponseFilePart],
        transfer_handler: FileTransferHandler,
    ) -> None:
        async def _worker(part: InitResponseFilePart):
            await self.process_part(part, transfer_handler)

        if self._config.is_concurrent:
            await self._queue.push_all(parts, _worker)
        else:
            for part in parts:
                await _worker(part)

    async def process_part(
        self,
        part: InitResponseFilePart,
        transfer_handler: FileTransferHandler,
    ) -> None:
        part_result = None
        try:
            if not await transfer_handler.part_transfer_started(part):
                logger.debug(
                    f"Skipping part [{part.start}, {part.end}) of {part.target_file_path}"
                )
                return
            part_result = await self.upload_part(part, transfer_handler)
        finally:
            await transfer_handler.part_transfer_ended(part, part_result)

    async def upload_part(
        self,
        part: InitResponseFilePart,
        transfer_handler: FileTransferHandler,
    ) -> PartUploadResult:
        """PUT one byte range; failures are recorded on the returned result."""
        part_result = PartUploadResult(part.start, part.end, part.url, part.file.file_name)
        headers = dict(part.file.upload_file.part_headers)
        headers["Content-Length"] = str(part.size)

        # called again for every retry, so each attempt counts from zero
        async def _content() -> AsyncIterator[bytes]:
            sent = 0
            async for chunk in part.stream():
                yield chunk
                sent += len(chunk)
                await transfer_handler.part_transfer_progress(part, sent)

        started = time.monotonic()
        try:
            await self._http_client.submit(
                "PUT",
                part.url,
                content_factory=_content,
                headers=headers,
                cancel_id=part.target_file_path,
                result=part_result,
            )
        except Exception as e:
            error = UploadError.from_error(e, f"uploading part [{part.start}, {part.end})")
            logger.warning(f"Part upload of {part.target_file_path} failed: {error.message}")
            part_result.set_error(error)
        part_result.upload_time = int((time.monotonic() - started) * 1000)
        return part_result
