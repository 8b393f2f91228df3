"""
Direct binary upload process.

Groups files by remote folder, initiates each folder batch, streams the
parts to storage and completes every file whose parts all arrived.
"""
from typing import Dict, List, Optional, Sequence, Tuple
import logging

from aemupload.config import UploadConfig
from aemupload.errors import ErrorCode, UploadError
from aemupload.models import UploadFile
from aemupload.orchestrator.folders import FolderCreator
from aemupload.orchestrator.models import InitResponse, InitResponseFile, InitResponseFilePart
from aemupload.orchestrator.part_uploader import PartUploader
from aemupload.orchestrator.queue import ConcurrentQueue
from aemupload.orchestrator.transfer_handler import FileTransferHandler
from aemupload.protocols import IHttpClient
from aemupload.results import FileUploadResult, UploadResult
from aemupload.utils.events import EventEmitter, FileEvent, UploadEvent

logger = logging.getLogger(__name__)


class DirectBinaryUploadProcess:
    """
    Runs initiate, part transfer and complete for a set of files.

    Implements ITransferHooks: the transfer handler calls back into this
    class once per file lifecycle transition and the hooks turn those into
    public events. ``fail_fast`` makes an initiate failure raise instead of
    being recorded against the batch's files.
    """

    def __init__(
        self,
        config: UploadConfig,
        http_client: IHttpClient,
        events: EventEmitter,
        upload_result: UploadResult,
        folder_creator: Optional[FolderCreator] = None,
        fail_fast: bool = False,
    ):
        self._config = config
        self._http_client = http_client
        self._events = events
        self._upload_result = upload_result
        self._folder_creator = folder_creator
        self._fail_fast = fail_fast
        self._batch_queue = ConcurrentQueue(config.max_concurrent)
        self._part_queue = ConcurrentQueue(config.max_concurrent)
        self._part_uploader = PartUploader(config, http_client, self._part_queue)
        self._transfer_handler = FileTransferHandler(
            self, http_client, upload_result, config.progress_delay
        )
        self._fatal: List[UploadError] = []

    @property
    def transfer_handler(self) -> FileTransferHandler:
        return self._transfer_handler

    async def upload(self, upload_files: Sequence[UploadFile]) -> UploadResult:
        files = [f.resolve(self._config.url) for f in upload_files]
        self._upload_result.add_total_files(len(files))

        batches: Dict[str, List[UploadFile]] = {}
        for upload_file in files:
            batches.setdefault(upload_file.folder_url, []).append(upload_file)

        logger.info(f"Uploading {len(files)} files into {len(batches)} folders")

        if self._config.is_concurrent and len(batches) > 1:
            await self._batch_queue.push_all(list(batches.items()), self._run_batch)
        else:
            for batch in batches.items():
                await self._run_batch(batch)

        if self._fatal:
            raise self._fatal[0]
        return self._upload_result

    async def _run_batch(self, batch: Tuple[str, List[UploadFile]]) -> None:
        folder_url, files = batch
        try:
            await self._process_batch(folder_url, files)
        except UploadError as e:
            self._fatal.append(e)

    async def _process_batch(self, folder_url: str, files: List[UploadFile]) -> None:
        if self._folder_creator is not None:
            folder_error = await self._folder_creator.ensure(folder_url)
            if folder_error is not None:
                for upload_file in files:
                    await self._reject(upload_file, folder_error)
                return

        pending = []
        for upload_file in files:
            if upload_file.file_size == 0:
                await self._reject(
                    upload_file,
                    UploadError(
                        f"{upload_file.target_file_path} is empty, zero byte files cannot be uploaded",
                        ErrorCode.INVALID_OPTIONS,
                    ),
                )
            else:
                pending.append(upload_file)
        if not pending:
            return

        init_response = await self._initiate(folder_url, pending)
        if init_response is None:
            return

        parts: List[InitResponseFilePart] = []
        for file_info in init_response.files:
            try:
                parts.extend(file_info.get_parts())
            except UploadError as e:
                logger.error(f"Unable to split {file_info.target_file_path} into parts: {e.message}")
                await self._reject(file_info.upload_file, e, file_info.mime_type)

        await self._part_uploader.upload_parts(parts, self._transfer_handler)

    async def _initiate(self, folder_url: str, files: List[UploadFile]) -> Optional[InitResponse]:
        url = f"{folder_url}.initiateUpload.json"
        data = {
            "fileName": [f.name for f in files],
            "fileSize": [str(f.file_size) for f in files],
        }
        try:
            response = await self._http_client.submit(
                "POST", url, data=data, headers=self._config.headers
            )
            self._upload_result.add_init_time(response.elapsed_time)
            return InitResponse(files, response.json(), self._config.url_prefix)
        except UploadError as e:
            if e.code == ErrorCode.USER_CANCELLED:
                logger.info(f"Initiate upload in {folder_url} was cancelled")
            else:
                logger.error(f"Initiate upload of {len(files)} files in {folder_url} failed: {e.message}")
                if self._fail_fast:
                    raise
            for upload_file in files:
                await self._reject(upload_file, e)
            return None

    async def _reject(
        self,
        upload_file: UploadFile,
        error: UploadError,
        mime_type: Optional[str] = None,
    ) -> None:
        """
        End a file that never reached the transfer stage.

        The file is reported as cancelled rather than failed when the
        controller stopped it, so cancelled uploads never show up as errors.
        """
        file_result = FileUploadResult(
            upload_file.name,
            upload_file.file_size,
            upload_file.target_file_path,
            mime_type,
        )
        self._upload_result.add_file_upload_result(file_result)
        event = FileEvent(
            file_name=upload_file.name,
            file_size=upload_file.file_size,
            target_folder=upload_file.target_folder_path,
            target_file=upload_file.target_file_path,
            mime_type=mime_type,
        )

        if (
            error.code == ErrorCode.USER_CANCELLED
            or self._http_client.is_cancelled(upload_file.target_file_path)
        ):
            file_result.set_cancelled()
            await self._events.emit(UploadEvent.FILE_CANCELLED, event)
            return

        file_result.set_error(error)
        event.errors = [error.to_dict()]
        await self._events.emit(UploadEvent.FILE_ERROR, event)

    async def on_started(self, file_result: FileUploadResult, file_info: InitResponseFile) -> None:
        logger.debug(f"Started {file_info.target_file_path} ({file_info.part_count} parts)")
        await self._events.emit(UploadEvent.FILE_START, file_info.event_data())

    async def on_progress(
        self,
        file_result: FileUploadResult,
        file_info: InitResponseFile,
        transferred: int,
    ) -> None:
        await self._events.emit(UploadEvent.FILE_PROGRESS, file_info.event_data(transferred))

    async def on_error(self, file_result: FileUploadResult, file_info: InitResponseFile) -> None:
        await self._events.emit(
            UploadEvent.FILE_ERROR,
            file_info.event_data(file_result.transferred, file_result.get_errors()),
        )

    async def on_cancelled(self, file_result: FileUploadResult, file_info: InitResponseFile) -> None:
        await self._events.emit(
            UploadEvent.FILE_CANCELLED, file_info.event_data(file_result.transferred)
        )

    async def on_succeeded(self, file_result: FileUploadResult, file_info: InitResponseFile) -> None:
        upload_file = file_info.upload_file
        data = {
            "fileName": file_info.file_name,
            "uploadToken": file_info.upload_token,
            "uploadDuration": str(file_result.total_upload_time),
        }
        if file_info.mime_type:
            data["mimeType"] = file_info.mime_type
        if upload_file.create_version:
            data["createVersion"] = "true"
            if upload_file.version_label:
                data["versionLabel"] = upload_file.version_label
            if upload_file.version_comment:
                data["versionComment"] = upload_file.version_comment
        elif upload_file.replace:
            data["replace"] = "true"

        try:
            response = await self._http_client.submit(
                "POST",
                file_info.complete_uri,
                data=data,
                headers=self._config.headers,
                cancel_id=file_info.target_file_path,
                result=file_result,
            )
            file_result.complete_time = response.elapsed_time
        except UploadError as e:
            if e.code == ErrorCode.USER_CANCELLED:
                file_result.set_cancelled()
                await self.on_cancelled(file_result, file_info)
                return
            logger.error(f"Completing {file_info.target_file_path} failed: {e.message}")
            file_result.set_complete_error(e)
            await self.on_error(file_result, file_info)
            return

        logger.info(
            f"Uploaded {file_info.target_file_path} in "
            f"{file_result.total_upload_time + file_result.complete_time}ms"
        )
        await self._events.emit(
            UploadEvent.FILE_END, file_info.event_data(file_info.file_size)
        )
