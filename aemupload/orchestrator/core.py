"""
Main upload orchestrator.

Entry points for uploading a list of in-memory or on-disk files straight to a
remote folder, and for uploading local files and directory trees.
"""
import asyncio
import logging
import stat
from pathlib import Path
from typing import Callable, Optional, Sequence, Union
from urllib.parse import unquote

import httpx

from aemupload.config import FileSystemUploadConfig, UploadConfig
from aemupload.errors import ErrorCode, UploadError
from aemupload.orchestrator.folders import FolderCreator
from aemupload.orchestrator.item_tree import UploadItemTree
from aemupload.orchestrator.process import DirectBinaryUploadProcess
from aemupload.results import UploadResult
from aemupload.services.api_client import HTTPAPIClient
from aemupload.services.names import NameCleanser
from aemupload.services.walker import walk_directory
from aemupload.utils.events import EventEmitter, EventName, UploadEvent

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    """
    Main orchestrator for uploads.

    Listeners registered with ``on`` (or the ``on_*`` helpers) receive a
    FileEvent or FolderEvent for every lifecycle transition of every upload
    started through this orchestrator.

    Usage:
        orchestrator = UploadOrchestrator()
        orchestrator.on_file_end(lambda event: print(event.target_file))
        result = await orchestrator.upload_paths(config, ["/photos"])
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport
        self._events = EventEmitter()

    def on(self, event_name: EventName, callback: Callable) -> "UploadOrchestrator":
        self._events.on(event_name, callback)
        return self

    def off(self, event_name: EventName, callback: Callable) -> "UploadOrchestrator":
        self._events.off(event_name, callback)
        return self

    def on_file_start(self, callback: Callable) -> "UploadOrchestrator":
        return self.on(UploadEvent.FILE_START, callback)

    def on_file_progress(self, callback: Callable) -> "UploadOrchestrator":
        return self.on(UploadEvent.FILE_PROGRESS, callback)

    def on_file_end(self, callback: Callable) -> "UploadOrchestrator":
        return self.on(UploadEvent.FILE_END, callback)

    def on_file_error(self, callback: Callable) -> "UploadOrchestrator":
        return self.on(UploadEvent.FILE_ERROR, callback)

    def on_file_cancelled(self, callback: Callable) -> "UploadOrchestrator":
        return self.on(UploadEvent.FILE_CANCELLED, callback)

    def on_folder_created(self, callback: Callable) -> "UploadOrchestrator":
        return self.on(UploadEvent.FOLDER_CREATED, callback)

    async def upload_files(self, config: UploadConfig) -> UploadResult:
        """
        Upload ``config.upload_files`` into the folder at ``config.url``.

        The target folder must already exist. Raises UploadError if the
        initiate call for the batch fails; per-file failures are recorded on
        the returned result.
        """
        if not config.upload_files:
            raise UploadError("no files were provided for upload", ErrorCode.INVALID_OPTIONS)

        upload_result = UploadResult()
        upload_result.start_timer()
        try:
            async with HTTPAPIClient(config, self._transport) as client:
                process = DirectBinaryUploadProcess(
                    config, client, self._events, upload_result, fail_fast=True
                )
                await process.upload(config.upload_files)
        finally:
            upload_result.stop_timer()

        self._log_summary(upload_result)
        return upload_result

    async def upload_paths(
        self,
        config: FileSystemUploadConfig,
        local_paths: Sequence[Union[str, Path]],
    ) -> UploadResult:
        """
        Upload local files and directories into ``config.url``.

        Files are uploaded flat into the target folder. Directories are
        uploaded flat as well unless ``config.deep_upload`` is set, in which
        case the directory and its descendants are recreated remotely.
        """
        if not local_paths:
            raise UploadError("no local paths were provided for upload", ErrorCode.INVALID_OPTIONS)

        upload_result = UploadResult()
        upload_result.start_timer()

        cleanser = NameCleanser(
            config.folder_node_name_processor,
            config.asset_node_name_processor,
            config.invalid_character_replace_value,
        )
        tree = UploadItemTree(config, cleanser)
        try:
            await self._build_tree(config, tree, local_paths, upload_result)
        except UploadError:
            upload_result.stop_timer()
            raise

        logger.info(
            f"Prepared {len(tree.assets)} files ({tree.total_size} bytes) "
            f"in {len(tree.directories)} directories"
        )

        try:
            async with HTTPAPIClient(config, self._transport) as client:
                folders = FolderCreator(config, client, self._events, upload_result)
                target_name = unquote(config.url.rsplit("/", 1)[-1])
                folders.register(config.url, target_name)
                for directory in tree.directories:
                    folders.register(directory.remote_url, directory.remote_name, directory.title)

                process = DirectBinaryUploadProcess(
                    config, client, self._events, upload_result, folder_creator=folders
                )
                await process.upload([asset.to_upload_file() for asset in tree.assets])
        finally:
            upload_result.stop_timer()

        self._log_summary(upload_result)
        return upload_result

    async def _build_tree(
        self,
        config: FileSystemUploadConfig,
        tree: UploadItemTree,
        local_paths: Sequence[Union[str, Path]],
        upload_result: UploadResult,
    ) -> None:
        for raw_path in local_paths:
            path = Path(raw_path).expanduser().resolve()
            try:
                st = await asyncio.to_thread(path.stat)
            except OSError as e:
                logger.warning(f"Skipping {path}, it cannot be read: {e}")
                upload_result.add_upload_error(
                    UploadError(f"{path} does not exist: {e}", ErrorCode.NOT_FOUND)
                )
                continue

            if not stat.S_ISDIR(st.st_mode):
                await tree.add_asset(path, st.st_size)
                continue

            walked = await walk_directory(path, config.max_paths, deep=config.deep_upload)
            for error in walked.errors:
                upload_result.add_upload_error(error)

            if not config.deep_upload:
                for walked_file in walked.files:
                    await tree.add_asset(walked_file.path, walked_file.size)
                continue

            if not walked.files:
                logger.info(f"Skipping {path}, it contains no files")
                continue
            root = path.parent
            await tree.add_directory(root, path)
            for directory in walked.directories:
                await tree.add_directory(root, directory)
            for walked_file in walked.files:
                await tree.add_asset(walked_file.path, walked_file.size, root=root)

    def _log_summary(self, upload_result: UploadResult) -> None:
        errors = upload_result.get_errors()
        logger.info(
            f"Upload finished in {upload_result.elapsed_time}ms: "
            f"{upload_result.total_completed_files}/{upload_result.total_files} files completed, "
            f"{upload_result.total_cancelled_files} cancelled, {len(errors)} errors"
        )
