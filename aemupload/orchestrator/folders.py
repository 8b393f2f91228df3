"""
Remote folder creation.

Each registered folder is created at most once per upload, even when many
file batches ask for it concurrently. Parents are always ensured before
their children.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import unquote, urlsplit

from aemupload.config import UploadConfig
from aemupload.errors import ErrorCode, UploadError
from aemupload.protocols import IHttpClient
from aemupload.results import CreateDirectoryResult, UploadResult
from aemupload.utils.events import EventEmitter, FolderEvent, UploadEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FolderSpec:
    url: str
    name: str
    title: str

    @property
    def parent_url(self) -> str:
        return self.url.rsplit("/", 1)[0]

    @property
    def path(self) -> str:
        return unquote(urlsplit(self.url).path)

    @property
    def parent_path(self) -> str:
        return unquote(urlsplit(self.parent_url).path)


class FolderCreator:
    """Ensures remote folders exist, creating each one at most once."""

    def __init__(
        self,
        config: UploadConfig,
        http_client: IHttpClient,
        events: EventEmitter,
        upload_result: UploadResult,
    ):
        self._config = config
        self._http_client = http_client
        self._events = events
        self._upload_result = upload_result
        self._folders: Dict[str, FolderSpec] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._outcomes: Dict[str, Optional[UploadError]] = {}

    def register(self, url: str, name: str, title: Optional[str] = None) -> None:
        url = url.rstrip("/")
        if url not in self._folders:
            self._folders[url] = FolderSpec(url, name, title or name)

    async def ensure(self, url: str) -> Optional[UploadError]:
        """
        Make sure the folder at ``url`` exists.

        Returns the error that prevented creation, or None. Unregistered
        folders are assumed to exist already.
        """
        url = url.rstrip("/")
        folder = self._folders.get(url)
        if folder is None:
            return None

        if folder.parent_url in self._folders:
            parent_error = await self.ensure(folder.parent_url)
            if parent_error is not None:
                return parent_error

        lock = self._locks.setdefault(url, asyncio.Lock())
        async with lock:
            if url not in self._outcomes:
                self._outcomes[url] = await self._create(folder)
        return self._outcomes[url]

    async def _create(self, folder: FolderSpec) -> Optional[UploadError]:
        result = CreateDirectoryResult(folder.path, folder.title)
        result.start_timer()
        try:
            if await self._exists(folder, result):
                logger.debug(f"Folder {folder.path} already exists")
                return None

            await self._http_client.submit(
                "POST",
                folder.parent_url,
                data={
                    ":name": folder.name,
                    "./jcr:content/jcr:title": folder.title,
                    "./jcr:primaryType": "sling:Folder",
                    "./jcr:content/jcr:primaryType": "nt:unstructured",
                    "_charset_": "UTF-8",
                },
                headers=self._config.headers,
                result=result,
            )
            result.created = True
            logger.info(f"Created folder {folder.path}")
        except UploadError as e:
            if e.code == ErrorCode.ALREADY_EXISTS:
                logger.debug(f"Folder {folder.path} was created concurrently")
                return None
            if e.code == ErrorCode.USER_CANCELLED:
                logger.info(f"Creation of folder {folder.path} was cancelled")
            else:
                logger.error(f"Unable to create folder {folder.path}: {e.message}")
            result.set_error(e)
            return e
        finally:
            result.stop_timer()
            self._upload_result.add_create_directory_result(result)

        await self._events.emit(
            UploadEvent.FOLDER_CREATED,
            FolderEvent(
                folder_name=folder.name,
                folder_title=folder.title,
                target_parent=folder.parent_path,
                target_folder=folder.path,
            ),
        )
        return None

    async def _exists(self, folder: FolderSpec, result: CreateDirectoryResult) -> bool:
        try:
            await self._http_client.submit(
                "HEAD", folder.url, headers=self._config.headers, result=result
            )
            return True
        except UploadError as e:
            if e.code == ErrorCode.NOT_FOUND:
                return False
            raise
