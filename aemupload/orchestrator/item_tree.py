"""
Mapping of local paths to remote nodes.

Directories keep a weak reference to their parent; the remote path and URL
of any item are computed by walking those parent links up to the target
folder.
"""
import logging
import weakref
from pathlib import Path
from typing import Dict, List, Optional, Union
from urllib.parse import quote

from aemupload.config import FileSystemUploadConfig
from aemupload.errors import ErrorCode, UploadError
from aemupload.models import UploadFile
from aemupload.services.names import NameCleanser

logger = logging.getLogger(__name__)


class UploadDirectory:
    """A local directory and the remote folder it maps to."""

    def __init__(
        self,
        config: FileSystemUploadConfig,
        local_path: Path,
        remote_name: str,
        parent: Optional["UploadDirectory"] = None,
    ):
        self._config = config
        self.local_path = Path(local_path)
        self.remote_name = remote_name
        self.title = self.local_path.name
        self._parent = weakref.ref(parent) if parent is not None else None

    @property
    def parent(self) -> Optional["UploadDirectory"]:
        return self._parent() if self._parent is not None else None

    def _names(self) -> List[str]:
        names = []
        node = self
        while node is not None:
            names.append(node.remote_name)
            node = node.parent
        return list(reversed(names))

    @property
    def remote_path(self) -> str:
        return "/".join([self._config.target_folder_path.rstrip("/")] + self._names())

    @property
    def remote_url(self) -> str:
        return "/".join([self._config.url] + [quote(n, safe="") for n in self._names()])

    @property
    def parent_remote_url(self) -> str:
        parent = self.parent
        return parent.remote_url if parent is not None else self._config.url

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.local_path)!r} -> {self.remote_path!r})"


class UploadAsset(UploadDirectory):
    """A local file and the remote asset it maps to."""

    def __init__(
        self,
        config: FileSystemUploadConfig,
        local_path: Path,
        remote_name: str,
        size: int,
        parent: Optional[UploadDirectory] = None,
    ):
        super().__init__(config, local_path, remote_name, parent)
        self.size = size

    def to_upload_file(self) -> UploadFile:
        config = self._config
        return UploadFile(
            file_size=self.size,
            file_url=self.remote_url,
            file_path=str(self.local_path),
            create_version=config.create_version,
            version_label=config.version_label,
            version_comment=config.version_comment,
            replace=config.replace,
        )


class UploadItemTree:
    """
    Builds the remote folders to create and the assets to upload.

    Directories are added under a declared local root; assets are added
    either under a root (nested in the matching remote folder) or without
    one (flat in the target folder).
    """

    def __init__(self, config: FileSystemUploadConfig, cleanser: NameCleanser):
        self._config = config
        self._cleanser = cleanser
        # owns every directory; assets and children only hold weak references
        self._directories: Dict[Path, UploadDirectory] = {}
        self._assets: Dict[str, UploadAsset] = {}

    @property
    def directories(self) -> List[UploadDirectory]:
        return list(self._directories.values())

    @property
    def assets(self) -> List[UploadAsset]:
        return list(self._assets.values())

    @property
    def total_size(self) -> int:
        return sum(a.size for a in self._assets.values())

    def _relative_parts(self, root: Path, local_path: Path):
        try:
            return local_path.relative_to(root).parts
        except ValueError:
            raise UploadError(
                f"{local_path} is not inside upload root {root}", ErrorCode.INVALID_OPTIONS
            ) from None

    async def add_directory(self, root: Union[str, Path], local_path: Union[str, Path]) -> UploadDirectory:
        """Add ``local_path`` (and any missing ancestors up to ``root``)."""
        root = Path(root)
        local_path = Path(local_path)
        parts = self._relative_parts(root, local_path)

        parent: Optional[UploadDirectory] = None
        current = root
        for part in parts:
            current = current / part
            directory = self._directories.get(current)
            if directory is None:
                remote_name = await self._cleanser.cleanse_folder_name(part)
                directory = UploadDirectory(self._config, current, remote_name, parent)
                self._directories[current] = directory
            parent = directory

        if parent is None:
            raise UploadError(
                f"{local_path} is the upload root itself", ErrorCode.INVALID_OPTIONS
            )
        return parent

    async def add_asset(
        self,
        local_path: Union[str, Path],
        size: int,
        root: Optional[Union[str, Path]] = None,
    ) -> UploadAsset:
        local_path = Path(local_path)
        parent = None
        if root is not None:
            root = Path(root)
            self._relative_parts(root, local_path)
            if local_path.parent != root:
                parent = await self.add_directory(root, local_path.parent)

        remote_name = await self._cleanser.cleanse_asset_name(local_path.name)
        asset = UploadAsset(self._config, local_path, remote_name, size, parent)

        existing = self._assets.get(asset.remote_url)
        if existing is not None:
            logger.debug(f"{local_path} maps to {asset.remote_path} which is already queued")
            return existing

        if len(self._assets) >= self._config.max_upload_files:
            raise UploadError(
                f"more than {self._config.max_upload_files} files selected for upload",
                ErrorCode.TOO_LARGE,
            )
        self._assets[asset.remote_url] = asset
        return asset
