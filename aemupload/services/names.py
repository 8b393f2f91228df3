"""
Node name cleansing.

Maps local file and folder names to names that are valid as repository
nodes. A caller supplied processor runs first, then the characters that are
never allowed in a node name are replaced.
"""
import inspect
import os
import re
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from ..errors import ErrorCode, UploadError

DEFAULT_REPLACE_VALUE = "-"

# never valid in any node name
INVALID_CHARACTERS = re.compile(r'[/:[\]|*\\]')
# additionally replaced in folder names by the default folder processor
INVALID_FOLDER_CHARACTERS = re.compile(r'[.%;#+?^{}"&]')
# additionally replaced in asset names by the default asset processor
INVALID_ASSET_CHARACTERS = re.compile(r'[#%{}?&]')

NameProcessor = Callable[[str], Union[str, Awaitable[str]]]


class NodeKind(Enum):
    FOLDER = "folder"
    ASSET = "asset"


def validate_replace_value(value: str) -> None:
    """Raise INVALID_OPTIONS unless ``value`` is one allowed character."""
    if not isinstance(value, str) or len(value) != 1:
        raise UploadError(
            f"invalid character replace value must be a single character, got {value!r}",
            ErrorCode.INVALID_OPTIONS,
        )
    for pattern in (INVALID_CHARACTERS, INVALID_FOLDER_CHARACTERS, INVALID_ASSET_CHARACTERS):
        if pattern.search(value):
            raise UploadError(
                f"invalid character replace value {value!r} is itself a disallowed character",
                ErrorCode.INVALID_OPTIONS,
            )


class NameCleanser:
    """Turns local names into remote node names."""

    def __init__(
        self,
        folder_processor: Optional[NameProcessor] = None,
        asset_processor: Optional[NameProcessor] = None,
        replace_value: str = DEFAULT_REPLACE_VALUE,
    ):
        validate_replace_value(replace_value)
        self._folder_processor = folder_processor or self._default_folder_processor
        self._asset_processor = asset_processor or self._default_asset_processor
        self._replace_value = replace_value

    @property
    def replace_value(self) -> str:
        return self._replace_value

    def _default_folder_processor(self, name: str) -> str:
        return INVALID_FOLDER_CHARACTERS.sub(self._replace_value, name.lower())

    def _default_asset_processor(self, name: str) -> str:
        return INVALID_ASSET_CHARACTERS.sub(self._replace_value, name)

    async def _apply(self, processor: NameProcessor, name: str) -> str:
        result = processor(name)
        if inspect.isawaitable(result):
            result = await result
        return INVALID_CHARACTERS.sub(self._replace_value, str(result))

    async def cleanse(self, kind: NodeKind, raw_name: str) -> str:
        if kind is NodeKind.FOLDER:
            return await self._apply(self._folder_processor, raw_name)

        base, ext = os.path.splitext(raw_name)
        return await self._apply(self._asset_processor, base) + ext

    async def cleanse_folder_name(self, raw_name: str) -> str:
        return await self.cleanse(NodeKind.FOLDER, raw_name)

    async def cleanse_asset_name(self, raw_name: str) -> str:
        return await self.cleanse(NodeKind.ASSET, raw_name)
