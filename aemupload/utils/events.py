from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union
import asyncio
import logging
logger = logging.getLogger(__name__)


class UploadEvent(str, Enum):
    """Public event names emitted during an upload."""
    FILE_START = "filestart"
    FILE_PROGRESS = "fileprogress"
    FILE_END = "fileend"
    FILE_ERROR = "fileerror"
    FILE_CANCELLED = "filecancelled"
    FOLDER_CREATED = "foldercreated"


@dataclass
class FileEvent:
    """Payload of every file level event."""
    file_name: str
    file_size: int
    target_folder: str
    target_file: str
    mime_type: Optional[str] = None
    transferred: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        data = {
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "targetFolder": self.target_folder,
            "targetFile": self.target_file,
            "mimeType": self.mime_type,
        }
        if self.transferred:
            data["transferred"] = self.transferred
        if self.errors:
            data["errors"] = list(self.errors)
        return data


@dataclass
class FolderEvent:
    """Payload of ``foldercreated``."""
    folder_name: str
    folder_title: str
    target_parent: str
    target_folder: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "folderName": self.folder_name,
            "folderTitle": self.folder_title,
            "targetParent": self.target_parent,
            "targetFolder": self.target_folder,
        }


EventName = Union[UploadEvent, str]


def _key(event_name: EventName) -> str:
    return event_name.value if isinstance(event_name, UploadEvent) else event_name


class EventEmitter:
    """Simple event emitter for upload events."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}

    def on(self, event_name: EventName, callback: Callable):
        """Subscribe to an event."""
        listeners = self._listeners.setdefault(_key(event_name), [])
        if callback not in listeners:
            listeners.append(callback)

    def off(self, event_name: EventName, callback: Callable):
        """Unsubscribe from an event."""
        listeners = self._listeners.get(_key(event_name), [])
        if callback in listeners:
            listeners.remove(callback)

    async def emit(self, event_name: EventName, *args, **kwargs):
        """Emit an event to all listeners."""
        key = _key(event_name)
        # copy, listeners may unsubscribe or re-enter emit
        for callback in self._listeners.get(key, [])[:]:
            try:
                result = callback(*args, **kwargs)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Error in event listener for {key}: {e}")
