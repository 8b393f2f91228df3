"""Utilities shared across aemupload."""
from .events import EventEmitter, FileEvent, FolderEvent, UploadEvent

__all__ = ["EventEmitter", "FileEvent", "FolderEvent", "UploadEvent"]
