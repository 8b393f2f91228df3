"""Services for aemupload: HTTP transport, directory walking and name cleansing."""
from .api_client import HTTPAPIClient, HttpResponse
from .names import NameCleanser, NodeKind
from .walker import WalkedFile, WalkResult, is_temp_entry, walk_directory

__all__ = [
    "HTTPAPIClient",
    "HttpResponse",
    "NameCleanser",
    "NodeKind",
    "WalkedFile",
    "WalkResult",
    "is_temp_entry",
    "walk_directory",
]
