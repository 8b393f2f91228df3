"""
aemupload - Direct binary uploads to AEM Assets.

Files are sent in three steps: the repository is asked to initiate the
upload, the file bytes are PUT straight to the storage URIs it hands back,
and the repository is told to complete the upload.

Usage:
    from aemupload import UploadOrchestrator, UploadConfig, FileSystemUploadConfig, UploadFile

    orchestrator = UploadOrchestrator()
    orchestrator.on_file_end(lambda event: print("uploaded", event.target_file))

    # Upload local files and folders
    config = FileSystemUploadConfig(
        url="http://localhost:4502/content/dam/photos",
        deep_upload=True,
    ).with_basic_auth("admin", "admin")
    result = await orchestrator.upload_paths(config, ["/home/me/photos"])

    # Upload in-memory content
    config = UploadConfig(
        url="http://localhost:4502/content/dam/photos",
        upload_files=[UploadFile(file_name="hello.txt", file_size=5, blob=b"hello")],
    )
    result = await orchestrator.upload_files(config)

    # Cancel one file or everything
    config.controller.cancel_file("/content/dam/photos/hello.txt")
    config.controller.cancel()
"""
from .config import FileSystemUploadConfig, UploadConfig
from .controller import UploadController
from .errors import ErrorCode, UploadError
from .models import UploadFile
from .orchestrator import UploadOrchestrator
from .results import CreateDirectoryResult, FileUploadResult, PartUploadResult, UploadResult
from .utils.events import FileEvent, FolderEvent, UploadEvent

__version__ = "0.3.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "UploadController",
    # Configuration
    "UploadConfig",
    "FileSystemUploadConfig",
    "UploadFile",
    # Results
    "UploadResult",
    "FileUploadResult",
    "PartUploadResult",
    "CreateDirectoryResult",
    # Events
    "UploadEvent",
    "FileEvent",
    "FolderEvent",
    # Errors
    "UploadError",
    "ErrorCode",
]
