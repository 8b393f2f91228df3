"""
Protocols (Interfaces) for Dependency Inversion.

Small interfaces between the transfer state machine, the orchestrator that
reacts to it, and the HTTP transport underneath both.
"""
from typing import Any, AsyncIterator, Callable, Dict, Optional, Protocol, runtime_checkable


@runtime_checkable
class ITransferHooks(Protocol):
    """Receives one clean lifecycle notification per file."""

    async def on_started(self, file_result, file_info) -> None:
        """First part of the file began transferring."""
        ...

    async def on_progress(self, file_result, file_info, transferred: int) -> None:
        """Throttled progress with the cumulative bytes transferred."""
        ...

    async def on_error(self, file_result, file_info) -> None:
        ...

    async def on_cancelled(self, file_result, file_info) -> None:
        ...

    async def on_succeeded(self, file_result, file_info) -> None:
        """Every part transferred; the file can be completed."""
        ...


@runtime_checkable
class IHttpClient(Protocol):
    """Interface for the HTTP transport used by the upload pipeline."""

    async def submit(
        self,
        method: str,
        url: str,
        *,
        data: Optional[Dict[str, Any]] = None,
        content_factory: Optional[Callable[[], AsyncIterator[bytes]]] = None,
        headers: Optional[Dict[str, str]] = None,
        cancel_id: Optional[str] = None,
        result: Any = None,
    ) -> Any:
        """Send a request with retries, raising UploadError on failure."""
        ...

    def is_cancelled(self, cancel_id: Optional[str] = None) -> bool:
        ...
