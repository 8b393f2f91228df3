"""HTTP adapter for repository and storage calls."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Dict, Optional, Set

import httpx

from ..errors import ErrorCode, UploadError, is_retryable_error

if TYPE_CHECKING:
    from ..config import UploadConfig

logger = logging.getLogger(__name__)


@dataclass
class HttpResponse:
    """Successful response plus how long the final attempt took (ms)."""
    response: httpx.Response
    elapsed_time: int

    @property
    def status_code(self) -> int:
        return self.response.status_code

    def json(self) -> Any:
        try:
            return self.response.json()
        except ValueError as exc:
            raise UploadError(
                f"response from {self.response.request.url} is not valid JSON",
                ErrorCode.UNEXPECTED_API_STATE,
            ) from exc


class HTTPAPIClient:
    """
    HTTP client adapter for upload calls.

    Implements IHttpClient protocol. Retries 5xx and network failures with
    exponential backoff, maps everything else to UploadError, and aborts
    in-flight requests when the upload controller cancels their id.
    """

    def __init__(
        self,
        config: "UploadConfig",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._config = config
        self._controller = config.controller
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._in_flight: Dict[Optional[str], Set[asyncio.Task]] = {}
        self._aborted: Set[asyncio.Task] = set()

    async def __aenter__(self):
        options: Dict[str, Any] = {"timeout": self._config.request_timeout}
        if self._transport is not None:
            options["transport"] = self._transport
        elif self._config.http_proxy:
            # httpx mounts its own transport for a proxy, which would bypass a custom one
            options["proxy"] = self._config.http_proxy
        self._client = httpx.AsyncClient(**options)
        self._controller.subscribe(self._on_cancel)
        return self

    async def __aexit__(self, *args):
        self._controller.unsubscribe(self._on_cancel)
        if self._client:
            await self._client.aclose()
            self._client = None

    def is_cancelled(self, cancel_id: Optional[str] = None) -> bool:
        return self._controller.is_cancelled(cancel_id)

    def _on_cancel(self, cancel_id: Optional[str]) -> None:
        if cancel_id is None:
            tasks = [t for group in self._in_flight.values() for t in group]
        else:
            tasks = list(self._in_flight.get(cancel_id, ()))
        for task in tasks:
            if not task.done():
                logger.debug(f"Aborting in-flight request for {cancel_id or 'all uploads'}")
                self._aborted.add(task)
                task.cancel()

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
    ) -> HttpResponse:
        if not self._client:
            raise RuntimeError("HTTPAPIClient not initialized. Use 'async with' context.")

        retry_count = self._config.http_retry_count
        attempt = 0

        while True:
            attempt += 1
            if self.is_cancelled(cancel_id):
                raise UploadError(f"{method} {url} was cancelled", ErrorCode.USER_CANCELLED)

            started = time.monotonic()
            try:
                response = await self._send(method, url, data, content_factory, headers, cancel_id)
                response.raise_for_status()
                return HttpResponse(response, int((time.monotonic() - started) * 1000))
            except httpx.HTTPError as exc:
                if not is_retryable_error(exc) or attempt >= retry_count:
                    raise UploadError.from_error(exc, f"{method} {url}") from exc

                if result is not None:
                    result.add_retry_error(UploadError.from_error(exc, f"{method} {url}"))
                delay = self._config.http_retry_delay * 2 ** (attempt - 1)
                logger.warning(
                    f"{method} {url} failed on attempt {attempt}/{retry_count}: {exc}; "
                    f"retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)

    async def _send(
        self,
        method: str,
        url: str,
        data: Optional[Dict[str, Any]],
        content_factory: Optional[Callable[[], AsyncIterator[bytes]]],
        headers: Optional[Dict[str, str]],
        cancel_id: Optional[str],
    ) -> httpx.Response:
        request = self._client.build_request(
            method,
            url,
            data=data,
            content=content_factory() if content_factory else None,
            headers=headers,
        )
        task = asyncio.create_task(self._client.send(request))
        group = self._in_flight.setdefault(cancel_id, set())
        group.add(task)
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if task in self._aborted and not (current and current.cancelling()):
                raise UploadError(f"{method} {url} was cancelled", ErrorCode.USER_CANCELLED)
            raise
        finally:
            group.discard(task)
            self._aborted.discard(task)
            if not group and self._in_flight.get(cancel_id) is group:
                del self._in_flight[cancel_id]
