"""Cancellation controller shared between the caller and the upload pipeline."""
from __future__ import annotations

import logging
from typing import Callable, List, Optional, Set

logger = logging.getLogger(__name__)

CancelListener = Callable[[Optional[str]], None]


class UploadController:
    """
    Cooperative cancellation token.

    ``cancel()`` stops everything, ``cancel_file(path)`` stops one file
    identified by its unencoded remote path. Work units poll
    ``is_cancelled`` before they start; subscribers (the HTTP client) are
    notified so that in-flight requests can be aborted.
    """

    def __init__(self):
        self._cancelled_all = False
        self._cancelled_ids: Set[str] = set()
        self._listeners: List[CancelListener] = []

    def cancel(self) -> None:
        if self._cancelled_all:
            return
        logger.info("Cancelling all uploads")
        self._cancelled_all = True
        self._notify(None)

    def cancel_file(self, target_file_path: str) -> None:
        if target_file_path in self._cancelled_ids:
            return
        logger.info(f"Cancelling upload of {target_file_path}")
        self._cancelled_ids.add(target_file_path)
        self._notify(target_file_path)

    def is_cancelled(self, cancel_id: Optional[str] = None) -> bool:
        if self._cancelled_all:
            return True
        return cancel_id is not None and cancel_id in self._cancelled_ids

    def subscribe(self, callback: CancelListener) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def unsubscribe(self, callback: CancelListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self, cancel_id: Optional[str]) -> None:
        for callback in self._listeners[:]:
            try:
                callback(cancel_id)
            except Exception as e:
                logger.error(f"Error in cancel listener: {e}")
