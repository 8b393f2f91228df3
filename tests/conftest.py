"""Shared fixtures: an in-memory fake of the repository and its blob storage."""
import json
import math
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qs, quote
from uuid import uuid4

import httpx
import pytest

from aemupload import FileSystemUploadConfig, UploadConfig

HOST = "http://localhost:4502"
TARGET_PATH = "/content/dam/target"
TARGET_URL = f"{HOST}{TARGET_PATH}"
STORAGE = "http://storage.local"


class FakeAEM:
    """
    Serves initiate, part PUT, complete, folder HEAD and folder create calls.

    ``uri_counts`` fixes how many upload URIs a file name receives;
    ``failures`` maps (method, path) to a list of status codes returned
    before the call succeeds.
    """

    def __init__(self, min_part_size: int = 256, max_part_size: int = 1024):
        self.min_part_size = min_part_size
        self.max_part_size = max_part_size
        self.uri_counts: Dict[str, int] = {}
        self.folders = {"/content/dam"}
        self.failures: Dict[Tuple[str, str], List[int]] = {}
        self.requests: List[Tuple[str, str]] = []
        self.parts: Dict[str, bytes] = {}
        self.uploads: Dict[str, dict] = {}
        self.completed: Dict[str, bytes] = {}
        self.complete_forms: Dict[str, dict] = {}

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def put_requests(self) -> List[str]:
        return [path for method, path in self.requests if method == "PUT"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))

        pending = self.failures.get((request.method, path))
        if pending:
            return httpx.Response(pending.pop(0))

        if request.url.host == "storage.local":
            return self._put_part(request)
        if request.method == "HEAD":
            return httpx.Response(200 if path in self.folders else 404)
        if request.method == "POST" and path.endswith(".initiateUpload.json"):
            return self._initiate(request, path[: -len(".initiateUpload.json")])
        if request.method == "POST" and path.endswith(".completeUpload.json"):
            return self._complete(request, path[: -len(".completeUpload.json")])
        if request.method == "POST":
            return self._create_folder(request, path)
        return httpx.Response(405)

    def _form(self, request: httpx.Request) -> Dict[str, List[str]]:
        return parse_qs(request.content.decode("utf-8"), keep_blank_values=True)

    def _initiate(self, request: httpx.Request, folder: str) -> httpx.Response:
        if folder not in self.folders:
            return httpx.Response(404)
        form = self._form(request)
        files = []
        for name, size in zip(form["fileName"], form["fileSize"]):
            size = int(size)
            count = self.uri_counts.get(name, max(1, math.ceil(size / self.max_part_size)))
            token = uuid4().hex
            uris = [f"{STORAGE}/{token}/{i}" for i in range(count)]
            self.uploads[token] = {"folder": folder, "name": name, "size": size, "uris": uris}
            files.append(
                {
                    "fileName": name,
                    "mimeType": "image/jpeg",
                    "uploadToken": token,
                    "uploadURIs": uris,
                    "minPartSize": self.min_part_size,
                    "maxPartSize": self.max_part_size,
                }
            )
        body = {"completeURI": f"{quote(folder)}.completeUpload.json", "folderPath": folder, "files": files}
        return httpx.Response(201, content=json.dumps(body).encode("utf-8"))

    def _put_part(self, request: httpx.Request) -> httpx.Response:
        if request.method != "PUT":
            return httpx.Response(405)
        body = request.content
        if int(request.headers["Content-Length"]) != len(body):
            return httpx.Response(400)
        self.parts[str(request.url)] = body
        return httpx.Response(201)

    def _complete(self, request: httpx.Request, folder: str) -> httpx.Response:
        form = self._form(request)
        token = form["uploadToken"][0]
        upload = self.uploads.get(token)
        if upload is None or upload["folder"] != folder:
            return httpx.Response(400)
        content = b"".join(self.parts.get(uri, b"") for uri in upload["uris"])
        target = f"{folder}/{form['fileName'][0]}"
        self.completed[target] = content
        self.complete_forms[target] = {k: v[0] for k, v in form.items()}
        return httpx.Response(200)

    def _create_folder(self, request: httpx.Request, parent: str) -> httpx.Response:
        if parent not in self.folders:
            return httpx.Response(404)
        form = self._form(request)
        path = f"{parent}/{form[':name'][0]}"
        if path in self.folders:
            return httpx.Response(409)
        self.folders.add(path)
        return httpx.Response(201)


@pytest.fixture
def fake_aem():
    return FakeAEM()


def make_config(upload_files=(), **kwargs) -> UploadConfig:
    kwargs.setdefault("http_retry_delay", 0)
    return UploadConfig(url=TARGET_URL, upload_files=upload_files, **kwargs)


def make_fs_config(**kwargs) -> FileSystemUploadConfig:
    kwargs.setdefault("http_retry_delay", 0)
    return FileSystemUploadConfig(url=TARGET_URL, **kwargs)


def record_events(orchestrator, events: Optional[list] = None) -> list:
    from aemupload import UploadEvent

    events = [] if events is None else events
    for event_name in UploadEvent:
        orchestrator.on(event_name, lambda payload, name=event_name: events.append((name, payload)))
    return events
