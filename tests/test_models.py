"""Tests for configuration, UploadFile and part boundary math."""
import pytest

from aemupload import FileSystemUploadConfig, UploadConfig, UploadFile
from aemupload.controller import UploadController
from aemupload.errors import ErrorCode, UploadError
from aemupload.orchestrator.models import InitResponse, compute_part_ranges

TARGET = "http://localhost:4502/content/dam/target"


def _assert_covers(ranges, size):
    assert ranges[0][0] == 0
    assert ranges[-1][1] == size
    for (_, end), (start, _) in zip(ranges, ranges[1:]):
        assert end == start
    assert all(start < end for start, end in ranges)


class TestComputePartRanges:
    def test_even_split(self):
        assert compute_part_ranges(1024, 256, 1024, 2) == [(0, 512), (512, 1024)]

    def test_last_part_truncated(self):
        assert compute_part_ranges(1999, 256, 1024, 4) == [
            (0, 500),
            (500, 1000),
            (1000, 1500),
            (1500, 1999),
        ]

    def test_small_file_single_part(self):
        assert compute_part_ranges(100, 256, 1024, 1) == [(0, 100)]

    def test_small_file_with_many_uris_is_invalid(self):
        with pytest.raises(UploadError) as exc:
            compute_part_ranges(100, 256, 1024, 2)
        assert exc.value.code == ErrorCode.INVALID_OPTIONS

    def test_min_part_size_clamps_and_leaves_uris_unused(self):
        assert compute_part_ranges(1000, 400, 0, 5) == [(0, 400), (400, 800), (800, 1000)]

    def test_not_enough_uris_for_max_part_size(self):
        with pytest.raises(UploadError) as exc:
            compute_part_ranges(5000, 256, 1024, 2)
        assert exc.value.code == ErrorCode.UNEXPECTED_API_STATE

    def test_no_uris(self):
        with pytest.raises(UploadError) as exc:
            compute_part_ranges(1000, 256, 1024, 0)
        assert exc.value.code == ErrorCode.UNEXPECTED_API_STATE

    @pytest.mark.parametrize(
        "size,min_part,max_part,uris",
        [
            (1, 1, 0, 1),
            (256, 256, 1024, 3),
            (1023, 10, 100, 11),
            (10_000_000, 5_242_880, 0, 20),
            (7777, 100, 1000, 9),
        ],
    )
    def test_ranges_cover_file_exactly(self, size, min_part, max_part, uris):
        ranges = compute_part_ranges(size, min_part, max_part, uris)
        assert len(ranges) <= uris
        _assert_covers(ranges, size)


class TestUploadFile:
    def test_requires_name_or_url(self):
        with pytest.raises(UploadError) as exc:
            UploadFile(file_size=1, blob=b"x")
        assert exc.value.code == ErrorCode.INVALID_OPTIONS

    def test_requires_source(self):
        with pytest.raises(UploadError):
            UploadFile(file_name="a.jpg", file_size=1)

    def test_rejects_negative_size(self):
        with pytest.raises(UploadError):
            UploadFile(file_name="a.jpg", file_size=-1, blob=b"")

    def test_resolve_encodes_name_once(self):
        upload_file = UploadFile(file_name="my file#1.jpg", file_size=1, blob=b"x").resolve(TARGET)
        assert upload_file.file_url == f"{TARGET}/my%20file%231.jpg"
        assert upload_file.target_file_path == "/content/dam/target/my file#1.jpg"
        assert upload_file.target_folder_path == "/content/dam/target"
        assert upload_file.folder_url == TARGET
        assert upload_file.name == "my file#1.jpg"

    def test_resolve_keeps_explicit_url(self):
        url = "http://localhost:4502/content/dam/other/%E4%B8%AD.jpg"
        upload_file = UploadFile(file_url=url, file_size=1, blob=b"x")
        assert upload_file.resolve(TARGET).file_url == url
        assert upload_file.name == "中.jpg"

    def test_is_immutable(self):
        upload_file = UploadFile(file_name="a.jpg", file_size=1, blob=b"x")
        with pytest.raises(Exception):
            upload_file.file_size = 2

    @pytest.mark.asyncio
    async def test_read_chunk_from_file(self, tmp_path):
        path = tmp_path / "a.bin"
        path.write_bytes(bytes(range(100)))
        upload_file = UploadFile(file_name="a.bin", file_size=100, file_path=path)
        assert await upload_file.read_chunk(10, 20) == bytes(range(10, 20))

    @pytest.mark.asyncio
    async def test_stream_range_from_file(self, tmp_path):
        path = tmp_path / "a.bin"
        path.write_bytes(bytes(range(200)))
        upload_file = UploadFile(file_name="a.bin", file_size=200, file_path=path)
        chunks = [c async for c in upload_file.stream_range(50, 150, chunk_size=30)]
        assert [len(c) for c in chunks] == [30, 30, 30, 10]
        assert b"".join(chunks) == bytes(range(50, 150))

    @pytest.mark.asyncio
    async def test_stream_range_from_blob(self):
        upload_file = UploadFile(file_name="a.bin", file_size=10, blob=b"0123456789")
        chunks = [c async for c in upload_file.stream_range(2, 9, chunk_size=4)]
        assert chunks == [b"2345", b"678"]


class TestUploadConfig:
    def test_defaults(self):
        config = UploadConfig(url=TARGET + "/")
        assert config.url == TARGET
        assert config.max_concurrent == 5
        assert config.http_retry_count == 3
        assert config.is_concurrent is True
        assert config.target_folder_path == "/content/dam/target"
        assert config.url_prefix == "http://localhost:4502"
        assert isinstance(config.controller, UploadController)

    def test_serial(self):
        assert UploadConfig(url=TARGET, concurrent=False).is_concurrent is False
        assert UploadConfig(url=TARGET, max_concurrent=1).is_concurrent is False

    def test_relative_url_is_invalid(self):
        with pytest.raises(UploadError) as exc:
            UploadConfig(url="/content/dam/target")
        assert exc.value.code == ErrorCode.INVALID_OPTIONS

    def test_invalid_concurrency(self):
        with pytest.raises(UploadError):
            UploadConfig(url=TARGET, max_concurrent=0)

    def test_with_basic_auth(self):
        config = UploadConfig(url=TARGET).with_basic_auth("admin", "admin")
        assert config.headers["Authorization"] == "Basic YWRtaW46YWRtaW4="

    def test_upload_files_become_tuple(self):
        files = [UploadFile(file_name="a.jpg", file_size=1, blob=b"x")]
        assert UploadConfig(url=TARGET, upload_files=files).upload_files == tuple(files)

    def test_http_proxy(self):
        config = UploadConfig(url=TARGET, http_proxy="http://proxy.local:3128")
        assert config.to_dict()["httpProxy"] == "http://proxy.local:3128"
        assert "httpProxy" not in UploadConfig(url=TARGET).to_dict()

    @pytest.mark.parametrize("proxy", ["proxy.local:3128", "socks5://proxy.local", ""])
    def test_invalid_http_proxy(self, proxy):
        with pytest.raises(UploadError) as exc:
            UploadConfig(url=TARGET, http_proxy=proxy)
        assert exc.value.code == ErrorCode.INVALID_OPTIONS


class TestFileSystemUploadConfig:
    def test_defaults(self):
        config = FileSystemUploadConfig(url=TARGET)
        assert config.deep_upload is False
        assert config.max_upload_files == 1000
        assert config.max_paths == 5000
        assert config.invalid_character_replace_value == "-"

    @pytest.mark.parametrize("value", ["", "--", ":", "/", "#", ".", "*"])
    def test_invalid_replace_value_fails_fast(self, value):
        with pytest.raises(UploadError) as exc:
            FileSystemUploadConfig(url=TARGET, invalid_character_replace_value=value)
        assert exc.value.code == ErrorCode.INVALID_OPTIONS

    def test_valid_replace_value(self):
        config = FileSystemUploadConfig(url=TARGET, invalid_character_replace_value="_")
        assert config.invalid_character_replace_value == "_"


class TestInitResponse:
    def _files(self):
        return [
            UploadFile(file_name="a.jpg", file_size=1024, blob=b"a" * 1024).resolve(TARGET),
            UploadFile(file_name="b.jpg", file_size=1999, blob=b"b" * 1999).resolve(TARGET),
        ]

    def _file_data(self, name, uris):
        return {
            "fileName": name,
            "mimeType": "image/jpeg",
            "uploadToken": f"token-{name}",
            "uploadURIs": [f"http://storage/{name}/{i}" for i in range(uris)],
            "minPartSize": 256,
            "maxPartSize": 1024,
        }

    def test_parts(self):
        response = InitResponse(
            self._files(),
            {
                "completeURI": "/content/dam/target.completeUpload.json",
                "files": [self._file_data("a.jpg", 2), self._file_data("b.jpg", 4)],
            },
            "http://localhost:4502",
        )
        assert response.complete_uri == (
            "http://localhost:4502/content/dam/target.completeUpload.json"
        )
        a, b = response.files
        assert [(p.start, p.end) for p in a.get_parts()] == [(0, 512), (512, 1024)]
        assert [p.url for p in b.get_parts()] == [f"http://storage/b.jpg/{i}" for i in range(4)]
        assert b.part_count == 4
        assert a.upload_token == "token-a.jpg"
        assert a.target_file_path == "/content/dam/target/a.jpg"

    def test_file_count_mismatch(self):
        with pytest.raises(UploadError) as exc:
            InitResponse(
                self._files(),
                {"completeURI": "/x", "files": [self._file_data("a.jpg", 2)]},
                "http://localhost:4502",
            )
        assert exc.value.code == ErrorCode.UNEXPECTED_API_STATE

    def test_missing_keys(self):
        with pytest.raises(UploadError) as exc:
            InitResponse(self._files(), {"files": []}, "http://localhost:4502")
        assert exc.value.code == ErrorCode.UNEXPECTED_API_STATE

    @pytest.mark.parametrize(
        "init_data",
        [
            {"completeURI": "/x", "files": {"a.jpg": {}, "b.jpg": {}}},
            {"completeURI": "/x", "files": "ab"},
            {"completeURI": "/x", "files": None},
            {"completeURI": 42, "files": []},
            [],
        ],
    )
    def test_malformed_response(self, init_data):
        with pytest.raises(UploadError) as exc:
            InitResponse(self._files(), init_data, "http://localhost:4502")
        assert exc.value.code == ErrorCode.UNEXPECTED_API_STATE

    @pytest.mark.parametrize(
        "key, value",
        [
            ("uploadURIs", None),
            ("uploadURIs", "http://storage/a.jpg/0"),
            ("uploadURIs", [{"url": "http://storage/a.jpg/0"}]),
            ("fileName", ["a.jpg"]),
            ("uploadToken", None),
            ("maxPartSize", "1024"),
        ],
    )
    def test_malformed_file_entry(self, key, value):
        a_data = self._file_data("a.jpg", 2)
        a_data[key] = value
        with pytest.raises(UploadError) as exc:
            InitResponse(
                self._files(),
                {"completeURI": "/x", "files": [a_data, self._file_data("b.jpg", 4)]},
                "http://localhost:4502",
            )
        assert exc.value.code == ErrorCode.UNEXPECTED_API_STATE
