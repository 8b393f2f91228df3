"""Tests for the local to remote item tree."""
import gc
from pathlib import Path

import pytest

from aemupload import FileSystemUploadConfig
from aemupload.errors import ErrorCode, UploadError
from aemupload.orchestrator.item_tree import UploadDirectory, UploadItemTree
from aemupload.services.names import NameCleanser

TARGET = "http://localhost:4502/content/dam/target"


@pytest.fixture
def config():
    return FileSystemUploadConfig(url=TARGET)


@pytest.fixture
def tree(config):
    return UploadItemTree(config, NameCleanser())


class TestUploadDirectory:
    def test_paths_follow_parents(self, config):
        parent = UploadDirectory(config, Path("/local/Images"), "images")
        child = UploadDirectory(config, Path("/local/Images/My Dir"), "my dir", parent)
        assert child.remote_path == "/content/dam/target/images/my dir"
        assert child.remote_url == f"{TARGET}/images/my%20dir"
        assert child.parent_remote_url == f"{TARGET}/images"
        assert child.title == "My Dir"

    def test_parent_reference_is_weak(self, config):
        parent = UploadDirectory(config, Path("/local/a"), "a")
        child = UploadDirectory(config, Path("/local/a/b"), "b", parent)
        assert child.parent is parent
        del parent
        gc.collect()
        assert child.parent is None


class TestUploadItemTree:
    @pytest.mark.asyncio
    async def test_nested_asset(self, tree):
        root = Path("/local")
        asset = await tree.add_asset(root / "Images" / "Dir.One" / "Photo#1.jpg", 10, root=root)
        assert asset.remote_path == "/content/dam/target/images/dir-one/Photo-1.jpg"
        assert asset.remote_url == f"{TARGET}/images/dir-one/Photo-1.jpg"
        assert [d.remote_name for d in tree.directories] == ["images", "dir-one"]

        upload_file = asset.to_upload_file()
        assert upload_file.file_size == 10
        assert upload_file.folder_url == f"{TARGET}/images/dir-one"
        assert upload_file.target_file_path == "/content/dam/target/images/dir-one/Photo-1.jpg"

    @pytest.mark.asyncio
    async def test_flat_asset(self, tree):
        asset = await tree.add_asset(Path("/local/Images/a b.jpg"), 5)
        assert asset.remote_path == "/content/dam/target/a b.jpg"
        assert asset.remote_url == f"{TARGET}/a%20b.jpg"
        assert tree.directories == []

    @pytest.mark.asyncio
    async def test_same_file_flat_and_nested(self, tree):
        root = Path("/local")
        path = root / "images" / "a.jpg"
        await tree.add_directory(root, root / "images")
        nested = await tree.add_asset(path, 5, root=root)
        flat = await tree.add_asset(path, 5)
        assert nested.remote_path != flat.remote_path
        assert len(tree.assets) == 2

    @pytest.mark.asyncio
    async def test_duplicates_are_collapsed(self, tree):
        await tree.add_asset(Path("/local/a.jpg"), 5)
        await tree.add_asset(Path("/other/a.jpg"), 5)
        assert len(tree.assets) == 1
        assert tree.total_size == 5

    @pytest.mark.asyncio
    async def test_directory_reused(self, tree):
        root = Path("/local")
        first = await tree.add_directory(root, root / "a" / "b")
        second = await tree.add_directory(root, root / "a" / "b")
        assert first is second
        assert len(tree.directories) == 2

    @pytest.mark.asyncio
    async def test_outside_root(self, tree):
        with pytest.raises(UploadError) as exc:
            await tree.add_directory(Path("/local"), Path("/elsewhere/a"))
        assert exc.value.code == ErrorCode.INVALID_OPTIONS

        with pytest.raises(UploadError):
            await tree.add_asset(Path("/elsewhere/a.jpg"), 1, root=Path("/local"))

    @pytest.mark.asyncio
    async def test_max_files(self):
        config = FileSystemUploadConfig(url=TARGET, max_upload_files=2)
        tree = UploadItemTree(config, NameCleanser())
        await tree.add_asset(Path("/local/a.jpg"), 1)
        await tree.add_asset(Path("/local/b.jpg"), 1)
        with pytest.raises(UploadError) as exc:
            await tree.add_asset(Path("/local/c.jpg"), 1)
        assert exc.value.code == ErrorCode.TOO_LARGE
