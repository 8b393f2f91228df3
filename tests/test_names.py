"""Tests for node name cleansing."""
import pytest

from aemupload.errors import ErrorCode, UploadError
from aemupload.services.names import NameCleanser, NodeKind


class TestFolderNames:
    @pytest.mark.asyncio
    async def test_default(self):
        cleanser = NameCleanser()
        assert await cleanser.cleanse_folder_name("A b:c.d") == "a b-c-d"
        assert await cleanser.cleanse_folder_name("My Folder") == "my folder"
        assert await cleanser.cleanse_folder_name("Folder#With#Hash") == "folder-with-hash"

    @pytest.mark.asyncio
    async def test_custom_processor_and_replacement(self):
        cleanser = NameCleanser(folder_processor=lambda name: name, replace_value="_")
        assert await cleanser.cleanse(NodeKind.FOLDER, "A b:c") == "A b_c"

    @pytest.mark.asyncio
    async def test_async_processor(self):
        async def upper(name):
            return name.upper()

        cleanser = NameCleanser(folder_processor=upper)
        assert await cleanser.cleanse_folder_name("abc|def") == "ABC-DEF"


class TestAssetNames:
    @pytest.mark.asyncio
    async def test_default(self):
        cleanser = NameCleanser()
        assert await cleanser.cleanse_asset_name("A #b:c.d.jpg") == "A -b-c.d.jpg"
        assert await cleanser.cleanse_asset_name("File#With#Hash.jpg") == "File-With-Hash.jpg"

    @pytest.mark.asyncio
    async def test_custom_processor_and_replacement(self):
        cleanser = NameCleanser(asset_processor=lambda name: name, replace_value="_")
        assert await cleanser.cleanse(NodeKind.ASSET, "A #b:c") == "A #b_c"

    @pytest.mark.asyncio
    async def test_extension_is_preserved(self):
        cleanser = NameCleanser(asset_processor=lambda name: "renamed")
        assert await cleanser.cleanse_asset_name("photo.JPG") == "renamed.JPG"


class TestReplaceValue:
    @pytest.mark.parametrize("value", ["", "ab", "/", ":", "[", "]", "|", "*", "\\", "#", "%"])
    def test_invalid(self, value):
        with pytest.raises(UploadError) as exc:
            NameCleanser(replace_value=value)
        assert exc.value.code == ErrorCode.INVALID_OPTIONS

    def test_valid(self):
        assert NameCleanser(replace_value="_").replace_value == "_"
