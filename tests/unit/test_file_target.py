"""Tests for FileSyncTarget."""

import json
import shutil

import pytest

from tradeflow.domain.exceptions import PermissionRevoked
from tradeflow.infrastructure.sync.file_target import PERMISSION_MESSAGE, FileSyncTarget


class TestFileSyncTarget:

    @pytest.mark.asyncio
    async def test_write_creates_file(self, tmp_path):
        target = FileSyncTarget(tmp_path / "mirror" / "backup.json")
        (tmp_path / "mirror").mkdir()

        await target.write(json.dumps({"version": "1.2"}))

        assert json.loads(target.read()) == {"version": "1.2"}
        assert target.file_name == "backup.json"

    @pytest.mark.asyncio
    async def test_write_replaces_without_leftovers(self, tmp_path):
        target = FileSyncTarget(tmp_path / "backup.json")

        await target.write("first")
        await target.write("second")

        assert target.read() == "second"
        assert [p.name for p in tmp_path.iterdir()] == ["backup.json"]

    @pytest.mark.asyncio
    async def test_missing_directory_is_permission_loss(self, tmp_path):
        mirror_dir = tmp_path / "mirror"
        mirror_dir.mkdir()
        target = FileSyncTarget(mirror_dir / "backup.json")
        await target.write("{}")

        shutil.rmtree(mirror_dir)

        assert not target.has_write_permission()
        with pytest.raises(PermissionRevoked, match=PERMISSION_MESSAGE):
            await target.write("{}")

    def test_directory_path_not_writable(self, tmp_path):
        assert not FileSyncTarget(tmp_path).has_write_permission()
