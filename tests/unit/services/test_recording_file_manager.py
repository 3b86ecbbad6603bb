"""
Unit tests for RecordingFileManagerService.
"""

import os

import pytest

from voicerecap.services.recording_file_manager.manager import RecordingFileManagerService


@pytest.fixture
async def file_manager(context, mock_services, tmp_path):
    manager = RecordingFileManagerService(
        context, recording_storage_path=str(tmp_path / "recordings")
    )
    await manager.on_start(mock_services)
    return manager


@pytest.mark.unit
class TestRecordingFileManager:
    """Test temporary recording storage."""

    async def test_start_creates_temp_folder(self, file_manager):
        assert os.path.isdir(file_manager.get_temporary_storage_path())

    async def test_save_returns_absolute_path(self, file_manager):
        path = await file_manager.save_to_temp_file("recording_1.wav", b"RIFF1234")

        assert os.path.isabs(path)
        with open(path, "rb") as f:
            assert f.read() == b"RIFF1234"
        assert not os.path.exists(path + ".part")

    async def test_save_replaces_existing_file(self, file_manager):
        await file_manager.save_to_temp_file("recording_1.wav", b"old")
        path = await file_manager.save_to_temp_file("recording_1.wav", b"new")

        with open(path, "rb") as f:
            assert f.read() == b"new"

    async def test_delete_removes_file(self, file_manager):
        path = await file_manager.save_to_temp_file("recording_1.wav", b"data")

        await file_manager.delete_temp_file("recording_1.wav")

        assert not os.path.exists(path)

    async def test_delete_missing_file_raises(self, file_manager, mock_logging_service):
        with pytest.raises(OSError):
            await file_manager.delete_temp_file("missing.wav")

        mock_logging_service.error.assert_awaited_once()

    async def test_rejects_nested_paths(self, file_manager):
        with pytest.raises(ValueError):
            await file_manager.save_to_temp_file("../escape.wav", b"data")

    async def test_close_removes_leftovers(self, file_manager):
        path = await file_manager.save_to_temp_file("recording_1.wav", b"data")

        await file_manager.on_close()

        assert not os.path.exists(path)
