from __future__ import annotations

import asyncio
import os
from typing import TYPE_CHECKING

import aiofiles
import aiofiles.os

if TYPE_CHECKING:
    from voicerecap.context import Context

from voicerecap.services.manager import BaseRecordingFileServiceManager

# -------------------------------------------------------------- #
# Recording File Manager Service
# -------------------------------------------------------------- #


class RecordingFileManagerService(BaseRecordingFileServiceManager):
    """Service for writing and removing the temporary WAV files handed to transcription."""

    def __init__(self, context: Context, recording_storage_path: str):
        super().__init__(context)
        self.recording_storage_path = recording_storage_path
        self.temp_path = os.path.join(self.recording_storage_path, "temp")

    # -------------------------------------------------------------- #
    # Manager Methods
    # -------------------------------------------------------------- #

    async def on_start(self, services):
        await super().on_start(services)

        # Run blocking filesystem operations in executor
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, lambda: os.makedirs(self.temp_path, exist_ok=True))

        await self.services.logging_service.info(
            f"RecordingFileManagerService initialized, temp files in {self.temp_path}"
        )

    async def on_close(self):
        """Delete anything left in the temp folder."""
        loop = asyncio.get_running_loop()
        if not await loop.run_in_executor(None, os.path.isdir, self.temp_path):
            return

        filenames = await loop.run_in_executor(None, os.listdir, self.temp_path)
        for filename in filenames:
            file_path = os.path.join(self.temp_path, filename)
            try:
                if await loop.run_in_executor(None, os.path.isfile, file_path):
                    await loop.run_in_executor(None, os.unlink, file_path)
            except OSError as e:
                await self.services.logging_service.error(
                    f"Failed to delete leftover recording {file_path}. Reason: {e}"
                )

    # -------------------------------------------------------------- #
    # Recording File Management Methods
    # -------------------------------------------------------------- #

    def get_temporary_storage_path(self) -> str:
        """Get the absolute temporary storage path."""
        return os.path.abspath(self.temp_path)

    def _temp_file_path(self, filename: str) -> str:
        if os.path.basename(filename) != filename:
            raise ValueError(f"Recording filename must not contain directories: {filename}")
        return os.path.join(self.get_temporary_storage_path(), filename)

    async def save_to_temp_file(self, filename: str, data: bytes) -> str:
        """Write data to a temp file, replacing any previous file of the same name.

        Returns:
            Absolute path of the written file
        """
        temp_path = self._temp_file_path(filename)
        partial_path = temp_path + ".part"
        try:
            async with aiofiles.open(partial_path, mode="wb") as f:
                await f.write(data)
            await aiofiles.os.replace(partial_path, temp_path)

            await self.services.logging_service.info(
                f"Saved recording to temp file: {filename} ({len(data)} bytes)"
            )
            return temp_path
        except OSError as e:
            await self.services.logging_service.error(
                f"Failed to save recording {filename} ({len(data)} bytes) "
                f"to {self.get_temporary_storage_path()}: {type(e).__name__}: {e}"
            )
            raise

    async def delete_temp_file(self, filename: str) -> None:
        """Delete a file from temporary storage."""
        temp_path = self._temp_file_path(filename)
        try:
            await aiofiles.os.remove(temp_path)
            await self.services.logging_service.info(f"Deleted temporary recording {filename}")
        except OSError as e:
            await self.services.logging_service.error(
                f"Failed to delete recording {temp_path}: {type(e).__name__}: {e}"
            )
            raise
