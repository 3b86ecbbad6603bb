"""
Queue-backed async logger.

Callers enqueue formatted lines; a single writer task appends them to the
log file in batches, so lines from concurrent sessions never interleave.
"""

import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import aiofiles

if TYPE_CHECKING:
    from voicerecap.context import Context

from voicerecap.services.manager import BaseAsyncLoggingService

LOG_LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}

# Upper bound on lines appended per file open
WRITE_BATCH_SIZE = 100


def default_log_filename(use_timestamp: bool = True) -> str:
    """app_2025-11-03_14-30-45.log, or app.log without a timestamp."""
    if not use_timestamp:
        return "app.log"
    return f"app_{datetime.now():%Y-%m-%d_%H-%M-%S}.log"


# -------------------------------------------------------------- #
# Async Logging Service
# -------------------------------------------------------------- #


class AsyncLoggingService(BaseAsyncLoggingService):
    """Logging service that writes through one background task."""

    def __init__(
        self,
        context: "Context",
        log_dir: str = "logs",
        log_file: str | None = None,
        use_timestamp: bool = True,
        console_output: bool = True,
        min_level: str = "DEBUG",
    ):
        """
        Args:
            context: Application context
            log_dir: Directory holding the log file
            log_file: File name; generated from the start time when omitted
            use_timestamp: Generated names carry a timestamp; otherwise "app.log"
            console_output: Echo every line to stdout
            min_level: Lines below this level are dropped
        """
        super().__init__(context)

        level = min_level.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {min_level}")
        self.threshold = LOG_LEVELS[level]

        self.console_output = console_output
        self.log_dir = Path(log_dir)
        self.log_file = log_file or default_log_filename(use_timestamp)
        self.log_path = self.log_dir / self.log_file

        # None tells the writer to stop
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._writer: asyncio.Task | None = None

    # -------------------------------------------------------------- #
    # Manager Methods
    # -------------------------------------------------------------- #

    async def on_start(self, services) -> None:
        await super().on_start(services)

        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._writer = asyncio.create_task(self._run_writer(), name="log-writer")

        await self.info(f"AsyncLoggingService initialized. Logging to: {self.log_path}")

    async def on_close(self) -> None:
        """Let the writer drain the queue, then write anything logged after it stopped."""
        await super().on_close()

        if self._writer is not None:
            await self._queue.put(None)
            await self._writer
            self._writer = None

        await self._write_lines(self._take_pending())

    async def flush(self) -> None:
        """Wait until every line queued so far is on disk."""
        if self._writer is None:
            await self._write_lines(self._take_pending())
        else:
            await self._queue.join()

    # -------------------------------------------------------------- #
    # Logging
    # -------------------------------------------------------------- #

    async def log(self, message: str, level: str = "INFO") -> None:
        level = level.upper()
        if LOG_LEVELS.get(level, LOG_LEVELS["INFO"]) < self.threshold:
            return
        await self._queue.put(f"[{datetime.now().isoformat()}] [{level}] {message}")

    # -------------------------------------------------------------- #
    # Writer
    # -------------------------------------------------------------- #

    async def _run_writer(self) -> None:
        while True:
            batch = [await self._queue.get()]
            while len(batch) < WRITE_BATCH_SIZE and not self._queue.empty():
                batch.append(self._queue.get_nowait())

            await self._write_lines([line for line in batch if line is not None])
            for _ in batch:
                self._queue.task_done()

            if None in batch:
                return

    def _take_pending(self) -> list[str]:
        lines = []
        while not self._queue.empty():
            line = self._queue.get_nowait()
            self._queue.task_done()
            if line is not None:
                lines.append(line)
        return lines

    async def _write_lines(self, lines: list[str]) -> None:
        if not lines:
            return

        text = "\n".join(lines) + "\n"
        if self.console_output:
            sys.stdout.write(text)
            sys.stdout.flush()

        try:
            async with aiofiles.open(self.log_path, mode="a", encoding="utf-8") as f:
                await f.write(text)
        except OSError as e:
            print(f"[ERROR] Failed to write to log file: {e}", file=sys.stderr, flush=True)
