"""ffprobe invocation.

Runs ``ffprobe`` against a stored file and returns its JSON description
(``format`` and ``streams`` sections). Every way the run can go wrong is
reported as :class:`ProbeFailure`.
"""

import asyncio
import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

from cinevault.config import get_settings
from cinevault.core.exceptions import ProbeFailure

logger = logging.getLogger(__name__)

_READ_CHUNK = 64 * 1024


class ProbeInvoker:
    """Runs ffprobe as a child process without blocking the event loop.

    A semaphore bounds how many ffprobe processes run at once so that a
    burst of uploads does not fan out into unbounded child processes.
    """

    def __init__(
        self,
        ffprobe_path: str = "ffprobe",
        timeout: float = 60.0,
        max_output_bytes: int = 10 * 1024 * 1024,
        max_concurrency: int = 4,
    ) -> None:
        self.ffprobe_path = ffprobe_path
        self.timeout = timeout
        self.max_output_bytes = max_output_bytes
        self._semaphore = asyncio.Semaphore(max_concurrency)

    def build_command(self, path: Path) -> list[str]:
        return [
            self.ffprobe_path,
            "-v",
            "quiet",
            "-print_format",
            "json",
            "-show_format",
            "-show_streams",
            str(path),
        ]

    async def probe(self, path: Path) -> dict[str, Any]:
        """Probe a fully written media file.

        Args:
            path: Path to the stored video file.

        Returns:
            Parsed ffprobe JSON output.

        Raises:
            ProbeFailure: If ffprobe is missing, fails, times out, overflows
                the output cap or prints something that is not a JSON object.
        """
        path = Path(path)
        if not path.is_file():
            raise ProbeFailure(f"File not found: {path}")

        async with self._semaphore:
            stdout = await self._run(path)

        try:
            data = json.loads(stdout.decode("utf-8", errors="replace"))
        except json.JSONDecodeError as e:
            raise ProbeFailure(f"Invalid ffprobe output for {path}: {e}") from e

        if not isinstance(data, dict):
            raise ProbeFailure(f"Unexpected ffprobe output for {path}: {type(data).__name__}")
        return data

    async def _run(self, path: Path) -> bytes:
        try:
            process = await asyncio.create_subprocess_exec(
                *self.build_command(path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProbeFailure(f"Cannot run {self.ffprobe_path}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                asyncio.gather(
                    self._read_capped(process.stdout),
                    process.stderr.read(),
                ),
                timeout=self.timeout,
            )
            await asyncio.wait_for(process.wait(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            await self._kill(process)
            raise ProbeFailure(f"ffprobe timed out for {path} after {self.timeout}s") from e
        except ProbeFailure:
            await self._kill(process)
            raise

        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise ProbeFailure(
                f"ffprobe failed for {path} (exit {process.returncode}): {message or 'no output'}"
            )
        return stdout

    async def _read_capped(self, stream: asyncio.StreamReader) -> bytes:
        buffer = bytearray()
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                return bytes(buffer)
            buffer.extend(chunk)
            if len(buffer) > self.max_output_bytes:
                raise ProbeFailure(
                    f"ffprobe output exceeded {self.max_output_bytes} bytes"
                )

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()


@lru_cache
def get_probe_invoker() -> ProbeInvoker:
    settings = get_settings()
    return ProbeInvoker(
        ffprobe_path=settings.ffprobe_path,
        timeout=settings.probe_timeout_seconds,
        max_output_bytes=settings.probe_max_output_mb * 1024 * 1024,
        max_concurrency=settings.probe_max_concurrency,
    )
