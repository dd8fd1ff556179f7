"""Claude CLI subprocess bridge.

One reader task per output stream decodes NDJSON lines and pushes them
through a queue to the single consumer loop. The queue ends only after both
streams hit EOF, so every line written before exit is delivered before the
caller looks at the exit code.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional

from ralph_loop.constants import READ_CHUNK_SIZE, STOP_GRACE_SECONDS
from ralph_loop.stream.decoder import LineDecoder

logger = logging.getLogger(__name__)

STDOUT = "stdout"
STDERR = "stderr"

_EOF = object()


class SpawnError(Exception):
    """Exception raised when the Claude CLI cannot be started."""

    pass


@dataclass(frozen=True)
class OutputLine:
    source: str
    text: str


class ClaudeProcess:
    """A running ``claude`` subprocess with its prompt piped to stdin."""

    def __init__(
        self,
        command: List[str],
        prompt_path: Path,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ):
        self.command = command
        self.prompt_path = Path(prompt_path)
        self._cwd = cwd
        self._env = env
        self._process: Optional[asyncio.subprocess.Process] = None
        self._queue: "asyncio.Queue[object]" = asyncio.Queue()
        self._readers: List[asyncio.Task] = []

    async def start(self) -> None:
        """Spawn the process and start the reader tasks.

        Raises:
            SpawnError: If the prompt cannot be opened or the binary cannot be executed
        """
        try:
            with open(self.prompt_path, "rb") as stdin:
                self._process = await asyncio.create_subprocess_exec(
                    *self.command,
                    stdin=stdin,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    cwd=self._cwd,
                    env=self._env,
                )
        except OSError as e:
            raise SpawnError(f"Failed to start {self.command[0]}: {e}") from e

        logger.debug(f"command_spawned pid={self._process.pid}")
        self._readers = [
            asyncio.create_task(self._read_stream(self._process.stdout, STDOUT)),
            asyncio.create_task(self._read_stream(self._process.stderr, STDERR)),
        ]

    async def _read_stream(self, stream: asyncio.StreamReader, source: str) -> None:
        decoder = LineDecoder()
        try:
            while True:
                chunk = await stream.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                for line in decoder.feed(chunk):
                    await self._queue.put(OutputLine(source, line))
            for line in decoder.close():
                await self._queue.put(OutputLine(source, line))
        except Exception as e:
            logger.warning(f"Reading {source} failed: {e}")
        finally:
            self._queue.put_nowait(_EOF)

    async def lines(self) -> AsyncIterator[OutputLine]:
        """Yield output lines in arrival order until both streams are closed."""
        open_streams = len(self._readers)
        while open_streams:
            item = await self._queue.get()
            if item is _EOF:
                open_streams -= 1
                continue
            yield item

    async def wait(self) -> int:
        """Wait for exit and return the exit code (negative if killed by a signal)."""
        if self._process is None:
            raise RuntimeError("Process was never started")
        if self._readers:
            await asyncio.gather(*self._readers, return_exceptions=True)
        return await self._process.wait()

    async def terminate(self, grace: float = STOP_GRACE_SECONDS) -> None:
        """SIGTERM, then SIGKILL if the process outlives ``grace`` seconds."""
        if self._process is None or self._process.returncode is not None:
            return
        pid = self._process.pid
        try:
            self._process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(self._process.wait(), timeout=grace)
        except asyncio.TimeoutError:
            logger.warning(f"Process {pid} ignored SIGTERM for {grace}s, killing")
            try:
                self._process.kill()
            except ProcessLookupError:
                pass
            await self._process.wait()
        logger.info(f"process_killed pid={pid}")
