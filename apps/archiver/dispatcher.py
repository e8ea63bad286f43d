"""
Archival Dispatcher - External Renderer Invocation

Runs the configured renderer command for one bookmark with a hard deadline and
classifies the result. The artifact is written by the renderer itself to
<output_folder>/<hash>.<format>.

Outcomes:
- 0                    success
- TIMEOUT_STATUS       still running at the deadline, killed and reaped
- SPAWN_FAILED_STATUS  renderer could not be started
- any other non-zero   renderer exit code (negative: killed by a signal)
"""

import asyncio
import logging
import shlex
from pathlib import Path
from typing import Optional, Sequence, Union

from utils.schemas import Bookmark

logger = logging.getLogger(__name__)

TIMEOUT_STATUS = 124
SPAWN_FAILED_STATUS = 127


class ArchivalDispatcher:
    """Spawn-with-deadline wrapper around the page renderer."""

    def __init__(
        self,
        command: Union[str, Sequence[str]],
        output_folder: Path,
        archive_format: str = "pdf",
        timeout: float = 240,
    ) -> None:
        """
        Initialize dispatcher.

        Args:
            command: Command template, a string (split with shlex) or token list;
                {url} and {output} are substituted in every token
            output_folder: Artifact destination
            archive_format: Artifact extension
            timeout: Wall-clock seconds before the renderer is killed
        """
        self.command = shlex.split(command) if isinstance(command, str) else list(command)
        if not self.command:
            raise ValueError("Renderer command is empty")
        self.output_folder = Path(output_folder)
        self.archive_format = archive_format.lstrip(".")
        self.timeout = timeout

    def output_path(self, bookmark: Bookmark) -> Path:
        return self.output_folder / f"{bookmark.hash}.{self.archive_format}"

    def build_command(self, bookmark: Bookmark) -> list[str]:
        output = str(self.output_path(bookmark))
        return [
            token.replace("{url}", bookmark.url).replace("{output}", output)
            for token in self.command
        ]

    async def archive(self, bookmark: Bookmark) -> int:
        """
        Render bookmark to its artifact file.

        Args:
            bookmark: Bookmark to archive

        Returns:
            Exit status, 0 on success
        """
        output = self.output_path(bookmark)
        argv = self.build_command(bookmark)

        logger.debug("Spawning renderer: %s", shlex.join(argv))

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.error(
                "Renderer could not be started: url=%s, command=%s, error=%s",
                bookmark.url, argv[0], str(e),
            )
            return SPAWN_FAILED_STATUS

        returncode = await self._wait(process)

        if returncode is None:
            logger.error(
                "Renderer timed out after %ss: url=%s, output=%s",
                self.timeout, bookmark.url, str(output),
            )
            return TIMEOUT_STATUS

        if returncode == 0:
            logger.info("Archived %s -> %s", bookmark.url, str(output))
            return 0

        if returncode < 0:
            logger.error(
                "Renderer killed by signal %d: url=%s, output=%s",
                -returncode, bookmark.url, str(output),
            )
        else:
            logger.error(
                "Renderer exited with code %d: url=%s, output=%s",
                returncode, bookmark.url, str(output),
            )
        return returncode

    async def _wait(self, process: asyncio.subprocess.Process) -> Optional[int]:
        """Wait for process until the deadline; None means it was killed."""
        try:
            return await asyncio.wait_for(process.wait(), timeout=self.timeout)
        except asyncio.TimeoutError:
            pass
        finally:
            # reap on every path, including cancellation (Ctrl-C)
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()
        return None
