"""ImageMagick script batching.

Drawing commands for one photo are collected in a script file and run with
a single ``magick -script`` call. There is no conversation with the process:
the script is written, executed, and its exit status checked.
"""

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def quote(text: str) -> str:
    """Double-quote a string for an ImageMagick script."""
    return '"' + str(text).replace("\\", "\\\\").replace('"', '\\"') + '"'


class ImageMagickScript:
    """A reusable ImageMagick script file."""

    def __init__(self, app: str = "magick", scratch_dir: Optional[str] = None, delete_logs: bool = True):
        self.app = app
        self.delete_logs = delete_logs

        # create unique command file
        fd, path = tempfile.mkstemp(prefix="ImageMagickCmds-", suffix=".txt", dir=scratch_dir)
        os.close(fd)
        self.command_file = Path(path)
        logger.debug(f"ImageMagick command file: {self.command_file}")

    def start_new_command(self) -> None:
        """Wipe the script, ready for the next photo."""
        self.command_file.write_text("", encoding="utf-8")

    def add_command(self, command: str) -> bool:
        logger.debug(f"ImageMagick add command string: {command}")
        try:
            with open(self.command_file, "a", encoding="utf-8") as f:
                f.write(command + "\n")
        except OSError as e:
            logger.error(f"Could not write ImageMagick command file {self.command_file}: {e}")
            return False
        return True

    def read_commands(self) -> str:
        return self.command_file.read_text(encoding="utf-8")

    async def execute(self) -> bool:
        """Run the script.

        Returns:
            False if ImageMagick could not be started or exited with an error.
        """
        if not self.command_file.exists():
            logger.error(f"Could not find ImageMagick command file: {self.command_file}")
            return False

        command = [self.app, "-script", str(self.command_file)]
        logger.debug(f"ImageMagick execute command: {' '.join(command)}")
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"ImageMagick could not be started ({self.app}): {e}")
            return False

        stdout, stderr = await process.communicate()
        if stdout:
            logger.debug(f"ImageMagick output: {stdout.decode('utf-8', errors='replace').strip()}")
        if process.returncode != 0:
            logger.error(
                f"ImageMagick error {process.returncode}: "
                f"{stderr.decode('utf-8', errors='replace').strip()}"
            )
            return False
        return True

    def cleanup(self) -> None:
        if self.delete_logs:
            logger.debug(f"ImageMagick: deleting {self.command_file}")
            try:
                self.command_file.unlink()
            except FileNotFoundError:
                pass
        else:
            logger.info(f"ImageMagick finishing: leaving final command file {self.command_file}")
