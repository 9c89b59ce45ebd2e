"""Persistent exiftool session using the ``-stay_open`` protocol.

One exiftool process is started per export run and fed commands through
its stdin, so metadata for many photos can be read and written without
paying the process start-up cost for each one. A session must only be used
by one caller at a time: frames are written and awaited strictly in turn.
"""

import asyncio
import codecs
import logging
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional

from face_label_export.exiftool import framing
from face_label_export.exiftool.models import Response, ResponseStatus

logger = logging.getLogger(__name__)

# Options applied to every command: UTF-8 file names, in-place updates
# without backup copies, fast scanning and minor errors ignored
COMMON_ARGS = ["-common_args", "-charset", "filename=UTF8", "-overwrite_original", "-fast2", "-m"]

DEFAULT_RESPONSE_TIMEOUT = 5.0
CLOSE_TIMEOUT = 5.0
READ_CHUNK_SIZE = 4096


class SessionState(str, Enum):
    """Lifecycle state of an exiftool session."""
    NEW = "new"
    OPEN = "open"
    FAILED = "failed"
    CLOSED = "closed"


class ExifToolSession:
    """Conversation with one long-running exiftool process."""

    def __init__(
        self,
        exiftool_app: str = "exiftool",
        config_file: Optional[str] = None,
        scratch_dir: Optional[str] = None,
        delete_logs: bool = True,
        response_timeout: float = DEFAULT_RESPONSE_TIMEOUT,
    ):
        if response_timeout <= 0:
            raise ValueError(f"response_timeout must be positive, got {response_timeout}")
        self.exiftool_app = exiftool_app
        self.config_file = config_file
        self.scratch_dir = scratch_dir
        self.delete_logs = delete_logs
        self.response_timeout = response_timeout

        self.sequence = 0
        self.state = SessionState.NEW
        self.command_file: Optional[Path] = None
        self.log_file: Optional[Path] = None
        self.error_log_file: Optional[Path] = None

        self._process: Optional[asyncio.subprocess.Process] = None
        self._tasks: List[asyncio.Task] = []
        self._output = ""
        self._cursor = 0
        self._output_event: Optional[asyncio.Event] = None

    @property
    def is_open(self) -> bool:
        return self.state == SessionState.OPEN

    @property
    def failed(self) -> bool:
        return self.state == SessionState.FAILED

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    def build_command(self) -> List[str]:
        """Command line that starts exiftool reading arguments from stdin."""
        command = [self.exiftool_app]
        if self.config_file:
            command += ["-config", str(self.config_file)]
        command += ["-stay_open", "True", "-@", "-"]
        return command + COMMON_ARGS

    async def open(self) -> bool:
        """Start the exiftool process.

        A process that exits later with a nonzero status marks the session
        as failed, so the result of every later operation must be checked
        rather than assuming the session stayed healthy.

        Returns:
            False if the process could not be started.
        """
        if self.state != SessionState.NEW:
            logger.warning(f"exiftool session already {self.state.value}, not reopening")
            return self.is_open

        logger.info("Starting exiftool session")
        self._allocate_scratch_files()
        self._output_event = asyncio.Event()
        command = self.build_command()
        logger.debug(f"exiftool starting: {' '.join(command)}")
        try:
            self._process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"exiftool could not be started ({self.exiftool_app}): {e}")
            self.state = SessionState.FAILED
            self._cleanup_scratch_files()
            return False

        self.state = SessionState.OPEN
        self._tasks = [
            asyncio.ensure_future(self._read_output()),
            asyncio.ensure_future(self._read_errors()),
            asyncio.ensure_future(self._watch_process()),
        ]
        return True

    async def send_frame(self, argv: Iterable[str]) -> bool:
        """Write one argument per line to the process.

        Returns:
            False if the session is not open or the frame could not be written.
        """
        try:
            frame = framing.build_frame(argv)
        except ValueError as e:
            logger.error(f"exiftool frame rejected: {e}")
            return False
        return await self._write(frame)

    async def execute_and_await(self) -> Response:
        """Execute the arguments sent so far and wait for their response.

        The wait ends when the ready marker for this command's sequence number
        appears or after ``response_timeout`` seconds. A timeout is reported
        as a ``TIMED_OUT`` response rather than raised. Cancelling the awaiting
        task aborts the wait immediately.
        """
        if not self.is_open:
            logger.warning(f"exiftool execute skipped: session {self.state.value}")
            return Response(ResponseStatus.FAILED, sequence=self.sequence)

        loop = asyncio.get_running_loop()
        # the timeout covers the write as well as the wait
        deadline = loop.time() + self.response_timeout
        self.sequence += 1
        sequence = self.sequence
        if not await self._write(framing.execute_frame(sequence)):
            return Response(ResponseStatus.FAILED, sequence=sequence)

        matcher = framing.response_matcher(sequence)
        while True:
            self._output_event.clear()
            match = matcher.find(self._output, self._cursor)
            if match:
                self._consume_through(match.start("ready"))
                body = match.group("body")
                logger.debug(f"exiftool response {sequence}: {body!r}")
                return Response(ResponseStatus.FOUND, body=body, sequence=sequence)

            if not self.is_open:
                logger.error(f"exiftool stopped while waiting for response {sequence}")
                return Response(ResponseStatus.FAILED, sequence=sequence)

            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning(
                    f"exiftool response {sequence} not received within {self.response_timeout}s"
                )
                return Response(ResponseStatus.TIMED_OUT, sequence=sequence)
            try:
                await asyncio.wait_for(self._output_event.wait(), remaining)
            except asyncio.TimeoutError:
                pass

    async def close(self) -> None:
        """Ask exiftool to exit and release the session's resources.

        Safe to call more than once, and on sessions that never opened or
        have already failed.
        """
        if self.state == SessionState.CLOSED:
            return
        logger.info("Closing exiftool session")
        if self.is_open:
            await self._write(framing.build_frame(["-stay_open", "False"]))
        self.state = SessionState.CLOSED

        if self._process is not None:
            await self._stop_process()
        for task in self._tasks:
            if not task.done():
                task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self._cleanup_scratch_files()

    async def __aenter__(self) -> "ExifToolSession":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _consume_through(self, position: int) -> None:
        # keep the ready marker just matched: it anchors the next response
        self._output = self._output[position:]
        self._cursor = 0

    async def _write(self, data: str) -> bool:
        if not self.is_open or self._process is None or self._process.stdin is None:
            logger.warning(f"exiftool write skipped: session {self.state.value}")
            return False
        logger.debug(f"exiftool command lines: {data!r}")
        try:
            self._process.stdin.write(data.encode("utf-8"))
            await self._process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError, OSError) as e:
            logger.error(f"exiftool command could not be written: {e}")
            return False
        self._append_scratch(self.command_file, data)
        return True

    async def _read_output(self) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        stdout = self._process.stdout
        while True:
            chunk = await stdout.read(READ_CHUNK_SIZE)
            text = decoder.decode(chunk, final=not chunk)
            if text:
                self._output += text
                self._append_scratch(self.log_file, text)
                self._output_event.set()
            if not chunk:
                break

    async def _read_errors(self) -> None:
        # chunked reads: a single line may exceed the stream reader's line limit
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        stderr = self._process.stderr
        pending = ""
        while True:
            chunk = await stderr.read(READ_CHUNK_SIZE)
            text = decoder.decode(chunk, final=not chunk)
            if text:
                self._append_scratch(self.error_log_file, text)
                pending += text
                *lines, pending = pending.split("\n")
                for line in lines:
                    if line.strip():
                        logger.warning(f"exiftool: {line.rstrip()}")
            if not chunk:
                break
        if pending.strip():
            logger.warning(f"exiftool: {pending.rstrip()}")

    async def _watch_process(self) -> None:
        return_code = await self._process.wait()
        if self.is_open:
            self.state = SessionState.FAILED
            logger.error(f"exiftool exited unexpectedly with status {return_code}")
        elif return_code:
            logger.warning(f"exiftool exited with status {return_code}")
        self._output_event.set()

    async def _stop_process(self) -> None:
        process = self._process
        if process.stdin is not None and not process.stdin.is_closing():
            process.stdin.close()
        try:
            await asyncio.wait_for(process.wait(), CLOSE_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("exiftool did not exit, terminating it")
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()

    def _allocate_scratch_files(self) -> None:
        fd, command_path = tempfile.mkstemp(
            prefix="exiftool_commands_", suffix=".txt", dir=self.scratch_dir
        )
        os.close(fd)
        self.command_file = Path(command_path)
        self.log_file = self.command_file.with_suffix(".log")
        self.error_log_file = self.command_file.with_suffix(".error.log")
        for path in (self.log_file, self.error_log_file):
            path.write_text("", encoding="utf-8")

    def _append_scratch(self, path: Optional[Path], text: str) -> None:
        if path is None:
            return
        try:
            with open(path, "a", encoding="utf-8") as f:
                f.write(text)
        except OSError as e:
            logger.debug(f"Could not append to {path}: {e}")

    def _cleanup_scratch_files(self) -> None:
        paths = [p for p in (self.command_file, self.log_file, self.error_log_file) if p]
        if self.delete_logs:
            logger.debug("exiftool finishing: cleanup")
            for path in paths:
                logger.debug(f"deleting: {path}")
                try:
                    path.unlink()
                except FileNotFoundError:
                    pass
        else:
            logger.info("exiftool finishing: leaving files for inspection")
            for path in paths:
                logger.info(f"leaving: {path}")
        self.command_file = self.log_file = self.error_log_file = None
