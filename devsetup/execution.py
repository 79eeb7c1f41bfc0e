"""Async command execution.

Two entry points:
- ``run_command_async`` / ``run_exec_async`` spawn a child process, capture
  its output and enforce a timeout
- ``CommandChannel`` runs installer commands either silently (captured,
  bounded by a timeout) or interactively through a ``TerminalSession``
  (unbounded, waits for the exit-code marker)
"""

import asyncio
import logging
import os
import signal
from enum import Enum
from typing import Callable

from .errors import CommandError
from .terminal import MarkerScanner, TerminalSession, new_marker_token

DEFAULT_TIMEOUT = 30
PROBE_TIMEOUT = 30
INSTALL_TIMEOUT = 600

_logging = logging.getLogger(__name__)

LineSink = Callable[[str], None]


def _log_sink(line: str) -> None:
    _logging.info(line)


def _kill_process_tree(process: asyncio.subprocess.Process) -> None:
    """Kill the child and everything in its session."""
    try:
        if hasattr(os, "killpg"):
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except (ProcessLookupError, PermissionError):
        pass


def _close_transport(process: asyncio.subprocess.Process | None) -> None:
    if process:
        transport = getattr(process, "_transport", None)
        if transport:
            transport.close()


async def _drain_lines(stream: asyncio.StreamReader, sink: LineSink) -> list[str]:
    lines = []
    while True:
        raw = await stream.readline()
        if not raw:
            break
        line = raw.decode(errors="replace").rstrip("\r\n")
        lines.append(line)
        sink(line)
    return lines


async def run_command_async(
    command: str,
    timeout: float = DEFAULT_TIMEOUT,
    sink: LineSink | None = None,
) -> tuple[str, int]:
    """Run a shell command, streaming merged stdout/stderr into ``sink``.

    The child gets its own session so that a timeout can take down the
    whole process tree, not just the shell.

    Returns:
        Tuple of (captured output, return code)

    Raises:
        CommandError: On timeout or when the process cannot be spawned
    """
    sink = sink or _log_sink
    process = None
    try:
        _logging.debug(f"Running command: {command}")
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                stdin=asyncio.subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise CommandError(
                command, CommandError.SPAWN_FAILURE, detail=f"{type(e).__name__}: {e}"
            ) from e

        async def _collect() -> list[str]:
            assert process.stdout is not None
            lines = await _drain_lines(process.stdout, sink)
            await process.wait()
            return lines

        try:
            lines = await asyncio.wait_for(_collect(), timeout=timeout)
        except asyncio.TimeoutError:
            _kill_process_tree(process)
            _ = await process.wait()
            _logging.error(f"Command timed out after {timeout} seconds: {command}")
            raise CommandError(
                command,
                CommandError.TIMEOUT,
                detail=f"no exit after {timeout} seconds",
            )

        returncode = process.returncode if process.returncode is not None else 1
        return "\n".join(lines).strip(), returncode
    finally:
        _close_transport(process)


async def run_exec_async(
    argv: list[str], timeout: float = PROBE_TIMEOUT
) -> tuple[str, str, int]:
    """Run a program without a shell and capture stdout and stderr separately.

    Raises:
        CommandError: On timeout or when the program cannot be spawned
    """
    display = " ".join(argv)
    process = None
    try:
        _logging.debug(f"Running: {display}")
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise CommandError(
                display, CommandError.SPAWN_FAILURE, detail=f"{type(e).__name__}: {e}"
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            _ = await process.wait()
            raise CommandError(
                display,
                CommandError.TIMEOUT,
                detail=f"no exit after {timeout} seconds",
            )

        returncode = process.returncode if process.returncode is not None else 1
        return (
            stdout.decode(errors="replace").strip(),
            stderr.decode(errors="replace").strip(),
            returncode,
        )
    finally:
        _close_transport(process)


class CommandMode(Enum):
    SILENT = "silent"
    INTERACTIVE = "interactive"


class CommandChannel:
    """Runs one command at a time and resolves once its exit code is known.

    Silent mode is for commands that never prompt. Interactive mode needs
    a terminal session and has no timeout unless ``interactive_timeout``
    is given, because the user may be typing a password.
    """

    def __init__(
        self,
        terminal: TerminalSession | None = None,
        silent_timeout: float = INSTALL_TIMEOUT,
        interactive_timeout: float | None = None,
        sink: LineSink | None = None,
    ):
        self.terminal = terminal
        self.silent_timeout = silent_timeout
        self.interactive_timeout = interactive_timeout
        self.sink = sink

    async def run(self, command: str, mode: CommandMode = CommandMode.SILENT) -> None:
        """Run ``command``; return on exit code 0.

        Raises:
            CommandError: On non-zero exit, timeout or spawn failure
        """
        if mode == CommandMode.INTERACTIVE:
            await self.run_interactive(command)
        else:
            await self.run_silent(command)

    async def run_silent(self, command: str) -> None:
        _logging.info(f"> Running silently: {command}")
        output, returncode = await run_command_async(
            command, timeout=self.silent_timeout, sink=self.sink
        )
        if returncode != 0:
            raise CommandError(
                command, CommandError.EXIT_CODE, exit_code=returncode, detail=output[-200:]
            )

    async def run_interactive(self, command: str) -> None:
        terminal = self.terminal
        if terminal is None:
            raise CommandError(
                command, CommandError.SPAWN_FAILURE, detail="no terminal session"
            )

        scanner = MarkerScanner(new_marker_token())
        matched: asyncio.Future[int] = asyncio.get_running_loop().create_future()

        def _on_data(chunk: str) -> None:
            if scanner.feed(chunk) and not matched.done():
                matched.set_result(scanner.exit_code)

        with terminal.subscribe(_on_data):
            _logging.info(f"> Sending to terminal: {command}")
            try:
                terminal.send_text(f"{command}; echo {scanner.token}:$?")
            except OSError as e:
                raise CommandError(
                    command, CommandError.SPAWN_FAILURE, detail=str(e)
                ) from e

            closed = asyncio.ensure_future(terminal.wait_closed())
            try:
                done, _ = await asyncio.wait(
                    {matched, closed},
                    timeout=self.interactive_timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )
            finally:
                closed.cancel()

            if matched not in done:
                matched.cancel()
                if closed in done:
                    raise CommandError(
                        command,
                        CommandError.SPAWN_FAILURE,
                        detail="terminal closed before the command finished",
                    )
                scanner.time_out()
                raise CommandError(
                    command,
                    CommandError.TIMEOUT,
                    detail=f"no exit marker after {self.interactive_timeout} seconds",
                )

        exit_code = matched.result()
        if exit_code != 0:
            raise CommandError(command, CommandError.EXIT_CODE, exit_code=exit_code)


__all__ = [
    "DEFAULT_TIMEOUT",
    "PROBE_TIMEOUT",
    "INSTALL_TIMEOUT",
    "run_command_async",
    "run_exec_async",
    "CommandMode",
    "CommandChannel",
]
