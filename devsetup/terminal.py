"""Interactive terminal sessions and exit-code marker scanning.

A terminal session is a long-lived shell the user can see and type into.
Commands are written into it as text, so the only way to learn a command's
exit status is to follow it with ``echo <token>:$?`` and watch the output
stream for that line. ``MarkerScanner`` is the state machine that does the
watching:

    WAITING --(complete line containing <token>:<digits>)--> MATCHED
    WAITING --(caller gives up)--> TIMED_OUT

Output arrives in arbitrary chunks; the scanner buffers until a newline so
a marker split across chunks is still found. The echo of the command line
itself contains ``<token>:$?`` and never matches the digits pattern.
"""

import asyncio
import codecs
import itertools
import logging
import os
import re
import shutil
import subprocess
import sys
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable

from .errors import CommandError

_logging = logging.getLogger(__name__)

MARKER_PREFIX = "DEVSETUP_EXIT"

# CSI sequences, OSC sequences and single-character escapes
_ANSI_PATTERN = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)|\x1b[@-Z\\-_]"
)

# Keep at most this much of an unterminated line
_MAX_PENDING = 8192

_token_counter = itertools.count(1)


def new_marker_token() -> str:
    """Return a token that has never been used in this process."""
    return f"{MARKER_PREFIX}_{time.time_ns()}_{next(_token_counter)}"


def strip_ansi(text: str) -> str:
    return _ANSI_PATTERN.sub("", text)


class ScanState(Enum):
    WAITING = "waiting"
    MATCHED = "matched"
    TIMED_OUT = "timed_out"


class MarkerScanner:
    """Find ``<token>:<exit code>`` in a stream of output chunks."""

    def __init__(self, token: str):
        self.token = token
        self.state = ScanState.WAITING
        self.exit_code: int | None = None
        self._pending = ""
        self._pattern = re.compile(re.escape(token) + r":(\d+)")

    def feed(self, chunk: str) -> bool:
        """Consume a chunk. Returns True once the marker has been matched."""
        if self.state != ScanState.WAITING:
            return self.state == ScanState.MATCHED

        self._pending += chunk
        *lines, self._pending = self._pending.split("\n")
        if len(self._pending) > _MAX_PENDING:
            self._pending = self._pending[-_MAX_PENDING:]

        for line in lines:
            match = self._pattern.search(strip_ansi(line).replace("\r", ""))
            if match:
                self.exit_code = int(match.group(1))
                self.state = ScanState.MATCHED
                self._pending = ""
                return True
        return False

    def time_out(self) -> None:
        if self.state == ScanState.WAITING:
            self.state = ScanState.TIMED_OUT


class Subscription:
    """Handle returned by ``TerminalSession.subscribe``; usable as a context manager."""

    def __init__(self, session: "TerminalSession", callback: Callable[[str], None]):
        self._session = session
        self._callback = callback
        self.active = True

    def dispose(self) -> None:
        if self.active:
            self._session._remove_listener(self._callback)
            self.active = False

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()


class TerminalSession(ABC):
    """A user-visible shell that accepts text and publishes its raw output.

    Subclasses call ``_emit`` for every output chunk and ``_mark_closed``
    when the shell goes away.
    """

    def __init__(self, name: str):
        self.name = name
        self._listeners: list[Callable[[str], None]] = []
        self._closed: asyncio.Event | None = None

    def _closed_event(self) -> asyncio.Event:
        if self._closed is None:
            self._closed = asyncio.Event()
        return self._closed

    @property
    def is_closed(self) -> bool:
        return self._closed is not None and self._closed.is_set()

    def subscribe(self, callback: Callable[[str], None]) -> Subscription:
        self._listeners.append(callback)
        return Subscription(self, callback)

    def _remove_listener(self, callback: Callable[[str], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _emit(self, chunk: str) -> None:
        for callback in list(self._listeners):
            callback(chunk)

    def _mark_closed(self) -> None:
        self._closed_event().set()

    async def wait_closed(self) -> None:
        await self._closed_event().wait()

    async def start(self) -> None:
        """Bring the session up. Default: nothing to do."""

    @abstractmethod
    def send_text(self, text: str, add_newline: bool = True) -> None:
        """Write text into the session as if the user typed it."""

    @abstractmethod
    async def close(self) -> None:
        """Shut the session down and release its resources."""

    async def __aenter__(self) -> "TerminalSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


def _default_shell() -> str:
    # The exit-code marker relies on POSIX $?, so fish/csh from $SHELL are skipped.
    return shutil.which("bash") or "/bin/sh"


def _acquire_controlling_tty() -> None:
    """Run in the child: new session with the pty slave (fd 0) as its tty.

    sudo reads passwords from /dev/tty, which only exists for a process
    with a controlling terminal.
    """
    import fcntl
    import termios

    os.setsid()
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


# Seconds to wait for the shell to honour ``exit`` before killing it
_EXIT_GRACE = 2.0


class PtyTerminal(TerminalSession):
    """Shell running in a pseudo-terminal attached to the user's console.

    Output is mirrored to stdout. While the session is open and stdin is a
    TTY, keystrokes are forwarded into the pty so the user can answer sudo
    and confirmation prompts. Ctrl-C is not forwarded; it interrupts
    devsetup, which then closes the shell.
    """

    def __init__(
        self,
        name: str = "devsetup",
        shell: str | None = None,
        shell_args: list[str] | None = None,
        mirror_output: bool = True,
        forward_input: bool = True,
    ):
        super().__init__(name)
        self.shell = shell or _default_shell()
        self.shell_args = list(shell_args or [])
        self.mirror_output = mirror_output
        self.forward_input = forward_input
        self._process: asyncio.subprocess.Process | None = None
        self._master_fd: int | None = None
        self._stdin_fd: int | None = None
        self._saved_tty_attrs: list | None = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    async def start(self) -> None:
        """Spawn the shell on a fresh pty.

        Raises:
            CommandError: With reason ``spawn_failure`` if the pty cannot be
                opened or the shell cannot be started
        """
        import pty

        loop = asyncio.get_running_loop()
        env = os.environ.copy()
        env.setdefault("TERM", "xterm-256color")
        try:
            master_fd, slave_fd = pty.openpty()
        except OSError as e:
            raise CommandError(self.shell, CommandError.SPAWN_FAILURE, detail=str(e)) from e
        try:
            self._process = await asyncio.create_subprocess_exec(
                self.shell,
                *self.shell_args,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                env=env,
                preexec_fn=_acquire_controlling_tty,
            )
        except (OSError, subprocess.SubprocessError) as e:
            os.close(master_fd)
            raise CommandError(self.shell, CommandError.SPAWN_FAILURE, detail=str(e)) from e
        finally:
            os.close(slave_fd)

        self._master_fd = master_fd
        self._closed_event()
        loop.add_reader(master_fd, self._on_output)
        _logging.debug(f"Started terminal '{self.name}' (pid {self._process.pid})")

        if self.forward_input and sys.stdin.isatty():
            self._attach_stdin(loop)

    def _attach_stdin(self, loop: asyncio.AbstractEventLoop) -> None:
        import termios

        fd = sys.stdin.fileno()
        self._saved_tty_attrs = termios.tcgetattr(fd)
        attrs = termios.tcgetattr(fd)
        # The pty echoes (or hides) what is typed; the outer console must not.
        # ISIG stays set: Ctrl-C interrupts devsetup, not the command in the pty.
        attrs[3] &= ~(termios.ECHO | termios.ICANON)
        termios.tcsetattr(fd, termios.TCSANOW, attrs)
        self._stdin_fd = fd
        loop.add_reader(fd, self._on_input)

    def _detach_stdin(self) -> None:
        if self._stdin_fd is None:
            return
        import termios

        asyncio.get_running_loop().remove_reader(self._stdin_fd)
        if self._saved_tty_attrs is not None:
            termios.tcsetattr(self._stdin_fd, termios.TCSADRAIN, self._saved_tty_attrs)
        self._stdin_fd = None
        self._saved_tty_attrs = None

    def _on_input(self) -> None:
        if self._stdin_fd is None or self._master_fd is None:
            return
        data = os.read(self._stdin_fd, 1024)
        if data:
            os.write(self._master_fd, data)

    def _on_output(self) -> None:
        if self._master_fd is None:
            return
        try:
            data = os.read(self._master_fd, 4096)
        except OSError:
            # EIO: the shell exited and the slave side is gone
            data = b""
        if not data:
            asyncio.get_running_loop().remove_reader(self._master_fd)
            self._mark_closed()
            return

        text = self._decoder.decode(data)
        if self.mirror_output:
            sys.stdout.write(text)
            sys.stdout.flush()
        self._emit(text)

    def send_text(self, text: str, add_newline: bool = True) -> None:
        if self._master_fd is None or self.is_closed:
            raise OSError(f"Terminal '{self.name}' is not running")
        payload = text + ("\n" if add_newline else "")
        os.write(self._master_fd, payload.encode())

    async def close(self) -> None:
        self._detach_stdin()
        if self._master_fd is not None:
            asyncio.get_running_loop().remove_reader(self._master_fd)
        if self._process is not None and self._process.returncode is None:
            # Interactive shells ignore SIGTERM; ask politely, then kill.
            if self._master_fd is not None:
                try:
                    os.write(self._master_fd, b"exit\n")
                except OSError:
                    pass
            try:
                await asyncio.wait_for(self._process.wait(), timeout=_EXIT_GRACE)
            except asyncio.TimeoutError:
                try:
                    self._process.kill()
                except ProcessLookupError:
                    pass
                await self._process.wait()
        if self._master_fd is not None:
            os.close(self._master_fd)
            self._master_fd = None
        self._mark_closed()
        _logging.debug(f"Closed terminal '{self.name}'")


__all__ = [
    "MARKER_PREFIX",
    "new_marker_token",
    "strip_ansi",
    "ScanState",
    "MarkerScanner",
    "Subscription",
    "TerminalSession",
    "PtyTerminal",
]
