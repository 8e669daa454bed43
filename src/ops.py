from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from typing import Callable, NoReturn, Optional, TextIO

from errors import (
    ExecFailed,
    ForkFailed,
    LineTooLong,
    NoHistory,
    OpenFailed,
    PipeCreationFailed,
    ShellError,
)
from groups import (
    MAX_LINE,
    CommandPlan,
    OperatorKind,
    PipedPlan,
    Redirect,
    SinglePlan,
    format_plan,
    parse_line,
)
from history import HistorySlot

logger = logging.getLogger(__name__)

STDIN_FILENO = 0
STDOUT_FILENO = 1

EXIT_COMMAND = "exit"
INTERRUPTED_STATUS = 130  # 128 + SIGINT


class ShellSession:
    """Holds session-wide interpreter state: the history slot and last status."""

    def __init__(self, history: Optional[HistorySlot] = None, stdout: Optional[TextIO] = None) -> None:
        self.history: HistorySlot = history if history is not None else HistorySlot()
        # None means "whatever sys.stdout is at the time of writing"
        self.stdout: Optional[TextIO] = stdout
        # Exit status of the last foreground command; informational only
        self.last_status: Optional[int] = None
        # Background children not yet collected; statuses are never kept
        self.background_pids: set[int] = set()

    def echo(self, text: str) -> None:
        stream = self.stdout if self.stdout is not None else sys.stdout
        stream.write(text + "\n")
        stream.flush()


def report(error: ShellError) -> None:
    sys.stderr.write(f"osh: {error}\n")
    sys.stderr.flush()


def _flush_std_streams() -> None:
    # Unflushed text would otherwise be written once per process after fork
    sys.stdout.flush()
    sys.stderr.flush()


# ---- process primitives ----

@dataclass
class Handle:
    pid: int
    label: str


def spawn(target: Callable[[], Optional[int]], label: str, fork_label: Optional[str] = None) -> Handle:
    """Fork a child that runs ``target`` and never returns to the caller.

    The child exits with the status ``target`` returns (0 for None). Targets
    that replace the process image never get that far. A ShellError raised
    in the child is reported there and turns into exit status 1.
    """
    _flush_std_streams()
    try:
        pid = os.fork()
    except OSError as e:
        raise ForkFailed(e, label=fork_label) from e
    if pid == 0:
        _run_child(target)
    logger.debug("spawned pid %d: %s", pid, label)
    return Handle(pid, label)


def _run_child(target: Callable[[], Optional[int]]) -> NoReturn:
    status = 1
    try:
        result = target()
        status = 0 if result is None else result
    except ShellError as e:
        report(e)
    except Exception as e:
        sys.stderr.write(f"osh: error: {e}\n")
    finally:
        try:
            _flush_std_streams()
        finally:
            os._exit(status)


def wait(handle: Handle) -> int:
    """Block until ``handle`` terminates and return its exit code."""
    _, status = os.waitpid(handle.pid, 0)
    code = os.waitstatus_to_exitcode(status)
    logger.debug("pid %d exited with %d", handle.pid, code)
    return code


def reap_finished(pending: set[int]) -> int:
    """Collect the children in ``pending`` that have already exited.

    Statuses are discarded; this only keeps finished background children from
    lingering as zombies. Other children of the process are never touched.
    Returns the number of children reaped.
    """
    reaped = 0
    for pid in sorted(pending):
        try:
            done, _ = os.waitpid(pid, os.WNOHANG)
        except ChildProcessError:
            # collected by someone else
            done = pid
        if done == 0:
            continue
        pending.discard(pid)
        logger.debug("reaped background pid %d", pid)
        reaped += 1
    return reaped


class Pipe:
    """An anonymous pipe whose ends are closed at most once."""

    def __init__(self) -> None:
        try:
            self.read_fd, self.write_fd = os.pipe()
        except OSError as e:
            raise PipeCreationFailed(e) from e
        self._open = [self.read_fd, self.write_fd]

    @property
    def closed(self) -> bool:
        return not self._open

    def end_for(self, fd: int) -> int:
        return self.read_fd if fd == STDIN_FILENO else self.write_fd

    def close(self) -> None:
        while self._open:
            os.close(self._open.pop())


def connect(pipe: Pipe, fd: int) -> None:
    """Rebind ``fd`` (stdin or stdout) to the matching pipe end, then drop both ends."""
    os.dup2(pipe.end_for(fd), fd)
    pipe.close()


def become(argv: list[str]) -> NoReturn:
    """Replace the current process image with ``argv``.

    Only returns by raising ExecFailed.
    """
    program = argv[0] if argv else ""
    try:
        os.execvp(program, argv)
    except (OSError, ValueError) as e:
        raise ExecFailed(program, e) from e


def open_redirect(redirect: Redirect) -> int:
    """Open the redirect target and duplicate it onto stdin or stdout.

    Returns the descriptor that was opened so it can be closed if the
    program never starts.
    """
    try:
        fd = os.open(redirect.path, redirect.flags, 0o666)
    except OSError as e:
        direction = "input" if redirect.kind is OperatorKind.INPUT_REDIRECT else "output"
        raise OpenFailed(e, redirect.path, label=f"{direction} file failed") from e
    os.dup2(fd, redirect.target_fd)
    return fd


# ---- plan execution ----

def run_plan(plan: CommandPlan) -> NoReturn:
    """Body of a spawned child: wire descriptors, then become the program."""
    if isinstance(plan, PipedPlan):
        _run_piped(plan)
    if plan.redirect is None:
        become(plan.argv)
    fd = open_redirect(plan.redirect)
    try:
        become(plan.argv)
    except ExecFailed:
        os.close(fd)
        raise


def _become_writer(pipe: Pipe, argv: list[str]) -> NoReturn:
    connect(pipe, STDOUT_FILENO)
    become(argv)


def _run_piped(plan: PipedPlan) -> NoReturn:
    # The upstream runs to completion before the downstream attaches to the
    # pipe, so output larger than the pipe buffer blocks the upstream.
    pipe = Pipe()
    try:
        upstream = spawn(
            lambda: _become_writer(pipe, plan.left),
            " ".join(plan.left),
            fork_label="child fork failed",
        )
    except ForkFailed:
        pipe.close()
        raise
    wait(upstream)
    connect(pipe, STDIN_FILENO)
    become(plan.right)


def dispatch(plan: CommandPlan, background: bool = False, pending: Optional[set[int]] = None) -> int:
    """Run ``plan`` in a child process.

    Foreground plans are waited for and their exit code returned; Ctrl-C
    while waiting gives INTERRUPTED_STATUS once the child is gone. Background
    plans return 0 immediately and their pid is added to ``pending``.
    """
    handle = spawn(lambda: run_plan(plan), format_plan(plan))
    if background:
        logger.debug("pid %d left running in background", handle.pid)
        if pending is not None:
            pending.add(handle.pid)
        return 0
    try:
        return wait(handle)
    except KeyboardInterrupt:
        # the child got the same SIGINT from the terminal
        os.waitpid(handle.pid, 0)
        logger.debug("pid %d interrupted", handle.pid)
        return INTERRUPTED_STATUS


# ---- interpreter cycle ----

def is_exit(line: str) -> bool:
    return line == EXIT_COMMAND


def execute_line(line: str, session: ShellSession) -> int:
    """Interpret one input line.

    Returns the foreground exit code, 0 when nothing ran or the command went
    to the background, and 1 when the line could not be run at all.
    """
    reap_finished(session.background_pids)
    if not line.strip():
        return 0

    try:
        if len(line) >= MAX_LINE:
            raise LineTooLong(f"{len(line)} characters, at most {MAX_LINE - 1} allowed")
        line, recalled = session.history.substitute(line)
        if recalled:
            session.echo(f"Previous command: {line}")
        parsed = parse_line(line)
        logger.debug("parsed %r as %s (background=%s)", line, format_plan(parsed.plan), parsed.background)
        if isinstance(parsed.plan, SinglePlan) and not parsed.plan.argv and parsed.plan.redirect is None:
            # a lone "&"
            return 0
        code = dispatch(parsed.plan, parsed.background, session.background_pids)
    except NoHistory as e:
        session.echo(e.label)
        return 1
    except ShellError as e:
        report(e)
        return 1

    if not parsed.background:
        session.last_status = code
    return code
