# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Run a command inside the container attached to the local terminal.

The bridge spawns the engine client (``docker exec -i`` or
``docker attach``) with the local stdin/stdout/stderr inherited, then
races two activities until the command finishes:

- a **wait** thread blocked in ``Popen.wait()`` that posts exactly one
  completion event;
- **signal relay**: handlers for every relayed signal post a
  signal event, which the control loop forwards to the engine client.

Both post to one event queue (``queue.SimpleQueue``, whose ``put`` is
safe to call from a signal handler). The control loop handles events in
arrival order and stops at the completion event; anything queued after
it is dropped, so no signal is relayed once the remote process has
exited. A signal such as SIGINT is therefore forwarded instead of
interrupting cbug.
"""

from __future__ import annotations

import logging
import queue
import signal
import subprocess
import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from types import FrameType
from typing import Any

from cbug.container._engine import DockerEngine
from cbug.container.errors import BridgeError
from cbug.container.types import CommandRequest, ExitOutcome


logger = logging.getLogger(__name__)

# Job-control signals (SIGTSTP/SIGCONT) are left to the local shell and
# SIGCHLD describes our own child, so none of those are relayed.
_RELAYED_SIGNAL_NAMES = (
    "SIGINT",
    "SIGTERM",
    "SIGHUP",
    "SIGQUIT",
    "SIGUSR1",
    "SIGUSR2",
    "SIGWINCH",
    "SIGALRM",
)

#: argv[0] prefix that marks a path-style invocation.
_PATH_SEPARATOR = "/"

#: Shell used to launch path-style invocations.
_SHELL = "bash"


def relayed_signals() -> list[signal.Signals]:
    """Signals relayed to the remote process on this platform."""
    return [
        getattr(signal, name)
        for name in _RELAYED_SIGNAL_NAMES
        if hasattr(signal, name)
    ]


@dataclass(frozen=True)
class _SignalArrived:
    signum: int


@dataclass(frozen=True)
class _Finished:
    """Posted once by the wait thread."""

    returncode: int | None = None
    error: BaseException | None = None


_Event = _SignalArrived | _Finished
_Handler = Callable[[int, FrameType | None], Any] | int | None


class ProcessBridge:
    """Connects local standard I/O to a process inside the container.

    Thread Safety:
        run() must be called from the main thread to relay signals
        (Python only installs signal handlers there). From any other
        thread the command still runs, without relay. Not reentrant.
    """

    def __init__(
        self,
        engine: DockerEngine,
        *,
        signals: Iterable[int] | None = None,
    ) -> None:
        """Initialize bridge.

        Args:
            engine: Container engine client used to build the command.
            signals: Signals to relay. Defaults to relayed_signals().
        """
        self._engine = engine
        self._signals = (
            list(signals) if signals is not None else relayed_signals()
        )

    def build_argv(self, request: CommandRequest) -> list[str]:
        """Translate *request* into the engine client command line.

        Raises:
            BridgeError: If exec mode is requested without a command.
        """
        if request.attach:
            if request.tty:
                logger.warning(
                    "tty is not possible when attaching a container. "
                    "ignoring..."
                )
            return self._engine.attach_argv(request.container)

        argv = list(request.argv)
        if not argv:
            raise BridgeError("No command given to run in the container")
        if argv[0].startswith(_PATH_SEPARATOR):
            argv = [_SHELL, *argv]
        return self._engine.exec_argv(request.container, argv, tty=request.tty)

    def run(self, request: CommandRequest) -> ExitOutcome:
        """Run *request* and block until the remote command terminates.

        There is no timeout. The call returns when the command exits and
        raises when the command cannot be started or a signal cannot be
        relayed.

        Returns:
            How the remote command terminated.

        Raises:
            BridgeError: On spawn failure, wait failure, or a relay
                failure other than the process having already exited.
        """
        cmd = self.build_argv(request)
        logger.debug("Bridging: %s", " ".join(cmd))

        events: queue.SimpleQueue[_Event] = queue.SimpleQueue()
        previous = self._install_relay(events)
        try:
            try:
                process = subprocess.Popen(cmd)
            except OSError as e:
                raise BridgeError(
                    f"Error creating command in container: {e}"
                ) from e

            waiter = threading.Thread(
                target=_wait_for_exit,
                args=(process, events),
                name="cbug-bridge-wait",
                daemon=True,
            )
            # The wait thread inherits a mask blocking the relayed signals,
            # so they are always delivered to the main thread.
            with _signals_blocked(list(previous)):
                waiter.start()
            outcome = self._control_loop(process, events)
        finally:
            _restore_handlers(previous)

        logger.info("Remote command %s", outcome.describe())
        return outcome

    def _control_loop(
        self,
        process: subprocess.Popen[Any],
        events: queue.SimpleQueue[_Event],
    ) -> ExitOutcome:
        """Handle events until the wait thread reports completion."""
        while True:
            event = events.get()
            if isinstance(event, _Finished):
                if event.error is not None:
                    raise BridgeError(
                        "Error during connection between cbug and "
                        f"container: {event.error}"
                    ) from event.error
                if event.returncode is None:
                    raise BridgeError(
                        "Command finished without an exit status"
                    )
                return ExitOutcome.from_returncode(event.returncode)
            _relay(process, event.signum)

    def _install_relay(
        self, events: queue.SimpleQueue[_Event]
    ) -> dict[int, _Handler]:
        """Route relayed signals into *events*; return previous handlers."""
        if threading.current_thread() is not threading.main_thread():
            logger.warning(
                "Not on the main thread; signals will not be relayed"
            )
            return {}

        def on_signal(signum: int, frame: FrameType | None) -> None:
            events.put(_SignalArrived(signum))

        previous: dict[int, _Handler] = {}
        for signum in self._signals:
            previous[signum] = signal.getsignal(signum)
            signal.signal(signum, on_signal)
        return previous


def _wait_for_exit(
    process: subprocess.Popen[Any], events: queue.SimpleQueue[_Event]
) -> None:
    """Wait activity: post exactly one completion event."""
    try:
        returncode = process.wait()
    except Exception as e:
        events.put(_Finished(error=e))
    else:
        events.put(_Finished(returncode=returncode))


def _relay(process: subprocess.Popen[Any], signum: int) -> None:
    """Forward one signal to the engine client process.

    Raises:
        BridgeError: If delivery fails for a reason other than the
            process having already exited.
    """
    try:
        process.send_signal(signum)
    except ProcessLookupError:
        logger.debug("Signal %d not relayed: process already finished", signum)
        return
    except OSError as e:
        raise BridgeError(
            f"Error sending signal {signum} from cbug to container: {e}"
        ) from e
    logger.debug("Relayed signal %d to pid %d", signum, process.pid)


@contextmanager
def _signals_blocked(signals: list[int]) -> Iterator[None]:
    if not signals or not hasattr(signal, "pthread_sigmask"):
        yield
        return
    old_mask = signal.pthread_sigmask(signal.SIG_BLOCK, signals)
    try:
        yield
    finally:
        signal.pthread_sigmask(signal.SIG_SETMASK, old_mask)


def _restore_handlers(previous: dict[int, _Handler]) -> None:
    for signum, handler in previous.items():
        # None means the handler was installed outside Python
        if handler is None:
            handler = signal.SIG_DFL
        signal.signal(signum, handler)
