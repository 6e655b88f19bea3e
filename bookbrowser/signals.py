"""Routing of OS signals to shutdown and catalog refresh actions."""

from __future__ import annotations

import os
import queue
import signal
import threading
from typing import Any, Callable

from .logging import flush_logging, get_logger
from .scratch import ScratchDirOwnership

LOGGER = get_logger(__name__)

TERMINATION_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)
REFRESH_SIGNAL: signal.Signals | None = getattr(signal, "SIGUSR1", None)

InstallHook = Callable[[int, Callable[[int, Any], None]], Any]
ExitHook = Callable[[int], Any]


def _signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return str(signum)


class SignalCoordinator:
    """Dispatch termination and refresh signals to listener threads.

    The OS-level handler only enqueues the signal number. One listener thread
    consumes a single termination signal, releases the scratch directory and
    exits the process. A second listener runs the refresh callback once per
    refresh signal. Both handlers are bound to values captured when they are
    installed, so nothing is read from module state at delivery time.
    """

    def __init__(
        self,
        *,
        install: InstallHook = signal.signal,
        exit_process: ExitHook = os._exit,
    ) -> None:
        self._install = install
        self._exit = exit_process
        self._termination_queue: queue.SimpleQueue[int] = queue.SimpleQueue()
        self._refresh_queue: queue.SimpleQueue[int] = queue.SimpleQueue()
        self._termination_thread: threading.Thread | None = None
        self._refresh_thread: threading.Thread | None = None
        self._ownership: ScratchDirOwnership | None = None
        self._shutdown_lock = threading.Lock()
        self._shutdown_claimed = False

    @property
    def termination_installed(self) -> bool:
        return self._termination_thread is not None

    @property
    def refresh_armed(self) -> bool:
        return self._refresh_thread is not None

    def install_termination_handler(self, ownership: ScratchDirOwnership) -> None:
        """Bind SIGINT and SIGTERM to scratch cleanup followed by exit code 0."""

        if self._termination_thread is not None:
            raise RuntimeError("termination handler already installed")

        self._ownership = ownership
        thread = threading.Thread(
            target=self._await_termination,
            args=(ownership,),
            name="bookbrowser-termination",
            daemon=True,
        )
        self._termination_thread = thread
        thread.start()
        for signum in TERMINATION_SIGNALS:
            self._install(signum, self._on_signal)

    def arm_refresh_handler(self, refresh: Callable[[], None]) -> None:
        """Bind the refresh signal to ``refresh``, run once per delivery."""

        if self._refresh_thread is not None:
            raise RuntimeError("refresh handler already armed")
        if REFRESH_SIGNAL is None:
            LOGGER.warning("Refresh signal is not available on this platform; live reindex disabled")
            return

        thread = threading.Thread(
            target=self._refresh_loop,
            args=(refresh,),
            name="bookbrowser-refresh",
            daemon=True,
        )
        self._refresh_thread = thread
        thread.start()
        self._install(REFRESH_SIGNAL, self._on_signal)

    def release_for_exit(self, timeout: float = 5.0) -> bool:
        """Release the scratch directory ahead of a fatal exit.

        Shutdown is claimed at most once per process. If a termination signal
        got there first, nothing is released here; the call waits up to
        ``timeout`` seconds for that listener to finish and returns ``False``.
        """

        if not self._claim_shutdown():
            thread = self._termination_thread
            if thread is not None and thread is not threading.current_thread():
                thread.join(timeout)
            return False
        if self._ownership is not None:
            self._ownership.release()
        return True

    def deliver(self, signum: int) -> None:
        """Queue ``signum`` for the listener that owns it."""

        if signum in TERMINATION_SIGNALS:
            self._termination_queue.put(signum)
        elif REFRESH_SIGNAL is not None and signum == REFRESH_SIGNAL:
            self._refresh_queue.put(signum)
        else:
            LOGGER.debug("Ignoring unexpected signal %s", _signal_name(signum))

    def _on_signal(self, signum: int, _frame: Any) -> None:
        self.deliver(signum)

    def _claim_shutdown(self) -> bool:
        with self._shutdown_lock:
            if self._shutdown_claimed:
                return False
            self._shutdown_claimed = True
            return True

    def _await_termination(self, ownership: ScratchDirOwnership) -> None:
        signum = self._termination_queue.get()
        if not self._claim_shutdown():
            LOGGER.info("Received %s during a fatal exit; leaving cleanup to it", _signal_name(signum))
            return
        LOGGER.info("Received %s, shutting down", _signal_name(signum))
        try:
            ownership.release()
        finally:
            flush_logging()
            self._exit(0)

    def _refresh_loop(self, refresh: Callable[[], None]) -> None:
        while True:
            signum = self._refresh_queue.get()
            LOGGER.info("Booklist refresh triggered by %s", _signal_name(signum))
            try:
                refresh()
            except Exception:
                LOGGER.exception("Booklist refresh failed")
