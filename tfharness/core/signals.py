"""Signal guard ensuring terraform teardown runs when the test process is interrupted."""

from __future__ import annotations

import logging
import os
import queue
import signal
import threading
import types
from typing import Any, Callable

from tfharness.constants import SIGNAL_GUARD_JOIN_TIMEOUT_SECONDS
from tfharness.exceptions import LifecycleError, SetupError

logger = logging.getLogger(__name__)

GUARDED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SignalGuard:
    """Single-use watcher that runs a teardown callback on SIGINT/SIGTERM.

    Python only runs signal handlers on the main thread, so the handler does
    no work itself: it hands the first signal to a daemon watcher thread,
    which runs the teardown synchronously. Once teardown has completed the
    handler becomes a pass-through that restores the previous handlers and
    re-delivers the signal to them. With ``forward`` set, the watcher
    re-raises the original signal itself so the host process still sees the
    interruption.

    Parameters
    ----------
    teardown : Callable[[], None]
        Callback run once when a signal arrives
    forward : bool
        Re-deliver the signal to the previous handlers after teardown
    signals : tuple[int, ...]
        Signals to intercept
    """

    def __init__(
        self,
        teardown: Callable[[], None],
        forward: bool = True,
        signals: tuple[int, ...] = GUARDED_SIGNALS,
    ) -> None:
        self._teardown = teardown
        self.forward = forward
        self.signals = tuple(signals)
        self._queue: queue.Queue[int | None] = queue.Queue()
        self._lock = threading.RLock()
        self._previous: dict[int, Any] = {}
        self._thread: threading.Thread | None = None
        self._received: int | None = None
        self._done = threading.Event()
        self._restored = False
        self._disarmed = False

    @property
    def installed(self) -> bool:
        return self._thread is not None

    @property
    def fired(self) -> bool:
        """Whether a signal has been received and teardown started."""
        with self._lock:
            return self._received is not None

    def on_watcher_thread(self) -> bool:
        return threading.current_thread() is self._thread

    def wait(self, timeout: float | None = None) -> bool:
        """Block until signal-triggered teardown has finished.

        Returns
        -------
        bool
            True if teardown completed within timeout
        """
        return self._done.wait(timeout)

    def install(self) -> None:
        """Install the signal handlers and start the watcher thread.

        Raises
        ------
        SetupError
            If called from a thread other than the main thread
        LifecycleError
            If the guard is already installed
        """
        if threading.current_thread() is not threading.main_thread():
            raise SetupError("signal handlers can only be installed from the main thread")

        with self._lock:
            if self._thread is not None:
                raise LifecycleError("signal guard is already installed")

            for signum in self.signals:
                self._previous[signum] = signal.getsignal(signum)
                signal.signal(signum, self._handle)

            self._thread = threading.Thread(
                target=self._watch, name="tfharness-signal-guard", daemon=True
            )
            self._thread.start()

        logger.debug(
            "Signal guard installed for %s (forward=%s)",
            ", ".join(signal.Signals(s).name for s in self.signals),
            self.forward,
        )

    def disarm(self) -> None:
        """Stop watching for signals after normal teardown.

        If a signal already fired, waits for its teardown to finish instead.
        Previous handlers are restored when called from the main thread.
        """
        with self._lock:
            thread = self._thread
            fired = self._received is not None
            if thread is not None and not fired:
                self._disarmed = True

        if thread is None:
            return

        if not fired:
            self._queue.put(None)

        thread.join(timeout=SIGNAL_GUARD_JOIN_TIMEOUT_SECONDS)

        if threading.current_thread() is threading.main_thread():
            self._restore()

    def _handle(self, signum: int, frame: types.FrameType | None) -> None:
        with self._lock:
            disarmed = self._disarmed
            first = self._received is None and not disarmed
            if first:
                self._received = signum

        if disarmed:
            self._restore()
            self._redeliver(signum, frame)
            return

        if first:
            self._queue.put(signum)
            return

        if self._done.is_set():
            self._restore()
            self._redeliver(signum, frame)
            return

        logger.warning(
            "Received %s while terraform teardown is in progress; ignoring",
            signal.Signals(signum).name,
        )

    def _watch(self) -> None:
        signum = self._queue.get()

        if signum is None:
            logger.debug("Signal guard disarmed")
            return

        logger.warning(
            "Signalled (%s); will destroy terraform now", signal.Signals(signum).name
        )

        try:
            self._teardown()
        except Exception as e:
            logger.error("Teardown after %s failed: %s", signal.Signals(signum).name, e)
        finally:
            self._done.set()

        if self.forward:
            logger.debug("Forwarding %s to pid %s", signal.Signals(signum).name, os.getpid())
            os.kill(os.getpid(), signum)

    def _restore(self) -> None:
        with self._lock:
            if self._restored:
                return

            for signum, previous in self._previous.items():
                signal.signal(signum, previous if previous is not None else signal.SIG_DFL)

            self._restored = True

    def _redeliver(self, signum: int, frame: types.FrameType | None) -> None:
        previous = self._previous.get(signum)

        if callable(previous):
            previous(signum, frame)
        elif previous in (signal.SIG_DFL, None):
            os.kill(os.getpid(), signum)
