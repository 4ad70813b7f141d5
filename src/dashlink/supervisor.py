"""Reconnect supervisor: periodic re-probing and the interactive retry loop.

:class:`ReconnectSupervisor` owns the application's view of connectivity
(:class:`~dashlink.models.ConnectionState`) and moves it between four
states::

    UNKNOWN --diagnose--> CONNECTED | DISCONNECTED
    DISCONNECTED --interactive--> AWAITING_USER_CHOICE
    AWAITING_USER_CHOICE --retry--> diagnose again
    AWAITING_USER_CHOICE --quit--> ConnectionAbandoned raised

Two entry points drive it:

* :meth:`ReconnectSupervisor.startup_check` blocks until the backend is
  usable or the user quits. The prompt is shown again after every failed
  retry; there is no retry limit.
* A background ticker started with :meth:`ReconnectSupervisor.start`
  re-runs the cascade every ``interval`` seconds. Ticks never prompt and
  are skipped while a prompt is open.

Subscribers registered with :meth:`ReconnectSupervisor.on_connection_change`
are called with ``True``/``False`` whenever the connected flag changes.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Callable, Optional

from dashlink.diagnostics import ConnectivityDiagnostician
from dashlink.exceptions import ConnectionAbandoned
from dashlink.models import ConnectionState, ConnectionStatus, Diagnosis

if TYPE_CHECKING:
    from dashlink.cache import ResponseCache

logger = logging.getLogger(__name__)

Prompt = Callable[[Diagnosis], bool]
"""Shows a diagnosis to the user; returns ``True`` to retry, ``False`` to quit."""

ConnectionCallback = Callable[[bool], None]


class ReconnectSupervisor:
    """Tracks connectivity and drives retries.

    Args:
        diagnostician: The cascade to run on every check.
        interval: Seconds between background ticks.
        cache: Optional response cache; expired entries are swept on every
            background tick.
        clock: Returns the current time as POSIX seconds.

    Example::

        supervisor = ReconnectSupervisor(diagnostician, interval=30)
        supervisor.on_connection_change(lambda ok: print("online" if ok else "offline"))
        supervisor.startup_check(prompt=ask_user_to_retry)
        with supervisor:            # starts and later stops the ticker
            run_application()
    """

    def __init__(
        self,
        diagnostician: ConnectivityDiagnostician,
        interval: float = 30.0,
        cache: Optional[ResponseCache] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._diagnostician = diagnostician
        self._interval = interval
        self._cache = cache
        self._clock = clock
        self._state = ConnectionState()
        self._state_lock = threading.Lock()
        self._subscribers: list[ConnectionCallback] = []
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def __enter__(self) -> ReconnectSupervisor:
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> ConnectionState:
        """A snapshot of the current :class:`ConnectionState`."""
        with self._state_lock:
            return self._state.model_copy()

    @property
    def status(self) -> ConnectionStatus:
        with self._state_lock:
            return self._state.status

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def on_connection_change(self, callback: ConnectionCallback) -> Callable[[], None]:
        """Subscribe to connected/disconnected transitions.

        Returns:
            A function that removes the subscription again.
        """
        with self._state_lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._state_lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------ #
    # Checks
    # ------------------------------------------------------------------ #

    def check(self) -> Diagnosis:
        """Run one non-interactive diagnosis and update the state."""
        return self._check(interactive=False)

    def startup_check(self, prompt: Prompt) -> Diagnosis:
        """Block until the backend is usable or the user gives up.

        Runs the cascade; on failure, moves to ``AWAITING_USER_CHOICE`` and
        calls *prompt* with the diagnosis. A retry loops back to a fresh
        cascade, as often as the user asks for it.

        Returns:
            The healthy diagnosis that ended the loop.

        Raises:
            ConnectionAbandoned: When *prompt* returns ``False``.
        """
        while True:
            diagnosis = self._check(interactive=True)
            if diagnosis.ok:
                return diagnosis

            self._set_status(ConnectionStatus.AWAITING_USER_CHOICE)
            try:
                retry = prompt(diagnosis)
            except BaseException:
                self._set_status(ConnectionStatus.DISCONNECTED)
                raise

            if not retry:
                logger.info("User quit after %s", diagnosis.kind.value)
                self._set_status(ConnectionStatus.DISCONNECTED)
                raise ConnectionAbandoned(diagnosis)
            logger.info("Retrying connection check")

    def tick(self) -> Optional[Diagnosis]:
        """One background iteration.

        Skipped (returns ``None``) while an interactive prompt is open.
        Otherwise runs the cascade, updates the state, and sweeps the cache.
        """
        if self.status is ConnectionStatus.AWAITING_USER_CHOICE:
            logger.debug("Prompt open, skipping background tick")
            return None
        diagnosis = self._check(interactive=False)
        if self._cache is not None:
            self._cache.sweep_expired()
        return diagnosis

    # ------------------------------------------------------------------ #
    # Ticker
    # ------------------------------------------------------------------ #

    def start(self) -> None:
        """Start the background ticker thread. No-op if already running."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="dashlink-supervisor", daemon=True
        )
        self._thread.start()
        logger.debug("Supervisor started (interval %ss)", self._interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the ticker and wait for it to exit.

        An in-flight tick finishes its cascade first; probes are bounded by
        their own timeouts.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        self._thread = None

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self.tick()
            except Exception:
                logger.exception("Background connectivity tick failed")

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _check(self, interactive: bool) -> Diagnosis:
        diagnosis = self._diagnostician.diagnose()
        self._record(diagnosis, interactive)
        return diagnosis

    def _record(self, diagnosis: Diagnosis, interactive: bool) -> None:
        connected = diagnosis.ok
        with self._state_lock:
            previous = self._state.last_known_good
            status = ConnectionStatus.CONNECTED if connected else ConnectionStatus.DISCONNECTED
            # A background failure must not close a prompt that is still open.
            if (
                not interactive
                and not connected
                and self._state.status is ConnectionStatus.AWAITING_USER_CHOICE
            ):
                status = ConnectionStatus.AWAITING_USER_CHOICE
            self._state = ConnectionState(
                status=status,
                last_known_good=connected,
                last_checked_at=self._clock(),
                last_diagnosis=diagnosis,
            )
            subscribers = list(self._subscribers)

        if previous != connected:
            logger.info("Connection %s", "restored" if connected else f"lost: {diagnosis.kind.value}")
            for callback in subscribers:
                try:
                    callback(connected)
                except Exception:
                    logger.exception("Connection-change subscriber failed")

    def _set_status(self, status: ConnectionStatus) -> None:
        with self._state_lock:
            self._state = self._state.model_copy(update={"status": status})
