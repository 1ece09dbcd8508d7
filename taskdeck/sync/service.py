"""
Background synchronization service for Task Deck.

Runs an opaque fetch operation on a single worker thread, publishes each
successful result into a lock-protected snapshot, and bumps a version
counter so consumers can poll for change without touching the lock.

    Idle --(interval elapsed / reconfigure)--> Fetching
    Fetching --(error)--> Retrying --(backoff)--> Fetching
    Fetching --(ok)--> Published --> Idle
    Retrying --(attempts exhausted)--> Idle, previous snapshot kept
    any --(stop)--> Stopped

Usage:
    service = SyncService(fetch, params, on_publish=wake_ui)
    service.start()
    ...
    if service.has_changed(last_version):
        data = service.snapshot()
"""

import copy
import logging
import queue
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

P = TypeVar("P")
S = TypeVar("S")


class ReadWriteLock:
    """
    Many concurrent readers or one writer.

    Waiting writers block new readers so a steady stream of readers cannot
    starve the publisher. Not reentrant.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class Reconfigure(Generic[P]):
    """Replace the fetch parameters and refresh immediately."""
    params: P


@dataclass(frozen=True)
class Stop:
    """Terminate the worker."""


class SyncService(Generic[P, S]):
    """
    Periodic fetch with bounded retries and versioned hand-off.

    Exactly one worker thread runs the fetch loop. Consumers read
    ``version`` every cycle and call ``snapshot()`` only when it advanced.
    """

    def __init__(
        self,
        fetch: Callable[[P], S],
        params: P,
        refresh_interval: float = 600.0,
        max_retries: int = 3,
        backoff_base: float = 2.0,
        on_publish: Optional[Callable[[], None]] = None,
        initial: Any = None,
        sleep: Optional[Callable[[float], Any]] = None,
        name: str = "sync",
    ):
        """
        Initialize the service (the worker is not started).

        Args:
            fetch: Blocking fetch; any exception counts as a retryable failure
            params: Initial fetch parameters
            refresh_interval: Seconds to wait between cycles
            max_retries: Fetch attempts per cycle
            backoff_base: Backoff after failed attempt n is base ** n seconds
            on_publish: Fire-and-forget wake-up called after each publish
            initial: Snapshot served before the first successful fetch
            sleep: Backoff wait; defaults to a wait that returns early on stop
            name: Worker thread name, also used in log messages
        """
        self.fetch = fetch
        self.refresh_interval = refresh_interval
        self.max_retries = max(1, max_retries)
        self.backoff_base = backoff_base
        self.on_publish = on_publish
        self.name = name

        self._params = params
        self._data = initial
        self._version = 0
        self._lock = ReadWriteLock()
        self._commands: "queue.Queue[Any]" = queue.Queue()
        self._stopping = threading.Event()
        self._sleep = sleep or self._stopping.wait
        self._thread: Optional[threading.Thread] = None

    @property
    def version(self) -> int:
        """Number of successful publishes so far."""
        return self._version

    @property
    def params(self) -> P:
        return self._params

    def has_changed(self, last_seen: int) -> bool:
        return self._version != last_seen

    def snapshot(self) -> S:
        """Copy of the latest published payload."""
        with self._lock.read():
            return copy.deepcopy(self._data)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Spawn the worker thread."""
        if self.is_running():
            return
        # A Stop left over from an earlier stop() must not end the new worker
        self._drain_commands()
        self._stopping.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.info(f"{self.name}: worker started")

    def _drain_commands(self) -> None:
        """Drop queued Stops; the latest queued params still take effect."""
        while True:
            try:
                command = self._commands.get_nowait()
            except queue.Empty:
                return
            if isinstance(command, Reconfigure):
                self._params = command.params

    def reconfigure(self, params: P) -> None:
        """Queue new fetch parameters; the next cycle uses them."""
        self._commands.put(Reconfigure(params))

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Ask the worker to exit and wait for it.

        An attempt already in flight is allowed to finish.
        """
        self._stopping.set()
        self._commands.put(Stop())
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def refresh_once(self) -> bool:
        """
        Run one fetch cycle with retries.

        Returns:
            True if a new snapshot was published
        """
        params = self._params

        for attempt in range(self.max_retries):
            try:
                new_data = self.fetch(params)
            except Exception as e:
                logger.warning(f"{self.name}: fetch failed (attempt {attempt + 1}): {e}")
                if attempt + 1 < self.max_retries:
                    if self._stopping.is_set():
                        break
                    self._sleep(self.backoff_base ** attempt)
                    if self._stopping.is_set():
                        break
                continue

            self._publish(new_data)
            return True

        logger.warning(f"{self.name}: update failed after retries; keeping old data")
        return False

    def _publish(self, new_data: S) -> None:
        with self._lock.write():
            self._data = new_data
            self._version += 1
        logger.debug(f"{self.name}: published version {self._version}")

        if self.on_publish is not None:
            try:
                self.on_publish()
            except Exception as e:
                logger.error(f"{self.name}: publish notification failed: {e}")

    def _run(self) -> None:
        while not self._stopping.is_set():
            self.refresh_once()

            if self._stopping.is_set():
                break

            try:
                command = self._commands.get(timeout=self.refresh_interval)
            except queue.Empty:
                continue

            if isinstance(command, Stop):
                break
            if isinstance(command, Reconfigure):
                self._params = command.params
                logger.info(f"{self.name}: reconfigured")

        logger.info(f"{self.name}: worker stopped")
