"""
Watch coordinator — re-generate units when their files change.

Flow
────
    watchdog observer ──► _PathEventHandler ──► notify(path)
        ──► Debouncer (per-path quiet period)
        ──► event channel (queue.Queue)
        ──► dispatch loop ──► worker pool ──► run_unit()

Lifecycle
─────────
Every unit goes Idle → Watching once, in ``start()``, and every unit goes
back to Idle together in ``stop()``. There is no per-unit detach.

- One registration per watched path (template and config). Registering a
  path again replaces the previous handler instead of adding a second.
- Runs for different units are independent. Runs for the same unit are
  serialized by a per-unit lock; the most recently completed one wins.
- ``stop()`` cancels pending debounce timers and detaches every handler.
  Queued runs that have not started are dropped; runs already in flight
  finish. Nothing is written after ``stop()`` returns.
"""

from __future__ import annotations

import logging
import os
import queue
import signal
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from tplgen.core.config.formatter_options import FormatterOptions
from tplgen.core.config.loader import ConfigSource
from tplgen.core.models.receipt import GenerationReceipt
from tplgen.core.models.unit import GenerationUnit
from tplgen.core.services.last_good import LastGoodCache
from tplgen.core.services.pipeline import run_unit

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_S = 0.3
"""Quiet period after the last write before a change is acted on."""

# Event types that can mean "content changed". Editors that save via
# rename show up as a move onto the watched path.
_CHANGE_EVENTS = frozenset({"modified", "created", "moved", "closed"})


# ── Debouncing ──────────────────────────────────────────────────


class Debouncer:
    """Collapse bursts of notifications per path into one emitted event.

    Each ``notify(path)`` (re)starts a timer for that path. When the timer
    runs out without another notification, ``emit(path)`` is called once.
    """

    def __init__(self, quiet_period_s: float, emit: Callable[[Path], Any]) -> None:
        self._quiet_period_s = quiet_period_s
        self._emit = emit
        self._lock = threading.Lock()
        self._timers: dict[Path, threading.Timer] = {}
        self._closed = False

    @property
    def pending(self) -> int:
        """Number of paths waiting out their quiet period."""
        with self._lock:
            return len(self._timers)

    def notify(self, path: Path) -> None:
        with self._lock:
            if self._closed:
                return
            previous = self._timers.pop(path, None)
            if previous is not None:
                previous.cancel()
            timer = threading.Timer(self._quiet_period_s, self._fire, args=(path,))
            timer.daemon = True
            timer.name = f"debounce:{path.name}"
            self._timers[path] = timer
            timer.start()

    def _fire(self, path: Path) -> None:
        with self._lock:
            # A newer notify() may have replaced this timer after it expired
            if self._closed or self._timers.get(path) is not threading.current_thread():
                return
            del self._timers[path]
        self._emit(path)

    def close(self) -> None:
        """Cancel all pending timers; later notifications are ignored."""
        with self._lock:
            self._closed = True
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()


# ── watchdog glue ───────────────────────────────────────────────


class _PathEventHandler(FileSystemEventHandler):
    """Forwards change events for exactly one file to the coordinator."""

    def __init__(self, path: Path, notify: Callable[[Path], None]) -> None:
        super().__init__()
        self.path = path
        self._target = os.path.normcase(str(path))
        self._notify = notify

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _CHANGE_EVENTS:
            return
        candidates = [event.src_path, getattr(event, "dest_path", "")]
        for candidate in candidates:
            if candidate and os.path.normcase(os.fsdecode(candidate)) == self._target:
                self._notify(self.path)
                return


@dataclass
class WatchRegistration:
    """An active subscription for one watched path."""

    path: Path
    unit: str
    watch: ObservedWatch
    handler: _PathEventHandler


# ── Coordinator ─────────────────────────────────────────────────


class WatchCoordinator:
    """Owns every watch subscription and dispatches re-generation runs.

    Parameters
    ----------
    units : iterable of GenerationUnit
        Units to watch. Each contributes its template and config path.
    source : ConfigSource
        Config loader; configs are reloaded on every run.
    output_root : Path
        Directory output paths are resolved against.
    cache : LastGoodCache
        Shared with any earlier generation pass in the same session.
    debounce_s : float
        Quiet period before a change triggers a run.
    observer :
        A watchdog observer (default: the platform ``Observer``).
    options : FormatterOptions, optional
        Formatter options applied to every run.
    on_receipt : callable, optional
        Called with each ``GenerationReceipt`` after a run completes.
    """

    def __init__(
        self,
        units: Iterable[GenerationUnit],
        source: ConfigSource,
        output_root: Path,
        cache: LastGoodCache,
        *,
        debounce_s: float = DEFAULT_DEBOUNCE_S,
        observer: Any = None,
        max_workers: int | None = None,
        options: FormatterOptions | None = None,
        on_receipt: Callable[[GenerationReceipt], Any] | None = None,
    ) -> None:
        self._units = list(units)
        self._source = source
        self._output_root = output_root
        self._cache = cache
        self._on_receipt = on_receipt
        self._options = options
        self._previous_handlers: dict[int, Any] = {}

        self._units_by_path: dict[Path, GenerationUnit] = {}
        for unit in self._units:
            for path in unit.watched_paths:
                self._units_by_path[path] = unit
        self._unit_locks = {unit.name: threading.Lock() for unit in self._units}

        self._events: queue.Queue[Path | None] = queue.Queue()
        self._debouncer = Debouncer(debounce_s, self._events.put)
        self._observer = observer if observer is not None else Observer()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or max(2, len(self._units)),
            thread_name_prefix="tplgen-run",
        )
        self._registrations: dict[Path, WatchRegistration] = {}
        self._registry_lock = threading.Lock()
        self._dispatcher: threading.Thread | None = None

        self._started = False
        self._stopping = threading.Event()
        self._stopped = threading.Event()

        self._receipts_lock = threading.Lock()
        self._receipts: list[GenerationReceipt] = []

    # ── Properties ──────────────────────────────────────────────

    @property
    def watching(self) -> bool:
        """True between ``start()`` and ``stop()``."""
        return self._started and not self._stopping.is_set()

    @property
    def watched_paths(self) -> list[Path]:
        with self._registry_lock:
            return list(self._registrations)

    @property
    def receipts(self) -> list[GenerationReceipt]:
        """Receipts of every completed run, oldest first."""
        with self._receipts_lock:
            return list(self._receipts)

    # ── Lifecycle ───────────────────────────────────────────────

    def start(self) -> None:
        """Idle → Watching for every unit."""
        if self._started:
            return
        self._started = True

        for unit in self._units:
            for path in unit.watched_paths:
                self.register(path, unit)

        self._observer.start()
        self._dispatcher = threading.Thread(
            target=self._dispatch_loop,
            daemon=True,
            name="tplgen-dispatch",
        )
        self._dispatcher.start()
        logger.info(
            "Watching %d unit(s), %d path(s)", len(self._units), len(self._registrations)
        )

    def register(self, path: Path, unit: GenerationUnit) -> WatchRegistration:
        """Subscribe to changes of ``path``, replacing any existing subscription."""
        with self._registry_lock:
            previous = self._registrations.pop(path, None)
            if previous is not None:
                self._detach(previous)

            handler = _PathEventHandler(path, self.notify)
            watch = self._observer.schedule(handler, str(path.parent), recursive=False)
            registration = WatchRegistration(path=path, unit=unit.name, watch=watch, handler=handler)
            self._registrations[path] = registration
            self._units_by_path[path] = unit
            self._unit_locks.setdefault(unit.name, threading.Lock())

        logger.debug("Watching %s for %s", path, unit.name)
        return registration

    def stop(self) -> None:
        """Watching → Idle for every unit. Safe to call more than once."""
        if self._stopping.is_set():
            self._stopped.wait()
            return
        self._stopping.set()

        self._debouncer.close()

        with self._registry_lock:
            for registration in self._registrations.values():
                self._detach(registration)
            self._registrations.clear()

        if self._started:
            self._observer.stop()
            if self._observer.is_alive():
                self._observer.join()

        self._events.put(None)
        if self._dispatcher is not None:
            self._dispatcher.join()

        # Let in-flight runs finish; queued ones see the stop flag and bail
        self._executor.shutdown(wait=True)
        self._restore_signal_handlers()
        self._stopped.set()
        logger.info("Watch mode stopped")

    def wait(self, timeout: float | None = None) -> bool:
        """Block until ``stop()`` has completed. Returns True if stopped."""
        if timeout is not None:
            return self._stopped.wait(timeout)
        # Short waits keep the main thread responsive to signals
        while not self._stopped.wait(0.5):
            pass
        return True

    def install_signal_handlers(self) -> None:
        """Stop watching on SIGINT/SIGTERM until ``stop()`` restores the old handlers.

        Call from the main thread.
        """
        for sig in (signal.SIGINT, signal.SIGTERM):
            self._previous_handlers[sig] = signal.signal(sig, self._handle_signal)

    def _restore_signal_handlers(self) -> None:
        while self._previous_handlers:
            sig, handler = self._previous_handlers.popitem()
            try:
                signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
            except ValueError:
                # Only the main thread may set handlers
                logger.debug("Cannot restore handler for %s off the main thread", sig)

    def _handle_signal(self, signum: int, frame: Any) -> None:
        logger.warning("Received %s, stopping watch mode...", signal.Signals(signum).name)
        self.stop()

    # ── Events ──────────────────────────────────────────────────

    def notify(self, path: Path) -> None:
        """Report that ``path`` changed. Debounced before anything runs."""
        if self._stopping.is_set() or path not in self._units_by_path:
            return
        self._debouncer.notify(path)

    def _dispatch_loop(self) -> None:
        while True:
            path = self._events.get()
            if path is None or self._stopping.is_set():
                break
            unit = self._units_by_path[path]
            logger.info("Change detected: %s (%s)", path.name, unit.name)
            try:
                self._executor.submit(self._run, unit)
            except RuntimeError:
                break  # executor already shut down

    def _run(self, unit: GenerationUnit) -> None:
        with self._unit_locks[unit.name]:
            if self._stopping.is_set():
                return
            receipt = run_unit(
                unit, self._source, self._output_root, self._cache, self._options
            )

        with self._receipts_lock:
            self._receipts.append(receipt)

        if self._on_receipt is not None:
            try:
                self._on_receipt(receipt)
            except Exception:
                logger.exception("Receipt callback failed for %s", unit.name)

    def _detach(self, registration: WatchRegistration) -> None:
        try:
            self._observer.remove_handler_for_watch(registration.handler, registration.watch)
        except KeyError:
            pass  # already gone
        logger.debug("Stopped watching %s", registration.path)
