"""Graceful shutdown with prioritised hooks.

Hooks run in ascending priority order. Hooks that share a priority run
concurrently, and the whole run is bounded by a global timeout. Each hook is
also given its own deadline.
"""

from __future__ import annotations

import itertools
import logging
import queue
import signal
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

__all__ = [
    "PRIORITY_FIRST",
    "PRIORITY_HIGH",
    "PRIORITY_NORMAL",
    "PRIORITY_LOW",
    "PRIORITY_LAST",
    "Config",
    "default_config",
    "HookContext",
    "ShutdownHook",
    "Manager",
]

# Stop accepting new requests (HTTP/gRPC listeners).
PRIORITY_FIRST = 0
# Finish in-flight requests and close client connections.
PRIORITY_HIGH = 100
# General resource cleanup; the default.
PRIORITY_NORMAL = 500
# Flush caches and persist buffered data.
PRIORITY_LOW = 800
# Close underlying connections (databases, message queues).
PRIORITY_LAST = 999

_DEFAULT_HOOK_TIMEOUT = 30.0


@dataclass
class Config:
    """Shutdown timeouts in seconds.

    ``timeout`` bounds the whole shutdown; hooks still running when it expires
    are abandoned. ``hook_timeout`` is the deadline handed to each hook.
    """

    timeout: float = 30.0
    hook_timeout: float = 30.0


def default_config() -> Config:
    return Config()


class HookContext:
    """The deadline a shutdown hook should respect."""

    def __init__(self, deadline: float) -> None:
        self.deadline = deadline

    def remaining(self) -> float:
        """Seconds left before the deadline, never negative."""
        return max(0.0, self.deadline - time.monotonic())

    def done(self) -> bool:
        """Whether the deadline has passed."""
        return time.monotonic() >= self.deadline

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the deadline or for ``timeout`` seconds; return :meth:`done`."""
        remaining = self.remaining()
        if timeout is not None:
            remaining = min(remaining, max(0.0, timeout))
        if remaining > 0:
            time.sleep(remaining)
        return self.done()


ShutdownHook = Callable[[HookContext], None]


@dataclass(frozen=True)
class _HookEntry:
    name: str
    hook: ShutdownHook
    priority: int


@dataclass(frozen=True)
class _HookResult:
    name: str
    error: Optional[BaseException]
    duration: float


class Manager:
    """Collects shutdown hooks and runs them once, by priority."""

    def __init__(
        self, config: Optional[Config] = None, logger: Optional[logging.Logger] = None
    ) -> None:
        self.config = config if config is not None else default_config()
        self._logger = logger if logger is not None else logging.getLogger(__name__)
        self._hooks: list[_HookEntry] = []
        self._hooks_lock = threading.Lock()
        self._shutdown_lock = threading.Lock()
        self._started = False
        self._done = threading.Event()

    def register_hook(self, name: str, hook: ShutdownHook) -> None:
        """Register ``hook`` at :data:`PRIORITY_NORMAL`."""
        self.register_hook_with_priority(name, hook, PRIORITY_NORMAL)

    def register_hook_with_priority(self, name: str, hook: ShutdownHook, priority: int) -> None:
        """Register ``hook``; lower priorities run first, equal ones concurrently."""
        with self._hooks_lock:
            self._hooks.append(_HookEntry(name, hook, priority))
        self._logger.info("Registered shutdown hook name=%s priority=%d", name, priority)

    def wait(self) -> None:
        """Block until SIGINT, SIGTERM or SIGQUIT arrives, then shut down.

        Must be called from the main thread.
        """
        signals = [signal.SIGINT, signal.SIGTERM]
        if hasattr(signal, "SIGQUIT"):
            signals.append(signal.SIGQUIT)

        received: list[int] = []
        arrived = threading.Event()

        def handler(signum: int, _frame: object) -> None:
            received.append(signum)
            arrived.set()

        previous = {sig: signal.signal(sig, handler) for sig in signals}
        try:
            while not arrived.wait(0.2):
                pass
        finally:
            for sig, old in previous.items():
                signal.signal(sig, old)

        self._logger.info("Received shutdown signal signal=%s", signal.Signals(received[0]).name)
        self.shutdown()

    def shutdown(self) -> None:
        """Run the hooks; only the first call does any work, later calls wait for it."""
        with self._shutdown_lock:
            if self._started:
                return
            self._started = True
            try:
                self._perform_shutdown()
            finally:
                self._done.set()

    def is_shutdown(self) -> bool:
        return self._done.is_set()

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until shutdown has finished; return False if ``timeout`` expired first."""
        return self._done.wait(timeout)

    def _perform_shutdown(self) -> None:
        timeout = self.config.timeout
        deadline = time.monotonic() + timeout

        with self._hooks_lock:
            hooks = sorted(self._hooks, key=lambda entry: entry.priority)

        self._logger.info("Starting graceful shutdown hooks=%d timeout=%ss", len(hooks), timeout)

        results: list[_HookResult] = []
        for priority, members in itertools.groupby(hooks, key=lambda entry: entry.priority):
            group = list(members)
            if time.monotonic() >= deadline:
                self._logger.warning("Shutdown timeout reached, skipping remaining hooks")
                break
            self._logger.info(
                "Executing shutdown hooks priority=%d count=%d", priority, len(group)
            )
            results.extend(self._execute_group(group, deadline))

        self._report(results)

        if time.monotonic() < deadline:
            self._logger.info("Graceful shutdown completed successfully")
        else:
            self._logger.warning("Graceful shutdown completed with timeout")

    def _execute_group(self, group: list[_HookEntry], deadline: float) -> list[_HookResult]:
        hook_timeout = self.config.hook_timeout
        if hook_timeout <= 0:
            hook_timeout = _DEFAULT_HOOK_TIMEOUT

        finished: queue.SimpleQueue[_HookResult] = queue.SimpleQueue()
        for entry in group:
            threading.Thread(
                target=self._run_hook,
                args=(entry, deadline, hook_timeout, finished),
                name=f"shutdown-hook-{entry.name}",
                daemon=True,
            ).start()

        results: list[_HookResult] = []
        while len(results) < len(group):
            try:
                results.append(finished.get(timeout=max(0.0, deadline - time.monotonic())))
            except queue.Empty:
                self._logger.warning(
                    "Timeout waiting for hook group completion completed=%d total=%d",
                    len(results),
                    len(group),
                )
                break
        return results

    @staticmethod
    def _run_hook(
        entry: _HookEntry,
        deadline: float,
        hook_timeout: float,
        finished: "queue.SimpleQueue[_HookResult]",
    ) -> None:
        start = time.monotonic()
        context = HookContext(min(deadline, start + hook_timeout))
        error: Optional[BaseException] = None
        try:
            entry.hook(context)
        except Exception as exc:
            error = exc
        finished.put(_HookResult(entry.name, error, time.monotonic() - start))

    def _report(self, results: list[_HookResult]) -> None:
        succeeded = 0
        for result in results:
            if result.error is not None:
                self._logger.error(
                    "Shutdown hook failed name=%s duration=%.3fs error=%s",
                    result.name,
                    result.duration,
                    result.error,
                )
            else:
                self._logger.info(
                    "Shutdown hook completed name=%s duration=%.3fs", result.name, result.duration
                )
                succeeded += 1
        self._logger.info("Shutdown summary succeeded=%d total=%d", succeeded, len(results))