#!/usr/bin/env python3.12
"""Named, cancelable timers for door motion simulation.

This module provides the timer table the door engine uses to finish simulated
motions and to arm auto-close. Timers are keyed by name so that scheduling a
name twice replaces the earlier timer, and ``cancel_all`` invalidates every
outstanding handle at once.

Staleness:
    ``threading.Timer.cancel`` cannot stop a callback that has already woken
    up and is waiting for a lock. Every handle therefore carries the
    generation it was issued in; ``cancel_all`` bumps the generation, and a
    woken callback whose generation is old, or whose slot has been taken by a
    newer handle, is dropped instead of run.

Locking:
    The manager can share a lock with its owner. The door engine passes its
    own RLock, so a firing callback runs under the same lock as open/close
    commands and the two can never interleave.
"""

import itertools
import threading
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .safe_logging import SafeLoggingMixin

TimerFactory = Callable[[float, Callable[[], None]], Any]


@dataclass(eq=False)
class TimerHandle:
    """A scheduled callback issued by MotionTimerSet."""

    name: str
    delay: float
    generation: int
    seq: int
    timer: Any = field(repr=False, default=None)

    @property
    def alive(self) -> bool:
        return self.timer is not None and self.timer.is_alive()


class MotionTimerSet(SafeLoggingMixin):
    """Thread-safe timer table with generation-based cancellation.

    Attributes:
        logger: Logger instance for this manager
    """

    def __init__(self,
                 lock: Optional[threading.RLock] = None,
                 timer_factory: Optional[TimerFactory] = None,
                 logger: Optional[logging.Logger] = None):
        """Initialize timer set.

        Args:
            lock: Reentrant lock shared with the owner; callbacks run under it
            timer_factory: Callable ``(delay, func) -> timer`` returning an
                object with ``start``/``cancel``/``is_alive``. Defaults to
                ``threading.Timer``.
            logger: Optional logger instance
        """
        self._timers: Dict[str, TimerHandle] = {}
        self._lock = lock or threading.RLock()
        self._timer_factory = timer_factory or threading.Timer
        self._generation = 0
        self._seq = itertools.count(1)
        self._shutdown = False
        self.logger = logger or logging.getLogger(__name__)

    @property
    def generation(self) -> int:
        return self._generation

    def schedule(self, name: str, delay: float, func: Callable[[], None],
                 error_handler: Optional[Callable[[str, Exception], None]] = None) -> Optional[TimerHandle]:
        """Schedule ``func`` to run after ``delay`` seconds.

        Args:
            name: Slot for this timer; an existing timer in the slot is replaced
            delay: Delay in seconds before calling function
            func: Function to call when timer expires
            error_handler: Optional error handler (name, exception) -> None

        Returns:
            The new handle, or None if the manager has been shut down
        """
        with self._lock:
            if self._shutdown:
                self._safe_log('debug', f"Ignoring timer schedule '{name}' - manager shutting down")
                return None

            previous = self._timers.pop(name, None)
            if previous and previous.alive:
                previous.timer.cancel()
                self._safe_log('debug', f"Replaced existing timer '{name}'")

            handle = TimerHandle(name=name, delay=delay,
                                 generation=self._generation, seq=next(self._seq))

            def wrapped_func():
                """Drop stale firings, then run ``func`` under the shared lock."""
                with self._lock:
                    if not self._claim(handle):
                        self._safe_log('debug', f"Discarding stale timer '{name}'")
                        return
                    try:
                        func()
                    except Exception as e:
                        self._safe_log('error', f"Timer '{name}' failed: {e}")
                        if error_handler:
                            try:
                                error_handler(name, e)
                            except Exception as handler_error:
                                self._safe_log('error', f"Error handler for timer '{name}' failed: {handler_error}")

            timer = self._timer_factory(delay, wrapped_func)
            timer.daemon = True
            handle.timer = timer
            self._timers[name] = handle
            timer.start()
            self._safe_log('debug', f"Scheduled timer '{name}' for {delay}s")
            return handle

    def _claim(self, handle: TimerHandle) -> bool:
        if handle.generation != self._generation or self._shutdown:
            return False
        if self._timers.get(handle.name) is not handle:
            return False
        del self._timers[handle.name]
        return True

    def is_current(self, handle: TimerHandle) -> bool:
        """True while ``handle`` is scheduled and has not been superseded."""
        with self._lock:
            return (handle.generation == self._generation
                    and self._timers.get(handle.name) is handle)

    def cancel(self, name: str) -> bool:
        """Cancel a timer if it exists.

        Returns:
            True if timer was cancelled, False if not found
        """
        with self._lock:
            handle = self._timers.pop(name, None)
            if handle is None:
                return False
            handle.timer.cancel()
            self._safe_log('debug', f"Cancelled timer '{name}'")
            return True

    def cancel_all(self) -> int:
        """Invalidate every handle issued since the previous ``cancel_all``.

        Returns:
            Number of timers cancelled
        """
        with self._lock:
            self._generation += 1
            handles = list(self._timers.values())
            self._timers.clear()
            for handle in handles:
                handle.timer.cancel()

        if handles:
            self._safe_log('debug', f"Cancelled {len(handles)} pending timers: {[h.name for h in handles]}")
        return len(handles)

    def get_active_timers(self) -> List[str]:
        """Names of timers that are scheduled and not yet fired."""
        with self._lock:
            return [name for name, handle in self._timers.items() if handle.alive]

    def __len__(self) -> int:
        return len(self.get_active_timers())

    def __contains__(self, name: str) -> bool:
        return name in self.get_active_timers()

    def shutdown(self) -> None:
        """Cancel all timers and refuse new ones."""
        with self._lock:
            self._shutdown = True
        self.cancel_all()
        self._safe_log('debug', "Timer manager shutdown complete")
