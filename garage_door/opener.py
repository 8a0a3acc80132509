#!/usr/bin/env python3.12
"""Door motion engine for the simulated garage door opener.

The opener has no position sensor. It pulses the wall switch and then
*simulates* the motion: the door is reported OPENING (or CLOSING) for the
configured travel time, then OPEN (or CLOSED).

State Machine:
    CLOSED -> OPENING -> OPEN -> CLOSING -> CLOSED
    A command that arrives mid-motion reverses it (OPENING <-> CLOSING); a
    command repeated against a finished motion replays the full motion.

    | request | current          | action                               |
    |---------|------------------|--------------------------------------|
    | open    | CLOSED, OPEN     | pulse once, full opening motion      |
    | open    | CLOSING          | forced reopen: pulse twice, shortened|
    | open    | OPENING          | ignored                              |
    | close   | OPEN, CLOSED     | pulse once, full closing motion      |
    | close   | OPENING          | forced reclose: pulse twice, shortened|
    | close   | CLOSING          | ignored                              |

Forced Interrupts:
    When a motion is reversed, the door has only travelled part of the way.
    The time spent in the interrupted motion, as a fraction of that motion's
    full duration, scales the full duration of the new motion:

        remaining = (elapsed / interrupted_full) * new_full

    A fraction >= 1 means the interrupted motion had already finished, and
    the new motion gets its full duration. The start timestamp of the new
    motion is moved back by ``remaining`` so a second reversal measures from
    an equivalent point.

Auto-Close:
    Once OPEN, ``auto_closing_mode`` decides what happens after
    ``auto_closing_delay``: nothing ('none'), a simulated close without a
    pulse ('self'), or a regular close with a pulse ('force'). While an
    auto-close mode is set, reading the target state reports CLOSED once the
    door has been open for at least the delay.

Thread Model:
    Commands arrive on the caller's thread (MQTT network loop, direct calls).
    Motion completion and auto-close run on daemon timer threads. Both paths
    take the same RLock, which the MotionTimerSet shares, and every command
    cancels all outstanding timers first, so the last command always wins.
"""
import time
import threading
import logging
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, List, Optional

from utils.safe_logging import SafeLoggingMixin
from utils.thread_manager import MotionTimerSet, TimerFactory
from .accessory import GarageDoorAccessory
from .actuator import ActuatorDriver, HardwareIOError
from .states import ALLOWED_TRANSITIONS, AutoClosingMode, DoorState, TargetState

logger = logging.getLogger(__name__)

MOTION_TIMER = 'motion'
AUTO_CLOSE_TIMER = 'auto_close'

ErrorListener = Callable[[str, Exception], None]


@dataclass
class MotionRecord:
    """Start timestamps of the most recent motions (clock seconds).

    Updated when a command is accepted, not when the motion completes.
    """
    last_opened: Optional[float] = None
    last_closed: Optional[float] = None


def remaining_duration(elapsed: float, interrupted_full: float, new_full: float) -> Optional[float]:
    """Duration of a motion that reverses a partially completed one.

    Args:
        elapsed: Seconds the interrupted motion had been running
        interrupted_full: Full duration of the interrupted motion
        new_full: Full duration of the new motion

    Returns:
        The shortened duration, or None when no correction applies (the
        interrupted motion had finished, or its full duration is 0)
    """
    if interrupted_full <= 0:
        return None
    ratio = max(elapsed, 0.0) / interrupted_full
    if ratio >= 1:
        return None
    return ratio * new_full


class GarageDoorOpener(SafeLoggingMixin):
    """Timed state machine driving one garage door.

    Attributes:
        config: GarageDoorConfig
        actuator: ActuatorDriver pulsing the door switch
        accessory: GarageDoorAccessory mirroring current/target state
        motion: MotionRecord of the latest open/close starts
        timers: MotionTimerSet holding at most one motion and one auto-close timer
    """

    def __init__(self,
                 config: Any,
                 actuator: ActuatorDriver,
                 accessory: Optional[GarageDoorAccessory] = None,
                 clock: Callable[[], float] = time.time,
                 timer_factory: Optional[TimerFactory] = None):
        self.config = config
        self.actuator = actuator
        self.logger = logger
        self._clock = clock
        self._lock = threading.RLock()
        self._state = DoorState.CLOSED
        self._error_listeners: List[ErrorListener] = []

        self.motion = MotionRecord()
        self.timers = MotionTimerSet(lock=self._lock, timer_factory=timer_factory, logger=logger)

        self.accessory = accessory or GarageDoorAccessory(config)
        self.accessory.target_state.set_value(TargetState.CLOSED)
        self.accessory.current_state.set_value(DoorState.CLOSED)
        self.accessory.bind(self)

    # ─────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────
    @property
    def current_state(self) -> DoorState:
        with self._lock:
            return self._state

    @property
    def auto_closing_mode(self) -> AutoClosingMode:
        return self.config.auto_closing

    def reported_target_state(self) -> TargetState:
        """Target state as reported to remote readers.

        With auto-close enabled, an OPEN target reads as CLOSED once the door
        was opened at least ``auto_closing_delay`` seconds ago. The stored
        target and the door state are left untouched.
        """
        with self._lock:
            stored = TargetState(self.accessory.target_state.value)
            if (self.auto_closing_mode is not AutoClosingMode.NONE
                    and stored is TargetState.OPEN
                    and self.motion.last_opened is not None
                    and self._clock() - self.motion.last_opened >= self.config.auto_closing_delay):
                self._safe_log('debug', "Auto-close due, reporting target CLOSED")
                return TargetState.CLOSED
            return stored

    def snapshot(self) -> Dict[str, Any]:
        """Current engine state for telemetry."""
        with self._lock:
            return {
                'state': self._state.name,
                'target': self.reported_target_state().name,
                'stored_target': TargetState(self.accessory.target_state.value).name,
                'auto_closing_mode': self.auto_closing_mode.value,
                'active_timers': self.timers.get_active_timers(),
                **asdict(self.motion),
            }

    # ─────────────────────────────────────────────────────────────
    # Commands
    # ─────────────────────────────────────────────────────────────
    def set_target_state(self, target: Any) -> bool:
        """Dispatch a target-state write to ``request_open``/``request_close``."""
        target = TargetState(target)
        if target is TargetState.OPEN:
            return self.request_open()
        return self.request_close()

    def request_open(self) -> bool:
        """Open the door, reversing a close in progress.

        Returns:
            False if the request was ignored because the door is already opening

        Raises:
            HardwareIOError: If the switch pulse failed
        """
        with self._lock:
            state = self._state
            if state in (DoorState.CLOSED, DoorState.OPEN):
                self.open_door()
            elif state is DoorState.CLOSING:
                self.open_door(force=True)
            else:
                self._safe_log('debug', f"Ignoring open request while {state.name}")
                return False
            return True

    def request_close(self) -> bool:
        """Close the door, reversing an open in progress.

        Returns:
            False if the request was ignored because the door is already closing

        Raises:
            HardwareIOError: If the switch pulse failed
        """
        with self._lock:
            state = self._state
            if state in (DoorState.OPEN, DoorState.CLOSED):
                self.close_door()
            elif state is DoorState.OPENING:
                self.close_door(force=True)
            else:
                self._safe_log('debug', f"Ignoring close request while {state.name}")
                return False
            return True

    def open_door(self, force: bool = False) -> None:
        """Pulse the switch and start an opening motion.

        Args:
            force: The door is closing; pulse twice (stop, then reverse) and
                shorten the motion to the distance already closed
        """
        with self._lock:
            now = self._clock()
            self.motion.last_opened = now
            self.timers.cancel_all()
            self.actuator.pulse()

            duration = self.config.simulate_time_opening
            if force:
                self._safe_log('info', "Garage was closing, forcing reopen")
                self.actuator.pulse()
                if self.motion.last_closed is not None:
                    remaining = remaining_duration(now - self.motion.last_closed,
                                                   self.config.simulate_time_closing,
                                                   self.config.simulate_time_opening)
                    if remaining is not None:
                        self._safe_log('info', f"Calculated {remaining:.2f}s remaining "
                                               f"(default: {duration}s) before opened")
                        duration = remaining
                        self.motion.last_opened = now - remaining

            self._safe_log('info', "Opening garage door...")
            self._simulate_opening(duration)

    def close_door(self, force: bool = False) -> None:
        """Pulse the switch and start a closing motion.

        Args:
            force: The door is opening; pulse twice and shorten the motion to
                the distance already opened
        """
        with self._lock:
            now = self._clock()
            self.motion.last_closed = now
            self.timers.cancel_all()
            self.actuator.pulse()

            duration = self.config.simulate_time_closing
            if force:
                self._safe_log('info', "Garage was opening, forcing reclose")
                self.actuator.pulse()
                if self.motion.last_opened is not None:
                    remaining = remaining_duration(now - self.motion.last_opened,
                                                   self.config.simulate_time_opening,
                                                   self.config.simulate_time_closing)
                    if remaining is not None:
                        self._safe_log('info', f"Calculated {remaining:.2f}s remaining "
                                               f"(default: {duration}s) before closed")
                        duration = remaining
                        self.motion.last_closed = now - remaining

            self._safe_log('info', "Closing garage door...")
            self._simulate_closing(duration)

    def shutdown(self) -> None:
        """Cancel every pending motion and auto-close timer."""
        self.timers.shutdown()
        self._safe_log('info', "Door motion engine stopped")

    def add_error_listener(self, listener: ErrorListener) -> None:
        """Register ``listener(timer_name, error)`` for failures inside timers."""
        self._error_listeners.append(listener)

    # ─────────────────────────────────────────────────────────────
    # Motion simulation
    # ─────────────────────────────────────────────────────────────
    def _set_state(self, new_state: DoorState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self._state]:
            raise RuntimeError(f"Illegal door transition {self._state.name} -> {new_state.name}")
        self._safe_log('debug', f"Door state {self._state.name} -> {new_state.name}")
        self._state = new_state
        self.accessory.current_state.set_value(new_state)

    def _simulate_opening(self, duration: float) -> None:
        self._set_state(DoorState.OPENING)
        self._schedule(MOTION_TIMER, duration, self._finish_opening)

    def _simulate_closing(self, duration: float) -> None:
        self._set_state(DoorState.CLOSING)
        self.accessory.target_state.set_value(TargetState.CLOSED)
        self._schedule(MOTION_TIMER, duration, self._finish_closing)

    def _finish_opening(self) -> None:
        self._set_state(DoorState.OPEN)
        self._safe_log('info', "Garage is fully opened")

        if self.auto_closing_mode is not AutoClosingMode.NONE:
            self._safe_log('info', f"Garage should close in {self.config.auto_closing_delay}s "
                                   f"({self.auto_closing_mode.value})")
            self._schedule(AUTO_CLOSE_TIMER, self.config.auto_closing_delay, self._auto_close)

    def _finish_closing(self) -> None:
        self._set_state(DoorState.CLOSED)
        self._safe_log('info', "Garage is closed")

    def _auto_close(self) -> None:
        """Close the door after the auto-close delay.

        Force mode pulses through close_door(). Self mode only simulates the
        door closing by itself, but still records last_closed so a reopen
        during that motion is shortened like any other reversal (older
        openers left the timestamp from the previous close in place).
        """
        if self.auto_closing_mode is AutoClosingMode.FORCE:
            self._safe_log('info', "Forcing auto closing...")
            self.close_door()
        else:
            # The door closes on its own; record the start so a reopen mid-way is corrected
            self._safe_log('info', "Door closing on its own...")
            self.motion.last_closed = self._clock()
            self._simulate_closing(self.config.simulate_time_closing)

    def _schedule(self, name: str, delay: float, func: Callable[[], None]) -> None:
        self.timers.schedule(name, delay, func, error_handler=self._on_timer_error)

    def _on_timer_error(self, timer_name: str, error: Exception) -> None:
        if isinstance(error, HardwareIOError):
            self._safe_log('error', f"Hardware failure in timer '{timer_name}': {error}")
        else:
            self._safe_log('error', f"Timer '{timer_name}' failed: {error}", exc_info=True)
        for listener in list(self._error_listeners):
            listener(timer_name, error)
