import os
import sys
import time
import logging
import itertools
from typing import Callable, List

import pytest

# Add project root to Python path to ensure imports work
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from utils.gpio_simulation import SimulatedGPIO
from garage_door.actuator import ActuatorDriver
from garage_door.config import GarageDoorConfig
from garage_door.opener import GarageDoorOpener


# ─────────────────────────────────────────────────────────────
# Deterministic time
# ─────────────────────────────────────────────────────────────
class FakeClock:
    """Callable clock; only moves when a test advances it."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


class ManualTimer:
    """threading.Timer stand-in fired by ManualScheduler.advance()."""

    def __init__(self, scheduler: 'ManualScheduler', delay: float, func: Callable[[], None]):
        self.scheduler = scheduler
        self.delay = delay
        self.func = func
        self.daemon = False
        self.due = None
        self.seq = next(scheduler._seq)
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True
        self.due = self.scheduler.clock.now + self.delay
        self.scheduler.timers.append(self)

    def cancel(self):
        self.cancelled = True

    def is_alive(self) -> bool:
        return self.started and not self.cancelled and not self.fired


class ManualScheduler:
    """Timer factory whose timers fire in due order as the clock advances."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.timers: List[ManualTimer] = []
        self._seq = itertools.count()

    def __call__(self, delay: float, func: Callable[[], None]) -> ManualTimer:
        return ManualTimer(self, delay, func)

    def pending(self) -> List[ManualTimer]:
        return [t for t in self.timers if t.is_alive()]

    def advance(self, seconds: float) -> None:
        target = self.clock.now + seconds
        while True:
            due = [t for t in self.pending() if t.due <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.seq))
            self.clock.now = max(self.clock.now, timer.due)
            timer.fired = True
            timer.func()
        self.clock.now = target


class RecordingSleep:
    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


# ─────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────
@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture
def gpio():
    return SimulatedGPIO()


@pytest.fixture
def sleep_recorder():
    return RecordingSleep()


@pytest.fixture
def make_config():
    """Build a GarageDoorConfig from overrides with simulation defaults."""
    def _make(**overrides) -> GarageDoorConfig:
        values = {
            'gpio_simulation': True,
            'gpio_action_delay': 0.0,
            'mqtt_enabled': False,
        }
        values.update(overrides)
        return GarageDoorConfig(overrides=values)
    return _make


@pytest.fixture
def make_engine(make_config, gpio, clock, scheduler, sleep_recorder):
    """Build a GarageDoorOpener on simulated GPIO and manual timers."""
    def _make(**overrides) -> GarageDoorOpener:
        config = make_config(**overrides)
        actuator = ActuatorDriver(
            gpio,
            config.door_switch_pin,
            actions=config.gpio_actions,
            action_delay=config.gpio_action_delay,
            initial_mode=config.initial_gpio_mode,
            initial_value=config.initial_gpio_value,
            sleep=sleep_recorder,
        )
        actuator.setup()
        return GarageDoorOpener(config, actuator, clock=clock, timer_factory=scheduler)
    return _make


@pytest.fixture
def engine(make_engine):
    opener = make_engine()
    yield opener
    opener.shutdown()


def _wait_for_state(engine, state, timeout: float = 5) -> bool:
    start = time.time()
    while time.time() - start < timeout:
        if engine.current_state == state:
            return True
        time.sleep(0.01)
    logging.getLogger(__name__).error(
        f"Timeout waiting for {state.name}, engine is {engine.current_state.name}")
    return False


@pytest.fixture
def wait_for_state():
    """Poll a real-timer engine until it reaches a state (or time out)."""
    return _wait_for_state
