#!/usr/bin/env python3.12
"""Garage door accessory facade.

A small characteristic store in the shape of a HomeKit GarageDoorOpener
service: a ``TargetDoorState`` the remote side writes, and a
``CurrentDoorState`` only the motion engine writes. Remote reads and writes
go through getter/setter callbacks that ``bind`` points at the engine; every
value change is pushed to subscribers.
"""
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

from .states import DoorState, TargetState

logger = logging.getLogger(__name__)

Subscriber = Callable[['Characteristic', Any], None]

MANUFACTURER = 'Simple Garage Door'
MODEL = 'A Remote Control'
SERIAL_NUMBER = '0711'


class Characteristic:
    """A single observable value with optional get/set hooks.

    Attributes:
        name: Characteristic name, e.g. 'TargetDoorState'
        value: Last stored value
        getter: Optional callable used by ``get_value`` instead of ``value``
        setter: Optional callable run by ``client_update_value`` before storing
    """

    def __init__(self, name: str, value: Any, valid_values: Optional[Iterable[Any]] = None):
        self.name = name
        self.valid_values = tuple(valid_values) if valid_values is not None else None
        self.value = self._validate(value)
        self.getter: Optional[Callable[[], Any]] = None
        self.setter: Optional[Callable[[Any], Any]] = None
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def _validate(self, value: Any) -> Any:
        if self.valid_values is not None and value not in self.valid_values:
            raise ValueError(f"{self.name}: invalid value {value!r}")
        return value

    def get_value(self) -> Any:
        """Value as seen by a remote reader."""
        if self.getter is not None:
            return self.getter()
        return self.value

    def client_update_value(self, value: Any) -> None:
        """Handle a remote write: run the setter, then store the value.

        Raises:
            ValueError: If the value is not valid for this characteristic
            Exception: Whatever the setter raises; the stored value is unchanged
        """
        value = self._validate(value)
        if self.setter is not None:
            self.setter(value)
        self._store(value)

    def set_value(self, value: Any) -> None:
        """Server-side write; subscribers are notified if the value changed."""
        self._store(self._validate(value))

    def _store(self, value: Any) -> None:
        changed = value != self.value
        self.value = value
        if changed:
            self._notify(value)

    def _notify(self, value: Any) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(self, value)
            except Exception as e:
                # A broken subscriber must not abort the engine transition that triggered it
                logger.error(f"{self.name} subscriber failed: {e}", exc_info=True)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register for change notifications.

        Returns:
            A callable that removes the subscription
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe


class GarageDoorAccessory:
    """The garage door opener service as remote controllers see it."""

    def __init__(self, config: Any):
        self.name = config.name
        self.info: Dict[str, str] = {
            'Name': config.name,
            'Manufacturer': MANUFACTURER,
            'Model': MODEL,
            'SerialNumber': SERIAL_NUMBER,
        }
        self.target_state = Characteristic('TargetDoorState', TargetState.CLOSED, TargetState)
        self.current_state = Characteristic('CurrentDoorState', DoorState.CLOSED, DoorState)
        self.engine = None

    def bind(self, engine: Any) -> None:
        """Route remote target reads and writes through ``engine``."""
        self.engine = engine
        self.target_state.getter = engine.reported_target_state
        self.target_state.setter = engine.set_target_state
        logger.debug(f"Accessory '{self.name}' bound to {type(engine).__name__}")

    @property
    def characteristics(self) -> List[Characteristic]:
        return [self.target_state, self.current_state]

    def get_target_state(self) -> TargetState:
        return TargetState(self.target_state.get_value())

    def set_target_state(self, value: Any) -> None:
        self.target_state.client_update_value(TargetState(value))

    def get_current_state(self) -> DoorState:
        return DoorState(self.current_state.get_value())

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Subscribe to both characteristics; returns a single unsubscribe."""
        unsubscribers = [c.subscribe(callback) for c in self.characteristics]

        def unsubscribe():
            for unsub in unsubscribers:
                unsub()

        return unsubscribe
