#!/usr/bin/env python3.12
"""Door state enumerations.

The integer values of DoorState and TargetState match the HomeKit
``CurrentDoorState`` and ``TargetDoorState`` characteristics, so they can be
published to remote controllers without translation.
"""
from enum import Enum, IntEnum


class DoorState(IntEnum):
    """Physical door state, owned by the motion engine.

    Valid Transitions:
        CLOSED -> OPENING: Open accepted
        OPENING -> OPEN: Opening motion completed
        OPENING -> CLOSING: Close while opening (forced reclose)
        OPEN -> CLOSING: Close accepted, or auto-close fired
        CLOSING -> CLOSED: Closing motion completed
        CLOSING -> OPENING: Open while closing (forced reopen)

    OPEN -> OPENING and CLOSED -> CLOSING are also allowed: a repeated
    command re-pulses the door and replays the full motion.
    """
    OPEN = 0
    CLOSED = 1
    OPENING = 2
    CLOSING = 3


class TargetState(IntEnum):
    """Requested door state."""
    OPEN = 0
    CLOSED = 1


class AutoClosingMode(str, Enum):
    """What happens once the door has been open for ``auto_closing_delay``.

    NONE: Door stays open
    SELF: Door closes on its own; no pulse is sent
    FORCE: The opener pulses the switch to close the door
    """
    NONE = 'none'
    SELF = 'self'
    FORCE = 'force'


# Legal physical transitions; anything else is a bug in the engine
ALLOWED_TRANSITIONS = {
    DoorState.CLOSED: {DoorState.OPENING, DoorState.CLOSING},
    DoorState.OPENING: {DoorState.OPEN, DoorState.CLOSING},
    DoorState.OPEN: {DoorState.CLOSING, DoorState.OPENING},
    DoorState.CLOSING: {DoorState.CLOSED, DoorState.OPENING},
}
