"""1:2:5 control ladders, mimicking the detents of a rotary switch."""
import math
from enum import Enum
from typing import Sequence, Tuple


class ControlClass(str, Enum):
    TIME_DIV = "time_div"
    VOLTS_DIV = "volts_div"
    FREQUENCY = "frequency"
    PHASE = "phase"
    POSITION = "position"


TIME_DIV_LADDER: Tuple[float, ...] = (
    0.1, 0.2, 0.5,
    1, 2, 5,
    10, 20, 50,
    100,
)

VOLTS_DIV_LADDER: Tuple[float, ...] = (
    0.01, 0.02, 0.05,
    0.1, 0.2, 0.5,
    1, 2, 5,
    10,
)

FREQUENCY_LADDER: Tuple[float, ...] = (
    0.1, 0.2, 0.5,
    1, 2, 5,
    10, 20, 50,
    100, 200, 500,
    1000, 2000, 5000,
    10000, 20000, 50000,
)

# degrees
PHASE_LADDER: Tuple[float, ...] = (
    1, 2, 5,
    10, 20, 50,
    90, 180, 360,
)

# divisions
POSITION_LADDER: Tuple[float, ...] = (
    0.1, 0.2, 0.5,
    1, 2, 5,
)

LADDERS = {
    ControlClass.TIME_DIV: TIME_DIV_LADDER,
    ControlClass.VOLTS_DIV: VOLTS_DIV_LADDER,
    ControlClass.FREQUENCY: FREQUENCY_LADDER,
    ControlClass.PHASE: PHASE_LADDER,
    ControlClass.POSITION: POSITION_LADDER,
}

DEFAULT_ENTRY = 1.0


def ladder_for(control) -> Tuple[float, ...]:
    return LADDERS[ControlClass(control)]


def next_value(current: float, ladder: Sequence[float], direction: int = 1) -> float:
    """First detent above (direction > 0) or below (direction < 0) `current`.

    Both directions scan the ladder in ascending order and saturate at its
    ends; direction 0 leaves the value alone.
    """
    if direction > 0:
        for step in ladder:
            if step > current:
                return step
        return ladder[-1]
    if direction < 0:
        for step in ladder:
            if step < current:
                return step
        return ladder[0]
    return current


def closest_value(value: float, ladder: Sequence[float]) -> float:
    best = ladder[0]
    for step in ladder[1:]:
        if abs(step - value) < abs(best - value):
            best = step
    return best


def is_valid_value(value: float, control) -> bool:
    try:
        return value in ladder_for(control)
    except ValueError:
        return False


def snap_entry(raw, control) -> float:
    """Snap a free-form entry onto the nearest detent. Never raises."""
    ladder = ladder_for(control)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        value = DEFAULT_ENTRY
    if math.isnan(value):
        value = DEFAULT_ENTRY
    value = min(max(value, ladder[0]), ladder[-1])
    return closest_value(value, ladder)


def adjust_time_div(current: float, direction: int = 1) -> float:
    return next_value(current, TIME_DIV_LADDER, direction)


def adjust_volts_div(current: float, direction: int = 1) -> float:
    return next_value(current, VOLTS_DIV_LADDER, direction)


def adjust_frequency(current: float, direction: int = 1) -> float:
    return next_value(current, FREQUENCY_LADDER, direction)


def adjust_phase(current: float, direction: int = 1) -> float:
    return (next_value(current, PHASE_LADDER, direction) + 360) % 360


def adjust_position(current: float, direction: int = 1) -> float:
    return next_value(current, POSITION_LADDER, direction)
