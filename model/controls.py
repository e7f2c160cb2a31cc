"""Knob and button handlers that mutate the viewport and signal parameters.

Each handler takes the part of `OscilloModel` it edits, clamps the result to
what the front panel allows, and flags a redraw on the model when given one.
"""
import logging

from . import step_ladder
from .constants import (
    CHANNELS,
    HORIZONTAL_POSITION_LIMIT,
    MIN_FREQUENCY,
    TIME_DIV_RANGE,
    VERTICAL_POSITION_LIMIT,
    VOLTS_DIV_RANGE,
)
from .oscillo_model import OscilloModel
from .step_ladder import ControlClass
from .waveforms import WaveformKind

logger = logging.getLogger(__name__)


def _clamp(value, lo, hi):
    return min(max(value, lo), hi)


def step_time_div(model: OscilloModel, direction: int) -> float:
    vp = model.viewport
    vp.time_div = step_ladder.adjust_time_div(vp.time_div, direction)
    model.needs_redraw = True
    return vp.time_div


def step_volts_div(model: OscilloModel, channel: int, direction: int) -> float:
    vp = model.viewport
    if channel in CHANNELS:
        vp.volts_div[channel] = step_ladder.adjust_volts_div(vp.volts_div[channel], direction)
        model.needs_redraw = True
    return vp.volts_div.get(channel, 1.0)


def step_frequency(model: OscilloModel, channel: int, direction: int) -> float:
    freqs = model.signal.frequency
    if channel in CHANNELS:
        freqs[channel] = step_ladder.adjust_frequency(freqs[channel], direction)
        model.needs_redraw = True
    return freqs.get(channel, 1.0)


def step_phase_diff(model: OscilloModel, direction: int) -> float:
    sig = model.signal
    sig.phase_diff = step_ladder.adjust_phase(sig.phase_diff, direction)
    model.needs_redraw = True
    return sig.phase_diff


def enter_time_div(model: OscilloModel, raw) -> float:
    model.viewport.time_div = step_ladder.snap_entry(raw, ControlClass.TIME_DIV)
    model.needs_redraw = True
    return model.viewport.time_div


def enter_volts_div(model: OscilloModel, channel: int, raw) -> float:
    if channel in CHANNELS:
        model.viewport.volts_div[channel] = step_ladder.snap_entry(raw, ControlClass.VOLTS_DIV)
        model.needs_redraw = True
    return model.viewport.volts_div.get(channel, 1.0)


def enter_frequency(model: OscilloModel, channel: int, raw) -> float:
    if channel in CHANNELS:
        model.signal.frequency[channel] = step_ladder.snap_entry(raw, ControlClass.FREQUENCY)
        model.needs_redraw = True
    return model.signal.frequency.get(channel, 1.0)


# fine (non-detent) adjustments

def nudge_time_div(model: OscilloModel, step: float) -> float:
    vp = model.viewport
    vp.time_div = round(_clamp(vp.time_div + step, *TIME_DIV_RANGE), 1)
    model.needs_redraw = True
    return vp.time_div


def nudge_volts_div(model: OscilloModel, channel: int, step: float) -> float:
    vp = model.viewport
    if channel in CHANNELS:
        vp.volts_div[channel] = round(_clamp(vp.volts_div[channel] + step, *VOLTS_DIV_RANGE), 2)
        model.needs_redraw = True
    return vp.volts_div.get(channel, 1.0)


def nudge_frequency(model: OscilloModel, channel: int, step: float) -> float:
    freqs = model.signal.frequency
    if channel in CHANNELS:
        freqs[channel] = max(MIN_FREQUENCY, freqs[channel] + step)
        model.needs_redraw = True
    return freqs.get(channel, 1.0)


def nudge_phase_diff(model: OscilloModel, step: float) -> float:
    sig = model.signal
    sig.phase_diff = (sig.phase_diff + step + 360) % 360
    model.needs_redraw = True
    return sig.phase_diff


def adjust_position(model: OscilloModel, axis: str, step: float, channel: int = None):
    vp = model.viewport
    if axis == "horizontal":
        limit = HORIZONTAL_POSITION_LIMIT
        vp.horizontal_position = _clamp(vp.horizontal_position + step, -limit, limit)
    elif axis == "vertical" and channel in CHANNELS:
        limit = VERTICAL_POSITION_LIMIT
        vp.vertical_position[channel] = _clamp(vp.vertical_position[channel] + step, -limit, limit)
    else:
        logger.debug("Ignoring position change axis=%r channel=%r", axis, channel)
        return
    model.needs_redraw = True


def toggle_channel(model: OscilloModel, channel: int) -> bool:
    if channel not in model.channels:
        return False
    state = model.channels[channel]
    state.active = not state.active
    model.needs_redraw = True
    return state.active


def set_waveform_kind(model: OscilloModel, kind) -> WaveformKind:
    wk = WaveformKind.parse(kind)
    if wk is None:
        logger.debug("Unknown waveform %r, using sine", kind)
        wk = WaveformKind.SINE
    model.signal.kind = wk
    model.needs_redraw = True
    return wk
