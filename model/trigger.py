"""Trigger synchronisation.

A real scope waits for the input to cross the trigger level on the chosen
slope and starts the sweep there. The simulator gets the same stable picture
cheaply: each tick it samples the source channel at a fixed point into the
sweep, and when that sample sits on the trigger level with the right slope it
folds the running phase back into [0, 2*pi). Nothing is kept between ticks.
"""
import logging
from typing import Optional

from .constants import (
    CHANNELS,
    MAX_VOLTAGE,
    MIN_VOLTAGE,
    TRIGGER_CHECK_POINT,
    TRIGGER_SLOPE_EPSILON,
    TRIGGER_TOLERANCE_PX,
    TWO_PI,
)
from .effective import channel_signal
from .oscillo_model import OscilloModel, TriggerConfig
from .waveforms import sample

logger = logging.getLogger(__name__)

SLOPES = ("rising", "falling")
MODES = ("auto", "normal", "single")


def resolve_trigger_channel(model: OscilloModel) -> Optional[int]:
    active = model.active_channels()
    if model.trigger.source in active:
        return model.trigger.source
    return active[0] if active else None


def resync(phase: float, model: OscilloModel) -> float:
    trigger = model.trigger
    if not trigger.active:
        return phase
    channel = resolve_trigger_channel(model)
    if channel is None:
        return phase

    sig = channel_signal(model, channel)
    check_phase = TWO_PI * sig.frequency * TRIGGER_CHECK_POINT + phase + sig.phase_offset
    wave_px = sample(sig.kind, check_phase, sig.amplitude) * sig.px_per_volt
    next_px = sample(sig.kind, check_phase + TRIGGER_SLOPE_EPSILON, sig.amplitude) * sig.px_per_volt

    rising = next_px > wave_px
    matches_slope = rising if trigger.slope == "rising" else not rising
    level_px = trigger.level * sig.px_per_volt

    if matches_slope and abs(wave_px - level_px) < TRIGGER_TOLERANCE_PX:
        return phase % TWO_PI
    return phase


# ---- trigger controls ----

def adjust_trigger_level(trigger: TriggerConfig, delta: float) -> float:
    trigger.level = min(MAX_VOLTAGE, max(MIN_VOLTAGE, trigger.level + delta))
    return trigger.level


def toggle_trigger_slope(trigger: TriggerConfig) -> str:
    trigger.slope = "falling" if trigger.slope == "rising" else "rising"
    return trigger.slope


def set_trigger_source(trigger: TriggerConfig, source: int):
    if source in CHANNELS:
        trigger.source = source
    else:
        logger.debug("Ignoring trigger source %r", source)


def set_trigger_mode(trigger: TriggerConfig, mode: str):
    if mode in MODES:
        trigger.mode = mode
    else:
        logger.debug("Ignoring trigger mode %r", mode)


def reset_trigger(trigger: TriggerConfig):
    trigger.level = 0.0
    trigger.mode = "auto"
    trigger.slope = "rising"


def trigger_level_pixel(model: OscilloModel, center_y: float) -> Optional[float]:
    """Screen y of the trigger level marker, or None when nothing to mark."""
    channel = resolve_trigger_channel(model)
    if channel is None or not model.trigger.active:
        return None
    return center_y - model.trigger.level * channel_signal(model, channel).px_per_volt
