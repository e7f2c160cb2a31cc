"""Experiment-step state machine and calibration bookkeeping.

The simulated scope starts out of calibration (factor 0.85). While the
`calibration` step is active the operator tunes the time and volts adjust
factors against a fixed reference square wave; leaving the step snapshots the
tuned values into `CalibrationState.saved`, and every other step scales its
display from that snapshot only.
"""
import copy
import json
import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional

from .constants import (
    ADJUST_FACTOR_RANGE,
    CALIBRATION_SUCCESS_TOLERANCE,
    CALIBRATION_WARNING_TOLERANCE,
    CHANNELS,
    DEFAULT_CALIBRATION_FACTOR,
)
from .oscillo_model import (
    AdjustFactors,
    CalibrationSettings,
    CalibrationState,
    DisplayMode,
    ExperimentStep,
    OscilloModel,
    ScopeMode,
)

logger = logging.getLogger(__name__)


class CalibrationProfileError(ValueError):
    """Raised when an exported calibration profile cannot be read back."""


@dataclass(frozen=True)
class CalibrationStatus:
    level: str      # "success", "warning" or "error"
    message: str


def clamp_factor(value: float) -> float:
    lo, hi = ADJUST_FACTOR_RANGE
    return min(hi, max(lo, value))


def check_calibration_status(factor: float) -> CalibrationStatus:
    deviation = abs(factor - 1.0)
    if deviation < CALIBRATION_SUCCESS_TOLERANCE:
        return CalibrationStatus("success", "Calibration complete: factor is close to nominal")
    if deviation < CALIBRATION_WARNING_TOLERANCE:
        return CalibrationStatus("warning", "Calibration nearly complete, keep adjusting")
    return CalibrationStatus("error", "Calibration deviation is large, adjustment needed")


def estimate_calibration_deviation(factor: float) -> Dict[str, str]:
    deviation = abs(1.0 - factor)
    suggestion = ""
    if deviation > CALIBRATION_WARNING_TOLERANCE:
        suggestion = ("Increase the time fine adjustment" if factor < 1.0
                      else "Decrease the time fine adjustment")
    return {"deviation": f"{deviation * 100:.1f}%", "suggestion": suggestion}


def apply_calibration_adjustment(factor: float, adjust: AdjustFactors) -> float:
    """Effective time-scale factor: calibration factor times the time trim."""
    return factor * adjust.time


def snapshot(state: CalibrationState) -> CalibrationSettings:
    return CalibrationSettings(adjust=copy.deepcopy(state.adjust), factor=state.factor)


def initialize_calibration(**overrides) -> CalibrationState:
    state = CalibrationState(factor=DEFAULT_CALIBRATION_FACTOR)
    for name, value in overrides.items():
        if not hasattr(state, name):
            raise TypeError(f"unknown calibration field: {name}")
        setattr(state, name, value)
    state.saved = snapshot(state)
    return state


def effective_settings(model: OscilloModel) -> CalibrationSettings:
    """Live factors while calibrating, the accepted snapshot otherwise."""
    cal = model.calibration
    if model.exp_step is ExperimentStep.CALIBRATION:
        return CalibrationSettings(adjust=cal.adjust, factor=cal.factor)
    return cal.saved


# ---- step transitions ----

def set_experiment_step(model: OscilloModel, step) -> OscilloModel:
    step = ExperimentStep(step)
    previous = model.exp_step

    if previous is ExperimentStep.CALIBRATION and step is not ExperimentStep.CALIBRATION:
        model.calibration.saved = snapshot(model.calibration)
        logger.info("Calibration accepted: factor=%.3f time=%.2f volts=%s",
                    model.calibration.factor, model.calibration.adjust.time,
                    model.calibration.adjust.volts)

    model.exp_step = step
    if step is ExperimentStep.CALIBRATION:
        model.display_mode = DisplayMode.INDEPENDENT
        model.scope_mode = ScopeMode.WAVE
    elif step is ExperimentStep.LISSAJOUS:
        _enter_lissajous(model)
    else:
        _enter_wave(model)

    model.signal.phase = 0.0
    model.clear_history()
    logger.info("Experiment step: %s -> %s", previous.value, step.value)
    return model


def _enter_lissajous(model: OscilloModel):
    model.scope_mode = ScopeMode.LISSAJOUS
    model.display_mode = DisplayMode.VERTICAL
    model.trigger.active = False
    model.viewport.horizontal_position = 0.0
    model.viewport.vertical_position = {ch: 0.0 for ch in CHANNELS}
    if model.channels[1].active:
        model.lissajous.freq_x = model.signal.frequency.get(1) or 1.0
    if model.channels[2].active:
        model.lissajous.freq_y = model.signal.frequency.get(2) or 1.0


def _enter_wave(model: OscilloModel):
    model.scope_mode = ScopeMode.WAVE
    if model.display_mode is DisplayMode.VERTICAL:
        model.display_mode = DisplayMode.INDEPENDENT
    model.trigger.active = True


def set_display_mode(model: OscilloModel, mode) -> bool:
    """Select independent, overlay or vertical display.

    Overlay and vertical need both channels on; vertical also switches the
    scope into X-Y mode and leaving it switches back to the sweep.
    """
    try:
        mode = DisplayMode(mode)
    except ValueError:
        logger.debug("Ignoring unknown display mode %r", mode)
        return False
    if mode is not DisplayMode.INDEPENDENT and not model.both_channels_active():
        logger.warning("%s display needs both channels active", mode.value)
        return False

    model.display_mode = mode
    if mode is DisplayMode.VERTICAL:
        _enter_lissajous(model)
    elif model.scope_mode is ScopeMode.LISSAJOUS:
        _enter_wave(model)
        model.clear_history()
    model.needs_redraw = True
    return True


# ---- fine adjustment ----

def update_adjust_factor(model: OscilloModel, kind: str, channel: Optional[int],
                         delta: float) -> Optional[float]:
    """Nudge the time or volts trim by `delta`, clamped to [0.1, 2.0].

    While calibrating the snapshot follows the live value. Returns the new
    factor, or None when the request names no factor.
    """
    cal = model.calibration
    in_calibration = model.exp_step is ExperimentStep.CALIBRATION

    if kind == "time":
        cal.adjust.time = clamp_factor(cal.adjust.time + delta)
        if in_calibration:
            cal.saved.adjust.time = cal.adjust.time
        value = cal.adjust.time
    elif kind == "volts" and channel in CHANNELS:
        cal.adjust.volts[channel] = clamp_factor(cal.adjust.volts[channel] + delta)
        if in_calibration:
            cal.saved.adjust.volts[channel] = cal.adjust.volts[channel]
        value = cal.adjust.volts[channel]
    else:
        logger.debug("Ignoring adjust request kind=%r channel=%r", kind, channel)
        return None

    model.needs_redraw = True
    return value


# ---- profile persistence ----

def _settings_to_dict(adjust: AdjustFactors, factor: float) -> dict:
    return {
        "factor": factor,
        "time": adjust.time,
        "volts": {str(ch): v for ch, v in sorted(adjust.volts.items())},
    }


def export_profile(state: CalibrationState) -> str:
    payload = _settings_to_dict(state.adjust, state.factor)
    payload["saved"] = _settings_to_dict(state.saved.adjust, state.saved.factor)
    return json.dumps(payload, indent=2)


def _number(data: dict, key: str, bounded: bool) -> float:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise CalibrationProfileError(f"'{key}' must be a number")
    value = float(value)
    if not math.isfinite(value) or value <= 0:
        raise CalibrationProfileError(f"'{key}' must be a positive finite number")
    lo, hi = ADJUST_FACTOR_RANGE
    if bounded and not lo <= value <= hi:
        raise CalibrationProfileError(f"'{key}'={value} outside [{lo}, {hi}]")
    return value


def _settings_from_dict(data) -> CalibrationSettings:
    if not isinstance(data, dict):
        raise CalibrationProfileError("profile section must be an object")
    volts_raw = data.get("volts")
    if not isinstance(volts_raw, dict):
        raise CalibrationProfileError("'volts' must be an object keyed by channel")
    volts = {}
    for key in volts_raw:
        try:
            ch = int(key)
        except (TypeError, ValueError):
            raise CalibrationProfileError(f"bad channel key {key!r}") from None
        if ch not in CHANNELS:
            raise CalibrationProfileError(f"unknown channel {ch}")
        volts[ch] = _number(volts_raw, key, bounded=True)
    missing = set(CHANNELS) - set(volts)
    if missing:
        raise CalibrationProfileError(f"missing volts factor for channel(s) {sorted(missing)}")
    adjust = AdjustFactors(time=_number(data, "time", bounded=True), volts=volts)
    return CalibrationSettings(adjust=adjust, factor=_number(data, "factor", bounded=False))


def parse_profile(text) -> CalibrationState:
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise CalibrationProfileError(f"profile is not valid JSON: {exc}") from exc
    live = _settings_from_dict(data)
    saved = _settings_from_dict(data["saved"]) if "saved" in data else copy.deepcopy(live)
    return CalibrationState(factor=live.factor, adjust=live.adjust, saved=saved)


def import_profile(state: CalibrationState, text) -> bool:
    """Replace `state` with an exported profile. On failure nothing changes."""
    try:
        loaded = parse_profile(text)
    except CalibrationProfileError as exc:
        logger.warning("Calibration profile rejected: %s", exc)
        return False
    state.factor = loaded.factor
    state.adjust = loaded.adjust
    state.saved = loaded.saved
    return True


def save_profile(state: CalibrationState, path: str) -> bool:
    try:
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(export_profile(state))
    except OSError as exc:
        logger.warning("Could not write calibration profile %s: %s", path, exc)
        return False
    return True


def load_profile(state: CalibrationState, path: str) -> bool:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            text = fh.read()
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read calibration profile %s: %s", path, exc)
        return False
    return import_profile(state, text)
