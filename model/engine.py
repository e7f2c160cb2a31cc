"""Per-frame pipeline: advance phase, re-sync on the trigger, produce traces.

The host owns the clock. Each call to `ScopeEngine.tick` is synchronous and
returns a `Frame` of plain numpy data in canvas pixels; nothing here draws.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np

from utils.metrics import compute_trace_metrics

from .calibration import (
    CalibrationStatus,
    apply_calibration_adjustment,
    check_calibration_status,
)
from .constants import (
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    CHANNEL_COLORS,
    DEFAULT_PHASE_STEP,
    GRID_SIZE,
    HORIZONTAL_DIVS,
    TWO_PI,
    VERTICAL_DIVS,
)
from .effective import channel_signal, effective_time_div, effective_volts_div
from .lissajous import LissajousCurve, LissajousGeometry, project, render_curve
from .oscillo_model import DisplayMode, ExperimentStep, OscilloModel, ScopeMode
from .trigger import resolve_trigger_channel, resync, trigger_level_pixel
from .waveforms import sample_array

logger = logging.getLogger(__name__)

DUAL_CHANNEL_PROMPT = "Enable both channels to display the Lissajous figure"


@dataclass
class Trace:
    x: np.ndarray           # pixel columns
    y: np.ndarray           # pixel rows
    volts: np.ndarray
    sample_rate: float      # samples per simulated second
    color: str = ""


@dataclass
class Frame:
    phase: float
    scope_mode: ScopeMode
    traces: Dict[str, Trace] = field(default_factory=dict)
    metrics: Dict[str, Dict[str, float]] = field(default_factory=dict)
    trigger_level_y: Optional[float] = None
    curve: Optional[LissajousCurve] = None
    cursor: Optional[Tuple[float, float]] = None
    ratio_label: Optional[str] = None
    status: Optional[CalibrationStatus] = None
    message: Optional[str] = None


def calculate_center_y(display_mode: DisplayMode, channel: int, height: float,
                       vertical_offset: float) -> float:
    if display_mode is DisplayMode.OVERLAY:
        return height / 2 + vertical_offset
    if channel == 1:
        return height / 4 + vertical_offset
    return 3 * height / 4 + vertical_offset


def _sweep_times(model: OscilloModel, width: int):
    total_time = effective_time_div(model) * HORIZONTAL_DIVS
    dt = total_time / width
    offset = model.viewport.horizontal_position * model.viewport.time_div
    return np.arange(width) * dt - offset, 1.0 / dt


def render_channel(model: OscilloModel, channel: int, width: int = CANVAS_WIDTH,
                   height: int = CANVAS_HEIGHT, rng=None) -> Trace:
    sig = channel_signal(model, channel)
    t, sample_rate = _sweep_times(model, width)
    phases = TWO_PI * sig.frequency * t + model.signal.phase + sig.phase_offset
    volts = sample_array(sig.kind, phases, sig.amplitude, rng)
    offset = model.viewport.vertical_position.get(channel, 0.0) * GRID_SIZE
    center_y = calculate_center_y(model.display_mode, channel, height, offset)
    return Trace(
        x=np.arange(width, dtype=float),
        y=center_y - volts * sig.px_per_volt,
        volts=volts,
        sample_rate=sample_rate,
        color=CHANNEL_COLORS[channel],
    )


def render_summed(model: OscilloModel, width: int = CANVAS_WIDTH,
                  height: int = CANVAS_HEIGHT, rng=None) -> Optional[Trace]:
    """Sum of all active channels on a shared centre line."""
    channels = model.active_channels()
    if not channels:
        return None
    t, sample_rate = _sweep_times(model, width)
    volts = np.zeros(width)
    for ch in channels:
        sig = channel_signal(model, ch)
        phases = TWO_PI * sig.frequency * t + model.signal.phase + sig.phase_offset
        volts += sample_array(sig.kind, phases, sig.amplitude, rng)
    base_volts_div = max(effective_volts_div(model, ch) for ch in channels)
    px_per_volt = (height / VERTICAL_DIVS) / base_volts_div
    return Trace(
        x=np.arange(width, dtype=float),
        y=height / 2 - volts * px_per_volt,
        volts=volts,
        sample_rate=sample_rate,
        color=CHANNEL_COLORS["sum"],
    )


def is_overlaid(model: OscilloModel) -> bool:
    """Overlay only sums when there are two traces to sum."""
    return model.display_mode is DisplayMode.OVERLAY and model.both_channels_active()


def render_sweep(model: OscilloModel, width: int = CANVAS_WIDTH,
                 height: int = CANVAS_HEIGHT, rng=None) -> Dict[str, Trace]:
    if is_overlaid(model):
        summed = render_summed(model, width, height, rng)
        return {"sum": summed} if summed is not None else {}
    return {str(ch): render_channel(model, ch, width, height, rng)
            for ch in model.active_channels()}


def reset_waveform(model: OscilloModel):
    model.signal.phase = 0.0
    model.clear_history()


class ScopeEngine:
    def __init__(self, model: OscilloModel, phase_step: float = DEFAULT_PHASE_STEP,
                 width: int = CANVAS_WIDTH, height: int = CANVAS_HEIGHT, rng=None):
        self.model = model
        self.phase_step = phase_step
        self.width = width
        self.height = height
        self.rng = rng

    def tick(self, delta: Optional[float] = None, time_scale: float = 1.0) -> Frame:
        step = self.phase_step if delta is None else delta
        sig = self.model.signal
        sig.phase += step * time_scale
        if self.model.scope_mode is ScopeMode.WAVE:
            sig.phase = resync(sig.phase, self.model)
        return self.render()

    def render(self) -> Frame:
        model = self.model
        if model.scope_mode is ScopeMode.LISSAJOUS:
            frame = self._render_lissajous()
        else:
            frame = self._render_wave()
        if model.exp_step is ExperimentStep.CALIBRATION:
            cal = model.calibration
            frame.status = check_calibration_status(
                apply_calibration_adjustment(cal.factor, cal.adjust))
        model.needs_redraw = False
        return frame

    def _render_wave(self) -> Frame:
        model = self.model
        frame = Frame(phase=model.signal.phase, scope_mode=ScopeMode.WAVE)
        frame.traces = render_sweep(model, self.width, self.height, self.rng)
        for key, trace in frame.traces.items():
            frame.metrics[key] = compute_trace_metrics(trace.volts, trace.sample_rate)

        channel = resolve_trigger_channel(model)
        if channel is not None and not is_overlaid(model):
            offset = model.viewport.vertical_position.get(channel, 0.0) * GRID_SIZE
            center_y = calculate_center_y(model.display_mode, channel, self.height, offset)
            frame.trigger_level_y = trigger_level_pixel(model, center_y)
        return frame

    def _render_lissajous(self) -> Frame:
        model = self.model
        ls = model.lissajous
        frame = Frame(phase=model.signal.phase, scope_mode=ScopeMode.LISSAJOUS)
        if not model.both_channels_active():
            frame.message = DUAL_CHANNEL_PROMPT
            return frame
        geometry = LissajousGeometry.from_model(model)
        frame.curve = render_curve(ls.freq_x, ls.freq_y, ls.phase_diff,
                                   geometry, model.lissajous_options)
        if frame.curve is None:
            return frame
        frame.ratio_label = frame.curve.label
        frame.cursor = project(ls.freq_x, ls.freq_y, ls.phase_diff, model.signal.phase,
                               geometry, model.lissajous_options)
        if frame.cursor is not None:
            model.points_history.append(frame.cursor)
        return frame
