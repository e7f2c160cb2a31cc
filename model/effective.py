"""Resolve what a channel actually displays for the current experiment step."""
from dataclasses import dataclass

from .calibration import apply_calibration_adjustment, effective_settings
from .constants import DEG_TO_RAD, GRID_SIZE
from .oscillo_model import ExperimentStep, OscilloModel
from .waveforms import WaveformKind


@dataclass(frozen=True)
class ChannelSignal:
    kind: WaveformKind
    frequency: float        # Hz
    amplitude: float        # V, half of peak-to-peak
    phase_offset: float     # radians
    px_per_volt: float


def effective_time_div(model: OscilloModel) -> float:
    settings = effective_settings(model)
    return model.viewport.time_div * apply_calibration_adjustment(settings.factor, settings.adjust)


def effective_volts_div(model: OscilloModel, channel: int) -> float:
    settings = effective_settings(model)
    trim = settings.adjust.volts.get(channel, 1.0)
    return model.viewport.volts_div[channel] * settings.factor * trim


def pixels_per_volt(model: OscilloModel, channel: int) -> float:
    return GRID_SIZE / effective_volts_div(model, channel)


def channel_signal(model: OscilloModel, channel: int) -> ChannelSignal:
    if model.exp_step is ExperimentStep.CALIBRATION:
        ref = model.reference
        kind, frequency, peak = ref.kind, ref.frequency, ref.peak_value
    else:
        sig = model.signal
        kind = sig.kind
        frequency = sig.frequency.get(channel, 1.0)
        peak = sig.peak_value.get(channel, 1.0)
    offset = model.signal.phase_diff * DEG_TO_RAD if channel == 2 else 0.0
    return ChannelSignal(
        kind=kind,
        frequency=frequency,
        amplitude=peak / 2,
        phase_offset=offset,
        px_per_volt=pixels_per_volt(model, channel),
    )
