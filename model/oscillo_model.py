from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Dict, Tuple

from .constants import DEFAULT_CALIBRATION_FACTOR, POINTS_HISTORY_SIZE
from .waveforms import WaveformKind


class ExperimentStep(str, Enum):
    CALIBRATION = "calibration"
    NORMAL = "normal"
    LISSAJOUS = "lissajous"


class DisplayMode(str, Enum):
    INDEPENDENT = "independent"
    OVERLAY = "overlay"
    VERTICAL = "vertical"


class ScopeMode(str, Enum):
    WAVE = "wave"
    LISSAJOUS = "lissajous"


def _per_channel(value: float) -> Dict[int, float]:
    return {1: value, 2: value}


@dataclass
class SignalParameters:
    kind: WaveformKind = WaveformKind.SINE
    frequency: Dict[int, float] = field(default_factory=lambda: _per_channel(1.0))    # Hz
    peak_value: Dict[int, float] = field(default_factory=lambda: _per_channel(1.0))   # Vpp
    phase: float = 0.0          # radians, grows every tick
    phase_diff: float = 0.0     # degrees, CH2 relative to CH1


@dataclass
class TriggerConfig:
    level: float = 0.0          # volts
    mode: str = "auto"          # "auto", "normal" or "single"
    slope: str = "rising"       # "rising" or "falling"
    source: int = 1
    active: bool = True


@dataclass
class Viewport:
    time_div: float = 1.0
    volts_div: Dict[int, float] = field(default_factory=lambda: _per_channel(1.0))
    horizontal_position: float = 0.0
    vertical_position: Dict[int, float] = field(default_factory=lambda: _per_channel(0.0))


@dataclass
class AdjustFactors:
    time: float = 1.0
    volts: Dict[int, float] = field(default_factory=lambda: _per_channel(1.0))


@dataclass
class CalibrationSettings:
    adjust: AdjustFactors = field(default_factory=AdjustFactors)
    factor: float = DEFAULT_CALIBRATION_FACTOR


@dataclass
class CalibrationState:
    factor: float = DEFAULT_CALIBRATION_FACTOR
    adjust: AdjustFactors = field(default_factory=AdjustFactors)
    saved: CalibrationSettings = field(default_factory=CalibrationSettings)


@dataclass(frozen=True)
class CalibrationReference:
    """Fixed signal fed to both channels while calibrating."""
    kind: WaveformKind = WaveformKind.SQUARE
    frequency: float = 1.0      # Hz
    peak_value: float = 4.0     # Vpp


@dataclass
class ChannelState:
    active: bool = False


@dataclass
class LissajousOptions:
    auto_simplify_ratio: bool = True
    high_frequency_threshold: float = 10.0


@dataclass
class LissajousSettings:
    freq_x: float = 1.0
    freq_y: float = 1.0
    phase_diff: float = 0.0     # degrees


@dataclass
class OscilloModel:
    """Complete simulator state, handed to every engine call."""
    signal: SignalParameters = field(default_factory=SignalParameters)
    trigger: TriggerConfig = field(default_factory=TriggerConfig)
    viewport: Viewport = field(default_factory=Viewport)
    calibration: CalibrationState = field(default_factory=CalibrationState)
    reference: CalibrationReference = field(default_factory=CalibrationReference)
    channels: Dict[int, ChannelState] = field(
        default_factory=lambda: {1: ChannelState(), 2: ChannelState()})
    lissajous: LissajousSettings = field(default_factory=LissajousSettings)
    lissajous_options: LissajousOptions = field(default_factory=LissajousOptions)

    exp_step: ExperimentStep = ExperimentStep.CALIBRATION
    display_mode: DisplayMode = DisplayMode.INDEPENDENT
    scope_mode: ScopeMode = ScopeMode.WAVE

    points_history: Deque[Tuple[float, float]] = field(
        default_factory=lambda: deque(maxlen=POINTS_HISTORY_SIZE), repr=False)
    needs_redraw: bool = True

    def active_channels(self):
        return [ch for ch, state in sorted(self.channels.items()) if state.active]

    def both_channels_active(self) -> bool:
        return self.channels[1].active and self.channels[2].active

    def clear_history(self):
        self.points_history.clear()
        self.needs_redraw = True
