"""Waveform synthesis: (kind, phase, amplitude) -> voltage."""
import math
from enum import Enum
from typing import Optional, Union

import numpy as np
from scipy.signal import sawtooth

from .constants import PULSE_THRESHOLD, TWO_PI


class WaveformKind(str, Enum):
    SINE = "sine"
    SQUARE = "square"
    TRIANGLE = "triangle"
    SAWTOOTH = "sawtooth"
    PULSE = "pulse"
    NOISE = "noise"

    @classmethod
    def parse(cls, value) -> Optional["WaveformKind"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


KindLike = Union[WaveformKind, str]


def _frac_cycle(phase_value: float) -> float:
    return (phase_value % TWO_PI) / TWO_PI


def _sine(phase_value, rng):
    return math.sin(phase_value)


def _square(phase_value, rng):
    return 1.0 if math.sin(phase_value) >= 0 else -1.0


def _triangle(phase_value, rng):
    return 2 * abs(_frac_cycle(phase_value) - 0.5) - 1


def _sawtooth(phase_value, rng):
    return _frac_cycle(phase_value) * 2 - 1


def _pulse(phase_value, rng):
    return 1.0 if math.sin(phase_value) > PULSE_THRESHOLD else -1.0


def _noise(phase_value, rng):
    u = rng.random() if rng is not None else np.random.random()
    return u * 2 - 1


_UNIT_SHAPES = {
    WaveformKind.SINE: _sine,
    WaveformKind.SQUARE: _square,
    WaveformKind.TRIANGLE: _triangle,
    WaveformKind.SAWTOOTH: _sawtooth,
    WaveformKind.PULSE: _pulse,
    WaveformKind.NOISE: _noise,
}


def sample(kind: KindLike, phase_value: float, amplitude: float,
           rng: Optional[np.random.Generator] = None) -> float:
    """Voltage of a `kind` waveform at `phase_value` radians.

    Unknown kinds produce 0. Every kind except noise is a pure function of
    the phase; noise draws from `rng` (or numpy's global generator).
    """
    wk = WaveformKind.parse(kind)
    if wk is None:
        return 0.0
    return amplitude * _UNIT_SHAPES[wk](phase_value, rng)


def sample_array(kind: KindLike, phase_values, amplitude: float,
                 rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Vectorised `sample` over an array of phases."""
    phases = np.asarray(phase_values, dtype=float)
    wk = WaveformKind.parse(kind)
    if wk is None:
        return np.zeros_like(phases)

    if wk is WaveformKind.SINE:
        unit = np.sin(phases)
    elif wk is WaveformKind.SQUARE:
        unit = np.where(np.sin(phases) >= 0, 1.0, -1.0)
    elif wk is WaveformKind.TRIANGLE:
        unit = 2 * np.abs(np.mod(phases, TWO_PI) / TWO_PI - 0.5) - 1
    elif wk is WaveformKind.SAWTOOTH:
        unit = sawtooth(phases)
    elif wk is WaveformKind.PULSE:
        unit = np.where(np.sin(phases) > PULSE_THRESHOLD, 1.0, -1.0)
    else:
        gen = rng if rng is not None else np.random.default_rng()
        unit = gen.random(phases.shape) * 2 - 1
    return amplitude * unit
