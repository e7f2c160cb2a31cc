"""Lissajous (X-Y) figures.

CH1 drives the horizontal deflection, CH2 the vertical one:

    x(t) = cx + sx * sin(fx * t)
    y(t) = cy - sy * sin(fy * t + phi)

The figure closes after lcm(fx, fy) / (fx * fy) turns, which for awkward
ratios (0.3:0.7, 1000:1003, ...) is either huge or never. Frequencies are
therefore reduced by their GCD, computed on fixed-point integers because
`0.7 % 0.3` in floating point is not 0.1, and capped to a ratio of at most
MAX_RATIO_VALUE before a curve is sampled.
"""
import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .constants import (
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    COMPLEX_RATIO_POINTS,
    COMPLEX_RATIO_SPAN,
    DEG_TO_RAD,
    GCD_PRECISION,
    GRID_SIZE,
    MAX_PERIODS,
    MAX_RATIO_VALUE,
    MIN_FREQUENCY,
    MIN_GCD,
    MIN_PERIODS,
    SIMPLE_RATIO_LIMIT,
    SIMPLE_RATIO_POINTS,
    TWO_PI,
)
from .oscillo_model import LissajousOptions, LissajousSettings, OscilloModel

logger = logging.getLogger(__name__)


def gcd_precise(a: float, b: float) -> float:
    ia = int(round(a * GCD_PRECISION))
    ib = int(round(b * GCD_PRECISION))
    while ib:
        ia, ib = ib, ia % ib
    return abs(ia) / GCD_PRECISION


def lcm_precise(a: float, b: float) -> float:
    if a == 0 or b == 0:
        return 0.0
    g = gcd_precise(a, b)
    if g == 0:
        return 0.0
    return abs(a * b) / g


def optimize_frequencies(freq_x: float, freq_y: float,
                         options: Optional[LissajousOptions] = None) -> Tuple[float, float]:
    """Frequencies actually used to draw the figure."""
    fx, fy = freq_x, freq_y
    if options is None or not options.auto_simplify_ratio:
        return fx, fy
    threshold = options.high_frequency_threshold
    if not (freq_x > threshold or freq_y > threshold):
        return fx, fy

    g = gcd_precise(freq_x, freq_y)
    if g > MIN_GCD:
        fx, fy = freq_x / g, freq_y / g

    if fx > MAX_RATIO_VALUE or fy > MAX_RATIO_VALUE:
        scale = max(fx, fy) / MAX_RATIO_VALUE
        fx, fy = fx / scale, fy / scale
    return fx, fy


@dataclass(frozen=True)
class CurvePlan:
    freq_x: float
    freq_y: float
    simple: bool
    periods: Optional[int]
    point_count: int
    span: float             # radians of t covered


def _is_small_integer(value: float) -> bool:
    return abs(value - round(value)) < 0.001 and value <= SIMPLE_RATIO_LIMIT


def plan_curve(freq_x: float, freq_y: float) -> CurvePlan:
    if _is_small_integer(freq_x) and _is_small_integer(freq_y):
        lcm = lcm_precise(round(freq_x), round(freq_y))
        periods = max(MIN_PERIODS, min(MAX_PERIODS, math.ceil(lcm)))
        return CurvePlan(freq_x, freq_y, True, periods, SIMPLE_RATIO_POINTS, TWO_PI * periods)
    # no closure detection for irrational or large-denominator ratios
    return CurvePlan(freq_x, freq_y, False, None, COMPLEX_RATIO_POINTS, COMPLEX_RATIO_SPAN)


def _format_number(value) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


@dataclass(frozen=True)
class DisplayedRatio:
    x: float
    y: float
    needs_simplification: bool

    @property
    def label(self) -> str:
        return f"{_format_number(self.x)}:{_format_number(self.y)}"


def _round_ratio_term(value: float):
    nearest = round(value)
    if abs(nearest - value) < 0.01:
        return int(nearest)
    return round(value, 2)


def simplified_ratio(freq_x: float, freq_y: float) -> DisplayedRatio:
    """Frequency ratio as shown to the operator."""
    if freq_x == 0 or freq_y == 0:
        return DisplayedRatio(freq_x, freq_y, False)
    g = gcd_precise(freq_x, freq_y)
    if g < MIN_GCD:
        return DisplayedRatio(freq_x, freq_y, False)

    sx = _round_ratio_term(freq_x / g)
    sy = _round_ratio_term(freq_y / g)
    needs = (abs(freq_x - sx) > 0.01 or abs(freq_y - sy) > 0.01
             or ((freq_x > 10 or freq_y > 10) and sx <= 10 and sy <= 10))
    return DisplayedRatio(sx, sy, needs)


def ratio_label(freq_x: float, freq_y: float) -> str:
    ratio = simplified_ratio(freq_x, freq_y)
    if ratio.needs_simplification:
        return ratio.label
    return f"{_format_number(freq_x)}:{_format_number(freq_y)}"


@dataclass(frozen=True)
class LissajousGeometry:
    center_x: float = CANVAS_WIDTH / 2
    center_y: float = CANVAS_HEIGHT / 2
    scale_x: float = GRID_SIZE
    scale_y: float = GRID_SIZE

    @classmethod
    def from_model(cls, model: OscilloModel) -> "LissajousGeometry":
        vp = model.viewport
        peaks = model.signal.peak_value
        amp_x = peaks.get(1, 0) / 2 or 1.0
        amp_y = peaks.get(2, 0) / 2 or 1.0
        volts_x = vp.volts_div.get(1) or 1.0
        volts_y = vp.volts_div.get(2) or 1.0
        return cls(
            center_x=CANVAS_WIDTH / 2 + vp.horizontal_position * GRID_SIZE,
            center_y=CANVAS_HEIGHT / 2 + vp.vertical_position.get(1, 0.0) * GRID_SIZE,
            scale_x=GRID_SIZE * amp_x / volts_x,
            scale_y=GRID_SIZE * amp_y / volts_y,
        )


@dataclass
class LissajousCurve:
    x: np.ndarray
    y: np.ndarray
    plan: CurvePlan
    ratio: DisplayedRatio
    label: str


def project(freq_x: float, freq_y: float, phase_diff_deg: float, t: float,
            geometry: Optional[LissajousGeometry] = None,
            options: Optional[LissajousOptions] = None) -> Optional[Tuple[float, float]]:
    """Position of the beam at parameter `t`, or None for a degenerate figure."""
    if freq_x <= 0 or freq_y <= 0:
        return None
    geo = geometry or LissajousGeometry()
    fx, fy = optimize_frequencies(freq_x, freq_y, options)
    phi = phase_diff_deg * DEG_TO_RAD
    x = geo.center_x + geo.scale_x * math.sin(fx * t)
    y = geo.center_y - geo.scale_y * math.sin(fy * t + phi)
    return x, y


def render_curve(freq_x: float, freq_y: float, phase_diff_deg: float,
                 geometry: Optional[LissajousGeometry] = None,
                 options: Optional[LissajousOptions] = None) -> Optional[LissajousCurve]:
    if freq_x <= 0 or freq_y <= 0:
        logger.warning("Lissajous frequencies must be positive (X=%s, Y=%s); figure skipped",
                       freq_x, freq_y)
        return None

    geo = geometry or LissajousGeometry()
    fx, fy = optimize_frequencies(freq_x, freq_y, options)
    plan = plan_curve(fx, fy)
    phi = phase_diff_deg * DEG_TO_RAD

    t = np.linspace(0.0, plan.span, plan.point_count + 1)
    x = geo.center_x + geo.scale_x * np.sin(fx * t)
    y = geo.center_y - geo.scale_y * np.sin(fy * t + phi)
    return LissajousCurve(x=x, y=y, plan=plan,
                          ratio=simplified_ratio(freq_x, freq_y),
                          label=ratio_label(freq_x, freq_y))


def adjust_lissajous_param(settings: LissajousSettings, name: str, step: float) -> LissajousSettings:
    if name == "freq_x":
        settings.freq_x = max(MIN_FREQUENCY, settings.freq_x + step)
    elif name == "freq_y":
        settings.freq_y = max(MIN_FREQUENCY, settings.freq_y + step)
    elif name == "phase_diff":
        settings.phase_diff = (settings.phase_diff + step + 360) % 360
    else:
        logger.debug("Unknown Lissajous parameter %r", name)
    return settings
