from typing import Dict, Mapping
import numpy as np

METRIC_KEYS = ("frequency_hz", "amplitude_v", "pkpk_v", "rms_v")


def _rising_crossings(raw: np.ndarray, level: float) -> np.ndarray:
    """Fractional sample indices where `raw` rises through `level`."""
    below = raw[:-1] < level
    above = raw[1:] >= level
    idx = np.nonzero(below & above)[0]
    if idx.size == 0:
        return idx.astype(float)
    y0 = raw[idx]
    y1 = raw[idx + 1]
    denom = y1 - y0
    frac = np.divide(level - y0, denom, out=np.zeros_like(y0), where=denom != 0)
    return idx + frac


def compute_trace_metrics(volts, sample_rate: float) -> Dict[str, float]:
    """
    Readout for one displayed trace.
    - Amplitude is the positive peak, pk-pk and RMS are taken on the raw samples.
    - Frequency comes from interpolated mid-level rising crossings; crossing
      intervals further than 3 sigma from the median are dropped.
    """
    metrics = {k: float("nan") for k in METRIC_KEYS}
    if volts is None:
        return metrics
    raw = np.asarray(volts, dtype=float)
    if raw.size < 3 or sample_rate <= 0 or not np.all(np.isfinite(raw)):
        return metrics

    vmin = float(np.min(raw))
    vmax = float(np.max(raw))
    pkpk = vmax - vmin
    metrics["amplitude_v"] = vmax
    metrics["pkpk_v"] = pkpk
    metrics["rms_v"] = float(np.sqrt(np.mean(raw ** 2)))

    if pkpk == 0:
        return metrics

    crossings = _rising_crossings(raw, vmin + 0.5 * pkpk)
    if crossings.size >= 2:
        diffs = np.diff(crossings)
        med = float(np.median(diffs))
        std = float(np.std(diffs))
        if std > 0:
            kept = diffs[np.abs(diffs - med) <= 3 * std]
            if kept.size:
                diffs = kept
        period_samples = float(np.mean(diffs))
        if period_samples > 0:
            metrics["frequency_hz"] = float(sample_rate) / period_samples
    return metrics


def format_metrics(metrics: Mapping[str, float]) -> Dict[str, str]:
    out = {}
    for key in METRIC_KEYS:
        v = metrics.get(key, float("nan"))
        try:
            out[key] = "NaN" if np.isnan(v) else f"{float(v):.6g}"
        except (TypeError, ValueError):
            out[key] = "NaN"
    return out
