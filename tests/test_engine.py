import math

import numpy as np
import pytest

from model import controls
from model.calibration import set_experiment_step, update_adjust_factor
from model.effective import channel_signal, effective_time_div
from model.engine import (
    DUAL_CHANNEL_PROMPT,
    ScopeEngine,
    calculate_center_y,
    render_channel,
    reset_waveform,
)
from model.oscillo_model import DisplayMode, ExperimentStep, ScopeMode
from model.waveforms import WaveformKind


def test_calibration_step_uses_reference_signal(model):
    model.signal.kind = WaveformKind.SINE
    model.signal.frequency[1] = 50.0
    sig = channel_signal(model, 1)
    assert sig.kind is WaveformKind.SQUARE
    assert sig.frequency == 1.0
    assert sig.amplitude == 2.0


def test_normal_step_scales_from_saved_snapshot(model):
    update_adjust_factor(model, "time", None, 0.2)
    set_experiment_step(model, ExperimentStep.NORMAL)
    update_adjust_factor(model, "time", None, -0.5)
    assert effective_time_div(model) == pytest.approx(0.85 * 1.2)


def test_tick_advances_phase_with_time_scale(model):
    model.trigger.active = False
    engine = ScopeEngine(model)
    engine.tick(0.1, time_scale=0.5)
    engine.tick()
    assert model.signal.phase == pytest.approx(0.05 + 0.02)


def test_wave_frame_has_trace_per_active_channel(dual_model):
    set_experiment_step(dual_model, ExperimentStep.NORMAL)
    frame = ScopeEngine(dual_model, width=400, height=200).tick()
    assert frame.scope_mode is ScopeMode.WAVE
    assert set(frame.traces) == {"1", "2"}
    trace = frame.traces["1"]
    assert trace.x.shape == (400,) and trace.y.shape == (400,)
    assert np.all(np.abs(trace.volts) <= 0.5 + 1e-12)
    assert frame.metrics["1"]["frequency_hz"] == pytest.approx(1.0, rel=0.05)
    assert frame.trigger_level_y == pytest.approx(200 / 4)
    assert frame.status is None


def test_trace_pixels_follow_volts(model):
    set_experiment_step(model, ExperimentStep.NORMAL)
    model.calibration.saved.factor = 1.0
    trace = render_channel(model, 1)
    center = calculate_center_y(DisplayMode.INDEPENDENT, 1, 400, 0)
    np.testing.assert_allclose(trace.y, center - trace.volts * 50.0)


def test_overlay_mode_sums_channels(dual_model):
    set_experiment_step(dual_model, ExperimentStep.NORMAL)
    dual_model.display_mode = DisplayMode.OVERLAY
    dual_model.signal.phase_diff = 180
    frame = ScopeEngine(dual_model).render()
    assert list(frame.traces) == ["sum"]
    np.testing.assert_allclose(frame.traces["sum"].volts, 0.0, atol=1e-9)
    assert frame.trigger_level_y is None


def test_no_active_channels_gives_empty_frame(model):
    model.channels[1].active = False
    frame = ScopeEngine(model).tick()
    assert frame.traces == {}
    assert frame.trigger_level_y is None


def test_calibration_frame_reports_status(model):
    frame = ScopeEngine(model).render()
    assert frame.status.level == "error"
    update_adjust_factor(model, "time", None, 0.18)
    assert ScopeEngine(model).render().status.level == "success"


def test_lissajous_frame(dual_model):
    dual_model.signal.frequency = {1: 2.0, 2: 3.0}
    set_experiment_step(dual_model, ExperimentStep.LISSAJOUS)
    engine = ScopeEngine(dual_model)
    frame = engine.tick()
    assert frame.scope_mode is ScopeMode.LISSAJOUS
    assert frame.traces == {}
    assert frame.ratio_label == "2:3"
    assert frame.curve.plan.simple
    assert frame.cursor is not None
    engine.tick()
    assert len(dual_model.points_history) == 2


def test_lissajous_trigger_is_not_applied(dual_model):
    set_experiment_step(dual_model, ExperimentStep.LISSAJOUS)
    engine = ScopeEngine(dual_model)
    for _ in range(1000):
        engine.tick()
    assert dual_model.signal.phase == pytest.approx(20.0)


def test_degenerate_lissajous_frame_is_blank(dual_model):
    set_experiment_step(dual_model, ExperimentStep.LISSAJOUS)
    dual_model.lissajous.freq_y = 0.0
    frame = ScopeEngine(dual_model).tick()
    assert frame.curve is None
    assert frame.cursor is None
    assert not dual_model.points_history


def test_reset_waveform(model):
    model.signal.phase = 4.2
    model.points_history.append((1.0, 1.0))
    reset_waveform(model)
    assert model.signal.phase == 0.0
    assert not model.points_history


def test_phase_diff_offsets_channel_two(dual_model):
    set_experiment_step(dual_model, ExperimentStep.NORMAL)
    dual_model.signal.phase_diff = 90
    assert channel_signal(dual_model, 2).phase_offset == pytest.approx(math.pi / 2)
    assert channel_signal(dual_model, 1).phase_offset == 0.0


# ---- control handlers ----

def test_detent_controls(model):
    assert controls.step_time_div(model, 1) == 2
    assert controls.step_volts_div(model, 1, -1) == 0.01
    assert controls.step_frequency(model, 2, 1) == 2
    assert controls.step_phase_diff(model, 1) == 1
    assert controls.enter_time_div(model, "0.45") == 0.5
    assert controls.enter_volts_div(model, 2, "junk") == 1
    assert controls.enter_frequency(model, 1, 3e9) == 50000


def test_fine_controls_clamp(model):
    assert controls.nudge_time_div(model, 500) == 100
    assert controls.nudge_volts_div(model, 1, -50) == 0.01
    assert controls.nudge_frequency(model, 1, -5) == 0.1
    assert controls.nudge_phase_diff(model, -30) == 330
    controls.adjust_position(model, "horizontal", 20)
    controls.adjust_position(model, "vertical", -9, channel=2)
    assert model.viewport.horizontal_position == 8
    assert model.viewport.vertical_position[2] == -4


def test_channel_and_waveform_controls(model):
    assert controls.toggle_channel(model, 2) is True
    assert controls.toggle_channel(model, 3) is False
    assert controls.set_waveform_kind(model, "triangle") is WaveformKind.TRIANGLE
    assert controls.set_waveform_kind(model, "bogus") is WaveformKind.SINE


def test_lissajous_needs_both_channels(model):
    set_experiment_step(model, ExperimentStep.LISSAJOUS)
    frame = ScopeEngine(model).tick()
    assert frame.scope_mode is ScopeMode.LISSAJOUS
    assert frame.curve is None
    assert frame.cursor is None
    assert frame.ratio_label is None
    assert frame.message == DUAL_CHANNEL_PROMPT
    assert not model.points_history


def test_overlay_with_one_channel_draws_it_alone(model):
    set_experiment_step(model, ExperimentStep.NORMAL)
    model.display_mode = DisplayMode.OVERLAY
    frame = ScopeEngine(model).render()
    assert list(frame.traces) == ["1"]
    assert frame.trigger_level_y == pytest.approx(400 / 2)
