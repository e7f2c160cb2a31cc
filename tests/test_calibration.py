import json
import logging

import pytest

from model import calibration
from model.calibration import (
    CalibrationProfileError,
    check_calibration_status,
    export_profile,
    import_profile,
    parse_profile,
    set_experiment_step,
    update_adjust_factor,
)
from model.oscillo_model import (
    CalibrationState,
    DisplayMode,
    ExperimentStep,
    ScopeMode,
)


def test_model_starts_in_calibration(model):
    assert model.exp_step is ExperimentStep.CALIBRATION
    assert model.calibration.factor == pytest.approx(0.85)


def test_adjust_factor_is_clamped_to_upper_bound(model):
    assert update_adjust_factor(model, "time", None, 5.0) == 2.0
    assert model.calibration.adjust.time == 2.0
    update_adjust_factor(model, "time", None, 0.5)
    assert model.calibration.adjust.time == 2.0


def test_adjust_factor_is_clamped_to_lower_bound(model):
    update_adjust_factor(model, "volts", 2, -10)
    assert model.calibration.adjust.volts[2] == 0.1


def test_adjust_without_channel_is_ignored(model):
    before = dict(model.calibration.adjust.volts)
    assert update_adjust_factor(model, "volts", None, 0.3) is None
    assert update_adjust_factor(model, "gain", 1, 0.3) is None
    assert model.calibration.adjust.volts == before


def test_live_tuning_mirrors_into_snapshot_while_calibrating(model):
    update_adjust_factor(model, "time", None, 0.15)
    update_adjust_factor(model, "volts", 1, -0.2)
    assert model.calibration.saved.adjust.time == pytest.approx(1.15)
    assert model.calibration.saved.adjust.volts[1] == pytest.approx(0.8)


def test_tuning_outside_calibration_leaves_snapshot_alone(model):
    set_experiment_step(model, ExperimentStep.NORMAL)
    update_adjust_factor(model, "time", None, 0.3)
    assert model.calibration.adjust.time == pytest.approx(1.3)
    assert model.calibration.saved.adjust.time == pytest.approx(1.0)


def test_leaving_calibration_snapshots_a_copy(model):
    update_adjust_factor(model, "volts", 1, 0.1)
    set_experiment_step(model, "normal")
    saved = model.calibration.saved
    assert saved.adjust.volts[1] == pytest.approx(1.1)
    assert saved.factor == model.calibration.factor
    assert saved.adjust is not model.calibration.adjust
    assert saved.adjust.volts is not model.calibration.adjust.volts


def test_snapshot_is_idempotent(model):
    update_adjust_factor(model, "time", None, 0.17)
    set_experiment_step(model, ExperimentStep.NORMAL)
    first = export_profile(model.calibration)
    set_experiment_step(model, ExperimentStep.CALIBRATION)
    set_experiment_step(model, ExperimentStep.LISSAJOUS)
    assert export_profile(model.calibration) == first


def test_entering_calibration_resets_display(model):
    set_experiment_step(model, ExperimentStep.LISSAJOUS)
    model.points_history.append((1.0, 2.0))
    set_experiment_step(model, ExperimentStep.CALIBRATION)
    assert model.display_mode is DisplayMode.INDEPENDENT
    assert model.scope_mode is ScopeMode.WAVE
    assert not model.points_history
    assert model.needs_redraw


def test_entering_lissajous(dual_model):
    m = dual_model
    m.signal.frequency = {1: 2.0, 2: 3.0}
    m.viewport.horizontal_position = 3
    m.viewport.vertical_position = {1: 1, 2: -2}
    set_experiment_step(m, ExperimentStep.LISSAJOUS)
    assert m.display_mode is DisplayMode.VERTICAL
    assert m.scope_mode is ScopeMode.LISSAJOUS
    assert m.trigger.active is False
    assert m.viewport.horizontal_position == 0
    assert m.viewport.vertical_position == {1: 0.0, 2: 0.0}
    assert (m.lissajous.freq_x, m.lissajous.freq_y) == (2.0, 3.0)


def test_entering_normal_restores_trigger_and_layout(model):
    set_experiment_step(model, ExperimentStep.LISSAJOUS)
    set_experiment_step(model, ExperimentStep.NORMAL)
    assert model.trigger.active is True
    assert model.display_mode is DisplayMode.INDEPENDENT
    assert model.scope_mode is ScopeMode.WAVE


def test_step_change_resets_phase(model):
    model.signal.phase = 12.3
    set_experiment_step(model, ExperimentStep.NORMAL)
    assert model.signal.phase == 0.0


@pytest.mark.parametrize("factor, level", [
    (1.0, "success"),
    (0.99, "success"),
    (1.05, "warning"),
    (0.92, "warning"),
    (0.85, "error"),
    (1.5, "error"),
])
def test_calibration_status(factor, level):
    assert check_calibration_status(factor).level == level


def test_deviation_estimate():
    est = calibration.estimate_calibration_deviation(0.85)
    assert est["deviation"] == "15.0%"
    assert est["suggestion"].startswith("Increase")
    assert calibration.estimate_calibration_deviation(1.05)["suggestion"] == ""


def test_effective_settings_follow_step(model):
    update_adjust_factor(model, "time", None, 0.2)
    set_experiment_step(model, ExperimentStep.NORMAL)
    update_adjust_factor(model, "time", None, 0.5)
    assert calibration.effective_settings(model).adjust.time == pytest.approx(1.2)
    set_experiment_step(model, ExperimentStep.CALIBRATION)
    assert calibration.effective_settings(model).adjust.time == pytest.approx(1.7)


def test_initialize_calibration_overrides():
    state = calibration.initialize_calibration(factor=1.0)
    assert state.saved.factor == 1.0
    with pytest.raises(TypeError):
        calibration.initialize_calibration(bogus=1)


# ---- profile persistence ----

def test_profile_round_trip(model):
    update_adjust_factor(model, "time", None, 0.12)
    update_adjust_factor(model, "volts", 2, -0.3)
    text = export_profile(model.calibration)
    restored = CalibrationState()
    assert import_profile(restored, text)
    assert restored == model.calibration


def test_profile_is_flat_json(model):
    data = json.loads(export_profile(model.calibration))
    assert set(data) == {"factor", "time", "volts", "saved"}
    assert data["volts"] == {"1": 1.0, "2": 1.0}


@pytest.mark.parametrize("text", [
    "not json",
    "[]",
    "null",
    '{"factor": 1.0, "time": 1.0}',
    '{"factor": "x", "time": 1.0, "volts": {"1": 1, "2": 1}}',
    '{"factor": 1.0, "time": 3.0, "volts": {"1": 1, "2": 1}}',
    '{"factor": 1.0, "time": 1.0, "volts": {"1": 1}}',
    '{"factor": 1.0, "time": 1.0, "volts": {"7": 1, "1": 1, "2": 1}}',
    '{"factor": 1.0, "time": true, "volts": {"1": 1, "2": 1}}',
    '{"factor": 1.0, "time": 1.0, "volts": {"1": 1, "2": 1}, "saved": 4}',
])
def test_invalid_import_leaves_state_untouched(model, text):
    update_adjust_factor(model, "time", None, 0.2)
    before = export_profile(model.calibration)
    assert import_profile(model.calibration, text) is False
    assert export_profile(model.calibration) == before


def test_parse_profile_raises_profile_error():
    with pytest.raises(CalibrationProfileError):
        parse_profile("{")


def test_profile_without_saved_section_copies_live_values():
    state = parse_profile('{"factor": 0.9, "time": 1.1, "volts": {"1": 1.0, "2": 0.5}}')
    assert state.saved.adjust == state.adjust
    assert state.saved.adjust is not state.adjust
    assert state.saved.factor == 0.9


def test_profile_file_helpers(model, tmp_path):
    path = tmp_path / "cal.json"
    update_adjust_factor(model, "time", None, 0.05)
    assert calibration.save_profile(model.calibration, str(path))
    fresh = CalibrationState()
    assert calibration.load_profile(fresh, str(path))
    assert fresh.adjust.time == pytest.approx(1.05)
    assert calibration.load_profile(fresh, str(tmp_path / "missing.json")) is False


def test_load_profile_rejects_undecodable_file(model, tmp_path, caplog):
    path = tmp_path / "binary.json"
    path.write_bytes(b"\xff\xfe\x00garbage")
    update_adjust_factor(model, "time", None, 0.1)
    before = export_profile(model.calibration)
    with caplog.at_level(logging.WARNING):
        assert calibration.load_profile(model.calibration, str(path)) is False
    assert "Could not read calibration profile" in caplog.text
    assert export_profile(model.calibration) == before


# ---- display mode ----

@pytest.mark.parametrize("mode", ["overlay", "vertical"])
def test_paired_display_modes_need_both_channels(model, mode):
    set_experiment_step(model, ExperimentStep.NORMAL)
    assert calibration.set_display_mode(model, mode) is False
    assert model.display_mode is DisplayMode.INDEPENDENT
    assert model.scope_mode is ScopeMode.WAVE


def test_overlay_with_both_channels(dual_model):
    set_experiment_step(dual_model, ExperimentStep.NORMAL)
    assert calibration.set_display_mode(dual_model, "overlay")
    assert dual_model.display_mode is DisplayMode.OVERLAY
    assert dual_model.scope_mode is ScopeMode.WAVE


def test_vertical_display_switches_to_xy_and_back(dual_model):
    set_experiment_step(dual_model, ExperimentStep.NORMAL)
    dual_model.viewport.horizontal_position = 2
    assert calibration.set_display_mode(dual_model, DisplayMode.VERTICAL)
    assert dual_model.scope_mode is ScopeMode.LISSAJOUS
    assert dual_model.trigger.active is False
    assert dual_model.viewport.horizontal_position == 0

    dual_model.points_history.append((1.0, 1.0))
    assert calibration.set_display_mode(dual_model, "independent")
    assert dual_model.scope_mode is ScopeMode.WAVE
    assert dual_model.display_mode is DisplayMode.INDEPENDENT
    assert dual_model.trigger.active is True
    assert not dual_model.points_history


def test_unknown_display_mode_is_ignored(model):
    assert calibration.set_display_mode(model, "stacked") is False
    assert model.display_mode is DisplayMode.INDEPENDENT
