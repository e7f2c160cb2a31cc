import pytest

QtCore = pytest.importorskip("PySide6.QtCore")

from model.oscillo_model import ExperimentStep  # noqa: E402
from model.calibration import set_experiment_step  # noqa: E402
from model.worker import FrameClock  # noqa: E402


@pytest.fixture(scope="module")
def qapp():
    app = QtCore.QCoreApplication.instance()
    if app is None:
        app = QtCore.QCoreApplication([])
    return app


@pytest.fixture
def clock(qapp, model):
    set_experiment_step(model, ExperimentStep.NORMAL)
    model.trigger.active = False
    return FrameClock(model, fps=30)


def test_step_emits_frame(clock):
    frames = []
    clock.data_ready.connect(frames.append)
    frame = clock.step()
    assert frames == [frame]
    assert "1" in frame.traces
    assert clock.model.signal.phase == pytest.approx(0.02)


def test_time_scale_slows_the_sweep(clock):
    clock.time_scale = 0.25
    clock.step(0.4)
    assert clock.model.signal.phase == pytest.approx(0.1)


def test_failed_frame_reports_error(clock, monkeypatch):
    errors, frames = [], []
    clock.error.connect(errors.append)
    clock.data_ready.connect(frames.append)

    def boom(*args):
        raise RuntimeError("bad frame")

    monkeypatch.setattr(clock.engine, "tick", boom)
    assert clock.step() is None
    assert errors == ["Frame error: bad frame"]
    assert frames == []


def test_refresh_keeps_phase(clock):
    clock.model.signal.phase = 1.25
    frame = clock.refresh()
    assert frame.phase == 1.25
    assert clock.model.signal.phase == 1.25


def test_single_sweep_stops_after_one_frame(clock):
    messages = []
    clock.status.connect(messages.append)
    clock.start_single()
    assert clock.isRunning()
    clock.step()
    assert not clock.isRunning()
    assert messages == ["Single sweep armed", "Sweep stopped"]


def test_continuous_run_and_stop(clock):
    clock.start_continuous()
    assert clock.isRunning()
    clock.step()
    assert clock.isRunning()
    clock.stop()
    assert not clock.isRunning()
