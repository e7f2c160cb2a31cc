# oscillo_controller.py
import logging

from PySide6 import QtCore, QtWidgets

from model import calibration, controls, trigger
from model.engine import Frame, reset_waveform
from model.lissajous import adjust_lissajous_param
from model.oscillo_model import ExperimentStep, OscilloModel, ScopeMode
from model.worker import FrameClock

logger = logging.getLogger(__name__)

TRIM_STEP = 0.01
TRIGGER_LEVEL_STEP = 0.2        # volts
POSITION_STEP = 0.5             # divisions
LISSAJOUS_FREQ_STEP = 0.1       # Hz
LISSAJOUS_PHASE_STEP = 15       # degrees
TIME_DIV_FINE_STEP = 0.1        # s/div
VOLTS_DIV_FINE_STEP = 0.01      # V/div
FREQUENCY_FINE_STEP = 0.1       # Hz


class OscilloController:
    def __init__(self, model: OscilloModel, view, clock: FrameClock):
        self.model = model
        self.view = view
        self.clock = clock

        self.clock.data_ready.connect(self.on_data_ready)
        self.clock.status.connect(self.on_status)
        self.clock.error.connect(self.on_error)

        # Wire toolbar actions
        self.view.toggle_start_action.triggered.connect(self._on_toggle_start)
        self.view.single_action.triggered.connect(self.start_single)
        self.view.reset_action.triggered.connect(self.reset_waveform)

        c = self.view.controls
        c.step_combo.setCurrentText(self.model.exp_step.value)
        c.step_combo.currentTextChanged.connect(self.set_experiment_step)
        c.ch1_cb.setChecked(self.model.channels[1].active)
        c.ch2_cb.setChecked(self.model.channels[2].active)
        c.ch1_cb.toggled.connect(lambda on: self._set_channel(1, on))
        c.ch2_cb.toggled.connect(lambda on: self._set_channel(2, on))
        c.waveform_combo.setCurrentText(self.model.signal.kind.value)
        c.waveform_combo.currentTextChanged.connect(self._on_waveform)
        c.display_combo.currentTextChanged.connect(self._on_display_mode)

        # ---- horizontal / vertical ----
        self._wire_stepper(c.time_div, lambda d: controls.step_time_div(self.model, d))
        self._wire_stepper(c.time_div_fine, lambda d: controls.nudge_time_div(
            self.model, d * TIME_DIV_FINE_STEP))
        c.time_div_edit.editingFinished.connect(self._on_time_div_entry)
        for ch in (1, 2):
            self._wire_stepper(c.volts_div[ch], lambda d, ch=ch: controls.step_volts_div(self.model, ch, d))
            self._wire_stepper(c.volts_div_fine[ch], lambda d, ch=ch: controls.nudge_volts_div(
                self.model, ch, d * VOLTS_DIV_FINE_STEP))
            c.volts_div_edit[ch].editingFinished.connect(lambda ch=ch: self._apply(
                controls.enter_volts_div, self.model, ch, c.volts_div_edit[ch].text()))
            self._wire_stepper(c.frequency[ch], lambda d, ch=ch: controls.step_frequency(self.model, ch, d))
            self._wire_stepper(c.frequency_fine[ch], lambda d, ch=ch: controls.nudge_frequency(
                self.model, ch, d * FREQUENCY_FINE_STEP))
            c.frequency_edit[ch].editingFinished.connect(lambda ch=ch: self._apply(
                controls.enter_frequency, self.model, ch, c.frequency_edit[ch].text()))
            self._wire_stepper(c.v_position[ch], lambda d, ch=ch: controls.adjust_position(
                self.model, "vertical", d * POSITION_STEP, channel=ch))
        self._wire_stepper(c.phase_diff, lambda d: controls.step_phase_diff(self.model, d))
        self._wire_stepper(c.phase_fine, lambda d: controls.nudge_phase_diff(self.model, d))
        self._wire_stepper(c.h_position, lambda d: controls.adjust_position(
            self.model, "horizontal", d * POSITION_STEP))

        # ---- trigger ----
        c.trigger_source_combo.currentTextChanged.connect(
            lambda text: self._apply(trigger.set_trigger_source, self.model.trigger, int(text)))
        c.trigger_mode_combo.currentTextChanged.connect(
            lambda text: self._apply(trigger.set_trigger_mode, self.model.trigger, text))
        c.slope_btn.clicked.connect(
            lambda: self._apply(trigger.toggle_trigger_slope, self.model.trigger))
        self._wire_stepper(c.trigger_level, lambda d: trigger.adjust_trigger_level(
            self.model.trigger, d * TRIGGER_LEVEL_STEP))
        c.reset_trigger_btn.clicked.connect(self.reset_trigger)

        # ---- calibration ----
        self._wire_stepper(c.time_trim, lambda d: calibration.update_adjust_factor(
            self.model, "time", None, d * TRIM_STEP))
        for ch in (1, 2):
            self._wire_stepper(c.volts_trim[ch], lambda d, ch=ch: calibration.update_adjust_factor(
                self.model, "volts", ch, d * TRIM_STEP))
        c.export_btn.clicked.connect(self.export_profile)
        c.import_btn.clicked.connect(self.import_profile)

        # ---- lissajous ----
        ls = self.model.lissajous
        self._wire_stepper(c.freq_x, lambda d: adjust_lissajous_param(ls, "freq_x", d * LISSAJOUS_FREQ_STEP))
        self._wire_stepper(c.freq_y, lambda d: adjust_lissajous_param(ls, "freq_y", d * LISSAJOUS_FREQ_STEP))
        self._wire_stepper(c.lissajous_phase, lambda d: adjust_lissajous_param(
            ls, "phase_diff", d * LISSAJOUS_PHASE_STEP))

        self.sync_controls()
        self.clock.refresh()

    # ---- helpers ----

    def _wire_stepper(self, stepper, handler):
        stepper.minus_btn.clicked.connect(lambda: self._apply(handler, -1))
        stepper.plus_btn.clicked.connect(lambda: self._apply(handler, 1))

    def _apply(self, fn, *args):
        fn(*args)
        self.model.needs_redraw = True
        self.sync_controls()
        if not self.clock.isRunning():
            self.clock.refresh()

    def sync_controls(self):
        m = self.model
        c = self.view.controls
        c.time_div.set_value(f"{m.viewport.time_div:g}")
        c.time_div_edit.setText(f"{m.viewport.time_div:g}")
        c.time_div_fine.set_value(f"{m.viewport.time_div:g}")
        for ch in (1, 2):
            c.volts_div[ch].set_value(f"{m.viewport.volts_div[ch]:g}")
            c.frequency[ch].set_value(f"{m.signal.frequency[ch]:g}")
            c.volts_div_fine[ch].set_value(f"{m.viewport.volts_div[ch]:g}")
            c.volts_div_edit[ch].setText(f"{m.viewport.volts_div[ch]:g}")
            c.frequency_fine[ch].set_value(f"{m.signal.frequency[ch]:.3g}")
            c.frequency_edit[ch].setText(f"{m.signal.frequency[ch]:g}")
            c.v_position[ch].set_value(f"{m.viewport.vertical_position[ch]:g}")
            c.volts_trim[ch].set_value(f"{m.calibration.adjust.volts[ch]:.2f}")
        c.phase_diff.set_value(f"{m.signal.phase_diff:g}")
        c.phase_fine.set_value(f"{m.signal.phase_diff:g}")
        c.h_position.set_value(f"{m.viewport.horizontal_position:g}")
        c.trigger_level.set_value(f"{m.trigger.level:.1f}")
        c.slope_btn.setText(f"Slope: {m.trigger.slope}")
        c.time_trim.set_value(f"{m.calibration.adjust.time:.2f}")
        c.freq_x.set_value(f"{m.lissajous.freq_x:g}")
        c.freq_y.set_value(f"{m.lissajous.freq_y:g}")
        c.lissajous_phase.set_value(f"{m.lissajous.phase_diff:g}")
        c.waveform_combo.setEnabled(m.exp_step is not ExperimentStep.CALIBRATION)
        for combo, text in ((c.display_combo, m.display_mode.value),
                            (c.trigger_mode_combo, m.trigger.mode)):
            if combo.currentText() != text:
                combo.blockSignals(True)
                combo.setCurrentText(text)
                combo.blockSignals(False)

    # ---- control events ----

    def set_experiment_step(self, text: str):
        self._apply(calibration.set_experiment_step, self.model, text)
        self.view.log(f"Experiment step: {text}")

    def _set_channel(self, channel: int, on: bool):
        if self.model.channels[channel].active != on:
            self._apply(controls.toggle_channel, self.model, channel)

    def _on_waveform(self, text: str):
        self._apply(controls.set_waveform_kind, self.model, text)

    def _on_display_mode(self, text: str):
        if not calibration.set_display_mode(self.model, text):
            QtWidgets.QMessageBox.information(
                self.view, "Display mode", f"The {text} display needs both CH1 and CH2 active.")
        self._apply(lambda: None)

    def _on_time_div_entry(self):
        self._apply(controls.enter_time_div, self.model, self.view.controls.time_div_edit.text())

    def reset_trigger(self):
        trigger.reset_trigger(self.model.trigger)
        self._apply(reset_waveform, self.model)

    def reset_waveform(self):
        self._apply(reset_waveform, self.model)

    def export_profile(self):
        path = self.view.ask_profile_path(save=True)
        if not path:
            return
        if calibration.save_profile(self.model.calibration, path):
            self.view.log(f"Calibration profile written to {path}")

    def import_profile(self):
        path = self.view.ask_profile_path(save=False)
        if not path:
            return
        if calibration.load_profile(self.model.calibration, path):
            self.view.log(f"Calibration profile loaded from {path}")
            self._apply(lambda: None)
        else:
            QtWidgets.QMessageBox.warning(self.view, "Import failed",
                                          "The calibration profile could not be read.")

    # ---- run control ----

    def _on_toggle_start(self, checked: bool):
        if checked:
            self.view.log("Start requested")
            self.clock.start_continuous()
        else:
            self.view.log("Stop requested")
            self.clock.stop()

    def start_single(self):
        self.view.log("Single sweep requested")
        self.clock.start_single()

    # ---- frame output ----

    @QtCore.Slot(object)
    def on_data_ready(self, frame: Frame):
        plot = self.view.plot
        plot.hide_all()
        if frame.scope_mode is ScopeMode.LISSAJOUS:
            if frame.message:
                self.view.controls.ratio_label.setText(frame.message)
            elif frame.curve is None:
                self.view.controls.ratio_label.setText("X:Y = -")
            else:
                plot.curve_items["lissajous"].setData(frame.curve.x, frame.curve.y)
                if frame.cursor is not None:
                    plot.cursor_scatter.setData(x=[frame.cursor[0]], y=[frame.cursor[1]])
                history = list(self.model.points_history)
                plot.history_scatter.setData(x=[p[0] for p in history], y=[p[1] for p in history])
                self.view.controls.ratio_label.setText(
                    f"X:Y = {frame.ratio_label}   phase {self.model.lissajous.phase_diff:g}°")
            self.view.update_measurement_table({})
        else:
            for key, trace in frame.traces.items():
                self.view.update_curve(key, trace.x, trace.y)
            self.view.set_trigger_line(frame.trigger_level_y)
            self.view.update_measurement_table(frame.metrics)

        if frame.status is not None:
            self.view.set_status(frame.status.level, frame.status.message)
            cal = self.model.calibration
            est = calibration.estimate_calibration_deviation(
                calibration.apply_calibration_adjustment(cal.factor, cal.adjust))
            self.view.controls.deviation_label.setText(
                f"Deviation {est['deviation']}  {est['suggestion']}".rstrip())
        else:
            self.view.set_status(None)
            self.view.controls.deviation_label.setText("")

    @QtCore.Slot(str)
    def on_status(self, text: str):
        self.view.log(f"STATUS: {text}")

    @QtCore.Slot(str)
    def on_error(self, text: str):
        self.view.log(f"ERROR: {text}")
