import logging
from typing import Dict, List, Optional

from PySide6 import QtCore, QtWidgets
import pyqtgraph as pg

from model.constants import CANVAS_HEIGHT, CANVAS_WIDTH, CHANNEL_COLORS, GRID_SIZE
from model.oscillo_model import DisplayMode, ExperimentStep, OscilloModel
from model.trigger import MODES as TRIGGER_MODES
from model.waveforms import WaveformKind
from utils.metrics import METRIC_KEYS, format_metrics


class QtLogHandler(logging.Handler):
    """Forwards log records to the window's log pane."""

    def __init__(self, sink):
        super().__init__()
        self.sink = sink
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record):
        try:
            self.sink(self.format(record))
        except RuntimeError:
            # widget already destroyed during shutdown
            pass


class Stepper(QtWidgets.QWidget):
    """Label with -/+ buttons, the on-screen stand-in for a rotary knob."""

    def __init__(self, title: str, parent=None):
        super().__init__(parent)
        row = QtWidgets.QHBoxLayout(self)
        row.setContentsMargins(0, 0, 0, 0)
        row.addWidget(QtWidgets.QLabel(title))
        self.value_label = QtWidgets.QLabel("-")
        self.value_label.setMinimumWidth(70)
        self.value_label.setAlignment(QtCore.Qt.AlignRight | QtCore.Qt.AlignVCenter)
        row.addWidget(self.value_label)
        self.minus_btn = QtWidgets.QPushButton("-")
        self.plus_btn = QtWidgets.QPushButton("+")
        for btn in (self.minus_btn, self.plus_btn):
            btn.setMaximumWidth(32)
            row.addWidget(btn)

    def set_value(self, text: str):
        self.value_label.setText(text)


class ScopePlot(QtWidgets.QFrame):
    def __init__(self, parent=None):
        super().__init__(parent)
        layout = QtWidgets.QVBoxLayout(self)
        self.plot_widget = pg.PlotWidget()
        self.plot_widget.setBackground("#3980ab")
        self.plot_widget.setXRange(0, CANVAS_WIDTH, padding=0)
        self.plot_widget.setYRange(0, CANVAS_HEIGHT, padding=0)
        self.plot_widget.invertY(True)
        self.plot_widget.setMouseEnabled(x=False, y=False)
        self.plot_widget.hideButtons()
        self._draw_grid()
        layout.addWidget(self.plot_widget)

        self.curve_items: Dict[str, pg.PlotDataItem] = {}
        for key in ("1", "2", "sum"):
            color = CHANNEL_COLORS[int(key)] if key.isdigit() else CHANNEL_COLORS["sum"]
            self.curve_items[key] = self.plot_widget.plot(pen=pg.mkPen(color, width=2.5))
        self.curve_items["lissajous"] = self.plot_widget.plot(
            pen=pg.mkPen((66, 185, 131, 230), width=2.5))

        self.trigger_line = pg.InfiniteLine(angle=0, movable=False,
                                            pen=pg.mkPen("#FFEB3B", width=1,
                                                         style=QtCore.Qt.DashLine))
        self.plot_widget.addItem(self.trigger_line)
        self.history_scatter = pg.ScatterPlotItem(size=3, brush=pg.mkBrush(255, 235, 59, 90))
        self.plot_widget.addItem(self.history_scatter)
        self.cursor_scatter = pg.ScatterPlotItem(size=10, brush=pg.mkBrush("#FFEB3B"))
        self.plot_widget.addItem(self.cursor_scatter)

    def _draw_grid(self):
        pen = pg.mkPen("#2a2a2a", width=0.5)
        for x in range(0, CANVAS_WIDTH + 1, GRID_SIZE):
            self.plot_widget.addItem(pg.InfiniteLine(pos=x, angle=90, pen=pen))
        for y in range(0, CANVAS_HEIGHT + 1, GRID_SIZE):
            self.plot_widget.addItem(pg.InfiniteLine(pos=y, angle=0, pen=pen))
        axes = pg.mkPen("#3a3a3a", width=1)
        self.plot_widget.addItem(pg.InfiniteLine(pos=CANVAS_WIDTH / 2, angle=90, pen=axes))
        self.plot_widget.addItem(pg.InfiniteLine(pos=CANVAS_HEIGHT / 2, angle=0, pen=axes))

    def hide_all(self):
        for item in self.curve_items.values():
            item.setData([], [])
        self.trigger_line.setVisible(False)
        self.cursor_scatter.clear()
        self.history_scatter.clear()


class ControlPanel(QtWidgets.QFrame):
    def __init__(self, parent=None):
        super().__init__(parent)
        self._build_ui()

    @staticmethod
    def _entry(layout, title: str) -> QtWidgets.QLineEdit:
        row = QtWidgets.QHBoxLayout()
        row.addWidget(QtWidgets.QLabel(title))
        edit = QtWidgets.QLineEdit()
        edit.setMaximumWidth(90)
        row.addWidget(edit)
        layout.addLayout(row)
        return edit

    def _build_ui(self):
        layout = QtWidgets.QVBoxLayout(self)

        layout.addWidget(QtWidgets.QLabel("<b>Experiment</b>"))
        self.step_combo = QtWidgets.QComboBox()
        self.step_combo.addItems([s.value for s in ExperimentStep])
        layout.addWidget(self.step_combo)

        row = QtWidgets.QHBoxLayout()
        self.ch1_cb = QtWidgets.QCheckBox("CH1")
        self.ch2_cb = QtWidgets.QCheckBox("CH2")
        row.addWidget(self.ch1_cb)
        row.addWidget(self.ch2_cb)
        layout.addLayout(row)

        row = QtWidgets.QHBoxLayout()
        row.addWidget(QtWidgets.QLabel("Waveform:"))
        self.waveform_combo = QtWidgets.QComboBox()
        self.waveform_combo.addItems([k.value for k in WaveformKind])
        row.addWidget(self.waveform_combo)
        layout.addLayout(row)

        row = QtWidgets.QHBoxLayout()
        row.addWidget(QtWidgets.QLabel("Display:"))
        self.display_combo = QtWidgets.QComboBox()
        self.display_combo.addItems([m.value for m in DisplayMode])
        row.addWidget(self.display_combo)
        layout.addLayout(row)

        layout.addWidget(QtWidgets.QLabel("<b>Horizontal / Vertical</b>"))
        self.time_div = Stepper("Time/div (s):")
        self.time_div_fine = Stepper("  fine:")
        layout.addWidget(self.time_div)
        layout.addWidget(self.time_div_fine)
        self.time_div_edit = self._entry(layout, "Enter s/div:")

        self.volts_div, self.volts_div_fine, self.volts_div_edit = {}, {}, {}
        self.frequency, self.frequency_fine, self.frequency_edit = {}, {}, {}
        self.v_position = {}
        for ch in (1, 2):
            self.volts_div[ch] = Stepper(f"CH{ch} V/div:")
            self.volts_div_fine[ch] = Stepper("  fine:")
            layout.addWidget(self.volts_div[ch])
            layout.addWidget(self.volts_div_fine[ch])
            self.volts_div_edit[ch] = self._entry(layout, f"Enter CH{ch} V/div:")
            self.frequency[ch] = Stepper(f"CH{ch} freq (Hz):")
            self.frequency_fine[ch] = Stepper("  fine:")
            layout.addWidget(self.frequency[ch])
            layout.addWidget(self.frequency_fine[ch])
            self.frequency_edit[ch] = self._entry(layout, f"Enter CH{ch} Hz:")
            self.v_position[ch] = Stepper(f"CH{ch} V position (div):")
            layout.addWidget(self.v_position[ch])
        self.phase_diff = Stepper("Phase diff (deg):")
        self.phase_fine = Stepper("  fine:")
        layout.addWidget(self.phase_diff)
        layout.addWidget(self.phase_fine)
        self.h_position = Stepper("H position (div):")
        layout.addWidget(self.h_position)

        layout.addWidget(QtWidgets.QLabel("<b>Trigger</b>"))
        row = QtWidgets.QHBoxLayout()
        row.addWidget(QtWidgets.QLabel("Source:"))
        self.trigger_source_combo = QtWidgets.QComboBox()
        self.trigger_source_combo.addItems(["1", "2"])
        row.addWidget(self.trigger_source_combo)
        self.slope_btn = QtWidgets.QPushButton("Slope: rising")
        row.addWidget(self.slope_btn)
        layout.addLayout(row)
        row = QtWidgets.QHBoxLayout()
        row.addWidget(QtWidgets.QLabel("Mode:"))
        self.trigger_mode_combo = QtWidgets.QComboBox()
        self.trigger_mode_combo.addItems(list(TRIGGER_MODES))
        row.addWidget(self.trigger_mode_combo)
        layout.addLayout(row)
        self.trigger_level = Stepper("Level (V):")
        layout.addWidget(self.trigger_level)
        self.reset_trigger_btn = QtWidgets.QPushButton("Reset trigger")
        layout.addWidget(self.reset_trigger_btn)

        layout.addWidget(QtWidgets.QLabel("<b>Calibration</b>"))
        self.time_trim = Stepper("Time trim:")
        layout.addWidget(self.time_trim)
        self.volts_trim = {ch: Stepper(f"CH{ch} volts trim:") for ch in (1, 2)}
        for ch in (1, 2):
            layout.addWidget(self.volts_trim[ch])
        self.status_label = QtWidgets.QLabel("")
        self.status_label.setWordWrap(True)
        layout.addWidget(self.status_label)
        self.deviation_label = QtWidgets.QLabel("")
        self.deviation_label.setWordWrap(True)
        layout.addWidget(self.deviation_label)
        row = QtWidgets.QHBoxLayout()
        self.export_btn = QtWidgets.QPushButton("Export profile")
        self.import_btn = QtWidgets.QPushButton("Import profile")
        row.addWidget(self.export_btn)
        row.addWidget(self.import_btn)
        layout.addLayout(row)

        layout.addWidget(QtWidgets.QLabel("<b>Lissajous</b>"))
        self.freq_x = Stepper("Freq X (Hz):")
        self.freq_y = Stepper("Freq Y (Hz):")
        self.lissajous_phase = Stepper("Phase (deg):")
        for w in (self.freq_x, self.freq_y, self.lissajous_phase):
            layout.addWidget(w)
        self.ratio_label = QtWidgets.QLabel("X:Y = -")
        layout.addWidget(self.ratio_label)
        layout.addStretch(1)


class OscilloMainWindow(QtWidgets.QMainWindow):
    def __init__(self, model: OscilloModel, parent=None):
        super().__init__(parent)
        self.model = model
        self.setWindowTitle("Oscilloscope Trainer")

        toolbar = self.addToolBar("Run")
        self.toggle_start_action = toolbar.addAction("Run")
        self.toggle_start_action.setCheckable(True)
        self.single_action = toolbar.addAction("Single")
        self.reset_action = toolbar.addAction("Reset waveform")

        self.plot = ScopePlot()
        self.controls = ControlPanel()
        scroll = QtWidgets.QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setWidget(self.controls)
        scroll.setMinimumWidth(320)

        self.measurement_table = QtWidgets.QTableWidget(0, 1 + len(METRIC_KEYS))
        self.measurement_table.setHorizontalHeaderLabels(["Trace"] + list(METRIC_KEYS))
        self.measurement_table.setMaximumHeight(110)

        self.log_view = QtWidgets.QPlainTextEdit()
        self.log_view.setReadOnly(True)
        self.log_view.setMaximumBlockCount(500)
        self.log_view.setMaximumHeight(120)

        left = QtWidgets.QVBoxLayout()
        left.addWidget(self.plot, 1)
        left.addWidget(self.measurement_table)
        left.addWidget(self.log_view)
        left_widget = QtWidgets.QWidget()
        left_widget.setLayout(left)

        splitter = QtWidgets.QSplitter()
        splitter.addWidget(left_widget)
        splitter.addWidget(scroll)
        splitter.setStretchFactor(0, 1)
        self.setCentralWidget(splitter)
        self.resize(1280, 820)

    def log(self, text: str):
        self.log_view.appendPlainText(text)

    def update_curve(self, key: str, x, y):
        item = self.plot.curve_items.get(key)
        if item is not None:
            item.setData(x, y)

    def update_measurement_table(self, metrics: Dict[str, Dict[str, float]]):
        keys: List[str] = sorted(metrics)
        self.measurement_table.setRowCount(len(keys))
        for row, key in enumerate(keys):
            name = "SUM" if key == "sum" else f"CH{key}"
            self.measurement_table.setItem(row, 0, QtWidgets.QTableWidgetItem(name))
            formatted = format_metrics(metrics[key])
            for col, metric in enumerate(METRIC_KEYS, start=1):
                self.measurement_table.setItem(row, col, QtWidgets.QTableWidgetItem(formatted[metric]))

    def set_trigger_line(self, y: Optional[float]):
        if y is None:
            self.plot.trigger_line.setVisible(False)
        else:
            self.plot.trigger_line.setPos(y)
            self.plot.trigger_line.setVisible(True)

    def set_status(self, level: Optional[str], message: str = ""):
        colors = {"success": "#2e7d32", "warning": "#f9a825", "error": "#c62828"}
        if level is None:
            self.controls.status_label.setText("")
            return
        self.controls.status_label.setText(
            f"<span style='color:{colors.get(level, '#000')}'>{message}</span>")

    def ask_profile_path(self, save: bool) -> str:
        dialog = QtWidgets.QFileDialog.getSaveFileName if save else QtWidgets.QFileDialog.getOpenFileName
        path, _ = dialog(self, "Calibration profile", "", "JSON (*.json)")
        return path
