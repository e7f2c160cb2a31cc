import logging
from typing import Optional

from PySide6 import QtCore

from .constants import DEFAULT_PHASE_STEP
from .engine import ScopeEngine
from .oscillo_model import OscilloModel

logger = logging.getLogger(__name__)


class FrameClock(QtCore.QObject):
    """Drives `ScopeEngine.tick` from a QTimer on the GUI thread.

    The engine never runs concurrently with the UI: every tick happens inside
    the Qt event loop, so control events and frames never interleave.
    """
    data_ready = QtCore.Signal(object)  # Frame
    status = QtCore.Signal(str)
    error = QtCore.Signal(str)

    def __init__(self, model: OscilloModel, fps: float = 60.0, time_scale: float = 1.0,
                 phase_step: float = DEFAULT_PHASE_STEP, parent=None):
        super().__init__(parent)
        self.model = model
        self.engine = ScopeEngine(model, phase_step=phase_step)
        self.time_scale = time_scale
        self._single_shot = False
        self._timer = QtCore.QTimer(self)
        self._timer.setInterval(max(1, int(round(1000.0 / fps))))
        self._timer.timeout.connect(self.step)

    def isRunning(self) -> bool:
        return self._timer.isActive()

    def start_continuous(self):
        self._single_shot = False
        if not self._timer.isActive():
            self._timer.start()
            self.status.emit("Sweep running")

    def start_single(self):
        self._single_shot = True
        if not self._timer.isActive():
            self._timer.start()
            self.status.emit("Single sweep armed")

    def stop(self):
        if self._timer.isActive():
            self._timer.stop()
            self.status.emit("Sweep stopped")

    def step(self, delta: Optional[float] = None):
        try:
            frame = self.engine.tick(delta, self.time_scale)
        except Exception as ex:
            # keep the loop alive; the next tick gets a fresh chance
            logger.exception("Frame failed")
            self.error.emit(f"Frame error: {ex}")
            return None
        self.data_ready.emit(frame)
        if self._single_shot:
            self._single_shot = False
            self.stop()
        return frame

    def refresh(self):
        """Re-render without advancing the phase (after a control change)."""
        try:
            frame = self.engine.render()
        except Exception as ex:
            logger.exception("Redraw failed")
            self.error.emit(f"Redraw error: {ex}")
            return None
        self.data_ready.emit(frame)
        return frame
