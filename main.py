import argparse
import logging
import sys

from model.calibration import load_profile, set_experiment_step
from model.constants import DEFAULT_PHASE_STEP
from model.oscillo_model import ExperimentStep, OscilloModel


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Analog oscilloscope trainer")
    p.add_argument("--step", choices=[s.value for s in ExperimentStep],
                   default=ExperimentStep.CALIBRATION.value, help="experiment step to start in")
    p.add_argument("--profile", help="calibration profile (JSON) to import at start-up")
    p.add_argument("--fps", type=float, default=60.0, help="frame rate of the sweep clock")
    p.add_argument("--time-scale", type=float, default=1.0,
                   help="multiplier applied to every phase increment (slow motion < 1)")
    p.add_argument("--phase-step", type=float, default=DEFAULT_PHASE_STEP,
                   help="phase advance per frame in radians")
    p.add_argument("--log-level", default="INFO",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return p


def build_model(args) -> OscilloModel:
    model = OscilloModel()
    model.channels[1].active = True
    if args.profile and not load_profile(model.calibration, args.profile):
        logging.getLogger(__name__).warning("Starting with default calibration")
    if args.step != model.exp_step.value:
        set_experiment_step(model, args.step)
    return model


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    from PySide6 import QtWidgets

    from controller.oscillo_controller import OscilloController
    from model.worker import FrameClock
    from view.main_window import OscilloMainWindow, QtLogHandler

    app = QtWidgets.QApplication(sys.argv[:1])
    model = build_model(args)

    main_win = OscilloMainWindow(model)
    logging.getLogger().addHandler(QtLogHandler(main_win.log))
    clock = FrameClock(model, fps=args.fps, time_scale=args.time_scale,
                       phase_step=args.phase_step)
    controller = OscilloController(model, main_win, clock)
    main_win.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
