import math

# Canvas / grid
CANVAS_WIDTH = 800
CANVAS_HEIGHT = 400
HORIZONTAL_DIVS = 16
VERTICAL_DIVS = 8
GRID_SIZE = 50                  # pixels per division

TWO_PI = 2 * math.pi
DEG_TO_RAD = math.pi / 180

# Display limits
MIN_VOLTAGE = -5.0
MAX_VOLTAGE = 5.0
TIME_DIV_RANGE = (0.1, 100.0)
VOLTS_DIV_RANGE = (0.01, 10.0)
HORIZONTAL_POSITION_LIMIT = 8.0  # divisions
VERTICAL_POSITION_LIMIT = 4.0    # divisions
MIN_FREQUENCY = 0.1              # Hz

# Calibration
ADJUST_FACTOR_RANGE = (0.1, 2.0)
DEFAULT_CALIBRATION_FACTOR = 0.85
CALIBRATION_SUCCESS_TOLERANCE = 0.02
CALIBRATION_WARNING_TOLERANCE = 0.1

# Trigger
TRIGGER_CHECK_POINT = 0.25       # seconds into the sweep
TRIGGER_SLOPE_EPSILON = 0.1      # radians
TRIGGER_TOLERANCE_PX = 5.0

# Lissajous
GCD_PRECISION = 1000
MIN_GCD = 0.001
MAX_RATIO_VALUE = 20
SIMPLE_RATIO_LIMIT = 10
SIMPLE_RATIO_POINTS = 2000
COMPLEX_RATIO_POINTS = 8000
COMPLEX_RATIO_SPAN = 10 * math.pi
MIN_PERIODS = 2
MAX_PERIODS = 10
POINTS_HISTORY_SIZE = 200

# Animation
DEFAULT_PHASE_STEP = 0.02        # radians per tick
PULSE_THRESHOLD = 0.7

CHANNELS = (1, 2)
CHANNEL_COLORS = {
    1: "#2196F3",
    2: "#FF5722",
    "sum": "#42B983",
}
