# Detection defaults
DEFAULT_SENSITIVITY = 0.6
DEFAULT_BAND_PX = 6
DEFAULT_LABELS = ("5", "10", "20")

# Calibration defaults (values only; pixels start unset)
DEFAULT_X1_VALUE = 0.0
DEFAULT_X2_VALUE = 30.0
DEFAULT_Y1_VALUE = 0.0
DEFAULT_Y2_VALUE = 50.0

# Geometry
PARALLEL_EPSILON = 1e-9
CALIBRATION_SNAP_OFFSET_PX = 10

# Brightness profile (ITU-R BT.601 luma weights, RGB order)
LUMA_WEIGHTS = (0.299, 0.587, 0.114)

# Threshold = max_diff * (THRESHOLD_BASE + THRESHOLD_RANGE * (1 - sensitivity))
THRESHOLD_BASE = 0.15
THRESHOLD_RANGE = 0.7

# Candidate selection
MIN_VERTICAL_SEPARATION = 3
STROKE_REFINE_RADIUS = 6
SORTED_DUPLICATE_RADIUS = 2

# Mask matching (max per-channel RGB distance)
MASK_COLOR_TOLERANCE = 40

# Scheduling
FRAME_INTERVAL_SECONDS = 1.0 / 60.0
ALL_PROBES_KEY = "*"

# Probe generation
PROBE_DEDUP_TOLERANCE = 1e-6
PROBE_INTERVAL_ROUNDING = 5
PROBE_INTERVAL_EPSILON = 1e-9

# Table view
TABLE_DECIMALS = 3
TABLE_X_HEADER = "X"

# Debug artifacts
DEBUG_ENV = "PROBE_DIGITIZER_DEBUG"
DEBUG_DIR_ENV = "PROBE_DIGITIZER_DEBUG_DIR"
DEFAULT_DEBUG_DIR = "/tmp/probe_digitizer"
