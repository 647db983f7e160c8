"""
Configuration constants.

Centralizes the default values used by the solver. Per-instance settings live
on `WFCConfig`; these are the fallbacks it is built from.
"""

# =============================================================================
# GENERAL
# =============================================================================

# Name attached to notifications when the caller does not give one.
DEFAULT_SOLVER_NAME = "wfc"

# RANDOM_SEED = "meadow"
RANDOM_SEED = None

# =============================================================================
# COLLAPSE DRIVER
# =============================================================================

# Consecutive backtracks allowed before a run is declared failed. This is the
# main latency bound for a single step() call.
DEFAULT_MAX_BACKTRACKS = 100

# Drive the whole grid from generate() (True) or a single step (False).
DEFAULT_AUTO = True

# Seconds awaited between steps in async generation. 0 still yields to the
# event loop once per step.
DEFAULT_COLLAPSE_DELAY = 0.0

# =============================================================================
# RULES
# =============================================================================

# Candidate sets are stored as one uint64 bitmask per cell.
MAX_TILES = 64

DEFAULT_TILE_WEIGHT = 1.0

# =============================================================================
# RANDOM NUMBER GENERATION
# =============================================================================

# Linear congruential generator parameters (Numerical Recipes).
LCG_MULTIPLIER = 1664525
LCG_INCREMENT = 1013904223
LCG_MODULUS = 2**32

# =============================================================================
# METRICS
# =============================================================================

# Number of recent step timings kept for percentile reporting.
STEP_TIME_SAMPLES = 1000
