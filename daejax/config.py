"""Default configuration values for daejax.

This module centralizes numerical constants used throughout the solver.
"""

import numpy as np

# Machine epsilon for float64
MACHINE_EPS = float(np.finfo(np.float64).eps)

# Finite-difference Jacobian: relative perturbation sqrt(eps), and the
# magnitude below which an estimated entry is dropped from the pattern
DEFAULT_JACOBIAN_PERTURBATION = float(np.sqrt(MACHINE_EPS))
DEFAULT_JACOBIAN_DROP_TOLERANCE = 1e-14

# Highest BDF order that is still zero-stable
MAX_BDF_ORDER = 6

# Error estimates below this are treated as zero when choosing step factors
ERROR_NORM_FLOOR = 1e-10
