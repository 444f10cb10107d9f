"""
Package-wide numeric defaults.

These are plain module constants. Functions that use them also accept an
explicit keyword argument, so callers rarely need to touch this module.
"""

import numpy as np

DEFAULT_DTYPE = np.complex128
"""Element type of registers and gate matrices."""

ATOL = 1e-10
"""Absolute tolerance for hermiticity/unitarity/involution checks."""

FD_EPSILON = 1e-6
"""Step for central finite differences."""

PARAM_SHIFT = np.pi / 2
"""Shift for the parameter-shift rule of exp(-iθ/2·G) rotations."""
