"""
Frequency Response Analysis Suite for Lure-Type Reset Control Systems

This module computes frequency-domain performance bounds for control loops
that contain a reset element (Clegg integrator, FORE, CgLp, ...). Classical
Bode analysis does not apply to such loops: a sinusoidal input produces an
output with odd higher harmonics. The suite follows the describing-function
approach:

1. Reduce the loop to Lure form: a linear two-port G (Gwz, Guz, Gwy, Guy)
   in feedback with the reset element R
2. Compute the higher-order sinusoidal-input describing functions (HOSIDFs)
   of R
3. Close the loop harmonic by harmonic to obtain the higher-order
   sinusoidal-input sensitivity functions (HOSISFs) Swz and Swy
4. Superpose the harmonics over one input period and take the peak of the
   performance output: the pseudo-sensitivity |S∞(ω)|

Frequency Grid
--------------
All routines operating on harmonics require a linearly spaced grid with
freqs[k] = (k+1) freqs[0], so that every harmonic n·f_k is itself a grid
point as long as n (k+1) <= M.

References
----------
[1] N. Saikumar, K. Heinen, S.H. HosseinNia, "Loop-shaping for reset control
    systems: a higher-order sinusoidal-input describing functions approach",
    Control Engineering Practice, 2021.
[2] L.F. van Eijk, D. Kostić, S.H. HosseinNia, "Frequency Response Analysis
    of Lure-Type Reset Control Systems", IEEE Control Systems Letters.
"""

from .reset_hosidf import (
    ResetHOSIDF,
    DescribingMatrices,
    compute_reset_hosidf,
    compute_reset_hosidfs,
    reset_describing_matrices,
)

from .lure_converter import (
    LureConverter,
    LureFRFs,
    convert_to_lure,
)

from .pseudo_sensitivity_engine import (
    PseudoSensitivityEngine,
    PseudoSensitivityConfig,
    PseudoSensitivityResult,
    HarmonicResponse,
    compute_pseudo_sensitivity,
    harmonic_index,
    reconstruct_period,
)

from .data_logger import (
    PseudoSensitivityLogger,
    LoggerConfig,
)

from ..errors import InvalidInputError, NumericalSingularityError

__all__ = [
    # HOSIDF
    'ResetHOSIDF',
    'DescribingMatrices',
    'compute_reset_hosidf',
    'compute_reset_hosidfs',
    'reset_describing_matrices',
    # Lure form
    'LureConverter',
    'LureFRFs',
    'convert_to_lure',
    # Engine
    'PseudoSensitivityEngine',
    'PseudoSensitivityConfig',
    'PseudoSensitivityResult',
    'HarmonicResponse',
    'compute_pseudo_sensitivity',
    'harmonic_index',
    'reconstruct_period',
    # Logger
    'PseudoSensitivityLogger',
    'LoggerConfig',
    # Errors
    'InvalidInputError',
    'NumericalSingularityError',
]
