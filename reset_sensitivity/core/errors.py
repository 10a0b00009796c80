"""
Exception types for the reset-system frequency response pipeline.

Two failure classes exist:

- **InvalidInputError**: malformed or out-of-range arguments (non-positive
  frequencies, bad harmonic orders, mismatched array lengths). Raised eagerly,
  before any numerical work is done.
- **NumericalSingularityError**: a matrix that must be inverted is singular at
  some evaluated frequency/harmonic order (non-resonance condition violated).
  Fatal for the whole invocation; no partial results are returned.

A closed-loop resonance (zero denominator in the sensitivity recursion) is
*not* an error. It shows up as non-finite values in the result.
"""

from typing import Optional

import numpy as np


class InvalidInputError(ValueError):
    """Raised when arguments violate a documented precondition."""


class NumericalSingularityError(np.linalg.LinAlgError):
    """
    Raised when a required matrix inverse does not exist.

    Attributes
    ----------
    frequency_hz : float, optional
        Frequency at which the singularity was met [Hz]
    order : int, optional
        Harmonic order being evaluated
    """

    def __init__(
        self,
        message: str,
        frequency_hz: Optional[float] = None,
        order: Optional[int] = None
    ):
        details = []
        if frequency_hz is not None:
            details.append(f"f = {frequency_hz:g} Hz")
        if order is not None:
            details.append(f"n = {order}")
        if details:
            message = f"{message} ({', '.join(details)})"
        super().__init__(message)
        self.frequency_hz = frequency_hz
        self.order = order
