"""
Eager precondition checks shared by the HOSIDF, Lure and HOSISF stages.

All checks raise InvalidInputError and return the normalised value so callers
can write ``freqs = validate_frequency_grid(freqs)``.
"""

import numbers
from typing import Sequence

import numpy as np

from .errors import InvalidInputError


def validate_frequencies(freqs, name: str = "freqs") -> np.ndarray:
    """
    Check that ``freqs`` is a non-empty 1-D array of positive, finite values.

    Parameters
    ----------
    freqs : array_like
        Frequencies [Hz]
    name : str
        Argument name used in error messages

    Returns
    -------
    np.ndarray
        Flattened float array
    """
    try:
        arr = np.asarray(freqs)
    except Exception as e:
        raise InvalidInputError(f"{name} must be array-like: {e}") from e

    if np.iscomplexobj(arr):
        raise InvalidInputError(f"{name} must be real-valued")
    if arr.ndim > 1 and max(arr.shape) != arr.size:
        raise InvalidInputError(f"{name} must be a 1-D sequence, got shape {arr.shape}")

    try:
        arr = arr.astype(float).reshape(-1)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"{name} must contain numbers: {e}") from e

    if arr.size == 0:
        raise InvalidInputError(f"{name} must not be empty")
    if not np.all(np.isfinite(arr)):
        raise InvalidInputError(f"{name} must be finite")
    if np.min(arr) <= 0:
        raise InvalidInputError("Only positive frequencies are allowed")
    return arr


def validate_frequency_grid(
    freqs,
    check_harmonic: bool = True,
    rtol: float = 1e-9
) -> np.ndarray:
    """
    Validate a harmonic frequency grid: ``freqs[k] = (k + 1) * freqs[0]``.

    Harmonic order n of the input at index k then lies at index
    ``n * (k + 1) - 1``.

    Parameters
    ----------
    freqs : array_like
        Frequency grid [Hz]
    check_harmonic : bool
        Also verify the harmonic relation (positivity is always checked)
    rtol : float
        Relative tolerance of the harmonic relation

    Returns
    -------
    np.ndarray
        Flattened float array
    """
    arr = validate_frequencies(freqs)
    if check_harmonic:
        expected = freqs_fundamental_multiples(arr[0], arr.size)
        if not np.allclose(arr, expected, rtol=rtol, atol=0.0):
            worst = int(np.argmax(np.abs(arr - expected)))
            raise InvalidInputError(
                "freqs must be a harmonic grid with freqs[k] = (k+1)*freqs[0]; "
                f"index {worst} holds {arr[worst]:g} Hz, expected {expected[worst]:g} Hz"
            )
    return arr


def freqs_fundamental_multiples(f1: float, n_freqs: int) -> np.ndarray:
    """Return the harmonic grid ``[f1, 2 f1, ..., n_freqs f1]``."""
    return f1 * np.arange(1, n_freqs + 1, dtype=float)


def validate_positive_integer(value, name: str) -> int:
    """
    Check that ``value`` is a positive whole number.

    Integral floats (``3.0``) are accepted, booleans are not.
    """
    if isinstance(value, (bool, np.bool_)):
        raise InvalidInputError(f"{name} must be a positive integer, got {value!r}")
    if isinstance(value, numbers.Integral):
        result = int(value)
    elif isinstance(value, numbers.Real) and np.isfinite(value) and float(value).is_integer():
        result = int(value)
    else:
        raise InvalidInputError(f"{name} must be a positive integer, got {value!r}")

    if result < 1:
        raise InvalidInputError(f"{name} must be a positive integer, got {value!r}")
    return result


def validate_harmonic_order(n) -> int:
    """Validate a HOSIDF order (natural number)."""
    try:
        return validate_positive_integer(n, "n")
    except InvalidInputError:
        raise InvalidInputError(
            f"Only natural numbers are allowed for the HOSIDF order, got {n!r}"
        ) from None


def validate_frf(values, n_freqs: int, name: str) -> np.ndarray:
    """
    Normalise a SISO frequency-response array to a flat complex vector.

    Row and column vectors are both accepted.
    """
    try:
        arr = np.asarray(values, dtype=complex)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"{name} must contain complex numbers: {e}") from e
    if arr.ndim > 1 and max(arr.shape) != arr.size:
        raise InvalidInputError(f"{name} must be a 1-D FRF, got shape {arr.shape}")
    arr = arr.reshape(-1)
    if arr.size != n_freqs:
        raise InvalidInputError(
            f"{name} has {arr.size} entries, expected {n_freqs} (one per frequency)"
        )
    return arr


def validate_same_length(arrays: Sequence, names: Sequence[str]) -> int:
    """Check that all FRF arrays have the same number of entries and return it."""
    lengths = [np.asarray(a).size for a in arrays]
    if len(set(lengths)) != 1:
        listing = ", ".join(f"{n}={l}" for n, l in zip(names, lengths))
        raise InvalidInputError(f"FRF arrays must have identical length: {listing}")
    return lengths[0]
