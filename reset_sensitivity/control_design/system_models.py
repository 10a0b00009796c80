"""
System Models for Reset Control Analysis

This module provides the state-space container for reset elements and the
bridge between python-control LTI objects and sampled frequency-response
functions (FRFs) on a frequency grid.

Reset element (Saikumar et al., 2021):

    dx/dt = A_R x + B_R e          e(t) != 0
    x(t+) = A_rho x(t)             e(t)  = 0
    u     = C_R x + D_R e

With ``A_rho = I`` the reset action disappears and the element reduces to its
base-linear system (A_R, B_R, C_R, D_R).
"""

from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional, Union

import numpy as np
import control as ctrl

from ..core.errors import InvalidInputError
from ..core.validation import validate_frequencies


def _as_matrix(value, name: str) -> np.ndarray:
    arr = np.array(value, dtype=float)
    if arr.ndim == 0:
        arr = arr.reshape(1, 1)
    elif arr.ndim == 1:
        arr = arr.reshape(1, -1)
    elif arr.ndim > 2:
        raise InvalidInputError(f"{name} must be at most 2-D, got shape {arr.shape}")
    return arr


@dataclass(frozen=True, eq=False)
class ResetElementModel:
    """
    State-space realization of a SISO reset element.

    Attributes
    ----------
    A_R : np.ndarray
        State matrix (n_r x n_r)
    B_R : np.ndarray
        Input matrix (n_r x 1)
    C_R : np.ndarray
        Output matrix (1 x n_r)
    D_R : float
        Feedthrough term
    A_rho : np.ndarray
        Reset matrix (n_r x n_r); a scalar a is read as a*I
    name : str
        Optional label (e.g. 'CI', 'FORE')
    """
    A_R: np.ndarray
    B_R: np.ndarray
    C_R: np.ndarray
    D_R: float = 0.0
    A_rho: Optional[np.ndarray] = None
    name: str = ""

    def __post_init__(self):
        A_R = _as_matrix(self.A_R, "A_R")
        n_states = A_R.shape[0]
        if A_R.shape != (n_states, n_states):
            raise InvalidInputError(f"A_R must be square, got shape {A_R.shape}")

        B_R = np.array(self.B_R, dtype=float)
        if B_R.ndim <= 1:
            B_R = B_R.reshape(-1, 1)
        if B_R.shape != (n_states, 1):
            raise InvalidInputError(f"B_R must be ({n_states}, 1), got {B_R.shape}")

        C_R = _as_matrix(self.C_R, "C_R")
        if C_R.shape != (1, n_states):
            raise InvalidInputError(f"C_R must be (1, {n_states}), got {C_R.shape}")

        D_R = np.asarray(self.D_R, dtype=float)
        if D_R.size != 1:
            raise InvalidInputError(f"D_R must be scalar for a SISO element, got shape {D_R.shape}")

        if self.A_rho is None:
            A_rho = np.eye(n_states)
        elif np.ndim(self.A_rho) == 0:
            A_rho = float(self.A_rho) * np.eye(n_states)
        else:
            A_rho = _as_matrix(self.A_rho, "A_rho")
        if A_rho.shape != (n_states, n_states):
            raise InvalidInputError(f"A_rho must be ({n_states}, {n_states}), got {A_rho.shape}")

        for arr in (A_R, B_R, C_R, A_rho):
            arr.setflags(write=False)

        # frozen dataclass: normalised arrays are written through object.__setattr__
        object.__setattr__(self, "A_R", A_R)
        object.__setattr__(self, "B_R", B_R)
        object.__setattr__(self, "C_R", C_R)
        object.__setattr__(self, "D_R", float(D_R.reshape(-1)[0]))
        object.__setattr__(self, "A_rho", A_rho)

    @property
    def n_states(self) -> int:
        """Number of reset-element states."""
        return self.A_R.shape[0]

    @property
    def is_base_linear(self) -> bool:
        """True when the reset matrix is the identity (no reset action)."""
        return bool(np.allclose(self.A_rho, np.eye(self.n_states)))

    @classmethod
    def from_mapping(
        cls,
        system: Mapping[str, Any],
        A_rho=None
    ) -> "ResetElementModel":
        """
        Build a model from a mapping with keys 'A_R', 'B_R', 'C_R'
        (optionally 'D_R', 'A_rho', 'name').

        An explicit ``A_rho`` overrides the mapping's entry.
        """
        missing = [key for key in ("A_R", "B_R", "C_R") if key not in system]
        if missing:
            raise InvalidInputError(f"Reset element description lacks {', '.join(missing)}")
        if A_rho is None:
            A_rho = system.get("A_rho")
        return cls(
            A_R=system["A_R"],
            B_R=system["B_R"],
            C_R=system["C_R"],
            D_R=system.get("D_R", 0.0),
            A_rho=A_rho,
            name=system.get("name", ""),
        )

    def with_reset_matrix(self, A_rho) -> "ResetElementModel":
        """Return a copy with a different reset matrix."""
        return replace(self, A_rho=A_rho)

    def base_linear(self) -> "ResetElementModel":
        """Return the base-linear system (A_rho = I)."""
        return self.with_reset_matrix(np.eye(self.n_states))

    def to_control(self) -> ctrl.StateSpace:
        """Convert the base-linear system to a python-control StateSpace object."""
        return ctrl.ss(self.A_R, self.B_R, self.C_R, [[self.D_R]])

    def linear_frf(self, freqs) -> np.ndarray:
        """
        Evaluate the base-linear FRF C_R (jωI - A_R)^-1 B_R + D_R.

        Parameters
        ----------
        freqs : array_like
            Frequencies [Hz]

        Returns
        -------
        np.ndarray
            Complex FRF, one entry per frequency
        """
        return frf_from_system(self.to_control(), freqs)


LTIOrFRF = Union[ctrl.LTI, np.ndarray, complex, float]


def frf_from_system(system: LTIOrFRF, freqs) -> np.ndarray:
    """
    Sample a SISO system on a frequency grid.

    Parameters
    ----------
    system : ctrl.LTI, array_like or scalar
        - python-control LTI object: evaluated at s = j2πf (continuous time)
          or z = exp(j2πf dt) (discrete time)
        - array_like: taken as an FRF already sampled on ``freqs``
        - scalar: constant gain at every frequency
    freqs : array_like
        Frequencies [Hz]

    Returns
    -------
    np.ndarray
        Complex FRF, one entry per frequency
    """
    freqs = validate_frequencies(freqs)
    omega = 2 * np.pi * freqs

    if isinstance(system, ctrl.LTI):
        if system.ninputs != 1 or system.noutputs != 1:
            raise InvalidInputError(
                f"Only SISO systems are supported, got {system.noutputs}x{system.ninputs}"
            )
        if ctrl.isdtime(system, strict=True):
            points = np.exp(1j * omega * system.dt)
        else:
            points = 1j * omega
        return np.asarray(system(points), dtype=complex).reshape(-1)

    if np.ndim(system) == 0:
        return np.full(freqs.size, complex(system))

    frf = np.asarray(system, dtype=complex).reshape(-1)
    if frf.size != freqs.size:
        raise InvalidInputError(
            f"FRF has {frf.size} entries, expected {freqs.size} (one per frequency)"
        )
    return frf
