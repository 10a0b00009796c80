"""
Conversion of a Reset Control Loop to Lure Form

The reset control system

         --> C2 --> R --> C3 --
         |                    |
    --> C1                    + --> C5 --> P -->
         |                    |
         ---------> C4 --------

is first rearranged into pre-, parallel- and post-filters

    Cpre = C1 C2,   Cpar = C4 / (C2 C3),   Cpos = C3 C5

and then into the general two-port form with reference r as external input w
and error e as performance output z:

          z    _____    w
        <-----|     |<-----
          y   |  G  |   u
        ------|_____|<-----
        |      _____      |
        |---->|  R  |-----|
              |_____|

    Gwz = 1 / (1 + P Cpos Cpar Cpre)
    Guz = -P Cpos Gwz
    Gwy = Cpre Gwz
    Guy = Cpre Guz

All operations are elementwise per frequency bin; there is no coupling
between frequencies.

References
----------
[1] L.F. van Eijk, D. Kostić, S.H. HosseinNia, "Frequency Response Analysis
    of General Zero-Crossing Reset Control Systems".
"""

import warnings
from typing import NamedTuple

import numpy as np

from ...control_design.system_models import frf_from_system
from ..validation import validate_frf, validate_same_length


class LureFRFs(NamedTuple):
    """
    FRFs of the linear two-port G in Lure form.

    Attributes
    ----------
    gwz : np.ndarray
        External input w -> performance output z
    guz : np.ndarray
        Reset output u -> z
    gwy : np.ndarray
        w -> reset input y
    guy : np.ndarray
        u -> y
    """
    gwz: np.ndarray
    guz: np.ndarray
    gwy: np.ndarray
    guy: np.ndarray

    @property
    def n_freqs(self) -> int:
        return self.gwz.size

    def is_finite(self) -> bool:
        """True when no FRF holds inf or NaN."""
        return all(np.all(np.isfinite(frf)) for frf in self)


def convert_to_lure(frf_c1, frf_c2, frf_c3, frf_c4, frf_c5, frf_plant) -> LureFRFs:
    """
    Convert controller and plant FRFs to the four Lure-form FRFs.

    Parameters
    ----------
    frf_c1 .. frf_c5 : array_like
        Complex FRFs of the SISO LTI controllers C1..C5
    frf_plant : array_like
        Complex FRF of the plant P

    Returns
    -------
    LureFRFs
        (gwz, guz, gwy, guy), each the length of the inputs

    Raises
    ------
    InvalidInputError
        When the input arrays differ in length

    Notes
    -----
    Division by zero is not trapped: the affected bins become inf/NaN and a
    RuntimeWarning is issued. Such values point at a modelling error.
    """
    names = ("C1", "C2", "C3", "C4", "C5", "Plant")
    inputs = (frf_c1, frf_c2, frf_c3, frf_c4, frf_c5, frf_plant)
    n_freqs = validate_same_length(inputs, names)
    c1, c2, c3, c4, c5, plant = (
        validate_frf(frf, n_freqs, name) for frf, name in zip(inputs, names)
    )

    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        cpre = c1 * c2
        cpar = c4 / c2 / c3
        cpos = c3 * c5

        gwz = 1 / (1 + plant * cpos * cpar * cpre)
        guz = -plant * cpos * gwz
        gwy = cpre * gwz
        guy = cpre * guz

    result = LureFRFs(gwz=gwz, guz=guz, gwy=gwy, guy=guy)
    if not result.is_finite():
        bad = np.flatnonzero(~np.all(np.isfinite(np.vstack(result)), axis=0))
        warnings.warn(
            f"Lure conversion produced non-finite values at frequency indices {bad.tolist()}",
            RuntimeWarning,
            stacklevel=2,
        )
    return result


class LureConverter:
    """
    Lure-form converter for the five-controller reset loop.

    Example Usage
    -------------
    >>> import control as ctrl
    >>> s = ctrl.tf('s')
    >>> converter = LureConverter()
    >>> frfs = converter.from_systems(
    ...     c1=1.0, c2=1.0, c3=1.0, c4=10.0, c5=(s + 10) / (s + 100),
    ...     plant=1 / s**2, freqs=freqs
    ... )
    >>> gwz, guz, gwy, guy = frfs
    """

    def convert(self, frf_c1, frf_c2, frf_c3, frf_c4, frf_c5, frf_plant) -> LureFRFs:
        """Convert sampled FRFs (see :func:`convert_to_lure`)."""
        return convert_to_lure(frf_c1, frf_c2, frf_c3, frf_c4, frf_c5, frf_plant)

    def from_systems(self, c1, c2, c3, c4, c5, plant, freqs) -> LureFRFs:
        """
        Sample LTI objects (or constant gains / FRF arrays) on ``freqs`` and convert.

        Parameters
        ----------
        c1 .. c5, plant : ctrl.LTI, array_like or scalar
            Controllers and plant
        freqs : array_like
            Frequencies [Hz]
        """
        frfs = [frf_from_system(sys_, freqs) for sys_ in (c1, c2, c3, c4, c5, plant)]
        return convert_to_lure(*frfs)
