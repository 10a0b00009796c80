"""
Pseudo-Sensitivity Engine for Lure-Type Reset Control Systems

This module computes the higher-order sinusoidal-input sensitivity functions
(HOSISFs) of a reset control system in Lure form and, from them, the
pseudo-sensitivity magnitude |S∞(f)| [1].

Methodology
-----------
Stage A - HOSIDFs of the reset element, H_n(ω) for n = 1..N, plus the FRF of
its base-linear system R_bl(ω) (A_rho = I). Both are evaluated without the
element's feedthrough D_R; a direct path belongs in the linear part of the
loop (C4 in the Lure conversion).

Stage B - HOSISFs [1, Theorem 3.1]. The fundamental is computed first:

    Swy_1(ω) = Gwy(ω) / (1 - Guy(ω) H_1(ω))
    Swz_1(ω) = Gwz(ω) + Guz(ω) H_1(ω) Swy_1(ω)

Every higher harmonic re-enters the loop through the base-linear system:

    D_n(ω)   = H_n(ω) Swy_1(ω) exp(j(n-1)∠Swy_1(ω)) / (1 - Guy(nω) R_bl(nω))
    Swy_n(ω) = Guy(nω) D_n(ω)
    Swz_n(ω) = Guz(nω) D_n(ω)

Harmonic nω must lie on the grid, so Swz_n/Swy_n exist only at input indices k
(0-based) with n (k+1) <= M.

Stage C - time-domain reconstruction over one input period, assuming a
unit-amplitude, zero-phase input:

    z(t) = Σ_{n=1}^{n_max} |Swz_n| sin(nωt + ∠Swz_n)
    |S∞(ω)| = max_t |z(t)|

with n_max(k) = min(N, floor(M/(k+1))) and samples_per_highest_harmonic·n_max
equally spaced instants.

Frequency Grid
--------------
freqs must be linearly spaced with freqs[k] = (k+1) freqs[0]. The harmonic of
order n of input index k then sits at index n (k+1) - 1.

References
----------
[1] L.F. van Eijk, D. Kostić, S.H. HosseinNia, "Frequency Response Analysis
    of Lure-Type Reset Control Systems", IEEE Control Systems Letters.
"""

import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from ...control_design.system_models import ResetElementModel
from ..errors import InvalidInputError
from ..validation import (
    validate_frequency_grid,
    validate_frf,
    validate_positive_integer,
)
from .lure_converter import LureFRFs
from .reset_hosidf import compute_reset_hosidfs


def harmonic_index(n: int, k: int) -> int:
    """Grid index of the n-th harmonic of input index k (0-based)."""
    return n * (k + 1) - 1


class HarmonicResponse:
    """
    Sparse HOSISF map keyed by (harmonic order n, input-frequency index k).

    Only pairs whose harmonic lies on the grid (n (k+1) <= M) and whose order
    does not exceed the harmonic cap are stored. Order n holds a contiguous
    block of floor(M/n) entries, so the map is stored order by order.

    Parameters
    ----------
    n_freqs : int
        Number of grid frequencies M
    orders : Dict[int, np.ndarray]
        Order n -> complex values for k = 0..floor(M/n)-1
    """

    def __init__(self, n_freqs: int, orders: Mapping[int, np.ndarray]):
        self.n_freqs = n_freqs
        self._orders: Dict[int, np.ndarray] = {}
        for n, values in sorted(orders.items()):
            arr = np.array(values, dtype=complex).reshape(-1)
            if arr.size != n_freqs // n:
                raise InvalidInputError(
                    f"Order {n} must hold {n_freqs // n} entries, got {arr.size}"
                )
            arr.setflags(write=False)
            self._orders[n] = arr

    @property
    def n_orders(self) -> int:
        """Highest stored harmonic order."""
        return max(self._orders) if self._orders else 0

    def __getitem__(self, key: Tuple[int, int]) -> complex:
        n, k = key
        values = self._orders.get(n)
        if values is None or not 0 <= k < values.size:
            raise KeyError(key)
        return complex(values[k])

    def get(self, key: Tuple[int, int], default=None):
        try:
            return self[key]
        except KeyError:
            return default

    def __contains__(self, key) -> bool:
        try:
            self[key]
        except (KeyError, TypeError, ValueError):
            return False
        return True

    def __len__(self) -> int:
        return sum(values.size for values in self._orders.values())

    def __iter__(self) -> Iterator[Tuple[int, int]]:
        for n, values in self._orders.items():
            for k in range(values.size):
                yield (n, k)

    def items(self) -> Iterator[Tuple[Tuple[int, int], complex]]:
        for n, values in self._orders.items():
            for k, value in enumerate(values):
                yield (n, k), complex(value)

    def order(self, n: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        All entries of harmonic order n.

        Returns
        -------
        Tuple[np.ndarray, np.ndarray]
            (input-frequency indices k, complex values)
        """
        values = self._orders.get(n)
        if values is None:
            raise KeyError(n)
        return np.arange(values.size), values

    def at_frequency(self, k: int) -> np.ndarray:
        """Values of orders 1..n_max(k) at input index k (ascending order)."""
        return np.array([
            values[k] for n, values in self._orders.items() if k < values.size
        ], dtype=complex)

    def dense(self) -> np.ndarray:
        """
        Rectangular (n_orders x M) array; unset entries hold NaN.

        Row n-1 holds order n.
        """
        table = np.full((self.n_orders, self.n_freqs), np.nan, dtype=complex)
        for n, values in self._orders.items():
            table[n - 1, :values.size] = values
        return table

    def __repr__(self) -> str:
        return f"HarmonicResponse(n_orders={self.n_orders}, n_freqs={self.n_freqs}, entries={len(self)})"


@dataclass
class PseudoSensitivityConfig:
    """
    Configuration for the pseudo-sensitivity engine.

    Attributes
    ----------
    max_harmonic_order : int, optional
        Largest HOSIDF order taken into account. None uses as many as the grid
        supports (M); larger values are clamped to M.
    samples_per_highest_harmonic : int
        Time instants per period of the highest harmonic used in the peak
        search. Higher is more accurate and proportionally slower.
    compute_reset_input : bool
        Also reconstruct the reset-element input y(t) and its peak
    check_harmonic_grid : bool
        Reject grids that violate freqs[k] = (k+1) freqs[0]
    parallel : bool
        Distribute per-frequency work over a thread pool
    max_workers : int, optional
        Thread pool size (None lets the executor decide)
    warn_on_resonance : bool
        Warn when the closed-loop recursion hits a zero denominator
    verbose : bool
        Print stage summaries
    """
    max_harmonic_order: Optional[int] = None
    samples_per_highest_harmonic: int = 100
    compute_reset_input: bool = False
    check_harmonic_grid: bool = True
    parallel: bool = False
    max_workers: Optional[int] = None
    warn_on_resonance: bool = True
    verbose: bool = False

    def resolve(self, n_freqs: int) -> Tuple[int, int]:
        """
        Resolve the configuration against a grid of ``n_freqs`` points.

        Returns
        -------
        Tuple[int, int]
            (harmonic cap N, samples per highest harmonic)
        """
        if self.max_harmonic_order is None:
            n_orders = n_freqs
        else:
            n_orders = min(
                validate_positive_integer(self.max_harmonic_order, "max_harmonic_order"),
                n_freqs,
            )
        samples = validate_positive_integer(
            self.samples_per_highest_harmonic, "samples_per_highest_harmonic"
        )
        if self.max_workers is not None:
            validate_positive_integer(self.max_workers, "max_workers")
        return n_orders, samples


@dataclass
class PseudoSensitivityResult:
    """
    Output of one pseudo-sensitivity computation.

    Attributes
    ----------
    frequencies_hz : np.ndarray
        Input frequency grid [Hz]
    abs_sinf : np.ndarray
        Pseudo-sensitivity magnitude |S∞| per input frequency
    swz : HarmonicResponse
        HOSISFs from w to z
    swy : HarmonicResponse
        HOSISFs from w to y
    hosidfs : np.ndarray
        Reset-element HOSIDFs, shape (N, M); row n-1 holds H_n
    base_linear_frf : np.ndarray
        FRF of the reset element's base-linear system
    lure_frfs : LureFRFs
        Lure-form FRFs used
    max_harmonic_order : int
        Resolved harmonic cap N
    samples_per_highest_harmonic : int
        Resolved sampling density of the reconstruction
    abs_sy_inf : np.ndarray, optional
        Peak of the reconstructed reset-element input per input frequency
    resonant_indices : np.ndarray
        Input indices where the closed-loop recursion hit a zero denominator
    metadata : Dict
        Additional analysis metadata
    """
    frequencies_hz: np.ndarray
    abs_sinf: np.ndarray
    swz: HarmonicResponse
    swy: HarmonicResponse
    hosidfs: np.ndarray
    base_linear_frf: np.ndarray
    lure_frfs: LureFRFs
    max_harmonic_order: int
    samples_per_highest_harmonic: int
    abs_sy_inf: Optional[np.ndarray] = None
    resonant_indices: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=int))
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __iter__(self):
        """Unpack as (abs_sinf, swz, swy)."""
        return iter((self.abs_sinf, self.swz, self.swy))

    @property
    def n_freqs(self) -> int:
        return self.frequencies_hz.size

    @property
    def abs_sinf_db(self) -> np.ndarray:
        """|S∞| in dB."""
        with np.errstate(divide="ignore"):
            return 20 * np.log10(self.abs_sinf)

    def n_max(self, k: int) -> int:
        """Largest harmonic order used at input index k."""
        return min(self.max_harmonic_order, self.n_freqs // (k + 1))

    def time_response(
        self,
        k: int,
        signal: str = "z",
        samples_per_highest_harmonic: Optional[int] = None
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Reconstruct one period of z(t) (or y(t)) for input index k.

        Parameters
        ----------
        k : int
            Input-frequency index (0-based)
        signal : str
            'z' (performance output) or 'y' (reset-element input)
        samples_per_highest_harmonic : int, optional
            Sampling density; defaults to the one used in the computation

        Returns
        -------
        Tuple[np.ndarray, np.ndarray]
            (time [s], signal)
        """
        if signal not in ("z", "y"):
            raise InvalidInputError(f"signal must be 'z' or 'y', got {signal!r}")
        if not 0 <= k < self.n_freqs:
            raise InvalidInputError(f"k must lie in [0, {self.n_freqs - 1}], got {k}")
        samples = self.samples_per_highest_harmonic if samples_per_highest_harmonic is None \
            else validate_positive_integer(samples_per_highest_harmonic, "samples_per_highest_harmonic")
        response = self.swz if signal == "z" else self.swy
        return reconstruct_period(
            response.at_frequency(k)[:self.n_max(k)],
            self.frequencies_hz[k],
            samples,
        )

    def summary(self) -> Dict[str, float]:
        """Peak pseudo-sensitivity and where it occurs."""
        finite = np.isfinite(self.abs_sinf)
        if not np.any(finite):
            return {'peak_abs_sinf': np.inf, 'peak_abs_sinf_db': np.inf,
                    'peak_frequency_hz': np.nan, 'n_resonant': int(self.resonant_indices.size)}
        idx = int(np.nanargmax(np.where(finite, self.abs_sinf, np.nan)))
        return {
            'peak_abs_sinf': float(self.abs_sinf[idx]),
            'peak_abs_sinf_db': float(20 * np.log10(self.abs_sinf[idx] + 1e-300)),
            'peak_frequency_hz': float(self.frequencies_hz[idx]),
            'n_resonant': int(self.resonant_indices.size),
        }

    def to_dataframe(self) -> pd.DataFrame:
        """
        Tabulate the result, one row per input frequency.

        Columns: frequency_hz, abs_sinf, abs_sinf_db, n_max, and magnitude and
        phase of the fundamental HOSISFs (plus abs_sy_inf when available).
        """
        swz1 = self.swz.order(1)[1]
        swy1 = self.swy.order(1)[1]
        data = {
            'frequency_hz': self.frequencies_hz,
            'abs_sinf': self.abs_sinf,
            'abs_sinf_db': self.abs_sinf_db,
            'n_max': [self.n_max(k) for k in range(self.n_freqs)],
            'swz1_mag': np.abs(swz1),
            'swz1_phase_deg': np.rad2deg(np.angle(swz1)),
            'swy1_mag': np.abs(swy1),
            'swy1_phase_deg': np.rad2deg(np.angle(swy1)),
        }
        if self.abs_sy_inf is not None:
            data['abs_sy_inf'] = self.abs_sy_inf
        return pd.DataFrame(data)


def reconstruct_period(
    harmonics: np.ndarray,
    freq_hz: float,
    samples_per_highest_harmonic: int
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Superpose harmonics over one period of the input.

    x(t) = Σ_n |X_n| sin(nωt + ∠X_n), n = 1..len(harmonics), sampled at
    t_s = T s / S, s = 0..S-1 with S = samples_per_highest_harmonic·len(harmonics).

    Returns
    -------
    Tuple[np.ndarray, np.ndarray]
        (time [s], signal)
    """
    n_max = len(harmonics)
    n_samples = samples_per_highest_harmonic * n_max
    period = 1.0 / freq_hz
    omega = 2 * np.pi * freq_hz
    time = period * np.arange(n_samples) / n_samples

    output = np.zeros(n_samples)
    with np.errstate(invalid="ignore", over="ignore"):
        for n, value in enumerate(harmonics, start=1):
            output = output + np.abs(value) * np.sin(n * omega * time + np.angle(value))
    return time, output


def _peak(signal: np.ndarray) -> float:
    # inf * sin(0) yields NaN; NaN samples are skipped unless all are NaN
    magnitude = np.abs(signal)
    if magnitude.size == 0 or np.all(np.isnan(magnitude)):
        return np.nan
    return float(np.nanmax(magnitude))


class PseudoSensitivityEngine:
    """
    HOSISF and pseudo-sensitivity computation for Lure-type reset systems.

    Example Usage
    -------------
    >>> freqs = np.arange(1, 201) * 0.5               # harmonic grid [Hz]
    >>> reset = ResetElementModel(A_R=-2*np.pi*10, B_R=1.0, C_R=2*np.pi*10, A_rho=0.0)
    >>> frfs = convert_to_lure(c1, c2, c3, c4, c5, plant)
    >>> engine = PseudoSensitivityEngine(PseudoSensitivityConfig(max_harmonic_order=21))
    >>> result = engine.compute(freqs, reset, frfs)
    >>> result.abs_sinf                               # |S∞| per frequency

    Parameters
    ----------
    config : PseudoSensitivityConfig, optional
        Engine configuration
    """

    def __init__(self, config: Optional[PseudoSensitivityConfig] = None):
        self.config = config or PseudoSensitivityConfig()

    def compute(
        self,
        freqs,
        reset_model: Union[ResetElementModel, Mapping[str, Any]],
        lure_frfs: LureFRFs,
        A_rho=None
    ) -> PseudoSensitivityResult:
        """
        Run Stages A-C.

        Parameters
        ----------
        freqs : array_like
            Harmonic frequency grid [Hz]
        reset_model : ResetElementModel or Mapping
            Reset element; a mapping needs keys 'A_R', 'B_R', 'C_R'.
            Its feedthrough D_R is not used (see Stage A)
        lure_frfs : LureFRFs or 4-sequence
            (gwz, guz, gwy, guy) sampled on ``freqs``
        A_rho : array_like, optional
            Reset matrix overriding the model's

        Returns
        -------
        PseudoSensitivityResult

        Raises
        ------
        InvalidInputError
            Invalid grid, FRF lengths or configuration (before any numerics)
        NumericalSingularityError
            Singular matrix in the HOSIDF evaluation
        """
        freqs = validate_frequency_grid(freqs, check_harmonic=self.config.check_harmonic_grid)
        n_freqs = freqs.size
        n_orders, samples = self.config.resolve(n_freqs)
        model = self._resolve_model(reset_model, A_rho)
        frfs = self._resolve_frfs(lure_frfs, n_freqs)

        if self.config.verbose:
            print(f"\n{'='*70}")
            print("PSEUDO-SENSITIVITY ANALYSIS")
            print(f"{'='*70}")
            print(f"Frequency Range: {freqs[0]:.4g} Hz to {freqs[-1]:.4g} Hz ({n_freqs} points)")
            print(f"Harmonic Orders: 1..{n_orders}")
            print(f"Samples per Highest Harmonic: {samples}")
            print(f"Reset Element: {model.name or 'unnamed'} ({model.n_states} states)")

        # pool lives for this call only
        if self.config.parallel:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                return self._run(freqs, model, frfs, n_orders, samples, executor.map)
        return self._run(freqs, model, frfs, n_orders, samples, map)

    def _run(
        self,
        freqs: np.ndarray,
        model: ResetElementModel,
        frfs: LureFRFs,
        n_orders: int,
        samples: int,
        mapper: Callable[[Callable, Iterable], Iterable]
    ) -> PseudoSensitivityResult:
        # Stage A, without feedthrough
        element = replace(model, D_R=0.0)
        hosidfs = compute_reset_hosidfs(element, freqs, n_orders, mapper=mapper)
        base_linear_frf = compute_reset_hosidfs(element.base_linear(), freqs, 1, mapper=mapper)[0]
        if self.config.verbose:
            print(f"[A] HOSIDFs computed: {n_orders} orders x {freqs.size} frequencies")

        # Stage B
        swz, swy, resonant = self._compute_hosisfs(hosidfs, base_linear_frf, frfs)
        if self.config.verbose:
            print(f"[B] HOSISFs computed: {len(swz)} harmonic/frequency pairs")

        # Stage C
        abs_sinf = self._compute_peaks(freqs, swz, n_orders, samples, mapper)
        abs_sy_inf = None
        if self.config.compute_reset_input:
            abs_sy_inf = self._compute_peaks(freqs, swy, n_orders, samples, mapper)

        result = PseudoSensitivityResult(
            frequencies_hz=freqs,
            abs_sinf=abs_sinf,
            swz=swz,
            swy=swy,
            hosidfs=hosidfs,
            base_linear_frf=base_linear_frf,
            lure_frfs=frfs,
            max_harmonic_order=n_orders,
            samples_per_highest_harmonic=samples,
            abs_sy_inf=abs_sy_inf,
            resonant_indices=resonant,
            metadata={
                'n_freqs': freqs.size,
                'f_min': float(freqs[0]),
                'f_max': float(freqs[-1]),
                'reset_element': model.name,
                'n_states': model.n_states,
                'parallel': self.config.parallel,
            }
        )

        if self.config.verbose:
            summary = result.summary()
            print(f"[C] Peak |S∞| = {summary['peak_abs_sinf_db']:.2f} dB "
                  f"at {summary['peak_frequency_hz']:.4g} Hz")
            print(f"{'='*70}\n")
        return result

    def _compute_hosisfs(
        self,
        hosidfs: np.ndarray,
        base_linear_frf: np.ndarray,
        frfs: LureFRFs
    ) -> Tuple[HarmonicResponse, HarmonicResponse, np.ndarray]:
        """
        Stage B: closed-loop HOSISFs.

        Order 1 is completed for every frequency before any higher order,
        because orders n > 1 read Swy_1.
        """
        n_orders, n_freqs = hosidfs.shape
        gwz, guz, gwy, guy = frfs

        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            denominator = 1 - guy * hosidfs[0]
            swy1 = gwy / denominator
            swz1 = gwz + guz * hosidfs[0] * swy1

            swz_orders = {1: swz1}
            swy_orders = {1: swy1}
            resonant = set(np.flatnonzero(denominator == 0).tolist())

            for n in range(2, n_orders + 1):
                omega_idxs = np.arange(n_freqs // n)
                nn_idxs = n * (omega_idxs + 1) - 1

                loop_denominator = 1 - guy[nn_idxs] * base_linear_frf[nn_idxs]
                resonant.update(omega_idxs[loop_denominator == 0].tolist())

                dummy = hosidfs[n - 1, omega_idxs] * swy1[omega_idxs] \
                    * np.exp(1j * (n - 1) * np.angle(swy1[omega_idxs])) / loop_denominator
                swy_orders[n] = guy[nn_idxs] * dummy
                swz_orders[n] = guz[nn_idxs] * dummy

        resonant_indices = np.array(sorted(resonant), dtype=int)
        if resonant_indices.size and self.config.warn_on_resonance:
            warnings.warn(
                "Closed-loop recursion denominator is zero at input frequency indices "
                f"{resonant_indices.tolist()}; HOSISFs are unbounded there",
                RuntimeWarning,
                stacklevel=3,
            )

        return (
            HarmonicResponse(n_freqs, swz_orders),
            HarmonicResponse(n_freqs, swy_orders),
            resonant_indices,
        )

    def _compute_peaks(
        self,
        freqs: np.ndarray,
        response: HarmonicResponse,
        n_orders: int,
        samples: int,
        mapper: Callable[[Callable, Iterable], Iterable] = map
    ) -> np.ndarray:
        """Stage C: peak of the reconstructed periodic signal per input frequency."""
        n_freqs = freqs.size

        def peak_at(k):
            n_max = min(n_orders, n_freqs // (k + 1))
            harmonics = response.at_frequency(k)[:n_max]
            _, signal = reconstruct_period(harmonics, freqs[k], samples)
            return _peak(signal)

        return np.array(list(mapper(peak_at, range(n_freqs))), dtype=float)

    @staticmethod
    def _resolve_model(reset_model, A_rho) -> ResetElementModel:
        if isinstance(reset_model, ResetElementModel):
            return reset_model if A_rho is None else reset_model.with_reset_matrix(A_rho)
        if isinstance(reset_model, Mapping):
            return ResetElementModel.from_mapping(reset_model, A_rho=A_rho)
        raise InvalidInputError(
            f"reset_model must be a ResetElementModel or a mapping, got {type(reset_model).__name__}"
        )

    @staticmethod
    def _resolve_frfs(lure_frfs, n_freqs: int) -> LureFRFs:
        try:
            gwz, guz, gwy, guy = lure_frfs
        except (TypeError, ValueError) as e:
            raise InvalidInputError("lure_frfs must hold exactly four FRFs (gwz, guz, gwy, guy)") from e
        return LureFRFs(
            gwz=validate_frf(gwz, n_freqs, "gwz"),
            guz=validate_frf(guz, n_freqs, "guz"),
            gwy=validate_frf(gwy, n_freqs, "gwy"),
            guy=validate_frf(guy, n_freqs, "guy"),
        )


def compute_pseudo_sensitivity(
    freqs,
    reset_model: Union[ResetElementModel, Mapping[str, Any]],
    A_rho,
    frf_gwz,
    frf_guz,
    frf_gwy,
    frf_guy,
    max_harmonic_order: Optional[int] = None,
    samples_per_highest_harmonic: int = 100
) -> Tuple[np.ndarray, HarmonicResponse, HarmonicResponse]:
    """
    Pseudo-sensitivity of a Lure-type reset control system.

    Parameters
    ----------
    freqs : array_like
        Harmonic frequency grid [Hz], freqs[k] = (k+1) freqs[0]
    reset_model : ResetElementModel or Mapping
        Reset element (mapping keys 'A_R', 'B_R', 'C_R'); D_R is not used
    A_rho : array_like
        Reset matrix
    frf_gwz, frf_guz, frf_gwy, frf_guy : array_like
        Lure-form FRFs on ``freqs``
    max_harmonic_order : int, optional
        Harmonic cap (default: number of frequencies)
    samples_per_highest_harmonic : int
        Reconstruction density (default 100)

    Returns
    -------
    Tuple[np.ndarray, HarmonicResponse, HarmonicResponse]
        (abs_sinf, swz, swy)
    """
    config = PseudoSensitivityConfig(
        max_harmonic_order=max_harmonic_order,
        samples_per_highest_harmonic=samples_per_highest_harmonic,
    )
    result = PseudoSensitivityEngine(config).compute(
        freqs,
        reset_model,
        LureFRFs(frf_gwz, frf_guz, frf_gwy, frf_guy),
        A_rho=A_rho,
    )
    return result.abs_sinf, result.swz, result.swy
