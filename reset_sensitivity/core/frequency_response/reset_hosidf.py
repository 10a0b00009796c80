"""
Higher-Order Sinusoidal-Input Describing Functions of Reset Elements

For a reset element (A_R, B_R, C_R, D_R, A_rho) driven by a sinusoid of
angular frequency ω, the steady-state output contains odd harmonics only.
The n-th order HOSIDF is [1, Theorem 3.1] (with the corrigendum for n > 1):

    H_1(ω) = C_R (jωI - A_R)^-1 (I + jΘ_D(ω)) B_R + D_R
    H_n(ω) = C_R (jnωI - A_R)^-1 jΘ_D(ω) B_R          n odd, n > 1
    H_n(ω) = 0                                         n even

with

    Λ   = ω²I + A_R²
    Δ   = I + exp(πA_R/ω)
    Δ_r = I + A_rho exp(πA_R/ω)
    Γ_r = Δ_r^-1 A_rho Δ Λ^-1
    Θ_D = -(2ω²/π) Δ (Γ_r - Λ^-1)

For A_rho = I, Γ_r = Λ^-1 and Θ_D vanishes: H_1 reduces to the base-linear
FRF and every higher harmonic is zero.

The matrix exponential is evaluated with scipy.linalg.expm (Padé
approximation with scaling and squaring). Inverses are applied through
linear solves; a singular matrix raises NumericalSingularityError.

References
----------
[1] N. Saikumar, K. Heinen, S.H. HosseinNia, "Loop-shaping for reset control
    systems: a higher-order sinusoidal-input describing functions approach",
    Control Engineering Practice, 2021.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

import numpy as np
from scipy import linalg

from ...control_design.system_models import ResetElementModel
from ..errors import NumericalSingularityError
from ..validation import validate_frequencies, validate_harmonic_order


@dataclass(frozen=True, eq=False)
class DescribingMatrices:
    """
    Frequency-dependent matrices of the reset describing function.

    Attributes
    ----------
    omega : float
        Angular frequency [rad/s]
    Lambda : np.ndarray
        ω²I + A_R²
    Delta : np.ndarray
        I + exp(πA_R/ω)
    Delta_r : np.ndarray
        I + A_rho exp(πA_R/ω)
    Gamma_r : np.ndarray
        Δ_r^-1 A_rho Δ Λ^-1
    Theta_D : np.ndarray
        -(2ω²/π) Δ (Γ_r - Λ^-1)
    """
    omega: float
    Lambda: np.ndarray
    Delta: np.ndarray
    Delta_r: np.ndarray
    Gamma_r: np.ndarray
    Theta_D: np.ndarray


def _solve(a: np.ndarray, b: np.ndarray, what: str, frequency_hz: float,
           order: Optional[int] = None) -> np.ndarray:
    try:
        return linalg.solve(a, b)
    except np.linalg.LinAlgError as e:
        raise NumericalSingularityError(
            f"{what} is singular", frequency_hz=frequency_hz, order=order
        ) from e


def reset_describing_matrices(A_R, A_rho, omega: float) -> DescribingMatrices:
    """
    Compute Λ, Δ, Δ_r, Γ_r and Θ_D at one angular frequency.

    Parameters
    ----------
    A_R : np.ndarray
        Reset element state matrix
    A_rho : np.ndarray
        Reset matrix
    omega : float
        Angular frequency [rad/s], strictly positive

    Returns
    -------
    DescribingMatrices
    """
    A_R = np.atleast_2d(np.asarray(A_R, dtype=float))
    A_rho = np.asarray(A_rho, dtype=float)
    I = np.eye(A_R.shape[0])
    if A_rho.ndim == 0:
        A_rho = A_rho * I
    f_hz = omega / (2 * np.pi)

    Lambda = omega**2 * I + A_R @ A_R
    exp_half_period = linalg.expm(np.pi * A_R / omega)
    if not np.all(np.isfinite(exp_half_period)):
        raise NumericalSingularityError(
            "Matrix exponential exp(pi*A_R/omega) overflowed", frequency_hz=f_hz
        )
    Delta = I + exp_half_period
    Delta_r = I + A_rho @ exp_half_period

    Lambda_inv = _solve(Lambda, I, "Lambda = omega^2 I + A_R^2", f_hz)
    Gamma_r = _solve(Delta_r, A_rho @ Delta @ Lambda_inv,
                     "Delta_r = I + A_rho exp(pi A_R/omega)", f_hz)
    Theta_D = -2 * omega**2 / np.pi * Delta @ (Gamma_r - Lambda_inv)

    return DescribingMatrices(
        omega=omega,
        Lambda=Lambda,
        Delta=Delta,
        Delta_r=Delta_r,
        Gamma_r=Gamma_r,
        Theta_D=Theta_D,
    )


def hosidf_orders_at_frequency(
    A_R, B_R, C_R, D_R, A_rho,
    freq_hz: float,
    orders: Sequence[int]
) -> np.ndarray:
    """
    Evaluate several HOSIDF orders at a single frequency.

    Θ_D is computed once and shared by all odd orders.

    Returns
    -------
    np.ndarray
        Complex values, one per entry of ``orders``
    """
    A_R = np.atleast_2d(np.asarray(A_R, dtype=float))
    B_R = np.asarray(B_R, dtype=float).reshape(-1, 1)
    C_R = np.asarray(C_R, dtype=float).reshape(1, -1)
    D_R = float(np.asarray(D_R, dtype=float).reshape(-1)[0])
    I = np.eye(A_R.shape[0])

    values = np.zeros(len(orders), dtype=complex)
    if all(n % 2 == 0 for n in orders):
        return values

    omega = 2 * np.pi * freq_hz
    matrices = reset_describing_matrices(A_R, A_rho, omega)
    jTheta_B = 1j * matrices.Theta_D @ B_R

    for idx, n in enumerate(orders):
        if n % 2 == 0:
            continue
        resolvent_arg = 1j * n * omega * I - A_R
        if n == 1:
            rhs = B_R + jTheta_B
            x = _solve(resolvent_arg, rhs, "j*omega*I - A_R", freq_hz, n)
            values[idx] = (C_R @ x).item() + D_R
        else:
            x = _solve(resolvent_arg, jTheta_B, "j*n*omega*I - A_R", freq_hz, n)
            values[idx] = (C_R @ x).item()
    return values


def compute_reset_hosidf(A_R, B_R, C_R, D_R, A_rho, freqs, n) -> np.ndarray:
    """
    Compute the n-th order HOSIDF of a reset element.

    Parameters
    ----------
    A_R, B_R, C_R, D_R : array_like
        State-space matrices of the reset element
    A_rho : array_like
        Reset matrix (scalar a is read as a*I)
    freqs : array_like
        Frequencies [Hz], strictly positive
    n : int
        HOSIDF order (natural number)

    Returns
    -------
    np.ndarray
        Complex HOSIDF values, one per frequency

    Raises
    ------
    InvalidInputError
        Non-positive frequency or invalid order
    NumericalSingularityError
        Required inverse does not exist at some frequency
    """
    freqs = validate_frequencies(freqs)
    n = validate_harmonic_order(n)

    if n % 2 == 0:
        return np.zeros(freqs.size, dtype=complex)

    return np.array([
        hosidf_orders_at_frequency(A_R, B_R, C_R, D_R, A_rho, f, (n,))[0]
        for f in freqs
    ])


def compute_reset_hosidfs(
    model: ResetElementModel,
    freqs,
    n_orders: int,
    mapper: Callable[[Callable, Iterable], Iterable] = map
) -> np.ndarray:
    """
    Compute HOSIDF orders 1..n_orders on a frequency grid.

    Parameters
    ----------
    model : ResetElementModel
        Reset element
    freqs : array_like
        Frequencies [Hz]
    n_orders : int
        Highest order to evaluate
    mapper : callable
        ``map``-like callable used to distribute the per-frequency work
        (e.g. ``ThreadPoolExecutor.map``)

    Returns
    -------
    np.ndarray
        Complex array of shape (n_orders, len(freqs)); row n-1 holds H_n
    """
    freqs = validate_frequencies(freqs)
    n_orders = validate_harmonic_order(n_orders)
    orders = tuple(range(1, n_orders + 1))

    def evaluate(f_hz):
        return hosidf_orders_at_frequency(
            model.A_R, model.B_R, model.C_R, model.D_R, model.A_rho, f_hz, orders
        )

    columns = list(mapper(evaluate, freqs))
    return np.column_stack(columns) if columns else np.zeros((n_orders, 0), dtype=complex)


class ResetHOSIDF:
    """
    HOSIDF evaluator bound to one reset element.

    Example Usage
    -------------
    >>> clegg = ResetElementModel(A_R=0.0, B_R=1.0, C_R=1.0, A_rho=0.0)
    >>> hosidf = ResetHOSIDF(clegg)
    >>> H1 = hosidf.evaluate([1.0, 2.0, 3.0], n=1)
    >>> H = hosidf.evaluate_orders([1.0, 2.0, 3.0], n_orders=3)  # (3, 3)

    Parameters
    ----------
    model : ResetElementModel
        Reset element realization
    """

    def __init__(self, model: ResetElementModel):
        self.model = model

    def evaluate(self, freqs, n: int = 1) -> np.ndarray:
        """n-th order HOSIDF at ``freqs``."""
        m = self.model
        return compute_reset_hosidf(m.A_R, m.B_R, m.C_R, m.D_R, m.A_rho, freqs, n)

    def evaluate_orders(self, freqs, n_orders: int, mapper=map) -> np.ndarray:
        """Orders 1..n_orders at ``freqs``, shape (n_orders, len(freqs))."""
        return compute_reset_hosidfs(self.model, freqs, n_orders, mapper)

    def base_linear_frf(self, freqs) -> np.ndarray:
        """First-order HOSIDF of the base-linear system (A_rho = I)."""
        m = self.model
        return compute_reset_hosidf(
            m.A_R, m.B_R, m.C_R, m.D_R, np.eye(m.n_states), freqs, 1
        )
