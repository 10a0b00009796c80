"""
Unit tests for the Lure-form conversion.

Test coverage:
- Algebraic identities Gwy = Cpre Gwz and Guy = Cpre Guz
- Explicit closed-loop formulas
- Series reset configuration (no parallel path)
- Input shape handling and length mismatch
- Division by zero propagation
- Conversion from python-control LTI objects
"""

import numpy as np
import pytest
import control as ctrl

from reset_sensitivity.core.errors import InvalidInputError
from reset_sensitivity.core.frequency_response.lure_converter import (
    LureConverter,
    LureFRFs,
    convert_to_lure,
)


def _random_frf(rng, n):
    return rng.normal(size=n) + 1j * rng.normal(size=n)


class TestConvertToLure:
    """Tests for convert_to_lure."""

    @pytest.fixture
    def frfs(self):
        rng = np.random.default_rng(7)
        return [_random_frf(rng, 25) for _ in range(6)]

    def test_algebraic_identities(self, frfs):
        c1, c2, c3, c4, c5, plant = frfs
        gwz, guz, gwy, guy = convert_to_lure(c1, c2, c3, c4, c5, plant)
        cpre = c1 * c2
        np.testing.assert_allclose(gwy, cpre * gwz, rtol=1e-12)
        np.testing.assert_allclose(guy, cpre * guz, rtol=1e-12)

    def test_explicit_formulas(self, frfs):
        c1, c2, c3, c4, c5, plant = frfs
        result = convert_to_lure(c1, c2, c3, c4, c5, plant)

        cpre = c1 * c2
        cpar = c4 / (c2 * c3)
        cpos = c3 * c5
        expected_gwz = 1 / (1 + plant * cpos * cpar * cpre)
        np.testing.assert_allclose(result.gwz, expected_gwz, rtol=1e-12)
        np.testing.assert_allclose(result.guz, -plant * cpos * expected_gwz, rtol=1e-12)

    def test_series_reset_configuration(self):
        """Without a parallel path, Gwz = Gwy = 1 and Guz = Guy = -P."""
        plant = np.array([0.5 - 0.2j, -1.0 + 3.0j, 2.0 + 0.0j])
        ones = np.ones(3)
        result = convert_to_lure(ones, ones, ones, np.zeros(3), ones, plant)
        np.testing.assert_allclose(result.gwz, 1.0)
        np.testing.assert_allclose(result.gwy, 1.0)
        np.testing.assert_allclose(result.guz, -plant)
        np.testing.assert_allclose(result.guy, -plant)

    def test_returns_named_tuple(self, frfs):
        result = convert_to_lure(*frfs)
        assert isinstance(result, LureFRFs)
        assert result.n_freqs == 25
        assert result.is_finite()
        gwz, guz, gwy, guy = result
        assert gwz is result.gwz and guy is result.guy

    def test_column_vectors_are_flattened(self, frfs):
        columns = [frf.reshape(-1, 1) for frf in frfs]
        result = convert_to_lure(*columns)
        expected = convert_to_lure(*frfs)
        for got, want in zip(result, expected):
            assert got.shape == (25,)
            np.testing.assert_allclose(got, want)

    def test_length_mismatch(self, frfs):
        frfs[3] = frfs[3][:-1]
        with pytest.raises(InvalidInputError):
            convert_to_lure(*frfs)

    def test_division_by_zero_propagates(self, frfs):
        c1, c2, c3, c4, c5, plant = frfs
        c2 = c2.copy()
        c2[4] = 0.0
        with pytest.warns(RuntimeWarning):
            result = convert_to_lure(c1, c2, c3, c4, c5, plant)
        assert not result.is_finite()
        others = np.delete(np.arange(25), 4)
        assert np.all(np.isfinite(result.gwz[others]))


class TestLureConverter:
    """Tests for the LTI front end."""

    @pytest.fixture
    def freqs(self):
        return np.arange(1, 41) * 0.5

    def test_from_systems_matches_closed_loop(self, freqs):
        s = ctrl.tf('s')
        plant = 1 / (s + 1)
        gain = 4.0
        result = LureConverter().from_systems(1.0, 1.0, 1.0, gain, 1.0, plant, freqs)

        p = 1 / (1j * 2 * np.pi * freqs + 1)
        np.testing.assert_allclose(result.gwz, 1 / (1 + gain * p), rtol=1e-10)
        np.testing.assert_allclose(result.guz, -p / (1 + gain * p), rtol=1e-10)

    def test_from_systems_equals_convert(self, freqs):
        s = ctrl.tf('s')
        c5 = (s / 20 + 1) / (s / 200 + 1)
        plant = 1 / (s**2 + 2 * s)
        converter = LureConverter()
        from_lti = converter.from_systems(1.0, 2.0, 0.5, 3.0, c5, plant, freqs)

        omega = 2 * np.pi * freqs
        frf_c5 = (1j * omega / 20 + 1) / (1j * omega / 200 + 1)
        frf_plant = 1 / ((1j * omega)**2 + 2j * omega)
        const = np.ones(freqs.size)
        from_arrays = converter.convert(const, 2 * const, 0.5 * const, 3 * const, frf_c5, frf_plant)
        for got, want in zip(from_lti, from_arrays):
            np.testing.assert_allclose(got, want, rtol=1e-9)
