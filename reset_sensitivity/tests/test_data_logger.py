"""
Tests for the pseudo-sensitivity data logger.
"""

import json

import numpy as np
import pandas as pd
import pytest

from reset_sensitivity.control_design import ResetElementModel
from reset_sensitivity.core.frequency_response import (
    LoggerConfig,
    LureFRFs,
    PseudoSensitivityConfig,
    PseudoSensitivityEngine,
    PseudoSensitivityLogger,
)
from reset_sensitivity.core.frequency_response.data_logger import (
    NumpyEncoder,
    complex_to_pairs,
    pairs_to_complex,
)


@pytest.fixture
def engine():
    return PseudoSensitivityEngine(
        PseudoSensitivityConfig(max_harmonic_order=5, samples_per_highest_harmonic=40,
                                compute_reset_input=True)
    )


@pytest.fixture
def result(engine):
    freqs = np.arange(1, 13) * 2.0
    clegg = ResetElementModel(A_R=0.0, B_R=1.0, C_R=2 * np.pi * 5.0, A_rho=0.0, name="CI")
    plant = 1 / (1 + 2j * np.pi * freqs / 20)
    frfs = LureFRFs(np.ones(12), -plant, np.ones(12), -plant)
    return engine.compute(freqs, clegg, frfs)


@pytest.fixture
def logger(tmp_path, engine, result):
    config = LoggerConfig(output_dir=tmp_path / 'data', base_filename='test')
    logger = PseudoSensitivityLogger(config)
    logger.add_result('CI_loop', result)
    logger.set_engine_config(engine.config)
    logger.add_metadata('operator', 'unit-test')
    return logger


class TestComplexSerialization:
    """Tests for the [re, im] pair encoding."""

    def test_nan_becomes_null(self):
        pairs = complex_to_pairs(np.array([1 + 2j, np.nan]))
        assert pairs == [[1.0, 2.0], None]
        restored = pairs_to_complex(pairs)
        assert restored[0] == 1 + 2j
        assert np.isnan(restored[1])

    def test_encoder_handles_numpy_types(self):
        payload = {'a': np.int64(3), 'b': np.float32(0.5), 'c': np.array([1j]), 'd': np.bool_(True)}
        decoded = json.loads(json.dumps(payload, cls=NumpyEncoder))
        assert decoded == {'a': 3, 'b': 0.5, 'c': [[0.0, 1.0]], 'd': True}


class TestPseudoSensitivityLogger:
    """Tests for saving, loading and verifying results."""

    def test_save_creates_files(self, logger):
        paths = logger.save()
        assert paths['json'].exists()
        assert paths['json'].suffix == '.json'
        assert len(paths['csv']) == 1
        assert paths['csv'][0].name.endswith('_CI_loop.csv')

    def test_suffix(self, logger):
        paths = logger.save(suffix='run1')
        assert paths['json'].stem.endswith('_run1')

    def test_json_content(self, logger, result):
        data = PseudoSensitivityLogger.load_json(logger.save()['json'])

        metadata = data['metadata']
        assert metadata['version'] == '1.0.0'
        assert metadata['engine_config']['max_harmonic_order'] == 5
        assert metadata['custom'] == {'operator': 'unit-test'}
        assert 'CI_loop' in metadata['checksums']

        entry = data['results']['CI_loop']
        np.testing.assert_allclose(entry['frequencies_hz'], result.frequencies_hz)
        np.testing.assert_allclose(entry['abs_sinf'], result.abs_sinf)
        np.testing.assert_allclose(entry['abs_sy_inf'], result.abs_sy_inf)
        assert entry['max_harmonic_order'] == 5
        assert entry['samples_per_highest_harmonic'] == 40
        assert entry['metrics']['peak_abs_sinf'] == pytest.approx(np.max(result.abs_sinf))

    def test_harmonic_response_round_trip(self, logger, result):
        data = PseudoSensitivityLogger.load_json(logger.save()['json'])
        entry = data['results']['CI_loop']

        swz = PseudoSensitivityLogger.load_harmonic_response(entry, 'swz')
        swy = PseudoSensitivityLogger.load_harmonic_response(entry, 'swy')
        assert len(swz) == len(result.swz)
        np.testing.assert_allclose(swz.dense(), result.swz.dense())
        np.testing.assert_allclose(swy.dense(), result.swy.dense())

    def test_csv_matches_dataframe(self, logger, result):
        csv_path = logger.save()['csv'][0]
        frame = pd.read_csv(csv_path)
        expected = result.to_dataframe()
        assert list(frame.columns) == list(expected.columns)
        np.testing.assert_allclose(frame['abs_sinf'], expected['abs_sinf'])
        np.testing.assert_array_equal(frame['n_max'], expected['n_max'])

    def test_checksum_verification(self, logger):
        json_path = logger.save()['json']
        assert PseudoSensitivityLogger.verify_checksum(json_path)

        with open(json_path) as f:
            data = json.load(f)
        data['results']['CI_loop']['abs_sinf'][0] *= 2
        with open(json_path, 'w') as f:
            json.dump(data, f)
        assert not PseudoSensitivityLogger.verify_checksum(json_path)

    def test_optional_outputs(self, tmp_path, result):
        config = LoggerConfig(output_dir=tmp_path, save_csv=False,
                              include_hosisfs=False, include_checksums=False)
        logger = PseudoSensitivityLogger(config)
        logger.add_result('CI_loop', result)
        paths = logger.save()

        assert 'csv' not in paths
        data = PseudoSensitivityLogger.load_json(paths['json'])
        assert 'swz' not in data['results']['CI_loop']
        assert 'checksums' not in data['metadata']
        assert PseudoSensitivityLogger.verify_checksum(paths['json'])
