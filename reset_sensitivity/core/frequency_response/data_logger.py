"""
Pseudo-Sensitivity Data Logger

Persistence of pseudo-sensitivity results with reproducibility metadata:

- JSON storage with engine configuration, timestamps and checksums
- Complex values stored as [re, im] pairs; unset HOSISF entries as null
- CSV export (one row per input frequency) for external tools

Data Schema
-----------
{
    "metadata": {
        "timestamp": "2026-10-18T12:00:00",
        "version": "1.0.0",
        "engine_config": { ... },
        "checksums": { ... }
    },
    "results": {
        "CI_loop": {
            "frequencies_hz": [...],
            "abs_sinf": [...],
            "max_harmonic_order": 21,
            "swz": [[[re, im], ..., null], ...],
            "swy": [...],
            "metrics": {"peak_abs_sinf": 1.8, ...}
        },
        ...
    }
}
"""

import csv
import hashlib
import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np

from .pseudo_sensitivity_engine import HarmonicResponse, PseudoSensitivityResult


class NumpyEncoder(json.JSONEncoder):
    """JSON encoder for numpy scalars/arrays; complex numbers become [re, im]."""

    def default(self, obj):
        if isinstance(obj, np.ndarray):
            if np.iscomplexobj(obj):
                return complex_to_pairs(obj)
            return obj.tolist()
        if isinstance(obj, (complex, np.complexfloating)):
            return [float(obj.real), float(obj.imag)]
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, (np.bool_,)):
            return bool(obj)
        if isinstance(obj, Path):
            return str(obj)
        return super().default(obj)


def complex_to_pairs(values: np.ndarray) -> List:
    """Nested list of [re, im] pairs; NaN entries become None."""
    values = np.asarray(values, dtype=complex)
    if values.ndim == 0:
        value = complex(values)
        return None if np.isnan(value) else [value.real, value.imag]
    return [complex_to_pairs(v) for v in values]


def pairs_to_complex(pairs) -> np.ndarray:
    """Inverse of :func:`complex_to_pairs` (None -> NaN)."""
    if pairs is None:
        return np.array(np.nan, dtype=complex)
    if len(pairs) == 2 and all(isinstance(p, (int, float)) for p in pairs):
        return np.array(complex(pairs[0], pairs[1]))
    return np.array([pairs_to_complex(p) for p in pairs], dtype=complex)


def _finite_or_str(value: float):
    return float(value) if np.isfinite(value) else str(value)


@dataclass
class LoggerConfig:
    """
    Configuration for the pseudo-sensitivity data logger.

    Attributes
    ----------
    output_dir : Path
        Directory for saved data files
    base_filename : str
        Base name for output files
    save_json : bool
        Save JSON format
    save_csv : bool
        Save one CSV file per result
    include_hosisfs : bool
        Store the full Swz/Swy tables in JSON
    include_checksums : bool
        Add integrity checksums to metadata
    pretty_print : bool
        Format JSON with indentation
    version : str
        Data format version string
    """
    output_dir: Path = field(default_factory=lambda: Path('pseudo_sensitivity_data'))
    base_filename: str = 'pseudo_sens'
    save_json: bool = True
    save_csv: bool = True
    include_hosisfs: bool = True
    include_checksums: bool = True
    pretty_print: bool = True
    version: str = '1.0.0'


class PseudoSensitivityLogger:
    """
    Data logger for pseudo-sensitivity results.

    Example Usage
    -------------
    >>> logger = PseudoSensitivityLogger(LoggerConfig(output_dir=Path('data')))
    >>> logger.add_result('CI_loop', result)
    >>> logger.set_engine_config(engine.config)
    >>> paths = logger.save()
    >>> PseudoSensitivityLogger.verify_checksum(paths['json'])

    Parameters
    ----------
    config : LoggerConfig, optional
        Logger configuration
    """

    def __init__(self, config: Optional[LoggerConfig] = None):
        self.config = config or LoggerConfig()
        self._results: Dict[str, PseudoSensitivityResult] = {}
        self._engine_config: Optional[Dict] = None
        self._custom_metadata: Dict[str, Any] = {}
        self._start_time = datetime.now()

    def add_result(self, label: str, result: PseudoSensitivityResult) -> None:
        """Register a result under ``label``."""
        self._results[label] = result

    def set_engine_config(self, config: Any) -> None:
        """Record the engine configuration (dataclass or dict)."""
        if hasattr(config, '__dataclass_fields__'):
            self._engine_config = asdict(config)
        elif isinstance(config, dict):
            self._engine_config = config
        else:
            self._engine_config = {'raw': str(config)}

    def add_metadata(self, key: str, value: Any) -> None:
        """Add custom JSON-serializable metadata."""
        self._custom_metadata[key] = value

    def save(self, suffix: Optional[str] = None) -> Dict[str, Any]:
        """
        Write all registered results to disk.

        Parameters
        ----------
        suffix : str, optional
            Optional filename suffix

        Returns
        -------
        Dict[str, Any]
            'json' -> Path and/or 'csv' -> List[Path]
        """
        saved_files: Dict[str, Any] = {}
        self.config.output_dir.mkdir(parents=True, exist_ok=True)

        timestamp = self._start_time.strftime('%Y%m%d_%H%M%S')
        base = f"{self.config.base_filename}_{timestamp}"
        if suffix:
            base = f"{base}_{suffix}"

        if self.config.save_json:
            json_path = self.config.output_dir / f"{base}.json"
            self._save_json(self._build_data_structure(), json_path)
            saved_files['json'] = json_path

        if self.config.save_csv:
            saved_files['csv'] = self._save_csv(base)

        return saved_files

    def _build_data_structure(self) -> Dict[str, Any]:
        return {
            'metadata': self._build_metadata(),
            'results': {
                label: self._serialize_result(result)
                for label, result in self._results.items()
            },
        }

    def _build_metadata(self) -> Dict[str, Any]:
        metadata = {
            'timestamp': self._start_time.isoformat(),
            'version': self.config.version,
        }
        if self._engine_config:
            metadata['engine_config'] = self._engine_config
        if self._custom_metadata:
            metadata['custom'] = self._custom_metadata
        if self.config.include_checksums:
            metadata['checksums'] = {
                label: _checksum(result.frequencies_hz, result.abs_sinf)
                for label, result in self._results.items()
            }
        return metadata

    def _serialize_result(self, result: PseudoSensitivityResult) -> Dict[str, Any]:
        summary = result.summary()
        data = {
            'frequencies_hz': result.frequencies_hz.tolist(),
            'abs_sinf': [_finite_or_str(v) for v in result.abs_sinf],
            'max_harmonic_order': result.max_harmonic_order,
            'samples_per_highest_harmonic': result.samples_per_highest_harmonic,
            'resonant_indices': result.resonant_indices.tolist(),
            'metrics': {key: _finite_or_str(value) for key, value in summary.items()},
            'metadata': result.metadata,
        }
        if result.abs_sy_inf is not None:
            data['abs_sy_inf'] = [_finite_or_str(v) for v in result.abs_sy_inf]
        if self.config.include_hosisfs:
            data['swz'] = complex_to_pairs(result.swz.dense())
            data['swy'] = complex_to_pairs(result.swy.dense())
        return data

    def _save_json(self, data: Dict, filepath: Path) -> None:
        indent = 2 if self.config.pretty_print else None
        with open(filepath, 'w') as f:
            json.dump(data, f, cls=NumpyEncoder, indent=indent)

    def _save_csv(self, base: str) -> List[Path]:
        csv_paths = []
        for label, result in self._results.items():
            filepath = self.config.output_dir / f"{base}_{label}.csv"
            frame = result.to_dataframe()
            with open(filepath, 'w', newline='') as f:
                writer = csv.writer(f)
                writer.writerow(list(frame.columns))
                for row in frame.itertuples(index=False):
                    writer.writerow(list(row))
            csv_paths.append(filepath)
        return csv_paths

    @staticmethod
    def load_json(filepath: Union[str, Path]) -> Dict[str, Any]:
        """Load a saved JSON file."""
        with open(filepath, 'r') as f:
            return json.load(f)

    @staticmethod
    def load_harmonic_response(entry: Dict[str, Any], key: str = 'swz') -> HarmonicResponse:
        """
        Rebuild a HarmonicResponse from one entry of the 'results' section.

        Parameters
        ----------
        entry : Dict
            data['results'][label]
        key : str
            'swz' or 'swy'
        """
        table = np.atleast_2d(pairs_to_complex(entry[key]))
        n_freqs = len(entry['frequencies_hz'])
        orders = {n: table[n - 1, :n_freqs // n] for n in range(1, table.shape[0] + 1)}
        return HarmonicResponse(n_freqs, orders)

    @staticmethod
    def verify_checksum(filepath: Union[str, Path]) -> bool:
        """
        Verify data integrity using the stored checksums.

        Returns
        -------
        bool
            True if every stored checksum matches (or none are stored)
        """
        data = PseudoSensitivityLogger.load_json(filepath)
        stored_checksums = data.get('metadata', {}).get('checksums')
        if stored_checksums is None:
            return True

        for label, entry in data['results'].items():
            abs_sinf = np.array([float(v) for v in entry['abs_sinf']])
            computed = _checksum(np.array(entry['frequencies_hz'], dtype=float), abs_sinf)
            if computed != stored_checksums.get(label, ''):
                return False
        return True


def _checksum(frequencies_hz: np.ndarray, abs_sinf: np.ndarray) -> str:
    combined = np.concatenate([
        np.asarray(frequencies_hz, dtype=float),
        np.asarray(abs_sinf, dtype=float),
    ])
    combined = np.nan_to_num(combined, nan=0.0, posinf=0.0, neginf=0.0)
    return hashlib.md5(combined.tobytes()).hexdigest()
