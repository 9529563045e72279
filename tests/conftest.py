"""Test configuration for pytest."""
import os
import sys
from pathlib import Path
from typing import Dict, Any

os.environ.setdefault("MPLBACKEND", "Agg")

import pytest
import pandas as pd
import numpy as np

# Add package root to path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from lift_quality.config import PipelineConfig

METADATA_COLUMNS = [
    'X', 'user_name', 'raw_timestamp_part_1', 'raw_timestamp_part_2',
    'cvtd_timestamp', 'new_window', 'num_window'
]
SIGNAL_COLUMNS = [
    'roll_belt', 'pitch_belt', 'yaw_belt', 'total_accel_belt',
    'gyros_arm_x', 'accel_forearm_z'
]
CLASS_SIZES = {'A': 170, 'B': 115, 'C': 105, 'D': 100, 'E': 110}


def make_sensor_frame(class_sizes: Dict[str, int] = CLASS_SIZES, seed: int = 7) -> pd.DataFrame:
    """Synthetic export laid out like the weight-lifting sensor table.

    Seven bookkeeping columns, six numeric sensor channels (two of them
    strongly class dependent), one window-summary column that is only filled
    on window-boundary rows, and the ``classe`` label last.
    """
    rng = np.random.default_rng(seed)
    labels = np.concatenate([[c] * n for c, n in class_sizes.items()])
    rng.shuffle(labels)
    n = len(labels)
    k = np.array([sorted(class_sizes).index(c) for c in labels], dtype=float)

    new_window = rng.random(n) < 0.02
    df = pd.DataFrame({
        'X': np.arange(1, n + 1),
        'user_name': rng.choice(['adelmo', 'carlitos', 'charles', 'eurico', 'jeremy', 'pedro'], n),
        'raw_timestamp_part_1': 1322489600 + np.arange(n),
        'raw_timestamp_part_2': rng.integers(0, 999999, n),
        'cvtd_timestamp': '28/11/2011 14:13',
        'new_window': np.where(new_window, 'yes', 'no'),
        'num_window': rng.integers(1, 864, n),
        'roll_belt': 10.0 * k + rng.normal(0, 2.0, n),
        'pitch_belt': -5.0 * k + rng.normal(0, 2.0, n),
        'yaw_belt': rng.normal(-90, 5.0, n),
        'total_accel_belt': 3.0 * (k % 2) + rng.normal(0, 1.0, n),
        'gyros_arm_x': rng.normal(0, 1.0, n),
        'accel_forearm_z': rng.normal(-60, 10.0, n),
        'kurtosis_roll_belt': np.where(new_window, rng.normal(0, 1.0, n), np.nan),
        'classe': labels,
    })
    return df


@pytest.fixture(scope="session")
def test_data_dir(tmp_path_factory) -> Path:
    """Session-wide temporary directory for test data."""
    return tmp_path_factory.mktemp("lift_quality_data")


@pytest.fixture(scope="session")
def sensor_dataset() -> pd.DataFrame:
    """Raw sensor export (600 rows, classes A-E)."""
    return make_sensor_frame()


@pytest.fixture
def sensor_csv_text(sensor_dataset: pd.DataFrame) -> str:
    """The raw export rendered as CSV, with NA written for missing cells."""
    return sensor_dataset.to_csv(index=False, na_rep='NA')


@pytest.fixture(scope="session")
def sensor_csv_file(test_data_dir: Path, sensor_dataset: pd.DataFrame) -> Path:
    """The raw export written to disk as CSV."""
    csv_file = test_data_dir / "pml-training.csv"
    sensor_dataset.to_csv(csv_file, index=False, na_rep='NA')
    return csv_file


@pytest.fixture(scope="session")
def filtered_dataset(sensor_dataset: pd.DataFrame) -> pd.DataFrame:
    """Six numeric predictors plus the label."""
    return sensor_dataset[SIGNAL_COLUMNS + ['classe']].copy()


@pytest.fixture
def quick_config() -> PipelineConfig:
    """Small, single-worker configuration for fast deterministic tests."""
    return PipelineConfig(
        cv_folds=3,
        tree_count=15,
        mtry_grid=(1, 2, 3),
        seed=312,
        n_jobs=1,
    )


@pytest.fixture
def sample_config_dict() -> Dict[str, Any]:
    """Sample configuration dictionary for testing."""
    return {
        'pipeline': {
            'label_column': 'classe',
            'drop_prefix_count': 7,
            'missingness_threshold': 0.1,
            'train_fraction': 0.75,
            'cv_folds': 3,
            'tree_count': 25,
            'mtry_grid': [2, 4],
            'seed': 312,
            'n_jobs': 1,
        }
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, sample_config_dict: Dict[str, Any]) -> Path:
    """Create temporary YAML config file for testing."""
    import yaml

    config_file = tmp_path / "pipeline.yaml"
    with open(config_file, 'w') as f:
        yaml.dump(sample_config_dict, f)

    return config_file


@pytest.fixture(autouse=True)
def cleanup_environment():
    """Clean up environment variables after each test."""
    # Store original environment
    original_env = dict(os.environ)

    yield

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
