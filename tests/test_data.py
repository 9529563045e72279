# tests/test_data.py
"""Unit tests for loading, feature filtering and stratified partitioning."""

import io
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from lift_quality.data.loader import DatasetLoader, load_dataset
from lift_quality.data.feature_filter import FeatureFilter, FilterReport, filter_features
from lift_quality.data.partitioner import DataSplit, StratifiedPartitioner, stratified_split
from lift_quality.utils.exceptions import (
    ConfigurationError,
    FormatError,
    InsufficientDataError,
    LiftQualityError,
    SchemaError,
    SourceReadError
)


@pytest.mark.unit
class TestDatasetLoader:
    """Test cases for DatasetLoader."""

    def test_load_from_path(self, sensor_csv_file: Path, sensor_dataset: pd.DataFrame):
        """Loading a file keeps every row and column in order."""
        df = DatasetLoader().load(sensor_csv_file)

        assert df.shape == sensor_dataset.shape
        assert list(df.columns) == list(sensor_dataset.columns)
        assert df['kurtosis_roll_belt'].isna().sum() == sensor_dataset['kurtosis_roll_belt'].isna().sum()

    def test_load_from_string_path(self, sensor_csv_file: Path):
        df = load_dataset(str(sensor_csv_file))
        assert len(df) == 600

    def test_load_from_text_buffer(self, sensor_csv_text: str):
        df = DatasetLoader().load(io.StringIO(sensor_csv_text))
        assert df.shape == (600, 15)
        assert df['classe'].value_counts().to_dict() == {'A': 170, 'B': 115, 'E': 110, 'C': 105, 'D': 100}

    def test_load_from_bytes_buffer(self):
        df = DatasetLoader().load(io.BytesIO(b"a,classe\n1.5,A\n2.5,B\n"))
        assert df['a'].tolist() == [1.5, 2.5]

    def test_default_missing_tokens(self):
        """NA, empty cells and #DIV/0! all become missing."""
        text = "a,b,classe\n1,NA,A\n2,#DIV/0!,B\n3,,A\n4,5,B\n"
        df = load_dataset(io.StringIO(text))

        assert df['b'].isna().tolist() == [True, True, True, False]
        assert df['b'].iloc[3] == 5
        assert pd.api.types.is_numeric_dtype(df['b'])

    def test_custom_missing_tokens(self):
        """Only the configured tokens are treated as missing."""
        text = "a,b,classe\n1,NA,A\n2,#DIV/0!,B\n3,n/a,A\n"
        df = load_dataset(io.StringIO(text), na_tokens=("n/a",))

        assert df['b'].tolist()[:2] == ["NA", "#DIV/0!"]
        assert pd.isna(df['b'].iloc[2])

    def test_no_implicit_missing_tokens(self):
        """Strings pandas would treat as missing by default stay values."""
        text = "a,note,classe\n1,null,A\n2,NaN,B\n"
        df = load_dataset(io.StringIO(text), na_tokens=("NA",))
        assert df['note'].tolist() == ["null", "NaN"]

    def test_custom_delimiter(self):
        df = load_dataset(io.StringIO("a;b;classe\n1;2;A\n"), delimiter=";")
        assert list(df.columns) == ['a', 'b', 'classe']

    def test_inconsistent_row_length(self):
        text = "a,b,classe\n1,2,A\n3,4\n5,6,B\n"
        with pytest.raises(FormatError) as exc_info:
            load_dataset(io.StringIO(text))

        error = exc_info.value
        assert error.error_code == "INCONSISTENT_ROW_LENGTH"
        assert error.context['line'] == 3
        assert error.context['expected_fields'] == 3
        assert error.context['actual_fields'] == 2
        assert error.stage == "loader"

    def test_blank_lines_are_skipped(self):
        df = load_dataset(io.StringIO("a,classe\n1,A\n\n2,B\n"))
        assert len(df) == 2

    def test_empty_source(self):
        with pytest.raises(FormatError) as exc_info:
            load_dataset(io.StringIO(""))
        assert exc_info.value.error_code == "EMPTY_SOURCE"

    def test_header_without_rows(self):
        with pytest.raises(FormatError) as exc_info:
            load_dataset(io.StringIO("a,b,classe\n"))
        assert exc_info.value.error_code == "NO_DATA_ROWS"

    def test_missing_file(self, tmp_path: Path):
        """Unreadable sources raise SourceReadError, which is also an OSError."""
        with pytest.raises(SourceReadError) as exc_info:
            load_dataset(tmp_path / "does_not_exist.csv")

        assert isinstance(exc_info.value, OSError)
        assert isinstance(exc_info.value, LiftQualityError)
        assert exc_info.value.error_code == "SOURCE_UNREADABLE"
        assert exc_info.value.stage == "loader"

    def test_bad_encoding(self):
        with pytest.raises(FormatError) as exc_info:
            DatasetLoader(encoding="utf-8").load(io.BytesIO(b"a,classe\n\xff\xfe,A\n"))
        assert exc_info.value.error_code == "BAD_ENCODING"


@pytest.mark.unit
class TestFeatureFilter:
    """Test cases for FeatureFilter."""

    def test_reference_layout(self, sensor_dataset: pd.DataFrame):
        """Metadata prefix and the sparse summary column are removed."""
        feature_filter = FeatureFilter('classe', drop_prefix_count=7, missingness_threshold=0.1)
        filtered = feature_filter.fit_transform(sensor_dataset)

        assert list(filtered.columns) == [
            'roll_belt', 'pitch_belt', 'yaw_belt', 'total_accel_belt',
            'gyros_arm_x', 'accel_forearm_z', 'classe'
        ]
        assert len(filtered) == len(sensor_dataset)
        assert filtered.index.equals(sensor_dataset.index)

        report = feature_filter.report_
        assert isinstance(report, FilterReport)
        assert report.n_predictors == 6
        assert report.dropped_prefix == [
            'X', 'user_name', 'raw_timestamp_part_1', 'raw_timestamp_part_2',
            'cvtd_timestamp', 'new_window', 'num_window'
        ]
        assert list(report.dropped_missing) == ['kurtosis_roll_belt']
        assert report.dropped_missing['kurtosis_roll_belt'] > 0.9

    def test_input_is_not_modified(self, sensor_dataset: pd.DataFrame):
        before = sensor_dataset.copy()
        filter_features(sensor_dataset, 'classe')
        pd.testing.assert_frame_equal(sensor_dataset, before)

    def test_threshold_is_strict(self):
        """A column whose missing share equals the threshold is dropped."""
        df = pd.DataFrame({
            'meta': range(10),
            'full': np.arange(10.0),
            'tenth_missing': [np.nan] + list(range(9)),
            'classe': list('ABABABABAB'),
        })
        filtered = filter_features(df, 'classe', drop_prefix_count=1, missingness_threshold=0.1)
        assert list(filtered.columns) == ['full', 'classe']

        kept = filter_features(df, 'classe', drop_prefix_count=1, missingness_threshold=0.11)
        assert list(kept.columns) == ['full', 'tenth_missing', 'classe']

    def test_surviving_missing_values_are_not_imputed(self):
        df = pd.DataFrame({
            'a': [1.0, np.nan] + [1.0] * 18,
            'classe': ['A', 'B'] * 10,
        })
        filtered = filter_features(df, 'classe', drop_prefix_count=0, missingness_threshold=0.1)
        assert filtered['a'].isna().sum() == 1

    def test_label_kept_last_even_when_mostly_missing(self):
        df = pd.DataFrame({
            'a': np.arange(4.0),
            'classe': ['A', np.nan, np.nan, np.nan],
            'b': np.arange(4.0),
        })
        filtered = filter_features(df, 'classe', drop_prefix_count=0, missingness_threshold=0.1)
        assert list(filtered.columns) == ['a', 'b', 'classe']

    def test_label_missing(self, filtered_dataset: pd.DataFrame):
        with pytest.raises(SchemaError) as exc_info:
            filter_features(filtered_dataset, 'outcome', drop_prefix_count=0)
        assert exc_info.value.error_code == "LABEL_MISSING"
        assert exc_info.value.stage == "feature_filter"

    def test_label_inside_dropped_prefix(self):
        df = pd.DataFrame({'classe': ['A', 'B'], 'a': [1.0, 2.0]})
        with pytest.raises(SchemaError) as exc_info:
            filter_features(df, 'classe', drop_prefix_count=1)
        assert exc_info.value.error_code == "LABEL_DROPPED"

    def test_no_predictor_survives(self):
        df = pd.DataFrame({'a': [np.nan, np.nan, 1.0], 'classe': ['A', 'B', 'A']})
        with pytest.raises(SchemaError) as exc_info:
            filter_features(df, 'classe', drop_prefix_count=0, missingness_threshold=0.1)
        assert exc_info.value.error_code == "NO_PREDICTORS"

    def test_non_numeric_predictor(self):
        df = pd.DataFrame({'a': [1.0, 2.0], 'who': ['x', 'y'], 'classe': ['A', 'B']})
        with pytest.raises(SchemaError) as exc_info:
            filter_features(df, 'classe', drop_prefix_count=0)
        assert exc_info.value.error_code == "NON_NUMERIC_PREDICTOR"
        assert exc_info.value.context['columns'] == ['who']

    def test_invalid_threshold(self):
        with pytest.raises(ConfigurationError):
            FeatureFilter('classe', missingness_threshold=0.0)
        with pytest.raises(ConfigurationError):
            FeatureFilter('classe', missingness_threshold=1.5)

    def test_report_to_dict(self, sensor_dataset: pd.DataFrame):
        feature_filter = FeatureFilter('classe')
        feature_filter.fit_transform(sensor_dataset)
        report = feature_filter.report_.to_dict()

        assert report['n_rows'] == 600
        assert report['label_column'] == 'classe'
        assert len(report['retained_predictors']) == 6


@pytest.mark.unit
class TestStratifiedPartitioner:
    """Test cases for StratifiedPartitioner."""

    def test_split_sizes(self, filtered_dataset: pd.DataFrame):
        """Each class contributes ceil(p * n) rows to training."""
        split = StratifiedPartitioner('classe', train_fraction=0.75, seed=312).split(filtered_dataset)

        assert isinstance(split, DataSplit)
        assert split.sizes == {'train': 452, 'holdout': 148}
        assert split.train['classe'].value_counts().to_dict() == {
            'A': 128, 'B': 87, 'E': 83, 'C': 79, 'D': 75
        }

    def test_disjoint_and_exhaustive(self, filtered_dataset: pd.DataFrame):
        split = stratified_split(filtered_dataset, 'classe', 0.75, seed=312)

        train_idx = set(split.train.index)
        holdout_idx = set(split.holdout.index)
        assert train_idx.isdisjoint(holdout_idx)
        assert train_idx | holdout_idx == set(filtered_dataset.index)
        assert np.array_equal(
            np.sort(np.concatenate([split.train_positions, split.holdout_positions])),
            np.arange(len(filtered_dataset))
        )

    def test_row_order_preserved(self, filtered_dataset: pd.DataFrame):
        split = stratified_split(filtered_dataset, 'classe', seed=312)
        assert split.train.index.is_monotonic_increasing
        assert split.holdout.index.is_monotonic_increasing

    def test_class_proportions_preserved(self, filtered_dataset: pd.DataFrame):
        split = stratified_split(filtered_dataset, 'classe', seed=312)
        proportions = split.class_proportions()

        assert list(proportions.index) == ['A', 'B', 'C', 'D', 'E']
        assert (proportions['train'] - proportions['holdout']).abs().max() < 0.02

    def test_same_seed_same_split(self, filtered_dataset: pd.DataFrame):
        first = stratified_split(filtered_dataset, 'classe', seed=312)
        second = stratified_split(filtered_dataset, 'classe', seed=312)
        assert np.array_equal(first.train_positions, second.train_positions)

    def test_different_seed_different_split(self, filtered_dataset: pd.DataFrame):
        first = stratified_split(filtered_dataset, 'classe', seed=312)
        second = stratified_split(filtered_dataset, 'classe', seed=313)
        assert not np.array_equal(first.train_positions, second.train_positions)
        assert first.sizes == second.sizes

    def test_every_class_in_both_subsets(self):
        """Even a two-row class keeps one row for the holdout."""
        df = pd.DataFrame({'a': np.arange(12.0), 'classe': ['A'] * 10 + ['B'] * 2})
        split = stratified_split(df, 'classe', train_fraction=0.9, seed=1)

        assert set(split.train['classe']) == {'A', 'B'}
        assert set(split.holdout['classe']) == {'A', 'B'}
        assert (split.train['classe'] == 'B').sum() == 1

    def test_class_too_small(self):
        df = pd.DataFrame({'a': np.arange(5.0), 'classe': ['A', 'A', 'A', 'A', 'B']})
        with pytest.raises(InsufficientDataError) as exc_info:
            stratified_split(df, 'classe')
        assert exc_info.value.error_code == "CLASS_TOO_SMALL"
        assert exc_info.value.context['classes'] == ['B']
        assert exc_info.value.stage == "partitioner"

    def test_unlabeled_rows(self):
        df = pd.DataFrame({'a': np.arange(4.0), 'classe': ['A', 'B', None, 'A']})
        with pytest.raises(InsufficientDataError) as exc_info:
            stratified_split(df, 'classe')
        assert exc_info.value.error_code == "UNLABELED_ROWS"

    @pytest.mark.parametrize("fraction", [0.0, 1.0, -0.2, 1.5])
    def test_invalid_fraction(self, fraction):
        with pytest.raises(ConfigurationError):
            StratifiedPartitioner('classe', train_fraction=fraction)
