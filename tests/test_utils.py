"""Unit tests for exceptions, stage error handling, timing and parallel execution."""
import logging
import pickle
import time

import pytest

from lift_quality.utils.exceptions import (
    ConfigurationError,
    ConvergenceError,
    FormatError,
    InsufficientDataError,
    LiftQualityError,
    ModelTrainingError,
    SchemaError,
    SchemaMismatchError,
    SourceReadError,
    handle_and_reraise,
    validate_parameter
)
from lift_quality.utils.error_handling import ErrorContext, StageErrorHandler, stage_context
from lift_quality.utils.timer import PerformanceTracker, timed_operation, timer
from lift_quality.utils.parallel import default_n_jobs, parallel_map, resolve_n_jobs


def _square(x):
    return x * x


def _fail_on_three(x):
    if x == 3:
        raise ValueError("bad unit")
    return x


class TestExceptions:
    """Test the exception hierarchy."""

    @pytest.mark.unit
    def test_hierarchy(self):
        assert issubclass(SchemaMismatchError, SchemaError)
        assert issubclass(ConvergenceError, ModelTrainingError)
        assert issubclass(SourceReadError, OSError)
        for error_class in (ConfigurationError, SourceReadError, FormatError, SchemaError,
                            InsufficientDataError, ModelTrainingError):
            assert issubclass(error_class, LiftQualityError)

    @pytest.mark.unit
    def test_string_form(self):
        error = FormatError("bad row", error_code="INCONSISTENT_ROW_LENGTH", context={"line": 4})
        assert str(error) == "[INCONSISTENT_ROW_LENGTH] bad row (Context: line=4)"
        assert error.stage is None

    @pytest.mark.unit
    def test_source_read_error_keywords(self):
        error = SourceReadError("gone", error_code="SOURCE_UNREADABLE", context={"stage": "loader"})
        assert error.stage == "loader"
        assert error.message == "gone"

    @pytest.mark.unit
    def test_pickle_keeps_context(self):
        error = ModelTrainingError("unit failed", error_code="CV_UNIT_FAILED",
                                   context={"mtry": 9, "fold": 4})
        restored = pickle.loads(pickle.dumps(error))

        assert type(restored) is ModelTrainingError
        assert restored.error_code == "CV_UNIT_FAILED"
        assert restored.context == {"mtry": 9, "fold": 4}

        source_error = pickle.loads(pickle.dumps(SourceReadError("gone", "SOURCE_UNREADABLE")))
        assert isinstance(source_error, OSError)
        assert source_error.error_code == "SOURCE_UNREADABLE"

    @pytest.mark.unit
    def test_handle_and_reraise(self):
        with pytest.raises(ConfigurationError) as exc_info:
            try:
                int("x")
            except ValueError as e:
                handle_and_reraise(e, ConfigurationError, "parse failed", error_code="PARSE")

        error = exc_info.value
        assert error.context["original_error_type"] == "ValueError"
        assert isinstance(error.__cause__, ValueError)

    @pytest.mark.unit
    def test_validate_parameter(self):
        validate_parameter("folds", 5, min_value=2, max_value=20)
        validate_parameter("optional", None, min_value=1)

        with pytest.raises(ConfigurationError) as exc_info:
            validate_parameter("folds", 1, min_value=2)
        assert exc_info.value.error_code == "PARAM_TOO_SMALL"

        with pytest.raises(ConfigurationError) as exc_info:
            validate_parameter("method", "gain", valid_values=["permutation", "impurity"])
        assert exc_info.value.error_code == "PARAM_INVALID_VALUE"

        with pytest.raises(ConfigurationError) as exc_info:
            validate_parameter("seed", None, required=True)
        assert exc_info.value.error_code == "PARAM_REQUIRED"


class TestStageErrorHandling:
    """Test stage-scoped error tagging and conversion."""

    @pytest.mark.unit
    def test_package_error_is_tagged(self):
        with pytest.raises(SchemaError) as exc_info:
            with stage_context("feature_filter", default_error=SchemaError):
                raise SchemaError("no label", error_code="LABEL_MISSING")
        assert exc_info.value.stage == "feature_filter"

    @pytest.mark.unit
    def test_existing_stage_is_kept(self):
        with pytest.raises(SchemaMismatchError) as exc_info:
            with stage_context("evaluator"):
                raise SchemaMismatchError("missing", context={"stage": "predict"})
        assert exc_info.value.stage == "predict"

    @pytest.mark.unit
    def test_foreign_error_is_converted(self):
        with pytest.raises(InsufficientDataError) as exc_info:
            with stage_context("partitioner", default_error=InsufficientDataError, rows=3):
                raise KeyError("classe")

        error = exc_info.value
        assert error.error_code == "STAGE_FAILED"
        assert error.stage == "partitioner"
        assert error.context["rows"] == 3
        assert error.context["original_error_type"] == "KeyError"
        assert isinstance(error.__cause__, KeyError)

    @pytest.mark.unit
    def test_success_yields_context(self):
        with StageErrorHandler("loader").operation_context(user_data={"source": "x.csv"}) as ctx:
            assert isinstance(ctx, ErrorContext)
        assert ctx.to_dict()["source"] == "x.csv"
        assert ctx.to_dict()["stage"] == "loader"


class TestTimer:
    """Test timing utilities."""

    @pytest.mark.unit
    def test_timer_decorator_logs_duration(self, caplog):
        @timer(name="unit_sleep")
        def sleepy():
            time.sleep(0.01)
            return 42

        with caplog.at_level(logging.INFO, logger="lift_quality"):
            assert sleepy() == 42

        records = [r for r in caplog.records if r.getMessage() == "unit_sleep finished"]
        assert len(records) == 1
        assert records[0].duration >= 0.01

    @pytest.mark.unit
    def test_timer_reraises(self):
        @timer()
        def broken():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            broken()

    @pytest.mark.unit
    def test_timed_operation_records_into_tracker(self):
        tracker = PerformanceTracker()
        with timed_operation("load", tracker) as timing:
            time.sleep(0.01)
        with timed_operation("train", tracker):
            pass
        with timed_operation("load", tracker):
            pass

        assert timing["duration"] >= 0.01
        totals = tracker.totals()
        assert list(totals) == ["load", "train"]
        assert totals["load"] >= timing["duration"]

    @pytest.mark.unit
    def test_failed_operation_not_recorded(self):
        tracker = PerformanceTracker()
        with pytest.raises(KeyError):
            with timed_operation("prepare", tracker):
                raise KeyError("classe")
        assert tracker.totals() == {}


class TestParallelMap:
    """Test bounded parallel execution."""

    @pytest.mark.unit
    def test_serial(self):
        results = parallel_map(_square, [(k, (k,)) for k in range(5)], n_jobs=1)
        assert results == {0: 0, 1: 1, 2: 4, 3: 9, 4: 16}

    @pytest.mark.unit
    def test_parallel_results_keyed(self):
        units = [((m, f), (10 * m + f,)) for m in (1, 2) for f in range(3)]
        results = parallel_map(_square, units, n_jobs=2)
        assert results[(2, 1)] == 441
        assert len(results) == 6

    @pytest.mark.unit
    def test_duplicate_keys(self):
        with pytest.raises(ValueError):
            parallel_map(_square, [("a", (1,)), ("a", (2,))], n_jobs=1)

    @pytest.mark.unit
    def test_unit_failure_propagates(self):
        with pytest.raises(ValueError, match="bad unit"):
            parallel_map(_fail_on_three, [(k, (k,)) for k in range(5)], n_jobs=1)

    @pytest.mark.unit
    def test_empty(self):
        assert parallel_map(_square, [], n_jobs=4) == {}

    @pytest.mark.unit
    def test_resolve_n_jobs(self):
        assert resolve_n_jobs(3) == 3
        assert resolve_n_jobs(None) == default_n_jobs()
        assert resolve_n_jobs(-1) == default_n_jobs()
        assert default_n_jobs() >= 1
