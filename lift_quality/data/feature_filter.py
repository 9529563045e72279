# lift_quality/data/feature_filter.py
"""Column filtering: metadata prefix removal and missingness screening.

The reference sensor export starts with seven bookkeeping columns (row
index, subject name, timestamps, window markers) followed by raw sensor
readings and per-window summary statistics. The summary statistics are
only filled on window-boundary rows, so they are almost entirely missing
and get removed by the missingness threshold.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pandas as pd
from pandas.api.types import is_numeric_dtype

from ..config.pipeline_config import validate_filter_settings
from ..utils.logger import get_logger
from ..utils.error_handling import stage_context
from ..utils.exceptions import SchemaError

logger = get_logger(__name__)


@dataclass
class FilterReport:
    """What the feature filter kept and dropped."""

    n_rows: int
    dropped_prefix: List[str] = field(default_factory=list)
    dropped_missing: Dict[str, float] = field(default_factory=dict)
    retained_predictors: List[str] = field(default_factory=list)
    label_column: str = ""

    @property
    def n_predictors(self) -> int:
        return len(self.retained_predictors)

    def to_dict(self) -> Dict[str, object]:
        return {
            "n_rows": self.n_rows,
            "dropped_prefix": list(self.dropped_prefix),
            "dropped_missing": dict(self.dropped_missing),
            "retained_predictors": list(self.retained_predictors),
            "label_column": self.label_column,
        }


class FeatureFilter:
    """Drops leading metadata columns and columns with too many missing values.

    A column survives when its missing fraction is strictly below
    ``missingness_threshold``. The label column always survives and is
    placed last. Rows are neither dropped nor reordered and no values
    are imputed.

    Example:
        >>> feature_filter = FeatureFilter('classe', drop_prefix_count=7, missingness_threshold=0.1)
        >>> filtered = feature_filter.fit_transform(raw_df)
        >>> feature_filter.report_.n_predictors
        52
    """

    def __init__(
        self,
        label_column: str,
        drop_prefix_count: int = 7,
        missingness_threshold: float = 0.1
    ) -> None:
        validate_filter_settings(drop_prefix_count, missingness_threshold)

        self.label_column = label_column
        self.drop_prefix_count = drop_prefix_count
        self.missingness_threshold = missingness_threshold
        self.report_: Optional[FilterReport] = None

    def fit_transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Return a new frame holding the surviving predictors and the label.

        Raises:
            SchemaError: If the label is absent or in the dropped prefix, if no
                predictor survives, or if a surviving predictor is not numeric
        """
        with stage_context("feature_filter", default_error=SchemaError):
            columns = list(df.columns)
            prefix = columns[:self.drop_prefix_count]
            remaining = columns[self.drop_prefix_count:]

            if self.label_column not in columns:
                raise SchemaError(
                    f"Label column '{self.label_column}' not found in dataset",
                    error_code="LABEL_MISSING",
                    context={"label_column": self.label_column, "n_columns": len(columns)}
                )
            if self.label_column in prefix:
                raise SchemaError(
                    f"Label column '{self.label_column}' lies inside the "
                    f"{self.drop_prefix_count} dropped leading columns",
                    error_code="LABEL_DROPPED",
                    context={"label_column": self.label_column,
                             "position": columns.index(self.label_column)}
                )

            candidates = [c for c in remaining if c != self.label_column]
            missing_ratio = df[candidates].isna().mean() if len(df) else pd.Series(0.0, index=candidates)

            retained = [c for c in candidates if missing_ratio[c] < self.missingness_threshold]
            dropped_missing = {c: float(missing_ratio[c]) for c in candidates if c not in retained}

            if not retained:
                raise SchemaError(
                    f"No predictor column has a missing fraction below {self.missingness_threshold}",
                    error_code="NO_PREDICTORS",
                    context={"n_candidates": len(candidates),
                             "threshold": self.missingness_threshold}
                )

            non_numeric = [c for c in retained if not is_numeric_dtype(df[c])]
            if non_numeric:
                raise SchemaError(
                    f"Retained predictor columns are not numeric: {non_numeric}",
                    error_code="NON_NUMERIC_PREDICTOR",
                    context={"columns": non_numeric}
                )

            filtered = df[retained + [self.label_column]].copy()

        self.report_ = FilterReport(
            n_rows=len(filtered),
            dropped_prefix=[str(c) for c in prefix],
            dropped_missing=dropped_missing,
            retained_predictors=retained,
            label_column=self.label_column,
        )

        logger.info(
            f"Feature filter kept {len(retained)} predictors + label "
            f"(dropped {len(prefix)} prefix, {len(dropped_missing)} for missingness >= "
            f"{self.missingness_threshold})"
        )
        return filtered


def filter_features(
    df: pd.DataFrame,
    label_column: str,
    drop_prefix_count: int = 7,
    missingness_threshold: float = 0.1
) -> pd.DataFrame:
    """Functional form of :class:`FeatureFilter`."""
    return FeatureFilter(label_column, drop_prefix_count, missingness_threshold).fit_transform(df)
