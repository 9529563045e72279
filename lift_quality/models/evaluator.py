# lift_quality/models/evaluator.py
"""Holdout evaluation: confusion matrix and per-class statistics.

This module provides the evaluation stage of the pipeline with:
- majority-vote prediction for every holdout row
- a square confusion matrix (rows = true class, columns = predicted class)
- overall accuracy with an exact binomial confidence interval, Cohen's
  kappa and the no-information rate
- per-class sensitivity, specificity, predictive values, prevalence and
  balanced accuracy (one-vs-rest)
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from scipy import stats
from sklearn.metrics import cohen_kappa_score, confusion_matrix

from .forest import TrainedModel
from ..utils.logger import get_logger
from ..utils.timer import timer
from ..utils.error_handling import stage_context
from ..utils.exceptions import ModelEvaluationError, SchemaError, validate_parameter
from ..utils.plot_utils import plot_confusion_matrix

logger = get_logger(__name__)


def _ratio(numerator: float, denominator: float) -> float:
    return float(numerator) / denominator if denominator else float("nan")


def accuracy_confidence_interval(correct: int, total: int, level: float = 0.95) -> Tuple[float, float]:
    """Exact (Clopper-Pearson) interval for a binomial proportion."""
    alpha = 1.0 - level
    lower = stats.beta.ppf(alpha / 2, correct, total - correct + 1) if correct > 0 else 0.0
    upper = stats.beta.ppf(1 - alpha / 2, correct + 1, total - correct) if correct < total else 1.0
    return float(lower), float(upper)


@dataclass
class ConfusionMatrixReport:
    """Confusion matrix with derived statistics."""

    matrix: pd.DataFrame
    accuracy: float
    by_class: pd.DataFrame
    kappa: float
    no_information_rate: float
    accuracy_ci: Tuple[float, float]
    n_samples: int
    confidence_level: float = 0.95
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def error_rate(self) -> float:
        return 1.0 - self.accuracy

    @property
    def sensitivity(self) -> Dict[str, float]:
        return self.by_class["sensitivity"].to_dict()

    @property
    def specificity(self) -> Dict[str, float]:
        return self.by_class["specificity"].to_dict()

    @classmethod
    def from_labels(
        cls,
        y_true: pd.Series,
        y_pred: pd.Series,
        labels: List[Any],
        confidence_level: float = 0.95
    ) -> "ConfusionMatrixReport":
        """Build a report from aligned true and predicted labels."""
        counts = confusion_matrix(np.asarray(y_true), np.asarray(y_pred), labels=labels)
        matrix = pd.DataFrame(
            counts,
            index=pd.Index(labels, name="true"),
            columns=pd.Index(labels, name="predicted"),
        )

        total = int(counts.sum())
        correct = int(np.trace(counts))
        row_sums = counts.sum(axis=1)
        col_sums = counts.sum(axis=0)

        rows = []
        for i, label in enumerate(labels):
            tp = counts[i, i]
            fn = row_sums[i] - tp
            fp = col_sums[i] - tp
            tn = total - tp - fn - fp
            sensitivity = _ratio(tp, tp + fn)
            specificity = _ratio(tn, tn + fp)
            rows.append({
                "class": label,
                "sensitivity": sensitivity,
                "specificity": specificity,
                "pos_pred_value": _ratio(tp, tp + fp),
                "neg_pred_value": _ratio(tn, tn + fn),
                "prevalence": _ratio(tp + fn, total),
                "balanced_accuracy": (sensitivity + specificity) / 2,
                "support": int(row_sums[i]),
            })
        by_class = pd.DataFrame(rows).set_index("class")

        if len(np.unique(np.concatenate([np.asarray(y_true), np.asarray(y_pred)]))) > 1:
            kappa = float(cohen_kappa_score(np.asarray(y_true), np.asarray(y_pred), labels=labels))
        else:
            kappa = float("nan")

        return cls(
            matrix=matrix,
            accuracy=_ratio(correct, total),
            by_class=by_class,
            kappa=kappa,
            no_information_rate=_ratio(row_sums.max(), total),
            accuracy_ci=accuracy_confidence_interval(correct, total, confidence_level),
            n_samples=total,
            confidence_level=confidence_level,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matrix": {str(k): {str(c): int(v) for c, v in row.items()}
                       for k, row in self.matrix.to_dict(orient="index").items()},
            "accuracy": self.accuracy,
            "error_rate": self.error_rate,
            "accuracy_ci": list(self.accuracy_ci),
            "kappa": self.kappa,
            "no_information_rate": self.no_information_rate,
            "n_samples": self.n_samples,
            "by_class": {str(k): v for k, v in self.by_class.to_dict(orient="index").items()},
        }

    def summary(self) -> str:
        """Plain-text rendering in the layout analysts expect."""
        low, high = self.accuracy_ci
        lines = [
            "Confusion Matrix (rows = true, columns = predicted)",
            self.matrix.to_string(),
            "",
            f"Accuracy : {self.accuracy:.4f}",
            f"{int(self.confidence_level * 100)}% CI   : ({low:.4f}, {high:.4f})",
            f"NIR      : {self.no_information_rate:.4f}",
            f"Kappa    : {self.kappa:.4f}",
            "",
            "Statistics by Class:",
            self.by_class.drop(columns=["support"]).T.round(4).to_string(),
        ]
        return "\n".join(lines)


class ModelEvaluator:
    """Applies a trained model to labelled holdout data.

    Example:
        >>> evaluator = ModelEvaluator()
        >>> report = evaluator.evaluate(model, split.holdout)
        >>> print(f"Holdout accuracy: {report.accuracy:.4f}")
    """

    def __init__(self, confidence_level: float = 0.95) -> None:
        validate_parameter("confidence_level", confidence_level, min_value=0.5, max_value=0.999)
        self.confidence_level = confidence_level

    @timer(name="holdout_evaluation")
    def evaluate(
        self,
        model: TrainedModel,
        holdout_df: pd.DataFrame,
        label_column: Optional[str] = None
    ) -> ConfusionMatrixReport:
        """Predict every holdout row and summarise agreement with the labels.

        Args:
            model: Fitted model
            holdout_df: Holdout frame holding the model's predictors and the label
            label_column: Label column name (defaults to the model's)

        Returns:
            ConfusionMatrixReport

        Raises:
            SchemaError: If the label column is absent or has missing values
            SchemaMismatchError: If predictor columns are absent
        """
        label_column = label_column or model.label_column

        with stage_context("evaluator", default_error=ModelEvaluationError):
            if label_column not in holdout_df.columns:
                raise SchemaError(
                    f"Holdout data has no label column '{label_column}'",
                    error_code="LABEL_MISSING",
                    context={"label_column": label_column}
                )
            y_true = holdout_df[label_column]
            if y_true.isna().any():
                raise SchemaError(
                    f"{int(y_true.isna().sum())} holdout rows have no label",
                    error_code="UNLABELED_ROWS",
                    context={"label_column": label_column}
                )
            if holdout_df.empty:
                raise ModelEvaluationError(
                    "Holdout data is empty",
                    error_code="EMPTY_HOLDOUT",
                    context={"label_column": label_column}
                )

            y_pred = model.predict(holdout_df)

            labels = list(model.classes)
            unseen = sorted({v for v in y_true.unique() if v not in set(labels)}, key=str)
            if unseen:
                logger.warning(f"Holdout labels never seen in training: {unseen}")

            report = ConfusionMatrixReport.from_labels(
                y_true, y_pred, labels + unseen, confidence_level=self.confidence_level
            )
            report.metadata.update({"mtry": model.mtry, "tree_count": model.tree_count})

        logger.info(
            f"Holdout accuracy {report.accuracy:.4f} on {report.n_samples} rows "
            f"(kappa {report.kappa:.4f})"
        )
        return report

    def plot_confusion_matrix(
        self,
        report: ConfusionMatrixReport,
        save_path: Optional[Union[str, Path]] = None
    ):
        """Heatmap of the report's confusion matrix."""
        return plot_confusion_matrix(report.matrix, save_path=save_path)


def evaluate_model(
    model: TrainedModel,
    holdout_df: pd.DataFrame,
    label_column: Optional[str] = None
) -> ConfusionMatrixReport:
    """Convenience function for holdout evaluation."""
    return ModelEvaluator().evaluate(model, holdout_df, label_column)
