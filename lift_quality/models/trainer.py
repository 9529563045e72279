# lift_quality/models/trainer.py
"""Cross-validated selection and fitting of the tree ensemble.

This module provides the training stage of the pipeline:
- stratified k-fold splitting of the training partition
- one independent work unit per (mtry, fold) pair, run with bounded parallelism
- selection of the configuration with the best mean fold accuracy
  (ties go to the smallest mtry)
- a final refit of the selected configuration on the whole training set
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import StratifiedKFold

from .forest import TrainedModel, build_forest, majority_vote, vote_counts
from ..config.pipeline_config import PipelineConfig
from ..utils.logger import get_logger
from ..utils.timer import timer, timed_operation
from ..utils.parallel import parallel_map, resolve_n_jobs
from ..utils.error_handling import stage_context
from ..utils.exceptions import (
    ConfigurationError,
    ConvergenceError,
    InsufficientDataError,
    ModelTrainingError,
    SchemaError
)

logger = get_logger(__name__)


@dataclass
class FoldScore:
    """Outcome of one (mtry, fold) work unit."""

    mtry: int
    fold: int
    accuracy: float
    no_information_rate: float
    n_train: int
    n_validation: int

    @property
    def above_chance(self) -> bool:
        return self.accuracy > self.no_information_rate


@dataclass
class CrossValidationResult:
    """Cross-validation outcome and the refitted model."""

    model: TrainedModel
    best_mtry: int
    cv_results: pd.DataFrame
    fold_scores: List[FoldScore] = field(default_factory=list)
    cv_folds: int = 5
    training_time: Optional[float] = None

    @property
    def best_score(self) -> float:
        """Mean cross-validated accuracy of the selected configuration."""
        return float(self.cv_results.loc[self.best_mtry, "mean_accuracy"])

    @property
    def oob_error(self) -> float:
        return self.model.oob_error

    def fold_accuracy_table(self) -> pd.DataFrame:
        """Accuracy per configuration (rows) and fold (columns)."""
        table = pd.DataFrame(
            [(s.mtry, s.fold, s.accuracy) for s in self.fold_scores],
            columns=["mtry", "fold", "accuracy"],
        )
        return table.pivot(index="mtry", columns="fold", values="accuracy")


def _derive_seed(seed: int, mtry: int, fold: int) -> int:
    """Per-unit seed derived from (seed, mtry, fold) only."""
    return int(np.random.SeedSequence([seed, mtry, fold]).generate_state(1)[0])


def _score_fold(
    X: np.ndarray,
    y: np.ndarray,
    train_idx: np.ndarray,
    valid_idx: np.ndarray,
    mtry: int,
    fold: int,
    tree_count: int,
    min_node_size: int,
    seed: int
) -> FoldScore:
    """Fit on the other folds and score accuracy on ``valid_idx``.

    Runs single-threaded; parallelism happens across units.
    """
    try:
        forest = build_forest(
            X[train_idx], y[train_idx], mtry, tree_count, min_node_size,
            seed=_derive_seed(seed, mtry, fold), n_jobs=1
        )
        predicted = forest.classes_[majority_vote(vote_counts(forest, X[valid_idx]))]
    except Exception as e:
        raise ModelTrainingError(
            f"Work unit mtry={mtry}, fold={fold} failed: {e}",
            error_code="CV_UNIT_FAILED",
            context={"mtry": mtry, "fold": fold, "original_error_type": type(e).__name__}
        ) from e
    y_valid = y[valid_idx]

    _, class_counts = np.unique(y_valid, return_counts=True)
    return FoldScore(
        mtry=mtry,
        fold=fold,
        accuracy=float(np.mean(predicted == y_valid)),
        no_information_rate=float(class_counts.max() / len(y_valid)),
        n_train=len(train_idx),
        n_validation=len(valid_idx),
    )


class CrossValidatedTrainer:
    """Selects ``mtry`` by stratified k-fold cross-validation and refits.

    Example:
        >>> trainer = CrossValidatedTrainer(PipelineConfig(mtry_grid=(5, 9, 13)))
        >>> result = trainer.fit(split.train, 'classe')
        >>> result.best_mtry, round(result.oob_error, 4)
        (9, 0.0061)
    """

    def __init__(self, config: Optional[PipelineConfig] = None) -> None:
        self.config = config or PipelineConfig()
        self.n_jobs = resolve_n_jobs(self.config.n_jobs)

        logger.info(
            f"Initialized CrossValidatedTrainer: {self.config.cv_folds} folds, "
            f"{self.config.tree_count} trees, mtry grid {list(self.config.mtry_grid)}, "
            f"seed {self.config.seed}, {self.n_jobs} worker(s)"
        )

    def _validate_inputs(self, train_df: pd.DataFrame, label_column: str) -> List[str]:
        if label_column not in train_df.columns:
            raise SchemaError(
                f"Label column '{label_column}' not found in training data",
                error_code="LABEL_MISSING",
                context={"label_column": label_column}
            )

        predictors = [c for c in train_df.columns if c != label_column]
        if not predictors:
            raise SchemaError(
                "Training data has no predictor columns",
                error_code="NO_PREDICTORS",
                context={"label_column": label_column}
            )

        too_large = [m for m in self.config.mtry_grid if m > len(predictors)]
        if too_large:
            raise ConfigurationError(
                f"mtry values {too_large} exceed the {len(predictors)} available predictors",
                error_code="MTRY_TOO_LARGE",
                context={"mtry_grid": list(self.config.mtry_grid), "n_predictors": len(predictors)}
            )

        counts = train_df[label_column].value_counts()
        smallest = counts.idxmin()
        if counts.min() < self.config.cv_folds:
            raise InsufficientDataError(
                f"Class '{smallest}' has {counts.min()} training rows, fewer than "
                f"{self.config.cv_folds} folds",
                error_code="CLASS_TOO_SMALL_FOR_CV",
                context={"class": str(smallest), "rows": int(counts.min()),
                         "cv_folds": self.config.cv_folds}
            )
        if len(counts) < 2:
            raise InsufficientDataError(
                "Training data holds a single class; nothing to classify",
                error_code="SINGLE_CLASS",
                context={"class": str(smallest)}
            )
        return predictors

    @timer(name="cross_validated_training")
    def fit(self, train_df: pd.DataFrame, label_column: str) -> CrossValidationResult:
        """Run the grid search and refit the selected configuration.

        Args:
            train_df: Filtered training partition (numeric predictors + label)
            label_column: Name of the label column

        Returns:
            CrossValidationResult with the refitted TrainedModel

        Raises:
            SchemaError: If the label or all predictors are missing
            ConfigurationError: If an mtry value exceeds the predictor count
            InsufficientDataError: If a class has fewer rows than folds
            ModelTrainingError: If a work unit fails
            ConvergenceError: If no configuration beats chance on every fold
        """
        with stage_context("cross_validated_trainer", default_error=ModelTrainingError):
            with timed_operation("cross_validation") as timing:
                predictors = self._validate_inputs(train_df, label_column)
                X = train_df[predictors].to_numpy(dtype=np.float32)
                y = train_df[label_column].to_numpy()

                folds = list(StratifiedKFold(
                    n_splits=self.config.cv_folds, shuffle=True, random_state=self.config.seed
                ).split(X, y))

                fold_scores = self._run_grid(X, y, folds)
                cv_results = self._aggregate(fold_scores)
                best_mtry = self._select(cv_results)

            logger.info(
                f"Selected mtry={best_mtry} with mean CV accuracy "
                f"{cv_results.loc[best_mtry, 'mean_accuracy']:.4f}"
            )

            with timed_operation("final_refit"):
                model = TrainedModel.fit(
                    train_df[predictors + [label_column]],
                    label_column,
                    mtry=best_mtry,
                    tree_count=self.config.tree_count,
                    min_node_size=self.config.min_node_size,
                    seed=self.config.seed,
                    n_jobs=self.n_jobs,
                    compute_importance=self.config.importance_method == "permutation",
                )

        return CrossValidationResult(
            model=model,
            best_mtry=best_mtry,
            cv_results=cv_results,
            fold_scores=fold_scores,
            cv_folds=self.config.cv_folds,
            training_time=timing['duration'],
        )

    def _run_grid(
        self,
        X: np.ndarray,
        y: np.ndarray,
        folds: List[Tuple[np.ndarray, np.ndarray]]
    ) -> List[FoldScore]:
        units = [
            ((mtry, fold), (X, y, train_idx, valid_idx, mtry, fold,
                            self.config.tree_count, self.config.min_node_size, self.config.seed))
            for mtry in self.config.mtry_grid
            for fold, (train_idx, valid_idx) in enumerate(folds)
        ]
        logger.info(f"Evaluating {len(units)} (mtry, fold) units")

        try:
            results = parallel_map(_score_fold, units, n_jobs=self.n_jobs)
        except ModelTrainingError:
            raise
        except Exception as e:
            raise ModelTrainingError(
                f"Cross-validation work unit failed: {e}",
                error_code="CV_UNIT_FAILED",
                context={"mtry_grid": list(self.config.mtry_grid), "cv_folds": len(folds),
                         "original_error_type": type(e).__name__}
            ) from e

        scores = [results[key] for key in sorted(results)]
        for score in scores:
            logger.debug(
                f"mtry={score.mtry} fold={score.fold}: accuracy {score.accuracy:.4f} "
                f"(NIR {score.no_information_rate:.4f})"
            )
        return scores

    @staticmethod
    def _aggregate(fold_scores: List[FoldScore]) -> pd.DataFrame:
        frame = pd.DataFrame([{
            "mtry": s.mtry,
            "accuracy": s.accuracy,
            "above_chance": s.above_chance,
        } for s in fold_scores])
        grouped = frame.groupby("mtry")
        return pd.DataFrame({
            "mean_accuracy": grouped["accuracy"].mean(),
            "std_accuracy": grouped["accuracy"].std(ddof=1).fillna(0.0),
            "min_accuracy": grouped["accuracy"].min(),
            "all_folds_above_chance": grouped["above_chance"].all(),
        }).sort_index()

    @staticmethod
    def _select(cv_results: pd.DataFrame) -> int:
        """Best mean accuracy, smallest mtry on ties."""
        if not cv_results["all_folds_above_chance"].any():
            raise ConvergenceError(
                "No mtry value beat the no-information rate on every fold",
                error_code="NO_CONVERGENCE",
                context={"mean_accuracy": cv_results["mean_accuracy"].round(4).to_dict()}
            )
        best = cv_results["mean_accuracy"].max()
        # Index is sorted ascending, so the first match is the smallest mtry
        return int(cv_results.index[cv_results["mean_accuracy"] == best][0])


def train_model(
    train_df: pd.DataFrame,
    label_column: str,
    config: Optional[PipelineConfig] = None,
    **overrides: Any
) -> CrossValidationResult:
    """Convenience wrapper around :class:`CrossValidatedTrainer`.

    Example:
        >>> result = train_model(split.train, 'classe', mtry_grid=(5, 9))
    """
    if overrides:
        base = (config or PipelineConfig()).to_dict()
        base.update(overrides)
        config = PipelineConfig.from_dict(base)
    return CrossValidatedTrainer(config).fit(train_df, label_column)
