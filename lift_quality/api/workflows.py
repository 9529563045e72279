"""End-to-end pipeline orchestration.

``run_pipeline`` chains the stages:
load -> filter -> stratified split -> cross-validated training ->
holdout evaluation -> importance ranking.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import matplotlib.pyplot as plt
import pandas as pd

from ..config.pipeline_config import PipelineConfig
from ..data.loader import DatasetLoader, SourceType
from ..data.feature_filter import FeatureFilter, FilterReport
from ..data.partitioner import DataSplit, StratifiedPartitioner
from ..models.trainer import CrossValidatedTrainer, CrossValidationResult
from ..models.evaluator import ConfusionMatrixReport, ModelEvaluator
from ..models.importance import ImportanceRanker
from ..models.forest import TrainedModel
from ..utils.logger import get_logger
from ..utils.timer import PerformanceTracker, timed_operation
from ..utils.exceptions import FileOperationError

logger = get_logger(__name__)


@dataclass
class PipelineResults:
    """Everything the analysis produces."""

    config: PipelineConfig
    filter_report: FilterReport
    split_sizes: Dict[str, int]
    training: CrossValidationResult
    evaluation: ConfusionMatrixReport
    importance: List[Tuple[str, float]]
    timings: Dict[str, float] = field(default_factory=dict)

    @property
    def model(self) -> TrainedModel:
        return self.training.model

    @property
    def oob_error(self) -> float:
        return self.training.model.oob_error

    @property
    def holdout_accuracy(self) -> float:
        return self.evaluation.accuracy

    def summary(self, top_n: int = 10) -> str:
        """Human-readable report of the run."""
        lines = [
            "Exercise quality classification",
            "=" * 40,
            f"Predictors retained : {self.filter_report.n_predictors} "
            f"(of {self.filter_report.n_predictors + len(self.filter_report.dropped_missing)} "
            f"after dropping {len(self.filter_report.dropped_prefix)} metadata columns)",
            f"Training / holdout  : {self.split_sizes['train']} / {self.split_sizes['holdout']}",
            "",
            f"Cross-validation ({self.training.cv_folds} folds, {self.model.tree_count} trees):",
            self.training.cv_results.round(4).to_string(),
            f"Selected mtry       : {self.training.best_mtry}",
            f"OOB error estimate  : {self.oob_error:.4f}",
            "",
            self.evaluation.summary(),
            "",
            f"Top {top_n} variables ({self.config.importance_method} importance):",
        ]
        lines.extend(f"  {rank:2d}. {name:<24s} {score:.4f}"
                     for rank, (name, score) in enumerate(self.importance[:top_n], 1))
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "config": self.config.to_dict(),
            "filter": self.filter_report.to_dict(),
            "split_sizes": dict(self.split_sizes),
            "cv_results": {int(k): v for k, v in self.training.cv_results.to_dict(orient="index").items()},
            "best_mtry": self.training.best_mtry,
            "oob_error": self.oob_error,
            "evaluation": self.evaluation.to_dict(),
            "importance": [[name, score] for name, score in self.importance],
            "timings": dict(self.timings),
        }

    def save(self, output_dir: Union[str, Path], plots: bool = True, top_n: int = 20) -> Dict[str, Path]:
        """Write ``results.json`` (and optionally plots) to ``output_dir``."""
        output_dir = Path(output_dir)
        written: Dict[str, Path] = {}
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            results_path = output_dir / "results.json"
            with open(results_path, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, indent=2, default=str)
            written["results"] = results_path
        except OSError as e:
            raise FileOperationError(
                f"Failed to write results to {output_dir}",
                error_code="RESULTS_SAVE_FAILED",
                context={"output_dir": str(output_dir), "error": str(e)}
            ) from e

        if plots:
            written["confusion_matrix"] = output_dir / "confusion_matrix.png"
            fig = ModelEvaluator().plot_confusion_matrix(
                self.evaluation, save_path=written["confusion_matrix"])
            plt.close(fig)

            written["importance"] = output_dir / "importance.png"
            fig = ImportanceRanker(self.config.importance_method).plot(
                self.model, top_n=top_n, save_path=written["importance"])
            plt.close(fig)

        logger.info(f"Saved pipeline results to {output_dir}")
        return written


class ExerciseQualityPipeline:
    """Runs every stage with one configuration.

    Example:
        >>> pipeline = ExerciseQualityPipeline(PipelineConfig(seed=312))
        >>> results = pipeline.run("pml-training.csv")
        >>> print(results.summary())
    """

    def __init__(self, config: Optional[PipelineConfig] = None) -> None:
        self.config = config or PipelineConfig()

    def load(self, source: SourceType) -> pd.DataFrame:
        return DatasetLoader(na_tokens=self.config.na_tokens, delimiter=self.config.delimiter).load(source)

    def prepare(self, raw_df: pd.DataFrame) -> Tuple[FilterReport, DataSplit]:
        """Filter columns and split rows."""
        feature_filter = FeatureFilter(
            self.config.label_column,
            drop_prefix_count=self.config.drop_prefix_count,
            missingness_threshold=self.config.missingness_threshold,
        )
        filtered = feature_filter.fit_transform(raw_df)
        split = StratifiedPartitioner(
            self.config.label_column,
            train_fraction=self.config.train_fraction,
            seed=self.config.seed,
        ).split(filtered)
        return feature_filter.report_, split

    def run(self, source: Union[SourceType, pd.DataFrame]) -> PipelineResults:
        """Run the full analysis on a path, buffer or already-loaded frame."""
        tracker = PerformanceTracker()

        with timed_operation("load", tracker):
            raw_df = source.copy() if isinstance(source, pd.DataFrame) else self.load(source)

        with timed_operation("prepare", tracker):
            filter_report, split = self.prepare(raw_df)

        with timed_operation("train", tracker):
            training = CrossValidatedTrainer(self.config).fit(split.train, self.config.label_column)

        with timed_operation("evaluate", tracker):
            evaluation = ModelEvaluator().evaluate(training.model, split.holdout, self.config.label_column)
            importance = ImportanceRanker(self.config.importance_method).rank(training.model)

        logger.info(
            f"Pipeline finished: mtry={training.best_mtry}, OOB error {training.model.oob_error:.4f}, "
            f"holdout accuracy {evaluation.accuracy:.4f}"
        )

        return PipelineResults(
            config=self.config,
            filter_report=filter_report,
            split_sizes=split.sizes,
            training=training,
            evaluation=evaluation,
            importance=importance,
            timings=tracker.totals(),
        )


def run_pipeline(
    source: Union[SourceType, pd.DataFrame],
    config: Optional[PipelineConfig] = None,
    output_dir: Optional[Union[str, Path]] = None,
    **overrides: Any
) -> PipelineResults:
    """Run the complete analysis in a single call.

    Args:
        source: Path, buffer, or raw DataFrame
        config: Pipeline configuration (defaults reproduce the reference run)
        output_dir: Optional directory for results.json and plots
        **overrides: Individual config fields to override

    Returns:
        PipelineResults

    Example:
        >>> results = run_pipeline("pml-training.csv", seed=312)
        >>> round(results.holdout_accuracy, 3)
        0.994
    """
    if overrides:
        base = (config or PipelineConfig()).to_dict()
        base.update(overrides)
        config = PipelineConfig.from_dict(base)

    results = ExerciseQualityPipeline(config).run(source)
    if output_dir is not None:
        results.save(output_dir)
    return results
