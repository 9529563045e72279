# lift_quality/models/importance.py
"""Ranked variable importance read from a fitted model.

Two measures are available, both computed when the model was fitted:

- ``permutation``: mean over trees of the drop in out-of-bag accuracy when
  one variable is shuffled among that tree's out-of-bag rows;
- ``impurity``: mean decrease in Gini impurity.

Ranking never refits or re-scores anything.
"""

from pathlib import Path
from typing import List, Optional, Tuple, Union

import pandas as pd

from .forest import TrainedModel
from ..config.pipeline_config import IMPORTANCE_METHODS
from ..utils.logger import get_logger
from ..utils.plot_utils import plot_feature_importance
from ..utils.exceptions import ConfigurationError, validate_parameter

logger = get_logger(__name__)

_METHOD_COLUMNS = {
    "permutation": "permutation_mean",
    "impurity": "impurity",
}


class ImportanceRanker:
    """Orders a model's predictors by importance, highest first.

    Example:
        >>> ranker = ImportanceRanker(method='permutation')
        >>> ranker.rank(model, top_n=3)
        [('roll_belt', 0.091), ('yaw_belt', 0.074), ('pitch_forearm', 0.061)]
    """

    def __init__(self, method: str = "permutation") -> None:
        validate_parameter("method", method, valid_values=IMPORTANCE_METHODS)
        self.method = method

    def scores(self, model: TrainedModel) -> pd.Series:
        """Non-negative score per variable, sorted descending (ties by name)."""
        table = model.feature_importance()
        column = _METHOD_COLUMNS[self.method]
        raw = table[column]

        if raw.isna().all():
            raise ConfigurationError(
                f"Model was fitted without {self.method} importance",
                error_code="IMPORTANCE_NOT_COMPUTED",
                context={"stage": "importance_ranker", "method": self.method}
            )

        # Shuffling can help a tree by chance; such variables carry no signal
        scores = raw.clip(lower=0.0).fillna(0.0)
        ordered = sorted(scores.items(), key=lambda item: (-item[1], str(item[0])))
        return pd.Series(
            [score for _, score in ordered],
            index=pd.Index([name for name, _ in ordered], name="variable"),
            name=self.method,
        )

    def rank(self, model: TrainedModel, top_n: Optional[int] = None) -> List[Tuple[str, float]]:
        """Return ``(variable, score)`` pairs sorted by descending score.

        Args:
            model: Fitted model
            top_n: Optional number of leading variables to return

        Returns:
            List of (variable name, importance score)
        """
        if top_n is not None:
            validate_parameter("top_n", top_n, min_value=1)

        ranking = [(str(name), float(score)) for name, score in self.scores(model).items()]
        if top_n is not None:
            ranking = ranking[:top_n]

        logger.debug(f"Top variables by {self.method} importance: {ranking[:5]}")
        return ranking

    def plot(
        self,
        model: TrainedModel,
        top_n: int = 20,
        save_path: Optional[Union[str, Path]] = None
    ):
        """Bar chart of the ``top_n`` most important variables."""
        return plot_feature_importance(
            self.rank(model),
            title=f"Variable Importance ({self.method})",
            top_k=top_n,
            save_path=save_path,
        )


def rank_importance(
    model: TrainedModel,
    method: str = "permutation",
    top_n: Optional[int] = None
) -> List[Tuple[str, float]]:
    """Convenience function returning the sorted importance listing."""
    return ImportanceRanker(method).rank(model, top_n=top_n)

