# lift_quality/models/forest.py
"""Fitted tree ensemble with majority-vote prediction and out-of-bag statistics.

The ensemble is a scikit-learn ``RandomForestClassifier`` (bootstrap
resamples, ``mtry`` candidate predictors per split, Gini impurity, trees
grown to ``min_node_size`` without pruning). This module adds what the
analysis needs on top of it:

- hard majority voting across trees (ties go to the first class in
  sorted order), instead of scikit-learn's probability averaging;
- the out-of-bag error, from each row's vote among the trees that did not
  see it;
- out-of-bag permutation importance, computed once at fit time.
"""

from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestClassifier

from ..utils.logger import get_logger
from ..utils.parallel import parallel_map, resolve_n_jobs
from ..utils.exceptions import SchemaMismatchError, ModelTrainingError

logger = get_logger(__name__)


def build_forest(
    X: np.ndarray,
    y: np.ndarray,
    mtry: int,
    tree_count: int,
    min_node_size: int = 1,
    seed: int = 312,
    n_jobs: Optional[int] = 1
) -> RandomForestClassifier:
    """Fit a random forest on numeric arrays.

    Args:
        X: Predictor matrix (NaN allowed)
        y: Label vector
        mtry: Number of predictors sampled as split candidates at each node
        tree_count: Number of trees
        min_node_size: Minimum number of rows in a terminal node
        seed: Random state for bootstrap and feature sampling
        n_jobs: Trees fitted in parallel

    Returns:
        Fitted RandomForestClassifier
    """
    forest = RandomForestClassifier(
        n_estimators=tree_count,
        criterion="gini",
        max_features=mtry,
        min_samples_leaf=min_node_size,
        bootstrap=True,
        random_state=seed,
        n_jobs=n_jobs,
    )
    forest.fit(X, y)
    return forest


def vote_counts(forest: RandomForestClassifier, X: np.ndarray) -> np.ndarray:
    """Count the trees voting for each class, shape ``(n_rows, n_classes)``."""
    n_classes = len(forest.classes_)
    counts = np.zeros((X.shape[0], n_classes), dtype=np.int32)
    rows = np.arange(X.shape[0])
    for tree in forest.estimators_:
        # Trees inside a forest predict encoded class indices
        counts[rows, tree.predict(X).astype(np.intp)] += 1
    return counts


def majority_vote(counts: np.ndarray) -> np.ndarray:
    """Index of the most voted class per row; ties resolve to the lowest index."""
    return np.argmax(counts, axis=1)


def oob_masks(forest: RandomForestClassifier, n_rows: int) -> List[np.ndarray]:
    """Boolean out-of-bag mask per tree."""
    masks = []
    for in_bag in forest.estimators_samples_:
        mask = np.ones(n_rows, dtype=bool)
        mask[in_bag] = False
        masks.append(mask)
    return masks


def _tree_permutation_drops(tree, X_oob: np.ndarray, y_oob: np.ndarray, seed: int) -> np.ndarray:
    """Accuracy drop on one tree's OOB rows when each predictor is shuffled."""
    rng = np.random.default_rng(seed)
    baseline = np.mean(tree.predict(X_oob).astype(np.intp) == y_oob)
    drops = np.empty(X_oob.shape[1])
    X_work = X_oob.copy()
    for j in range(X_oob.shape[1]):
        X_work[:, j] = rng.permutation(X_oob[:, j])
        drops[j] = baseline - np.mean(tree.predict(X_work).astype(np.intp) == y_oob)
        X_work[:, j] = X_oob[:, j]
    return drops


class TrainedModel:
    """An immutable fitted ensemble plus the configuration that produced it.

    Build one with :meth:`fit`. Prediction requires the predictor columns
    the model was trained on; column order and extra columns do not matter.
    """

    def __init__(
        self,
        forest: RandomForestClassifier,
        predictors: Sequence[str],
        label_column: str,
        mtry: int,
        min_node_size: int,
        seed: int,
        oob_error: float,
        n_oob_rows: int,
        importance: pd.DataFrame
    ) -> None:
        self._forest = forest
        self._predictors = tuple(predictors)
        self._label_column = label_column
        self._mtry = mtry
        self._min_node_size = min_node_size
        self._seed = seed
        self._oob_error = oob_error
        self._n_oob_rows = n_oob_rows
        self._importance = importance

    @classmethod
    def fit(
        cls,
        train_df: pd.DataFrame,
        label_column: str,
        mtry: int,
        tree_count: int,
        min_node_size: int = 1,
        seed: int = 312,
        n_jobs: Optional[int] = None,
        compute_importance: bool = True
    ) -> "TrainedModel":
        """Fit an ensemble on every non-label column of ``train_df``.

        Args:
            train_df: Filtered training frame (numeric predictors + label)
            label_column: Name of the label column
            mtry: Predictors sampled per split
            tree_count: Number of trees
            min_node_size: Minimum terminal node size
            seed: Random state
            n_jobs: Worker count for tree fitting and importance (None -> cores minus one)
            compute_importance: Whether to compute OOB permutation importance

        Returns:
            Fitted TrainedModel
        """
        predictors = [c for c in train_df.columns if c != label_column]
        X = train_df[predictors].to_numpy(dtype=np.float32)
        y = train_df[label_column].to_numpy()
        workers = resolve_n_jobs(n_jobs)

        try:
            forest = build_forest(X, y, mtry, tree_count, min_node_size, seed, n_jobs=workers)
        except ValueError as e:
            raise ModelTrainingError(
                f"Ensemble fit failed: {e}",
                error_code="FOREST_FIT_FAILED",
                context={"mtry": mtry, "tree_count": tree_count, "n_predictors": len(predictors)}
            ) from e

        y_idx = np.searchsorted(forest.classes_, y)
        masks = oob_masks(forest, len(y))

        oob_counts = np.zeros((len(y), len(forest.classes_)), dtype=np.int32)
        for tree, mask in zip(forest.estimators_, masks):
            rows = np.flatnonzero(mask)
            if rows.size:
                oob_counts[rows, tree.predict(X[rows]).astype(np.intp)] += 1

        voted = oob_counts.sum(axis=1) > 0
        n_oob_rows = int(voted.sum())
        if n_oob_rows:
            oob_error = float(np.mean(majority_vote(oob_counts[voted]) != y_idx[voted]))
        else:
            oob_error = float("nan")

        impurity = pd.Series(forest.feature_importances_, index=predictors)
        importance = pd.DataFrame({
            "permutation_mean": np.nan,
            "permutation_std": np.nan,
            "impurity": impurity,
        }, index=pd.Index(predictors, name="variable"))

        if compute_importance:
            seeds = np.random.SeedSequence(seed).generate_state(len(masks))
            units = [
                (t, (tree, X[mask], y_idx[mask], int(seeds[t])))
                for t, (tree, mask) in enumerate(zip(forest.estimators_, masks))
                if mask.any()
            ]
            drops_by_tree = parallel_map(_tree_permutation_drops, units, n_jobs=workers)
            if drops_by_tree:
                drops = np.vstack([drops_by_tree[t] for t in sorted(drops_by_tree)])
                importance["permutation_mean"] = drops.mean(axis=0)
                importance["permutation_std"] = drops.std(axis=0, ddof=1) if len(drops) > 1 else 0.0

        logger.info(
            f"Fitted {tree_count} trees (mtry={mtry}) on {len(y)} rows x {len(predictors)} "
            f"predictors; OOB error {oob_error:.4f} over {n_oob_rows} rows"
        )

        return cls(
            forest=forest,
            predictors=predictors,
            label_column=label_column,
            mtry=mtry,
            min_node_size=min_node_size,
            seed=seed,
            oob_error=oob_error,
            n_oob_rows=n_oob_rows,
            importance=importance,
        )

    # Read-only views of fitted state
    @property
    def predictors(self) -> List[str]:
        return list(self._predictors)

    @property
    def label_column(self) -> str:
        return self._label_column

    @property
    def classes(self) -> List[str]:
        return list(self._forest.classes_)

    @property
    def mtry(self) -> int:
        return self._mtry

    @property
    def tree_count(self) -> int:
        return len(self._forest.estimators_)

    @property
    def min_node_size(self) -> int:
        return self._min_node_size

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def oob_error(self) -> float:
        """Share of out-of-bag rows misclassified by their OOB majority vote."""
        return self._oob_error

    @property
    def n_oob_rows(self) -> int:
        return self._n_oob_rows

    @property
    def estimator(self) -> RandomForestClassifier:
        """The underlying scikit-learn forest (do not refit it)."""
        return self._forest

    def feature_importance(self) -> pd.DataFrame:
        """Per-variable importance table (copy).

        Columns: ``permutation_mean`` and ``permutation_std`` (OOB accuracy
        drop averaged over trees; NaN when not computed) and ``impurity``
        (mean decrease in Gini impurity).
        """
        return self._importance.copy()

    def get_params(self) -> Dict[str, object]:
        return {
            "mtry": self._mtry,
            "tree_count": self.tree_count,
            "min_node_size": self._min_node_size,
            "seed": self._seed,
        }

    def _predictor_matrix(self, df: pd.DataFrame) -> np.ndarray:
        missing = [c for c in self._predictors if c not in df.columns]
        if missing:
            raise SchemaMismatchError(
                f"Input is missing {len(missing)} predictor column(s): {missing}",
                error_code="PREDICTORS_MISSING",
                context={"stage": "predict", "missing_columns": missing}
            )
        try:
            return df[list(self._predictors)].to_numpy(dtype=np.float32)
        except (TypeError, ValueError) as e:
            raise SchemaMismatchError(
                f"Predictor columns must be numeric: {e}",
                error_code="PREDICTORS_NOT_NUMERIC",
                context={"stage": "predict"}
            ) from e

    def predict_votes(self, df: pd.DataFrame) -> pd.DataFrame:
        """Fraction of trees voting for each class, one row per input row."""
        counts = vote_counts(self._forest, self._predictor_matrix(df))
        return pd.DataFrame(
            counts / float(self.tree_count),
            index=df.index,
            columns=pd.Index(self.classes, name="class"),
        )

    def predict(self, df: pd.DataFrame) -> pd.Series:
        """Majority-vote label for every row of ``df``.

        Raises:
            SchemaMismatchError: If predictor columns are absent or non-numeric
        """
        counts = vote_counts(self._forest, self._predictor_matrix(df))
        labels = self._forest.classes_[majority_vote(counts)]
        return pd.Series(labels, index=df.index, name="predicted")

    def __repr__(self) -> str:
        return (
            f"TrainedModel(trees={self.tree_count}, mtry={self._mtry}, "
            f"predictors={len(self._predictors)}, classes={self.classes}, "
            f"oob_error={self._oob_error:.4f})"
        )
