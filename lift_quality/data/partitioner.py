# lift_quality/data/partitioner.py
"""Seeded, stratified train/holdout partitioning."""

import math
from dataclasses import dataclass
from typing import Dict, List

import numpy as np
import pandas as pd

from ..utils.logger import get_logger
from ..utils.error_handling import stage_context
from ..utils.exceptions import ConfigurationError, InsufficientDataError

logger = get_logger(__name__)


@dataclass
class DataSplit:
    """Disjoint training and holdout subsets of one filtered dataset.

    ``train_positions`` and ``holdout_positions`` are sorted row positions
    (``iloc`` offsets) into the frame that was split.
    """

    train: pd.DataFrame
    holdout: pd.DataFrame
    train_positions: np.ndarray
    holdout_positions: np.ndarray
    label_column: str

    @property
    def sizes(self) -> Dict[str, int]:
        return {"train": len(self.train), "holdout": len(self.holdout)}

    def class_proportions(self) -> pd.DataFrame:
        """Share of each class in the training and holdout subsets."""
        return pd.DataFrame({
            "train": self.train[self.label_column].value_counts(normalize=True),
            "holdout": self.holdout[self.label_column].value_counts(normalize=True),
        }).fillna(0.0).sort_index()


class StratifiedPartitioner:
    """Splits rows so each class keeps its share in both subsets.

    For a class with ``n`` rows, ``min(ceil(p * n), n - 1)`` rows go to
    training, so every class is represented in both subsets. Classes are
    visited in sorted order with one ``numpy`` generator seeded by ``seed``,
    which makes the split a pure function of (data, p, seed).

    Example:
        >>> split = StratifiedPartitioner('classe', train_fraction=0.75, seed=312).split(df)
        >>> split.sizes
        {'train': 14718, 'holdout': 4904}
    """

    def __init__(self, label_column: str, train_fraction: float = 0.75, seed: int = 312) -> None:
        if not 0.0 < train_fraction < 1.0:
            raise ConfigurationError(
                f"train_fraction must lie strictly between 0 and 1, got {train_fraction}",
                error_code="PARAM_OUT_OF_RANGE",
                context={"parameter": "train_fraction", "value": train_fraction}
            )
        self.label_column = label_column
        self.train_fraction = train_fraction
        self.seed = seed

    def split(self, df: pd.DataFrame) -> DataSplit:
        """Partition ``df`` into training and holdout frames.

        Raises:
            InsufficientDataError: If a label is missing or a class has fewer than 2 rows
        """
        with stage_context("partitioner", default_error=InsufficientDataError):
            if self.label_column not in df.columns:
                raise InsufficientDataError(
                    f"Label column '{self.label_column}' not found; cannot stratify",
                    error_code="LABEL_MISSING",
                    context={"label_column": self.label_column}
                )

            labels = df[self.label_column]
            n_unlabeled = int(labels.isna().sum())
            if n_unlabeled:
                raise InsufficientDataError(
                    f"{n_unlabeled} rows have no label; cannot stratify",
                    error_code="UNLABELED_ROWS",
                    context={"label_column": self.label_column, "n_unlabeled": n_unlabeled}
                )

            counts = labels.value_counts()
            too_small = sorted(str(c) for c, n in counts.items() if n < 2)
            if too_small:
                raise InsufficientDataError(
                    f"Classes with fewer than 2 rows cannot be stratified: {too_small}",
                    error_code="CLASS_TOO_SMALL",
                    context={"classes": too_small}
                )

            rng = np.random.default_rng(self.seed)
            label_values = labels.to_numpy()
            train_positions: List[np.ndarray] = []

            for cls in sorted(counts.index, key=str):
                positions = np.flatnonzero(label_values == cls)
                n_train = min(math.ceil(round(self.train_fraction * len(positions), 9)), len(positions) - 1)
                train_positions.append(rng.permutation(positions)[:n_train])

            train_pos = np.sort(np.concatenate(train_positions))
            holdout_mask = np.ones(len(df), dtype=bool)
            holdout_mask[train_pos] = False
            holdout_pos = np.flatnonzero(holdout_mask)

            split = DataSplit(
                train=df.iloc[train_pos].copy(),
                holdout=df.iloc[holdout_pos].copy(),
                train_positions=train_pos,
                holdout_positions=holdout_pos,
                label_column=self.label_column,
            )

        logger.info(
            f"Stratified split (p={self.train_fraction}, seed={self.seed}): "
            f"{len(split.train)} training rows, {len(split.holdout)} holdout rows"
        )
        return split


def stratified_split(
    df: pd.DataFrame,
    label_column: str,
    train_fraction: float = 0.75,
    seed: int = 312
) -> DataSplit:
    """Functional form of :class:`StratifiedPartitioner`."""
    return StratifiedPartitioner(label_column, train_fraction, seed).split(df)
