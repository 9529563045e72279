"""Plotting utilities for holdout evaluation and variable importance.

Figures are returned to the caller; a ``save_path`` writes them to disk.
"""

from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from .exceptions import FileOperationError
from .logger import get_logger

logger = get_logger(__name__)

PLOT_DPI = 150


def save_plot(fig: plt.Figure, filepath: Union[str, Path],
              close_after_save: bool = True) -> Path:
    """Save matplotlib figure to file.

    Args:
        fig: Matplotlib figure
        filepath: Output file path (parent directories are created)
        close_after_save: Whether to close figure after saving

    Returns:
        Path the figure was written to

    Raises:
        FileOperationError: If the file cannot be written
    """
    filepath = Path(filepath)
    try:
        filepath.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(filepath, dpi=PLOT_DPI, bbox_inches='tight')
    except OSError as e:
        raise FileOperationError(
            f"Failed to save plot: {filepath}",
            error_code="PLOT_SAVE_FAILED",
            context={'path': str(filepath), 'error': str(e)}
        ) from e

    logger.info(f"Saved plot to {filepath}")

    if close_after_save:
        plt.close(fig)
    return filepath


def plot_confusion_matrix(matrix: pd.DataFrame,
                          title: str = "Holdout Confusion Matrix",
                          save_path: Optional[Union[str, Path]] = None) -> plt.Figure:
    """Plot a confusion matrix heatmap (rows = true class, columns = predicted).

    Args:
        matrix: Square count table as produced by the evaluator
        title: Plot title
        save_path: Optional path to save plot

    Returns:
        Matplotlib figure
    """
    size = max(5, 1.2 * len(matrix))
    fig, ax = plt.subplots(figsize=(size, size * 0.8))

    sns.heatmap(matrix, annot=True, fmt='d', cmap='Blues', cbar=False, ax=ax)
    ax.set_title(title)
    ax.set_ylabel('True class')
    ax.set_xlabel('Predicted class')
    fig.tight_layout()

    if save_path:
        save_plot(fig, save_path, close_after_save=False)

    return fig


def plot_feature_importance(ranking: Sequence[Tuple[str, float]],
                            title: str = "Variable Importance",
                            top_k: int = 20,
                            save_path: Optional[Union[str, Path]] = None) -> plt.Figure:
    """Plot the top-ranked variables as a horizontal bar chart.

    Args:
        ranking: ``(variable, score)`` pairs sorted descending
        title: Plot title
        top_k: Number of top variables to display
        save_path: Optional path to save plot

    Returns:
        Matplotlib figure
    """
    top: List[Tuple[str, float]] = list(ranking)[:top_k]
    importance_df = pd.DataFrame(top, columns=['variable', 'importance']).iloc[::-1]

    fig, ax = plt.subplots(figsize=(10, max(4, len(top) * 0.4)))
    ax.barh(importance_df['variable'], importance_df['importance'], color=sns.color_palette()[0])

    ax.set_xlabel('Importance')
    ax.set_title(f'{title} (Top {len(top)})')
    ax.grid(True, alpha=0.3, axis='x')
    fig.tight_layout()

    if save_path:
        save_plot(fig, save_path, close_after_save=False)

    return fig
