"""Model components: tree ensemble, cross-validated training, evaluation, importance."""

from .forest import TrainedModel, build_forest, majority_vote, vote_counts
from .trainer import CrossValidatedTrainer, CrossValidationResult, FoldScore, train_model
from .evaluator import (
    ConfusionMatrixReport,
    ModelEvaluator,
    accuracy_confidence_interval,
    evaluate_model
)
from .importance import ImportanceRanker, rank_importance

__all__ = [
    'TrainedModel',
    'build_forest',
    'majority_vote',
    'vote_counts',
    'CrossValidatedTrainer',
    'CrossValidationResult',
    'FoldScore',
    'train_model',
    'ConfusionMatrixReport',
    'ModelEvaluator',
    'accuracy_confidence_interval',
    'evaluate_model',
    'ImportanceRanker',
    'rank_importance'
]
