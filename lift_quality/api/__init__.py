"""High-level workflow API."""

from .workflows import ExerciseQualityPipeline, PipelineResults, run_pipeline

__all__ = [
    'ExerciseQualityPipeline',
    'PipelineResults',
    'run_pipeline'
]
