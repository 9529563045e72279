"""Data stages: loading, feature filtering and stratified partitioning."""

from .loader import DatasetLoader, load_dataset
from .feature_filter import FeatureFilter, FilterReport, filter_features
from .partitioner import DataSplit, StratifiedPartitioner, stratified_split

__all__ = [
    'DatasetLoader',
    'load_dataset',
    'FeatureFilter',
    'FilterReport',
    'filter_features',
    'DataSplit',
    'StratifiedPartitioner',
    'stratified_split'
]
