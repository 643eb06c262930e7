"""
Resampling Engine
=================

Responsibility:
- Repeated k-fold cross-validation of a single parameter configuration.
- Fold partitions fixed per plan and shared across candidates.
- Accuracy / kappa / balanced accuracy scoring of held-out folds.
"""

from .resampling_plan import ResamplingPlan
from .evaluation_result import EvaluationResult
from .resampling_engine import ResamplingEvaluator, FoldSplit, METRICS

__all__ = ['ResamplingPlan', 'EvaluationResult', 'ResamplingEvaluator', 'FoldSplit', 'METRICS']
