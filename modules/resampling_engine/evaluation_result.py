from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

import numpy as np


@dataclass(frozen=True)
class EvaluationResult:
    """
    One parameter configuration and the per-fold-per-repeat scores it produced.

    `scores` holds the primary metric in repeat-major, fold-minor order;
    `secondary_scores` holds any additional metrics in the same order.
    """
    candidate_id: int
    params: Dict[str, Any]
    scores: Tuple[float, ...]
    metric: str = "accuracy"
    secondary_scores: Dict[str, Tuple[float, ...]] = field(default_factory=dict)

    @property
    def mean(self) -> float:
        return float(np.mean(self.scores))

    @property
    def std(self) -> float:
        """Sample standard deviation (ddof=1); 0.0 for a single score."""
        if len(self.scores) < 2:
            return 0.0
        return float(np.std(self.scores, ddof=1))

    @property
    def min(self) -> float:
        return float(np.min(self.scores))

    @property
    def max(self) -> float:
        return float(np.max(self.scores))

    def secondary_mean(self, metric: str) -> float:
        return float(np.mean(self.secondary_scores[metric]))

    def to_record(self) -> Dict[str, Any]:
        """JSON-friendly representation used by the progress log."""
        return {
            'candidate_id': self.candidate_id,
            'params': dict(self.params),
            'metric': self.metric,
            'scores': [float(s) for s in self.scores],
            'secondary_scores': {k: [float(s) for s in v] for k, v in self.secondary_scores.items()},
            'mean': self.mean,
            'std': self.std,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any], candidate_id: int = None) -> "EvaluationResult":
        return cls(
            candidate_id=record['candidate_id'] if candidate_id is None else candidate_id,
            params=dict(record['params']),
            scores=tuple(float(s) for s in record['scores']),
            metric=record.get('metric', 'accuracy'),
            secondary_scores={k: tuple(float(s) for s in v)
                              for k, v in record.get('secondary_scores', {}).items()},
        )
