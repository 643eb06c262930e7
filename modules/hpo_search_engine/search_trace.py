from typing import Any, Dict, List, Optional, Sequence

from modules.resampling_engine.evaluation_result import EvaluationResult
from utils.exceptions import EmptyCandidateSetError


def select_best(results: Sequence[EvaluationResult]) -> int:
    """
    Index of the result with the maximal mean score.
    Exact ties keep the earliest result.
    """
    if not results:
        raise EmptyCandidateSetError("Cannot select a best configuration from an empty result set.")
    best_index = 0
    best_mean = results[0].mean
    for i, result in enumerate(results[1:], start=1):
        if result.mean > best_mean:
            best_index, best_mean = i, result.mean
    return best_index


class SearchTrace:
    """
    Ordered evaluation results of one search plus the best candidate.

    Results are appended in candidate generation order; `finalize` picks
    the best once the generator is exhausted.
    """

    def __init__(self, metric: str, strategy: Optional[str] = None):
        self.metric = metric
        self.strategy = strategy
        self.results: List[EvaluationResult] = []
        self.best_index: Optional[int] = None

    def append(self, result: EvaluationResult) -> None:
        self.results.append(result)

    def finalize(self) -> "SearchTrace":
        self.best_index = select_best(self.results)
        return self

    @property
    def best(self) -> EvaluationResult:
        if self.best_index is None:
            self.finalize()
        return self.results[self.best_index]

    @property
    def best_id(self) -> int:
        return self.best.candidate_id

    @property
    def best_params(self) -> Dict[str, Any]:
        return dict(self.best.params)

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self):
        return iter(self.results)

    def __getitem__(self, index) -> EvaluationResult:
        return self.results[index]

    def __repr__(self) -> str:
        best = f", best_id={self.best_id}" if self.best_index is not None else ""
        return f"SearchTrace(strategy={self.strategy!r}, metric={self.metric!r}, n_results={len(self)}{best})"
