import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from sklearn.metrics import accuracy_score, balanced_accuracy_score, cohen_kappa_score
from sklearn.model_selection import KFold, StratifiedKFold

from modules.data_manager.dataset import Dataset
from modules.model_factory import TrainingFunction
from modules.resampling_engine.evaluation_result import EvaluationResult
from modules.resampling_engine.resampling_plan import ResamplingPlan
from utils.error_handling import model_fit_guard
from utils.exceptions import EvaluationFailureError, InvalidConfigurationError
from utils import constants


def _kappa(y_true, y_pred) -> float:
    # A fold where truth and prediction hold one identical class has kappa 0/0
    score = cohen_kappa_score(y_true, y_pred)
    return 0.0 if np.isnan(score) else float(score)


METRICS = {
    'accuracy': accuracy_score,
    'kappa': _kappa,
    'balanced_accuracy': balanced_accuracy_score,
}


class FoldSplit:
    """Train/test indices of one fold of one repeat."""

    __slots__ = ('repeat', 'fold', 'train_index', 'test_index')

    def __init__(self, repeat: int, fold: int, train_index: np.ndarray, test_index: np.ndarray):
        self.repeat = repeat
        self.fold = fold
        self.train_index = train_index
        self.test_index = test_index

    def __repr__(self) -> str:
        return (f"FoldSplit(repeat={self.repeat}, fold={self.fold}, "
                f"n_train={len(self.train_index)}, n_test={len(self.test_index)})")


class ResamplingEvaluator:
    """
    Repeated k-fold cross-validation of one parameter configuration.

    Fold partitions are computed once from the plan and reused for every
    configuration evaluated by this instance, so score differences between
    candidates come from the parameters alone.
    """

    def __init__(self, dataset: Dataset, plan: ResamplingPlan, training_fn: TrainingFunction,
                 metric: str = constants.DEFAULT_METRIC,
                 secondary_metrics: Sequence[str] = (),
                 logger: Optional[logging.Logger] = None):
        if not isinstance(plan, ResamplingPlan):
            raise InvalidConfigurationError(f"Expected a ResamplingPlan, got {type(plan).__name__}.")
        for name in [metric, *secondary_metrics]:
            if name not in METRICS:
                raise InvalidConfigurationError(f"Unknown metric '{name}'. Available: {sorted(METRICS)}")

        self.dataset = dataset
        self.plan = plan
        self.training_fn = training_fn
        self.metric = metric
        self.secondary_metrics = [m for m in secondary_metrics if m != metric]
        self.logger = logger or logging.getLogger(__name__)
        self._splits: Optional[List[FoldSplit]] = None

    def __getstate__(self):
        # Loggers are re-acquired by name in worker processes
        state = self.__dict__.copy()
        state['logger'] = None
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        self.logger = logging.getLogger(__name__)

    @property
    def splits(self) -> List[FoldSplit]:
        """All fold splits, repeat-major then fold-minor. Built on first access."""
        if self._splits is None:
            self._splits = self._build_splits()
        return self._splits

    def fold_assignments(self) -> np.ndarray:
        """
        Array of shape (repeats, n_examples) holding the held-out fold index
        of every example in every repeat.
        """
        assignments = np.full((self.plan.repeats, self.dataset.n_examples), -1, dtype=int)
        for split in self.splits:
            assignments[split.repeat, split.test_index] = split.fold
        return assignments

    def validate(self, params: Dict[str, Any]) -> None:
        """Reject a configuration the training function cannot accept."""
        validate = getattr(self.training_fn, 'validate', None)
        if validate is not None:
            validate(params, n_features=self.dataset.n_features)

    def evaluate(self, params: Dict[str, Any], candidate_id: int = 0,
                 random_state: Optional[int] = None) -> EvaluationResult:
        """
        Cross-validate one configuration.

        Returns:
            EvaluationResult holding folds x repeats scores.

        Raises:
            InvalidConfigurationError: the configuration is out of range.
            EvaluationFailureError: a fold could not be trained or scored.
        """
        self.validate(params)

        primary: List[float] = []
        secondary: Dict[str, List[float]] = {m: [] for m in self.secondary_metrics}

        for split in self.splits:
            fold_scores = self._run_single_fold(params, split, random_state)
            primary.append(fold_scores[self.metric])
            for name in self.secondary_metrics:
                secondary[name].append(fold_scores[name])

        result = EvaluationResult(
            candidate_id=candidate_id,
            params=dict(params),
            scores=tuple(primary),
            metric=self.metric,
            secondary_scores={k: tuple(v) for k, v in secondary.items()},
        )
        self.logger.debug(f"Candidate {candidate_id} {params}: {self.metric}={result.mean:.4f} (+/- {result.std:.4f})")
        return result

    def _build_splits(self) -> List[FoldSplit]:
        n = self.dataset.n_examples
        folds = self.plan.folds
        if folds > n:
            raise EvaluationFailureError(
                f"Cannot partition {n} examples into {folds} folds: at least one fold would be empty."
            )

        labels = self.dataset.labels
        use_stratified = self.plan.stratify
        if use_stratified:
            smallest_class = int(self.dataset.class_counts().min())
            if smallest_class < folds:
                self.logger.warning(
                    f"Smallest class has {smallest_class} examples (< {folds} folds). "
                    "Falling back to unstratified KFold."
                )
                use_stratified = False

        splits = []
        placeholder = np.zeros((n, 1))
        for repeat in range(self.plan.repeats):
            seed = self.plan.seed + repeat
            if use_stratified:
                cv = StratifiedKFold(n_splits=folds, shuffle=True, random_state=seed)
                iterator = cv.split(placeholder, labels)
            else:
                cv = KFold(n_splits=folds, shuffle=True, random_state=seed)
                iterator = cv.split(placeholder)

            for fold, (train_idx, test_idx) in enumerate(iterator):
                if len(test_idx) == 0 or len(train_idx) == 0:
                    raise EvaluationFailureError(f"Fold {fold + 1} of repeat {repeat + 1} is empty.")
                splits.append(FoldSplit(repeat, fold, train_idx, test_idx))

        self.logger.debug(
            f"Built {len(splits)} splits ({self.plan.repeats} x {folds}-fold, "
            f"{'stratified' if use_stratified else 'unstratified'}, seed={self.plan.seed})"
        )
        return splits

    def _run_single_fold(self, params: Dict[str, Any], split: FoldSplit,
                         random_state: Optional[int]) -> Dict[str, float]:
        X, y = self.dataset.features, self.dataset.labels
        X_train, y_train = X[split.train_index], y[split.train_index]
        X_test, y_test = X[split.test_index], y[split.test_index]
        where = f"repeat {split.repeat + 1}, fold {split.fold + 1}"

        with model_fit_guard(f"{params} ({where})"):
            model = self.training_fn(params, X_train, y_train, random_state=random_state)
            y_pred = model.predict(X_test)

        return {name: float(METRICS[name](y_test, y_pred)) for name in [self.metric, *self.secondary_metrics]}
