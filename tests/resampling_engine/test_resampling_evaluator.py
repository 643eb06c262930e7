import logging
from unittest.mock import MagicMock

import numpy as np
import pytest
from sklearn.datasets import make_classification

from modules.data_manager import Dataset
from modules.model_factory import EstimatorTrainer
from modules.resampling_engine import ResamplingEvaluator, ResamplingPlan
from utils.exceptions import EvaluationFailureError, InvalidConfigurationError


@pytest.fixture
def mock_logger():
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def dataset():
    X, y = make_classification(n_samples=60, n_features=8, n_informative=4, random_state=1)
    return Dataset(X, y)


@pytest.fixture
def tree_trainer():
    return EstimatorTrainer('DecisionTreeClassifier')


class FailingTrainer:
    def __call__(self, params, X_train, y_train, random_state=None):
        raise RuntimeError("solver exploded")


class MajorityModel:
    def __init__(self, label):
        self.label = label

    def predict(self, X):
        return np.full(len(X), self.label)


class RecordingTrainer:
    """Predicts the training majority class and records every training index set."""

    def __init__(self):
        self.train_sizes = []

    def __call__(self, params, X_train, y_train, random_state=None):
        self.train_sizes.append(len(X_train))
        values, counts = np.unique(y_train, return_counts=True)
        return MajorityModel(values[np.argmax(counts)])


def test_score_count_and_order(dataset, tree_trainer, mock_logger):
    evaluator = ResamplingEvaluator(dataset, ResamplingPlan(folds=10, repeats=3, seed=7), tree_trainer,
                                    logger=mock_logger)
    result = evaluator.evaluate({'max_depth': 3}, candidate_id=4, random_state=0)

    assert len(result.scores) == 30
    assert result.candidate_id == 4
    assert result.params == {'max_depth': 3}
    assert all(0.0 <= s <= 1.0 for s in result.scores)
    assert [(s.repeat, s.fold) for s in evaluator.splits][:3] == [(0, 0), (0, 1), (0, 2)]


def test_folds_partition_every_repeat(dataset, tree_trainer):
    evaluator = ResamplingEvaluator(dataset, ResamplingPlan(folds=5, repeats=2, seed=3), tree_trainer)
    assignments = evaluator.fold_assignments()

    assert assignments.shape == (2, 60)
    assert (assignments >= 0).all()
    for repeat in range(2):
        assert sorted(np.bincount(assignments[repeat])) == [12] * 5
    # Independent shuffles per repeat
    assert not np.array_equal(assignments[0], assignments[1])


def test_same_plan_same_folds_across_candidates(dataset, tree_trainer):
    plan = ResamplingPlan(folds=5, repeats=2, seed=11)
    first = ResamplingEvaluator(dataset, plan, tree_trainer)
    second = ResamplingEvaluator(dataset, plan, EstimatorTrainer('KNeighborsClassifier'))

    first.evaluate({'max_depth': 2})
    splits_before = [s.test_index.copy() for s in first.splits]
    first.evaluate({'max_depth': 5})

    for before, split in zip(splits_before, first.splits):
        np.testing.assert_array_equal(before, split.test_index)
    np.testing.assert_array_equal(first.fold_assignments(), second.fold_assignments())


def test_different_seed_changes_folds(dataset, tree_trainer):
    a = ResamplingEvaluator(dataset, ResamplingPlan(folds=5, seed=1), tree_trainer).fold_assignments()
    b = ResamplingEvaluator(dataset, ResamplingPlan(folds=5, seed=2), tree_trainer).fold_assignments()
    assert not np.array_equal(a, b)


def test_deterministic_scores(dataset, mock_logger):
    trainer = EstimatorTrainer('RandomForestClassifier', {'ntree': 10})
    plan = ResamplingPlan(folds=5, repeats=2, seed=7)
    a = ResamplingEvaluator(dataset, plan, trainer).evaluate({'mtry': 3}, random_state=42)
    b = ResamplingEvaluator(dataset, plan, trainer).evaluate({'mtry': 3}, random_state=42)
    assert a.scores == b.scores


def test_training_sets_exclude_held_out_fold(dataset):
    trainer = RecordingTrainer()
    ResamplingEvaluator(dataset, ResamplingPlan(folds=4, repeats=1), trainer).evaluate({})
    assert trainer.train_sizes == [45, 45, 45, 45]


def test_secondary_metrics(dataset, tree_trainer):
    evaluator = ResamplingEvaluator(dataset, ResamplingPlan(folds=5), tree_trainer,
                                    metric='accuracy', secondary_metrics=['kappa', 'accuracy'])
    result = evaluator.evaluate({})
    assert list(result.secondary_scores) == ['kappa']
    assert len(result.secondary_scores['kappa']) == 5


def test_kappa_of_constant_prediction_is_zero(dataset):
    evaluator = ResamplingEvaluator(dataset, ResamplingPlan(folds=5), RecordingTrainer(), metric='kappa')
    result = evaluator.evaluate({})
    assert result.scores == (0.0,) * 5


def test_unknown_metric(dataset, tree_trainer):
    with pytest.raises(InvalidConfigurationError, match="Unknown metric"):
        ResamplingEvaluator(dataset, ResamplingPlan(), tree_trainer, metric='auc')


def test_more_folds_than_examples(tree_trainer):
    tiny = Dataset(np.arange(10, dtype=float).reshape(5, 2), [0, 1, 0, 1, 0])
    evaluator = ResamplingEvaluator(tiny, ResamplingPlan(folds=10), tree_trainer)
    with pytest.raises(EvaluationFailureError, match="fold would be empty"):
        evaluator.evaluate({})


def test_training_failure_is_evaluation_failure(dataset):
    evaluator = ResamplingEvaluator(dataset, ResamplingPlan(folds=5), FailingTrainer())
    with pytest.raises(EvaluationFailureError, match="solver exploded"):
        evaluator.evaluate({'mtry': 2})


def test_convergence_warning_is_evaluation_failure(dataset):
    evaluator = ResamplingEvaluator(dataset, ResamplingPlan(folds=3), EstimatorTrainer('LogisticRegression'))
    with pytest.raises(EvaluationFailureError, match="did not converge"):
        evaluator.evaluate({'max_iter': 1})


def test_invalid_params_rejected_before_training(dataset):
    trainer = MagicMock(spec=EstimatorTrainer)
    trainer.validate.side_effect = InvalidConfigurationError("mtry out of range")
    evaluator = ResamplingEvaluator(dataset, ResamplingPlan(folds=5), trainer)

    with pytest.raises(InvalidConfigurationError):
        evaluator.evaluate({'mtry': 100})
    trainer.assert_not_called()


def test_stratify_fallback_warns(tree_trainer, mock_logger):
    X = np.random.RandomState(0).rand(20, 3)
    y = [0] * 17 + [1] * 3
    evaluator = ResamplingEvaluator(Dataset(X, y), ResamplingPlan(folds=5), tree_trainer, logger=mock_logger)

    assert len(evaluator.splits) == 5
    assert mock_logger.warning.called
