import numpy as np
import pytest

from modules.resampling_engine import ResamplingPlan, EvaluationResult
from utils.exceptions import InvalidConfigurationError


def test_defaults():
    plan = ResamplingPlan()
    assert (plan.folds, plan.repeats, plan.seed, plan.stratify) == (10, 1, 7, True)
    assert plan.n_evaluations == 10


@pytest.mark.parametrize("kwargs", [
    {'folds': 1},
    {'folds': 0},
    {'repeats': 0},
    {'seed': -3},
    {'folds': 2.5},
])
def test_invalid_plans(kwargs):
    with pytest.raises(InvalidConfigurationError):
        ResamplingPlan(**kwargs)


def test_plan_is_frozen():
    plan = ResamplingPlan(folds=5)
    with pytest.raises(AttributeError):
        plan.folds = 3


def test_from_config_prefers_internal_seed():
    config = {'resampling': {'folds': 5, 'repeats': 2, 'seed': 1, 'stratify': False},
              '_internal_seeds': {'cv': 99}}
    plan = ResamplingPlan.from_config(config)
    assert plan == ResamplingPlan(folds=5, repeats=2, seed=99, stratify=False)


class TestEvaluationResult:

    def test_summary_statistics(self):
        result = EvaluationResult(candidate_id=0, params={'mtry': 2}, scores=(0.7, 0.8, 0.9))
        assert result.mean == pytest.approx(0.8)
        assert result.std == pytest.approx(0.1)
        assert result.min == pytest.approx(0.7)
        assert result.max == pytest.approx(0.9)

    def test_single_score_has_zero_std(self):
        assert EvaluationResult(candidate_id=0, params={}, scores=(0.5,)).std == 0.0

    def test_record_restores_result(self):
        result = EvaluationResult(candidate_id=3, params={'mtry': 2}, scores=(0.5, 0.75),
                                  secondary_scores={'kappa': (0.1, 0.2)})
        restored = EvaluationResult.from_record(result.to_record(), candidate_id=7)
        assert restored.candidate_id == 7
        assert restored.scores == result.scores
        assert restored.secondary_scores == result.secondary_scores
        assert restored.secondary_mean('kappa') == pytest.approx(0.15)


def test_numpy_integers_accepted():
    plan = ResamplingPlan(folds=np.int64(5), repeats=np.int32(2), seed=np.int64(7))
    assert plan.n_evaluations == 10
