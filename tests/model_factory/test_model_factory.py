import numpy as np
import pytest
from sklearn.datasets import make_classification
from sklearn.ensemble import RandomForestClassifier

from modules.model_factory import ModelFactory, EstimatorTrainer
from utils.exceptions import InvalidConfigurationError


@pytest.fixture
def small_xy():
    X, y = make_classification(n_samples=40, n_features=6, n_informative=3, random_state=0)
    return X, y


class TestModelFactory:

    def test_available_models(self):
        assert 'RandomForestClassifier' in ModelFactory.get_available_models()

    def test_unknown_model(self):
        with pytest.raises(InvalidConfigurationError, match="Unknown model name"):
            ModelFactory.create('DeepForest', {})

    def test_aliases_resolved(self):
        model = ModelFactory.create('RandomForestClassifier', {'mtry': 3, 'ntree': 25, 'nodesize': 2})
        assert isinstance(model, RandomForestClassifier)
        assert model.max_features == 3
        assert model.n_estimators == 25
        assert model.min_samples_leaf == 2

    def test_alias_and_target_together(self):
        with pytest.raises(InvalidConfigurationError, match="given twice"):
            ModelFactory.resolve_aliases({'mtry': 3, 'max_features': 4})

    def test_unknown_parameter(self):
        with pytest.raises(InvalidConfigurationError, match="Unknown parameter"):
            ModelFactory.create('RandomForestClassifier', {'depth_of_forest': 3})

    @pytest.mark.parametrize("params", [
        {'mtry': 0},
        {'mtry': 61},
        {'mtry': 1.5},
        {'ntree': 0},
        {'nodesize': 0},
        {'maxnodes': 1},
        {'mtry': 'half'},
    ])
    def test_out_of_range_values(self, params):
        with pytest.raises(InvalidConfigurationError, match="Invalid value"):
            ModelFactory.validate_params('RandomForestClassifier', params, n_features=60)

    @pytest.mark.parametrize("value", [1, 60, 'sqrt', 0.5, None])
    def test_valid_mtry(self, value):
        resolved = ModelFactory.validate_params('RandomForestClassifier', {'mtry': value}, n_features=60)
        assert resolved == {'max_features': value}

    def test_random_state_applied(self):
        model = ModelFactory.create('RandomForestClassifier', {'ntree': 5}, random_state=123)
        assert model.random_state == 123

    def test_random_state_ignored_when_unsupported(self):
        model = ModelFactory.create('KNeighborsClassifier', {'n_neighbors': 3}, random_state=123)
        assert not hasattr(model, 'random_state')

    @pytest.mark.parametrize("p, expected", [(60, 7), (4, 2), (1, 1), (15, 3)])
    def test_default_mtry(self, p, expected):
        assert ModelFactory.default_mtry(p) == expected


class TestEstimatorTrainer:

    def test_merges_base_params(self, small_xy):
        X, y = small_xy
        trainer = ModelFactory.training_function('RandomForestClassifier', {'ntree': 10})
        model = trainer({'mtry': 2}, X, y, random_state=0)

        assert model.n_estimators == 10
        assert model.max_features == 2
        assert model.predict(X).shape == (40,)

    def test_candidate_overrides_base(self):
        trainer = EstimatorTrainer('RandomForestClassifier', {'ntree': 10, 'mtry': 2})
        assert trainer.merged_params({'mtry': 4}) == {'n_estimators': 10, 'max_features': 4}

    def test_validate_uses_feature_count(self):
        trainer = EstimatorTrainer('RandomForestClassifier')
        with pytest.raises(InvalidConfigurationError, match="exceeds the number of features"):
            trainer.validate({'mtry': 7}, n_features=6)

    def test_reproducible_fit(self, small_xy):
        X, y = small_xy
        trainer = EstimatorTrainer('RandomForestClassifier', {'ntree': 10})
        a = trainer({'mtry': 2}, X, y, random_state=5).predict_proba(X)
        b = trainer({'mtry': 2}, X, y, random_state=5).predict_proba(X)
        np.testing.assert_array_equal(a, b)
