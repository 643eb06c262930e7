import inspect
import math
import numbers
from typing import Dict, Any, List, Callable, Optional
from sklearn.ensemble import (
    ExtraTreesClassifier,
    RandomForestClassifier,
    GradientBoostingClassifier,
)
from sklearn.tree import DecisionTreeClassifier
from sklearn.neighbors import KNeighborsClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.svm import SVC

from utils.exceptions import InvalidConfigurationError

# fit(params, X_train, y_train, random_state=None) -> fitted model with .predict
TrainingFunction = Callable[..., Any]

def _is_int(value) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)

def _is_real(value) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)

class ModelFactory:
    """
    Factory for creating classifiers with a unified interface.

    Accepts randomForest-style parameter names ('mtry', 'ntree', 'nodesize',
    'maxnodes') as aliases of the scikit-learn names, and rejects
    configurations the estimator could not train with before any fold is
    fitted.
    """

    MODELS = {
        # Tree ensembles
        'RandomForestClassifier': RandomForestClassifier,
        'ExtraTreesClassifier': ExtraTreesClassifier,
        'GradientBoostingClassifier': GradientBoostingClassifier,
        'DecisionTreeClassifier': DecisionTreeClassifier,

        # Baselines
        'KNeighborsClassifier': KNeighborsClassifier,
        'LogisticRegression': LogisticRegression,
        'SVC': SVC,
    }

    PARAM_ALIASES = {
        'mtry': 'max_features',
        'ntree': 'n_estimators',
        'nodesize': 'min_samples_leaf',
        'maxnodes': 'max_leaf_nodes',
    }

    @classmethod
    def create(cls, model_name: str, params: Dict[str, Any] = None,
               n_features: Optional[int] = None, random_state: Optional[int] = None) -> Any:
        """
        Create and return an instantiated (unfitted) model.

        Raises:
            InvalidConfigurationError: unknown model, unknown parameter or
                a value outside its supported range.
        """
        model_class = cls._get_model_class(model_name)
        resolved = cls.validate_params(model_name, params or {}, n_features=n_features)

        if random_state is not None and 'random_state' in cls._accepted_params(model_class):
            resolved.setdefault('random_state', random_state)

        return model_class(**resolved)

    @classmethod
    def get_available_models(cls) -> List[str]:
        """Return list of all supported model names."""
        return list(cls.MODELS.keys())

    @classmethod
    def resolve_aliases(cls, params: Dict[str, Any]) -> Dict[str, Any]:
        """Translate alias names to estimator names. Alias and target together is an error."""
        resolved = {}
        for key, value in params.items():
            target = cls.PARAM_ALIASES.get(key, key)
            if target in resolved:
                raise InvalidConfigurationError(f"Parameter '{target}' given twice (via alias '{key}').")
            resolved[target] = value
        return resolved

    @classmethod
    def validate_params(cls, model_name: str, params: Dict[str, Any],
                        n_features: Optional[int] = None) -> Dict[str, Any]:
        """
        Resolve aliases and check every value against its supported range.

        Returns:
            Dict[str, Any]: Parameters keyed by estimator argument names.
        """
        model_class = cls._get_model_class(model_name)
        resolved = cls.resolve_aliases(params)

        accepted = cls._accepted_params(model_class)
        unknown = sorted(k for k in resolved if k not in accepted)
        if unknown:
            raise InvalidConfigurationError(f"Unknown parameter(s) for {model_name}: {unknown}")

        for name, value in resolved.items():
            check = cls._RULES.get(name)
            if check is None:
                continue
            error = check(value, n_features)
            if error:
                raise InvalidConfigurationError(f"Invalid value for '{name}' ({model_name}): {value!r} {error}")

        return resolved

    @staticmethod
    def default_mtry(n_features: int) -> int:
        """Classification default for sampled features per split: floor(sqrt(p))."""
        return max(1, int(math.floor(math.sqrt(n_features))))

    @classmethod
    def training_function(cls, model_name: str, base_params: Dict[str, Any] = None) -> "EstimatorTrainer":
        """Build the training function used by the resampling evaluator."""
        return EstimatorTrainer(model_name, base_params)

    @classmethod
    def _get_model_class(cls, model_name: str):
        if model_name not in cls.MODELS:
            raise InvalidConfigurationError(
                f"Unknown model name: {model_name}. Available: {cls.get_available_models()}"
            )
        return cls.MODELS[model_name]

    @staticmethod
    def _accepted_params(model_class) -> List[str]:
        sig = inspect.signature(model_class.__init__)
        return [
            p.name for p in sig.parameters.values()
            if p.kind in (p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY) and p.name != 'self'
        ]

    # --- Range rules: return an error fragment, or None when valid ---

    @staticmethod
    def _check_max_features(value, n_features):
        if value is None or (isinstance(value, str) and value in ('sqrt', 'log2')):
            return None
        if _is_int(value):
            if value < 1:
                return "must be >= 1"
            if n_features is not None and value > n_features:
                return f"exceeds the number of features ({n_features})"
            return None
        if _is_real(value):
            return None if 0.0 < value <= 1.0 else "must be a fraction in (0, 1]"
        return "must be an int, a fraction, 'sqrt', 'log2' or None"

    @staticmethod
    def _check_positive_int(value, n_features):
        return None if _is_int(value) and value >= 1 else "must be an integer >= 1"

    @staticmethod
    def _check_optional_positive_int(value, n_features):
        return None if value is None or (_is_int(value) and value >= 1) else "must be None or an integer >= 1"

    @staticmethod
    def _check_min_samples_leaf(value, n_features):
        if _is_int(value):
            return None if value >= 1 else "must be >= 1"
        if _is_real(value):
            return None if 0.0 < value < 1.0 else "must be a fraction in (0, 1)"
        return "must be an int or a fraction"

    @staticmethod
    def _check_min_samples_split(value, n_features):
        if _is_int(value):
            return None if value >= 2 else "must be >= 2"
        if _is_real(value):
            return None if 0.0 < value <= 1.0 else "must be a fraction in (0, 1]"
        return "must be an int or a fraction"

    @staticmethod
    def _check_max_leaf_nodes(value, n_features):
        return None if value is None or (_is_int(value) and value >= 2) else "must be None or an integer >= 2"

    @staticmethod
    def _check_positive_real(value, n_features):
        return None if _is_real(value) and value > 0 else "must be > 0"


ModelFactory._RULES = {
    'max_features': ModelFactory._check_max_features,
    'n_estimators': ModelFactory._check_positive_int,
    'max_depth': ModelFactory._check_optional_positive_int,
    'min_samples_leaf': ModelFactory._check_min_samples_leaf,
    'min_samples_split': ModelFactory._check_min_samples_split,
    'max_leaf_nodes': ModelFactory._check_max_leaf_nodes,
    'n_neighbors': ModelFactory._check_positive_int,
    'max_iter': ModelFactory._check_positive_int,
    'C': ModelFactory._check_positive_real,
    'learning_rate': ModelFactory._check_positive_real,
}


class EstimatorTrainer:
    """
    Training function backed by the ModelFactory.

    Calling it merges the candidate parameters over the base parameters,
    builds the estimator and fits it:
    trainer(params, X_train, y_train, random_state=None) -> fitted model
    """

    def __init__(self, model_name: str, base_params: Dict[str, Any] = None):
        ModelFactory._get_model_class(model_name)
        self.model_name = model_name
        self.base_params = ModelFactory.resolve_aliases(base_params or {})

    def merged_params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        merged = dict(self.base_params)
        merged.update(ModelFactory.resolve_aliases(params))
        return merged

    def validate(self, params: Dict[str, Any], n_features: Optional[int] = None) -> Dict[str, Any]:
        """Raise InvalidConfigurationError if the candidate cannot be trained."""
        return ModelFactory.validate_params(self.model_name, self.merged_params(params), n_features=n_features)

    def __call__(self, params: Dict[str, Any], X_train, y_train, random_state: Optional[int] = None):
        model = ModelFactory.create(
            self.model_name,
            self.merged_params(params),
            n_features=X_train.shape[1],
            random_state=random_state,
        )
        model.fit(X_train, y_train)
        return model

    def __repr__(self) -> str:
        return f"EstimatorTrainer(model_name={self.model_name!r}, base_params={self.base_params!r})"
