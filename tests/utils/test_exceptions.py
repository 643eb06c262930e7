import pytest
import logging
from unittest.mock import MagicMock

from utils.exceptions import (
    ForestTunerException,
    ConfigurationError,
    InvalidConfigurationError,
    DataValidationError,
    EvaluationFailureError,
    EmptyCandidateSetError,
    CandidateGenerationError,
)
from utils.error_handling import handle_engine_errors


@pytest.mark.parametrize("exc_cls", [
    ConfigurationError,
    InvalidConfigurationError,
    DataValidationError,
    EvaluationFailureError,
    EmptyCandidateSetError,
    CandidateGenerationError,
])
def test_all_errors_share_base(exc_cls):
    with pytest.raises(ForestTunerException):
        raise exc_cls("boom")


def test_invalid_configuration_is_configuration_error():
    assert issubclass(InvalidConfigurationError, ConfigurationError)


class _Engine:
    def __init__(self):
        self.logger = MagicMock(spec=logging.Logger)

    @handle_engine_errors("Dummy Operation")
    def run_project_error(self):
        raise EvaluationFailureError("fold failed")

    @handle_engine_errors("Dummy Operation")
    def run_unexpected_error(self):
        raise KeyError("missing")

    @handle_engine_errors("Dummy Operation")
    def run_ok(self):
        return 42


def test_decorator_passes_project_errors_through():
    engine = _Engine()
    with pytest.raises(EvaluationFailureError, match="fold failed"):
        engine.run_project_error()
    engine.logger.error.assert_not_called()


def test_decorator_wraps_unexpected_errors():
    engine = _Engine()
    with pytest.raises(ForestTunerException, match="Dummy Operation failed") as exc_info:
        engine.run_unexpected_error()
    assert isinstance(exc_info.value.__cause__, KeyError)
    engine.logger.error.assert_called_once()


def test_decorator_returns_value():
    assert _Engine().run_ok() == 42


def test_model_fit_guard_promotes_convergence_warning():
    import warnings
    from sklearn.exceptions import ConvergenceWarning
    from utils.error_handling import model_fit_guard

    with pytest.raises(EvaluationFailureError, match="did not converge for mtry=3"):
        with model_fit_guard("mtry=3"):
            warnings.warn("lbfgs failed", ConvergenceWarning)


def test_model_fit_guard_wraps_estimator_errors():
    from utils.error_handling import model_fit_guard

    with pytest.raises(EvaluationFailureError, match="Training failed for mtry=3: bad input") as exc_info:
        with model_fit_guard("mtry=3"):
            raise ValueError("bad input")
    assert isinstance(exc_info.value.__cause__, ValueError)

    with pytest.raises(InvalidConfigurationError):
        with model_fit_guard("mtry=3"):
            raise InvalidConfigurationError("mtry out of range")
