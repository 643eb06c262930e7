"""
Custom exception hierarchy for the forest-tuner hyperparameter search harness.
"""

class ForestTunerException(Exception):
    """Base exception for all system errors."""
    pass

class ConfigurationError(ForestTunerException):
    """Configuration validation failed."""
    pass

class InvalidConfigurationError(ConfigurationError):
    """A parameter value or resampling plan is outside the supported range."""
    pass

class DataValidationError(ForestTunerException):
    """Data validation failed."""
    pass

class EvaluationFailureError(ForestTunerException):
    """Training or evaluation of a candidate on a fold failed."""
    pass

class EmptyCandidateSetError(ForestTunerException):
    """The candidate generator produced no configurations."""
    pass

class CandidateGenerationError(ForestTunerException):
    """A candidate generator was misconfigured or reused."""
    pass
