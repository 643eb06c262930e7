import contextlib
import functools
import logging
import warnings

from sklearn.exceptions import ConvergenceWarning

from utils.exceptions import EvaluationFailureError, ForestTunerException


def handle_engine_errors(operation_name: str):
    """
    Decorator for engine entry points.

    Project exceptions propagate untouched. Anything else is logged with its
    traceback and re-raised as ForestTunerException naming the operation.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except ForestTunerException:
                raise
            except Exception as e:
                logger = args[0].logger if args and hasattr(args[0], 'logger') else logging.getLogger()
                logger.error(f"{operation_name} failed: {e}", exc_info=True)
                raise ForestTunerException(f"{operation_name} failed: {str(e)}") from e
        return wrapper
    return decorator


@contextlib.contextmanager
def model_fit_guard(description: str):
    """
    Turn estimator failures inside the block into EvaluationFailureError.

    ConvergenceWarning is promoted to an error, so a model that stopped
    before converging fails the evaluation instead of scoring silently.
    """
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("error", ConvergenceWarning)
            yield
    except ConvergenceWarning as w:
        raise EvaluationFailureError(f"Training did not converge for {description}: {w}") from w
    except ForestTunerException:
        raise
    except Exception as e:
        raise EvaluationFailureError(f"Training failed for {description}: {e}") from e
