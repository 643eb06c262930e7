import numbers
from dataclasses import dataclass

from utils.exceptions import InvalidConfigurationError


@dataclass(frozen=True)
class ResamplingPlan:
    """
    Repeated k-fold cross-validation settings.

    Repeat r shuffles with seed + r, so the same (seed, folds, repeats)
    triple always reproduces the same partitions.
    """
    folds: int = 10
    repeats: int = 1
    seed: int = 7
    stratify: bool = True

    def __post_init__(self):
        if isinstance(self.folds, bool) or not isinstance(self.folds, numbers.Integral) or self.folds < 2:
            raise InvalidConfigurationError(
                f"Cross-validation requires at least 2 folds, got {self.folds!r}."
            )
        if isinstance(self.repeats, bool) or not isinstance(self.repeats, numbers.Integral) or self.repeats < 1:
            raise InvalidConfigurationError(f"repeats must be an integer >= 1, got {self.repeats!r}.")
        if isinstance(self.seed, bool) or not isinstance(self.seed, numbers.Integral) or self.seed < 0:
            raise InvalidConfigurationError(f"seed must be a non-negative integer, got {self.seed!r}.")

    @property
    def n_evaluations(self) -> int:
        """Scores produced per configuration."""
        return self.folds * self.repeats

    @classmethod
    def from_config(cls, config: dict) -> "ResamplingPlan":
        resampling = config.get('resampling', {})
        seed = config.get('_internal_seeds', {}).get('cv', resampling.get('seed', 7))
        return cls(
            folds=resampling.get('folds', 10),
            repeats=resampling.get('repeats', 1),
            seed=seed,
            stratify=resampling.get('stratify', True),
        )
