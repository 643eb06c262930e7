"""
Candidate generation policies.

Every policy is a single-use iterable of parameter dictionaries. Iteration
is lazy; a second iteration raises CandidateGenerationError so that each
search builds a fresh generator.
"""
import abc
import numbers
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence

import numpy as np
from scipy import stats
from sklearn.model_selection import ParameterGrid, ParameterSampler

from utils.cache import params_fingerprint
from utils.exceptions import CandidateGenerationError
from utils import constants


def _to_builtin(value):
    """numpy scalars -> Python scalars so configurations serialize cleanly."""
    if isinstance(value, np.generic) or (isinstance(value, np.ndarray) and value.ndim == 0):
        return value.item()
    return value


def _is_number(value) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


class CandidateGenerator(abc.ABC):
    """Common interface of the random, grid and manual policies."""

    strategy: str = ""

    def __init__(self):
        self._consumed = False

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        if self._consumed:
            raise CandidateGenerationError(
                f"{self.__class__.__name__} has already been consumed; create a new generator per search."
            )
        self._consumed = True
        return self._generate()

    @abc.abstractmethod
    def _generate(self) -> Iterator[Dict[str, Any]]:
        raise NotImplementedError

    def describe(self) -> Dict[str, Any]:
        return {'strategy': self.strategy}


class GridSearchGenerator(CandidateGenerator):
    """
    Full Cartesian product of per-parameter candidate lists.

    Parameter names are iterated in sorted order with the last name varying
    fastest; numeric value lists are sorted ascending. An empty value list
    yields no configurations at all.
    """

    strategy = constants.STRATEGY_GRID

    def __init__(self, grid: Mapping[str, Sequence[Any]]):
        super().__init__()
        if not isinstance(grid, Mapping):
            raise CandidateGenerationError(f"Grid must be a mapping of parameter -> values, got {type(grid).__name__}.")
        self.grid = {}
        for name, values in grid.items():
            if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
                raise CandidateGenerationError(f"Grid values for '{name}' must be a list, got {values!r}.")
            values = [_to_builtin(v) for v in values]
            if values and all(_is_number(v) for v in values):
                values = sorted(values)
            self.grid[name] = values

    def __len__(self) -> int:
        if not self.grid or any(len(v) == 0 for v in self.grid.values()):
            return 0
        return len(ParameterGrid(self.grid))

    def _generate(self) -> Iterator[Dict[str, Any]]:
        if not self.grid or any(len(v) == 0 for v in self.grid.values()):
            return
        for params in ParameterGrid(self.grid):
            yield {k: _to_builtin(v) for k, v in params.items()}

    def describe(self) -> Dict[str, Any]:
        return {'strategy': self.strategy, 'size': len(self)}


class RandomSearchGenerator(CandidateGenerator):
    """
    `n_candidates` draws from per-parameter ranges, reproducible from `seed`.

    Space entries:
      - list of values: drawn uniformly from the list
      - {"low": a, "high": b} with integers: uniform integer in [a, b]
      - {"low": a, "high": b} with floats: uniform real in [a, b)
    With `unique=True` repeated draws are skipped, so fewer than
    `n_candidates` configurations may be produced.
    """

    strategy = constants.STRATEGY_RANDOM

    def __init__(self, space: Mapping[str, Any], n_candidates: int, seed: int, unique: bool = True):
        super().__init__()
        if isinstance(n_candidates, bool) or not isinstance(n_candidates, numbers.Integral) or n_candidates < 1:
            raise CandidateGenerationError(f"n_candidates must be a positive integer, got {n_candidates!r}.")
        if not space:
            raise CandidateGenerationError("Random search space cannot be empty.")
        self.space = dict(space)
        self.n_candidates = int(n_candidates)
        self.seed = seed
        self.unique = unique
        self.distributions = {name: self._to_distribution(name, entry) for name, entry in self.space.items()}

    @staticmethod
    def _to_distribution(name: str, entry: Any):
        if isinstance(entry, Mapping):
            if 'values' in entry:
                return RandomSearchGenerator._to_distribution(name, entry['values'])
            if 'low' not in entry or 'high' not in entry:
                raise CandidateGenerationError(f"Range for '{name}' needs 'low' and 'high', got {entry!r}.")
            low, high = entry['low'], entry['high']
            if not (_is_number(low) and _is_number(high)) or high < low:
                raise CandidateGenerationError(f"Invalid range for '{name}': low={low!r}, high={high!r}.")
            if isinstance(low, numbers.Integral) and isinstance(high, numbers.Integral):
                return stats.randint(low, high + 1)
            return stats.uniform(loc=low, scale=high - low)
        if isinstance(entry, (str, bytes)) or not isinstance(entry, Sequence) or len(entry) == 0:
            raise CandidateGenerationError(f"Values for '{name}' must be a non-empty list or a range, got {entry!r}.")
        return list(entry)

    def _generate(self) -> Iterator[Dict[str, Any]]:
        sampler = ParameterSampler(self.distributions, n_iter=self.n_candidates, random_state=self.seed)
        seen = set()
        for params in sampler:
            params = {k: _to_builtin(v) for k, v in params.items()}
            if self.unique:
                key = params_fingerprint(params)
                if key in seen:
                    continue
                seen.add(key)
            yield params

    def describe(self) -> Dict[str, Any]:
        return {'strategy': self.strategy, 'n_candidates': self.n_candidates, 'seed': self.seed, 'unique': self.unique}


class ManualListGenerator(CandidateGenerator):
    """Caller-supplied configurations, produced in the given order."""

    strategy = constants.STRATEGY_MANUAL

    def __init__(self, candidates: Sequence[Mapping[str, Any]]):
        super().__init__()
        if isinstance(candidates, Mapping) or not isinstance(candidates, Sequence):
            raise CandidateGenerationError("Manual candidates must be a list of parameter mappings.")
        checked = []
        for i, candidate in enumerate(candidates):
            if not isinstance(candidate, Mapping):
                raise CandidateGenerationError(f"Candidate {i} is not a mapping: {candidate!r}.")
            checked.append({k: _to_builtin(v) for k, v in candidate.items()})
        self.candidates = checked

    @classmethod
    def vary_parameter(cls, base_params: Mapping[str, Any], name: str,
                       values: Sequence[Any]) -> "ManualListGenerator":
        """Hold `base_params` fixed and step `name` through `values`."""
        candidates = []
        for value in values:
            params = dict(base_params)
            params[name] = value
            candidates.append(params)
        return cls(candidates)

    def __len__(self) -> int:
        return len(self.candidates)

    def _generate(self) -> Iterator[Dict[str, Any]]:
        for candidate in self.candidates:
            yield dict(candidate)

    def describe(self) -> Dict[str, Any]:
        return {'strategy': self.strategy, 'size': len(self)}


def build_candidate_generator(search_config: Dict[str, Any], seed: Optional[int] = None) -> CandidateGenerator:
    """Instantiate the policy named by search_config['strategy']."""
    strategy = search_config.get('strategy', constants.STRATEGY_GRID)

    if strategy == constants.STRATEGY_GRID:
        return GridSearchGenerator(search_config.get('grid', {}))

    if strategy == constants.STRATEGY_RANDOM:
        random_cfg = search_config.get('random', {})
        return RandomSearchGenerator(
            space=random_cfg.get('space', {}),
            n_candidates=random_cfg.get('n_candidates', 10),
            seed=random_cfg.get('seed', seed),
            unique=random_cfg.get('unique', True),
        )

    if strategy == constants.STRATEGY_MANUAL:
        manual = search_config.get('manual', {})
        if manual.get('candidates'):
            return ManualListGenerator(manual['candidates'])
        vary = manual.get('vary', {})
        if len(vary) != 1:
            raise CandidateGenerationError("search.manual.vary must name exactly one parameter.")
        (name, values), = vary.items()
        return ManualListGenerator.vary_parameter(manual.get('base_params', {}), name, values)

    raise CandidateGenerationError(f"Unknown search strategy '{strategy}'. Available: {constants.SEARCH_STRATEGIES}")
