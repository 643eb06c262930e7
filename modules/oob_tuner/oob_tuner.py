import math
import logging
import warnings
import pandas as pd
from typing import Dict, Any, Optional

from modules.base.base_engine import BaseEngine
from modules.data_manager.dataset import Dataset
from modules.model_factory import ModelFactory
from utils.error_handling import handle_engine_errors, model_fit_guard
from utils.exceptions import InvalidConfigurationError
from utils import constants

# Parameters the step search controls itself
_MANAGED_PARAMS = ('max_features', 'n_estimators', 'oob_score', 'bootstrap', 'random_state')


class OOBTuner(BaseEngine):
    """
    Out-of-bag step search over mtry (max_features) for a random forest.

    Starting from `start_mtry` the search walks left by dividing mtry by
    `step_factor` and right by multiplying it, keeping each step while the
    relative OOB error improvement exceeds `improve`. The reference error
    carries over from the left walk into the right walk.
    """

    def __init__(self, config: dict, logger: logging.Logger):
        super().__init__(config, logger)
        oob_cfg = config.get('oob_tuning', {})
        self.start_mtry: Optional[int] = oob_cfg.get('start_mtry')
        self.step_factor = oob_cfg.get('step_factor', 1.5)
        self.improve = oob_cfg.get('improve', 1e-5)
        self.ntree_try = oob_cfg.get('ntree_try', 500)

        if self.step_factor <= 1.0:
            raise InvalidConfigurationError(f"step_factor must be > 1, got {self.step_factor}.")
        if self.ntree_try < 1:
            raise InvalidConfigurationError(f"ntree_try must be >= 1, got {self.ntree_try}.")

        seeds = config.get('_internal_seeds', {})
        self.seed = seeds.get('oob', config.get('resampling', {}).get('seed', 7) + 3000)

        base = ModelFactory.resolve_aliases(config.get('model', {}).get('params', {}))
        self.forest_params = {k: v for k, v in base.items() if k not in _MANAGED_PARAMS}
        self._errors: Dict[int, float] = {}

    def _get_engine_directory_name(self) -> str:
        return constants.OOB_TUNING_DIR

    @handle_engine_errors("OOB mtry Tuning")
    def execute(self, dataset: Dataset) -> Dict[str, Any]:
        result = self.tune(dataset)
        self.save_table(result['table'], constants.OOB_TUNING_FILE)
        return result

    def tune(self, dataset: Dataset) -> Dict[str, Any]:
        """
        Run the step search.

        Returns:
            dict with 'table' (DataFrame of mtry, oob_error sorted by mtry),
            'best_mtry' and 'best_oob_error'.
        """
        p = dataset.n_features
        start = self.start_mtry if self.start_mtry is not None else ModelFactory.default_mtry(p)
        start = min(max(1, int(start)), p)
        self._errors = {}

        self.logger.info(
            f"OOB mtry search: start={start}, step_factor={self.step_factor}, "
            f"improve={self.improve}, ntree_try={self.ntree_try}"
        )

        error_old = self._oob_error(dataset, start)
        for direction in ('left', 'right'):
            current = start
            while True:
                previous = current
                if direction == 'left':
                    current = max(1, math.ceil(current / self.step_factor))
                else:
                    current = min(p, math.floor(current * self.step_factor))
                if current == previous:
                    break

                error_cur = self._oob_error(dataset, current)
                gain = 1.0 - error_cur / error_old if error_old > 0 else 0.0
                if gain <= self.improve:
                    break
                error_old = error_cur

        table = (pd.DataFrame(sorted(self._errors.items()), columns=['mtry', 'oob_error'])
                 .reset_index(drop=True))
        # Sorted by mtry, so idxmin picks the smallest mtry among equal errors
        best_row = table.loc[table['oob_error'].idxmin()]
        best_mtry = int(best_row['mtry'])

        self.logger.info(f"OOB mtry search done: best mtry={best_mtry} (OOB error {best_row['oob_error']:.4f})")
        return {'table': table, 'best_mtry': best_mtry, 'best_oob_error': float(best_row['oob_error'])}

    def _oob_error(self, dataset: Dataset, mtry: int) -> float:
        if mtry in self._errors:
            return self._errors[mtry]

        params = dict(self.forest_params)
        params.update({'max_features': mtry, 'n_estimators': self.ntree_try, 'oob_score': True, 'bootstrap': True})
        with model_fit_guard(f"OOB forest with mtry={mtry}"), warnings.catch_warnings():
            # Small ntree_try leaves some rows without OOB votes
            warnings.simplefilter("ignore", UserWarning)
            forest = ModelFactory.create('RandomForestClassifier', params,
                                         n_features=dataset.n_features, random_state=self.seed)
            forest.fit(dataset.features, dataset.labels)

        error = 1.0 - float(forest.oob_score_)
        self._errors[mtry] = error
        self.logger.info(f"mtry = {mtry:>3}  OOB error = {error:.4%}")
        return error
