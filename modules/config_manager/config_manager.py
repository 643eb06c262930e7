import json
import os
import hashlib
import sys
import logging
import jsonschema
import psutil
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional
from sklearn.model_selection import ParameterGrid

from utils.exceptions import ConfigurationError
from utils.file_io import save_json
from utils import constants

class ConfigurationManager:
    """
    Manages system configuration loading, validation, and access.
    Acts as the single source of truth for a tuning run.

    Validation happens in four passes: JSON schema, logical rules
    (resampling bounds, search space sanity), resource guards (grid size,
    worker count) and finally seed propagation.
    """

    # Prevent accidental combinatoric explosions
    DEFAULT_MAX_SEARCH_CONFIGS = 1000

    def __init__(self, config_path: str = "config/config.json",
                 schema_path: str = "config/schema.json"):
        """
        Initialize the ConfigurationManager.

        Args:
            config_path (str): Path to the user configuration JSON.
            schema_path (str): Path to the JSON schema definition.
        """
        self.config_path = config_path
        self.schema_path = schema_path
        self.config: Dict[str, Any] = {}
        self.schema: Dict[str, Any] = {}
        self.run_id: Optional[str] = None
        self.logger = logging.getLogger("config_manager")

    def load_and_validate(self) -> Dict[str, Any]:
        """
        Main entry point. Loads config, validates schema/logic/resources,
        and propagates seeds.

        Returns:
            Dict[str, Any]: The fully validated configuration.

        Raises:
            ConfigurationError: If any validation step fails.
        """
        self.config = self._load_json(self.config_path)
        self.schema = self._load_json(self.schema_path)

        self._validate_schema()
        self._validate_logic()
        self._validate_resources()
        self._propagate_seeds()

        return self.config

    def apply_overrides(self, strategy: Optional[str] = None, oob: bool = False,
                        verbose: bool = False) -> Dict[str, Any]:
        """
        Apply command-line overrides to the loaded configuration and
        re-run the logical and resource checks on the result.
        """
        if strategy:
            self.config.setdefault('search', {})['strategy'] = strategy
        if oob:
            self.config.setdefault('oob_tuning', {})['enabled'] = True
        if verbose:
            self.config.setdefault('logging', {})['level'] = 'DEBUG'

        if strategy or oob:
            self._validate_logic()
            self._validate_resources()
        return self.config

    def generate_run_id(self) -> str:
        """
        Generate or retrieve a unique run identifier based on timestamp.
        """
        if not self.run_id:
            self.run_id = datetime.now().strftime("%Y%m%d_%H%M%S")
        return self.run_id

    def save_artifacts(self, output_dir: str) -> None:
        """
        Save configuration artifacts to the run directory.

        Saves:
        1. config_used.json: The exact config object in memory.
        2. config_hash.txt: SHA256 hash for versioning.
        3. run_metadata.json: Environment details (Python version, platform, ...).
        """
        config_dir = Path(output_dir) / constants.CONFIG_DIR
        save_json(self.config, config_dir / constants.CONFIG_USED_FILE)

        config_str = json.dumps(self.config, sort_keys=True)
        config_hash = hashlib.sha256(config_str.encode()).hexdigest()

        with open(config_dir / constants.CONFIG_HASH_FILE, 'w') as f:
            f.write(config_hash)

        metadata = {
            'run_id': self.run_id,
            'start_time': datetime.now().isoformat(),
            'python_version': sys.version,
            'platform': sys.platform,
            'config_hash': config_hash,
            'working_directory': os.getcwd()
        }

        save_json(metadata, config_dir / constants.RUN_METADATA_FILE)

    def _load_json(self, path: str) -> Dict[str, Any]:
        """Safely load a JSON file."""
        if not os.path.exists(path):
            raise ConfigurationError(f"File not found: {path}")
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {str(e)}")

    def _validate_schema(self) -> None:
        """Validate config structure against JSON schema."""
        try:
            jsonschema.validate(instance=self.config, schema=self.schema)
        except jsonschema.ValidationError as e:
            raise ConfigurationError(f"Schema validation failed: {e.message}")

    def _validate_logic(self) -> None:
        """Logical validation beyond what the schema can express."""
        # --- Data Section ---
        data = self.config.get('data', {})
        if not data.get('file_path'):
            raise ConfigurationError("Data 'file_path' must be specified and non-empty.")

        # --- Resampling Section ---
        resampling = self.config.get('resampling', {})
        folds = resampling.get('folds', 10)
        repeats = resampling.get('repeats', 1)
        if folds < 2:
            raise ConfigurationError(f"resampling.folds must be >= 2, got {folds}.")
        if repeats < 1:
            raise ConfigurationError(f"resampling.repeats must be >= 1, got {repeats}.")
        if resampling.get('seed', 7) < 0:
            raise ConfigurationError("resampling.seed must be non-negative.")

        # --- Search Section ---
        search = self.config.get('search', {})
        strategy = search.get('strategy', constants.STRATEGY_GRID)
        if strategy not in constants.SEARCH_STRATEGIES:
            raise ConfigurationError(
                f"Unknown search strategy '{strategy}'. Available: {constants.SEARCH_STRATEGIES}"
            )

        if strategy == constants.STRATEGY_GRID and not search.get('grid'):
            raise ConfigurationError("search.grid cannot be empty when strategy is 'grid'.")

        if strategy == constants.STRATEGY_RANDOM:
            random_cfg = search.get('random', {})
            if not random_cfg.get('space'):
                raise ConfigurationError("search.random.space cannot be empty when strategy is 'random'.")
            n_candidates = random_cfg.get('n_candidates', 10)
            if n_candidates <= 0:
                raise ConfigurationError(f"search.random.n_candidates must be > 0, got {n_candidates}.")

        if strategy == constants.STRATEGY_MANUAL:
            manual = search.get('manual', {})
            if not manual.get('candidates') and not manual.get('vary'):
                raise ConfigurationError(
                    "search.manual needs 'candidates' or 'vary' when strategy is 'manual'."
                )
            if len(manual.get('vary', {})) > 1:
                raise ConfigurationError("search.manual.vary must name exactly one parameter.")

        # --- OOB Tuning Section ---
        oob = self.config.get('oob_tuning', {})
        if oob.get('enabled', False):
            if oob.get('step_factor', 1.5) <= 1.0:
                raise ConfigurationError(f"oob_tuning.step_factor must be > 1, got {oob.get('step_factor')}.")
            if oob.get('ntree_try', 500) < 1:
                raise ConfigurationError("oob_tuning.ntree_try must be >= 1.")
            start = oob.get('start_mtry')
            if start is not None and start < 1:
                raise ConfigurationError(f"oob_tuning.start_mtry must be >= 1, got {start}.")

        # --- Execution Section ---
        execution = self.config.get('execution', {})
        if 'n_jobs' in execution:
            n_jobs = execution['n_jobs']
            if n_jobs == 0 or n_jobs < -1:
                raise ConfigurationError(f"execution.n_jobs must be -1 (all cores) or a positive integer, got {n_jobs}")

    def _validate_resources(self) -> None:
        """
        Guard against grids that would run for days and worker pools larger
        than the machine.
        """
        resources = self.config.get('resources', {})
        search = self.config.get('search', {})
        max_configs = resources.get('max_search_configs', self.DEFAULT_MAX_SEARCH_CONFIGS)

        if search.get('strategy', constants.STRATEGY_GRID) == constants.STRATEGY_GRID:
            try:
                total_configs = len(ParameterGrid(search.get('grid', {})))
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid parameter grid: {str(e)}")

            if total_configs > max_configs:
                raise ConfigurationError(
                    f"Search Grid Explosion Detected! Total configurations ({total_configs}) exceeds "
                    f"safety limit ({max_configs}). Reduce the grid or increase 'resources.max_search_configs'."
                )
            logging.info(f"Search grid size validated: {total_configs} combinations (Limit: {max_configs})")

        execution = self.config.setdefault('execution', {})
        cpu_count = psutil.cpu_count(logical=True) or 1
        n_jobs = execution.get('n_jobs', 1)
        if n_jobs > cpu_count:
            logging.warning(
                f"Configured n_jobs ({n_jobs}) exceeds available CPUs ({cpu_count}). Capping to {cpu_count}."
            )
            execution['n_jobs'] = cpu_count

    def _propagate_seeds(self) -> None:
        """
        Derive component seeds from the resampling seed so every source of
        randomness is explicit. Offsets keep the streams uncorrelated.
        """
        master_seed = self.config.setdefault('resampling', {}).get('seed', 7)

        self.config['_internal_seeds'] = {
            'cv': master_seed,
            'search': master_seed + 1000,
            'model': master_seed + 2000,
            'oob': master_seed + 3000,
        }
        logging.debug(f"Seeds propagated from master ({master_seed}): {self.config['_internal_seeds']}")
