import abc
import logging
from pathlib import Path
from typing import Dict, Any, Optional

import pandas as pd

from utils.file_io import save_dataframe


class BaseEngine(abc.ABC):
    """
    Abstract base class for the tuning engines.

    Every engine owns one numbered directory under the run directory
    (`outputs.base_results_dir`) and writes its tables there. Setting
    `outputs.skip_dir_creation` turns an engine into a compute-only helper
    that never touches the filesystem.
    """

    def __init__(self, config: Dict[str, Any], logger: logging.Logger):
        self.config = config
        self.logger = logger
        self.base_dir = Path(self.config.get('outputs', {}).get('base_results_dir', 'results'))
        self.output_dir = self.base_dir / self._get_engine_directory_name()

        self._setup_directories()

    @abc.abstractmethod
    def _get_engine_directory_name(self) -> str:
        """Numbered directory name from utils.constants, e.g. '03_HyperparameterSearch'."""
        raise NotImplementedError("Subclasses must implement _get_engine_directory_name.")

    @property
    def persist_outputs(self) -> bool:
        return not self.config.get('outputs', {}).get('skip_dir_creation', False)

    @property
    def excel_copy(self) -> bool:
        return self.config.get('outputs', {}).get('save_excel_copy', False)

    def _setup_directories(self):
        if not self.persist_outputs:
            return
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.logger.info(f"Output directory for {self.__class__.__name__}: {self.output_dir}")

    def save_table(self, df: pd.DataFrame, filename: str, subdir: Optional[str] = None) -> Optional[Path]:
        """Write `df` as Parquet under the engine directory; no-op in compute-only mode."""
        if not self.persist_outputs:
            return None
        target_dir = self.output_dir / subdir if subdir else self.output_dir
        path = save_dataframe(df, target_dir / filename, excel_copy=self.excel_copy)
        self.logger.debug(f"Saved {len(df)} rows to {path}")
        return path

    @abc.abstractmethod
    def execute(self, *args, **kwargs) -> Any:
        """Run the engine. Must be implemented by all subclasses."""
        pass
