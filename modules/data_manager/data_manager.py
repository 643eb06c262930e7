import numpy as np
import pandas as pd
import logging
from pathlib import Path
from typing import Optional

from modules.base.base_engine import BaseEngine
from modules.data_manager.dataset import Dataset
from utils.exceptions import DataValidationError
from utils.file_io import read_dataframe
from utils.error_handling import handle_engine_errors
from utils import constants

class DataManager(BaseEngine):
    """
    Manages loading and validation of the labeled classification dataset.

    The default layout is the Sonar file: no header row, numeric feature
    columns and the class label in the last column.
    """

    def __init__(self, config: dict, logger: logging.Logger):
        super().__init__(config, logger)
        self.data_config = self.config.get('data', {})
        self.data: Optional[pd.DataFrame] = None

    def _get_engine_directory_name(self) -> str:
        return constants.DATA_INTEGRITY_DIR

    @handle_engine_errors("Data Management")
    def execute(self, run_id: str) -> Dataset:
        """
        Execute complete data loading and validation workflow.

        Args:
            run_id: Unique identifier for the run.

        Returns:
            Dataset: The validated, immutable dataset.
        """
        self.logger.info("Starting Data Manager execution...")

        self.load_data()
        stats_df = self.validate_nan_inf()
        dataset = self.build_dataset()

        self.save_table(stats_df, "column_stats.parquet")
        balance = dataset.class_counts().rename_axis('label').reset_index(name='count')
        self.save_table(balance, "class_balance.parquet")

        self.logger.info(f"Dataset ready for run {run_id}: {dataset}")
        return dataset

    def resolve_path(self) -> Path:
        """
        Resolve the configured data path. Relative paths are anchored to
        'allowed_dir' and the result must stay inside it.
        """
        file_path_str = self.data_config.get('file_path')
        if not file_path_str:
            raise DataValidationError("Data 'file_path' must be specified.")

        file_path = Path(file_path_str)
        allowed_dir = self.data_config.get('allowed_dir')

        if allowed_dir is None:
            resolved = file_path.resolve()
        else:
            allowed = Path(allowed_dir).resolve()
            resolved = file_path.resolve() if file_path.is_absolute() else (allowed / file_path).resolve()
            try:
                resolved.relative_to(allowed)
            except ValueError:
                raise DataValidationError(
                    f"Security Alert: Path is outside the allowed data directory: {file_path_str}"
                )

        if not resolved.exists():
            raise DataValidationError(f"Data file not found: {resolved}")
        return resolved

    def load_data(self) -> pd.DataFrame:
        """Load the raw table from disk."""
        path = self.resolve_path()
        has_header = self.data_config.get('has_header', False)
        self.logger.info(f"Loading data from {path}")

        try:
            self.data = read_dataframe(path, header=0 if has_header else None)
        except (ValueError, OSError, pd.errors.ParserError) as e:
            raise DataValidationError(f"Failed to load data: {str(e)}")

        if self.data.empty:
            raise DataValidationError("Loaded dataframe is empty.")

        drop_cols = [c for c in self.data_config.get('drop_columns', []) if c in self.data.columns]
        if drop_cols:
            self.data = self.data.drop(columns=drop_cols)

        self.logger.info(f"Data loaded successfully. Shape: {self.data.shape}")
        return self.data

    def target_column(self):
        """Configured target column, or the last column when unset."""
        target = self.data_config.get('target_column')
        if target is None:
            return self.data.columns[-1]
        if isinstance(target, int) and target not in self.data.columns:
            return self.data.columns[target]
        return target

    def validate_nan_inf(self) -> pd.DataFrame:
        """Check for NaN and Inf values and return statistics."""
        if self.data is None or self.data.empty:
            raise DataValidationError("Dataframe is empty or None.")

        stats = []
        for col in self.data.columns:
            if pd.api.types.is_numeric_dtype(self.data[col]):
                nan_count = int(self.data[col].isna().sum())
                inf_count = int(np.isinf(self.data[col]).sum())

                stats.append({
                    'column': str(col),
                    'nan_count': nan_count,
                    'inf_count': inf_count,
                    'min': self.data[col].min(),
                    'max': self.data[col].max(),
                    'mean': self.data[col].mean()
                })

                if nan_count > 0:
                    self.logger.warning(f"Column '{col}' contains {nan_count} NaNs.")
                if inf_count > 0:
                    self.logger.warning(f"Column '{col}' contains {inf_count} infinite values.")

        return pd.DataFrame(stats)

    def build_dataset(self) -> Dataset:
        """Split the loaded table into features and labels."""
        target = self.target_column()
        labels = self.data_config.get('labels')
        dataset = Dataset.from_frame(self.data, target, classes=labels)
        self.logger.info(
            f"Label distribution: {dataset.class_counts().to_dict()} over {dataset.n_features} features"
        )
        return dataset
