from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from utils.exceptions import DataValidationError


class Dataset:
    """
    Immutable labeled dataset shared read-only by every candidate of a search.

    Features are stored as a 2-D float array and labels as a 1-D array; both
    are flagged non-writeable. The class set is fixed at construction so
    fold-level metrics always see the same label universe.
    """

    def __init__(self, features, labels, feature_names: Optional[Sequence[str]] = None,
                 classes: Optional[Sequence] = None):
        features = np.array(features, dtype=float, copy=True)
        labels = np.array(labels, copy=True)

        if features.ndim != 2:
            raise DataValidationError(f"Features must be 2-D, got {features.ndim} dimension(s).")
        if labels.ndim != 1:
            raise DataValidationError(f"Labels must be 1-D, got {labels.ndim} dimension(s).")
        if len(features) != len(labels):
            raise DataValidationError(
                f"Feature rows ({len(features)}) and labels ({len(labels)}) differ in length."
            )
        if len(features) == 0:
            raise DataValidationError("Dataset has no examples.")
        if not np.all(np.isfinite(features)):
            raise DataValidationError("Features contain NaN or infinite values.")
        if pd.isna(labels).any():
            raise DataValidationError("Labels contain missing values.")

        observed = sorted(pd.unique(labels).tolist())
        if classes is None:
            classes = observed
        else:
            classes = sorted(classes)
            unexpected = [c for c in observed if c not in classes]
            if unexpected:
                raise DataValidationError(f"Labels {unexpected} are not in the declared label set {classes}.")
        if len(classes) < 2:
            raise DataValidationError(f"Classification needs at least 2 classes, got {classes}.")

        if feature_names is None:
            feature_names = [f"V{i + 1}" for i in range(features.shape[1])]
        if len(feature_names) != features.shape[1]:
            raise DataValidationError(
                f"{len(feature_names)} feature names given for {features.shape[1]} feature columns."
            )

        features.setflags(write=False)
        labels.setflags(write=False)
        self._features = features
        self._labels = labels
        self._feature_names = tuple(str(n) for n in feature_names)
        self._classes = tuple(classes)

    @classmethod
    def from_frame(cls, df: pd.DataFrame, target_column, classes: Optional[Sequence] = None) -> "Dataset":
        """Build a Dataset from a DataFrame whose remaining columns are all numeric features."""
        if target_column not in df.columns:
            raise DataValidationError(f"Target column '{target_column}' not found in dataset.")
        feature_df = df.drop(columns=[target_column])
        non_numeric = [c for c in feature_df.columns if not pd.api.types.is_numeric_dtype(feature_df[c])]
        if non_numeric:
            raise DataValidationError(f"Non-numeric feature columns: {non_numeric}")
        return cls(feature_df.to_numpy(), df[target_column].to_numpy(),
                   feature_names=[str(c) for c in feature_df.columns], classes=classes)

    @property
    def features(self) -> np.ndarray:
        return self._features

    @property
    def labels(self) -> np.ndarray:
        return self._labels

    @property
    def feature_names(self) -> Tuple[str, ...]:
        return self._feature_names

    @property
    def classes(self) -> Tuple:
        return self._classes

    @property
    def n_examples(self) -> int:
        return self._features.shape[0]

    @property
    def n_features(self) -> int:
        return self._features.shape[1]

    def class_counts(self) -> pd.Series:
        counts = pd.Series(self._labels).value_counts()
        return counts.reindex(list(self._classes), fill_value=0)

    def __len__(self) -> int:
        return self.n_examples

    def __repr__(self) -> str:
        return f"Dataset(n_examples={self.n_examples}, n_features={self.n_features}, classes={self._classes})"
