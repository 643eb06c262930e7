import numpy as np
import pandas as pd
import pytest

from modules.data_manager import Dataset
from utils.exceptions import DataValidationError


def test_dataset_is_read_only():
    ds = Dataset([[0.1, 0.2], [0.3, 0.4], [0.5, 0.6]], ['R', 'M', 'R'])
    with pytest.raises(ValueError):
        ds.features[0, 0] = 1.0
    with pytest.raises(ValueError):
        ds.labels[0] = 'M'


def test_dataset_copies_input():
    X = np.zeros((4, 2))
    ds = Dataset(X, [0, 1, 0, 1])
    X[0, 0] = 5.0
    assert ds.features[0, 0] == 0.0


def test_dataset_properties():
    ds = Dataset(np.ones((4, 3)), ['R', 'M', 'R', 'R'])
    assert ds.n_examples == 4
    assert len(ds) == 4
    assert ds.n_features == 3
    assert ds.classes == ('M', 'R')
    assert ds.feature_names == ('V1', 'V2', 'V3')
    assert ds.class_counts().to_dict() == {'M': 1, 'R': 3}


def test_declared_label_set_kept():
    ds = Dataset(np.ones((2, 1)), ['R', 'R'], classes=['M', 'R'])
    assert ds.classes == ('M', 'R')
    assert ds.class_counts()['M'] == 0


@pytest.mark.parametrize("features, labels, match", [
    (np.ones(3), [0, 1, 0], "2-D"),
    (np.ones((3, 2)), [0, 1], "differ in length"),
    (np.empty((0, 2)), [], "no examples"),
    ([[np.nan, 1.0], [1.0, 2.0]], [0, 1], "NaN"),
    (np.ones((3, 2)), [1, 1, 1], "at least 2 classes"),
])
def test_invalid_datasets(features, labels, match):
    with pytest.raises(DataValidationError, match=match):
        Dataset(features, labels)


def test_unknown_label_rejected():
    with pytest.raises(DataValidationError, match="not in the declared label set"):
        Dataset(np.ones((2, 1)), ['R', 'X'], classes=['M', 'R'])


def test_from_frame():
    df = pd.DataFrame({'a': [0.1, 0.2], 'b': [1.0, 2.0], 'Class': ['M', 'R']})
    ds = Dataset.from_frame(df, 'Class')
    assert ds.feature_names == ('a', 'b')
    assert ds.n_features == 2


def test_from_frame_non_numeric_feature():
    df = pd.DataFrame({'a': ['x', 'y'], 'Class': ['M', 'R']})
    with pytest.raises(DataValidationError, match="Non-numeric"):
        Dataset.from_frame(df, 'Class')
