"""
Data Manager Module
===================

Responsibility:
- Loading of the labeled dataset (CSV, Excel, Parquet) from a sandboxed directory.
- Validation of feature types, missing values and the declared label set.
- Construction of the immutable Dataset shared by every search.
"""

from .dataset import Dataset
from .data_manager import DataManager

__all__ = ['Dataset', 'DataManager']
