"""
OOB Tuner
=========

Random-forest-native mtry tuning driven by out-of-bag error.
"""

from .oob_tuner import OOBTuner

__all__ = ['OOBTuner']
