"""
Lightweight hashing utilities.

- Stable fingerprints for parameter configurations (resume matching, dedup).
"""

import json
from functools import lru_cache
from hashlib import sha256
from typing import Any, Dict

import numpy as np


@lru_cache(maxsize=1024)
def fingerprint(key: str) -> str:
    """
    Deterministically hash a string key (cached to avoid repeated hashing).
    """
    return sha256(key.encode("utf-8")).hexdigest()


def params_fingerprint(params: Dict[str, Any]) -> str:
    """Fingerprint a parameter mapping independent of key order."""
    return fingerprint(json.dumps(params, sort_keys=True, default=_to_builtin))


def _to_builtin(obj):
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")
