import contextlib
import json
import logging
import shutil
import time
from pathlib import Path
from typing import Any, Dict, Iterator

import numpy as np
import pandas as pd


class NumpyEncoder(json.JSONEncoder):
    """Handles serialization of NumPy types to JSON."""
    def default(self, obj):
        if isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return float(obj)
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        return json.JSONEncoder.default(self, obj)


@contextlib.contextmanager
def file_lock(lock_file: Path, timeout: int = 60, poll_interval: float = 0.1):
    """
    Directory-based lock (mkdir is atomic on every supported OS).
    A lock older than `timeout` seconds is treated as stale and broken.
    """
    lock_dir = lock_file.parent / (lock_file.name + ".lock")
    start_time = time.time()

    while True:
        try:
            lock_dir.mkdir(exist_ok=False)
            break
        except FileExistsError:
            if time.time() - start_time > timeout:
                logging.warning(f"Lock timeout expired for {lock_file}. Forcing release.")
                shutil.rmtree(lock_dir, ignore_errors=True)
            time.sleep(poll_interval)

    try:
        yield
    finally:
        shutil.rmtree(lock_dir, ignore_errors=True)


def arrow_safe(df: pd.DataFrame) -> pd.DataFrame:
    """
    Cast object columns holding mixed value types (e.g. max_features as
    'sqrt' in one row and 3 in another) to strings so Arrow can store them.
    """
    mixed = [c for c in df.columns if df[c].dtype == object and df[c].map(type).nunique() > 1]
    if not mixed:
        return df
    df = df.copy()
    for col in mixed:
        df[col] = df[col].astype(str)
    return df


def save_dataframe(df: pd.DataFrame, path: Path, *, excel_copy: bool = False, index: bool = False) -> Path:
    """
    Save a DataFrame to Parquet with an optional Excel copy next to it.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = arrow_safe(df)
    df.to_parquet(path, index=index)

    if excel_copy:
        df.to_excel(path.with_suffix(".xlsx"), index=index)

    return path


def read_dataframe(path: Path, **csv_kwargs) -> pd.DataFrame:
    """
    Load a table from Parquet, Excel or delimited text based on the extension.
    Extra keyword arguments go to the CSV reader (e.g. header=None for Sonar).
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".parquet":
        return pd.read_parquet(path)
    if suffix in {".xlsx", ".xls"}:
        return pd.read_excel(path)
    if suffix in {".csv", ".data", ".txt"}:
        return pd.read_csv(path, **csv_kwargs)

    raise ValueError(f"Unsupported file extension for reading: {suffix}")


def save_json(obj: Any, path: Path, indent: int = 2) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(obj, f, indent=indent, cls=NumpyEncoder)
    return path


def append_jsonl(record: Dict[str, Any], path: Path) -> None:
    """Append one JSON line under the directory lock."""
    path = Path(path)
    with file_lock(path):
        with open(path, 'a') as f:
            f.write(json.dumps(record, cls=NumpyEncoder) + "\n")


def read_jsonl(path: Path, logger: logging.Logger = None) -> Iterator[Dict[str, Any]]:
    """Yield records from a JSON-lines file, skipping blank and corrupt lines."""
    logger = logger or logging.getLogger(__name__)
    with open(path, 'r') as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError:
                logger.warning(f"Skipping corrupt line {line_no} in {path}")
