"""Data I/O for sample tables, arrays and assignment arrays"""
from pathlib import Path
from typing import Any, Optional, Sequence, Union
import json
import logging

import numpy as np
import pandas as pd

from ..ensemble.assignments import AssignmentArray

logger = logging.getLogger(__name__)

TABLE_FORMATS = [".csv", ".tsv", ".parquet", ".feather"]
ARRAY_FORMATS = [".npy"]


def _check_suffix(path: Path, allowed: Sequence[str], what: str) -> str:
    suffix = path.suffix.lower()
    if suffix not in allowed:
        raise ValueError(
            f"Unsupported file format for {what}: '{suffix}' ({path.name}). "
            f"Supported: {', '.join(allowed)}"
        )
    return suffix


def load_data(path: Union[str, Path], **kwargs: Any) -> Union[pd.DataFrame, np.ndarray]:
    """
    Load a samples x features table or array

    Delimited files use their first column as the sample index unless
    index_col is given.

    Args:
        path: Path to data file
        **kwargs: Passed to the pandas/numpy reader

    Returns:
        DataFrame for tables, ndarray for .npy
    """
    path = Path(path)
    suffix = _check_suffix(path, TABLE_FORMATS + ARRAY_FORMATS, "load_data")

    if suffix == ".npy":
        return np.load(path, **kwargs)
    if suffix == ".parquet":
        return pd.read_parquet(path, **kwargs)
    if suffix == ".feather":
        return pd.read_feather(path, **kwargs)

    kwargs.setdefault("index_col", 0)
    sep = "\t" if suffix == ".tsv" else ","
    data = pd.read_csv(path, sep=sep, **kwargs)
    logger.debug(f"Loaded {data.shape[0]} x {data.shape[1]} table from {path}")
    return data


def load_labels(path: Union[str, Path], index: Optional[pd.Index] = None) -> np.ndarray:
    """
    Load a reference labelling from the first column of a table

    Args:
        path: Table with samples as index
        index: When given, labels are aligned to these sample names

    Returns:
        Label vector (NaN for samples the table does not cover)
    """
    labels = load_data(path).iloc[:, 0]
    if index is not None:
        missing = index.difference(labels.index)
        if len(missing):
            logger.warning(f"{len(missing)} samples have no reference label")
        labels = labels.reindex(index)
    return labels.to_numpy()


def save_data(
    data: Union[pd.DataFrame, np.ndarray],
    path: Union[str, Path],
    **kwargs: Any
) -> None:
    """
    Save a table or array, format chosen by suffix

    Args:
        data: DataFrame or ndarray
        path: Output path; parent directories are created
        **kwargs: Passed to the pandas/numpy writer
    """
    path = Path(path)

    if isinstance(data, pd.DataFrame):
        suffix = _check_suffix(path, TABLE_FORMATS, "DataFrames")
        path.parent.mkdir(parents=True, exist_ok=True)
        writers = {
            ".csv": lambda: data.to_csv(path, **kwargs),
            ".tsv": lambda: data.to_csv(path, sep="\t", **kwargs),
            ".parquet": lambda: data.to_parquet(path, **kwargs),
            ".feather": lambda: data.to_feather(path, **kwargs),
        }
        writers[suffix]()
    elif isinstance(data, np.ndarray):
        _check_suffix(path, ARRAY_FORMATS, "arrays")
        path.parent.mkdir(parents=True, exist_ok=True)
        np.save(path, data, **kwargs)
    else:
        raise TypeError(f"Unsupported data type: {type(data)}")


def save_assignment_array(E: AssignmentArray, path: Union[str, Path]) -> None:
    """Save an assignment array as .npz (labels plus JSON axis metadata)"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    meta = json.dumps({"samples": E.samples, "algorithms": E.algorithms, "nk": E.nk})
    np.savez_compressed(path, values=E.values, meta=np.array(meta))


def load_assignment_array(path: Union[str, Path]) -> AssignmentArray:
    """Load an assignment array written by save_assignment_array"""
    with np.load(Path(path), allow_pickle=False) as archive:
        values = archive["values"]
        meta = json.loads(str(archive["meta"]))
    return AssignmentArray(
        values=values,
        samples=meta["samples"],
        algorithms=meta["algorithms"],
        nk=meta["nk"],
    )
