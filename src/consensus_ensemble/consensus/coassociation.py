"""Co-association (consensus) matrices

Entry (i, j) is the proportion of partitions assigning both i and j in which
they share a cluster. Pairs that never co-occur are NaN.
"""
from typing import Dict, Optional, Sequence
import logging

import numpy as np
import pandas as pd
from scipy.spatial.distance import pdist, squareform

from ..exceptions import ConfigurationError
from ..ensemble.assignments import AssignmentArray
from .hierarchy import hc_cut

logger = logging.getLogger(__name__)


def as_partition_matrix(partitions) -> np.ndarray:
    """Coerce input to a non-empty n x m float partition matrix"""
    if isinstance(partitions, pd.DataFrame):
        partitions = partitions.to_numpy(dtype=float)
    matrix = np.asarray(partitions, dtype=float)
    if matrix.ndim == 1:
        matrix = matrix[:, None]
    elif matrix.ndim > 2:
        # (n, reps, algorithms[, k]) -> n x everything else
        matrix = matrix.reshape(matrix.shape[0], -1)
    if matrix.size == 0 or matrix.shape[1] == 0:
        raise ConfigurationError("Partition matrix is empty")
    return matrix


def consensus_matrix(
    partitions,
    weights: Optional[Sequence[float]] = None,
) -> np.ndarray:
    """
    Build the co-association matrix of a set of partitions

    One pass over the columns accumulates, per pair, the (weighted) number of
    partitions placing both samples together and the number assigning both.

    Args:
        partitions: n x m partition matrix (NaN = missing)
        weights: Optional non-negative weight per column

    Returns:
        Symmetric n x n matrix, diagonal 1, entries in [0, 1] or NaN where a
        pair never co-occurs
    """
    matrix = as_partition_matrix(partitions)
    n, m = matrix.shape

    if weights is None:
        weights = np.ones(m)
    weights = np.asarray(weights, dtype=float)
    if weights.shape != (m,):
        raise ConfigurationError(f"Expected {m} column weights, got {weights.shape}")
    if np.any(weights < 0):
        raise ConfigurationError("Column weights must be non-negative")

    same = np.zeros((n, n))
    both = np.zeros((n, n))
    for j in range(m):
        col = matrix[:, j]
        present = ~np.isnan(col)
        if not present.any() or weights[j] == 0:
            continue
        rows = np.flatnonzero(present)
        _, inverse = np.unique(col[present], return_inverse=True)
        onehot = np.zeros((n, inverse.max() + 1))
        onehot[rows, inverse] = 1.0
        mask = present.astype(float)
        same += weights[j] * (onehot @ onehot.T)
        both += weights[j] * np.outer(mask, mask)

    with np.errstate(invalid="ignore", divide="ignore"):
        cm = np.where(both > 0, same / both, np.nan)
    cm = np.clip(cm, 0.0, 1.0)
    np.fill_diagonal(cm, 1.0)

    undefined = np.isnan(cm).sum()
    if undefined:
        logger.debug(f"{undefined // 2} sample pairs never co-occur; left as NaN")
    return cm


def has_defined_pairs(cm: np.ndarray) -> bool:
    """Whether any pair of distinct samples ever co-occurred"""
    cm = np.asarray(cm, dtype=float)
    if cm.shape[0] < 2:
        return True
    off_diagonal = ~np.eye(cm.shape[0], dtype=bool)
    return bool(np.isfinite(cm[off_diagonal]).any())


def consensus_class(cm: np.ndarray, k: int, method: str = "average") -> np.ndarray:
    """
    Cut a co-association matrix into k classes

    Rows of the matrix are compared by Euclidean distance (NaN treated as 0)
    and clustered hierarchically.

    Raises:
        ConfigurationError: If no pair of samples is defined in the matrix
            (every partition behind it failed)
    """
    if not has_defined_pairs(cm):
        raise ConfigurationError("Co-association matrix has no defined sample pairs")
    filled = np.nan_to_num(np.asarray(cm, dtype=float), nan=0.0)
    return hc_cut(squareform(pdist(filled)), k, method=method)


def consensus_combine(
    E: AssignmentArray,
    element: str = "matrix",
) -> Dict[int, Dict[str, np.ndarray]]:
    """
    Per-k, per-algorithm consensus matrices or consensus classes

    Args:
        E: Assignment array
        element: "matrix" for co-association matrices, "class" for the
            hierarchical cut of each matrix at its k

    Returns:
        For "matrix": {k: {algorithm: n x n matrix}}.
        For "class": {k: DataFrame (samples x algorithms)}; algorithms
        whose matrix at k has no defined pairs are left out with a warning.
    """
    if element not in ("matrix", "class"):
        raise ConfigurationError(f"element must be 'matrix' or 'class', got '{element}'")

    matrices = {
        k: {alg: consensus_matrix(E.slice(k, alg)) for alg in E.algorithms}
        for k in E.nk
    }
    if element == "matrix":
        return matrices

    classes = {}
    for k, by_alg in matrices.items():
        frame = pd.DataFrame(index=E.samples)
        for alg, cm in by_alg.items():
            if not has_defined_pairs(cm):
                logger.warning(f"k={k}: {alg} failed in every replicate; no consensus class")
                continue
            frame[alg] = consensus_class(cm, k)
        classes[k] = frame
    return classes
