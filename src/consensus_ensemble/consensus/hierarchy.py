"""Hierarchical cut shared by the graph-based consensus functions"""
import numpy as np
from scipy.cluster.hierarchy import cut_tree, linkage
from scipy.spatial.distance import squareform

from ..exceptions import ConfigurationError


def check_k(k: int, n: int) -> int:
    """Validate a requested cluster count against the sample count"""
    if isinstance(k, bool) or int(k) != k:
        raise ConfigurationError(f"k must be an integer, got {k!r}")
    k = int(k)
    if k < 1 or k > n:
        raise ConfigurationError(f"Invalid k={k} for {n} samples: need 1 <= k <= n")
    return k


def renumber(labels: np.ndarray) -> np.ndarray:
    """Renumber labels 1..K in order of first appearance"""
    labels = np.asarray(labels)
    _, first = np.unique(labels, return_index=True)
    order = labels[np.sort(first)]
    lookup = {lab: i + 1 for i, lab in enumerate(order)}
    return np.array([lookup[lab] for lab in labels], dtype=int)


def hc_cut(distances: np.ndarray, k: int, method: str = "average") -> np.ndarray:
    """
    Agglomerative clustering of a square distance matrix cut into exactly k groups

    SciPy's linkage merges the lowest-index pair among equal distances, so the
    result is deterministic for a given matrix. Labels are renumbered 1..k by
    first appearance.

    Args:
        distances: Symmetric n x n distance matrix
        k: Number of groups
        method: Linkage method (average by default)

    Returns:
        Integer labels in [1, k]
    """
    distances = np.asarray(distances, dtype=float)
    n = distances.shape[0]
    k = check_k(k, n)
    if n == 1:
        return np.ones(1, dtype=int)
    if np.isnan(distances).any():
        raise ConfigurationError("Distance matrix contains NaN entries")

    sym = (distances + distances.T) / 2.0
    np.fill_diagonal(sym, 0.0)
    sym = np.clip(sym, 0.0, None)
    Z = linkage(squareform(sym, checks=False), method=method)
    labels = cut_tree(Z, n_clusters=k).ravel()
    return renumber(labels)
