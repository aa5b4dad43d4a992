"""Internal validity indices

Each index is a function of (data, labels, distances) returning a float, or
NaN where the index is undefined for the partition (for example a single
cluster for indices that compare clusters). Indices never raise for
degenerate partitions; NaN columns are skipped downstream when ranking.

INDEX_DIRECTIONS records whether larger ("max") or smaller ("min") values
indicate a better clustering.
"""
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Union
import logging
import warnings

import numpy as np
import pandas as pd
from sklearn.metrics import (
    calinski_harabasz_score,
    davies_bouldin_score,
    silhouette_score,
)

from ..ensemble.distance import Metric, distance
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

IndexFunction = Callable[[np.ndarray, np.ndarray, np.ndarray], float]


def _n_clusters(labels: np.ndarray) -> int:
    return len(np.unique(labels))


def _pair_distances(labels: np.ndarray, D: np.ndarray):
    """Upper-triangle pair distances split into within- and between-cluster"""
    iu = np.triu_indices(len(labels), k=1)
    d = D[iu]
    same = labels[iu[0]] == labels[iu[1]]
    return d[same], d[~same], d


def _centroids(X: np.ndarray, labels: np.ndarray):
    uniq = np.unique(labels)
    return uniq, np.vstack([X[labels == lab].mean(axis=0) for lab in uniq])


def calinski_harabasz(X: np.ndarray, labels: np.ndarray, D: np.ndarray) -> float:
    k = _n_clusters(labels)
    if k < 2 or k >= len(labels):
        return np.nan
    return float(calinski_harabasz_score(X, labels))


def silhouette(X: np.ndarray, labels: np.ndarray, D: np.ndarray) -> float:
    k = _n_clusters(labels)
    if k < 2 or k >= len(labels):
        return np.nan
    return float(silhouette_score(D, labels, metric="precomputed"))


def davies_bouldin(X: np.ndarray, labels: np.ndarray, D: np.ndarray) -> float:
    if _n_clusters(labels) < 2:
        return np.nan
    return float(davies_bouldin_score(X, labels))


def dunn(X: np.ndarray, labels: np.ndarray, D: np.ndarray) -> float:
    """Smallest between-cluster distance over largest cluster diameter"""
    if _n_clusters(labels) < 2:
        return np.nan
    within, between, _ = _pair_distances(labels, D)
    diameter = within.max() if within.size else 0.0
    if diameter == 0:
        return np.nan
    return float(between.min() / diameter)


def pbm(X: np.ndarray, labels: np.ndarray, D: np.ndarray) -> float:
    """PBM index: ((1/K) * (E1/EK) * DK)^2"""
    k = _n_clusters(labels)
    if k < 2:
        return np.nan
    uniq, centers = _centroids(X, labels)
    e1 = np.linalg.norm(X - X.mean(axis=0), axis=1).sum()
    ek = sum(
        np.linalg.norm(X[labels == lab] - centers[i], axis=1).sum()
        for i, lab in enumerate(uniq)
    )
    if ek == 0:
        return np.nan
    center_dist = np.linalg.norm(centers[:, None, :] - centers[None, :, :], axis=2)
    return float(((1.0 / k) * (e1 / ek) * center_dist.max()) ** 2)


def _concordance(within: np.ndarray, between: np.ndarray):
    """(s_plus, s_minus): concordant and discordant (within, between) pairs"""
    ordered = np.sort(between)
    below = np.searchsorted(ordered, within, side="left")
    above = len(ordered) - np.searchsorted(ordered, within, side="right")
    return float(above.sum()), float(below.sum())


def gamma(X: np.ndarray, labels: np.ndarray, D: np.ndarray) -> float:
    """Baker-Hubert gamma"""
    within, between, _ = _pair_distances(labels, D)
    if within.size == 0 or between.size == 0:
        return np.nan
    s_plus, s_minus = _concordance(within, between)
    if s_plus + s_minus == 0:
        return np.nan
    return (s_plus - s_minus) / (s_plus + s_minus)


def g_plus(X: np.ndarray, labels: np.ndarray, D: np.ndarray) -> float:
    """Proportion of discordant pairs among all pairs of pair distances"""
    within, between, d = _pair_distances(labels, D)
    if within.size == 0 or between.size == 0:
        return np.nan
    _, s_minus = _concordance(within, between)
    nt = len(d)
    return 2.0 * s_minus / (nt * (nt - 1))


def tau(X: np.ndarray, labels: np.ndarray, D: np.ndarray) -> float:
    """Kendall-style tau between pair distances and the cluster indicator"""
    within, between, d = _pair_distances(labels, D)
    if within.size == 0 or between.size == 0:
        return np.nan
    s_plus, s_minus = _concordance(within, between)
    nt = len(d)
    total = nt * (nt - 1) / 2.0
    _, counts = np.unique(d, return_counts=True)
    ties = float((counts * (counts - 1) / 2.0).sum())
    denom = np.sqrt((total - ties) * total)
    if denom == 0:
        return np.nan
    return float((s_plus - s_minus) / denom)


def c_index(X: np.ndarray, labels: np.ndarray, D: np.ndarray) -> float:
    within, between, d = _pair_distances(labels, D)
    if within.size == 0 or between.size == 0:
        return np.nan
    ordered = np.sort(d)
    nw = within.size
    s_min = ordered[:nw].sum()
    s_max = ordered[-nw:].sum()
    if s_max == s_min:
        return np.nan
    return float((within.sum() - s_min) / (s_max - s_min))


def mcclain_rao(X: np.ndarray, labels: np.ndarray, D: np.ndarray) -> float:
    """Mean within-cluster over mean between-cluster distance"""
    within, between, _ = _pair_distances(labels, D)
    if within.size == 0 or between.size == 0 or between.mean() == 0:
        return np.nan
    return float(within.mean() / between.mean())


def ray_turi(X: np.ndarray, labels: np.ndarray, D: np.ndarray) -> float:
    if _n_clusters(labels) < 2:
        return np.nan
    uniq, centers = _centroids(X, labels)
    pos = np.searchsorted(uniq, labels)
    wss = ((X - centers[pos]) ** 2).sum() / len(labels)
    sep = ((centers[:, None, :] - centers[None, :, :]) ** 2).sum(axis=2)
    sep = sep[np.triu_indices(len(uniq), k=1)].min()
    if sep == 0:
        return np.nan
    return float(wss / sep)


def compactness(X: np.ndarray, labels: np.ndarray, D: np.ndarray) -> float:
    """
    Size-weighted average within-cluster pairwise distance

    Singleton clusters contribute zero. Lower is better.
    """
    total = 0.0
    for lab in np.unique(labels):
        idx = np.flatnonzero(labels == lab)
        if idx.size < 2:
            continue
        block = D[np.ix_(idx, idx)]
        total += idx.size * block[np.triu_indices(idx.size, k=1)].mean()
    return float(total / len(labels))


def connectivity(
    X: np.ndarray,
    labels: np.ndarray,
    D: np.ndarray,
    n_neighbors: int = 10,
) -> float:
    """
    Connectivity: penalty 1/j when a sample's j-th nearest neighbour lies in
    another cluster. Lower is better; zero for perfectly connected clusters.
    """
    n = len(labels)
    L = min(n_neighbors, n - 1)
    if L < 1:
        return 0.0
    masked = D.astype(float).copy()
    np.fill_diagonal(masked, np.inf)
    neighbours = np.argsort(masked, axis=1, kind="stable")[:, :L]
    differs = labels[neighbours] != labels[:, None]
    return float((differs / np.arange(1, L + 1)[None, :]).sum())


INTERNAL_INDICES: Dict[str, IndexFunction] = {
    "calinski_harabasz": calinski_harabasz,
    "dunn": dunn,
    "pbm": pbm,
    "tau": tau,
    "gamma": gamma,
    "c_index": c_index,
    "davies_bouldin": davies_bouldin,
    "mcclain_rao": mcclain_rao,
    "ray_turi": ray_turi,
    "g_plus": g_plus,
    "silhouette": silhouette,
    "compactness": compactness,
    "connectivity": connectivity,
}

INDEX_DIRECTIONS: Dict[str, str] = {
    "calinski_harabasz": "max",
    "dunn": "max",
    "pbm": "max",
    "tau": "max",
    "gamma": "max",
    "c_index": "min",
    "davies_bouldin": "min",
    "mcclain_rao": "min",
    "ray_turi": "min",
    "g_plus": "min",
    "silhouette": "max",
    "compactness": "min",
    "connectivity": "min",
}


def _check_indices(indices: Optional[Sequence[str]]) -> List[str]:
    if indices is None:
        return list(INTERNAL_INDICES)
    unknown = [name for name in indices if name not in INTERNAL_INDICES]
    if unknown:
        raise ConfigurationError(
            f"Unknown internal indices {unknown}. Valid: {list(INTERNAL_INDICES)}"
        )
    return list(indices)


def internal_indices(
    data,
    labels,
    indices: Optional[Sequence[str]] = None,
    metric: Metric = "euclidean",
    distances: Optional[np.ndarray] = None,
) -> Dict[str, float]:
    """
    Compute a battery of internal indices for one partition

    Samples with a missing label are left out.

    Args:
        data: Samples x features matrix
        labels: Partition (NaN = missing)
        indices: Index names (default: all)
        metric: Distance used by distance-based indices
        distances: Optional precomputed n x n distances

    Returns:
        Dict of index name to value (NaN where undefined)
    """
    names = _check_indices(indices)
    X = data.to_numpy(dtype=float) if isinstance(data, pd.DataFrame) else np.asarray(data, dtype=float)
    labels = np.asarray(labels, dtype=float)
    if len(labels) != X.shape[0]:
        raise ConfigurationError(f"{len(labels)} labels for {X.shape[0]} samples")
    D = distance(X, metric) if distances is None else np.asarray(distances, dtype=float)

    keep = ~np.isnan(labels)
    if not keep.all():
        X, labels, D = X[keep], labels[keep], D[np.ix_(keep, keep)]
    if labels.size == 0:
        return {name: np.nan for name in names}

    results = {}
    for name in names:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", category=RuntimeWarning)
            value = INTERNAL_INDICES[name](X, labels, D)
        results[name] = float(value) if np.isfinite(value) else np.nan
    return results


def ivi_table(
    data,
    partitions: Union[Mapping[str, np.ndarray], pd.DataFrame],
    indices: Optional[Sequence[str]] = None,
    metric: Metric = "euclidean",
) -> pd.DataFrame:
    """
    Internal validity index table: one row per ensemble member

    Args:
        data: Samples x features matrix
        partitions: Mapping (or DataFrame columns) of member name to labels
        indices: Index names (default: all)
        metric: Distance for distance-based indices

    Returns:
        DataFrame indexed by member, one column per index
    """
    names = _check_indices(indices)
    if isinstance(partitions, pd.DataFrame):
        partitions = {str(col): partitions[col].to_numpy() for col in partitions.columns}
    if not partitions:
        raise ConfigurationError("No partitions to evaluate")

    X = data.to_numpy(dtype=float) if isinstance(data, pd.DataFrame) else np.asarray(data, dtype=float)
    D = distance(X, metric)
    rows = {
        member: internal_indices(X, labels, names, distances=D)
        for member, labels in partitions.items()
    }
    table = pd.DataFrame.from_dict(rows, orient="index", columns=names)
    table.index.name = "member"
    undefined = table.columns[table.isna().any()].tolist()
    if undefined:
        logger.debug(f"Indices undefined for some members: {undefined}")
    return table
