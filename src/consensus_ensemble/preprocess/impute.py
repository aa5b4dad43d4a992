"""Missing assignment imputation

Subsampling leaves every partition incomplete. Two stages fill the gaps:

- KNN: a sample missing from a partition takes the majority label of its
  nearest labelled neighbours in feature space, when enough of them agree
- Majority vote: whatever KNN leaves open is resolved by voting across the
  other partitions of the same k after relabelling
"""
from typing import Dict, Optional, Sequence, Union
import logging

import numpy as np
import pandas as pd
from sklearn.neighbors import NearestNeighbors

from ..consensus.relabel import relabel_map
from ..ensemble.assignments import AssignmentArray
from ..ensemble.distance import Metric, distance
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _as_data(data, n: int) -> np.ndarray:
    X = data.to_numpy(dtype=float) if isinstance(data, pd.DataFrame) else np.asarray(data, dtype=float)
    if X.ndim != 2 or X.shape[0] != n:
        raise ConfigurationError(f"Data must have {n} rows (one per sample), got shape {X.shape}")
    if np.isnan(X).any():
        raise ConfigurationError("Data used for KNN imputation contains missing values")
    return X


def impute_knn(
    partition: np.ndarray,
    data: Union[np.ndarray, pd.DataFrame],
    n_neighbors: int = 5,
    min_agreement: float = 0.5,
    metric: Metric = "euclidean",
    distances: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Fill missing labels of one partition from nearest labelled neighbours

    A missing sample takes the most frequent label among its n_neighbors
    nearest labelled samples (lowest label on ties), but only if the share of
    neighbours carrying that label exceeds min_agreement. Otherwise it stays
    missing for a later stage.

    Args:
        partition: Label vector (NaN = missing)
        data: Samples x features matrix aligned with the partition
        n_neighbors: Neighbours consulted per missing sample
        min_agreement: Required neighbour agreement in [0, 1)
        metric: Distance between samples (see ensemble.distance)
        distances: Optional precomputed n x n distance matrix

    Returns:
        Copy of the partition with resolvable entries filled
    """
    labels = np.asarray(partition, dtype=float).copy()
    if labels.ndim != 1:
        raise ConfigurationError(f"partition must be one-dimensional, got shape {labels.shape}")
    if n_neighbors < 1:
        raise ConfigurationError(f"n_neighbors must be >= 1, got {n_neighbors}")
    if not 0 <= min_agreement < 1:
        raise ConfigurationError(f"min_agreement must be in [0, 1), got {min_agreement}")

    missing = np.isnan(labels)
    if not missing.any():
        return labels
    labelled = np.flatnonzero(~missing)
    if labelled.size == 0:
        logger.debug("Partition has no labelled samples; nothing to impute from")
        return labels

    if distances is None:
        D = distance(_as_data(data, len(labels)), metric)
    else:
        D = np.asarray(distances, dtype=float)

    targets = np.flatnonzero(missing)
    n_nb = min(n_neighbors, labelled.size)
    nn = NearestNeighbors(n_neighbors=n_nb, metric="precomputed")
    nn.fit(D[np.ix_(labelled, labelled)])
    _, neighbours = nn.kneighbors(D[np.ix_(targets, labelled)])

    neighbour_labels = labels[labelled][neighbours]
    for row, i in enumerate(targets):
        values, counts = np.unique(neighbour_labels[row], return_counts=True)
        best = np.argmax(counts)
        if counts[best] / n_nb > min_agreement:
            labels[i] = values[best]

    logger.debug(
        f"KNN imputation filled {int(missing.sum() - np.isnan(labels).sum())} "
        f"of {int(missing.sum())} missing labels"
    )
    return labels


def _vote_fill(matrix: np.ndarray) -> np.ndarray:
    """Fill remaining gaps column by column from the relabelled majority"""
    present = ~np.isnan(matrix)
    # best-covered column is the relabelling reference
    ref = matrix[:, int(np.argmax(present.sum(axis=0)))]

    maps = [relabel_map(matrix[:, j], ref) for j in range(matrix.shape[1])]
    aligned = np.full_like(matrix, np.nan)
    for j, mapping in enumerate(maps):
        col = matrix[:, j]
        aligned[present[:, j], j] = [mapping[float(v)] for v in col[present[:, j]]]

    out = matrix.copy()
    for j in range(matrix.shape[1]):
        gaps = np.flatnonzero(~present[:, j])
        if gaps.size == 0:
            continue
        inverse: Dict[float, float] = {target: source for source, target in maps[j].items()}
        own = set(float(v) for v in matrix[present[:, j], j])
        for i in gaps:
            votes = aligned[i][~np.isnan(aligned[i])]
            if votes.size == 0:
                continue
            labs, counts = np.unique(votes, return_counts=True)
            winner = float(labs[np.argmax(counts)])
            if winner in inverse:
                out[i, j] = inverse[winner]
            elif winner not in own:
                out[i, j] = winner
            else:
                out[i, j] = min(set(range(1, len(own) + 2)) - own)
    return out


def impute_missing(
    E: AssignmentArray,
    data: Union[np.ndarray, pd.DataFrame],
    nk: Optional[Union[int, Sequence[int]]] = None,
    n_neighbors: int = 5,
    min_agreement: float = 0.5,
    metric: Metric = "euclidean",
) -> AssignmentArray:
    """
    Impute missing assignments of an ensemble

    For each requested k every (replicate, algorithm) partition is first
    imputed by KNN; remaining gaps are then resolved by majority vote across
    the other partitions of that k, mapped back into the partition's own label
    space. Partitions missing every sample (failed runs) are left untouched
    so that later stages can drop them. Samples missing from every remaining
    partition of a k stay missing and are reported with a warning.

    Args:
        E: Assignment array
        data: Samples x features matrix used for the KNN stage
        nk: k value(s) to impute (default: all)
        n_neighbors: Neighbours for the KNN stage
        min_agreement: KNN neighbour agreement threshold
        metric: Distance for the KNN stage

    Returns:
        New AssignmentArray with the requested k slices imputed
    """
    if nk is None:
        nk = list(E.nk)
    elif np.isscalar(nk):
        nk = [int(nk)]
    k_idx = [E.k_index(k) for k in nk]

    D = distance(_as_data(data, E.n_samples), metric)
    values = np.array(E.values, copy=True)
    n, reps, n_alg, _ = values.shape

    for k, idx in zip(nk, k_idx):
        block = values[:, :, :, idx]
        # (n, reps, alg) -> n x (alg * reps), algorithm-major
        full = np.transpose(block, (0, 2, 1)).reshape(n, -1)
        failed = np.isnan(full).all(axis=0)
        if failed.any():
            logger.debug(f"k={k}: {int(failed.sum())} failed partitions left unimputed")
        matrix = full[:, ~failed]
        before = int(np.isnan(matrix).sum())
        if before == 0:
            continue

        for j in range(matrix.shape[1]):
            matrix[:, j] = impute_knn(
                matrix[:, j], None,
                n_neighbors=n_neighbors,
                min_agreement=min_agreement,
                distances=D,
            )
        after_knn = int(np.isnan(matrix).sum())

        unassigned = np.flatnonzero(np.isnan(matrix).all(axis=1))
        if unassigned.size:
            logger.warning(
                f"k={k}: samples {[E.samples[i] for i in unassigned]} are missing from every "
                f"partition and stay unassigned"
            )
        if after_knn:
            matrix = _vote_fill(matrix)

        logger.info(
            f"k={k}: imputed {before - int(np.isnan(matrix).sum())}/{before} missing "
            f"assignments ({before - after_knn} by KNN)"
        )
        full[:, ~failed] = matrix
        values[:, :, :, idx] = np.transpose(full.reshape(n, n_alg, reps), (0, 2, 1))

    return E.with_values(values)
