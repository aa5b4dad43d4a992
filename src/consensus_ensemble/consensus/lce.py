"""Link-based Cluster Ensemble (LCE)

Refines the plain co-association view with links between clusters: two
clusters from one partition are similar when they are connected through
clusters of the other partitions. Three similarity variants are supported:

- cts: weighted connected-triple cluster similarity
- srs: SimRank over the sample/cluster bipartite graph
- asrs: one-step approximate weighted SimRank on the cluster graph

The resulting sample similarity matrix is clustered by average linkage on
1 - S and cut into k groups. Input must be complete (impute first).
"""
from typing import Tuple
from enum import Enum
import logging

import numpy as np

from ..exceptions import ConfigurationError
from .functions import check_partitions
from .hierarchy import check_k, hc_cut

logger = logging.getLogger(__name__)


class LCESimilarity(str, Enum):
    CTS = "cts"
    SRS = "srs"
    ASRS = "asrs"


def cluster_membership(matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Binary sample x cluster incidence over all partitions

    Returns:
        Tuple of (A, owner): A[i, c] = 1 when sample i is in cluster c;
        owner[c] is the partition (column) cluster c comes from
    """
    n, m = matrix.shape
    blocks = []
    owner = []
    for j in range(m):
        labs, inverse = np.unique(matrix[:, j], return_inverse=True)
        block = np.zeros((n, len(labs)))
        block[np.arange(n), inverse] = 1.0
        blocks.append(block)
        owner.extend([j] * len(labs))
    return np.hstack(blocks), np.asarray(owner)


def _jaccard_weights(A: np.ndarray) -> np.ndarray:
    """Cluster graph edge weights |X & Y| / |X | Y|, zero diagonal"""
    inter = A.T @ A
    sizes = np.diag(inter)
    union = sizes[:, None] + sizes[None, :] - inter
    with np.errstate(invalid="ignore", divide="ignore"):
        W = np.where(union > 0, inter / union, 0.0)
    np.fill_diagonal(W, 0.0)
    return W


def _scale_within_partitions(sim: np.ndarray, owner: np.ndarray, dc: float) -> np.ndarray:
    """Keep same-partition pairs, scale them to [0, dc], unit diagonal"""
    same = owner[:, None] == owner[None, :]
    np.fill_diagonal(same, False)
    top = sim[same].max() if same.any() else 0.0
    scaled = np.where(same, sim / top * dc if top > 0 else 0.0, 0.0)
    np.fill_diagonal(scaled, 1.0)
    return scaled


def _cts_clusters(A: np.ndarray, owner: np.ndarray, dc: float) -> np.ndarray:
    W = _jaccard_weights(A)
    wct = np.zeros_like(W)
    for z in range(W.shape[0]):
        # triple x - z - y contributes its weaker edge
        wct += np.minimum(W[:, [z]], W[[z], :])
    return _scale_within_partitions(wct, owner, dc)


def _asrs_clusters(A: np.ndarray, owner: np.ndarray, dc: float) -> np.ndarray:
    W = _jaccard_weights(A)
    totals = W.sum(axis=1, keepdims=True)
    with np.errstate(invalid="ignore", divide="ignore"):
        P = np.where(totals > 0, W / totals, 0.0)
    return _scale_within_partitions(P @ P.T, owner, dc)


def _samples_from_clusters(A: np.ndarray, cluster_sim: np.ndarray, m: int) -> np.ndarray:
    """Average over partitions of the similarity between the samples' clusters"""
    S = A @ cluster_sim @ A.T / m
    np.fill_diagonal(S, 1.0)
    return S


def _srs_samples(A: np.ndarray, dc: float, R: int) -> np.ndarray:
    n, C = A.shape
    to_clusters = A / A.sum(axis=1, keepdims=True)
    to_samples = A.T / A.T.sum(axis=1, keepdims=True)

    S_samples = np.eye(n)
    S_clusters = np.eye(C)
    for _ in range(R):
        new_samples = dc * to_clusters @ S_clusters @ to_clusters.T
        new_clusters = dc * to_samples @ S_samples @ to_samples.T
        np.fill_diagonal(new_samples, 1.0)
        np.fill_diagonal(new_clusters, 1.0)
        S_samples, S_clusters = new_samples, new_clusters
    return S_samples


def lce_similarity(
    partitions,
    sim_mat: str = "cts",
    dc: float = 0.8,
    R: int = 10,
) -> np.ndarray:
    """
    Link-based sample similarity matrix

    Args:
        partitions: Complete n x m partition matrix
        sim_mat: "cts", "srs" or "asrs"
        dc: Decay factor in (0, 1]
        R: SimRank iterations (srs only)

    Returns:
        Symmetric n x n matrix with entries in [0, 1] and unit diagonal
    """
    try:
        variant = LCESimilarity(sim_mat)
    except ValueError:
        raise ConfigurationError(
            f"Unknown LCE similarity '{sim_mat}'. Valid: {[v.value for v in LCESimilarity]}"
        ) from None
    if not 0 < dc <= 1:
        raise ConfigurationError(f"Decay factor dc must be in (0, 1], got {dc}")
    if R < 1:
        raise ConfigurationError(f"R must be >= 1, got {R}")

    matrix = check_partitions(partitions, allow_missing=False)
    A, owner = cluster_membership(matrix)
    m = matrix.shape[1]

    if variant is LCESimilarity.CTS:
        S = _samples_from_clusters(A, _cts_clusters(A, owner, dc), m)
    elif variant is LCESimilarity.ASRS:
        S = _samples_from_clusters(A, _asrs_clusters(A, owner, dc), m)
    else:
        S = _srs_samples(A, dc, R)

    S = np.clip((S + S.T) / 2.0, 0.0, 1.0)
    np.fill_diagonal(S, 1.0)
    return S


def lce(
    partitions,
    k: int,
    sim_mat: str = "cts",
    dc: float = 0.8,
    R: int = 10,
) -> np.ndarray:
    """
    Link-based Cluster Ensemble consensus

    Args:
        partitions: Complete n x m partition matrix
        k: Number of consensus clusters
        sim_mat: Similarity variant ("cts", "srs", "asrs")
        dc: Decay factor
        R: SimRank iterations for "srs"

    Returns:
        Integer labels in [1, k]
    """
    matrix = check_partitions(partitions, allow_missing=False)
    k = check_k(k, matrix.shape[0])
    S = lce_similarity(matrix, sim_mat=sim_mat, dc=dc, R=R)
    logger.debug(f"LCE ({sim_mat}) similarity built for {matrix.shape[0]} samples")
    return hc_cut(1.0 - S, k, method="average")
