"""Consensus functions: merge many partitions into one

Every function takes an n x m partition matrix (NaN = missing) and returns a
complete integer label vector. `ConsensusMethod` names the closed set of
strategies; `get_consensus_function` resolves one at configuration time.
"""
from typing import Callable, Dict, Optional, Union
from enum import Enum
import logging

import numpy as np

from ..exceptions import ConfigurationError, ConsensusError, ImpossibleConsensus
from .coassociation import as_partition_matrix, consensus_class, consensus_matrix
from .hierarchy import check_k
from .relabel import relabel_partitions

logger = logging.getLogger(__name__)


class ConsensusMethod(str, Enum):
    """Available consensus functions"""
    MAJORITY = "majority"
    CSPA = "cspa"
    KMODES = "kmodes"
    LCE = "lce"
    LCA = "lca"


def check_partitions(
    partitions,
    allow_missing: bool = True,
) -> np.ndarray:
    """
    Validate a partition matrix for a consensus function

    Raises:
        ConfigurationError: Empty matrix, an all-missing row or column, or any
            missing entry when allow_missing is False
    """
    matrix = as_partition_matrix(partitions)
    missing = np.isnan(matrix)
    empty_cols = np.flatnonzero(missing.all(axis=0))
    if empty_cols.size:
        raise ConfigurationError(f"Partition columns {empty_cols.tolist()} are entirely missing")
    empty_rows = np.flatnonzero(missing.all(axis=1))
    if empty_rows.size:
        raise ConfigurationError(f"Samples {empty_rows.tolist()} are missing in every partition")
    if not allow_missing and missing.any():
        raise ConfigurationError(
            f"{int(missing.sum())} missing assignments; impute the ensemble first"
        )
    present = matrix[~missing]
    if np.any(present != np.round(present)) or np.any(present < 1):
        raise ConfigurationError("Labels must be positive integers")
    return matrix


def majority_voting(
    partitions,
    is_relabelled: bool = True,
) -> np.ndarray:
    """
    Majority vote across partitions

    Each sample takes its most frequent label; ties go to the lowest label.
    Missing entries do not vote.

    Args:
        partitions: n x m (or n x reps x algorithms) partition matrix
        is_relabelled: Whether labels are already aligned; if False, every
            column is relabelled against the first one

    Returns:
        Integer labels

    Raises:
        ImpossibleConsensus: If a sample has no votes
    """
    matrix = as_partition_matrix(partitions)
    if not is_relabelled:
        matrix = relabel_partitions(matrix)

    present = ~np.isnan(matrix)
    no_votes = np.flatnonzero(~present.any(axis=1))
    if no_votes.size:
        raise ImpossibleConsensus("No partition assigns this sample", sample_index=int(no_votes[0]))

    labels = np.unique(matrix[present])
    # counts[i, c]: votes of sample i for labels[c]
    counts = (matrix[:, :, None] == labels[None, None, :]).sum(axis=1)
    return labels[np.argmax(counts, axis=1)].astype(int)


def cspa(partitions, k: int) -> np.ndarray:
    """
    Cluster-based Similarity Partitioning

    The co-association matrix is read as a similarity graph; its rows are
    clustered by average-linkage hierarchical clustering on Euclidean
    distance and the tree is cut into exactly k groups. Undefined pairs count
    as similarity 0. Labels are numbered by first appearance.
    """
    matrix = check_partitions(partitions)
    k = check_k(k, matrix.shape[0])
    return consensus_class(consensus_matrix(matrix), k)


def _hamming(matrix: np.ndarray, present: np.ndarray, modes: np.ndarray) -> np.ndarray:
    """Mismatches between each row and each mode over the row's assigned columns"""
    # A missing mode cell counts as a mismatch for any assigned row value
    differ = (matrix[:, None, :] != modes[None, :, :]) | np.isnan(modes)[None, :, :]
    return (differ & present[:, None, :]).sum(axis=2)


def _column_modes(values: np.ndarray) -> np.ndarray:
    """Most frequent non-missing value per column, lowest on ties, NaN if none"""
    out = np.full(values.shape[1], np.nan)
    for j in range(values.shape[1]):
        col = values[:, j]
        col = col[~np.isnan(col)]
        if col.size:
            labs, counts = np.unique(col, return_counts=True)
            out[j] = labs[np.argmax(counts)]
    return out


def _initial_modes(matrix: np.ndarray, present: np.ndarray, k: int) -> np.ndarray:
    """
    Frequency-then-distance initial modes

    The most frequent distinct row seeds the first mode; each next mode is the
    distinct row farthest from the modes chosen so far, ties going to the more
    frequent (then earlier) row.
    """
    keyed = np.where(present, matrix, -1.0)
    uniq, first, counts = np.unique(keyed, axis=0, return_index=True, return_counts=True)
    order = np.lexsort((first, -counts))
    candidates = matrix[first[order]]
    cand_present = present[first[order]]

    chosen = [0]
    while len(chosen) < min(k, len(candidates)):
        dist = _hamming(candidates, cand_present, candidates[chosen]).min(axis=1)
        dist[chosen] = -1
        chosen.append(int(np.argmax(dist)))
    modes = candidates[chosen]

    if len(modes) < k:
        # Fewer distinct rows than k: surplus modes stay empty
        modes = np.vstack([modes, np.repeat(modes[-1:], k - len(modes), axis=0)])
    return modes.copy()


def k_modes(
    partitions,
    k: Optional[int] = None,
    max_iter: int = 100,
) -> np.ndarray:
    """
    k-modes consensus

    Each sample's row across partitions is a categorical vector. Rows are
    relocated to the nearest of k mode vectors under Hamming distance (missing
    entries ignored) and modes are recomputed as per-column majorities until
    assignments stop changing.

    If every column holds the same complete assignment vector there is no
    ensemble to resolve and that vector is returned unchanged.

    Args:
        partitions: n x m partition matrix
        k: Number of modes (default: largest label in the ensemble)
        max_iter: Maximum relocation passes

    Returns:
        Integer labels in [1, k]
    """
    matrix = check_partitions(partitions)
    n, m = matrix.shape

    first = matrix[:, [0]]
    if not np.isnan(first).any() and np.array_equal(matrix, np.repeat(first, m, axis=1)):
        return first[:, 0].astype(int)

    if k is None:
        k = int(np.nanmax(matrix))
    k = check_k(k, n)

    present = ~np.isnan(matrix)
    modes = _initial_modes(matrix, present, k)
    assign = np.argmin(_hamming(matrix, present, modes), axis=1)

    for iteration in range(max_iter):
        for c in range(k):
            members = assign == c
            if members.any():
                modes[c] = _column_modes(matrix[members])
        new_assign = np.argmin(_hamming(matrix, present, modes), axis=1)
        if np.array_equal(new_assign, assign):
            logger.debug(f"k-modes converged after {iteration + 1} passes")
            break
        assign = new_assign
    else:
        logger.warning(f"k-modes stopped after max_iter={max_iter} without converging")

    return assign.astype(int) + 1


ConsensusFunction = Callable[..., np.ndarray]


def get_consensus_function(method: Union[str, ConsensusMethod]) -> ConsensusFunction:
    """
    Resolve a consensus method to a callable with signature
    ``fn(partitions, k, **options) -> labels``

    The returned callable validates that every label lies in [1, k].

    Raises:
        ConfigurationError: Unknown method name
    """
    try:
        method = ConsensusMethod(method)
    except ValueError:
        valid = [m.value for m in ConsensusMethod]
        raise ConfigurationError(f"Unknown consensus method '{method}'. Valid: {valid}") from None

    from .lca import lca
    from .lce import lce

    table: Dict[ConsensusMethod, ConsensusFunction] = {
        ConsensusMethod.MAJORITY: lambda E, k, **opts: majority_voting(
            E, is_relabelled=opts.get("is_relabelled", False)
        ),
        ConsensusMethod.CSPA: lambda E, k, **opts: cspa(E, k),
        ConsensusMethod.KMODES: lambda E, k, **opts: k_modes(
            E, k, max_iter=opts.get("max_iter", 100)
        ),
        ConsensusMethod.LCE: lambda E, k, **opts: lce(
            E, k,
            sim_mat=opts.get("sim_mat", "cts"),
            dc=opts.get("dc", 0.8),
            R=opts.get("R", 10),
        ),
        ConsensusMethod.LCA: lambda E, k, **opts: lca(
            E, k,
            max_iter=opts.get("max_iter", 100),
            tol=opts.get("tol", 1e-6),
            seed=opts.get("seed", 1),
        ),
    }
    inner = table[method]

    def run(partitions, k: int, **options) -> np.ndarray:
        labels = np.asarray(inner(partitions, k, **options))
        if labels.ndim != 1 or np.any(labels < 1) or np.any(labels > k):
            raise ConsensusError(
                f"{method.value} produced labels outside [1, {k}]: "
                f"range [{labels.min()}, {labels.max()}]"
            )
        return labels.astype(int)

    run.__name__ = method.value
    return run
