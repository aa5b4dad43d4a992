"""Relabelling of partitions against a reference (label switching)

Cluster label integers are arbitrary per run. Before partitions are compared
label-by-label they are aligned to a reference partition by a maximum-overlap
bijection over their contingency table.
"""
from typing import Dict, Optional
import logging

import numpy as np
from scipy.optimize import linear_sum_assignment

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _as_vector(x, name: str) -> np.ndarray:
    vec = np.asarray(x, dtype=float)
    if vec.ndim != 1:
        raise ConfigurationError(f"{name} must be one-dimensional, got shape {vec.shape}")
    return vec


def contingency_table(
    partition: np.ndarray,
    reference: np.ndarray,
):
    """
    Contingency table between two partitions over jointly assigned samples

    Args:
        partition: Labels to compare (NaN = missing)
        reference: Reference labels (NaN = missing)

    Returns:
        Tuple of (table, partition_labels, reference_labels) where
        table[i, j] counts samples with partition_labels[i] and reference_labels[j]
    """
    partition = _as_vector(partition, "partition")
    reference = _as_vector(reference, "reference")
    if len(partition) != len(reference):
        raise ConfigurationError(
            f"Partition length {len(partition)} does not match reference length {len(reference)}"
        )

    p_labels = np.unique(partition[~np.isnan(partition)])
    r_labels = np.unique(reference[~np.isnan(reference)])

    both = ~np.isnan(partition) & ~np.isnan(reference)
    p_idx = np.searchsorted(p_labels, partition[both])
    r_idx = np.searchsorted(r_labels, reference[both])

    table = np.zeros((len(p_labels), len(r_labels)), dtype=int)
    np.add.at(table, (p_idx, r_idx), 1)
    return table, p_labels, r_labels


def relabel_map(partition: np.ndarray, reference: np.ndarray) -> Dict[float, float]:
    """
    Label mapping that best aligns a partition with a reference

    Maximises total overlap with an optimal assignment over the contingency
    table. Among equally good assignments the one pairing the lowest label
    indices is chosen. Partition labels left unmatched (partition has more
    labels than the reference) keep their value unless it is already a
    matched target, in which case they take the smallest free positive label.

    Args:
        partition: Labels to remap
        reference: Reference labels

    Returns:
        Dict from original label to new label
    """
    table, p_labels, r_labels = contingency_table(partition, reference)
    if len(p_labels) == 0:
        return {}
    if len(r_labels) == 0:
        return {lab: lab for lab in p_labels}

    n_p, n_r = table.shape
    # squared rank displacement, < 1 summed over any matching: among equal
    # overlaps the order-preserving pairing of sorted labels wins
    displacement = (np.arange(n_p)[:, None] - np.arange(n_r)[None, :]) ** 2
    scale = min(n_p, n_r) * max(n_p, n_r) ** 2 + 1.0
    cost = -table.astype(float) + displacement / scale
    rows, cols = linear_sum_assignment(cost)

    mapping = {float(p_labels[i]): float(r_labels[j]) for i, j in zip(rows, cols)}
    if table.sum() == 0:
        logger.debug("Partition and reference share no assigned samples; mapping by label order")

    used = set(mapping.values())
    for lab in p_labels:
        lab = float(lab)
        if lab in mapping:
            continue
        if lab not in used:
            new = lab
        else:
            new = 1.0
            while new in used:
                new += 1.0
        mapping[lab] = new
        used.add(new)

    return mapping


def relabel_class(partition: np.ndarray, reference: np.ndarray) -> np.ndarray:
    """
    Relabel a partition to best agree with a reference partition

    Missing entries stay missing.

    Args:
        partition: Labels to remap (NaN = missing)
        reference: Reference labels

    Returns:
        Relabelled copy of partition (float, NaN preserved)
    """
    partition = _as_vector(partition, "partition")
    mapping = relabel_map(partition, reference)
    out = np.full_like(partition, np.nan)
    present = ~np.isnan(partition)
    out[present] = [mapping[float(v)] for v in partition[present]]
    return out


def relabel_partitions(
    partitions: np.ndarray,
    reference: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Relabel every column of a partition matrix against a reference

    Args:
        partitions: n x m partition matrix (NaN = missing)
        reference: Reference partition (default: first column)

    Returns:
        Relabelled n x m matrix
    """
    partitions = np.asarray(partitions, dtype=float)
    if partitions.ndim == 1:
        partitions = partitions[:, None]
    if partitions.ndim != 2 or partitions.shape[1] == 0:
        raise ConfigurationError(f"Expected a non-empty n x m partition matrix, got {partitions.shape}")

    ref = partitions[:, 0] if reference is None else _as_vector(reference, "reference")
    relabelled = np.column_stack([
        relabel_class(partitions[:, j], ref) for j in range(partitions.shape[1])
    ])
    return relabelled
