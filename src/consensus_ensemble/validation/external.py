"""External validity indices: agreement with reference labels"""
from typing import Dict, List, Mapping, Optional, Sequence, Union
import logging

import numpy as np
import pandas as pd
from sklearn.metrics import (
    accuracy_score,
    adjusted_rand_score,
    fowlkes_mallows_score,
    normalized_mutual_info_score,
    precision_recall_fscore_support,
    rand_score,
)
from sklearn.metrics.cluster import pair_confusion_matrix

from ..consensus.relabel import relabel_class
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

EXTERNAL_INDICES = (
    "rand",
    "adjusted_rand",
    "jaccard",
    "fowlkes_mallows",
    "nmi",
    "accuracy",
    "precision",
    "recall",
    "f1",
)


def _paired(labels, reference):
    labels = np.asarray(labels, dtype=float)
    reference = np.asarray(reference, dtype=float)
    if labels.shape != reference.shape or labels.ndim != 1:
        raise ConfigurationError(
            f"Labels {labels.shape} and reference {reference.shape} must be equal-length vectors"
        )
    keep = ~np.isnan(labels) & ~np.isnan(reference)
    return labels[keep].astype(int), reference[keep].astype(int)


def jaccard(labels, reference) -> float:
    """Pairs together in both over pairs together in either"""
    a, b = _paired(labels, reference)
    if a.size < 2:
        return np.nan
    C = pair_confusion_matrix(b, a)
    denom = C[1, 1] + C[0, 1] + C[1, 0]
    return float(C[1, 1] / denom) if denom else np.nan


def ev_confmat(labels, reference) -> Dict[str, float]:
    """
    Confusion-matrix statistics after relabelling labels to the reference

    Precision, recall and F1 are macro-averaged over reference classes.
    """
    a, b = _paired(labels, reference)
    if a.size == 0:
        return {"accuracy": np.nan, "precision": np.nan, "recall": np.nan, "f1": np.nan}
    aligned = relabel_class(a, b).astype(int)
    precision, recall, f1, _ = precision_recall_fscore_support(
        b, aligned, labels=np.unique(b), average="macro", zero_division=0
    )
    return {
        "accuracy": float(accuracy_score(b, aligned)),
        "precision": float(precision),
        "recall": float(recall),
        "f1": float(f1),
    }


def external_indices(labels, reference) -> Dict[str, float]:
    """
    All external indices of one partition against a reference

    Samples missing in either vector are left out. Indices are NaN when fewer
    than two samples remain.
    """
    a, b = _paired(labels, reference)
    if a.size < 2:
        return {name: np.nan for name in EXTERNAL_INDICES}
    result = {
        "rand": float(rand_score(b, a)),
        "adjusted_rand": float(adjusted_rand_score(b, a)),
        "jaccard": jaccard(a, b),
        "fowlkes_mallows": float(fowlkes_mallows_score(b, a)),
        "nmi": float(normalized_mutual_info_score(b, a)),
    }
    result.update(ev_confmat(a, b))
    return result


def ev_table(
    partitions: Union[Mapping[str, np.ndarray], pd.DataFrame],
    reference,
    indices: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """External validity index table: one row per member"""
    names: List[str] = list(indices) if indices is not None else list(EXTERNAL_INDICES)
    unknown = [name for name in names if name not in EXTERNAL_INDICES]
    if unknown:
        raise ConfigurationError(f"Unknown external indices {unknown}. Valid: {list(EXTERNAL_INDICES)}")
    if isinstance(partitions, pd.DataFrame):
        partitions = {str(col): partitions[col].to_numpy() for col in partitions.columns}

    rows = {member: external_indices(labels, reference) for member, labels in partitions.items()}
    table = pd.DataFrame.from_dict(rows, orient="index")[names]
    table.index.name = "member"
    return table
