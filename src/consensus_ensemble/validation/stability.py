"""Consensus stability: PAC, k selection and CDF summaries

PAC (proportion of ambiguous clustering) is the share of off-diagonal
co-association entries strictly between a lower and an upper threshold. A
perfectly stable ensemble has every pair always or never together, so PAC 0.
"""
from typing import Mapping, Optional
import logging

import numpy as np
import pandas as pd

from ..consensus.coassociation import consensus_matrix
from ..ensemble.assignments import AssignmentArray
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CDF_GRID = 101


def _off_diagonal(cm: np.ndarray) -> np.ndarray:
    cm = np.asarray(cm, dtype=float)
    if cm.ndim != 2 or cm.shape[0] != cm.shape[1]:
        raise ConfigurationError(f"Co-association matrix must be square, got shape {cm.shape}")
    values = cm[np.triu_indices(cm.shape[0], k=1)]
    return values[~np.isnan(values)]


def pac(cm: np.ndarray, lower: float = 0.0, upper: float = 1.0) -> float:
    """
    Proportion of ambiguous clustering

    Args:
        cm: Co-association matrix
        lower: Lower threshold
        upper: Upper threshold

    Returns:
        Fraction in [0, 1] of defined off-diagonal entries in (lower, upper),
        NaN if no pair is defined
    """
    if not 0 <= lower < upper <= 1:
        raise ConfigurationError(f"PAC thresholds must satisfy 0 <= lower < upper <= 1, got ({lower}, {upper})")
    values = _off_diagonal(cm)
    if values.size == 0:
        return np.nan
    return float(np.mean((values > lower) & (values < upper)))


def pac_table(
    E: AssignmentArray,
    lower: float = 0.0,
    upper: float = 1.0,
    matrices: Optional[Mapping[int, Mapping[str, np.ndarray]]] = None,
) -> pd.DataFrame:
    """
    PAC per k (rows) and algorithm (columns)

    Args:
        E: Assignment array
        lower: Lower threshold
        upper: Upper threshold
        matrices: Precomputed {k: {algorithm: matrix}}
    """
    rows = {}
    for k in E.nk:
        rows[k] = {
            alg: pac(
                matrices[k][alg] if matrices is not None else consensus_matrix(E.slice(k, alg)),
                lower, upper,
            )
            for alg in E.algorithms
        }
    table = pd.DataFrame.from_dict(rows, orient="index")[E.algorithms]
    table.index.name = "k"
    return table


def select_k_by_pac(table: pd.DataFrame) -> int:
    """
    Pick the k with the smallest PAC averaged over algorithms

    Ties go to the smallest k. Algorithms with undefined PAC are left out of
    the average.
    """
    if table.empty:
        raise ConfigurationError("PAC table is empty")
    average = table.mean(axis=1, skipna=True).sort_index()
    if average.isna().all():
        raise ConfigurationError("PAC is undefined for every k")
    best = average.min()
    k = int(average[average == best].index[0])
    logger.info(f"Selected k={k} by minimum average PAC ({best:.4f})")
    return k


def consensus_cdf(matrices: Mapping[int, Mapping[str, np.ndarray]]) -> pd.DataFrame:
    """
    Empirical CDF of co-association entries per (k, algorithm)

    Args:
        matrices: {k: {algorithm: matrix}}, as built by consensus_combine

    Returns:
        Long DataFrame with columns k, algorithm, value, cdf
    """
    frames = []
    for k, by_alg in matrices.items():
        for alg, cm in by_alg.items():
            values = np.sort(_off_diagonal(cm))
            if values.size == 0:
                continue
            cdf = np.searchsorted(values, values, side="right") / values.size
            frames.append(pd.DataFrame({"k": k, "algorithm": alg, "value": values, "cdf": cdf}))
    if not frames:
        return pd.DataFrame(columns=["k", "algorithm", "value", "cdf"])
    return pd.concat(frames, ignore_index=True)


def delta_area(matrices: Mapping[int, Mapping[str, np.ndarray]]) -> pd.DataFrame:
    """
    Area under each CDF curve and its relative change across k

    For the smallest k the delta equals the area itself; for later k it is
    (area_k - area_prev) / area_prev, per algorithm.

    Returns:
        DataFrame with columns algorithm, k, auc, delta_area
    """
    grid = np.linspace(0.0, 1.0, CDF_GRID)
    rows = []
    for k in sorted(matrices):
        for alg, cm in matrices[k].items():
            values = np.sort(_off_diagonal(cm))
            if values.size == 0:
                auc = np.nan
            else:
                curve = np.searchsorted(values, grid, side="right") / values.size
                auc = float(np.sum(np.diff(grid) * (curve[:-1] + curve[1:])) / 2.0)
            rows.append({"algorithm": alg, "k": k, "auc": auc})

    table = pd.DataFrame(rows, columns=["algorithm", "k", "auc"])
    if table.empty:
        table["delta_area"] = []
        return table
    deltas = []
    for _, group in table.groupby("algorithm", sort=False):
        auc = group["auc"].to_numpy()
        delta = np.empty_like(auc)
        delta[0] = auc[0]
        with np.errstate(invalid="ignore", divide="ignore"):
            delta[1:] = np.diff(auc) / auc[:-1]
        deltas.append(pd.Series(delta, index=group.index))
    table["delta_area"] = pd.concat(deltas)
    return table.sort_values(["algorithm", "k"]).reset_index(drop=True)
