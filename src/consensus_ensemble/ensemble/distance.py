"""Pairwise dissimilarities for distance-based base algorithms"""
from typing import Callable, Union
import logging

import numpy as np
import pandas as pd
from scipy.spatial.distance import pdist, squareform
from scipy.stats import spearmanr

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

Metric = Union[str, Callable[[np.ndarray], np.ndarray]]

CORRELATION_METRICS = ("spearman", "pearson")


def _as_matrix(data) -> np.ndarray:
    if isinstance(data, pd.DataFrame):
        data = data.to_numpy(dtype=float)
    X = np.asarray(data, dtype=float)
    if X.ndim != 2 or X.shape[0] == 0:
        raise ConfigurationError(f"Data must be a non-empty 2D samples x features matrix, got shape {X.shape}")
    return X


def distance(data, metric: Metric = "euclidean") -> np.ndarray:
    """
    Compute an n x n dissimilarity matrix between samples (rows)

    Args:
        data: Samples x features matrix or DataFrame
        metric: Any scipy.spatial.distance.pdist metric name, "spearman" or
            "pearson" (1 - correlation between samples), or a callable
            mapping the data matrix to an n x n matrix

    Returns:
        Symmetric non-negative matrix with zero diagonal
    """
    X = _as_matrix(data)
    n = X.shape[0]

    if callable(metric):
        D = np.asarray(metric(X), dtype=float)
        if D.shape != (n, n):
            raise ConfigurationError(f"Custom distance returned shape {D.shape}, expected {(n, n)}")
    elif metric == "pearson":
        D = 1.0 - np.corrcoef(X)
    elif metric == "spearman":
        if n < 2:
            D = np.zeros((1, 1))
        else:
            rho, _ = spearmanr(X, axis=1)
            if np.ndim(rho) == 0:
                # two samples: spearmanr returns the single coefficient
                rho = np.array([[1.0, rho], [rho, 1.0]])
            D = 1.0 - rho
    else:
        try:
            D = squareform(pdist(X, metric=metric))
        except ValueError as e:
            raise ConfigurationError(f"Unknown distance metric '{metric}': {e}") from e

    D = np.nan_to_num(np.atleast_2d(np.asarray(D, dtype=float)), nan=1.0)
    D = np.clip((D + D.T) / 2.0, 0.0, None)
    np.fill_diagonal(D, 0.0)
    return D
