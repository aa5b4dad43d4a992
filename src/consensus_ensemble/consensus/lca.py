"""Latent class consensus

Each partition is a categorical manifest variable. A latent class model
(class priors plus per-partition categorical response probabilities) is
fitted by EM and every sample goes to its most probable latent class.
"""
from typing import List, Tuple
import logging

import numpy as np
from scipy.special import logsumexp

from ..exceptions import ConfigurationError
from .functions import check_partitions
from .hierarchy import check_k

logger = logging.getLogger(__name__)

_EPS = 1e-10


def _encode(matrix: np.ndarray) -> Tuple[List[np.ndarray], List[int]]:
    codes, n_levels = [], []
    for j in range(matrix.shape[1]):
        labs, inverse = np.unique(matrix[:, j], return_inverse=True)
        codes.append(inverse)
        n_levels.append(len(labs))
    return codes, n_levels


def _fit_once(
    codes: List[np.ndarray],
    n_levels: List[int],
    k: int,
    rng: np.random.Generator,
    max_iter: int,
    tol: float,
) -> Tuple[np.ndarray, float]:
    n = len(codes[0])
    log_prior = np.full(k, -np.log(k))
    theta = [rng.dirichlet(np.ones(L), size=k) for L in n_levels]
    onehots = [np.eye(L)[c] for c, L in zip(codes, n_levels)]

    prev_ll = -np.inf
    resp = np.full((n, k), 1.0 / k)
    for iteration in range(max_iter):
        # E-step
        log_post = np.tile(log_prior, (n, 1))
        for c, th in zip(codes, theta):
            log_post += np.log(th[:, c].T + _EPS)
        row_ll = logsumexp(log_post, axis=1)
        resp = np.exp(log_post - row_ll[:, None])
        ll = float(row_ll.sum())

        # M-step
        weight = resp.sum(axis=0)
        log_prior = np.log(weight / n + _EPS)
        theta = [
            (resp.T @ oh + _EPS) / (weight[:, None] + _EPS * oh.shape[1])
            for oh in onehots
        ]

        if abs(ll - prev_ll) <= tol * max(1.0, abs(ll)):
            logger.debug(f"LCA EM converged after {iteration + 1} iterations (ll={ll:.4f})")
            break
        prev_ll = ll
    return resp, ll


def lca(
    partitions,
    k: int,
    max_iter: int = 100,
    tol: float = 1e-6,
    seed: int = 1,
    n_init: int = 5,
) -> np.ndarray:
    """
    Latent class analysis consensus

    Args:
        partitions: Complete n x m partition matrix
        k: Number of latent classes
        max_iter: Maximum EM iterations per start
        tol: Relative log-likelihood tolerance
        seed: Seed for the Dirichlet initialisation
        n_init: Random starts; the best log-likelihood wins

    Returns:
        Integer labels in [1, k]; ties in the posterior go to the lowest class
    """
    matrix = check_partitions(partitions, allow_missing=False)
    k = check_k(k, matrix.shape[0])
    if n_init < 1:
        raise ConfigurationError(f"n_init must be >= 1, got {n_init}")

    codes, n_levels = _encode(matrix)
    rng = np.random.default_rng(seed)

    best_resp, best_ll = None, -np.inf
    for _ in range(n_init):
        resp, ll = _fit_once(codes, n_levels, k, rng, max_iter, tol)
        if ll > best_ll:
            best_resp, best_ll = resp, ll

    return np.argmax(best_resp, axis=1).astype(int) + 1
