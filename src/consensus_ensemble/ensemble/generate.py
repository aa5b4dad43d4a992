"""Ensemble generation: base algorithms over subsamples and cluster counts

Every (replicate, algorithm, k) slot clusters a random subsample of the
samples and stores labels at the sampled positions. Samples left out of the
subsample, and slots whose algorithm fails, are stored as missing so a single
failure never aborts the ensemble.
"""
from typing import Callable, Dict, List, Optional, Sequence, Union
from dataclasses import dataclass
from pathlib import Path
import logging

import numpy as np
import pandas as pd
from sklearn.cluster import KMeans, SpectralClustering
from sklearn.mixture import GaussianMixture

from ..exceptions import AlgorithmUnavailable, ConfigurationError, NonConvergence
from ..consensus.hierarchy import hc_cut, renumber
from .assignments import AssignmentArray, cache_key
from .distance import Metric, distance

logger = logging.getLogger(__name__)

Runner = Callable[..., np.ndarray]


@dataclass
class AlgorithmSpec:
    """A registered base clustering algorithm

    Attributes:
        name: Identifier used in configs and on the algorithm axis
        runner: Callable ``runner(data, k, seed, **kwargs) -> labels``
        uses_distance: Whether the runner receives ``metric=...``
    """
    name: str
    runner: Runner
    uses_distance: bool = False


_REGISTRY: Dict[str, AlgorithmSpec] = {}


def register_algorithm(name: str, runner: Runner, uses_distance: bool = False) -> None:
    """Add (or replace) a base clustering algorithm"""
    if not name:
        raise ConfigurationError("Algorithm name must be non-empty")
    if name in _REGISTRY:
        logger.info(f"Replacing registered algorithm '{name}'")
    _REGISTRY[name] = AlgorithmSpec(name=name, runner=runner, uses_distance=uses_distance)


def available_algorithms() -> List[str]:
    return sorted(_REGISTRY)


def _hc_runner(data: np.ndarray, k: int, seed: int, metric: Metric = "euclidean") -> np.ndarray:
    return hc_cut(distance(data, metric), k, method="average")


def _km_runner(data: np.ndarray, k: int, seed: int) -> np.ndarray:
    return KMeans(n_clusters=k, n_init=10, random_state=seed).fit_predict(data)


def _sc_runner(data: np.ndarray, k: int, seed: int) -> np.ndarray:
    model = SpectralClustering(
        n_clusters=k,
        affinity="rbf",
        assign_labels="kmeans",
        random_state=seed,
    )
    return model.fit_predict(data)


def _gmm_runner(data: np.ndarray, k: int, seed: int) -> np.ndarray:
    model = GaussianMixture(n_components=k, covariance_type="full", random_state=seed)
    model.fit(data)
    if not model.converged_:
        raise NonConvergence("gmm", k, "EM did not converge")
    return model.predict(data)


register_algorithm("hc", _hc_runner, uses_distance=True)
register_algorithm("km", _km_runner)
register_algorithm("sc", _sc_runner)
register_algorithm("gmm", _gmm_runner)


def run_algorithm(
    data: np.ndarray,
    algorithm: str,
    k: int,
    seed: int,
    metric: Metric = "euclidean",
) -> np.ndarray:
    """
    Run one base algorithm and return labels renumbered to [1, k]

    Raises:
        AlgorithmUnavailable: Unknown algorithm id
        NonConvergence: The algorithm failed or produced more than k clusters
    """
    spec = _REGISTRY.get(algorithm)
    if spec is None:
        raise AlgorithmUnavailable(algorithm, f"not registered (available: {available_algorithms()})")
    if data.shape[0] < k:
        raise NonConvergence(algorithm, k, f"only {data.shape[0]} samples in subsample")

    kwargs = {"metric": metric} if spec.uses_distance else {}
    try:
        labels = np.asarray(spec.runner(data, k, seed, **kwargs))
    except (AlgorithmUnavailable, NonConvergence):
        raise
    except (ValueError, ArithmeticError, np.linalg.LinAlgError) as e:
        raise NonConvergence(algorithm, k, str(e)) from e

    if labels.shape != (data.shape[0],):
        raise NonConvergence(algorithm, k, f"returned {labels.shape} labels for {data.shape[0]} samples")
    labels = renumber(labels)
    if labels.max() > k:
        raise NonConvergence(algorithm, k, f"returned {labels.max()} clusters")
    return labels


def subsample(n: int, p_item: float, rng: np.random.Generator) -> np.ndarray:
    """Sorted indices of a without-replacement subsample of size floor(n * p_item)"""
    size = max(1, int(np.floor(n * p_item)))
    return np.sort(rng.choice(n, size=size, replace=False))


def consensus_cluster(
    data: Union[np.ndarray, pd.DataFrame],
    nk: Sequence[int] = (2, 3, 4),
    reps: int = 10,
    algorithms: Sequence[str] = ("hc", "km"),
    p_item: float = 0.8,
    metric: Metric = "euclidean",
    seed: int = 1,
    cache_dir: Optional[Union[str, Path]] = None,
) -> AssignmentArray:
    """
    Generate the assignment array of a consensus clustering ensemble

    Args:
        data: Samples x features matrix (DataFrame index gives sample names)
        nk: Candidate cluster counts
        reps: Subsampling replicates per (algorithm, k)
        algorithms: Registered algorithm ids
        p_item: Fraction of samples drawn in each replicate
        metric: Distance for distance-based algorithms
        seed: Seed for subsampling and algorithm initialisation
        cache_dir: Optional directory for an on-disk cache of the result

    Returns:
        AssignmentArray of shape (n, reps, len(algorithms), len(nk))

    Raises:
        ConfigurationError: Empty algorithm set, reps < 1, invalid k or
            p_item, or data containing missing values
    """
    samples = [str(s) for s in data.index] if isinstance(data, pd.DataFrame) else None
    X = data.to_numpy(dtype=float) if isinstance(data, pd.DataFrame) else np.asarray(data, dtype=float)
    if X.ndim != 2 or X.shape[0] == 0:
        raise ConfigurationError(f"Data must be a non-empty 2D matrix, got shape {X.shape}")
    if np.isnan(X).any():
        raise ConfigurationError("Data contains missing values; impute features before clustering")
    n = X.shape[0]
    samples = samples or [f"S{i + 1}" for i in range(n)]

    algorithms = list(algorithms)
    nk = [int(k) for k in nk]
    if not algorithms:
        raise ConfigurationError("At least one algorithm is required")
    if not nk:
        raise ConfigurationError("At least one k is required")
    if reps < 1:
        raise ConfigurationError(f"reps must be >= 1, got {reps}")
    if not 0 < p_item <= 1:
        raise ConfigurationError(f"p_item must be in (0, 1], got {p_item}")
    for k in nk:
        if k < 1 or k > n:
            raise ConfigurationError(f"Invalid k={k} for {n} samples")

    cache_path = None
    if cache_dir is not None:
        from ..utils.io import load_assignment_array, save_assignment_array

        key = cache_key(X, algorithms, nk, reps, seed, p_item)
        cache_path = Path(cache_dir) / f"{key}.npz"
        if cache_path.exists():
            logger.info(f"Loading cached ensemble from {cache_path}")
            return load_assignment_array(cache_path)

    values = np.full((n, reps, len(algorithms), len(nk)), np.nan)
    failures = 0
    for r in range(reps):
        rng = np.random.default_rng(seed + r)
        idx = subsample(n, p_item, rng)
        X_sub = X[idx]
        for a, algorithm in enumerate(algorithms):
            for j, k in enumerate(nk):
                try:
                    values[idx, r, a, j] = run_algorithm(X_sub, algorithm, k, seed + r, metric=metric)
                except (AlgorithmUnavailable, NonConvergence) as e:
                    failures += 1
                    logger.warning(f"Replicate {r + 1}: {e}; slot stored as missing")
        logger.debug(f"Replicate {r + 1}/{reps} done ({len(idx)} samples)")

    total = reps * len(algorithms) * len(nk)
    logger.info(f"Generated {total - failures}/{total} partitions ({failures} failed)")

    E = AssignmentArray(values=values, samples=samples, algorithms=algorithms, nk=nk)
    if cache_path is not None:
        save_assignment_array(E, cache_path)
        logger.info(f"Cached ensemble at {cache_path}")
    return E
