"""Assignment array: the partition store of an ensemble run

Partitions are held in one 4-axis float array of shape
(n_samples, n_replicates, n_algorithms, n_k). NaN marks a sample that a run
did not assign (left out of the subsample, or the run failed).
"""
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
from dataclasses import dataclass
import hashlib
import json
import logging

import numpy as np
import pandas as pd

from ..exceptions import ConfigurationError, ShapeError

logger = logging.getLogger(__name__)

SlotKey = Tuple[int, str, int]  # (replicate, algorithm, k)


@dataclass(frozen=True, eq=False)
class AssignmentArray:
    """Immutable collection of partitions indexed by (replicate, algorithm, k)

    Attributes:
        values: Float array (samples x replicates x algorithms x k), NaN = missing
        samples: Sample names (length n)
        algorithms: Algorithm names (algorithm axis)
        nk: Cluster counts (k axis)
    """
    values: np.ndarray
    samples: List[str]
    algorithms: List[str]
    nk: List[int]

    def __post_init__(self):
        values = np.array(self.values, dtype=float, copy=True)
        if values.ndim != 4:
            raise ShapeError(
                f"Assignment array must have 4 axes (sample, replicate, algorithm, k), "
                f"got {values.ndim}"
            )
        n, reps, n_alg, n_k = values.shape
        if n == 0:
            raise ConfigurationError("Assignment array has no samples")
        if reps == 0:
            raise ConfigurationError("Assignment array has no replicates")
        if n_alg == 0:
            raise ConfigurationError("Assignment array has no algorithms")
        if len(self.samples) != n:
            raise ShapeError(f"{len(self.samples)} sample names for {n} samples")
        if len(self.algorithms) != n_alg:
            raise ShapeError(f"{len(self.algorithms)} algorithm names for {n_alg} algorithms")
        if len(set(self.algorithms)) != n_alg:
            raise ConfigurationError(f"Duplicate algorithm names: {list(self.algorithms)}")
        if len(self.nk) != n_k:
            raise ShapeError(f"{len(self.nk)} k values for a k-axis of length {n_k}")
        if len(set(self.nk)) != n_k:
            raise ConfigurationError(f"Duplicate k values: {list(self.nk)}")

        for idx, k in enumerate(self.nk):
            if k < 1:
                raise ConfigurationError(f"Invalid k={k}: must be >= 1")
            labels = values[..., idx]
            present = labels[~np.isnan(labels)]
            if present.size == 0:
                continue
            if np.any(present != np.round(present)):
                raise ConfigurationError(f"Non-integer labels found for k={k}")
            if present.min() < 1 or present.max() > k:
                raise ConfigurationError(
                    f"Labels for k={k} must lie in [1, {k}], "
                    f"found range [{present.min():.0f}, {present.max():.0f}]"
                )

        values.setflags(write=False)
        object.__setattr__(self, "values", values)
        object.__setattr__(self, "samples", [str(s) for s in self.samples])
        object.__setattr__(self, "algorithms", [str(a) for a in self.algorithms])
        object.__setattr__(self, "nk", [int(k) for k in self.nk])

    @property
    def n_samples(self) -> int:
        return self.values.shape[0]

    @property
    def n_replicates(self) -> int:
        return self.values.shape[1]

    @property
    def n_algorithms(self) -> int:
        return self.values.shape[2]

    @property
    def missing_fraction(self) -> float:
        return float(np.isnan(self.values).mean())

    def k_index(self, k: int) -> int:
        """Position of k on the k-axis"""
        try:
            return self.nk.index(int(k))
        except ValueError:
            raise ShapeError(f"k={k} not present in assignment array (nk={self.nk})") from None

    def algorithm_index(self, algorithm: str) -> int:
        try:
            return self.algorithms.index(algorithm)
        except ValueError:
            raise ConfigurationError(
                f"Algorithm '{algorithm}' not present (algorithms={self.algorithms})"
            ) from None

    def partition_names(self) -> List[str]:
        """Column names of partitions_for_k(), algorithm-major"""
        return [
            f"{alg} r{rep + 1}"
            for alg in self.algorithms
            for rep in range(self.n_replicates)
        ]

    def partitions_for_k(
        self,
        k: int,
        as_frame: bool = False,
    ) -> Union[np.ndarray, pd.DataFrame]:
        """
        All partitions for a fixed k as an n x (algorithms * replicates) matrix

        Args:
            k: Cluster count on the k-axis
            as_frame: Return a DataFrame with sample index and partition columns

        Returns:
            Partition matrix, columns ordered algorithm-major then replicate

        Raises:
            ShapeError: If k is not on the k-axis
        """
        idx = self.k_index(k)
        block = self.values[:, :, :, idx]
        matrix = np.transpose(block, (0, 2, 1)).reshape(self.n_samples, -1)
        if as_frame:
            return pd.DataFrame(matrix, index=self.samples, columns=self.partition_names())
        return matrix.copy()

    def slice(self, k: int, algorithm: str) -> np.ndarray:
        """Partitions of a single algorithm at k (n x replicates)"""
        return self.values[:, :, self.algorithm_index(algorithm), self.k_index(k)].copy()

    def with_values(self, values: np.ndarray) -> "AssignmentArray":
        """New array with the same axes and replaced labels"""
        return AssignmentArray(
            values=values,
            samples=list(self.samples),
            algorithms=list(self.algorithms),
            nk=list(self.nk),
        )

    def select(
        self,
        algorithms: Optional[Sequence[str]] = None,
        nk: Optional[Sequence[int]] = None,
    ) -> "AssignmentArray":
        """Subset along the algorithm and/or k axes"""
        algorithms = list(algorithms) if algorithms is not None else list(self.algorithms)
        nk = list(nk) if nk is not None else list(self.nk)
        a_idx = [self.algorithm_index(a) for a in algorithms]
        k_idx = [self.k_index(k) for k in nk]
        values = self.values[:, :, a_idx, :][:, :, :, k_idx]
        return AssignmentArray(values=values, samples=list(self.samples), algorithms=algorithms, nk=nk)

    def to_frame(self) -> pd.DataFrame:
        """Long-format table: one row per (sample, replicate, algorithm, k)"""
        n, reps, n_alg, n_k = self.values.shape
        index = pd.MultiIndex.from_product(
            [self.samples, range(1, reps + 1), self.algorithms, self.nk],
            names=["sample", "replicate", "algorithm", "k"],
        )
        return pd.DataFrame({"label": self.values.reshape(-1)}, index=index).reset_index()


def build_assignment_array(
    partitions: Union[np.ndarray, Mapping[SlotKey, Iterable[Any]]],
    samples: Optional[Sequence[str]] = None,
    algorithms: Optional[Sequence[str]] = None,
    nk: Optional[Sequence[int]] = None,
    n_replicates: Optional[int] = None,
) -> AssignmentArray:
    """
    Build an AssignmentArray from raw partitions

    Accepts either a 4-axis array (sample, replicate, algorithm, k) or a mapping
    of (replicate, algorithm, k) -> label vector. Slots absent from the mapping
    are stored as missing. None and NaN labels are stored as missing.

    Args:
        partitions: 4-axis array or slot mapping (replicates are 0-based)
        samples: Sample names (default: "S1".."Sn")
        algorithms: Algorithm axis order (default: order of first appearance)
        nk: k axis order (default: sorted distinct k)
        n_replicates: Replicate count (default: max replicate index + 1)

    Returns:
        Validated AssignmentArray
    """
    if isinstance(partitions, np.ndarray):
        values = np.asarray(partitions, dtype=float)
        if values.ndim != 4:
            raise ShapeError(f"Expected a 4-axis array, got shape {values.shape}")
        n, reps, n_alg, n_k = values.shape
        algorithms = list(algorithms) if algorithms is not None else [f"A{i + 1}" for i in range(n_alg)]
        if nk is None:
            raise ConfigurationError("nk must be supplied with a raw 4-axis array")
        samples = list(samples) if samples is not None else [f"S{i + 1}" for i in range(n)]
        return AssignmentArray(values=values, samples=samples, algorithms=algorithms, nk=list(nk))

    if not partitions:
        raise ConfigurationError("No partitions supplied")

    vectors: Dict[SlotKey, np.ndarray] = {}
    lengths = set()
    for key, labels in partitions.items():
        if len(key) != 3:
            raise ConfigurationError(f"Partition keys must be (replicate, algorithm, k), got {key}")
        rep, alg, k = int(key[0]), str(key[1]), int(key[2])
        vec = np.array([np.nan if lab is None else lab for lab in labels], dtype=float)
        vectors[(rep, alg, k)] = vec
        lengths.add(len(vec))

    if len(lengths) != 1:
        raise ShapeError(f"Partitions have differing sample counts: {sorted(lengths)}")
    n = lengths.pop()

    if algorithms is None:
        algorithms = list(dict.fromkeys(alg for _, alg, _ in vectors))
    if nk is None:
        nk = sorted({k for _, _, k in vectors})
    if n_replicates is None:
        n_replicates = max(rep for rep, _, _ in vectors) + 1
    if samples is None:
        samples = [f"S{i + 1}" for i in range(n)]

    algorithms = list(algorithms)
    nk = list(nk)
    values = np.full((n, n_replicates, len(algorithms), len(nk)), np.nan)
    for (rep, alg, k), vec in vectors.items():
        if alg not in algorithms or k not in nk or not 0 <= rep < n_replicates:
            raise ShapeError(f"Partition slot {(rep, alg, k)} outside the requested axes")
        values[:, rep, algorithms.index(alg), nk.index(k)] = vec

    return AssignmentArray(values=values, samples=list(samples), algorithms=algorithms, nk=nk)


def merge_assignment_arrays(*arrays: AssignmentArray) -> AssignmentArray:
    """
    Merge arrays over the same samples, replicates and k into one

    Algorithms are concatenated along the algorithm axis in argument order.

    Raises:
        ShapeError: If sample, replicate or k axes differ
        ConfigurationError: If fewer than one array, or algorithm names collide
    """
    if not arrays:
        raise ConfigurationError("Nothing to merge")
    first = arrays[0]
    for other in arrays[1:]:
        if other.n_samples != first.n_samples:
            raise ShapeError(
                f"Sample axis mismatch on merge: {first.n_samples} vs {other.n_samples}"
            )
        if other.samples != first.samples:
            raise ShapeError("Sample names differ between merged arrays")
        if other.n_replicates != first.n_replicates:
            raise ShapeError(
                f"Replicate axis mismatch on merge: {first.n_replicates} vs {other.n_replicates}"
            )
        if other.nk != first.nk:
            raise ShapeError(f"k axis mismatch on merge: {first.nk} vs {other.nk}")

    algorithms = [alg for arr in arrays for alg in arr.algorithms]
    values = np.concatenate([arr.values for arr in arrays], axis=2)
    logger.debug(f"Merged {len(arrays)} assignment arrays: {len(algorithms)} algorithms")
    return AssignmentArray(values=values, samples=list(first.samples), algorithms=algorithms, nk=list(first.nk))


def cache_key(
    data: Union[np.ndarray, pd.DataFrame],
    algorithms: Sequence[str],
    nk: Sequence[int],
    reps: int,
    seed: int,
    p_item: float,
) -> str:
    """
    SHA-256 key identifying an ensemble run

    Keyed by data identity (shape and raw bytes), algorithm set, k range,
    replicate count, seed and subsample fraction.
    """
    arr = np.ascontiguousarray(np.asarray(data, dtype=float))
    data_digest = hashlib.sha256(arr.tobytes()).hexdigest()
    payload = {
        "data": data_digest,
        "shape": list(arr.shape),
        "algorithms": sorted(str(a) for a in algorithms),
        "nk": sorted(int(k) for k in nk),
        "reps": int(reps),
        "seed": int(seed),
        "p_item": float(p_item),
    }
    return hashlib.sha256(json.dumps(payload, sort_keys=True).encode()).hexdigest()
