"""Rank, trim and reweigh ensemble members by internal validity"""
from typing import Dict, List, Mapping, Optional, Sequence
from dataclasses import dataclass, field
import logging

import numpy as np
import pandas as pd
from scipy.stats import rankdata

from ..exceptions import ConfigurationError
from .indices import INDEX_DIRECTIONS

logger = logging.getLogger(__name__)


@dataclass
class TrimResult:
    """Outcome of trimming (and optionally reweighing) an ensemble

    Attributes:
        kept: Members retained, best first
        removed: Members trimmed away
        replicates: Copy count per kept member (all 1 without reweighing)
        ranks: Rank table used for the decision
        partitions: Kept partitions, each column repeated by its copy count
    """
    kept: List[str]
    removed: List[str]
    replicates: Dict[str, int]
    ranks: pd.DataFrame
    partitions: pd.DataFrame = field(repr=False)

    @property
    def weights(self) -> np.ndarray:
        """Copy counts aligned with `kept`, usable as co-association weights"""
        return np.array([self.replicates[m] for m in self.kept], dtype=float)

    def to_dict(self) -> Dict:
        return {
            "kept": list(self.kept),
            "removed": list(self.removed),
            "replicates": {m: int(c) for m, c in self.replicates.items()},
            "sum_rank": self.ranks["sum_rank"].to_dict(),
        }


def consensus_rank(
    ivi: pd.DataFrame,
    directions: Optional[Mapping[str, str]] = None,
) -> pd.DataFrame:
    """
    Direction-aware ranks of members per index and their sum

    For every index without NaN values, members are ranked so that the best
    value gets the highest rank (average ranks on ties). Indices with any NaN
    are skipped. The result is sorted by sum_rank, best first, with ties kept
    in input order.

    Args:
        ivi: Validity index table (members x indices)
        directions: Index name -> "max" or "min" (default: INDEX_DIRECTIONS)

    Returns:
        DataFrame of ranks per usable index plus a sum_rank column
    """
    directions = dict(INDEX_DIRECTIONS if directions is None else directions)
    if ivi.empty:
        raise ConfigurationError("Validity index table is empty")

    usable = [col for col in ivi.columns if not ivi[col].isna().any()]
    skipped = [col for col in ivi.columns if col not in usable]
    if skipped:
        logger.info(f"Skipping indices with undefined values when ranking: {skipped}")

    ranks = pd.DataFrame(index=ivi.index)
    for col in usable:
        direction = directions.get(col)
        if direction not in ("max", "min"):
            raise ConfigurationError(f"No direction known for index '{col}'")
        values = ivi[col].to_numpy(dtype=float)
        ranks[col] = rankdata(values if direction == "max" else -values)
    ranks["sum_rank"] = ranks[usable].sum(axis=1) if usable else 0.0
    return ranks.sort_values("sum_rank", ascending=False, kind="stable")


def reweigh_counts(
    weights: Sequence[float],
    total: int = 100,
) -> np.ndarray:
    """
    Integer copy counts proportional to weights, summing exactly to total

    Every member gets one copy; the remaining total - m copies are shared in
    proportion to the weights by largest-remainder rounding. Remainder ties go
    to the earlier member.

    Raises:
        ConfigurationError: More members than total copies, or negative weights
    """
    w = np.asarray(weights, dtype=float)
    m = len(w)
    if m == 0:
        raise ConfigurationError("Nothing to reweigh")
    if total < m:
        raise ConfigurationError(f"Cannot give {m} members at least one of {total} replicates")
    if np.any(w < 0) or np.isnan(w).any():
        raise ConfigurationError("Reweighing weights must be non-negative numbers")
    if w.sum() == 0:
        w = np.ones(m)

    remaining = total - m
    shares = w / w.sum() * remaining
    counts = np.floor(shares).astype(int)
    leftover = remaining - counts.sum()
    order = np.argsort(-(shares - counts), kind="stable")
    counts[order[:leftover]] += 1
    return counts + 1


def consensus_trim(
    partitions: pd.DataFrame,
    ivi: pd.DataFrame,
    quantile: float = 0.75,
    reweigh: bool = False,
    n_replicates: int = 100,
    directions: Optional[Mapping[str, str]] = None,
) -> TrimResult:
    """
    Trim ensemble members ranked below a quantile of the summed ranks

    Args:
        partitions: Member partitions as DataFrame columns
        ivi: Validity index table indexed by the same members
        quantile: Members with sum_rank below this quantile are removed
        reweigh: Replicate kept members in proportion to their sum_rank
        n_replicates: Total copies when reweighing
        directions: Index directions (default: INDEX_DIRECTIONS)

    Returns:
        TrimResult
    """
    if not 0 <= quantile <= 1:
        raise ConfigurationError(f"quantile must be in [0, 1], got {quantile}")
    missing = [m for m in ivi.index if m not in partitions.columns]
    if missing:
        raise ConfigurationError(f"Members {missing} have no partition")

    ranks = consensus_rank(ivi, directions)
    threshold = float(np.quantile(ranks["sum_rank"], quantile))
    keep_mask = ranks["sum_rank"] >= threshold
    kept = [str(m) for m in ranks.index[keep_mask]]
    removed = [str(m) for m in ranks.index[~keep_mask]]

    if reweigh:
        counts = reweigh_counts(ranks.loc[kept, "sum_rank"].to_numpy(), total=n_replicates)
    else:
        counts = np.ones(len(kept), dtype=int)
    replicates = {m: int(c) for m, c in zip(kept, counts)}

    columns = {}
    for member in kept:
        for copy in range(replicates[member]):
            name = member if replicates[member] == 1 else f"{member} #{copy + 1}"
            columns[name] = partitions[member].to_numpy()
    trimmed = pd.DataFrame(columns, index=partitions.index)

    logger.info(
        f"Trimmed ensemble: kept {len(kept)} of {len(ranks)} members "
        f"(sum_rank >= {threshold:.2f}){', reweighed' if reweigh else ''}"
    )
    return TrimResult(kept=kept, removed=removed, replicates=replicates, ranks=ranks, partitions=trimmed)
