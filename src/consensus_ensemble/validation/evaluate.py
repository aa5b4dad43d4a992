"""Evaluate candidate consensus partitions and pick k"""
from typing import Any, Dict, Mapping, Optional, Sequence, Union
from dataclasses import dataclass
import logging

import numpy as np
import pandas as pd

from ..consensus.coassociation import consensus_class, consensus_combine, has_defined_pairs
from ..ensemble.assignments import AssignmentArray
from ..ensemble.distance import Metric
from ..exceptions import ConfigurationError
from .external import ev_table
from .indices import ivi_table
from .ranking import TrimResult, consensus_trim
from .stability import pac_table, select_k_by_pac

logger = logging.getLogger(__name__)

Candidates = Union[pd.DataFrame, Mapping[int, Union[pd.DataFrame, Mapping[str, np.ndarray]]]]


@dataclass
class EvaluationResult:
    """Container for ensemble evaluation

    Attributes:
        k: Selected number of clusters
        pac: PAC per k (rows) and algorithm (columns)
        members: Candidate partitions at k (samples x members)
        internal: Internal validity index table (members x indices)
        external: External index table, when reference labels were given
        trim: Trim/reweigh result, when trimming was requested
    """
    k: int
    pac: pd.DataFrame
    members: pd.DataFrame
    internal: pd.DataFrame
    external: Optional[pd.DataFrame] = None
    trim: Optional[TrimResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "k": int(self.k),
            "pac": {int(k): row.to_dict() for k, row in self.pac.iterrows()},
            "internal": self.internal.to_dict(orient="index"),
            "external": self.external.to_dict(orient="index") if self.external is not None else None,
            "trim": self.trim.to_dict() if self.trim is not None else None,
        }


def _as_frame(candidates, samples) -> pd.DataFrame:
    if isinstance(candidates, pd.DataFrame):
        frame = candidates.copy()
    else:
        frame = pd.DataFrame({str(name): np.asarray(labels) for name, labels in candidates.items()})
    if len(frame) != len(samples):
        raise ConfigurationError(f"Candidate partitions have {len(frame)} rows for {len(samples)} samples")
    frame.index = samples
    frame.columns = [str(c) for c in frame.columns]
    return frame


def consensus_evaluate(
    data,
    E: AssignmentArray,
    cons_cl: Optional[Candidates] = None,
    ref_cl: Optional[Sequence] = None,
    indices: Optional[Sequence[str]] = None,
    lower: float = 0.0,
    upper: float = 1.0,
    trim: bool = False,
    quantile: float = 0.75,
    reweigh: bool = False,
    n_replicates: int = 100,
    metric: Metric = "euclidean",
) -> EvaluationResult:
    """
    Score the ensemble's candidate partitions and select k

    Without reference labels k minimises the PAC averaged over algorithms;
    with reference labels k is their number of distinct classes. Candidates at
    k are the per-algorithm consensus classes plus any consensus function
    outputs supplied in cons_cl. An algorithm that failed in every replicate
    at k contributes no candidate. Supplied names must differ from the
    algorithm names.

    Args:
        data: Samples x features matrix
        E: Assignment array
        cons_cl: Consensus partitions, either {k: members} or a frame of
            members already at the selected k
        ref_cl: Optional reference labels
        indices: Internal indices to compute (default: all)
        lower: PAC lower threshold
        upper: PAC upper threshold
        trim: Whether to trim members by rank
        quantile: Trimming quantile of summed ranks
        reweigh: Whether to reweigh kept members
        n_replicates: Total copies when reweighing
        metric: Distance for the internal indices

    Returns:
        EvaluationResult
    """
    n = E.n_samples
    if isinstance(data, pd.DataFrame):
        n_data = data.shape[0]
    else:
        n_data = np.asarray(data).shape[0]
    if n_data != n:
        raise ConfigurationError(f"Data has {n_data} rows but the ensemble has {n} samples")

    matrices = consensus_combine(E, element="matrix")
    pac = pac_table(E, lower=lower, upper=upper, matrices=matrices)

    if ref_cl is not None:
        ref = np.asarray(ref_cl, dtype=float)
        if ref.shape != (n,):
            raise ConfigurationError(f"Reference labels must have length {n}, got {ref.shape}")
        k = int(len(np.unique(ref[~np.isnan(ref)])))
        logger.info(f"Using k={k} from reference labels")
    else:
        ref = None
        k = select_k_by_pac(pac)

    members = pd.DataFrame(index=E.samples)
    if k in E.nk:
        for alg in E.algorithms:
            cm = matrices[k][alg]
            if not has_defined_pairs(cm):
                logger.warning(f"k={k}: {alg} failed in every replicate; not a candidate")
                continue
            members[alg] = consensus_class(cm, k)
    else:
        logger.warning(f"k={k} is not on the ensemble's k axis; only supplied consensus partitions are evaluated")

    if cons_cl is not None:
        if isinstance(cons_cl, pd.DataFrame):
            supplied = cons_cl
        elif k in cons_cl:
            supplied = cons_cl[k]
        else:
            supplied = None
            logger.warning(f"No consensus partitions supplied for k={k}")
        if supplied is not None:
            supplied = _as_frame(supplied, E.samples)
            clash = sorted(set(supplied.columns) & set(E.algorithms))
            if clash:
                raise ConfigurationError(
                    f"Consensus partitions {clash} share names with ensemble algorithms"
                )
            for name, labels in supplied.items():
                members[name] = labels.to_numpy()

    if members.shape[1] == 0:
        raise ConfigurationError(f"No candidate partitions available at k={k}")

    internal = ivi_table(data, members, indices=indices, metric=metric)
    external = ev_table(members, ref) if ref is not None else None
    trimmed = (
        consensus_trim(members, internal, quantile=quantile, reweigh=reweigh, n_replicates=n_replicates)
        if trim else None
    )
    return EvaluationResult(k=k, pac=pac, members=members, internal=internal, external=external, trim=trimmed)
