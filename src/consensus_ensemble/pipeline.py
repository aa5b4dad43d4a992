"""End-to-end consensus clustering: generate, impute, combine, evaluate

`dice` runs the whole workflow from a data matrix. `Pipeline` wraps it for
YAML-configured runs and writes the results to disk.
"""
from typing import Any, Dict, Optional, Sequence, Union
from dataclasses import dataclass, field
from pathlib import Path
import json
import logging

import numpy as np
import pandas as pd

from .config import AppConfig, load_config
from .consensus.coassociation import consensus_class, consensus_combine, consensus_matrix
from .consensus.functions import ConsensusMethod, get_consensus_function
from .ensemble.assignments import AssignmentArray
from .ensemble.distance import Metric
from .ensemble.generate import consensus_cluster
from .exceptions import ConfigurationError, ImpossibleConsensus
from .preprocess.impute import impute_missing
from .utils.io import save_assignment_array, save_data
from .utils.seeds import set_seed
from .utils.timers import Timer
from .validation.evaluate import EvaluationResult, consensus_evaluate
from .validation.ranking import consensus_rank
from .validation.stability import consensus_cdf, delta_area

logger = logging.getLogger(__name__)


@dataclass
class DiceResult:
    """Container for a complete ensemble run

    Attributes:
        E: Raw assignment array
        E_imputed: Assignment array after imputation (same as E if skipped)
        consensus: Consensus function outputs per k (samples x methods)
        evaluation: Evaluation at the selected k
        clusters: Final cluster labels at the selected k
        final_member: Which member (or "second_level") produced `clusters`
    """
    E: AssignmentArray
    E_imputed: AssignmentArray
    consensus: Dict[int, pd.DataFrame]
    evaluation: EvaluationResult
    clusters: np.ndarray
    final_member: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def k(self) -> int:
        return self.evaluation.k

    def to_dict(self) -> Dict[str, Any]:
        return {
            "k": int(self.k),
            "final_member": self.final_member,
            "clusters": dict(zip(self.E.samples, (int(c) for c in self.clusters))),
            "evaluation": self.evaluation.to_dict(),
            "metadata": self.metadata,
        }


def _complete_columns(matrix: pd.DataFrame, k: int) -> pd.DataFrame:
    """Drop partitions whose every entry is missing (failed runs, left as is by imputation)"""
    failed = matrix.columns[matrix.isna().all()].tolist()
    if failed:
        logger.warning(f"k={k}: dropping {len(failed)} failed partitions: {failed}")
    return matrix.drop(columns=failed)


def run_consensus_functions(
    E: AssignmentArray,
    methods: Sequence[Union[str, ConsensusMethod]],
    options: Optional[Dict[str, Any]] = None,
) -> Dict[int, pd.DataFrame]:
    """
    Apply consensus functions to every k of an ensemble

    A k where some sample has no assignment at all is skipped, and a method
    that cannot label some sample at some k is skipped there, each with a
    warning; other errors propagate.

    Returns:
        {k: DataFrame of samples x methods}
    """
    options = options or {}
    functions = {ConsensusMethod(m).value: get_consensus_function(m) for m in methods}

    results: Dict[int, pd.DataFrame] = {}
    for k in E.nk:
        matrix = _complete_columns(E.partitions_for_k(k, as_frame=True), k)
        if matrix.shape[1] == 0:
            logger.warning(f"k={k}: every partition failed; skipping")
            continue
        unassigned = matrix.index[matrix.isna().all(axis=1)].tolist()
        if unassigned:
            logger.warning(f"k={k}: samples {unassigned} have no assignment; skipping consensus")
            continue
        out = pd.DataFrame(index=E.samples)
        for name, fn in functions.items():
            try:
                out[name] = fn(matrix.to_numpy(), k, **options)
            except ImpossibleConsensus as e:
                logger.warning(f"k={k}: {name} skipped: {e}")
        results[k] = out
        logger.debug(f"k={k}: consensus from {list(out.columns)}")
    return results


def dice(
    data: Union[np.ndarray, pd.DataFrame],
    nk: Sequence[int] = (2, 3, 4),
    reps: int = 10,
    algorithms: Sequence[str] = ("hc", "km"),
    cons_funs: Sequence[Union[str, ConsensusMethod]] = ("majority", "cspa", "kmodes"),
    p_item: float = 0.8,
    distance: Metric = "euclidean",
    seed: int = 1,
    impute: bool = True,
    n_neighbors: int = 5,
    min_agreement: float = 0.5,
    ref_cl: Optional[Sequence] = None,
    indices: Optional[Sequence[str]] = None,
    pac_lower: float = 0.0,
    pac_upper: float = 1.0,
    trim: bool = False,
    quantile: float = 0.75,
    reweigh: bool = False,
    n_replicates: int = 100,
    second_level: bool = False,
    consensus_options: Optional[Dict[str, Any]] = None,
    cache_dir: Optional[Union[str, Path]] = None,
    verbose: bool = False,
) -> DiceResult:
    """
    Diverse clustering ensemble

    Args:
        data: Samples x features matrix
        nk: Candidate numbers of clusters
        reps: Subsampling replicates
        algorithms: Base clustering algorithms
        cons_funs: Consensus functions applied at every k
        p_item: Fraction of samples per replicate
        distance: Distance for distance-based algorithms and indices
        seed: Random seed
        impute: Impute missing assignments before consensus
        n_neighbors: KNN imputation neighbours
        min_agreement: KNN imputation agreement threshold
        ref_cl: Optional reference labels (fixes k and adds external indices)
        indices: Internal indices for ranking (default: all)
        pac_lower: PAC lower threshold
        pac_upper: PAC upper threshold
        trim: Trim members below the rank quantile
        quantile: Trimming quantile
        reweigh: Reweigh kept members
        n_replicates: Copies when reweighing
        second_level: Re-run consensus over the trimmed ensemble
        consensus_options: Options passed to consensus functions
        cache_dir: Optional ensemble cache directory
        verbose: Report stage timings

    Returns:
        DiceResult
    """
    if not cons_funs:
        raise ConfigurationError("At least one consensus function is required")
    if second_level:
        trim = True
    methods = [ConsensusMethod(m) if not isinstance(m, ConsensusMethod) else m for m in cons_funs]

    timings: Dict[str, float] = {}
    with Timer("Ensemble generation", verbose=verbose, record=timings):
        E = consensus_cluster(
            data, nk=nk, reps=reps, algorithms=algorithms, p_item=p_item,
            metric=distance, seed=seed, cache_dir=cache_dir,
        )
    logger.info(f"Ensemble: {E.values.shape}, {E.missing_fraction:.1%} missing")

    if impute:
        with Timer("Imputation", verbose=verbose, record=timings):
            E_imputed = impute_missing(
                E, data, n_neighbors=n_neighbors, min_agreement=min_agreement, metric=distance,
            )
    else:
        E_imputed = E

    options = dict(consensus_options or {})
    options.setdefault("seed", seed)
    with Timer("Consensus functions", verbose=verbose, record=timings):
        consensus = run_consensus_functions(E_imputed, methods, options)

    with Timer("Evaluation", verbose=verbose, record=timings):
        evaluation = consensus_evaluate(
            data, E, cons_cl=consensus, ref_cl=ref_cl, indices=indices,
            lower=pac_lower, upper=pac_upper, trim=trim, quantile=quantile,
            reweigh=reweigh, n_replicates=n_replicates, metric=distance,
        )

    k = evaluation.k
    if second_level:
        cm = consensus_matrix(evaluation.trim.partitions)
        clusters = consensus_class(cm, k)
        final_member = "second_level"
    else:
        if evaluation.trim is not None:
            ranks = evaluation.trim.ranks
        else:
            ranks = consensus_rank(evaluation.internal)
        final_member = str(ranks.index[0])
        clusters = evaluation.members[final_member].to_numpy().astype(int)

    logger.info(f"Final clustering: k={k} from '{final_member}'")
    return DiceResult(
        E=E,
        E_imputed=E_imputed,
        consensus=consensus,
        evaluation=evaluation,
        clusters=np.asarray(clusters, dtype=int),
        final_member=final_member,
        metadata={
            "nk": list(E.nk),
            "reps": int(E.n_replicates),
            "algorithms": list(E.algorithms),
            "cons_funs": [m.value for m in methods],
            "seed": int(seed),
            "p_item": float(p_item),
            "missing_fraction": E.missing_fraction,
            "timings": timings,
        },
    )


class Pipeline:
    """Configured ensemble run

    Example:
        >>> from consensus_ensemble import Pipeline
        >>> pipeline = Pipeline(config_path="config.yaml")
        >>> result = pipeline.run(data)
        >>> pipeline.save(result)

    Args:
        config_path: Path to a YAML config file
        config: Already validated config (takes precedence)
        output_dir: Optional output directory (overrides config)
        overrides: Dotted `section.key=value` strings applied on top of the
            config file
    """

    def __init__(
        self,
        config_path: Optional[Union[str, Path]] = None,
        config: Optional[AppConfig] = None,
        output_dir: Optional[Union[str, Path]] = None,
        overrides: Optional[Sequence[str]] = None,
    ):
        if config is None:
            config = load_config(config_path, overrides=overrides)
        self.config = config
        if output_dir is not None:
            self.config.output_dir = Path(output_dir)

    def run(
        self,
        data: Union[np.ndarray, pd.DataFrame],
        ref_cl: Optional[Sequence] = None,
    ) -> DiceResult:
        cfg = self.config
        set_seed(cfg.ensemble.seed)
        return dice(
            data,
            nk=cfg.ensemble.nk,
            reps=cfg.ensemble.reps,
            algorithms=cfg.ensemble.algorithms,
            cons_funs=cfg.consensus.methods,
            p_item=cfg.ensemble.p_item,
            distance=cfg.ensemble.distance,
            seed=cfg.ensemble.seed,
            impute=cfg.impute.enabled,
            n_neighbors=cfg.impute.n_neighbors,
            min_agreement=cfg.impute.min_agreement,
            ref_cl=ref_cl,
            indices=cfg.evaluate.indices,
            pac_lower=cfg.evaluate.pac_lower,
            pac_upper=cfg.evaluate.pac_upper,
            trim=cfg.evaluate.trim,
            quantile=cfg.evaluate.quantile,
            reweigh=cfg.evaluate.reweigh,
            n_replicates=cfg.evaluate.n_replicates,
            second_level=cfg.consensus.second_level,
            consensus_options={
                "sim_mat": cfg.consensus.lce_similarity,
                "dc": cfg.consensus.lce_decay,
                "R": cfg.consensus.lce_iterations,
                "max_iter": cfg.consensus.max_iter,
            },
            cache_dir=cfg.ensemble.cache_dir,
            verbose=cfg.verbose,
        )

    def save(self, result: DiceResult, output_dir: Optional[Union[str, Path]] = None) -> Path:
        """
        Write a run's outputs

        Files: assignments.npz, clusters.csv, consensus_k<k>.csv, pac.csv,
        internal_indices.csv, external_indices.csv (with reference labels),
        cdf.csv, delta_area.csv and summary.json.

        Returns:
            Output directory
        """
        out = Path(output_dir) if output_dir is not None else Path(self.config.output_dir)
        out.mkdir(parents=True, exist_ok=True)

        save_assignment_array(result.E, out / "assignments.npz")
        save_data(
            pd.DataFrame({"cluster": result.clusters}, index=pd.Index(result.E.samples, name="sample")),
            out / "clusters.csv",
        )
        for k, frame in result.consensus.items():
            save_data(frame.rename_axis("sample"), out / f"consensus_k{k}.csv")
        save_data(result.evaluation.pac, out / "pac.csv")
        save_data(result.evaluation.internal, out / "internal_indices.csv")
        if result.evaluation.external is not None:
            save_data(result.evaluation.external, out / "external_indices.csv")

        matrices = consensus_combine(result.E, element="matrix")
        save_data(consensus_cdf(matrices), out / "cdf.csv", index=False)
        save_data(delta_area(matrices), out / "delta_area.csv", index=False)

        with open(out / "summary.json", "w") as f:
            json.dump(result.to_dict(), f, indent=2, default=float)

        logger.info(f"Results written to {out}")
        return out
