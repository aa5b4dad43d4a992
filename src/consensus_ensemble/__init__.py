"""
consensus-ensemble
Consensus clustering ensembles with co-association, consensus functions and
validity-based ranking
"""

__version__ = "0.1.0"

from .exceptions import (
    AlgorithmUnavailable,
    ConfigurationError,
    ConsensusError,
    ImpossibleConsensus,
    NonConvergence,
    ShapeError,
)
from .ensemble import (
    AssignmentArray,
    build_assignment_array,
    consensus_cluster,
    distance,
    merge_assignment_arrays,
    register_algorithm,
)
from .consensus import (
    ConsensusMethod,
    consensus_combine,
    consensus_matrix,
    cspa,
    get_consensus_function,
    k_modes,
    lca,
    lce,
    majority_voting,
    relabel_class,
    relabel_partitions,
)
from .preprocess import impute_knn, impute_missing
from .validation import (
    EvaluationResult,
    TrimResult,
    consensus_evaluate,
    consensus_rank,
    consensus_trim,
    ivi_table,
    pac,
)
from .pipeline import DiceResult, Pipeline, dice

__all__ = [
    "__version__",
    # Errors
    "AlgorithmUnavailable",
    "ConfigurationError",
    "ConsensusError",
    "ImpossibleConsensus",
    "NonConvergence",
    "ShapeError",
    # Ensemble
    "AssignmentArray",
    "build_assignment_array",
    "consensus_cluster",
    "distance",
    "merge_assignment_arrays",
    "register_algorithm",
    # Consensus
    "ConsensusMethod",
    "consensus_combine",
    "consensus_matrix",
    "cspa",
    "get_consensus_function",
    "k_modes",
    "lca",
    "lce",
    "majority_voting",
    "relabel_class",
    "relabel_partitions",
    # Imputation
    "impute_knn",
    "impute_missing",
    # Validation
    "EvaluationResult",
    "TrimResult",
    "consensus_evaluate",
    "consensus_rank",
    "consensus_trim",
    "ivi_table",
    "pac",
    # Main API
    "DiceResult",
    "Pipeline",
    "dice",
]
