"""Relabelling, co-association matrices and consensus functions"""

from .relabel import contingency_table, relabel_class, relabel_map, relabel_partitions
from .coassociation import consensus_class, consensus_combine, consensus_matrix, has_defined_pairs
from .functions import (
    ConsensusMethod,
    check_partitions,
    cspa,
    get_consensus_function,
    k_modes,
    majority_voting,
)
from .lce import LCESimilarity, lce, lce_similarity
from .lca import lca

__all__ = [
    # Relabelling
    'contingency_table',
    'relabel_class',
    'relabel_map',
    'relabel_partitions',
    # Co-association
    'consensus_class',
    'consensus_combine',
    'consensus_matrix',
    'has_defined_pairs',
    # Consensus functions
    'ConsensusMethod',
    'LCESimilarity',
    'check_partitions',
    'cspa',
    'get_consensus_function',
    'k_modes',
    'lca',
    'lce',
    'lce_similarity',
    'majority_voting',
]
