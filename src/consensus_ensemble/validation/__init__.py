"""Validity indices, stability and ensemble ranking"""

from .indices import INDEX_DIRECTIONS, INTERNAL_INDICES, internal_indices, ivi_table
from .external import EXTERNAL_INDICES, ev_confmat, ev_table, external_indices
from .stability import consensus_cdf, delta_area, pac, pac_table, select_k_by_pac
from .ranking import TrimResult, consensus_rank, consensus_trim, reweigh_counts
from .evaluate import EvaluationResult, consensus_evaluate

__all__ = [
    # Internal indices
    'INDEX_DIRECTIONS',
    'INTERNAL_INDICES',
    'internal_indices',
    'ivi_table',
    # External indices
    'EXTERNAL_INDICES',
    'ev_confmat',
    'ev_table',
    'external_indices',
    # Stability
    'consensus_cdf',
    'delta_area',
    'pac',
    'pac_table',
    'select_k_by_pac',
    # Ranking
    'TrimResult',
    'consensus_rank',
    'consensus_trim',
    'reweigh_counts',
    # Evaluation
    'EvaluationResult',
    'consensus_evaluate',
]
