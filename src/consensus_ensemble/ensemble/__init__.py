"""Partition store and ensemble generation"""

from .assignments import (
    AssignmentArray,
    build_assignment_array,
    cache_key,
    merge_assignment_arrays,
)
from .distance import distance
from .generate import (
    available_algorithms,
    consensus_cluster,
    register_algorithm,
    run_algorithm,
)

__all__ = [
    'AssignmentArray',
    'build_assignment_array',
    'cache_key',
    'merge_assignment_arrays',
    'distance',
    'available_algorithms',
    'consensus_cluster',
    'register_algorithm',
    'run_algorithm',
]
