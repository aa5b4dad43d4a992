"""Exception hierarchy for ensemble generation and consensus"""
from typing import Optional


class ConsensusError(Exception):
    """Base class for all consensus-ensemble errors"""


class ConfigurationError(ConsensusError, ValueError):
    """Invalid k, empty algorithm/replicate set, or malformed input matrix"""


class ShapeError(ConfigurationError):
    """Assignment arrays with incompatible axes, or a k not on the k-axis"""


class AlgorithmUnavailable(ConsensusError):
    """A base clustering algorithm is unknown or cannot run on this input"""

    def __init__(self, algorithm: str, reason: str = ""):
        self.algorithm = algorithm
        message = f"Algorithm '{algorithm}' unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class NonConvergence(ConsensusError):
    """A base clustering algorithm failed to produce a usable partition"""

    def __init__(self, algorithm: str, k: int, reason: str = ""):
        self.algorithm = algorithm
        self.k = k
        message = f"Algorithm '{algorithm}' did not converge for k={k}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ImpossibleConsensus(ConsensusError):
    """A consensus function cannot assign a label to a sample"""

    def __init__(self, message: str, sample_index: Optional[int] = None):
        self.sample_index = sample_index
        if sample_index is not None:
            message = f"{message} (sample index {sample_index})"
        super().__init__(message)
