"""Deterministic seeding for reproducibility"""
import random
import numpy as np
from typing import Optional


def set_seed(seed: Optional[int] = None) -> np.random.Generator:
    """
    Seed Python and NumPy global generators

    Library code draws from explicit generators; this only pins the global
    state for callers and third-party code that still use it.

    Args:
        seed: Random seed value. If None, uses default 1

    Returns:
        A fresh numpy Generator seeded with the same value
    """
    if seed is None:
        seed = 1

    random.seed(seed)
    np.random.seed(seed)
    return np.random.default_rng(seed)
