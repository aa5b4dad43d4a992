"""Utility functions and helpers"""

from .io import load_assignment_array, load_data, load_labels, save_assignment_array, save_data
from .seeds import set_seed
from .timers import Timer

__all__ = [
    "load_assignment_array",
    "load_data",
    "load_labels",
    "save_assignment_array",
    "save_data",
    "set_seed",
    "Timer",
]
