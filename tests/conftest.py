"""Pytest configuration and fixtures for consensus-ensemble tests

Provides synthetic data and small hand-built ensembles shared by the suite.
"""
import pytest
import numpy as np
import pandas as pd
from sklearn.datasets import make_blobs

from consensus_ensemble.ensemble.assignments import build_assignment_array

# Set random seed for reproducibility
np.random.seed(42)


# ============================================================================
# Data Generation Fixtures
# ============================================================================

@pytest.fixture(scope="session")
def blob_data():
    """Three well-separated blobs: (X, y_true)"""
    X, y_true = make_blobs(n_samples=45, n_features=4, centers=3,
                           cluster_std=0.4, random_state=42)
    return X, y_true + 1


@pytest.fixture(scope="session")
def blob_frame(blob_data):
    """Blob data as a DataFrame with sample names"""
    X, _ = blob_data
    index = [f"SAMPLE_{i:03d}" for i in range(len(X))]
    columns = [f"f{j}" for j in range(X.shape[1])]
    return pd.DataFrame(X, index=index, columns=columns)


@pytest.fixture
def two_group_partitions():
    """Six samples, two clean groups, label-switched copies"""
    return np.array([
        [1, 2, 1, 2],
        [1, 2, 1, 2],
        [1, 2, 1, 2],
        [2, 1, 2, 1],
        [2, 1, 2, 1],
        [2, 1, 2, 1],
    ], dtype=float)


@pytest.fixture
def noisy_partitions():
    """Eight samples, two groups, one disagreeing column and some gaps"""
    return np.array([
        [1, 1, 2, np.nan, 1],
        [1, 1, 2, 1, 1],
        [1, np.nan, 2, 1, 2],
        [1, 1, 2, 1, 1],
        [2, 2, 1, 2, 2],
        [2, 2, np.nan, 2, 2],
        [2, 2, 1, 2, 1],
        [np.nan, 2, 1, 2, 2],
    ])


@pytest.fixture
def small_ensemble():
    """Assignment array: 6 samples, 3 replicates, 2 algorithms, k in {2, 3}"""
    rng = np.random.default_rng(7)
    truth = np.array([1, 1, 1, 2, 2, 2], dtype=float)
    partitions = {}
    for rep in range(3):
        for alg in ["hc", "km"]:
            labels2 = truth.copy() if rep % 2 == 0 else 3 - truth
            labels3 = np.array([1, 1, 2, 3, 3, 3], dtype=float)
            for labels in (labels2, labels3):
                drop = rng.choice(6, size=1, replace=False)
                labels[drop] = np.nan
            partitions[(rep, alg, 2)] = labels2
            partitions[(rep, alg, 3)] = labels3
    return build_assignment_array(
        partitions,
        samples=[f"S{i}" for i in range(1, 7)],
        algorithms=["hc", "km"],
        nk=[2, 3],
    )
