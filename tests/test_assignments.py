"""Tests for the assignment array (partition store)"""
import pytest
import numpy as np
import pandas as pd

from consensus_ensemble.ensemble.assignments import (
    AssignmentArray,
    build_assignment_array,
    cache_key,
    merge_assignment_arrays,
)
from consensus_ensemble.exceptions import ConfigurationError, ShapeError


def _array(n=4, reps=2, n_alg=2, nk=(2, 3), fill=1.0):
    values = np.full((n, reps, n_alg, len(nk)), fill)
    return AssignmentArray(
        values=values,
        samples=[f"S{i}" for i in range(n)],
        algorithms=[f"A{a}" for a in range(n_alg)],
        nk=list(nk),
    )


class TestAssignmentArray:
    """Tests for AssignmentArray validation and access"""

    def test_shape_properties(self):
        E = _array(n=5, reps=3, n_alg=2)
        assert E.n_samples == 5
        assert E.n_replicates == 3
        assert E.n_algorithms == 2
        assert E.missing_fraction == 0.0

    def test_values_are_read_only(self):
        E = _array()
        with pytest.raises(ValueError):
            E.values[0, 0, 0, 0] = 2.0

    def test_rejects_wrong_rank(self):
        with pytest.raises(ShapeError):
            AssignmentArray(values=np.ones((3, 2, 2)), samples=["a", "b", "c"], algorithms=["x", "y"], nk=[2])

    def test_rejects_label_above_k(self):
        values = np.ones((3, 1, 1, 1))
        values[0, 0, 0, 0] = 3
        with pytest.raises(ConfigurationError, match="must lie in"):
            AssignmentArray(values=values, samples=["a", "b", "c"], algorithms=["x"], nk=[2])

    def test_rejects_non_integer_labels(self):
        values = np.full((2, 1, 1, 1), 1.5)
        with pytest.raises(ConfigurationError, match="Non-integer"):
            AssignmentArray(values=values, samples=["a", "b"], algorithms=["x"], nk=[2])

    def test_rejects_duplicate_algorithms(self):
        with pytest.raises(ConfigurationError, match="Duplicate"):
            AssignmentArray(values=np.ones((2, 1, 2, 1)), samples=["a", "b"], algorithms=["x", "x"], nk=[2])

    def test_missing_labels_allowed(self):
        values = np.full((3, 1, 1, 1), np.nan)
        values[0, 0, 0, 0] = 1
        E = AssignmentArray(values=values, samples=["a", "b", "c"], algorithms=["x"], nk=[2])
        assert E.missing_fraction == pytest.approx(2 / 3)

    def test_partitions_for_k_column_order(self):
        values = np.zeros((2, 2, 2, 1))
        # label encodes (rep, alg): rep 0 -> 1, rep 1 -> 2 for A0; A1 all 3
        values[:, 0, 0, 0] = 1
        values[:, 1, 0, 0] = 2
        values[:, :, 1, 0] = 3
        E = AssignmentArray(values=values, samples=["a", "b"], algorithms=["A0", "A1"], nk=[3])
        matrix = E.partitions_for_k(3)
        assert matrix.shape == (2, 4)
        np.testing.assert_array_equal(matrix[0], [1, 2, 3, 3])
        assert E.partition_names() == ["A0 r1", "A0 r2", "A1 r1", "A1 r2"]

    def test_partitions_for_k_as_frame(self):
        E = _array()
        frame = E.partitions_for_k(2, as_frame=True)
        assert isinstance(frame, pd.DataFrame)
        assert list(frame.index) == E.samples
        assert list(frame.columns) == E.partition_names()

    def test_unknown_k_raises_shape_error(self):
        E = _array(nk=(2, 3))
        with pytest.raises(ShapeError):
            E.partitions_for_k(5)

    def test_slice(self):
        E = _array(reps=3)
        assert E.slice(2, "A1").shape == (4, 3)

    def test_select_subsets_axes(self):
        E = _array(n_alg=3, nk=(2, 3, 4))
        sub = E.select(algorithms=["A2"], nk=[3])
        assert sub.algorithms == ["A2"]
        assert sub.nk == [3]
        assert sub.values.shape == (4, 2, 1, 1)

    def test_to_frame_long_format(self):
        E = _array(n=3, reps=2, n_alg=1, nk=(2,))
        frame = E.to_frame()
        assert len(frame) == 3 * 2 * 1 * 1
        assert list(frame.columns) == ["sample", "replicate", "algorithm", "k", "label"]


class TestBuildAssignmentArray:
    """Tests for building arrays from raw partitions"""

    def test_from_mapping_fills_missing_slots(self):
        E = build_assignment_array({
            (0, "hc", 2): [1, 1, 2],
            (1, "km", 2): [2, None, 1],
        })
        assert E.algorithms == ["hc", "km"]
        assert E.nk == [2]
        assert E.n_replicates == 2
        assert np.isnan(E.values[:, 1, 0, 0]).all()
        assert np.isnan(E.values[1, 1, 1, 0])

    def test_from_mapping_rejects_length_mismatch(self):
        with pytest.raises(ShapeError):
            build_assignment_array({(0, "hc", 2): [1, 2], (0, "km", 2): [1, 2, 1]})

    def test_from_array_requires_nk(self):
        with pytest.raises(ConfigurationError):
            build_assignment_array(np.ones((3, 1, 1, 1)))

    def test_from_array(self):
        E = build_assignment_array(np.ones((3, 2, 1, 1)), nk=[2])
        assert E.samples == ["S1", "S2", "S3"]
        assert E.algorithms == ["A1"]

    def test_empty_mapping(self):
        with pytest.raises(ConfigurationError):
            build_assignment_array({})


class TestMerge:
    """Tests for merging arrays along the algorithm axis"""

    def test_merge_concatenates_algorithms(self):
        a = _array(n_alg=1)
        b = AssignmentArray(values=np.full((4, 2, 1, 2), 2.0), samples=a.samples, algorithms=["B"], nk=[2, 3])
        merged = merge_assignment_arrays(a, b)
        assert merged.algorithms == ["A0", "B"]
        assert merged.values.shape == (4, 2, 2, 2)
        np.testing.assert_array_equal(merged.slice(2, "B"), 2.0)

    def test_merge_sample_mismatch(self):
        with pytest.raises(ShapeError):
            merge_assignment_arrays(_array(n=4), _array(n=5))

    def test_merge_k_mismatch(self):
        a = _array(nk=(2, 3))
        b = AssignmentArray(values=np.ones((4, 2, 1, 1)), samples=a.samples, algorithms=["B"], nk=[2])
        with pytest.raises(ShapeError):
            merge_assignment_arrays(a, b)

    def test_merge_replicate_mismatch(self):
        with pytest.raises(ShapeError):
            merge_assignment_arrays(_array(reps=2), _array(reps=3))


class TestCacheKey:
    """Tests for the ensemble cache key"""

    def test_deterministic(self):
        X = np.arange(12, dtype=float).reshape(4, 3)
        assert cache_key(X, ["hc"], [2, 3], 5, 1, 0.8) == cache_key(X, ["hc"], [3, 2], 5, 1, 0.8)

    def test_sensitive_to_inputs(self):
        X = np.arange(12, dtype=float).reshape(4, 3)
        base = cache_key(X, ["hc"], [2], 5, 1, 0.8)
        assert base != cache_key(X + 1, ["hc"], [2], 5, 1, 0.8)
        assert base != cache_key(X, ["km"], [2], 5, 1, 0.8)
        assert base != cache_key(X, ["hc"], [2], 6, 1, 0.8)
        assert base != cache_key(X, ["hc"], [2], 5, 2, 0.8)
