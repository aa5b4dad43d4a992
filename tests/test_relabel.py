"""Tests for relabelling partitions against a reference"""
import pytest
import numpy as np

from consensus_ensemble.consensus.relabel import (
    contingency_table,
    relabel_class,
    relabel_map,
    relabel_partitions,
)
from consensus_ensemble.exceptions import ConfigurationError


class TestContingencyTable:
    """Tests for the contingency table"""

    def test_counts_joint_samples_only(self):
        table, p_labels, r_labels = contingency_table(
            np.array([1, 1, 2, np.nan]),
            np.array([1, 2, 2, 1]),
        )
        np.testing.assert_array_equal(p_labels, [1, 2])
        np.testing.assert_array_equal(r_labels, [1, 2])
        np.testing.assert_array_equal(table, [[1, 1], [0, 1]])

    def test_length_mismatch(self):
        with pytest.raises(ConfigurationError):
            contingency_table(np.array([1, 2]), np.array([1, 2, 1]))


class TestRelabelClass:
    """Tests for relabel_class"""

    def test_switched_labels_are_aligned(self):
        out = relabel_class([2, 2, 1, 1], [1, 1, 2, 2])
        np.testing.assert_array_equal(out, [1, 1, 2, 2])

    def test_missing_entries_preserved(self):
        out = relabel_class([2, np.nan, 1, 1], [1, 1, 2, 2])
        assert np.isnan(out[1])
        np.testing.assert_array_equal(out[[0, 2, 3]], [1, 2, 2])

    def test_fewer_labels_than_reference(self):
        out = relabel_class([3, 3, 3, 3], [1, 1, 2, 2])
        assert set(out) == {1.0}

    def test_excess_label_keeps_free_value(self):
        out = relabel_class([1, 1, 2, 2, 3, 3], [1, 1, 2, 2, 2, 2])
        np.testing.assert_array_equal(out, [1, 1, 2, 2, 3, 3])

    def test_excess_label_takes_smallest_free_label(self):
        out = relabel_class([1, 1, 2, 2, 3, 3], [2, 2, 2, 1, 1, 1])
        np.testing.assert_array_equal(out, [2, 2, 3, 3, 1, 1])

    def test_mapping_is_injective(self):
        mapping = relabel_map(np.array([1, 2, 3, 4]), np.array([1, 1, 1, 1]))
        assert len(set(mapping.values())) == 4

    def test_tied_overlap_keeps_label_order(self):
        # every pairing overlaps once, so the order-preserving one is chosen
        assert relabel_map([1, 2, 1, 2], [1, 1, 2, 2]) == {1.0: 1.0, 2.0: 2.0}
        assert relabel_map([2, 1, 2, 1], [1, 1, 2, 2]) == {1.0: 1.0, 2.0: 2.0}

    def test_tied_overlap_three_labels(self):
        partition = [1, 2, 3, 1, 2, 3, 1, 2, 3]
        reference = [1, 1, 1, 2, 2, 2, 3, 3, 3]
        assert relabel_map(partition, reference) == {1.0: 1.0, 2.0: 2.0, 3.0: 3.0}

    def test_tied_overlap_non_contiguous_labels(self):
        assert relabel_map([9, 5, 9, 5], [2, 2, 7, 7]) == {5.0: 2.0, 9.0: 7.0}

    def test_tie_with_excess_label(self):
        # labels 4 and 8 tie for reference 3; the lower one takes it
        mapping = relabel_map([4, 8, 4, 8], [3, 3, 3, 3])
        assert mapping == {4.0: 3.0, 8.0: 8.0}

    def test_rejects_matrix_input(self):
        with pytest.raises(ConfigurationError):
            relabel_class(np.ones((2, 2)), np.ones(2))


class TestRelabelPartitions:
    """Tests for relabelling a whole partition matrix"""

    def test_aligns_to_first_column(self, two_group_partitions):
        out = relabel_partitions(two_group_partitions)
        for j in range(out.shape[1]):
            np.testing.assert_array_equal(out[:, j], two_group_partitions[:, 0])

    def test_custom_reference(self, two_group_partitions):
        ref = np.array([2, 2, 2, 1, 1, 1])
        out = relabel_partitions(two_group_partitions, reference=ref)
        for j in range(out.shape[1]):
            np.testing.assert_array_equal(out[:, j], ref)

    def test_label_switched_pair(self):
        out = relabel_partitions(np.array([[1, 2], [1, 2], [2, 1], [2, 1]], dtype=float))
        np.testing.assert_array_equal(out[:, 1], [1, 1, 2, 2])
