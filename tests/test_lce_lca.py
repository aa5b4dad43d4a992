"""Tests for link-based and latent class consensus"""
import pytest
import numpy as np

from consensus_ensemble.consensus.lca import lca
from consensus_ensemble.consensus.lce import cluster_membership, lce, lce_similarity
from consensus_ensemble.exceptions import ConfigurationError


@pytest.fixture
def overlapping_partitions():
    """Ten samples; columns agree on two cores and disagree on the borders"""
    return np.array([
        [1, 1, 1, 2],
        [1, 1, 1, 2],
        [1, 1, 1, 2],
        [1, 1, 2, 2],
        [1, 2, 2, 2],
        [2, 2, 2, 1],
        [2, 2, 2, 1],
        [2, 2, 2, 1],
        [2, 2, 1, 1],
        [2, 1, 2, 1],
    ], dtype=float)


class TestClusterMembership:
    """Tests for the sample/cluster incidence matrix"""

    def test_shape_and_owner(self, two_group_partitions):
        A, owner = cluster_membership(two_group_partitions)
        assert A.shape == (6, 8)
        np.testing.assert_array_equal(owner, [0, 0, 1, 1, 2, 2, 3, 3])
        np.testing.assert_array_equal(A.sum(axis=1), 4)


class TestLCESimilarity:
    """Tests for the link-based similarity matrices"""

    @pytest.mark.parametrize("sim_mat", ["cts", "srs", "asrs"])
    def test_matrix_properties(self, sim_mat, overlapping_partitions):
        S = lce_similarity(overlapping_partitions, sim_mat=sim_mat)
        assert S.shape == (10, 10)
        np.testing.assert_allclose(S, S.T)
        np.testing.assert_array_equal(np.diag(S), 1.0)
        assert S.min() >= 0 and S.max() <= 1

    @pytest.mark.parametrize("sim_mat", ["cts", "srs", "asrs"])
    def test_within_group_exceeds_between(self, sim_mat, two_group_partitions):
        S = lce_similarity(two_group_partitions, sim_mat=sim_mat)
        assert S[0, 1] > S[0, 4]
        assert S[3, 5] > S[2, 5]

    def test_cts_links_border_samples(self, overlapping_partitions):
        S = lce_similarity(overlapping_partitions, sim_mat="cts")
        plain = (overlapping_partitions[:, None, :] == overlapping_partitions[None, :, :]).mean(axis=2)
        # cluster links only add to the plain co-association
        assert np.all(S >= plain - 1e-12)

    def test_unknown_variant(self, two_group_partitions):
        with pytest.raises(ConfigurationError, match="Unknown LCE similarity"):
            lce_similarity(two_group_partitions, sim_mat="wct")

    def test_bad_decay(self, two_group_partitions):
        with pytest.raises(ConfigurationError):
            lce_similarity(two_group_partitions, dc=0)
        with pytest.raises(ConfigurationError):
            lce_similarity(two_group_partitions, dc=1.5)

    def test_bad_iterations(self, two_group_partitions):
        with pytest.raises(ConfigurationError):
            lce_similarity(two_group_partitions, sim_mat="srs", R=0)


class TestLCE:
    """Tests for LCE consensus"""

    @pytest.mark.parametrize("sim_mat", ["cts", "srs", "asrs"])
    def test_perfect_split(self, sim_mat, two_group_partitions):
        labels = lce(two_group_partitions, 2, sim_mat=sim_mat)
        np.testing.assert_array_equal(labels, [1, 1, 1, 2, 2, 2])

    def test_cores_recovered(self, overlapping_partitions):
        labels = lce(overlapping_partitions, 2)
        assert len(set(labels[:3])) == 1
        assert len(set(labels[5:8])) == 1
        assert labels[0] != labels[5]

    def test_requires_complete_input(self, noisy_partitions):
        with pytest.raises(ConfigurationError, match="impute"):
            lce(noisy_partitions, 2)


class TestLCA:
    """Tests for latent class consensus"""

    def test_length_and_range(self, overlapping_partitions):
        labels = lca(overlapping_partitions, 2)
        assert labels.shape == (10,)
        assert labels.min() >= 1 and labels.max() <= 2

    def test_consistent_groups(self, two_group_partitions):
        labels = lca(two_group_partitions, 2)
        assert len(set(labels[:3])) == 1
        assert len(set(labels[3:])) == 1
        assert labels[0] != labels[3]

    def test_seeded_runs_match(self, overlapping_partitions):
        np.testing.assert_array_equal(
            lca(overlapping_partitions, 2, seed=3),
            lca(overlapping_partitions, 2, seed=3),
        )

    def test_requires_complete_input(self, noisy_partitions):
        with pytest.raises(ConfigurationError, match="impute"):
            lca(noisy_partitions, 2)

    def test_bad_n_init(self, two_group_partitions):
        with pytest.raises(ConfigurationError):
            lca(two_group_partitions, 2, n_init=0)
