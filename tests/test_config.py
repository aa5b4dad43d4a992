"""Tests for configuration schemas"""
import pytest
from pathlib import Path
from pydantic import ValidationError

from consensus_ensemble.config.schema import (
    AppConfig,
    ConsensusConfig,
    EnsembleConfig,
    EvaluateConfig,
    ImputeConfig,
)
from consensus_ensemble.consensus.functions import ConsensusMethod


def test_defaults():
    """Test default configuration"""
    config = AppConfig()
    assert config.ensemble.nk == [2, 3, 4]
    assert config.ensemble.algorithms == ["hc", "km"]
    assert config.impute.enabled is True
    assert config.consensus.methods == [
        ConsensusMethod.MAJORITY, ConsensusMethod.CSPA, ConsensusMethod.KMODES
    ]
    assert config.output_dir == Path("outputs")


def test_ensemble_validation():
    """Test ensemble settings are validated"""
    with pytest.raises(ValidationError):
        EnsembleConfig(nk=[])
    with pytest.raises(ValidationError):
        EnsembleConfig(nk=[2, 2])
    with pytest.raises(ValidationError):
        EnsembleConfig(nk=[0, 2])
    with pytest.raises(ValidationError):
        EnsembleConfig(reps=0)
    with pytest.raises(ValidationError):
        EnsembleConfig(p_item=0.0)
    with pytest.raises(ValidationError):
        EnsembleConfig(algorithms=["hc", "hc"])


def test_extra_fields_forbidden():
    """Test unknown keys are rejected"""
    with pytest.raises(ValidationError):
        EnsembleConfig(n_reps=5)
    with pytest.raises(ValidationError):
        AppConfig(clustering={})


def test_impute_agreement_range():
    """Test KNN agreement threshold must lie in [0, 1)"""
    ImputeConfig(min_agreement=0.0)
    with pytest.raises(ValidationError):
        ImputeConfig(min_agreement=1.0)


def test_consensus_methods_parsed():
    """Test method names become enum members"""
    config = ConsensusConfig(methods=["lce", "lca"], lce_similarity="srs")
    assert config.methods == [ConsensusMethod.LCE, ConsensusMethod.LCA]
    with pytest.raises(ValidationError):
        ConsensusConfig(methods=["hgsc"])
    with pytest.raises(ValidationError):
        ConsensusConfig(methods=[])
    with pytest.raises(ValidationError):
        ConsensusConfig(lce_similarity="wct")


def test_evaluate_validation():
    """Test index names and PAC thresholds"""
    EvaluateConfig(indices=["gamma", "tau"], pac_lower=0.1, pac_upper=0.9)
    with pytest.raises(ValidationError, match="Invalid indices"):
        EvaluateConfig(indices=["xie_beni"])
    with pytest.raises(ValidationError, match="pac_lower"):
        EvaluateConfig(pac_lower=0.9, pac_upper=0.1)


def test_complete_input_methods_need_imputation():
    """Test lce/lca cannot run without imputation"""
    with pytest.raises(ValidationError, match="impute"):
        AppConfig(
            impute=ImputeConfig(enabled=False),
            consensus=ConsensusConfig(methods=["majority", "lca"]),
        )
    config = AppConfig(
        impute=ImputeConfig(enabled=False),
        consensus=ConsensusConfig(methods=["majority", "cspa"]),
    )
    assert config.impute.enabled is False
