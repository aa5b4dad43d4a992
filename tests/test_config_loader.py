"""Tests for config loader"""
import pytest
from pathlib import Path
import tempfile
import yaml

from consensus_ensemble.config.loader import (
    apply_overrides,
    load_config,
    load_yaml,
    parse_override,
    save_config,
)
from consensus_ensemble.config.schema import AppConfig, EnsembleConfig
from pydantic import ValidationError


@pytest.fixture
def temp_config_file():
    """Create temporary config file"""
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        config = {
            "verbose": False,
            "ensemble": {
                "nk": [2, 3],
                "reps": 5,
                "algorithms": ["hc", "km", "gmm"],
                "seed": 42,
            },
            "consensus": {
                "methods": ["majority", "lce"],
                "lce_similarity": "asrs",
            },
            "evaluate": {
                "indices": ["dunn", "silhouette"],
                "trim": True,
            },
        }
        yaml.safe_dump(config, f)
        yield Path(f.name)
        Path(f.name).unlink()


def test_load_yaml(temp_config_file):
    """Test YAML loading"""
    data = load_yaml(temp_config_file)
    assert isinstance(data, dict)
    assert data["ensemble"]["seed"] == 42


def test_load_yaml_missing_file():
    """Test loading non-existent file raises error"""
    with pytest.raises(FileNotFoundError):
        load_yaml("nonexistent_file.yaml")


def test_load_yaml_empty_file(tmp_path):
    """Test empty file loads as empty dict"""
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_yaml(path) == {}


def test_load_config(temp_config_file):
    """Test config loading and validation"""
    config = load_config(temp_config_file)
    assert isinstance(config, AppConfig)
    assert config.ensemble.seed == 42
    assert config.ensemble.algorithms == ["hc", "km", "gmm"]
    assert config.consensus.lce_similarity == "asrs"
    assert config.evaluate.trim is True
    # untouched sections keep their defaults
    assert config.impute.n_neighbors == 5


def test_load_config_invalid(tmp_path):
    """Test invalid config raises ValidationError"""
    path = tmp_path / "bad.yaml"
    path.write_text("ensemble:\n  reps: 0\n")
    with pytest.raises(ValidationError):
        load_config(path)


def test_load_defaults_file():
    """Test the shipped defaults validate"""
    path = Path(__file__).parent.parent / "configs" / "defaults.yaml"
    config = load_config(path)
    assert config == AppConfig()


def test_save_config(tmp_path):
    """Test config saving"""
    config = AppConfig(
        verbose=False,
        ensemble=EnsembleConfig(nk=[3, 5], reps=4, seed=7),
        output_dir=tmp_path / "out",
    )
    path = tmp_path / "saved.yaml"
    save_config(config, path)
    assert path.exists()

    reloaded = load_config(path)
    assert reloaded.ensemble.nk == [3, 5]
    assert reloaded.ensemble.seed == 7
    assert reloaded.consensus.methods == config.consensus.methods
    assert reloaded.output_dir == tmp_path / "out"


def test_parse_override():
    """Test override values are parsed as YAML"""
    assert parse_override("ensemble.nk=[2, 3, 4]") == (["ensemble", "nk"], [2, 3, 4])
    assert parse_override("impute.enabled=false") == (["impute", "enabled"], False)
    assert parse_override("verbose = true") == (["verbose"], True)


@pytest.mark.parametrize("bad", ["ensemble.reps", "=5", "..=1"])
def test_parse_override_malformed(bad):
    """Test malformed overrides raise"""
    with pytest.raises(ValueError):
        parse_override(bad)


def test_apply_overrides_leaves_input_untouched():
    """Test overrides build a new nested mapping"""
    base = {"ensemble": {"reps": 5}}
    merged = apply_overrides(base, ["ensemble.seed=3", "evaluate.trim=true"])
    assert merged == {"ensemble": {"reps": 5, "seed": 3}, "evaluate": {"trim": True}}
    assert base == {"ensemble": {"reps": 5}}


def test_apply_overrides_into_scalar():
    """Test a key path through a scalar raises"""
    with pytest.raises(ValueError, match="not a section"):
        apply_overrides({"verbose": True}, ["verbose.level=1"])


def test_load_config_with_overrides(temp_config_file):
    """Test overrides win over file values"""
    config = load_config(temp_config_file, overrides=["ensemble.reps=9", "consensus.methods=[cspa]"])
    assert config.ensemble.reps == 9
    assert config.ensemble.seed == 42
    assert [m.value for m in config.consensus.methods] == ["cspa"]


def test_load_config_without_file():
    """Test defaults plus overrides when no file is given"""
    assert load_config() == AppConfig()
    assert load_config(overrides=["ensemble.nk=[4, 5]"]).ensemble.nk == [4, 5]


def test_invalid_override_fails_validation():
    """Test overrides are validated like file values"""
    with pytest.raises(ValidationError):
        load_config(overrides=["ensemble.reps=0"])
