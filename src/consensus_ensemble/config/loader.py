"""
Configuration loader: YAML files, dotted overrides and Pydantic validation
"""
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union
import yaml
from pydantic import ValidationError
from rich.console import Console

from .schema import AppConfig

console = Console()


def load_yaml(path: Union[str, Path]) -> dict:
    """Load YAML file"""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    return data or {}


def parse_override(override: str) -> tuple:
    """
    Split a ``section.key=value`` override into its key path and value

    The value is parsed as YAML, so ``ensemble.nk=[2,3,4]`` gives a list and
    ``impute.enabled=false`` a bool.
    """
    if "=" not in override:
        raise ValueError(f"Override must look like 'section.key=value', got: {override!r}")
    key, raw = override.split("=", 1)
    keys = [part for part in key.strip().split(".") if part]
    if not keys:
        raise ValueError(f"Override has an empty key: {override!r}")
    return keys, yaml.safe_load(raw)


def apply_overrides(config_dict: Dict[str, Any], overrides: Sequence[str]) -> Dict[str, Any]:
    """
    Apply dotted overrides to a nested config dict

    Args:
        config_dict: Parsed YAML mapping (not modified)
        overrides: Strings such as ``ensemble.reps=20``

    Returns:
        New mapping with the overrides applied
    """
    merged = yaml.safe_load(yaml.safe_dump(config_dict)) or {}
    for override in overrides:
        keys, value = parse_override(override)
        node = merged
        for key in keys[:-1]:
            child = node.setdefault(key, {})
            if not isinstance(child, dict):
                raise ValueError(f"Cannot override '{key}' in {override!r}: not a section")
            node = child
        node[keys[-1]] = value
    return merged


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Sequence[str]] = None,
) -> AppConfig:
    """
    Load and validate configuration from YAML file

    Missing sections fall back to their defaults. Without a path the defaults
    are used and only the overrides apply.

    Args:
        config_path: Path to config file
        overrides: Dotted ``section.key=value`` strings applied after loading

    Returns:
        Validated AppConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValidationError: If config validation fails
    """
    config_dict: Dict[str, Any] = {}
    if config_path is not None:
        config_path = Path(config_path)
        console.print(f"[dim]Loading config: {config_path}[/dim]")
        config_dict = load_yaml(config_path)

    if overrides:
        config_dict = apply_overrides(config_dict, overrides)
        console.print(f"[dim]Applied {len(overrides)} override(s)[/dim]")

    try:
        config = AppConfig(**config_dict)
    except ValidationError as e:
        console.print(f"[red]✗ Config validation failed:[/red] {e}")
        raise
    console.print("[green]✓[/green] Config validated successfully")
    return config


def save_config(config: AppConfig, path: Union[str, Path]) -> None:
    """Write a config back to YAML, enums and paths as plain values"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        yaml.safe_dump(config.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)

    console.print(f"[green]✓[/green] Config saved: {path}")
