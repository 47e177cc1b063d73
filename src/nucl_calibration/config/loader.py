"""Configuration loading with YAML parsing and validation."""

from pathlib import Path
from typing import Any

import pydantic_yaml

from .schema import PipelineConfig


def load_config(config_path: Path | str) -> PipelineConfig:
    """
    Load and validate pipeline configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated PipelineConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        pydantic.ValidationError: If config is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        yaml_content = f.read()

    return pydantic_yaml.parse_yaml_raw_as(PipelineConfig, yaml_content)


def load_config_with_overrides(
    config_path: Path | str,
    overrides: dict[str, Any],
) -> PipelineConfig:
    """
    Load config from YAML and apply dictionary overrides.

    CLI flags use this to override evaluation switches and paths, e.g.
    ``{"evaluation.eval_saturation": True}``.

    Args:
        config_path: Path to YAML configuration file
        overrides: Dictionary of values to override (dotted keys for nesting)

    Returns:
        Validated PipelineConfig with overrides applied

    Raises:
        FileNotFoundError: If config file doesn't exist
        KeyError: If a dotted key names an unknown section
        pydantic.ValidationError: If final config is invalid
    """
    config = load_config(config_path)
    config_dict = config.model_dump()

    for key, value in overrides.items():
        *sections, field = key.split(".")
        target = config_dict
        for section in sections:
            if not isinstance(target.get(section), dict):
                raise KeyError(f"Override '{key}': '{section}' is not a config section")
            target = target[section]
        target[field] = value

    return PipelineConfig.model_validate(config_dict)
