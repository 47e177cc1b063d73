"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from nucl_calibration.config import load_config, load_config_with_overrides
from nucl_calibration.config.schema import PipelineConfig

DEFAULT_CONFIG = Path(__file__).parents[1] / "config" / "default.yaml"


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Relative output directories are created under tmp_path."""
    monkeypatch.chdir(tmp_path)


def write_config(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(body)
    return path


def test_load_valid_config():
    """Test loading valid default configuration."""
    config = load_config(DEFAULT_CONFIG)

    assert isinstance(config, PipelineConfig)
    assert config.reference.conversion_list == Path("reference/conv_list.csv")
    assert config.ingest.file_suffix == ".unknown"
    assert config.ingest.calibration_join_keys == ["calcurve"]
    assert config.evaluation.eval_trueblank is True
    assert config.evaluation.eval_saturation is False
    assert config.evaluation.saturation_ratio == 0.9
    assert config.plotting.dpi == 150


def test_minimal_config_uses_defaults(tmp_path):
    """Test that only the conversion list is required."""
    path = write_config(tmp_path, "reference:\n  conversion_list: conv.csv\n")

    config = load_config(path)

    assert config.reference.condition_list is None
    assert config.evaluation.true_blank == "TrueBlank"
    assert config.evaluation.excl_below_tb is True
    assert config.ingest.skip_failed is False


def test_invalid_config_missing_field(tmp_path):
    """Test that missing reference section raises ValidationError."""
    path = write_config(tmp_path, "output_dir: out\n")

    with pytest.raises(ValidationError) as exc_info:
        load_config(path)

    assert "reference" in str(exc_info.value)


def test_invalid_saturation_ratio(tmp_path):
    """Test that a non-positive saturation ratio raises ValidationError."""
    path = write_config(tmp_path, """
reference:
  conversion_list: conv.csv
evaluation:
  saturation_ratio: 0
""")

    with pytest.raises(ValidationError):
        load_config(path)


def test_invalid_join_keys(tmp_path):
    """Test that an empty join key list raises ValidationError."""
    path = write_config(tmp_path, """
reference:
  conversion_list: conv.csv
ingest:
  calibration_join_keys: []
""")

    with pytest.raises(ValidationError):
        load_config(path)


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_output_directories_created(tmp_path):
    """Test that output_dir and plots_dir are created on load."""
    load_config(DEFAULT_CONFIG)

    assert (tmp_path / "output").is_dir()
    assert (tmp_path / "output" / "plots").is_dir()


def test_config_with_overrides():
    """Test dotted overrides of nested fields."""
    config = load_config_with_overrides(DEFAULT_CONFIG, {
        "evaluation.eval_saturation": True,
        "evaluation.incl_plot": False,
        "ingest.skip_failed": True,
        "output_dir": "results",
    })

    assert config.evaluation.eval_saturation is True
    assert config.evaluation.incl_plot is False
    assert config.ingest.skip_failed is True
    assert config.output_dir == Path("results")


def test_invalid_override_rejected():
    with pytest.raises(ValidationError):
        load_config_with_overrides(DEFAULT_CONFIG, {"plotting.dpi": 10})


def test_config_hash_deterministic():
    """Test that the same config gives the same hash and a change alters it."""
    first = load_config(DEFAULT_CONFIG)
    second = load_config(DEFAULT_CONFIG)
    changed = load_config_with_overrides(DEFAULT_CONFIG, {"evaluation.saturation_ratio": 0.8})

    assert first.config_hash() == second.config_hash()
    assert len(first.config_hash()) == 64
    assert first.config_hash() != changed.config_hash()


@pytest.mark.parametrize(
    "key",
    ["plots.width", "output_dir.name", "evaluation.true_blank.label"],
)
def test_override_unknown_section(key):
    """Test that a dotted key through a missing or scalar section raises KeyError."""
    with pytest.raises(KeyError, match="is not a config section"):
        load_config_with_overrides(DEFAULT_CONFIG, {key: 1})
