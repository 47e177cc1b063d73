"""Tests for provenance tracking."""

from pathlib import Path

import pytest

from nucl_calibration import __version__
from nucl_calibration.config.loader import load_config
from nucl_calibration.persistence import ProvenanceTracker


@pytest.fixture
def test_config(tmp_path):
    """Create a minimal test config."""
    config_path = tmp_path / "test_config.yaml"
    config_path.write_text("""
output_dir: {output_dir}
plots_dir: {plots_dir}
reference:
  conversion_list: {conv}
  condition_list: {cond}
""".format(
        output_dir=str(tmp_path / "output"),
        plots_dir=str(tmp_path / "output" / "plots"),
        conv=str(tmp_path / "conv_list.csv"),
        cond=str(tmp_path / "condition_list.csv"),
    ))
    return load_config(config_path)


def test_provenance_metadata_structure(test_config, tmp_path):
    """Test that metadata carries version, config hash and reference tables."""
    tracker = ProvenanceTracker("0.1.0", test_config)

    metadata = tracker.create_metadata()

    assert metadata["pipeline_version"] == "0.1.0"
    assert metadata["config_hash"] == test_config.config_hash()
    assert metadata["reference_tables"] == {
        "conversion_list": str(tmp_path / "conv_list.csv"),
        "condition_list": str(tmp_path / "condition_list.csv"),
    }
    assert "created_at" in metadata
    assert metadata["processing_steps"] == []


def test_provenance_records_steps(test_config):
    """Test that steps are recorded in order with their details."""
    tracker = ProvenanceTracker("0.1.0", test_config)

    tracker.record_step("import_files", {"mode": "cal", "row_count": 12})
    tracker.record_step("evaluate_calibrations")

    steps = tracker.get_steps()
    assert [s["step_name"] for s in steps] == ["import_files", "evaluate_calibrations"]
    assert steps[0]["details"] == {"mode": "cal", "row_count": 12}
    assert "details" not in steps[1]
    assert "timestamp" in steps[0]


def test_provenance_from_config_uses_package_version(test_config):
    tracker = ProvenanceTracker.from_config(test_config)

    assert tracker.pipeline_version == __version__


def test_provenance_without_condition_list(tmp_path):
    """Test that an unset condition list is recorded as None."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        f"output_dir: {tmp_path / 'out'}\n"
        f"plots_dir: {tmp_path / 'out' / 'plots'}\n"
        "reference:\n"
        "  conversion_list: conv.csv\n"
    )
    config = load_config(config_path)

    tracker = ProvenanceTracker.from_config(config, version="9.9.9")

    assert tracker.reference_tables["condition_list"] is None
    assert tracker.reference_tables["conversion_list"] == str(Path("conv.csv"))
