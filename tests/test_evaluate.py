"""Unit tests for true-blank noise and saturation evaluation."""

from unittest.mock import Mock

import polars as pl
import pytest
from structlog.testing import capture_logs

from nucl_calibration.calibration.evaluate import (
    build_evaluation_plot_specs,
    compute_blank_statistics,
    compute_saturation,
    evaluate_calibrations,
    filter_for_plot,
    tag_noise,
    tag_saturation,
)
from nucl_calibration.config.schema import EvaluationOptions
from nucl_calibration.ingest.models import CALIBRATION_SCHEMA


def make_cal(rows: list[dict]) -> pl.DataFrame:
    """Build a calibration table, filling unspecified columns."""
    defaults = {
        "nuc_id": "N01",
        "nuc": "ATP",
        "nuc_group": "purine",
        "transition_id": "t1",
        "calcurve": "Mix1",
        "level": 5,
        "repl_calcurve": 1,
        "date": "20210301",
        "median_intensity": 0.0,
        "cv": 0.1,
    }
    return pl.DataFrame([{**defaults, **row} for row in rows], schema=CALIBRATION_SCHEMA)


@pytest.fixture
def blank_df() -> pl.DataFrame:
    """Three true blanks (mean 20) and three curve rows for N01/t1."""
    return make_cal([
        {"calcurve": "TrueBlank", "level": 0, "median_intensity": 10.0},
        {"calcurve": "TrueBlank", "level": 0, "median_intensity": 20.0, "repl_calcurve": 2},
        {"calcurve": "TrueBlank", "level": 0, "median_intensity": 30.0, "repl_calcurve": 3},
        {"calcurve": "Mix1", "level": 1, "median_intensity": 15.0},
        {"calcurve": "Mix2", "level": 2, "median_intensity": 25.0},
        {"calcurve": "Mix3", "level": 3, "median_intensity": 20.0},
    ])


def test_compute_blank_statistics(blank_df):
    stats = compute_blank_statistics(blank_df)

    assert stats.height == 1
    row = stats.row(0, named=True)
    assert row["n_tb_val"] == 3
    assert row["mean_tb_val"] == pytest.approx(20.0)
    assert row["sd_tb_val"] == pytest.approx(10.0)


def test_tag_noise_classifies_against_blank_mean(blank_df):
    """Boundary is inclusive: equal to the mean is below_tb."""
    df = tag_noise(blank_df)

    assert df["calcurve"].to_list() == ["Mix1", "Mix2", "Mix3"]
    assert df["tag_noise"].to_list() == ["below_tb", "above_tb", "below_tb"]
    assert df["mean_tb_val"].to_list() == pytest.approx([20.0, 20.0, 20.0])


def test_tag_noise_drops_true_blank_rows(blank_df):
    df = tag_noise(blank_df)

    assert "TrueBlank" not in df["calcurve"].to_list()


def test_tag_noise_drops_groups_without_blanks(blank_df):
    """Rows of a group without true blanks are removed and logged."""
    extra = make_cal([
        {"nuc_id": "N02", "nuc": "GTP", "calcurve": "Mix1", "median_intensity": 500.0},
    ])
    data = pl.concat([blank_df, extra])

    with capture_logs() as logs:
        df = tag_noise(data)

    assert "N02" not in df["nuc_id"].to_list()
    assert df.height == 3
    dropped = [log for log in logs if log["event"] == "blank_groups_unmatched"]
    assert dropped[0]["dropped_rows"] == 1


def test_tag_noise_groups_by_transition(blank_df):
    """Blank means are not shared across transitions."""
    other = make_cal([
        {"transition_id": "t2", "calcurve": "TrueBlank", "level": 0, "median_intensity": 1000.0},
        {"transition_id": "t2", "calcurve": "Mix1", "median_intensity": 500.0},
    ])

    df = tag_noise(pl.concat([blank_df, other]))

    t2 = df.filter(pl.col("transition_id") == "t2")
    assert t2["tag_noise"].to_list() == ["below_tb"]
    assert t2["mean_tb_val"].to_list() == [1000.0]


def test_tag_noise_null_group_key():
    """Rows with a null nuc_group are compared with blanks of the same null group."""
    data = make_cal([
        {"nuc_group": None, "calcurve": "TrueBlank", "level": 0, "median_intensity": 20.0},
        {"nuc_group": None, "calcurve": "Mix1", "median_intensity": 25.0},
    ])

    with capture_logs() as logs:
        df = tag_noise(data)

    assert df.height == 1
    assert df["tag_noise"].to_list() == ["above_tb"]
    assert df["mean_tb_val"].to_list() == [20.0]
    assert not any(log["event"] == "blank_groups_unmatched" for log in logs)


def test_tag_noise_null_intensity(blank_df):
    """A missing intensity yields a null tag."""
    data = pl.concat([blank_df, make_cal([{"calcurve": "Mix4", "median_intensity": None}])])

    df = tag_noise(data)

    assert df["tag_noise"].to_list()[-1] is None


def test_tag_noise_custom_blank_label():
    data = make_cal([
        {"calcurve": "Blank", "level": 0, "median_intensity": 50.0},
        {"calcurve": "Mix1", "median_intensity": 80.0},
    ])

    df = tag_noise(data, true_blank="Blank")

    assert df["tag_noise"].to_list() == ["above_tb"]


def test_tag_noise_does_not_modify_input(blank_df):
    before = blank_df.clone()

    tag_noise(blank_df)

    assert blank_df.equals(before)


@pytest.fixture
def saturation_df() -> pl.DataFrame:
    """Curve N01: level 5 mean 80, level 10 mean 100. Curve N02 lacks level 10."""
    return make_cal([
        {"level": 1, "median_intensity": 10.0},
        {"level": 5, "median_intensity": 70.0},
        {"level": 5, "median_intensity": 90.0, "repl_calcurve": 2},
        {"level": 7, "median_intensity": 95.0},
        {"level": 10, "median_intensity": 100.0},
        {"nuc_id": "N02", "nuc": "GTP", "level": 5, "median_intensity": 40.0},
    ])


def test_compute_saturation(saturation_df):
    summary = compute_saturation(saturation_df)

    n01 = summary.filter(pl.col("nuc_id") == "N01")
    assert n01["level"].to_list() == [5, 7, 10]
    level5 = n01.row(0, named=True)
    assert level5["n_int"] == 2
    assert level5["mean_int"] == pytest.approx(80.0)
    assert level5["ref_l10_int"] == pytest.approx(100.0)
    assert level5["ratio_5"] == pytest.approx(0.8)


def test_compute_saturation_without_reference_level(saturation_df):
    summary = compute_saturation(saturation_df)

    n02 = summary.filter(pl.col("nuc_id") == "N02").row(0, named=True)
    assert n02["ref_l10_int"] is None
    assert n02["ratio_5"] is None


def test_tag_saturation_below_threshold(saturation_df):
    """ratio_5 0.8 does not reach 0.9."""
    df = tag_saturation(saturation_df, saturation_ratio=0.9)

    assert df.height == saturation_df.height
    assert set(df["tag_saturation"].to_list()) == {"not_saturated"}


def test_tag_saturation_above_threshold(saturation_df):
    """Rows above the floor level of a flagged curve are saturated."""
    df = tag_saturation(saturation_df, saturation_ratio=0.75)

    n01 = df.filter(pl.col("nuc_id") == "N01")
    assert n01["level"].to_list() == [1, 5, 5, 7, 10]
    assert n01["tag_saturation"].to_list() == [
        "not_saturated", "not_saturated", "not_saturated", "saturated", "saturated",
    ]
    assert df.filter(pl.col("nuc_id") == "N02")["tag_saturation"].to_list() == ["not_saturated"]
    assert n01["ratio_5"][0] is None


def test_tag_saturation_null_group_key(saturation_df):
    """A curve whose nuc_group is null still gets its summary and tag."""
    data = saturation_df.with_columns(pl.lit(None, dtype=pl.String).alias("nuc_group"))

    df = tag_saturation(data, saturation_ratio=0.75)

    n01 = df.filter(pl.col("nuc_id") == "N01")
    assert n01["mean_int"].to_list()[1:] == pytest.approx([80.0, 80.0, 95.0, 100.0])
    assert n01["ratio_5"][1] == pytest.approx(0.8)
    assert n01["tag_saturation"].to_list() == [
        "not_saturated", "not_saturated", "not_saturated", "saturated", "saturated",
    ]


def test_evaluate_defaults_tag_noise_only(blank_df):
    with capture_logs() as logs:
        df = evaluate_calibrations(blank_df)

    assert "tag_noise" in df.columns
    assert "tag_saturation" not in df.columns
    assert any(log["event"] == "evaluation_plot_skipped" for log in logs)


def test_evaluate_disabled_returns_input(blank_df):
    options = EvaluationOptions(eval_trueblank=False, incl_plot=False)

    df = evaluate_calibrations(blank_df, options)

    assert df.equals(blank_df)


def test_evaluate_plots_exclude_below_tb(blank_df):
    """The renderer only sees rows kept by the exclusion switches."""
    renderer = Mock()

    df = evaluate_calibrations(blank_df, EvaluationOptions(), renderer=renderer)

    assert renderer.call_count == 1
    spec = renderer.call_args.args[0]
    assert spec.name == "evaluation_purine"
    assert spec.reference_field == "mean_tb_val"
    assert spec.data["tag_noise"].to_list() == ["above_tb"]
    assert df.height == 3


def test_evaluate_plots_keep_below_tb(blank_df):
    renderer = Mock()

    evaluate_calibrations(blank_df, EvaluationOptions(excl_below_tb=False), renderer=renderer)

    spec = renderer.call_args.args[0]
    assert spec.data.height == 3


def test_filter_for_plot_missing_tag_column(saturation_df):
    """Excluding an unevaluated tag logs a warning and keeps every row."""
    options = EvaluationOptions(excl_saturated=True)

    with capture_logs() as logs:
        data = filter_for_plot(saturation_df, options)

    assert data.height == saturation_df.height
    skipped = [log["tag"] for log in logs if log["event"] == "plot_exclusion_skipped"]
    assert skipped == ["tag_noise", "tag_saturation"]


def test_filter_for_plot_excludes_saturated(saturation_df):
    tagged = tag_saturation(saturation_df, saturation_ratio=0.75)
    options = EvaluationOptions(excl_below_tb=False, excl_saturated=True)

    data = filter_for_plot(tagged, options)

    assert "saturated" not in data["tag_saturation"].to_list()
    assert data.height == tagged.height - 2


def test_build_evaluation_plot_specs_per_group():
    df = make_cal([
        {"nuc_group": "purine", "median_intensity": 1.0},
        {"nuc_group": "pyrimidine", "nuc_id": "N03", "nuc": "CTP", "median_intensity": 2.0},
    ])

    specs = build_evaluation_plot_specs(df)

    assert [s.name for s in specs] == ["evaluation_purine", "evaluation_pyrimidine"]
    assert all(s.reference_field is None for s in specs)
