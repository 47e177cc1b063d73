"""Evaluate calibration curves: true-blank noise and saturation tags.

Tags added to the calibration table:

- tag_noise: "below_tb" when a row's median_intensity does not exceed the
  mean true-blank intensity of its (nuc_id, nuc_group, transition_id) group,
  "above_tb" otherwise.
- tag_saturation: "saturated" for levels above the saturation floor of a
  curve whose floor-level ratio_5 reaches the configured threshold,
  "not_saturated" otherwise. Only present when saturation is evaluated.
"""

import polars as pl
import structlog

from nucl_calibration.config.schema import EvaluationOptions
from nucl_calibration.output.visualizations import (
    FacetPlotSpec,
    Renderer,
    plot_name,
    render_all,
)

logger = structlog.get_logger()

BLANK_KEYS = ["nuc_id", "nuc_group", "transition_id"]
LEVEL_KEYS = ["nuc_id", "nuc", "nuc_group", "transition_id", "date", "level"]
CURVE_KEYS = ["nuc_id", "nuc", "date", "transition_id"]

BELOW_TB = "below_tb"
ABOVE_TB = "above_tb"
SATURATED = "saturated"
NOT_SATURATED = "not_saturated"


def compute_blank_statistics(df: pl.DataFrame, true_blank: str = "TrueBlank") -> pl.DataFrame:
    """Per-group count, mean and sd of true-blank intensities.

    Args:
        df: Calibration table
        true_blank: calcurve value marking true-blank injections

    Returns:
        One row per (nuc_id, nuc_group, transition_id) with n_tb_val,
        mean_tb_val and sd_tb_val
    """
    return (
        df.filter(pl.col("calcurve") == true_blank)
        .group_by(BLANK_KEYS)
        .agg(
            pl.col("median_intensity").count().alias("n_tb_val"),
            pl.col("median_intensity").mean().alias("mean_tb_val"),
            pl.col("median_intensity").std().alias("sd_tb_val"),
        )
        .sort(BLANK_KEYS)
    )


def tag_noise(df: pl.DataFrame, true_blank: str = "TrueBlank") -> pl.DataFrame:
    """Join mean_tb_val onto non-blank rows and classify them.

    Groups without true-blank rows have no mean to compare against and are
    dropped by the inner join. A null key (e.g. a blank nuc_group in the
    conversion list) matches the blank group with the same null key. The
    boundary is inclusive: an intensity
    equal to mean_tb_val is "below_tb".

    Returns:
        Non-blank rows with mean_tb_val and tag_noise, in input order
    """
    blank_stats = compute_blank_statistics(df, true_blank)
    logger.debug(
        "blank_statistics",
        groups=blank_stats.height,
        blank_rows=int(blank_stats["n_tb_val"].sum()) if blank_stats.height else 0,
    )

    working = df.with_row_index("_row_nr").filter(pl.col("calcurve") != true_blank)
    joined = working.join(
        blank_stats.select(BLANK_KEYS + ["mean_tb_val"]),
        on=BLANK_KEYS,
        how="inner",
        nulls_equal=True,
    ).sort("_row_nr")

    dropped = working.height - joined.height
    if dropped:
        logger.warning(
            "blank_groups_unmatched",
            dropped_rows=dropped,
            msg="Rows without a true-blank group were removed",
        )

    return joined.drop("_row_nr").with_columns(
        pl.when(pl.col("median_intensity").is_null())
        .then(pl.lit(None, dtype=pl.String))
        .when(pl.col("median_intensity") <= pl.col("mean_tb_val"))
        .then(pl.lit(BELOW_TB))
        .otherwise(pl.lit(ABOVE_TB))
        .alias("tag_noise")
    )


def compute_saturation(
    df: pl.DataFrame,
    min_level: int = 5,
    ref_level: int = 10,
) -> pl.DataFrame:
    """Mean intensity per level relative to the reference level.

    Args:
        df: Calibration table
        min_level: Lowest level included in the summary
        ref_level: Level providing ref_l10_int

    Returns:
        One row per (nuc_id, nuc, nuc_group, transition_id, date, level) with
        n_int, mean_int, sd_int, ref_l10_int and ratio_5 = mean_int / ref_l10_int.
        ref_l10_int and ratio_5 are null for curves without the reference level.
    """
    summary = (
        df.filter(pl.col("level") >= min_level)
        .group_by(LEVEL_KEYS)
        .agg(
            pl.col("median_intensity").count().alias("n_int"),
            pl.col("median_intensity").mean().alias("mean_int"),
            pl.col("median_intensity").std().alias("sd_int"),
        )
    )

    reference = (
        summary.filter(pl.col("level") == ref_level)
        .select(CURVE_KEYS + [pl.col("mean_int").alias("ref_l10_int")])
        .unique(subset=CURVE_KEYS, keep="first")
    )

    return (
        summary.join(reference, on=CURVE_KEYS, how="left", nulls_equal=True)
        .with_columns((pl.col("mean_int") / pl.col("ref_l10_int")).alias("ratio_5"))
        .sort(LEVEL_KEYS)
    )


def tag_saturation(
    df: pl.DataFrame,
    min_level: int = 5,
    ref_level: int = 10,
    saturation_ratio: float = 0.9,
) -> pl.DataFrame:
    """Attach saturation fields and tag_saturation to every row.

    A curve (nuc_id, nuc, date, transition_id) is saturated when its
    min_level mean reaches `saturation_ratio` of the ref_level mean; its
    rows above min_level are then tagged "saturated". Rows below min_level
    carry null saturation fields and "not_saturated".
    """
    saturation = compute_saturation(df, min_level=min_level, ref_level=ref_level)

    curve_flags = (
        saturation.filter(pl.col("level") == min_level)
        .select(CURVE_KEYS + [(pl.col("ratio_5") >= saturation_ratio).alias("_curve_saturated")])
        .unique(subset=CURVE_KEYS, keep="first")
    )

    result = (
        df.with_row_index("_row_nr")
        .join(
            saturation.select(LEVEL_KEYS + ["mean_int", "ref_l10_int", "ratio_5"]),
            on=LEVEL_KEYS,
            how="left",
            nulls_equal=True,
        )
        .join(curve_flags, on=CURVE_KEYS, how="left", nulls_equal=True)
        .sort("_row_nr")
        .with_columns(
            pl.when(
                pl.col("_curve_saturated").fill_null(False)
                & (pl.col("level") > min_level)
            )
            .then(pl.lit(SATURATED))
            .otherwise(pl.lit(NOT_SATURATED))
            .alias("tag_saturation")
        )
        .drop("_row_nr", "_curve_saturated")
    )

    logger.info(
        "saturation_tagged",
        curves=curve_flags.height,
        saturated_curves=int(curve_flags["_curve_saturated"].fill_null(False).sum()),
        saturated_rows=result.filter(pl.col("tag_saturation") == SATURATED).height,
    )
    return result


def filter_for_plot(df: pl.DataFrame, options: EvaluationOptions) -> pl.DataFrame:
    """Drop tagged rows before plotting, per the exclusion switches."""
    data_plot = df

    if options.excl_below_tb:
        if "tag_noise" in data_plot.columns:
            before = data_plot.height
            data_plot = data_plot.filter(
                (pl.col("tag_noise") != BELOW_TB) | pl.col("tag_noise").is_null()
            )
            logger.info("plot_excluded_below_tb", excluded=before - data_plot.height)
        else:
            logger.warning("plot_exclusion_skipped", tag="tag_noise", msg="Column not evaluated")

    if options.excl_saturated:
        if "tag_saturation" in data_plot.columns:
            before = data_plot.height
            data_plot = data_plot.filter(pl.col("tag_saturation") != SATURATED)
            logger.info("plot_excluded_saturated", excluded=before - data_plot.height)
        else:
            logger.warning("plot_exclusion_skipped", tag="tag_saturation", msg="Column not evaluated")

    return data_plot


def build_evaluation_plot_specs(df: pl.DataFrame) -> list[FacetPlotSpec]:
    """One grid per nuc_group with the true-blank mean as reference line."""
    reference_field = "mean_tb_val" if "mean_tb_val" in df.columns else None
    specs = []
    for group in df["nuc_group"].drop_nulls().unique().sort().to_list():
        specs.append(FacetPlotSpec(
            name=plot_name("evaluation", group),
            data=df.filter(pl.col("nuc_group") == group),
            x="level",
            y="median_intensity",
            hue="date",
            row="nuc",
            col="transition_id",
            title=f"Nucleotide (Calibration): {group}",
            reference_field=reference_field,
        ))
    return specs


def evaluate_calibrations(
    cal_df: pl.DataFrame,
    options: EvaluationOptions | None = None,
    renderer: Renderer | None = None,
) -> pl.DataFrame:
    """Tag a calibration table and optionally plot it.

    Args:
        cal_df: Output of import_files in cal mode; never modified
        options: Evaluation switches (defaults: EvaluationOptions())
        renderer: Plot sink used when options.incl_plot is set; plotting is
            skipped with a warning when None

    Returns:
        Evaluated row-level table
    """
    options = options or EvaluationOptions()
    data_export = cal_df

    logger.info(
        "evaluation_start",
        rows=cal_df.height,
        eval_trueblank=options.eval_trueblank,
        eval_saturation=options.eval_saturation,
        eval_level=options.eval_level,
    )

    if options.eval_trueblank:
        data_export = tag_noise(data_export, true_blank=options.true_blank)

    if options.eval_saturation:
        data_export = tag_saturation(
            data_export,
            min_level=options.saturation_min_level,
            ref_level=options.saturation_ref_level,
            saturation_ratio=options.saturation_ratio,
        )

    if options.incl_plot:
        if renderer is None:
            logger.warning("evaluation_plot_skipped", msg="No renderer supplied")
        else:
            data_plot = filter_for_plot(data_export, options)
            render_all(build_evaluation_plot_specs(data_plot), renderer)

    logger.info("evaluation_complete", rows=data_export.height)
    return data_export
