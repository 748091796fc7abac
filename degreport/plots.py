"""Volcano plots for differential expression tables."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.axes import Axes
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.backends.backend_pdf import PdfPages
from matplotlib.figure import Figure

from .base import (
    DEFAULT_FC_CUT,
    DEFAULT_P_CUT,
    GENE_COLUMN,
    ColumnRoles,
    ConfigurationError,
    LabelMode,
    ThresholdDirection,
    check_table,
    parse_choice,
)
from .ranges import get_xy_lims

__all__ = [
    "DEFAULT_COLORS",
    "DEFAULT_PLOTDIMS",
    "PlotSpec",
    "VolcanoPlotResult",
    "compute_threshold",
    "select_label_genes",
    "plot_volcano",
]

logger = logging.getLogger(__name__)

DEFAULT_COLORS: Tuple[str, str] = ("darkcyan", "darkorange")
DEFAULT_PLOTDIMS: Tuple[float, float] = (9.0, 9.0)

AUTO = "auto"
LimitSpec = Union[str, Sequence[float], None]

_X = "_volcano_x"
_Y = "_volcano_y"
_SIG = "_volcano_sig"


@dataclass(frozen=True)
class PlotSpec:
    """
    Rendering parameters for :func:`plot_volcano`.

    Parameters
    ----------
    colors:
        Point colors. Without threshold coloring only the first is used;
        otherwise the first colors genes failing the thresholds and the
        second colors genes passing them.
    file_prefix:
        When given, the plot is written to ``{file_prefix}.pdf``; otherwise it
        is shown in an interactive window.
    plotdims:
        Width and height of the page or window, in inches.
    color_by_threshold:
        Color points by ``|logFC| > fc_cut and adjP < p_cut``. Requires both
        cutoffs. A precomputed boolean ``threshold`` column is used as-is.
    fc_cut, p_cut:
        Fold-change (log2, absolute) and adjusted p-value cutoffs, also drawn
        as dotted reference lines. ``None`` removes the line.
    x_lim, y_lim:
        ``"auto"`` derives limits with :func:`~degreport.ranges.get_xy_lims`,
        ``None`` leaves the axis to matplotlib, or an explicit ``(low, high)``.
    gene_labels:
        ``None``, ``"threshold"`` or ``"ellipse"``.
    x_cut, y_cut:
        Threshold mode: label genes with ``-log10(adjP) > y_cut`` whose logFC
        lies on the ``x_cut_direction`` side of ``x_cut``. Ellipse mode: radii
        of the labeling ellipse; genes outside it are labeled.
    x_cut_direction:
        ``"both"`` (``|logFC| > x_cut``), ``"lower"`` or ``"upper"``.
    repel_labels:
        Spread overlapping labels with adjustText instead of fixed placement.
    label_size:
        Gene label font size in points.
    render_options:
        Extra keyword arguments for the PDF page save.
    """

    colors: Sequence[str] = DEFAULT_COLORS
    file_prefix: Optional[Union[str, Path]] = None
    plotdims: Tuple[float, float] = DEFAULT_PLOTDIMS
    color_by_threshold: bool = True
    fc_cut: Optional[float] = DEFAULT_FC_CUT
    p_cut: Optional[float] = DEFAULT_P_CUT
    x_lim: LimitSpec = AUTO
    y_lim: LimitSpec = AUTO
    gene_labels: Optional[Union[str, LabelMode]] = None
    x_cut: float = 0.0
    y_cut: float = 0.0
    x_cut_direction: Union[str, ThresholdDirection] = ThresholdDirection.BOTH
    repel_labels: bool = True
    label_size: float = 8.0
    point_size: float = 20.0
    point_alpha: float = 0.6
    columns: ColumnRoles = ColumnRoles()
    render_options: Mapping[str, Any] = field(default_factory=dict)

    @property
    def output_path(self) -> Optional[Path]:
        if self.file_prefix is None:
            return None
        return Path(f"{self.file_prefix}.pdf")

    def validate(self) -> Tuple[Optional[LabelMode], ThresholdDirection]:
        """Check parameter combinations; return the parsed label mode and direction."""
        if self.color_by_threshold and (self.fc_cut is None or self.p_cut is None):
            raise ConfigurationError(
                "Cannot color points by threshold with null values of fc_cut or p_cut."
            )
        n_colors_needed = 2 if self.color_by_threshold else 1
        if isinstance(self.colors, str) or len(self.colors) < n_colors_needed:
            raise ConfigurationError(
                f"colors must be a sequence of at least {n_colors_needed} color(s), got {self.colors!r}."
            )
        if len(self.plotdims) != 2 or min(self.plotdims) <= 0:
            raise ConfigurationError(f"plotdims must be two positive sizes, got {self.plotdims!r}.")
        _check_limit(self.x_lim, "x_lim")
        _check_limit(self.y_lim, "y_lim")

        label_mode = None
        if self.gene_labels is not None:
            label_mode = parse_choice(self.gene_labels, LabelMode, "gene label mode")
        direction = parse_choice(self.x_cut_direction, ThresholdDirection, "x_cut_direction")
        if label_mode is LabelMode.ELLIPSE and (self.x_cut == 0 or self.y_cut == 0):
            raise ConfigurationError(
                f"Ellipse labeling needs non-zero radii, got x_cut={self.x_cut}, y_cut={self.y_cut}."
            )
        return label_mode, direction


@dataclass
class VolcanoPlotResult:
    """Rendered volcano plot and the genes that were labeled on it."""

    figure: Figure
    axes: Axes
    labeled_genes: List[str] = field(default_factory=list)
    path: Optional[Path] = None


def _check_limit(limit: LimitSpec, name: str) -> None:
    if limit is None or (isinstance(limit, str) and limit == AUTO):
        return
    if isinstance(limit, str):
        raise ConfigurationError(f"{name} must be 'auto', None, or (low, high); got {limit!r}.")
    try:
        values = [float(v) for v in limit]
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be numeric (low, high), got {limit!r}.") from exc
    if len(values) != 2:
        raise ConfigurationError(f"{name} must have exactly two values, got {limit!r}.")


def _build_spec(spec: Optional[PlotSpec], overrides: Dict[str, Any]) -> PlotSpec:
    base = spec if spec is not None else PlotSpec()
    if not overrides:
        return base
    try:
        return dataclasses.replace(base, **overrides)
    except TypeError as exc:
        raise ConfigurationError(f"Unknown plot option(s): {sorted(overrides)}") from exc


def compute_threshold(
    table: pd.DataFrame,
    fc_cut: float,
    p_cut: float,
    *,
    columns: ColumnRoles = ColumnRoles(),
) -> pd.Series:
    """Boolean flag per gene: ``|logFC| > fc_cut`` and ``adjP < p_cut``."""
    cols = columns.resolve(check_table(table), ["log_fc", "adj_p_value"])
    return (table[cols["log_fc"]].abs() > fc_cut) & (table[cols["adj_p_value"]] < p_cut)


def select_label_genes(
    table: pd.DataFrame,
    mode: Union[str, LabelMode],
    x_cut: float = 0.0,
    y_cut: float = 0.0,
    direction: Union[str, ThresholdDirection] = ThresholdDirection.BOTH,
    *,
    columns: ColumnRoles = ColumnRoles(),
) -> pd.DataFrame:
    """
    Rows of ``table`` that should receive a gene label.

    Threshold mode compares logFC against ``x_cut`` on the requested side and
    ``-log10(adjP)`` against ``y_cut``. Ellipse mode keeps rows with
    ``logFC**2 / x_cut**2 + log10(adjP)**2 / y_cut**2 > 1``.
    """
    mode = parse_choice(mode, LabelMode, "gene label mode")
    direction = parse_choice(direction, ThresholdDirection, "x_cut_direction")
    cols = columns.resolve(check_table(table), ["log_fc", "adj_p_value"])
    log_fc = table[cols["log_fc"]].astype(float)
    with np.errstate(divide="ignore", invalid="ignore"):
        log_p = np.log10(table[cols["adj_p_value"]].astype(float))

    if mode is LabelMode.ELLIPSE:
        if x_cut == 0 or y_cut == 0:
            raise ConfigurationError(
                f"Ellipse labeling needs non-zero radii, got x_cut={x_cut}, y_cut={y_cut}."
            )
        keep = (log_fc ** 2) / (x_cut ** 2) + (log_p ** 2) / (y_cut ** 2) > 1
    else:
        above = -log_p > y_cut
        if direction is ThresholdDirection.LOWER:
            keep = (log_fc < x_cut) & above
        elif direction is ThresholdDirection.UPPER:
            keep = (log_fc > x_cut) & above
        else:
            keep = (log_fc.abs() > x_cut) & above
    return table.loc[keep.to_numpy()]


def _resolve_limits(table: pd.DataFrame, spec: PlotSpec) -> Tuple[Optional[Tuple[float, float]], Optional[Tuple[float, float]]]:
    x_lim, y_lim = spec.x_lim, spec.y_lim
    x_auto = isinstance(x_lim, str) and x_lim == AUTO
    y_auto = isinstance(y_lim, str) and y_lim == AUTO
    if x_auto or y_auto:
        min_y = float(-np.log10(spec.p_cut)) if spec.p_cut is not None else None
        auto = get_xy_lims(table, min_x_abs=spec.fc_cut, min_y=min_y, columns=spec.columns)
        if x_auto:
            x_lim = auto.x
        if y_auto:
            y_lim = auto.y
    x_lim = tuple(float(v) for v in x_lim) if x_lim is not None else None
    y_lim = tuple(float(v) for v in y_lim) if y_lim is not None else None
    return x_lim, y_lim


def _new_figure(plotdims: Tuple[float, float], interactive: bool) -> Figure:
    if interactive:
        return plt.figure(figsize=plotdims)
    fig = Figure(figsize=plotdims)
    FigureCanvasAgg(fig)
    return fig


def _draw_points(ax: Axes, plot_df: pd.DataFrame, spec: PlotSpec) -> None:
    style = dict(s=spec.point_size, alpha=spec.point_alpha, marker="o", linewidths=0)
    if spec.color_by_threshold:
        sig = plot_df[_SIG]
        ax.scatter(plot_df.loc[~sig, _X], plot_df.loc[~sig, _Y], color=spec.colors[0], **style)
        ax.scatter(plot_df.loc[sig, _X], plot_df.loc[sig, _Y], color=spec.colors[1], **style)
    else:
        ax.scatter(plot_df[_X], plot_df[_Y], color=spec.colors[0], **style)
    ax.set_xlabel("log2 fold change")
    ax.set_ylabel("-log10 Adj P")


def _draw_cutoffs(ax: Axes, spec: PlotSpec) -> None:
    line = dict(color="black", linestyle="dotted", linewidth=1.0)
    if spec.fc_cut is not None:
        ax.axvline(spec.fc_cut, **line)
        ax.axvline(-spec.fc_cut, **line)
    if spec.p_cut is not None:
        ax.axhline(-np.log10(spec.p_cut), **line)


def _draw_labels(ax: Axes, label_df: pd.DataFrame, spec: PlotSpec) -> List[str]:
    finite = np.isfinite(label_df[_X]) & np.isfinite(label_df[_Y])
    label_df = label_df.loc[finite]
    texts = []
    for gene, x_val, y_val in zip(label_df[GENE_COLUMN], label_df[_X], label_df[_Y]):
        if spec.repel_labels:
            texts.append(ax.text(x_val, y_val, gene, color="black", fontsize=spec.label_size))
        else:
            texts.append(
                ax.text(
                    x_val,
                    y_val,
                    gene,
                    color="black",
                    fontsize=spec.label_size,
                    ha="center",
                    va="top",
                )
            )
    if spec.repel_labels and texts:
        from adjustText import adjust_text

        adjust_text(texts, ax=ax)
    return label_df[GENE_COLUMN].tolist()


def plot_volcano(
    table: pd.DataFrame,
    spec: Optional[PlotSpec] = None,
    **overrides: Any,
) -> VolcanoPlotResult:
    """
    Draw a volcano plot of log2 fold change against -log10 adjusted p-value.

    Parameters
    ----------
    table:
        Differential expression table, e.g. limma ``topTable`` output, with
        gene identifiers as the row index.
    spec:
        Rendering parameters; defaults to ``PlotSpec()``.
    **overrides:
        PlotSpec fields to replace on ``spec``.

    Returns
    -------
    VolcanoPlotResult
        The figure, its axes, the labeled genes and the written PDF path
        (``None`` when shown interactively).
    """
    table = check_table(table)
    spec = _build_spec(spec, overrides)
    label_mode, direction = spec.validate()
    cols = spec.columns.resolve(table, ["log_fc", "adj_p_value"])
    x_lim, y_lim = _resolve_limits(table, spec)
    logger.debug("Volcano limits x=%s y=%s", x_lim, y_lim)

    plot_df = spec.columns.working_copy(table)
    plot_df[_X] = plot_df[cols["log_fc"]].astype(float)
    with np.errstate(divide="ignore"):
        plot_df[_Y] = -np.log10(plot_df[cols["adj_p_value"]].astype(float))
    if spec.color_by_threshold:
        flag_col = spec.columns.optional(table, "threshold")
        if flag_col is None:
            plot_df[_SIG] = compute_threshold(table, spec.fc_cut, spec.p_cut, columns=spec.columns).to_numpy()
        else:
            plot_df[_SIG] = plot_df[flag_col].astype(bool)

    path = spec.output_path
    fig = _new_figure(spec.plotdims, interactive=path is None)
    ax = fig.add_subplot(1, 1, 1)
    _draw_points(ax, plot_df, spec)
    _draw_cutoffs(ax, spec)
    if x_lim is not None:
        ax.set_xlim(x_lim)
    if y_lim is not None:
        ax.set_ylim(y_lim)

    labeled: List[str] = []
    if label_mode is not None:
        selected = select_label_genes(
            plot_df,
            label_mode,
            spec.x_cut,
            spec.y_cut,
            direction,
            columns=dataclasses.replace(spec.columns, log_fc=cols["log_fc"], adj_p_value=cols["adj_p_value"]),
        )
        labeled = _draw_labels(ax, selected, spec)
        logger.debug("Labeled %d of %d genes (%s)", len(labeled), len(plot_df), label_mode.value)
    fig.tight_layout()

    if path is not None:
        with PdfPages(path) as pdf:
            pdf.savefig(fig, **dict(spec.render_options))
        logger.info("Saved volcano plot to %s", path)
    else:
        plt.show()
    return VolcanoPlotResult(figure=fig, axes=ax, labeled_genes=labeled, path=path)
