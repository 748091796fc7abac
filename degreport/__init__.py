"""Volcano plots and significant gene lists from differential expression tables."""

from ._version import __version__
from .base import (
    DEFAULT_FC_CUT,
    DEFAULT_P_CUT,
    ColumnRoles,
    ConfigurationError,
    DataError,
    DegReportError,
    ExportMethod,
    LabelMode,
    ThresholdDirection,
)
from .ranges import AxisLimits, get_xy_lims
from .plots import (
    PlotSpec,
    VolcanoPlotResult,
    compute_threshold,
    plot_volcano,
    select_label_genes,
)
from .export import ExportSpec, threshold_token, write_sig_genes

__all__ = [
    "__version__",
    "DEFAULT_FC_CUT",
    "DEFAULT_P_CUT",
    "ColumnRoles",
    "ConfigurationError",
    "DataError",
    "DegReportError",
    "ExportMethod",
    "LabelMode",
    "ThresholdDirection",
    "AxisLimits",
    "get_xy_lims",
    "PlotSpec",
    "VolcanoPlotResult",
    "compute_threshold",
    "plot_volcano",
    "select_label_genes",
    "ExportSpec",
    "threshold_token",
    "write_sig_genes",
]
