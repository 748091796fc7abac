"""Default axis ranges for volcano plots."""

from __future__ import annotations

import logging
from typing import NamedTuple, Optional, Tuple

import numpy as np
import pandas as pd

from .base import ColumnRoles, check_table

__all__ = ["AxisLimits", "get_xy_lims"]

logger = logging.getLogger(__name__)

Range = Tuple[float, float]


class AxisLimits(NamedTuple):
    x: Optional[Range]
    y: Optional[Range]


def _finite_max(values: np.ndarray) -> Optional[float]:
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        return None
    return float(finite.max())


def _extent(floor: Optional[float], observed: Optional[float]) -> Optional[float]:
    candidates = [v for v in (floor, observed) if v is not None]
    if not candidates:
        return None
    return max(candidates)


def get_xy_lims(
    table: pd.DataFrame,
    min_x_abs: Optional[float] = None,
    min_y: Optional[float] = None,
    *,
    columns: ColumnRoles = ColumnRoles(),
) -> AxisLimits:
    """
    Compute volcano plot limits covering both the data and the given floors.

    The x range is symmetric about zero and spans
    ``max(|min_x_abs|, max |logFC|)``; the y range starts at zero and spans
    ``max(min_y, max -log10(adjP))``. Non-finite values are ignored. An axis
    with neither a floor nor any finite data is returned as ``None``.
    """
    table = check_table(table)
    cols = columns.resolve(table, ["log_fc", "adj_p_value"])

    log_fc = table[cols["log_fc"]].to_numpy(dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        neg_log_p = -np.log10(table[cols["adj_p_value"]].to_numpy(dtype=float))

    x_floor = abs(min_x_abs) if min_x_abs is not None else None
    x_extent = _extent(x_floor, _finite_max(np.abs(log_fc)))
    y_extent = _extent(min_y, _finite_max(neg_log_p))

    limits = AxisLimits(
        x=(-x_extent, x_extent) if x_extent is not None else None,
        y=(0.0, y_extent) if y_extent is not None else None,
    )
    logger.debug("Estimated volcano limits x=%s y=%s from %d genes", limits.x, limits.y, len(table))
    return limits
