import numpy as np
import pandas as pd
import pytest

from degreport.base import ColumnRoles, DataError
from degreport.ranges import AxisLimits, get_xy_lims


def _make_table(log_fc, adj_p) -> pd.DataFrame:
    genes = [f"GENE{i}" for i in range(1, len(log_fc) + 1)]
    return pd.DataFrame(
        {"logFC": np.asarray(log_fc, dtype=float), "adj.P.Val": np.asarray(adj_p, dtype=float)},
        index=genes,
    )


def test_data_extent_wins_over_smaller_floors():
    df = _make_table([-3.0, 1.0, 2.0], [1e-4, 0.5, 0.01])
    lims = get_xy_lims(df, min_x_abs=np.log2(1.5), min_y=2.0)
    assert lims.x == pytest.approx((-3.0, 3.0))
    assert lims.y == pytest.approx((0.0, 4.0))


def test_floors_win_over_small_data():
    df = _make_table([0.2, -0.1], [0.5, 0.9])
    lims = get_xy_lims(df, min_x_abs=-1.5, min_y=2.0)
    assert lims == AxisLimits(x=(-1.5, 1.5), y=(0.0, 2.0))


def test_x_range_is_symmetric_about_zero():
    rng = np.random.default_rng(0)
    df = _make_table(rng.normal(0.5, 2.0, size=50), rng.uniform(1e-6, 1.0, size=50))
    lims = get_xy_lims(df, min_x_abs=0.5)
    assert lims.x[0] == -lims.x[1]
    assert lims.x[1] == pytest.approx(max(0.5, np.abs(df["logFC"]).max()))


def test_empty_table_falls_back_to_floors():
    df = _make_table([], [])
    assert get_xy_lims(df, min_x_abs=1.0, min_y=2.0) == AxisLimits(x=(-1.0, 1.0), y=(0.0, 2.0))
    assert get_xy_lims(df) == AxisLimits(x=None, y=None)


def test_without_floors_spans_observed_data_only():
    df = _make_table([0.5, -0.25], [0.1, 0.01])
    lims = get_xy_lims(df)
    assert lims.x == pytest.approx((-0.5, 0.5))
    assert lims.y == pytest.approx((0.0, 2.0))


def test_non_finite_values_are_ignored():
    df = _make_table([1.0, np.nan], [0.0, 0.001])
    lims = get_xy_lims(df)
    assert lims.x == pytest.approx((-1.0, 1.0))
    assert lims.y == pytest.approx((0.0, 3.0))


def test_custom_columns_and_missing_columns():
    df = pd.DataFrame({"log2FoldChange": [2.0], "padj": [0.1]}, index=["GENE1"])
    lims = get_xy_lims(df, columns=ColumnRoles(log_fc="log2FoldChange", adj_p_value="padj"))
    assert lims.x == pytest.approx((-2.0, 2.0))
    with pytest.raises(DataError):
        get_xy_lims(df)
