"""Export ranked and significant gene lists to plain text files."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .base import (
    DEFAULT_FC_CUT,
    DEFAULT_P_CUT,
    GENE_COLUMN,
    ColumnRoles,
    ConfigurationError,
    ExportMethod,
    check_table,
    parse_choices,
)

__all__ = [
    "ALL_METHODS",
    "ExportSpec",
    "threshold_token",
    "write_sig_genes",
]

logger = logging.getLogger(__name__)

ALL_METHODS = (ExportMethod.RANKED_LIST, ExportMethod.COMBINED, ExportMethod.DIRECTIONAL)


@dataclass(frozen=True)
class ExportSpec:
    """
    Thresholds and column roles for :func:`write_sig_genes`.

    Parameters
    ----------
    adj_p_cut:
        Genes need an adjusted p-value strictly below this. Values above 1
        disable the cutoff in output names.
    fc_cut:
        Genes need ``|log2 FC|`` strictly above this. 0 keeps every non-zero
        fold change.
    fc_adj_factor:
        Scale applied to ``fc_cut`` before reporting it as a linear fold
        change in file names (for numeric predictors). 1 for categorical
        comparisons.
    columns:
        Where to find the raw p-value (sort key), adjusted p-value and
        fold-change columns.
    """

    adj_p_cut: float = DEFAULT_P_CUT
    fc_cut: float = DEFAULT_FC_CUT
    fc_adj_factor: float = 1.0
    columns: ColumnRoles = ColumnRoles()


def _format_number(value: float) -> str:
    return f"{value:.15g}"


def threshold_token(fc_cut: float, adj_p_cut: float, fc_adj_factor: float = 1.0) -> str:
    """
    File name fragment describing the active cutoffs.

    >>> threshold_token(np.log2(1.5), 0.01)
    '_FC1.5_and_P0.01'
    >>> threshold_token(0, 0.05)
    '_P0.05'
    """
    parts = []
    if fc_cut > 0:
        parts.append("FC" + _format_number(round(float(2 ** (fc_cut * fc_adj_factor)), 3)))
    if adj_p_cut <= 1:
        parts.append("P" + _format_number(adj_p_cut))
    return "_" + "_and_".join(parts) if parts else ""


def _write_gene_list(genes: Sequence[str], path: Path) -> Path:
    with open(path, "w", encoding="utf-8") as fh:
        for gene in genes:
            fh.write(f"{gene}\n")
    logger.info("Wrote %d genes to %s", len(genes), path)
    return path


def _build_spec(spec: Optional[ExportSpec], overrides: dict) -> ExportSpec:
    base = spec if spec is not None else ExportSpec()
    if not overrides:
        return base
    try:
        return dataclasses.replace(base, **overrides)
    except TypeError as exc:
        raise ConfigurationError(f"Unknown export option(s): {sorted(overrides)}") from exc


def write_sig_genes(
    table: pd.DataFrame,
    file_prefix: Union[str, Path],
    methods: Union[str, ExportMethod, Iterable[Union[str, ExportMethod]]] = ALL_METHODS,
    spec: Optional[ExportSpec] = None,
    **overrides: Any,
) -> List[Path]:
    """
    Write gene lists ranked by p-value and filtered by significance thresholds.

    Parameters
    ----------
    table:
        Differential expression table, e.g. limma ``topTable`` output.
    file_prefix:
        Destination prefix; each output appends its own suffix.
    methods:
        Any of ``"ranked_list"`` (all genes ordered by raw p-value),
        ``"combined"`` (genes passing both cutoffs) and ``"directional"``
        (the combined genes split into up- and down-regulated lists).
        Unambiguous prefixes are accepted.
    spec:
        Cutoffs and column roles; defaults to ``ExportSpec()``.
    **overrides:
        ExportSpec fields to replace on ``spec``.

    Returns
    -------
    list of Path
        Written files, in the order they were written.
    """
    table = check_table(table)
    spec = _build_spec(spec, overrides)
    methods = parse_choices(methods, ExportMethod, "export method")
    columns = spec.columns
    cols = columns.resolve(table, ["p_value", "adj_p_value", "log_fc"])

    ranked = columns.working_copy(table).sort_values(cols["p_value"], kind="mergesort")
    prefix = str(file_prefix)
    written: List[Path] = []

    if ExportMethod.RANKED_LIST in methods:
        path = Path(f"{prefix}.all_genes_ranked_pval.txt")
        written.append(_write_gene_list(ranked[GENE_COLUMN].tolist(), path))

    if ExportMethod.COMBINED not in methods and ExportMethod.DIRECTIONAL not in methods:
        return written

    token = threshold_token(spec.fc_cut, spec.adj_p_cut, spec.fc_adj_factor)
    log_fc = ranked[cols["log_fc"]]
    significant = (ranked[cols["adj_p_value"]] < spec.adj_p_cut) & (log_fc.abs() > spec.fc_cut)
    logger.debug(
        "%d of %d genes pass adj_p < %s and |logFC| > %s",
        int(significant.sum()),
        len(ranked),
        spec.adj_p_cut,
        spec.fc_cut,
    )

    if ExportMethod.COMBINED in methods:
        path = Path(f"{prefix}.genes{token}.txt")
        written.append(_write_gene_list(ranked.loc[significant.to_numpy(), GENE_COLUMN].tolist(), path))

    if ExportMethod.DIRECTIONAL in methods:
        up = significant & (log_fc > 0)
        down = significant & (log_fc < 0)
        up_path = Path(f"{prefix}.genes{token}.up.txt")
        down_path = Path(f"{prefix}.genes{token}.down.txt")
        written.append(_write_gene_list(ranked.loc[up.to_numpy(), GENE_COLUMN].tolist(), up_path))
        written.append(_write_gene_list(ranked.loc[down.to_numpy(), GENE_COLUMN].tolist(), down_path))

    return written
