"""Shared data structures, choices and errors for DE reporting."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Type, TypeVar, Union

import numpy as np
import pandas as pd

__all__ = [
    "DEFAULT_FC_CUT",
    "DEFAULT_P_CUT",
    "GENE_COLUMN",
    "DegReportError",
    "ConfigurationError",
    "DataError",
    "LabelMode",
    "ThresholdDirection",
    "ExportMethod",
    "ColumnRoles",
    "parse_choice",
    "parse_choices",
    "check_table",
]

DEFAULT_FC_CUT = float(np.log2(1.5))
DEFAULT_P_CUT = 0.01

# Working column holding gene identifiers on internal copies of a table.
GENE_COLUMN = "_gene_id"

ColumnKey = Union[str, int]
E = TypeVar("E", bound=Enum)


class DegReportError(Exception):
    """Base class for errors raised by :mod:`degreport`."""


class ConfigurationError(DegReportError, ValueError):
    """Invalid or contradictory parameter combination."""


class DataError(DegReportError, KeyError):
    """Input table is missing required columns or has the wrong shape."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class LabelMode(str, Enum):
    THRESHOLD = "threshold"
    ELLIPSE = "ellipse"


class ThresholdDirection(str, Enum):
    BOTH = "both"
    LOWER = "lower"
    UPPER = "upper"


class ExportMethod(str, Enum):
    RANKED_LIST = "ranked_list"
    COMBINED = "combined"
    DIRECTIONAL = "directional"


def parse_choice(value: Union[str, E], enum_cls: Type[E], what: str) -> E:
    """
    Resolve ``value`` to a member of ``enum_cls``.

    Accepts a member, an exact value, or a case-insensitive prefix that
    matches exactly one member. Anything else raises ConfigurationError.
    """
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        raise ConfigurationError(f"{what} must be a string or {enum_cls.__name__}, got {value!r}.")
    choices = [member.value for member in enum_cls]
    text = value.strip().lower()
    if text in choices:
        return enum_cls(text)
    matches = [choice for choice in choices if text and choice.startswith(text)]
    if len(matches) == 1:
        return enum_cls(matches[0])
    if len(matches) > 1:
        raise ConfigurationError(
            f"Ambiguous {what} {value!r}: matches {', '.join(matches)}."
        )
    raise ConfigurationError(
        f"Unrecognized {what} {value!r}. Expected one of: {', '.join(choices)}."
    )


def parse_choices(
    values: Union[str, E, Iterable[Union[str, E]]],
    enum_cls: Type[E],
    what: str,
) -> List[E]:
    """Resolve one or several choices, collapsing duplicates in first-seen order."""
    if isinstance(values, (str, Enum)):
        values = [values]
    parsed: List[E] = []
    for value in values:
        member = parse_choice(value, enum_cls, what)
        if member not in parsed:
            parsed.append(member)
    if not parsed:
        raise ConfigurationError(f"At least one {what} must be requested.")
    return parsed


def check_table(table) -> pd.DataFrame:
    if not isinstance(table, pd.DataFrame):
        raise TypeError(
            f"Gene table must be a pandas DataFrame, got {type(table).__name__}."
        )
    return table


@dataclass(frozen=True)
class ColumnRoles:
    """
    Mapping from logical column roles to keys in a gene table.

    Parameters
    ----------
    p_value, adj_p_value, log_fc:
        Column label or 0-based integer position of the raw p-value,
        adjusted p-value and log2 fold-change columns.
    threshold:
        Column holding an optional precomputed boolean significance flag.
    gene:
        Column holding gene identifiers. ``None`` uses the row index.
    """

    p_value: ColumnKey = "P.Value"
    adj_p_value: ColumnKey = "adj.P.Val"
    log_fc: ColumnKey = "logFC"
    threshold: ColumnKey = "threshold"
    gene: Optional[ColumnKey] = None

    _NUMERIC_ROLES = ("p_value", "adj_p_value", "log_fc")

    def _lookup(self, df: pd.DataFrame, role: str) -> Optional[str]:
        key = getattr(self, role)
        if isinstance(key, (int, np.integer)) and not isinstance(key, bool) and key not in df.columns:
            return df.columns[int(key)] if 0 <= key < df.shape[1] else None
        return key if key in df.columns else None

    def resolve(self, df: pd.DataFrame, required: Sequence[str]) -> Dict[str, str]:
        """
        Return ``{role: column label}`` for the requested roles.

        Raises DataError when a required column is absent or a numeric role
        does not hold numeric data.
        """
        resolved: Dict[str, str] = {}
        missing: List[str] = []
        for role in required:
            column = self._lookup(df, role)
            if column is None:
                missing.append(f"{role}={getattr(self, role)!r}")
                continue
            if role in self._NUMERIC_ROLES and not pd.api.types.is_numeric_dtype(df[column]):
                raise DataError(
                    f"Column '{column}' ({role}) must be numeric, found dtype {df[column].dtype}."
                )
            resolved[role] = column
        if missing:
            raise DataError(f"Gene table missing required columns: {missing}")
        return resolved

    def optional(self, df: pd.DataFrame, role: str) -> Optional[str]:
        """Return the column label for ``role`` if present, else None."""
        return self._lookup(df, role)

    def gene_ids(self, df: pd.DataFrame) -> pd.Series:
        """Gene identifiers as strings, aligned to ``df``'s index."""
        if self.gene is None:
            return pd.Series(df.index.astype(str), index=df.index)
        column = self._lookup(df, "gene")
        if column is None:
            raise DataError(f"Gene table missing gene identifier column {self.gene!r}.")
        return df[column].astype(str)

    def working_copy(self, df: pd.DataFrame) -> pd.DataFrame:
        """Copy of ``df`` with gene identifiers in :data:`GENE_COLUMN`."""
        out = df.copy()
        out[GENE_COLUMN] = self.gene_ids(df).to_numpy()
        return out
