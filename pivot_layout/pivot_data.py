"""Adapts an aggregated pandas pivot table to the key/value lookups the layout needs"""

import logging
import numpy as np
import pandas as pd
from typing import Any, Dict, List, Optional, Tuple

from .utils import sort_keys

logger = logging.getLogger("pivot_layout.pivot_data")

Key = Tuple[Any, ...]

def _as_key(entry: Any) -> Key:
    """Index entries are tuples for a MultiIndex and scalars otherwise."""
    return tuple(entry) if isinstance(entry, tuple) else (entry,)

def _to_python(value: Any) -> Optional[Any]:
    """Converts numpy scalars to Python scalars and NaN to None."""
    if value is None:
        return None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and np.isnan(value):
        return None
    if value is pd.NA or value is pd.NaT:
        return None
    return value


class FramePivotData:
    """
    Read-only view of a pivot table produced by pd.pivot_table.

    Row and column keys are the index/column entries as tuples, sorted so
    that keys sharing a prefix are contiguous. Entries whose outermost label
    equals margins_name (pandas' margins=True output) are not keys; they
    provide the row totals, column totals and grand total instead.
    """

    def __init__(self, table: pd.DataFrame, margins_name: str = "All"):
        self.margins_name = margins_name
        self._values = table.to_numpy(dtype=object)

        self._row_pos, self._margin_row = self._positions(table.index, "row")
        self._col_pos, self._margin_col = self._positions(table.columns, "column")

        self._row_keys = sort_keys(self._row_pos)
        self._col_keys = sort_keys(self._col_pos)
        logger.debug(
            f"Pivot data has {len(self._row_keys)} row keys, {len(self._col_keys)} column keys, "
            f"row margin: {self._margin_row is not None}, column margin: {self._margin_col is not None}."
        )

    def _positions(self, index: pd.Index, axis_label: str) -> Tuple[Dict[Key, int], Optional[int]]:
        positions: Dict[Key, int] = {}
        margin = None
        for pos, entry in enumerate(index):
            key = _as_key(entry)
            if key[0] == self.margins_name:
                margin = pos
                continue
            positions[key] = pos
        if margin is None:
            logger.debug(f"No '{self.margins_name}' {axis_label} margin found; {axis_label} totals will be empty.")
        return positions, margin

    def get_row_keys(self) -> List[Key]:
        return list(self._row_keys)

    def get_col_keys(self) -> List[Key]:
        return list(self._col_keys)

    def get_value(self, row_key: Key, col_key: Key) -> Optional[Any]:
        """
        Looks up the aggregated value for a row/column key pair.

        An empty key addresses the margin on that axis, so
        get_value(row_key, ()) is the row total and get_value((), ()) the
        grand total. Returns None when the margin is absent or the value is NaN.

        Raises:
            KeyError: If a non-empty key is not in the table.
        """
        row = self._margin_row if len(row_key) == 0 else self._row_pos[tuple(row_key)]
        col = self._margin_col if len(col_key) == 0 else self._col_pos[tuple(col_key)]
        if row is None or col is None:
            return None
        return _to_python(self._values[row, col])
