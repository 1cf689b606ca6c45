"""Tab-separated export of a pivot table."""

import logging
from typing import Any, List, Sequence

from .layout import PivotDataProvider

logger = logging.getLogger("pivot_layout.tsv_export")

def _format(value: Any) -> str:
    # Empty cells and zeros export as blanks
    if not value:
        return ''
    # Pivoting yields floats for integer sums; 3.0 exports as 3
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)

def export_tsv(pivot_data: PivotDataProvider, row_attrs: Sequence[str], value_name: str = "Value") -> str:
    """
    Exports the pivot table as tab-separated text.

    The header row lists the row attributes followed by each column key
    joined with '-', or value_name when the table has no column keys. Each
    following line holds a row key's labels and its values.
    """
    row_keys = [tuple(k) for k in pivot_data.get_row_keys()] or [()]
    col_keys = [tuple(k) for k in pivot_data.get_col_keys()] or [()]

    header: List[str] = [str(attr) for attr in row_attrs]
    if len(col_keys) == 1 and len(col_keys[0]) == 0:
        header.append(value_name)
    else:
        header.extend('-'.join(str(label) for label in col_key) for col_key in col_keys)

    lines = ['\t'.join(header)]
    for row_key in row_keys:
        row = [str(label) for label in row_key]
        row.extend(_format(pivot_data.get_value(row_key, col_key)) for col_key in col_keys)
        lines.append('\t'.join(row))

    logger.debug(f"Exported {len(lines) - 1} rows as TSV.")
    return '\n'.join(lines)
