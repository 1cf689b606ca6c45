"""Handles loading an aggregated pivot table from a provided DataFrame"""

import logging
import pandas as pd

from .config import RenderConfig
from .exceptions import DataLoaderError
from .utils import MISSING_LABEL

logger = logging.getLogger("pivot_layout.data_loader")

# --- Helper Functions ---

def _clean_labels(index: pd.Index) -> pd.Index:
    """Replaces NaN labels with 'Missing' and converts every label to str."""
    if isinstance(index, pd.MultiIndex):
        arrays = [
            index.get_level_values(i).astype(object).fillna(MISSING_LABEL).astype(str)
            for i in range(index.nlevels)
        ]
        return pd.MultiIndex.from_arrays(arrays, names=index.names)
    return pd.Index(index.astype(object).fillna(MISSING_LABEL).astype(str), name=index.name)

# --- Loading Function ---

def load_pivot_table(config: RenderConfig, table: pd.DataFrame) -> pd.DataFrame:
    """
    Validates and normalizes an aggregated pivot table.

    The table is expected to come from pd.pivot_table (or an equivalent
    groupby/unstack) with one index level per row attribute and one column
    level per column attribute, optionally including margins.

    Args:
        config: The validated configuration object (RenderConfig).
        table: The aggregated pivot table.

    Returns:
        A copy of table whose row and column labels are strings, with NaN
        labels replaced by 'Missing'.

    Raises:
        DataLoaderError: If table is not a DataFrame or its index/column
                         levels do not match the configured attributes.
    """
    if not isinstance(table, pd.DataFrame):
        msg = f"Pivot table must be a pandas DataFrame, got {type(table).__name__}."
        logger.error(msg)
        raise DataLoaderError(msg)

    if table.index.nlevels != len(config.row_attrs):
        msg = (f"Pivot table has {table.index.nlevels} index level(s) but row_attrs "
               f"lists {len(config.row_attrs)}: {config.row_attrs}")
        logger.error(msg)
        raise DataLoaderError(msg)

    if table.columns.nlevels != len(config.col_attrs):
        msg = (f"Pivot table has {table.columns.nlevels} column level(s) but col_attrs "
               f"lists {len(config.col_attrs)}: {config.col_attrs}")
        logger.error(msg)
        raise DataLoaderError(msg)

    # Named levels must line up with the configured attributes
    for axis_name, names, attrs in (("index", table.index.names, config.row_attrs),
                                    ("columns", table.columns.names, config.col_attrs)):
        named = [(name, attr) for name, attr in zip(names, attrs) if name is not None]
        mismatched = [(name, attr) for name, attr in named if name != attr]
        if mismatched:
            msg = f"Pivot table {axis_name} level names {list(names)} do not match configured attributes {attrs}."
            logger.error(msg)
            raise DataLoaderError(msg)

    df = table.copy()
    df.index = _clean_labels(df.index)
    df.columns = _clean_labels(df.columns)

    if not df.index.is_unique or not df.columns.is_unique:
        msg = "Pivot table row and column labels must be unique (after replacing NaN labels with 'Missing')."
        logger.error(msg)
        raise DataLoaderError(msg)

    logger.debug(f"Loaded pivot table with shape {df.shape}.")
    return df
