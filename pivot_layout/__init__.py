"""
Pivot Layout Package

Lays out aggregated pivot tables with merged row/column headers and optional
subtotal rows, and renders them to styled Excel sheets or TSV text.
"""
import logging
from typing import Dict, Any, Optional
import pandas as pd

from . import utils
from . import config as config_module
from . import data_loader
from . import excel_writer
from . import layout as layout_module
from . import styler
from . import tsv_export
from .exceptions import (
    PivotLayoutBaseError, InvalidInputError, IndexOutOfRangeError, ConfigValidationError,
    DataLoaderError, LayoutError, ExcelWriterError, StylingError,
)
from .pivot_data import FramePivotData
from .spans import SKIP_SPAN, GroupIndex, span_size, should_render_subtotal, parent_span_adjustment
from .layout import LayoutCell, TableLayout, build_table_layout
from .styler import red_color_scale
from .utils import setup_logging, set_module_log_level, sort_keys

__version__ = "0.1.0"

__all__ = [
    "render_table", "render_tsv",
    "span_size", "should_render_subtotal", "parent_span_adjustment", "GroupIndex", "SKIP_SPAN",
    "FramePivotData", "LayoutCell", "TableLayout", "build_table_layout", "red_color_scale",
    "setup_logging", "set_module_log_level", "sort_keys",
    "PivotLayoutBaseError", "InvalidInputError", "IndexOutOfRangeError", "ConfigValidationError",
    "DataLoaderError", "LayoutError", "ExcelWriterError", "StylingError",
]

# --- Public API Functions ---

def _default_title(config: config_module.RenderConfig) -> str:
    title = f"{config.value_name} by row_attrs: {', '.join(config.row_attrs)}, col_attrs: {', '.join(config.col_attrs)}"
    if config.subtotals:
        title += ", with subtotals"
    return title

def render_table(config_dict: Dict[str, Any],
                 pivot_table: pd.DataFrame,
                 color_scale_generator: Optional[styler.ColorScaleGenerator] = None) -> str:
    """
    Renders an aggregated pivot table to a styled Excel sheet and saves it.

    Orchestrates configuration validation, pivot table loading, layout,
    Excel writing, styling and saving.

    Args:
        config_dict: A dictionary containing the configuration parameters.
        pivot_table: An aggregated DataFrame, e.g. from pd.pivot_table(..., margins=True).
        color_scale_generator: Heatmap color scale factory, red_color_scale if None.

    Returns:
        The path of the saved workbook.

    Raises:
        PivotLayoutBaseError: If any validation, loading, layout, or
                              writing error occurs within the package.
    """
    # Logging is configured by the calling application (see utils.setup_logging)
    logger = logging.getLogger("pivot_layout.render_table")
    logger.info(f"--- Starting render_table (Pivot Layout v{__version__}) ---")

    try:
        logger.info("Validating configuration...")
        config = config_module.validate_config(config_dict)
        if not config.output:
            raise ConfigValidationError("Configuration validation failed:\n- ('output',): required to render a workbook")
        config = config_module.set_default_sheet_name(config, "render_table")

        logger.info("Loading pivot table...")
        table = data_loader.load_pivot_table(config, pivot_table)
        pivot_data = FramePivotData(table, margins_name=config.margins_name)

        logger.info("Building table layout...")
        table_layout = layout_module.build_table_layout(
            pivot_data, config.row_attrs, config.col_attrs, subtotals=config.subtotals
        )

        logger.info("Writing table layout to Excel sheet...")
        workbook, worksheet = excel_writer.write_layout_sheet(
            layout=table_layout,
            config=config,
            title_text=config.title or _default_title(config),
        )

        styler.apply_styles(
            worksheet=worksheet,
            layout=table_layout,
            config=config,
            start_row=excel_writer.TABLE_START_ROW,
            color_scale_generator=color_scale_generator,
        )

        logger.info(f"Saving workbook to '{config.output}'...")
        try:
            workbook.save(config.output)
        except OSError as e:
            raise ExcelWriterError(f"Failed to save workbook to '{config.output}'. Error: {e}") from e
        logger.info("--- render_table completed successfully ---")
        return config.output

    except PivotLayoutBaseError as e:
        logger.error(f"render_table failed: {e}", exc_info=True)
        raise


def render_tsv(config_dict: Dict[str, Any], pivot_table: pd.DataFrame) -> str:
    """
    Exports an aggregated pivot table as tab-separated text.

    Args:
        config_dict: A dictionary containing the configuration parameters.
        pivot_table: An aggregated DataFrame, e.g. from pd.pivot_table.

    Returns:
        The TSV text.

    Raises:
        PivotLayoutBaseError: If validation or loading fails.
    """
    logger = logging.getLogger("pivot_layout.render_tsv")

    try:
        config = config_module.validate_config(config_dict)
        table = data_loader.load_pivot_table(config, pivot_table)
        pivot_data = FramePivotData(table, margins_name=config.margins_name)
        return tsv_export.export_tsv(pivot_data, config.row_attrs, value_name=config.value_name)
    except PivotLayoutBaseError as e:
        logger.error(f"render_tsv failed: {e}", exc_info=True)
        raise
