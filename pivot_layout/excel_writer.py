"""Handles writing a pivot table layout to an Excel sheet, merging spanned cells."""

import logging
import os
import openpyxl
from openpyxl import Workbook
from openpyxl.worksheet.worksheet import Worksheet # Explicit import for type hinting
from openpyxl.utils.exceptions import IllegalCharacterError
from typing import Tuple, Optional

from .config import RenderConfig
from .exceptions import ExcelWriterError
from .layout import TableLayout
from .utils import sanitize_sheet_name

logger = logging.getLogger("pivot_layout.excel_writer")

TITLE_ROW = 1
# The table starts below the title row
TABLE_START_ROW = 2

# --- Helper Functions ---

def _open_workbook(output_path: str, existing_workbook: Optional[Workbook] = None) -> Workbook:
    """
    Returns the workbook a pivot sheet is written into.

    Priority: the workbook object passed in, then the file at output_path,
    then a fresh workbook stripped of openpyxl's placeholder 'Sheet'.

    Raises:
        ExcelWriterError: If the file at output_path cannot be read as a workbook.
    """
    if existing_workbook is not None:
        return existing_workbook

    if not os.path.exists(output_path):
        workbook = openpyxl.Workbook()
        workbook.remove(workbook.active)
        logger.debug(f"Started a new workbook for '{output_path}'.")
        return workbook

    try:
        return openpyxl.load_workbook(output_path)
    except Exception as e:
        logger.error(f"Could not open '{output_path}' as a workbook: {e}", exc_info=True)
        raise ExcelWriterError(f"Could not open '{output_path}' to add a pivot sheet. Error: {e}") from e

def _replace_sheet(workbook: Workbook, sheet_name: str) -> Worksheet:
    """Creates sheet_name at the end of workbook, dropping any sheet already using that name."""
    if sheet_name in workbook.sheetnames:
        logger.debug(f"Replacing sheet '{sheet_name}'.")
        workbook.remove(workbook[sheet_name])
    return workbook.create_sheet(sheet_name)

def _write_title_row(worksheet: Worksheet, title_text: str):
    """Writes the title text to cell A1 of the worksheet."""
    title_cell = worksheet.cell(row=TITLE_ROW, column=1)
    title_cell.value = title_text
    logger.debug(f"Wrote title '{title_text}' to cell {title_cell.coordinate}")

def _write_layout_cells(worksheet: Worksheet, layout: TableLayout, start_row: int):
    """
    Writes every layout cell to the worksheet and merges spanned ranges.

    Raises:
        ExcelWriterError: If a value cannot be written (e.g., illegal characters).
    """
    merged = 0
    for cell in layout:
        excel_row = start_row + cell.row
        excel_col = 1 + cell.col
        try:
            worksheet.cell(row=excel_row, column=excel_col, value=cell.value)
        except IllegalCharacterError as e:
            safe_value = str(cell.value)[:50] + '...' if len(str(cell.value)) > 50 else str(cell.value)
            logger.error(f"Illegal character error writing value '{safe_value}' to cell ({excel_row}, {excel_col}): {e}", exc_info=True)
            raise ExcelWriterError(f"Failed to write sheet '{worksheet.title}'. Data contains characters unsupported by Excel in cell ({excel_row}, {excel_col}). Value: '{safe_value}'. Error: {e}") from e

        if cell.is_merged:
            worksheet.merge_cells(
                start_row=excel_row,
                start_column=excel_col,
                end_row=start_row + cell.last_row,
                end_column=1 + cell.last_col,
            )
            merged += 1

    logger.debug(f"Wrote {len(layout.cells)} cells ({merged} merged ranges) to sheet '{worksheet.title}'.")


# --- Main Excel Writing Function ---

def write_layout_sheet(
    layout: TableLayout,
    config: RenderConfig,
    title_text: str,
    existing_workbook: Optional[Workbook] = None
) -> Tuple[Workbook, Worksheet]:
    """
    Writes a table layout to a sheet in an Excel workbook.

    Uses an existing workbook object if provided, otherwise loads the file at
    config.output or creates a new one. A sheet with the same name is
    replaced. Does NOT save the workbook; saving is handled by the caller.

    Args:
        layout: The table layout to write.
        config: The validated configuration object.
        title_text: The title written to cell A1.
        existing_workbook: Optional existing Workbook object to write the sheet into.

    Returns:
        A tuple containing the Workbook and the Worksheet where the table was written.

    Raises:
        ExcelWriterError: If any error occurs during the process.
    """
    output_path = config.output
    proposed_name = config.sheet_name or "Output"
    final_sheet_name = sanitize_sheet_name(proposed_name)
    if final_sheet_name != proposed_name:
        logger.warning(f"Final sheet name '{proposed_name}' was sanitized/truncated to '{final_sheet_name}'.")

    logger.info(f"Preparing to write sheet '{final_sheet_name}' to file '{output_path}'...")

    try:
        output_dir = os.path.dirname(output_path)
        if output_dir and existing_workbook is None:
            os.makedirs(output_dir, exist_ok=True)
            logger.debug(f"Ensured output directory exists: '{output_dir}'")

        workbook = _open_workbook(output_path, existing_workbook)
        worksheet = _replace_sheet(workbook, final_sheet_name)
        _write_title_row(worksheet, title_text)
        _write_layout_cells(worksheet, layout, TABLE_START_ROW)

        logger.info(f"Sheet '{final_sheet_name}' successfully written to workbook object.")
        return workbook, worksheet

    except ExcelWriterError:
        raise
    except Exception as e:
        logger.error(f"An unexpected error occurred in write_layout_sheet: {e}", exc_info=True)
        raise ExcelWriterError(f"Failed to write Excel sheet '{final_sheet_name}'. Error: {e}") from e
