"""Utility functions for the pivot layout package."""

import logging
import math
import re
import sys
import pandas as pd
import colorama
from typing import Any, Iterable, List, Sequence, Tuple

colorama.init(autoreset=True) # Initialize colorama

# --- Logging Setup ---

class ColorFormatter(logging.Formatter):
    """Custom logging formatter that adds color based on log level."""

    # Base format string
    _base_fmt = "%(asctime)s - %(levelname)-8s - %(message)s (%(filename)s:%(lineno)d)"

    # Color mapping (names are resolved against colorama.Fore at format time)
    _LEVEL_COLOR_MAP = {
        logging.DEBUG: 'CYAN',
        logging.INFO: 'GREEN',
        logging.WARNING: 'YELLOW',
        logging.ERROR: 'RED',
        logging.CRITICAL: 'MAGENTA',
    }

    def __init__(self, datefmt='%Y-%m-%d %H:%M:%S', use_colors=True):
        super().__init__(fmt=self._base_fmt, datefmt=datefmt)
        self.use_colors = use_colors

    def format(self, record):
        log_message = super().format(record)

        if self.use_colors:
            color_name = self._LEVEL_COLOR_MAP.get(record.levelno)
            if color_name:
                color_prefix = getattr(colorama.Fore, color_name, '')
                reset_suffix = getattr(colorama.Style, 'RESET_ALL', '')
                return f"{color_prefix}{log_message}{reset_suffix}"

        return log_message

def setup_logging(handler_level=logging.DEBUG, default_package_level=logging.WARNING, force=False, use_colors=True) -> logging.Logger:
    """
    Configures the main 'pivot_layout' logger and its handler.

    Allows setting separate levels for the handler (what gets output) and
    the logger itself (the default minimum level for the package).

    Args:
        handler_level: The minimum level the console handler will output.
                       (default: logging.DEBUG to allow fine-grained control).
        default_package_level: The default minimum level for the 'pivot_layout'
                               logger and its children. (default: logging.WARNING).
        force: If True, removes existing handlers and reconfigures.
               If False, skips if handlers already exist.
        use_colors: Whether the console formatter colors messages by level.

    Returns:
        The configured 'pivot_layout' logger instance.
    """
    logger = logging.getLogger("pivot_layout")

    # Skip configuration if handlers already exist and force=False
    if logger.handlers and not force:
        return logger

    # Keep package output away from the root logger
    logger.propagate = False

    if logger.handlers:
        logger.handlers.clear()

    logger.setLevel(default_package_level)

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(handler_level)
    ch.setFormatter(ColorFormatter(use_colors=use_colors))
    logger.addHandler(ch)

    # Child loggers (e.g., pivot_layout.spans) inherit the package level
    # and propagate to this handler.
    return logger

def set_module_log_level(module_name: str, level: int) -> None:
    """
    Sets the logging level for a specific pivot_layout submodule.

    Args:
        module_name: The simple name of the module (e.g., 'spans', 'layout').
        level: The desired logging level (e.g., logging.DEBUG, logging.INFO).

    Raises:
        TypeError: If level is not an integer logging level.
    """
    if not isinstance(level, int) or isinstance(level, bool):
        raise TypeError(f"Invalid level '{level}' for module '{module_name}'. Level must be an integer (e.g., logging.DEBUG).")

    logging.getLogger(f"pivot_layout.{module_name}").setLevel(level)

# --- Sheet Name Sanitization ---

# Characters invalid in Excel sheet names: []*/\?:
INVALID_SHEET_NAME_CHARS = re.compile(r'[\[\]\*\\/\?:]')
MAX_SHEET_NAME_LENGTH = 31

def sanitize_sheet_name(name: str) -> str:
    """
    Sanitizes a string to be a valid Excel sheet name.

    Removes invalid characters ([]*/\\?:) and truncates to 31 characters.
    An empty result falls back to 'Sheet'.
    """
    if not isinstance(name, str):
        name = str(name)
    sanitized = INVALID_SHEET_NAME_CHARS.sub('', name)
    if len(sanitized) > MAX_SHEET_NAME_LENGTH:
        logging.getLogger("pivot_layout.utils").warning(
            f"Sheet name '{name}' truncated to '{sanitized[:MAX_SHEET_NAME_LENGTH]}'."
        )
        sanitized = sanitized[:MAX_SHEET_NAME_LENGTH]
    if not sanitized:
        sanitized = "Sheet"
    return sanitized

# --- Hierarchical Key Sorting ---

SORT_KEY_NORMAL = 0
SORT_KEY_MISSING = 1

MISSING_LABEL = 'Missing'

def get_sort_key(label: Any) -> Tuple[int, Any]:
    """
    Generates a sort key tuple for a single label of a composite key.

    Normal labels sort first by value; 'Missing' and empty values
    (None, NaN, '') sort after them within their peer group.

    Returns:
        A tuple (sort_priority, value).
    """
    if isinstance(label, str) and label.strip().lower() == MISSING_LABEL.lower():
        return (SORT_KEY_MISSING, MISSING_LABEL)

    # pd.isna covers None and np.nan; lists/tuples are never missing labels
    if not isinstance(label, (list, tuple)) and (pd.isna(label) or label == ''):
        return (SORT_KEY_MISSING, MISSING_LABEL)

    return (SORT_KEY_NORMAL, label)

_DIGIT_RUN = re.compile(r'(\d+)')

def natural_sort_key(label: Any) -> Tuple[Tuple[int, Any], ...]:
    """
    Orders labels the way a person reads them: '2' before '10'.

    A label that parses as a finite number compares by its value and sorts
    before text. Other labels compare chunk by chunk, digit runs as integers.
    """
    text = str(label).strip()
    try:
        number = float(text)
    except ValueError:
        number = None
    if number is not None and math.isfinite(number):
        return ((0, number),)
    # split() with a capturing group puts the digit runs at odd indices
    return tuple(
        (0, int(chunk)) if i % 2 else (1, chunk.lower())
        for i, chunk in enumerate(_DIGIT_RUN.split(text))
    )

def sort_keys(keys: Iterable[Sequence[Any]]) -> List[Tuple[Any, ...]]:
    """
    Sorts composite keys outer level to inner level, naturally within a level.

    The result satisfies the grouping contiguity invariant: keys sharing a
    prefix at any level occupy a contiguous run. Labels that compare equal
    naturally ('1' and '01', or the missing-like None, '' and 'Missing')
    are separated by their string form.
    """
    def label_key(label):
        priority, value = get_sort_key(label)
        return (priority, natural_sort_key(value), str(label))

    return sorted(
        (tuple(key) for key in keys),
        key=lambda key: tuple(label_key(label) for label in key),
    )
