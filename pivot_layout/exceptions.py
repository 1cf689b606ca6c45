"""Custom exception classes for the pivot layout package."""

class PivotLayoutBaseError(Exception):
    """Base class for all custom exceptions in the pivot layout package."""
    pass

class InvalidInputError(PivotLayoutBaseError, ValueError):
    """Exception raised when a key matrix is malformed (not a sequence of sequences, ragged rows, non-integer indices)."""
    pass

class IndexOutOfRangeError(PivotLayoutBaseError, IndexError):
    """Exception raised when a position or level falls outside the key matrix."""
    pass

class ConfigValidationError(PivotLayoutBaseError):
    """Exception raised for errors during configuration validation."""
    pass

class DataLoaderError(PivotLayoutBaseError):
    """Exception raised when the supplied pivot table does not match the configuration."""
    pass

class LayoutError(PivotLayoutBaseError):
    """Exception raised for errors while assembling the table layout grid."""
    pass

class ExcelWriterError(PivotLayoutBaseError):
    """Exception raised for errors during Excel file writing (e.g., I/O errors, openpyxl issues)."""
    pass

class StylingError(PivotLayoutBaseError):
    """Exception raised for errors during Excel styling application."""
    pass
