"""Configuration validation using Pydantic."""

from typing import List, Dict, Optional, Literal, Any
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .exceptions import ConfigValidationError
from .utils import sanitize_sheet_name

HeatmapMode = Literal["full", "row", "col"]

# Named renderers and the options each one implies
RENDERER_PRESETS: Dict[str, Dict[str, Any]] = {
    "Table": {"heatmap_mode": None, "subtotals": False},
    "Table Heatmap": {"heatmap_mode": "full", "subtotals": False},
    "Table Col Heatmap": {"heatmap_mode": "col", "subtotals": False},
    "Table Row Heatmap": {"heatmap_mode": "row", "subtotals": False},
    "Table With Subtotals": {"heatmap_mode": None, "subtotals": True},
    "Exportable TSV": {"heatmap_mode": None, "subtotals": False},
}

class RenderConfig(BaseModel):
    """Pydantic model for the pivot table rendering configuration."""
    # Required fields
    row_attrs: List[str] = Field(..., min_length=1)
    col_attrs: List[str] = Field(..., min_length=1)

    # Optional fields with defaults
    output: Optional[str] = None  # workbook path, required by render_table
    renderer: Optional[Literal[
        "Table",
        "Table Heatmap",
        "Table Col Heatmap",
        "Table Row Heatmap",
        "Table With Subtotals",
        "Exportable TSV",
    ]] = None
    subtotals: bool = False
    heatmap_mode: Optional[HeatmapMode] = None
    sheet_name: Optional[str] = None
    title: Optional[str] = None
    value_name: str = "Value"
    margins_name: str = "All"
    number_format: str = "#,##0.00"

    # --- Model Validators ---

    @field_validator('sheet_name')
    @classmethod
    def validate_and_sanitize_sheet_name(cls, v: Optional[str]) -> Optional[str]:
        """Validate and sanitize the sheet name if provided."""
        if v is None:
            return None
        return sanitize_sheet_name(v)

    @model_validator(mode='after')
    def check_attribute_names_distinct(self) -> 'RenderConfig':
        """Ensure row and column attributes are unique and do not overlap."""
        if len(self.row_attrs) != len(set(self.row_attrs)):
            raise ValueError(f"Duplicate attribute names found within row_attrs: {self.row_attrs}")
        if len(self.col_attrs) != len(set(self.col_attrs)):
            raise ValueError(f"Duplicate attribute names found within col_attrs: {self.col_attrs}")

        overlap = set(self.row_attrs).intersection(self.col_attrs)
        if overlap:
            raise ValueError(f"Overlap detected between row_attrs and col_attrs: {overlap}")
        return self

    @model_validator(mode='after')
    def apply_renderer_preset(self) -> 'RenderConfig':
        """
        Fill heatmap_mode and subtotals from the named renderer.

        Options set explicitly alongside a renderer must agree with it.
        """
        if self.renderer is None:
            return self

        preset = RENDERER_PRESETS[self.renderer]
        for field_name, preset_value in preset.items():
            if field_name in self.model_fields_set and getattr(self, field_name) != preset_value:
                raise ValueError(
                    f"Renderer '{self.renderer}' implies {field_name}={preset_value!r}, "
                    f"but {field_name}={getattr(self, field_name)!r} was given."
                )
            setattr(self, field_name, preset_value)
        return self


# --- Function to set default sheet name ---

def set_default_sheet_name(config: RenderConfig, function_name: str) -> RenderConfig:
    """
    Sets a default sheet name based on the calling function if none was provided.

    Args:
        config: The configuration model
        function_name: The name of the function using the config

    Returns:
        Config with appropriate default sheet name set if needed
    """
    if config.sheet_name is None or config.sheet_name == "":
        default_names = {
            "render_table": "Pivot Table",
        }
        config.sheet_name = default_names.get(function_name, "Output")

    return config


# --- Validation Function ---

def validate_config(config_dict: Dict[str, Any]) -> RenderConfig:
    """
    Validates the raw configuration dictionary using the Pydantic model.

    Args:
        config_dict: The raw configuration dictionary.

    Returns:
        A validated RenderConfig instance.

    Raises:
        ConfigValidationError: If validation fails.
    """
    if not isinstance(config_dict, dict):
        raise ConfigValidationError(f"Configuration must be a dictionary, got {type(config_dict).__name__}.")
    try:
        return RenderConfig.model_validate(config_dict)
    except ValidationError as e:
        error_messages = "\n".join([f"- {err['loc']}: {err['msg']}" for err in e.errors()])
        raise ConfigValidationError(f"Configuration validation failed:\n{error_messages}") from e
