"""YAML schema validation and config loading.

Provides centralized validation for the audit configuration using pydantic:
    - Audit schema (audit.v1.yaml): regression tolerances, render background,
      golden-image tolerances, logging options

Modules must load configs through these validators for fail-fast error
detection with actionable messages (offending keys, expected ranges).

Units:
    - Depth: normalized device depth [0, 1]
    - Histogram drift: fraction of baseline RGB counts [0, 1]
    - Edge density: fraction of interior pixels [0, 1]
    - Background: percentage points [0, 100]
    - Color: RGBA in [0.0, 1.0]

Usage:
    from src.utils import validators

    cfg = validators.load_audit_config("configs/audit.v1.yaml")
    tol = cfg.regression.depth_tolerance
"""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from . import fs


# ============================================================================
# AUDIT SCHEMA V1
# ============================================================================

class RegressionToleranceV1(BaseModel):
    """Thresholds used by the regression comparator."""
    model_config = ConfigDict(extra='forbid')

    depth_tolerance: float = Field(0.01, ge=0.0, description="Max |Δ mean depth|")
    histogram_tolerance: float = Field(0.05, ge=0.0, description="Max histogram drift fraction")
    edge_density_tolerance: float = Field(0.1, ge=0.0, le=1.0, description="Edge density Δ before a note")
    background_tolerance: float = Field(5.0, ge=0.0, le=100.0, description="Max |Δ background %| (points)")


class RenderDefaultsV1(BaseModel):
    """Render parameters the audit needs but the image file doesn't carry."""
    model_config = ConfigDict(extra='forbid')

    background: Tuple[float, float, float, float] = Field(
        (0.1, 0.1, 0.15, 1.0), description="Clear color RGBA in [0, 1]"
    )
    backend: str = Field("unknown", description="Backend identifier (informational)")
    adapter: str = Field("unknown", description="Adapter name (informational)")

    @field_validator('background')
    @classmethod
    def validate_background(cls, v: Tuple[float, float, float, float]) -> Tuple[float, float, float, float]:
        for i, c in enumerate(v):
            if not (0.0 <= c <= 1.0):
                raise ValueError(f"background[{i}] = {c} out of range [0.0, 1.0]")
        return v


class GoldenV1(BaseModel):
    """Golden-image comparison settings."""
    model_config = ConfigDict(extra='forbid')

    root: str = Field("ci/golden", description="Directory holding reference PNGs and bundles")
    pixel_tolerance: int = Field(5, ge=0, le=255, description="Per-channel tolerance")
    max_diff_fraction: float = Field(0.01, ge=0.0, le=1.0, description="Divergent pixel budget")


class LoggingV1(BaseModel):
    """Subset of setup_logging() keyword arguments."""
    model_config = ConfigDict(extra='forbid')

    log_level: str = Field("INFO", description="Root log level")
    log_file: Optional[str] = Field(None, description="Optional log file path")
    json_lines: bool = Field(False, alias="json", description="JSON line output")
    color: bool = Field(True, description="ANSI colors on TTY")

    @field_validator('log_level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got '{v}'")
        return v.upper()

    def as_setup_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for logging_config.setup_logging()."""
        return {
            'log_level': self.log_level,
            'log_file': self.log_file,
            'json': self.json_lines,
            'color': self.color,
        }


class AuditConfigV1(BaseModel):
    """Audit config schema v1 (complete config file)."""
    model_config = ConfigDict(populate_by_name=True, extra='forbid')

    schema_version: str = Field("audit.v1", alias="schema", description="Schema version")
    regression: RegressionToleranceV1 = Field(default_factory=RegressionToleranceV1)
    render: RenderDefaultsV1 = Field(default_factory=RenderDefaultsV1)
    golden: GoldenV1 = Field(default_factory=GoldenV1)
    logging: LoggingV1 = Field(default_factory=LoggingV1)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "audit.v1":
            raise ValueError(f"Expected schema 'audit.v1', got '{v}'")
        return v


def load_audit_config(path: Union[str, Path]) -> AuditConfigV1:
    """Load and validate an audit config file.

    Parameters
    ----------
    path : Union[str, Path]
        Path to audit.v1 YAML

    Returns
    -------
    AuditConfigV1
        Validated config (missing sections take their defaults)

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    ValueError
        If the YAML cannot be parsed or validation fails (message includes
        the path and the parser or pydantic details)

    Examples
    --------
    >>> cfg = load_audit_config("configs/audit.v1.yaml")
    >>> cfg.golden.pixel_tolerance
    5
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Audit config not found: {path}")

    try:
        data = fs.load_yaml(path)
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        raise ValueError(f"Audit config parse failed at {path}: {e}") from e

    try:
        return AuditConfigV1.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Audit config validation failed at {path}: {e}") from e


def default_audit_config() -> AuditConfigV1:
    """Config with every section at its default (used when no file is given)."""
    return AuditConfigV1()
