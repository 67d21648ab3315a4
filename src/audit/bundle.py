"""Audit bundle data model.

One ``AuditBundle`` is produced per render and captures four independent
views of it:
    - metadata: what was requested (resolution, camera, bounds, counts, hash)
    - geometry: numeric facts from the 3D→2D projection
    - image_metrics: pixel statistics of the finished frame
    - invariants: rule findings and the folded overall status

All models are frozen pydantic v2 models so a bundle cannot change after
assembly.  Serialization is pretty-printed JSON pinned by
``bundle_version``; NaN and ±Inf are written as the JSON constants
``NaN``/``Infinity`` so bundles of degenerate scenes still round-trip.

Usage:
    from src.audit.bundle import AuditBundle

    bundle.save("out/render.audit.json")
    again = AuditBundle.load("out/render.audit.json")
    assert again == bundle
"""

import json
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from ..utils import fs

BUNDLE_SCHEMA_VERSION = "frustum/audit/v1"

HISTOGRAM_BINS = 16
MAX_DOMINANT_COLORS = 5

Vec3f = Tuple[float, float, float]
RGB8 = Tuple[int, int, int]


class AuditSerializationError(ValueError):
    """Raised when a bundle cannot be encoded or decoded."""

    pass


class _Record(BaseModel):
    """Base for every bundle model: immutable, strict keys, NaN-safe JSON."""
    model_config = ConfigDict(frozen=True, extra='forbid', ser_json_inf_nan='constants')


# ============================================================================
# METADATA
# ============================================================================

class CameraSummary(_Record):
    projection: str = Field(..., description="'perspective' or 'orthographic'")
    position: Vec3f
    target: Vec3f
    near: float
    far: float
    fov_or_height: float = Field(..., description="FOV in degrees or ortho view height")


class BoundsSummary(_Record):
    """Axis-aligned box with derived center and extent."""
    min: Vec3f
    max: Vec3f
    center: Vec3f
    extent: Vec3f

    @classmethod
    def from_min_max(cls, lo: Sequence[float], hi: Sequence[float]) -> "BoundsSummary":
        lo = tuple(float(v) for v in lo)
        hi = tuple(float(v) for v in hi)
        return cls(
            min=lo,
            max=hi,
            center=tuple((a + b) / 2.0 for a, b in zip(lo, hi)),
            extent=tuple(b - a for a, b in zip(lo, hi)),
        )


class PrimitiveCounts(_Record):
    meshes: int = Field(0, ge=0)
    total_triangles: int = Field(0, ge=0)
    total_vertices: int = Field(0, ge=0)
    point_clouds: int = Field(0, ge=0)
    total_points: int = Field(0, ge=0)
    polylines: int = Field(0, ge=0)
    total_line_segments: int = Field(0, ge=0)


class RenderMetadata(_Record):
    """Structural facts about the render request (no pixel data)."""
    scene_hash: str
    schema_version: str
    renderer_version: str
    backend: str = Field(..., description="Informational only")
    adapter: str = Field(..., description="Informational only")
    resolution: Tuple[int, int]
    camera: CameraSummary
    world_bounds: BoundsSummary
    primitive_counts: PrimitiveCounts

    @field_validator('resolution')
    @classmethod
    def validate_resolution(cls, v: Tuple[int, int]) -> Tuple[int, int]:
        if v[0] < 0 or v[1] < 0:
            raise ValueError(f"resolution must be non-negative, got {v}")
        return v


# ============================================================================
# GEOMETRY PROBES
# ============================================================================

class DepthStats(_Record):
    min: float = 1.0
    max: float = 1.0
    mean: float = 1.0
    far_plane_percentage: float = Field(0.0, description="Percent of samples at the far plane [0, 100]")


class GeometryProbes(_Record):
    """Numeric facts derived from projecting the scene.

    All counts are non-negative.  ``ndc_bounds`` is None when no vertex
    projected in front of the camera.
    """
    ndc_bounds: Optional[BoundsSummary] = None
    depth_stats: DepthStats = Field(default_factory=DepthStats)
    degenerate_count: int = Field(0, ge=0)
    clipped_count: int = Field(0, ge=0)
    backface_count: int = Field(0, ge=0)
    geometry_visible: bool = False
    has_invalid_values: bool = False


# ============================================================================
# IMAGE METRICS
# ============================================================================

class ColorHistogram(_Record):
    """Per-channel 16-bin histogram (bin = byte // 16)."""
    red: Tuple[int, ...]
    green: Tuple[int, ...]
    blue: Tuple[int, ...]
    alpha: Tuple[int, ...]

    @field_validator('red', 'green', 'blue', 'alpha')
    @classmethod
    def validate_bins(cls, v: Tuple[int, ...]) -> Tuple[int, ...]:
        if len(v) != HISTOGRAM_BINS:
            raise ValueError(f"expected {HISTOGRAM_BINS} bins, got {len(v)}")
        if any(c < 0 for c in v):
            raise ValueError("histogram counts must be non-negative")
        return v

    @classmethod
    def empty(cls) -> "ColorHistogram":
        zeros = (0,) * HISTOGRAM_BINS
        return cls(red=zeros, green=zeros, blue=zeros, alpha=zeros)


class ImageMetrics(_Record):
    histogram: ColorHistogram
    edge_density: float = Field(..., description="Fraction of interior pixels on an edge [0, 1]")
    transparent_percentage: float = Field(..., description="Percent of pixels with alpha == 0")
    background_percentage: float = Field(..., description="Percent of pixels matching the background")
    connected_components: int = Field(..., ge=0)
    dominant_colors: Tuple[RGB8, ...] = Field(
        (), max_length=MAX_DOMINANT_COLORS, description="Most frequent first"
    )

    @field_validator('dominant_colors')
    @classmethod
    def validate_colors(cls, v: Tuple[RGB8, ...]) -> Tuple[RGB8, ...]:
        for color in v:
            if any(not (0 <= c <= 255) for c in color):
                raise ValueError(f"dominant color {color} has a channel outside [0, 255]")
        return v


# ============================================================================
# INVARIANT RESULTS
# ============================================================================

class InvariantCategory(str, Enum):
    """Which subsystem a finding concerns (not how bad it is)."""
    SCENE = "Scene"
    CAMERA = "Camera"
    GEOMETRY = "Geometry"
    MATERIAL = "Material"
    RENDER = "Render"
    STABILITY = "Stability"


class Severity(str, Enum):
    """How bad a finding is (independent of its category)."""
    ERROR = "error"
    WARNING = "warning"
    NOTE = "note"


class OverallStatus(str, Enum):
    PASS = "Pass"
    PASS_WITH_WARNINGS = "PassWithWarnings"
    FAIL = "Fail"

    @classmethod
    def from_findings(cls, errors: Sequence, warnings: Sequence) -> "OverallStatus":
        """Fail iff any error; else PassWithWarnings iff any warning; else Pass."""
        if errors:
            return cls.FAIL
        if warnings:
            return cls.PASS_WITH_WARNINGS
        return cls.PASS


class InvariantViolation(_Record):
    category: InvariantCategory
    message: str
    details: Optional[str] = None


class InvariantResults(_Record):
    """Findings of one invariant check.

    ``overall`` is stored for readers of the JSON but must always agree with
    the findings; a document where it does not is rejected.
    """
    errors: Tuple[InvariantViolation, ...] = ()
    warnings: Tuple[InvariantViolation, ...] = ()
    notes: Tuple[str, ...] = ()
    overall: OverallStatus = OverallStatus.PASS

    @model_validator(mode='after')
    def validate_overall(self) -> "InvariantResults":
        expected = OverallStatus.from_findings(self.errors, self.warnings)
        if self.overall is not expected:
            raise ValueError(
                f"overall is {self.overall.value} but findings imply {expected.value} "
                f"({len(self.errors)} errors, {len(self.warnings)} warnings)"
            )
        return self

    @classmethod
    def from_findings(
        cls,
        errors: Sequence[InvariantViolation] = (),
        warnings: Sequence[InvariantViolation] = (),
        notes: Sequence[str] = (),
    ) -> "InvariantResults":
        return cls(
            errors=tuple(errors),
            warnings=tuple(warnings),
            notes=tuple(notes),
            overall=OverallStatus.from_findings(errors, warnings),
        )

    @property
    def passed(self) -> bool:
        return self.overall is not OverallStatus.FAIL

    def by_category(self, category: InvariantCategory) -> List[InvariantViolation]:
        """Errors and warnings of one category, errors first."""
        return [v for v in (*self.errors, *self.warnings) if v.category is category]


# ============================================================================
# BUNDLE
# ============================================================================

class AuditBundle(_Record):
    """Complete audit record of one render."""
    bundle_version: str = BUNDLE_SCHEMA_VERSION
    metadata: RenderMetadata
    geometry: GeometryProbes
    image_metrics: ImageMetrics
    invariants: InvariantResults

    @field_validator('bundle_version')
    @classmethod
    def validate_version(cls, v: str) -> str:
        if v != BUNDLE_SCHEMA_VERSION:
            raise ValueError(f"Expected bundle_version '{BUNDLE_SCHEMA_VERSION}', got '{v}'")
        return v

    def to_json(self, indent: int = 2) -> str:
        """Pretty-printed JSON document.

        Raises
        ------
        AuditSerializationError
            If the bundle cannot be encoded.
        """
        try:
            return json.dumps(self.model_dump(mode='json'), indent=indent, allow_nan=True)
        except (TypeError, ValueError) as e:
            raise AuditSerializationError(f"Cannot encode audit bundle: {e}") from e

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "AuditBundle":
        """Decode a bundle document.

        Parameters
        ----------
        text : str or bytes
            JSON document; bytes must be UTF-8.

        Raises
        ------
        AuditSerializationError
            On invalid UTF-8, malformed or truncated JSON, or a document that
            does not match the bundle schema.
        """
        try:
            if isinstance(text, (bytes, bytearray)):
                text = bytes(text).decode('utf-8')
            data = json.loads(text)
        except UnicodeDecodeError as e:
            raise AuditSerializationError(f"Audit bundle is not valid UTF-8: {e}") from e
        except json.JSONDecodeError as e:
            raise AuditSerializationError(f"Audit bundle is not valid JSON: {e}") from e
        except RecursionError as e:
            raise AuditSerializationError(f"Audit bundle is nested too deeply: {e}") from e

        try:
            return cls.model_validate(data)
        except (ValidationError, RecursionError) as e:
            raise AuditSerializationError(f"Audit bundle does not match schema: {e}") from e

    def save(self, path: Union[str, Path]) -> Path:
        """Atomically write the JSON document to ``path``."""
        path = Path(path)
        fs.atomic_write_text(path, self.to_json() + "\n")
        return path

    @classmethod
    def load(cls, path: Union[str, Path]) -> "AuditBundle":
        """Read a bundle written by :meth:`save`.

        Raises
        ------
        FileNotFoundError
            If ``path`` does not exist.
        AuditSerializationError
            If the file content is not a valid bundle.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Audit bundle not found: {path}")
        return cls.from_json(path.read_bytes())


