"""Render audit, invariant checking and regression comparison.

Convenience imports:
    from src.audit import audit_render, compare_for_regression, AuditBundle
"""

from .bundle import (
    BUNDLE_SCHEMA_VERSION,
    AuditBundle,
    AuditSerializationError,
    BoundsSummary,
    CameraSummary,
    ColorHistogram,
    DepthStats,
    GeometryProbes,
    ImageMetrics,
    InvariantCategory,
    InvariantResults,
    InvariantViolation,
    OverallStatus,
    PrimitiveCounts,
    RenderMetadata,
    Severity,
)
from .golden import GoldenOutcome, GoldenStatus, GoldenStore, pixels_similar
from .invariants import check_all_invariants
from .metadata import build_render_metadata, count_primitives, scene_hash
from .metrics import compute_image_metrics
from .pipeline import audit_render
from .probes import compute_geometry_probes
from .regression import (
    RegressionResult,
    RegressionTolerance,
    compare_for_regression,
    histogram_difference,
)

__all__ = [
    'BUNDLE_SCHEMA_VERSION',
    'AuditBundle',
    'AuditSerializationError',
    'BoundsSummary',
    'CameraSummary',
    'ColorHistogram',
    'DepthStats',
    'GeometryProbes',
    'GoldenOutcome',
    'GoldenStatus',
    'GoldenStore',
    'ImageMetrics',
    'InvariantCategory',
    'InvariantResults',
    'InvariantViolation',
    'OverallStatus',
    'PrimitiveCounts',
    'RegressionResult',
    'RegressionTolerance',
    'RenderMetadata',
    'Severity',
    'audit_render',
    'build_render_metadata',
    'check_all_invariants',
    'compare_for_regression',
    'compute_geometry_probes',
    'compute_image_metrics',
    'count_primitives',
    'histogram_difference',
    'pixels_similar',
    'scene_hash',
]
