"""Invariant checker.

A fixed battery of rules grouped by category:
    - Scene: empty scene, vertices outside world bounds, NaN/Inf positions,
      axis bundle bounds
    - Camera: degenerate view, clip planes, visibility, invalid projection,
      far-plane coverage
    - Geometry: degenerate, clipped and back-facing primitives
    - Render: resolution, transparency, background coverage, flatness, regions

Each rule appends errors, warnings or notes to a ``FindingsBuilder`` that is
local to one ``check_all_invariants`` call; the caller only ever sees the
finished, frozen ``InvariantResults``.  Checking never raises: degenerate
input is reported, not rejected.

Usage:
    from src.audit.invariants import check_all_invariants

    results = check_all_invariants(scene, metadata, probes, image_metrics)
    if results.overall is OverallStatus.FAIL:
        ...
"""

import logging
from typing import List, Optional

import numpy as np

from ..scene import AxisBundle, Mesh, PointCloud, Polyline, Scene
from .bundle import (
    GeometryProbes,
    ImageMetrics,
    InvariantCategory,
    InvariantResults,
    InvariantViolation,
    RenderMetadata,
)

logger = logging.getLogger(__name__)

DEGENERATE_VIEW_DISTANCE = 1e-6
FULL_COVERAGE_PERCENT = 99.0
CLIPPED_WARNING_PERCENT = 50.0
FLAT_EDGE_DENSITY = 0.001


class FindingsBuilder:
    """Accumulates findings for a single invariant check."""

    def __init__(self):
        self.errors: List[InvariantViolation] = []
        self.warnings: List[InvariantViolation] = []
        self.notes: List[str] = []

    def error(self, category: InvariantCategory, message: str, details: Optional[str] = None) -> None:
        self.errors.append(InvariantViolation(category=category, message=message, details=details))

    def warning(self, category: InvariantCategory, message: str, details: Optional[str] = None) -> None:
        self.warnings.append(InvariantViolation(category=category, message=message, details=details))

    def note(self, message: str) -> None:
        self.notes.append(message)

    def build(self) -> InvariantResults:
        return InvariantResults.from_findings(self.errors, self.warnings, self.notes)


# ============================================================================
# SCENE
# ============================================================================

def _primitive_name(primitive) -> str:
    if isinstance(primitive, Mesh):
        return "Mesh"
    elif isinstance(primitive, PointCloud):
        return "PointCloud"
    elif isinstance(primitive, Polyline):
        return "Polyline"
    raise TypeError(f"Unsupported primitive: {type(primitive).__name__}")


def _check_positions(findings: FindingsBuilder, scene: Scene, index: int, primitive) -> None:
    """Bounds and finiteness of one primitive, each reported at most once."""
    name = _primitive_name(primitive)
    positions = primitive.positions_array()
    if positions.shape[0] == 0:
        return

    finite = np.all(np.isfinite(positions), axis=1)
    if not np.all(finite):
        findings.error(
            InvariantCategory.SCENE,
            f"{name} {index} contains NaN or Inf vertex positions",
            details=f"{int(np.count_nonzero(~finite))} of {positions.shape[0]} vertices non-finite",
        )

    outside = scene.bounds.outside_mask(positions)
    if np.any(outside):
        x, y, z = positions[np.argmax(outside)]
        findings.warning(
            InvariantCategory.SCENE,
            f"{name} {index} has vertex ({x:.2f}, {y:.2f}, {z:.2f}) outside world bounds",
            details=f"{int(np.count_nonzero(outside))} vertices outside",
        )


def _check_axes(findings: FindingsBuilder, scene: Scene, index: int, axes: AxisBundle) -> None:
    amin, amax = axes.bounds.min, axes.bounds.max
    smin, smax = scene.bounds.min, scene.bounds.max

    if not all(np.isfinite(v) for v in (*amin, *amax)):
        findings.error(InvariantCategory.SCENE, f"Axes {index} has NaN or Inf bounds")
        return

    if any(lo > hi for lo, hi in zip(amin, amax)):
        findings.error(InvariantCategory.SCENE, f"Axes {index} has degenerate bounds")

    if any(a < s for a, s in zip(amin, smin)) or any(a > s for a, s in zip(amax, smax)):
        findings.warning(InvariantCategory.SCENE, f"Axes {index} bounds exceed scene world bounds")


def check_scene_invariants(findings: FindingsBuilder, scene: Scene, metadata: RenderMetadata) -> None:
    if not scene.elements:
        findings.warning(InvariantCategory.SCENE, "Scene contains no geometry elements")

    for i, element in enumerate(scene.elements):
        if isinstance(element, (Mesh, PointCloud, Polyline)):
            _check_positions(findings, scene, i, element)
        elif isinstance(element, AxisBundle):
            _check_axes(findings, scene, i, element)
        else:
            raise TypeError(f"Unsupported scene element: {type(element).__name__}")

    counts = metadata.primitive_counts
    findings.note(
        f"Scene contains {counts.meshes} meshes ({counts.total_triangles} triangles), "
        f"{counts.point_clouds} point clouds, {counts.polylines} polylines"
    )


# ============================================================================
# CAMERA
# ============================================================================

def check_camera_invariants(findings: FindingsBuilder, scene: Scene, geometry: GeometryProbes) -> None:
    camera = scene.camera

    if camera.distance_to_target() < DEGENERATE_VIEW_DISTANCE:
        findings.error(InvariantCategory.CAMERA, "Camera position equals target (degenerate view)")

    if camera.near >= camera.far:
        findings.error(InvariantCategory.CAMERA, f"Camera near ({camera.near:g}) >= far ({camera.far:g})")

    if camera.near <= 0.0:
        findings.error(InvariantCategory.CAMERA, f"Camera near plane ({camera.near:g}) must be positive")

    if not geometry.geometry_visible:
        findings.warning(
            InvariantCategory.CAMERA,
            "No geometry visible in view frustum (everything clipped or outside view)",
        )

    if geometry.has_invalid_values:
        findings.error(InvariantCategory.CAMERA, "NaN or Inf detected in projected coordinates")

    far_pct = geometry.depth_stats.far_plane_percentage
    if far_pct > FULL_COVERAGE_PERCENT:
        findings.warning(
            InvariantCategory.CAMERA,
            f"{far_pct:.1f}% of pixels at far plane (scene may be empty or camera misaligned)",
        )


# ============================================================================
# GEOMETRY
# ============================================================================

def check_geometry_invariants(findings: FindingsBuilder, geometry: GeometryProbes,
                              metadata: RenderMetadata) -> None:
    if geometry.degenerate_count > 0:
        findings.warning(
            InvariantCategory.GEOMETRY,
            f"{geometry.degenerate_count} degenerate primitives detected (zero-area triangles, etc.)",
        )

    if geometry.clipped_count > 0:
        total = metadata.primitive_counts.total_triangles
        pct = geometry.clipped_count / total * 100.0 if total > 0 else 0.0
        if pct > CLIPPED_WARNING_PERCENT:
            findings.warning(
                InvariantCategory.GEOMETRY,
                f"{geometry.clipped_count} primitives clipped ({pct:.1f}% of total) "
                f"- consider adjusting camera planes",
            )
        else:
            findings.note(f"{geometry.clipped_count} primitives clipped by near/far planes")

    if geometry.backface_count > 0:
        findings.note(f"{geometry.backface_count} back-facing triangles culled")


# ============================================================================
# RENDER
# ============================================================================

def check_render_invariants(findings: FindingsBuilder, image: ImageMetrics,
                            metadata: RenderMetadata) -> None:
    width, height = metadata.resolution
    if width == 0 or height == 0:
        findings.error(InvariantCategory.RENDER, f"Invalid resolution: {width}x{height}")

    if image.transparent_percentage > FULL_COVERAGE_PERCENT:
        findings.warning(
            InvariantCategory.RENDER,
            f"{image.transparent_percentage:.1f}% transparent pixels - render may have failed",
        )

    if image.background_percentage > FULL_COVERAGE_PERCENT:
        findings.warning(
            InvariantCategory.RENDER,
            f"{image.background_percentage:.1f}% of image is background color "
            f"- scene may be empty or not visible",
        )

    if image.edge_density < FLAT_EDGE_DENSITY and image.background_percentage < 100.0:
        findings.note("Very low edge density - image may be mostly flat colors")

    if image.connected_components > 0:
        findings.note(f"{image.connected_components} distinct regions detected in rendered image")


# ============================================================================
# ENTRY POINT
# ============================================================================

def check_all_invariants(
    scene: Scene,
    metadata: RenderMetadata,
    geometry: GeometryProbes,
    image: ImageMetrics,
) -> InvariantResults:
    """Run every rule category and fold the findings into one result.

    Parameters
    ----------
    scene : Scene
        Rendered scene (read only).
    metadata : RenderMetadata
        From ``build_render_metadata``.
    geometry : GeometryProbes
        From ``compute_geometry_probes`` or supplied by the renderer.
    image : ImageMetrics
        From ``compute_image_metrics``.

    Returns
    -------
    InvariantResults
        ``overall`` is Fail iff any error, PassWithWarnings iff only warnings.
    """
    findings = FindingsBuilder()
    check_scene_invariants(findings, scene, metadata)
    check_camera_invariants(findings, scene, geometry)
    check_geometry_invariants(findings, geometry, metadata)
    check_render_invariants(findings, image, metadata)

    results = findings.build()
    logger.debug(
        "Invariants: %s (%d errors, %d warnings, %d notes)",
        results.overall.value, len(results.errors), len(results.warnings), len(results.notes),
    )
    return results
