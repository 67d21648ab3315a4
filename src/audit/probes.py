"""Geometry probe collector.

Projects every primitive of a scene through the camera and records numeric
facts about the result:
    - has_invalid_values: NaN/Inf in clip coordinates, or in the NDC of a
      vertex in front of the camera (a vertex on the camera plane, w == 0,
      counts as clipped instead)
    - ndc_bounds: box of NDC coordinates of vertices in front of the camera
    - geometry_visible: some primitive's NDC box overlaps the clip volume
    - degenerate_count: bad triangle indices, zero-area triangles,
      zero-length polyline segments
    - clipped_count: triangles crossing the camera plane or the depth range
    - backface_count: clockwise triangles (counter-clockwise faces the camera)
    - depth_stats: from the depth buffer if one is given, else from vertices

Clip volume follows the renderer: x, y in [-1, 1], depth in [0, 1].
Nothing here raises on NaN, Inf or empty geometry; such input yields
probes with ``has_invalid_values`` or ``geometry_visible`` set accordingly.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from ..scene import Mesh, PointCloud, Polyline, Scene, iter_primitives
from .bundle import BoundsSummary, DepthStats, GeometryProbes

logger = logging.getLogger(__name__)

DEGENERATE_EPSILON = 1e-12


@dataclass
class _Projected:
    """Clip and NDC coordinates of one primitive's vertices."""
    clip: np.ndarray
    ndc: np.ndarray
    finite: np.ndarray
    front: np.ndarray


@dataclass
class _ProbeAccumulator:
    """Running totals for one ``compute_geometry_probes`` call."""
    invalid: bool = False
    visible: bool = False
    degenerate: int = 0
    clipped: int = 0
    backface: int = 0
    front_ndc: List[np.ndarray] = field(default_factory=list)
    depths: List[np.ndarray] = field(default_factory=list)


def _project(positions: np.ndarray, view_proj: np.ndarray) -> _Projected:
    homogeneous = np.concatenate([positions, np.ones((positions.shape[0], 1))], axis=1)
    with np.errstate(all='ignore'):
        clip = homogeneous @ view_proj.T
        w = clip[:, 3]
        ndc = clip[:, :3] / w[:, None]
    finite = np.all(np.isfinite(clip), axis=1)
    front = finite & (w > 0.0)
    return _Projected(clip=clip, ndc=ndc, finite=finite, front=front)


def _in_clip_volume(ndc: np.ndarray) -> np.ndarray:
    return (
        (np.abs(ndc[:, 0]) <= 1.0)
        & (np.abs(ndc[:, 1]) <= 1.0)
        & (ndc[:, 2] >= 0.0)
        & (ndc[:, 2] <= 1.0)
    )


def _box_overlaps_clip_volume(ndc: np.ndarray) -> bool:
    lo = ndc.min(axis=0)
    hi = ndc.max(axis=0)
    return bool(
        lo[0] <= 1.0 and hi[0] >= -1.0
        and lo[1] <= 1.0 and hi[1] >= -1.0
        and lo[2] <= 1.0 and hi[2] >= 0.0
    )


def _probe_vertices(acc: _ProbeAccumulator, proj: _Projected) -> None:
    """Checks shared by every primitive kind."""
    front_ndc = proj.ndc[proj.front]
    if not np.all(proj.finite) or not np.all(np.isfinite(front_ndc)):
        acc.invalid = True

    front_ndc = front_ndc[np.all(np.isfinite(front_ndc), axis=1)]
    if front_ndc.shape[0] == 0:
        return

    acc.front_ndc.append(front_ndc)
    if _box_overlaps_clip_volume(front_ndc):
        acc.visible = True
    acc.depths.append(front_ndc[_in_clip_volume(front_ndc), 2])


def _probe_triangles(acc: _ProbeAccumulator, mesh: Mesh, positions: np.ndarray, proj: _Projected) -> None:
    tris = mesh.triangles_array()
    if tris.shape[0] == 0:
        return

    n = positions.shape[0]
    in_range = np.all((tris >= 0) & (tris < n), axis=1)
    acc.degenerate += int(np.count_nonzero(~in_range))
    tris = tris[in_range]
    if tris.shape[0] == 0:
        return

    corners = positions[tris]
    with np.errstate(all='ignore'):
        normal = np.cross(corners[:, 1] - corners[:, 0], corners[:, 2] - corners[:, 0])
        area2 = np.linalg.norm(normal, axis=1)
    acc.degenerate += int(np.count_nonzero(np.isfinite(area2) & (area2 <= DEGENERATE_EPSILON)))

    w = proj.clip[:, 3]
    depth = proj.ndc[:, 2]
    behind = proj.finite & (w <= 0.0)
    with np.errstate(invalid='ignore'):
        outside_depth = proj.front & ((depth < 0.0) | (depth > 1.0))
    acc.clipped += int(np.count_nonzero(np.any((behind | outside_depth)[tris], axis=1)))

    all_front = np.all(proj.front[tris], axis=1)
    screen = proj.ndc[tris][all_front]
    if screen.shape[0] == 0:
        return
    with np.errstate(all='ignore'):
        signed = (
            (screen[:, 1, 0] - screen[:, 0, 0]) * (screen[:, 2, 1] - screen[:, 0, 1])
            - (screen[:, 2, 0] - screen[:, 0, 0]) * (screen[:, 1, 1] - screen[:, 0, 1])
        )
    acc.backface += int(np.count_nonzero(signed < 0.0))


def _probe_segments(acc: _ProbeAccumulator, positions: np.ndarray) -> None:
    if positions.shape[0] < 2:
        return
    with np.errstate(all='ignore'):
        lengths = np.linalg.norm(np.diff(positions, axis=0), axis=1)
    acc.degenerate += int(np.count_nonzero(np.isfinite(lengths) & (lengths <= DEGENERATE_EPSILON)))


def _depth_stats_from_buffer(depth_buffer: np.ndarray) -> DepthStats:
    depth = np.asarray(depth_buffer, dtype=np.float64).reshape(-1)
    if depth.size == 0:
        return DepthStats()

    covered = depth[depth < 1.0]
    far_pct = float(np.count_nonzero(depth >= 1.0)) / depth.size * 100.0
    if covered.size == 0:
        return DepthStats(far_plane_percentage=far_pct)
    return DepthStats(
        min=float(covered.min()),
        max=float(covered.max()),
        mean=float(covered.mean()),
        far_plane_percentage=far_pct,
    )


def _depth_stats_from_vertices(depths: List[np.ndarray], visible: bool) -> DepthStats:
    far_pct = 0.0 if visible else 100.0
    samples = np.concatenate(depths) if depths else np.empty(0)
    if samples.size == 0:
        return DepthStats(far_plane_percentage=far_pct)
    return DepthStats(
        min=float(samples.min()),
        max=float(samples.max()),
        mean=float(samples.mean()),
        far_plane_percentage=far_pct,
    )


def compute_geometry_probes(
    scene: Scene,
    width: int,
    height: int,
    depth_buffer: Optional[np.ndarray] = None,
) -> GeometryProbes:
    """Project the scene and collect :class:`GeometryProbes`.

    Parameters
    ----------
    scene : Scene
        Scene to project (read only); axis bundles are expanded.
    width, height : int
        Render size; only the aspect ratio is used (1.0 if height is 0).
    depth_buffer : np.ndarray, optional
        Per-pixel NDC depth in [0, 1] with 1.0 at the far plane.  When given,
        depth statistics come from it instead of from vertex depths.

    Returns
    -------
    GeometryProbes
    """
    aspect = width / height if height else 1.0
    view_proj = scene.camera.view_projection_matrix(aspect)
    acc = _ProbeAccumulator()

    for _index, primitive in iter_primitives(scene):
        positions = primitive.positions_array()
        if positions.shape[0] == 0:
            continue
        proj = _project(positions, view_proj)
        _probe_vertices(acc, proj)

        if isinstance(primitive, Mesh):
            _probe_triangles(acc, primitive, positions, proj)
        elif isinstance(primitive, Polyline):
            _probe_segments(acc, positions)
        elif isinstance(primitive, PointCloud):
            pass
        else:
            raise TypeError(f"Unsupported primitive: {type(primitive).__name__}")

    ndc_bounds = None
    if acc.front_ndc:
        all_ndc = np.concatenate(acc.front_ndc)
        ndc_bounds = BoundsSummary.from_min_max(all_ndc.min(axis=0), all_ndc.max(axis=0))

    if depth_buffer is not None:
        depth_stats = _depth_stats_from_buffer(depth_buffer)
    else:
        depth_stats = _depth_stats_from_vertices(acc.depths, acc.visible)

    probes = GeometryProbes(
        ndc_bounds=ndc_bounds,
        depth_stats=depth_stats,
        degenerate_count=acc.degenerate,
        clipped_count=acc.clipped,
        backface_count=acc.backface,
        geometry_visible=acc.visible,
        has_invalid_values=acc.invalid,
    )
    logger.debug(
        "Geometry probes: visible=%s invalid=%s degenerate=%d clipped=%d backface=%d",
        probes.geometry_visible, probes.has_invalid_values,
        probes.degenerate_count, probes.clipped_count, probes.backface_count,
    )
    return probes
