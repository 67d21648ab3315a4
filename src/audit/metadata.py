"""Render metadata builder.

Structural facts about a render request, independent of the pixels:
resolution, camera summary, world bounds, primitive counts and a content
hash of the scene.  Never validates: a scene full of NaNs or with no
elements still yields complete metadata, and the invariant checker decides
what is wrong with it.
"""

import logging
from typing import Optional

from ..scene import SCENE_SCHEMA_VERSION, Mesh, PointCloud, Polyline, Scene, iter_primitives
from ..utils import hashing
from .bundle import BoundsSummary, CameraSummary, PrimitiveCounts, RenderMetadata

logger = logging.getLogger(__name__)

RENDERER_VERSION = "0.1.0"


def scene_hash(scene: Scene) -> str:
    """SHA-256 of the canonical scene encoding.

    Element order is part of the encoding, so reordering elements changes
    the hash.  Used as an identity hint between runs.
    """
    return hashing.hash_dict(scene.to_dict())


def count_primitives(scene: Scene) -> PrimitiveCounts:
    """Count drawable primitives with axis bundles expanded to polylines."""
    meshes = triangles = vertices = 0
    point_clouds = points = 0
    polylines = segments = 0

    for _index, primitive in iter_primitives(scene):
        if isinstance(primitive, Mesh):
            meshes += 1
            triangles += primitive.triangle_count
            vertices += primitive.vertex_count
        elif isinstance(primitive, PointCloud):
            point_clouds += 1
            points += primitive.point_count
        elif isinstance(primitive, Polyline):
            polylines += 1
            segments += primitive.segment_count
        else:
            raise TypeError(f"Unsupported primitive: {type(primitive).__name__}")

    return PrimitiveCounts(
        meshes=meshes,
        total_triangles=triangles,
        total_vertices=vertices,
        point_clouds=point_clouds,
        total_points=points,
        polylines=polylines,
        total_line_segments=segments,
    )


def summarize_camera(scene: Scene) -> CameraSummary:
    camera = scene.camera
    return CameraSummary(
        projection=camera.projection.value,
        position=camera.position,
        target=camera.target,
        near=camera.near,
        far=camera.far,
        fov_or_height=camera.fov_or_height,
    )


def build_render_metadata(
    scene: Scene,
    width: int,
    height: int,
    backend: str,
    adapter: str,
    renderer_version: Optional[str] = None,
    schema_version: str = SCENE_SCHEMA_VERSION,
) -> RenderMetadata:
    """Assemble :class:`RenderMetadata` for one render.

    Parameters
    ----------
    scene : Scene
        Scene that was rendered (read only).
    width, height : int
        Render resolution in pixels; zero is allowed and reported later.
    backend, adapter : str
        Free-text device identifiers; informational only.
    renderer_version : str, optional
        Defaults to this package's renderer version.
    schema_version : str
        Scene schema identifier, constant per release.

    Returns
    -------
    RenderMetadata
    """
    metadata = RenderMetadata(
        scene_hash=scene_hash(scene),
        schema_version=schema_version,
        renderer_version=renderer_version or RENDERER_VERSION,
        backend=backend,
        adapter=adapter,
        resolution=(int(width), int(height)),
        camera=summarize_camera(scene),
        world_bounds=BoundsSummary.from_min_max(scene.bounds.min, scene.bounds.max),
        primitive_counts=count_primitives(scene),
    )
    logger.debug(
        "Metadata: scene_hash=%s… resolution=%dx%d triangles=%d",
        metadata.scene_hash[:12], width, height, metadata.primitive_counts.total_triangles,
    )
    return metadata
