"""Audit pipeline: one call from a finished render to an AuditBundle.

Steps run strictly in order on read-only inputs:
    metadata → image metrics → geometry probes → invariants → assembly

The returned bundle shares no mutable state with its inputs, so callers
may audit unrelated renders in parallel.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from ..scene import Scene
from .bundle import AuditBundle, GeometryProbes, Severity
from .invariants import check_all_invariants
from .metadata import build_render_metadata
from .metrics import PixelBuffer, compute_image_metrics
from .probes import compute_geometry_probes

logger = logging.getLogger(__name__)


def audit_render(
    scene: Scene,
    pixels: PixelBuffer,
    width: int,
    height: int,
    background: Sequence[float],
    backend: str = "unknown",
    adapter: str = "unknown",
    *,
    renderer_version: Optional[str] = None,
    depth_buffer: Optional[np.ndarray] = None,
    probes: Optional[GeometryProbes] = None,
) -> AuditBundle:
    """Audit one completed render.

    Parameters
    ----------
    scene : Scene
        Scene that was rendered.
    pixels : bytes-like or np.ndarray
        Row-major RGBA8 frame of ``width * height * 4`` bytes.
    width, height : int
        Frame size in pixels.
    background : Sequence[float]
        Clear colour RGBA in [0, 1].
    backend, adapter : str
        Device identifiers (informational).
    renderer_version : str, optional
        Recorded in the metadata; package default if omitted.
    depth_buffer : np.ndarray, optional
        Per-pixel depth used for depth statistics when probes are computed here.
    probes : GeometryProbes, optional
        Probes supplied by the renderer; used as-is instead of projecting.

    Returns
    -------
    AuditBundle
        Never raises for degenerate scenes; problems show up as findings.

    Examples
    --------
    >>> bundle = audit_render(scene, pixels, 64, 64, (0.0, 0.0, 0.0, 1.0))
    >>> bundle.invariants.overall.value
    'Pass'
    """
    metadata = build_render_metadata(
        scene, width, height, backend, adapter, renderer_version=renderer_version
    )
    image_metrics = compute_image_metrics(pixels, width, height, background)
    if probes is None:
        probes = compute_geometry_probes(scene, width, height, depth_buffer=depth_buffer)
    invariants = check_all_invariants(scene, metadata, probes, image_metrics)

    bundle = AuditBundle(
        metadata=metadata,
        geometry=probes,
        image_metrics=image_metrics,
        invariants=invariants,
    )

    logger.info(
        "Audit %s: %s (%d errors, %d warnings) scene=%s… %dx%d",
        backend,
        invariants.overall.value,
        len(invariants.errors),
        len(invariants.warnings),
        metadata.scene_hash[:12],
        width,
        height,
    )
    for violation in invariants.errors:
        logger.debug("[%s] %s: %s", Severity.ERROR.value, violation.category.value, violation.message)
    for violation in invariants.warnings:
        logger.debug("[%s] %s: %s", Severity.WARNING.value, violation.category.value, violation.message)
    for note in invariants.notes:
        logger.debug("[%s] %s", Severity.NOTE.value, note)

    return bundle
