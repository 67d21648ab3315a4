"""Test the end-to-end audit pipeline.

Tests for src.audit.pipeline.audit_render():
    - Clean triangle render passes with no errors or warnings
    - Inputs are not modified
    - Renderer-supplied probes are used as-is
    - One INFO summary line per audit
    - Degenerate input (NaN scene, 0×0 frame) yields Fail, never raises,
      and the bundle still round-trips through JSON

Scenario (64×64 black frame, white 16×16 square, CCW triangle):
    - overall Pass, 1 connected component, 93.75% background

Run:
    pytest tests/test_pipeline.py -v
"""

import logging

import numpy as np

from src.audit import (
    AuditBundle,
    GeometryProbes,
    InvariantCategory,
    OverallStatus,
    audit_render,
)
from src.scene import Mesh, Scene


def test_clean_render_passes(bundle):
    assert bundle.invariants.overall is OverallStatus.PASS
    assert bundle.invariants.errors == ()
    assert bundle.invariants.warnings == ()
    assert bundle.metadata.resolution == (64, 64)
    assert bundle.metadata.backend == "Vulkan"
    assert bundle.image_metrics.connected_components == 1
    assert bundle.image_metrics.background_percentage == 93.75
    assert bundle.geometry.geometry_visible is True


def test_inputs_are_not_modified(triangle_scene, rendered_frame, black):
    frame = np.frombuffer(rendered_frame, dtype=np.uint8).copy()
    before = frame.copy()
    scene_json = triangle_scene.to_json()

    audit_render(triangle_scene, frame, 64, 64, black)

    assert np.array_equal(frame, before)
    assert triangle_scene.to_json() == scene_json


def test_supplied_probes_are_used(triangle_scene, rendered_frame, black):
    probes = GeometryProbes(geometry_visible=True, degenerate_count=2)

    bundle = audit_render(triangle_scene, rendered_frame, 64, 64, black, probes=probes)

    assert bundle.geometry == probes
    assert bundle.invariants.overall is OverallStatus.PASS_WITH_WARNINGS
    assert bundle.invariants.warnings[0].category is InvariantCategory.GEOMETRY


def test_depth_buffer_feeds_depth_stats(triangle_scene, rendered_frame, black):
    depth = np.full((64, 64), 1.0, dtype=np.float32)
    depth[24:40, 24:40] = 0.5

    bundle = audit_render(triangle_scene, rendered_frame, 64, 64, black, depth_buffer=depth)

    assert bundle.geometry.depth_stats.mean == 0.5
    assert bundle.geometry.depth_stats.far_plane_percentage == 93.75


def test_summary_logged_at_info(caplog, triangle_scene, rendered_frame, black):
    caplog.set_level(logging.INFO, logger="src.audit")

    audit_render(triangle_scene, rendered_frame, 64, 64, black, backend="Metal")

    summaries = [r for r in caplog.records if r.name == "src.audit.pipeline" and r.levelno == logging.INFO]
    assert len(summaries) == 1
    assert summaries[0].getMessage().startswith("Audit Metal: Pass")


def test_degenerate_input_fails_without_raising(camera, bounds, black):
    nan_scene = Scene(camera=camera, bounds=bounds,
                      elements=(Mesh(positions=(float('nan'),) * 9, indices=(0, 1, 2)),))

    bundle = audit_render(nan_scene, b"", 0, 0, black)

    assert bundle.invariants.overall is OverallStatus.FAIL
    messages = [v.message for v in bundle.invariants.errors]
    assert "Mesh 0 contains NaN or Inf vertex positions" in messages
    assert "Invalid resolution: 0x0" in messages

    text = bundle.to_json()
    assert AuditBundle.from_json(text).to_json() == text
