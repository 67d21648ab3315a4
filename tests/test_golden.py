"""Test the golden-image protocol.

Tests for src.audit.golden:
    - pixels_similar(): per-channel tolerance (inclusive), pixel budget,
      alpha ignored, size mismatch
    - GoldenStore.check(): record on first run, match on identical frame,
      mismatch on changed pixels / resolution / bundle regression
    - Case names must be plain file stems

Run:
    pytest tests/test_golden.py -v
"""

import numpy as np
import pytest

from src.audit import GoldenStatus, GoldenStore, PrimitiveCounts, pixels_similar
from src.audit.golden import count_divergent_pixels
from src.utils import validators

pytestmark = pytest.mark.golden


def frame_with_changes(width, height, changes):
    """Opaque black frame with ``(index, rgb)`` pixel overrides."""
    img = np.zeros((width * height, 4), dtype=np.uint8)
    img[:, 3] = 255
    for index, rgb in changes:
        img[index, :3] = rgb
    return img.tobytes()


# ============================================================================
# PIXEL SIMILARITY
# ============================================================================

def test_identical_frames_are_similar():
    frame = frame_with_changes(10, 10, [])
    assert pixels_similar(frame, frame)


def test_channel_tolerance_is_inclusive():
    base = frame_with_changes(10, 10, [])
    within = frame_with_changes(10, 10, [(i, (5, 5, 5)) for i in range(100)])
    beyond = frame_with_changes(10, 10, [(i, (6, 0, 0)) for i in range(100)])

    assert pixels_similar(base, within)
    assert not pixels_similar(base, beyond)


def test_divergent_pixel_budget():
    base = frame_with_changes(10, 10, [])
    # budget = int(100 * 0.01) = 1 pixel
    one = frame_with_changes(10, 10, [(0, (255, 255, 255))])
    two = frame_with_changes(10, 10, [(0, (255, 255, 255)), (1, (255, 255, 255))])

    assert pixels_similar(base, one)
    assert not pixels_similar(base, two)
    assert count_divergent_pixels(base, two) == 2


def test_alpha_is_not_compared():
    opaque = frame_with_changes(4, 4, [])
    clear = np.frombuffer(opaque, dtype=np.uint8).copy()
    clear[3::4] = 0
    assert pixels_similar(opaque, clear.tobytes(), max_diff_fraction=0.0)


def test_size_mismatch_never_similar():
    assert not pixels_similar(frame_with_changes(4, 4, []), frame_with_changes(4, 5, []))


# ============================================================================
# GOLDEN STORE
# ============================================================================

@pytest.fixture
def store(tmp_path):
    return GoldenStore(tmp_path / "golden")


def test_first_run_records(store, rendered_frame, bundle):
    outcome = store.check("triangle", rendered_frame, 64, 64, bundle=bundle)

    assert outcome.status is GoldenStatus.RECORDED
    assert outcome.ok
    assert store.image_path("triangle").exists()
    assert store.bundle_path("triangle").exists()


def test_second_run_matches(store, rendered_frame, bundle):
    store.check("triangle", rendered_frame, 64, 64, bundle=bundle)
    outcome = store.check("triangle", rendered_frame, 64, 64, bundle=bundle)

    assert outcome.status is GoldenStatus.MATCHED
    assert outcome.divergent_pixels == 0
    assert outcome.regression.matches
    assert outcome.reasons == []


def test_changed_pixels_mismatch(store, rendered_frame, block_frame):
    store.check("triangle", rendered_frame, 64, 64)
    moved = block_frame(64, 64, [(0, 0, 16, 16)])

    outcome = store.check("triangle", moved, 64, 64)

    assert outcome.status is GoldenStatus.MISMATCHED
    assert not outcome.ok
    assert outcome.divergent_pixels == 2 * 16 * 16
    assert "pixels differ by more than 5" in outcome.reasons[0]


def test_resolution_change_mismatch(store, rendered_frame, block_frame):
    store.check("triangle", rendered_frame, 64, 64)
    outcome = store.check("triangle", block_frame(32, 32, []), 32, 32)

    assert outcome.status is GoldenStatus.MISMATCHED
    assert outcome.reasons == ["Resolution changed: 64x64 -> 32x32"]


def test_bundle_regression_mismatch(store, rendered_frame, bundle):
    store.check("triangle", rendered_frame, 64, 64, bundle=bundle)
    counts = PrimitiveCounts(meshes=1, total_triangles=2, total_vertices=4)
    changed = bundle.model_copy(
        update={"metadata": bundle.metadata.model_copy(update={"primitive_counts": counts})}
    )

    outcome = store.check("triangle", rendered_frame, 64, 64, bundle=changed)

    assert outcome.status is GoldenStatus.MISMATCHED
    assert outcome.reasons == ["Triangle count changed: 1 -> 2"]


def test_missing_reference_bundle_is_recorded(store, rendered_frame, bundle):
    store.check("triangle", rendered_frame, 64, 64)
    outcome = store.check("triangle", rendered_frame, 64, 64, bundle=bundle)

    assert outcome.status is GoldenStatus.MATCHED
    assert outcome.regression is None
    assert store.bundle_path("triangle").exists()


@pytest.mark.parametrize("name", ["../escape", "a/b", "", "spaced name"])
def test_bad_case_names_rejected(store, rendered_frame, name):
    with pytest.raises(ValueError, match="Golden case name"):
        store.check(name, rendered_frame, 64, 64)


def test_store_from_config(tmp_path):
    cfg = validators.default_audit_config()
    store = GoldenStore.from_config(cfg, root=tmp_path)

    assert store.root == tmp_path
    assert store.pixel_tolerance == 5
    assert store.max_diff_fraction == 0.01
    assert store.regression_tolerance.depth_tolerance == 0.01
