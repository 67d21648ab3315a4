"""Test the regression comparator.

Tests for src.audit.regression:
    - Reflexive: a bundle always matches itself with no differences
    - Triangle count change always fails, whatever the tolerances
    - Depth, histogram and background drift are hard failures
    - Edge density and backend changes are notes only
    - Histogram drift formula and empty-baseline guard
    - Tolerances from the audit config

Run:
    pytest tests/test_regression.py -v
"""

import pytest

from src.audit import (
    ColorHistogram,
    PrimitiveCounts,
    RegressionTolerance,
    compare_for_regression,
    histogram_difference,
)
from src.audit.bundle import DepthStats
from src.utils import validators


def with_metadata(bundle, **updates):
    return bundle.model_copy(update={"metadata": bundle.metadata.model_copy(update=updates)})


def with_image(bundle, **updates):
    return bundle.model_copy(update={"image_metrics": bundle.image_metrics.model_copy(update=updates)})


def with_depth_mean(bundle, mean):
    depth = DepthStats(min=mean, max=mean, mean=mean, far_plane_percentage=0.0)
    return bundle.model_copy(update={"geometry": bundle.geometry.model_copy(update={"depth_stats": depth})})


def hist(red, green=None, blue=None):
    zeros = (0,) * 16
    return ColorHistogram(red=red, green=green or red, blue=blue or red, alpha=zeros)


# ============================================================================
# PROPERTIES
# ============================================================================

def test_comparison_is_reflexive(bundle):
    result = compare_for_regression(bundle, bundle)

    assert result.matches is True
    assert result.differences == []


def test_reflexive_with_nan_depth(bundle):
    nan_bundle = with_depth_mean(bundle, float('nan'))
    assert compare_for_regression(nan_bundle, nan_bundle).matches is True


def test_triangle_count_change_always_fails(bundle):
    other = with_metadata(bundle, primitive_counts=PrimitiveCounts(meshes=1, total_triangles=2))
    loose = RegressionTolerance(1e9, 1e9, 1e9, 1e9)

    result = compare_for_regression(bundle, other, loose)

    assert result.matches is False
    assert result.differences == ["Triangle count changed: 1 -> 2"]


# ============================================================================
# HARD RULES
# ============================================================================

def test_depth_mean_beyond_tolerance(bundle):
    result = compare_for_regression(with_depth_mean(bundle, 0.5), with_depth_mean(bundle, 0.52))

    assert result.matches is False
    assert result.differences[0].startswith("Mean depth changed beyond tolerance: 0.5000 -> 0.5200")


def test_depth_mean_within_tolerance(bundle):
    result = compare_for_regression(with_depth_mean(bundle, 0.5), with_depth_mean(bundle, 0.505))
    assert result.matches is True


def test_histogram_drift_fails(bundle):
    base = with_image(bundle, histogram=hist((10,) + (0,) * 15))
    moved = with_image(bundle, histogram=hist((0,) * 15 + (10,), (10,) + (0,) * 15, (10,) + (0,) * 15))

    result = compare_for_regression(base, moved)

    assert result.matches is False
    assert any(d.startswith("Color histogram drift: 66.67%") for d in result.differences)


def test_background_change_fails(bundle):
    result = compare_for_regression(
        with_image(bundle, background_percentage=10.0),
        with_image(bundle, background_percentage=20.0),
    )

    assert result.matches is False
    assert "Background percentage changed: 10.0% -> 20.0%" in result.differences


# ============================================================================
# SOFT RULES
# ============================================================================

def test_edge_density_change_is_note_only(bundle):
    result = compare_for_regression(with_image(bundle, edge_density=0.1), with_image(bundle, edge_density=0.6))

    assert result.matches is True
    assert result.differences == []
    assert result.notes == ["Edge density changed: 0.1000 -> 0.6000"]


def test_backend_difference_is_note_only(bundle):
    result = compare_for_regression(bundle, with_metadata(bundle, backend="Metal"))

    assert result.matches is True
    assert result.notes == ["Different GPU backend: Vulkan vs Metal"]


def test_report_lists_differences_and_notes(bundle):
    other = with_metadata(bundle, backend="Metal",
                          primitive_counts=PrimitiveCounts(meshes=1, total_triangles=5))
    report = compare_for_regression(bundle, other).report()

    assert report.splitlines()[0] == "MISMATCH"
    assert "  difference: Triangle count changed: 1 -> 5" in report
    assert "  note: Different GPU backend: Vulkan vs Metal" in report


# ============================================================================
# HISTOGRAM DRIFT
# ============================================================================

def test_histogram_difference_formula():
    base = hist((10,) + (0,) * 15)
    current = hist((0,) * 15 + (10,), (10,) + (0,) * 15, (10,) + (0,) * 15)

    # |Δred| = 10 + 10 over 30 baseline RGB counts
    assert histogram_difference(base, current) == pytest.approx(20 / 30)


def test_histogram_difference_ignores_alpha():
    base = ColorHistogram(red=(1,) * 16, green=(1,) * 16, blue=(1,) * 16, alpha=(0,) * 16)
    current = ColorHistogram(red=(1,) * 16, green=(1,) * 16, blue=(1,) * 16, alpha=(5,) * 16)
    assert histogram_difference(base, current) == 0.0


def test_histogram_difference_empty_baseline():
    assert histogram_difference(ColorHistogram.empty(), hist((3,) * 16)) == 0.0


# ============================================================================
# CONFIG
# ============================================================================

def test_default_tolerances_match_config_defaults():
    cfg = validators.default_audit_config()
    assert RegressionTolerance.from_config(cfg.regression) == RegressionTolerance()
    assert RegressionTolerance() == RegressionTolerance(0.01, 0.05, 0.1, 5.0)
