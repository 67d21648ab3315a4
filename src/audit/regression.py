"""Regression comparator for audit bundles.

Compares a baseline bundle against a current one.  Hard rules set
``matches = False``; soft rules only add a note:
    - triangle count changed                         (hard)
    - |Δ mean depth| > depth_tolerance               (hard)
    - histogram drift > histogram_tolerance          (hard)
    - |Δ background %| > background_tolerance        (hard)
    - |Δ edge density| > edge_density_tolerance      (soft)
    - backend identifiers differ                     (soft)

Comparing a bundle with itself always matches with no differences.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..utils.validators import RegressionToleranceV1
from .bundle import AuditBundle, ColorHistogram

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegressionTolerance:
    """Named thresholds for :func:`compare_for_regression`.

    Attributes
    ----------
    depth_tolerance : float
        Max absolute change of mean NDC depth.
    histogram_tolerance : float
        Max histogram drift as a fraction of baseline RGB counts.
    edge_density_tolerance : float
        Edge density change that earns a note.
    background_tolerance : float
        Max change of background coverage, in percentage points.
    """
    depth_tolerance: float = 0.01
    histogram_tolerance: float = 0.05
    edge_density_tolerance: float = 0.1
    background_tolerance: float = 5.0

    @classmethod
    def from_config(cls, cfg: RegressionToleranceV1) -> "RegressionTolerance":
        return cls(
            depth_tolerance=cfg.depth_tolerance,
            histogram_tolerance=cfg.histogram_tolerance,
            edge_density_tolerance=cfg.edge_density_tolerance,
            background_tolerance=cfg.background_tolerance,
        )


@dataclass
class RegressionResult:
    matches: bool = True
    differences: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    def report(self) -> str:
        """Multi-line text for CLI output."""
        lines = ["MATCH" if self.matches else "MISMATCH"]
        lines.extend(f"  difference: {d}" for d in self.differences)
        lines.extend(f"  note: {n}" for n in self.notes)
        return "\n".join(lines)


def histogram_difference(baseline: ColorHistogram, current: ColorHistogram) -> float:
    """Drift between two histograms over the RGB channels.

    ``Σ|Δr| + |Δg| + |Δb|`` over all bins divided by the baseline's total
    RGB count; 0 when the baseline is empty.  Alpha is ignored.
    """
    total = sum(baseline.red) + sum(baseline.green) + sum(baseline.blue)
    if total == 0:
        return 0.0

    diff = 0
    for base_channel, cur_channel in ((baseline.red, current.red),
                                      (baseline.green, current.green),
                                      (baseline.blue, current.blue)):
        diff += sum(abs(b - c) for b, c in zip(base_channel, cur_channel))
    return diff / total


def compare_for_regression(
    baseline: AuditBundle,
    current: AuditBundle,
    tolerance: Optional[RegressionTolerance] = None,
) -> RegressionResult:
    """Decide whether ``current`` regressed against ``baseline``.

    Parameters
    ----------
    baseline, current : AuditBundle
        Bundles to compare (read only).
    tolerance : RegressionTolerance, optional
        Thresholds; defaults apply when omitted.

    Returns
    -------
    RegressionResult
        ``differences`` lists every hard rule that fired; ``notes`` lists
        soft findings.
    """
    tol = tolerance or RegressionTolerance()
    result = RegressionResult()

    base_tris = baseline.metadata.primitive_counts.total_triangles
    cur_tris = current.metadata.primitive_counts.total_triangles
    if base_tris != cur_tris:
        result.matches = False
        result.differences.append(f"Triangle count changed: {base_tris} -> {cur_tris}")

    base_depth = baseline.geometry.depth_stats.mean
    cur_depth = current.geometry.depth_stats.mean
    depth_diff = abs(base_depth - cur_depth)
    if depth_diff > tol.depth_tolerance:
        result.matches = False
        result.differences.append(
            f"Mean depth changed beyond tolerance: {base_depth:.4f} -> {cur_depth:.4f} "
            f"(diff: {depth_diff:.4f}, tolerance: {tol.depth_tolerance:.4f})"
        )

    drift = histogram_difference(baseline.image_metrics.histogram, current.image_metrics.histogram)
    if drift > tol.histogram_tolerance:
        result.matches = False
        result.differences.append(
            f"Color histogram drift: {drift * 100.0:.2f}% "
            f"(tolerance: {tol.histogram_tolerance * 100.0:.2f}%)"
        )

    base_edges = baseline.image_metrics.edge_density
    cur_edges = current.image_metrics.edge_density
    if abs(base_edges - cur_edges) > tol.edge_density_tolerance:
        result.notes.append(f"Edge density changed: {base_edges:.4f} -> {cur_edges:.4f}")

    base_bg = baseline.image_metrics.background_percentage
    cur_bg = current.image_metrics.background_percentage
    if abs(base_bg - cur_bg) > tol.background_tolerance:
        result.matches = False
        result.differences.append(f"Background percentage changed: {base_bg:.1f}% -> {cur_bg:.1f}%")

    if baseline.metadata.backend != current.metadata.backend:
        result.notes.append(
            f"Different GPU backend: {baseline.metadata.backend} vs {current.metadata.backend}"
        )

    logger.debug(
        "Regression: matches=%s differences=%d notes=%d",
        result.matches, len(result.differences), len(result.notes),
    )
    return result
