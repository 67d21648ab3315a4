"""Golden-image protocol.

The first run of a named case records its frame as ``<name>.png`` (and its
audit bundle as ``<name>.audit.json`` when one is given).  Later runs
compare against the stored reference:
    - pixels: a pixel diverges when any RGB channel differs by more than
      ``pixel_tolerance``; the case passes while divergent pixels stay
      within ``max_diff_fraction`` of the frame
    - bundles: the regression comparator, when both bundles exist

References are written atomically, so an interrupted run never leaves a
half-written golden file behind.

Usage:
    store = GoldenStore("ci/golden")
    outcome = store.check("cube", pixels, 256, 256, bundle=bundle)
    assert outcome.status is not GoldenStatus.MISMATCHED, outcome.reasons
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

import numpy as np

from ..utils import fs, hashing
from ..utils.validators import AuditConfigV1
from .bundle import AuditBundle
from .metrics import PixelBuffer, as_rgba
from .regression import RegressionResult, RegressionTolerance, compare_for_regression

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


def count_divergent_pixels(a: PixelBuffer, b: PixelBuffer, tolerance: int = 5) -> int:
    """Pixels where any RGB channel differs by more than ``tolerance``."""
    rgb_a = as_rgba(a)[:, :3].astype(np.int16)
    rgb_b = as_rgba(b)[:, :3].astype(np.int16)
    return int(np.count_nonzero(np.any(np.abs(rgb_a - rgb_b) > tolerance, axis=1)))


def pixels_similar(
    a: PixelBuffer,
    b: PixelBuffer,
    tolerance: int = 5,
    max_diff_fraction: float = 0.01,
) -> bool:
    """True if two RGBA8 buffers match within the golden tolerances.

    Buffers of different length never match.  Alpha is not compared.
    """
    rgba_a, rgba_b = as_rgba(a), as_rgba(b)
    if rgba_a.shape != rgba_b.shape:
        return False
    budget = int(rgba_a.shape[0] * max_diff_fraction)
    return count_divergent_pixels(rgba_a, rgba_b, tolerance) <= budget


class GoldenStatus(str, Enum):
    RECORDED = "recorded"
    MATCHED = "matched"
    MISMATCHED = "mismatched"


@dataclass
class GoldenOutcome:
    """Result of one :meth:`GoldenStore.check` call."""
    name: str
    status: GoldenStatus
    image_path: Path
    bundle_path: Optional[Path] = None
    divergent_pixels: int = 0
    reasons: List[str] = field(default_factory=list)
    regression: Optional[RegressionResult] = None

    @property
    def ok(self) -> bool:
        return self.status is not GoldenStatus.MISMATCHED


class GoldenStore:
    """Directory of reference frames and bundles.

    Parameters
    ----------
    root : str or Path
        Directory holding ``<name>.png`` and ``<name>.audit.json``.
    pixel_tolerance : int
        Per-channel tolerance, default 5.
    max_diff_fraction : float
        Divergent-pixel budget as a fraction of the frame, default 0.01.
    regression_tolerance : RegressionTolerance, optional
        Thresholds for bundle comparison.
    """

    def __init__(
        self,
        root: Union[str, Path],
        pixel_tolerance: int = 5,
        max_diff_fraction: float = 0.01,
        regression_tolerance: Optional[RegressionTolerance] = None,
    ):
        self.root = Path(root)
        self.pixel_tolerance = pixel_tolerance
        self.max_diff_fraction = max_diff_fraction
        self.regression_tolerance = regression_tolerance or RegressionTolerance()

    @classmethod
    def from_config(cls, cfg: AuditConfigV1, root: Optional[Union[str, Path]] = None) -> "GoldenStore":
        return cls(
            root=root if root is not None else cfg.golden.root,
            pixel_tolerance=cfg.golden.pixel_tolerance,
            max_diff_fraction=cfg.golden.max_diff_fraction,
            regression_tolerance=RegressionTolerance.from_config(cfg.regression),
        )

    def image_path(self, name: str) -> Path:
        return self.root / f"{name}.png"

    def bundle_path(self, name: str) -> Path:
        return self.root / f"{name}.audit.json"

    def check(
        self,
        name: str,
        pixels: PixelBuffer,
        width: int,
        height: int,
        bundle: Optional[AuditBundle] = None,
    ) -> GoldenOutcome:
        """Record or compare one golden case.

        Raises
        ------
        ValueError
            If ``name`` is not a plain file stem.
        AuditSerializationError
            If a stored reference bundle is unreadable.
        """
        if not _NAME_RE.match(name):
            raise ValueError(f"Golden case name must match {_NAME_RE.pattern}, got {name!r}")

        image_path = self.image_path(name)
        bundle_path = self.bundle_path(name)

        if not image_path.exists():
            fs.atomic_save_png_rgba(pixels, width, height, image_path)
            if bundle is not None:
                bundle.save(bundle_path)
            logger.info("Recorded golden reference '%s' at %s (sha256 %s)",
                        name, image_path, hashing.sha256_file(image_path)[:12])
            return GoldenOutcome(
                name=name,
                status=GoldenStatus.RECORDED,
                image_path=image_path,
                bundle_path=bundle_path if bundle is not None else None,
            )

        outcome = GoldenOutcome(name=name, status=GoldenStatus.MATCHED, image_path=image_path)
        ref_pixels, ref_width, ref_height = fs.load_png_rgba(image_path)

        if (ref_width, ref_height) != (width, height):
            outcome.reasons.append(
                f"Resolution changed: {ref_width}x{ref_height} -> {width}x{height}"
            )
        else:
            outcome.divergent_pixels = count_divergent_pixels(ref_pixels, pixels, self.pixel_tolerance)
            if not pixels_similar(ref_pixels, pixels, self.pixel_tolerance, self.max_diff_fraction):
                outcome.reasons.append(
                    f"{outcome.divergent_pixels} of {width * height} pixels differ by more than "
                    f"{self.pixel_tolerance} (budget {self.max_diff_fraction:.2%})"
                )

        if bundle is not None:
            outcome.bundle_path = bundle_path
            if bundle_path.exists():
                reference = AuditBundle.load(bundle_path)
                outcome.regression = compare_for_regression(reference, bundle, self.regression_tolerance)
                outcome.reasons.extend(outcome.regression.differences)
            else:
                bundle.save(bundle_path)
                logger.info("Recorded missing golden bundle for '%s'", name)

        if outcome.reasons:
            outcome.status = GoldenStatus.MISMATCHED
            logger.warning("Golden '%s' mismatched: %s", name, "; ".join(outcome.reasons))
        else:
            logger.info("Golden '%s' matched (%d divergent pixels)", name, outcome.divergent_pixels)
        return outcome
