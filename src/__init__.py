"""Frustum audit: machine-checkable evidence for scientific figure renders.

Given a scene description and the RGBA frame a renderer produced for it,
this package derives structured numeric evidence (metadata, geometry
probes, image metrics), checks it against a fixed invariant battery, and
compares bundles between runs to catch regressions without looking at
pixels.

Architecture layers (strict one-way dependency):
    scripts/, ci/ → src/audit/ → src/scene/ → src/utils/

Key invariants:
    - Audit never mutates its inputs and never raises on degenerate scenes
    - Findings are data (errors / warnings / notes), not exceptions
    - Bundles round-trip through JSON; bundle_version pins the shape
    - Pixel buffers are row-major RGBA8, colors in [0, 1] unless noted
"""

__version__ = "0.1.0"
