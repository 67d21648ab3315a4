"""Camera with explicit parameters and matrix generation.

Matrices follow the wgpu/Vulkan conventions used by the renderer:
right-handed world, Y-up clip space, NDC depth in [0, 1]. They are
column-vector matrices (``clip = M @ [x, y, z, 1]``) as float64 numpy
arrays, so the geometry probes can project whole vertex arrays at once.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np

Vec3 = tuple[float, float, float]


class Projection(str, Enum):
    """Projection kind; the value is the JSON spelling."""

    PERSPECTIVE = "perspective"
    ORTHOGRAPHIC = "orthographic"


@dataclass(frozen=True, slots=True)
class Camera:
    """Camera with explicit position, target and projection parameters.

    Parameters
    ----------
    position, target, up : tuple[float, float, float]
        World-space eye, look-at point and up vector.
    projection : Projection
        Perspective or orthographic.
    near, far : float
        Clip plane distances.  Not validated here; the invariant checker
        reports ``near <= 0`` and ``near >= far``.
    fov_or_height : float
        Vertical field of view in degrees (perspective) or view height in
        world units (orthographic).
    """

    position: Vec3
    target: Vec3
    up: Vec3 = (0.0, 1.0, 0.0)
    projection: Projection = Projection.PERSPECTIVE
    near: float = 0.1
    far: float = 1000.0
    fov_or_height: float = 45.0

    @classmethod
    def perspective(cls, position: Vec3, target: Vec3, fov_degrees: float) -> Camera:
        return cls(position=tuple(position), target=tuple(target),
                   projection=Projection.PERSPECTIVE, fov_or_height=fov_degrees)

    @classmethod
    def orthographic(cls, position: Vec3, target: Vec3, view_height: float) -> Camera:
        return cls(position=tuple(position), target=tuple(target),
                   projection=Projection.ORTHOGRAPHIC, fov_or_height=view_height)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "position": list(self.position),
            "target": list(self.target),
            "up": list(self.up),
            "projection": self.projection.value,
            "near": self.near,
            "far": self.far,
            "fov_or_height": self.fov_or_height,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Camera:
        return cls(
            position=_vec3(data["position"]),
            target=_vec3(data["target"]),
            up=_vec3(data.get("up", [0.0, 1.0, 0.0])),
            projection=Projection(data["projection"]),
            near=float(data["near"]),
            far=float(data["far"]),
            fov_or_height=float(data["fov_or_height"]),
        )

    # ------------------------------------------------------------------
    # Matrices
    # ------------------------------------------------------------------

    def view_matrix(self) -> np.ndarray:
        """World → camera space (right-handed look-at)."""
        eye = np.asarray(self.position, dtype=np.float64)
        target = np.asarray(self.target, dtype=np.float64)
        up = np.asarray(self.up, dtype=np.float64)

        with np.errstate(all="ignore"):
            f = target - eye
            f = f / np.linalg.norm(f)
            s = np.cross(f, up)
            s = s / np.linalg.norm(s)
            u = np.cross(s, f)

        m = np.identity(4)
        m[0, :3] = s
        m[1, :3] = u
        m[2, :3] = -f
        m[0, 3] = -np.dot(s, eye)
        m[1, 3] = -np.dot(u, eye)
        m[2, 3] = np.dot(f, eye)
        return m

    def projection_matrix(self, aspect_ratio: float) -> np.ndarray:
        """Camera → clip space with depth mapped to [0, 1]."""
        # numpy scalars: zero extents yield inf/nan instead of raising
        near, far = np.float64(self.near), np.float64(self.far)
        aspect_ratio = np.float64(aspect_ratio)
        m = np.zeros((4, 4))

        with np.errstate(all="ignore"):
            depth_range = near - far
            if self.projection is Projection.PERSPECTIVE:
                f = 1.0 / np.tan(np.radians(np.float64(self.fov_or_height)) / 2.0)
                m[0, 0] = f / aspect_ratio
                m[1, 1] = f
                m[2, 2] = far / depth_range
                m[2, 3] = near * far / depth_range
                m[3, 2] = -1.0
            else:
                half_height = np.float64(self.fov_or_height) / 2.0
                half_width = half_height * aspect_ratio
                m[0, 0] = 1.0 / half_width
                m[1, 1] = 1.0 / half_height
                m[2, 2] = 1.0 / depth_range
                m[2, 3] = near / depth_range
                m[3, 3] = 1.0
        return m

    def view_projection_matrix(self, aspect_ratio: float) -> np.ndarray:
        with np.errstate(all="ignore"):
            return self.projection_matrix(aspect_ratio) @ self.view_matrix()

    def distance_to_target(self) -> float:
        return math.dist(self.position, self.target)


def _vec3(values: Any) -> Vec3:
    x, y, z = values
    return (float(x), float(y), float(z))
