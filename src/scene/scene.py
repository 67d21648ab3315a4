"""Scene: an immutable container for camera, geometry and explicit bounds.

The scene is the renderer's input and the audit layer's read-only view of
what was requested.  Elements form a closed tagged union (JSON tag
``type``); ``element_tag`` and ``iter_primitives`` are the only places that
branch on the element kind, so adding a kind means updating them (both
raise ``TypeError`` on anything they don't know).

Materials and the light are carried as opaque JSON objects: they take
part in the scene encoding (and therefore the scene hash) but nothing in
the audit layer interprets them.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterator, Union

import numpy as np

from .camera import Camera, Vec3
from .geometry import AxisBundle, Mesh, PointCloud, Polyline


SCENE_SCHEMA_VERSION = "frustum/scene/v1"

SceneElement = Union[Mesh, PointCloud, Polyline, AxisBundle]
"""Everything a scene can hold."""

Primitive = Union[Mesh, PointCloud, Polyline]
"""What is actually drawn once axis bundles are expanded."""

_ELEMENT_TYPES: dict[str, type] = {
    "point_cloud": PointCloud,
    "polyline": Polyline,
    "mesh": Mesh,
    "axes": AxisBundle,
}


class SceneDecodeError(ValueError):
    """Raised when a scene document cannot be decoded."""

    pass


@dataclass(frozen=True, slots=True)
class Bounds:
    """Axis-aligned world bounds declared by the scene author."""

    min: Vec3
    max: Vec3

    def outside_mask(self, positions: np.ndarray) -> np.ndarray:
        """Boolean ``(n,)`` mask of finite ``(n, 3)`` positions outside the box.

        Non-finite rows are never reported as outside.
        """
        lo = np.asarray(self.min, dtype=np.float64)
        hi = np.asarray(self.max, dtype=np.float64)
        finite = np.all(np.isfinite(positions), axis=1)
        with np.errstate(invalid='ignore'):
            return finite & np.any((positions < lo) | (positions > hi), axis=1)

    def to_dict(self) -> dict[str, Any]:
        return {"min": list(self.min), "max": list(self.max)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Bounds:
        return cls(min=tuple(float(v) for v in data["min"]),
                   max=tuple(float(v) for v in data["max"]))


@dataclass(frozen=True, slots=True)
class Scene:
    """A complete scene.

    Parameters
    ----------
    camera : Camera
        Viewing camera.
    bounds : Bounds
        Explicit world bounds (never derived from geometry).
    elements : tuple[SceneElement, ...]
        Drawables in submission order; order is part of the scene identity.
    materials : tuple[dict, ...]
        Opaque material definitions.
    light : dict | None
        Opaque directional light, None for flat shading.
    """

    camera: Camera
    bounds: Bounds
    elements: tuple[SceneElement, ...] = ()
    materials: tuple[dict[str, Any], ...] = ()
    light: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        # Accept lists from callers; store tuples so the scene stays immutable
        object.__setattr__(self, "elements", tuple(self.elements))
        object.__setattr__(self, "materials", tuple(self.materials))

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Canonical dict encoding (fixed key order, tagged elements)."""
        d: dict[str, Any] = {
            "camera": self.camera.to_dict(),
            "elements": [{"type": element_tag(e), **e.to_dict()} for e in self.elements],
        }
        if self.materials:
            d["materials"] = [dict(m) for m in self.materials]
        if self.light is not None:
            d["light"] = dict(self.light)
        d["bounds"] = self.bounds.to_dict()
        return d

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Scene:
        """Decode a scene dict.

        Raises
        ------
        SceneDecodeError
            On a missing field, an unknown element tag or a malformed value.
        """
        try:
            elements = []
            for i, raw in enumerate(data.get("elements", [])):
                tag = raw.get("type")
                element_type = _ELEMENT_TYPES.get(tag)
                if element_type is None:
                    raise SceneDecodeError(f"Element {i} has unknown type {tag!r}")
                elements.append(element_type.from_dict(raw))
            return cls(
                camera=Camera.from_dict(data["camera"]),
                bounds=Bounds.from_dict(data["bounds"]),
                elements=tuple(elements),
                materials=tuple(dict(m) for m in data.get("materials", [])),
                light=data.get("light"),
            )
        except SceneDecodeError:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise SceneDecodeError(f"Malformed scene: {type(e).__name__}: {e}") from e

    @classmethod
    def from_json(cls, text: str | bytes) -> Scene:
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SceneDecodeError(f"Scene is not valid JSON: {e}") from e
        except RecursionError as e:
            raise SceneDecodeError(f"Scene is nested too deeply: {e}") from e
        if not isinstance(data, dict):
            raise SceneDecodeError(f"Scene must be a JSON object, got {type(data).__name__}")
        return cls.from_dict(data)


def element_tag(element: SceneElement) -> str:
    """JSON ``type`` tag of a scene element."""
    if isinstance(element, Mesh):
        return "mesh"
    elif isinstance(element, PointCloud):
        return "point_cloud"
    elif isinstance(element, Polyline):
        return "polyline"
    elif isinstance(element, AxisBundle):
        return "axes"
    raise TypeError(f"Unsupported scene element: {type(element).__name__}")


def iter_primitives(scene: Scene) -> Iterator[tuple[int, Primitive]]:
    """Yield ``(element_index, primitive)`` with axis bundles expanded.

    Expanded axis polylines carry the index of the bundle they came from.
    """
    for i, element in enumerate(scene.elements):
        if isinstance(element, (Mesh, PointCloud, Polyline)):
            yield i, element
        elif isinstance(element, AxisBundle):
            polylines, _labels = element.expand()
            for line in polylines:
                yield i, line
        else:
            raise TypeError(f"Unsupported scene element: {type(element).__name__}")
