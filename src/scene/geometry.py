"""Geometry primitives: meshes, point clouds, polylines and axis bundles.

Every primitive is an immutable, slotted dataclass.  Positions are stored
flat (``x0, y0, z0, x1, y1, z1, ...``) exactly as the renderer uploads
them; a trailing partial triple is ignored by every consumer.

Axis bundles are not a primitive kind of their own: ``AxisBundle.expand``
turns them into plain polylines (axis lines plus tick marks) and label
placeholders, and everything downstream counts and projects those.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

import numpy as np

Vec3 = tuple[float, float, float]


def _flat_floats(values: Any) -> tuple[float, ...]:
    return tuple(float(v) for v in values)


def _optional_floats(values: Any) -> tuple[float, ...] | None:
    return None if values is None else _flat_floats(values)


def _positions_array(positions: tuple[float, ...]) -> np.ndarray:
    n = len(positions) // 3
    return np.asarray(positions[: n * 3], dtype=np.float64).reshape(n, 3)


# ---------------------------------------------------------------------------
# Drawable primitives
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Mesh:
    """Indexed triangle mesh (3 indices per triangle)."""

    positions: tuple[float, ...]
    indices: tuple[int, ...]
    normals: tuple[float, ...] | None = None
    scalars: tuple[float, ...] | None = None
    material_id: str | None = None

    @property
    def vertex_count(self) -> int:
        return len(self.positions) // 3

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    def positions_array(self) -> np.ndarray:
        return _positions_array(self.positions)

    def triangles_array(self) -> np.ndarray:
        """``(triangle_count, 3)`` int64 index array.

        Indices outside ``[0, vertex_count)`` become -1, so arbitrarily large
        values never overflow the integer conversion.
        """
        n = self.triangle_count
        v = self.vertex_count
        clamped = [i if 0 <= i < v else -1 for i in self.indices[: n * 3]]
        return np.asarray(clamped, dtype=np.int64).reshape(n, 3)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "positions": list(self.positions),
            "indices": list(self.indices),
            "normals": None if self.normals is None else list(self.normals),
            "scalars": None if self.scalars is None else list(self.scalars),
        }
        if self.material_id is not None:
            d["material_id"] = self.material_id
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Mesh:
        return cls(
            positions=_flat_floats(data["positions"]),
            indices=tuple(int(i) for i in data["indices"]),
            normals=_optional_floats(data.get("normals")),
            scalars=_optional_floats(data.get("scalars")),
            material_id=data.get("material_id"),
        )


@dataclass(frozen=True, slots=True)
class PointCloud:
    """Point cloud with a uniform point size in pixels."""

    positions: tuple[float, ...]
    point_size: float = 1.0
    scalars: tuple[float, ...] | None = None
    material_id: str | None = None

    @property
    def point_count(self) -> int:
        return len(self.positions) // 3

    def positions_array(self) -> np.ndarray:
        return _positions_array(self.positions)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "positions": list(self.positions),
            "scalars": None if self.scalars is None else list(self.scalars),
            "point_size": self.point_size,
        }
        if self.material_id is not None:
            d["material_id"] = self.material_id
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PointCloud:
        return cls(
            positions=_flat_floats(data["positions"]),
            point_size=float(data["point_size"]),
            scalars=_optional_floats(data.get("scalars")),
            material_id=data.get("material_id"),
        )


@dataclass(frozen=True, slots=True)
class Polyline:
    """Connected line strip; ``n`` vertices give ``n - 1`` segments."""

    positions: tuple[float, ...]
    line_width: float = 1.0
    material_id: str | None = None

    @property
    def vertex_count(self) -> int:
        return len(self.positions) // 3

    @property
    def segment_count(self) -> int:
        return max(self.vertex_count - 1, 0)

    def positions_array(self) -> np.ndarray:
        return _positions_array(self.positions)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "positions": list(self.positions),
            "line_width": self.line_width,
        }
        if self.material_id is not None:
            d["material_id"] = self.material_id
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Polyline:
        return cls(
            positions=_flat_floats(data["positions"]),
            line_width=float(data["line_width"]),
            material_id=data.get("material_id"),
        )


# ---------------------------------------------------------------------------
# Axes
# ---------------------------------------------------------------------------


class Axis(str, Enum):
    X = "x"
    Y = "y"
    Z = "z"


@dataclass(frozen=True, slots=True)
class AutoTicks:
    """``count + 1`` evenly spaced ticks from min to max (none if count is 0)."""

    count: int = 5

    def values(self, lo: float, hi: float) -> list[float]:
        if self.count == 0:
            return []
        step = (hi - lo) / self.count
        return [lo + i * step for i in range(self.count + 1)]

    def to_dict(self) -> dict[str, Any]:
        return {"mode": "auto", "count": self.count}


@dataclass(frozen=True, slots=True)
class FixedTicks:
    """Explicit tick positions; values outside the axis range are dropped."""

    at: tuple[float, ...] = ()

    def values(self, lo: float, hi: float) -> list[float]:
        return [v for v in self.at if lo <= v <= hi]

    def to_dict(self) -> dict[str, Any]:
        return {"mode": "fixed", "values": list(self.at)}


@dataclass(frozen=True, slots=True)
class NoTicks:
    def values(self, lo: float, hi: float) -> list[float]:
        return []

    def to_dict(self) -> dict[str, Any]:
        return {"mode": "none"}


TickSpec = Union[AutoTicks, FixedTicks, NoTicks]


def tick_spec_from_dict(data: dict[str, Any]) -> TickSpec:
    mode = data["mode"]
    if mode == "auto":
        return AutoTicks(count=int(data["count"]))
    if mode == "fixed":
        return FixedTicks(at=_flat_floats(data["values"]))
    if mode == "none":
        return NoTicks()
    raise ValueError(f"Unknown tick mode: {mode!r}")


@dataclass(frozen=True, slots=True)
class LabelSpec:
    """Tick label placeholders: visibility, extra world offset, printf format."""

    show: bool = True
    offset: Vec3 = (0.0, 0.0, 0.0)
    format: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"show": self.show, "offset": list(self.offset), "format": self.format}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LabelSpec:
        ox, oy, oz = data.get("offset", (0.0, 0.0, 0.0))
        return cls(show=bool(data.get("show", True)),
                   offset=(float(ox), float(oy), float(oz)),
                   format=data.get("format"))


@dataclass(frozen=True, slots=True)
class Label:
    position: Vec3
    text: str


@dataclass(frozen=True, slots=True)
class AxisBounds:
    min: Vec3
    max: Vec3

    def to_dict(self) -> dict[str, Any]:
        return {"min": list(self.min), "max": list(self.max)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AxisBounds:
        return cls(min=tuple(float(v) for v in data["min"]),
                   max=tuple(float(v) for v in data["max"]))


@dataclass(frozen=True, slots=True)
class AxisBundle:
    """Coordinate axes described as explicit geometry.

    Parameters
    ----------
    id : str
        Unique identifier.
    bounds : AxisBounds
        Box the axes span.  ``min > max`` on any axis is reported by the
        invariant checker, not rejected here.
    axes : tuple[Axis, ...]
        Which axes to draw, default all three.
    line_width : float
        Width of axis lines and tick marks.
    ticks : TickSpec
        Tick generation mode, default ``AutoTicks(5)``.
    labels : LabelSpec
        Label placeholder settings.
    """

    id: str
    bounds: AxisBounds
    axes: tuple[Axis, ...] = (Axis.X, Axis.Y, Axis.Z)
    line_width: float = 1.0
    ticks: TickSpec = field(default_factory=AutoTicks)
    labels: LabelSpec = field(default_factory=LabelSpec)

    def expand(self) -> tuple[list[Polyline], list[Label]]:
        """Expand into polylines (axis lines + tick marks) and labels.

        Each axis line runs along the min edge of the box; tick marks point
        away from the box with a length of 2% of its smallest extent.
        """
        polylines: list[Polyline] = []
        labels: list[Label] = []

        xmin, ymin, zmin = self.bounds.min
        xmax, ymax, zmax = self.bounds.max
        ox, oy, oz = self.labels.offset
        width = self.line_width

        tick_size = min(xmax - xmin, ymax - ymin, zmax - zmin) * 0.02
        label_gap = -tick_size * 1.5

        for axis in self.axes:
            if axis is Axis.X:
                polylines.append(Polyline((xmin, ymin, zmin, xmax, ymin, zmin), width))
                for x in self.ticks.values(xmin, xmax):
                    polylines.append(Polyline((x, ymin, zmin, x, ymin - tick_size, zmin), width))
                    if self.labels.show:
                        labels.append(Label(
                            (x + ox, ymin - tick_size + label_gap + oy, zmin + oz),
                            format_tick_value(x, self.labels.format),
                        ))
            elif axis is Axis.Y:
                polylines.append(Polyline((xmin, ymin, zmin, xmin, ymax, zmin), width))
                for y in self.ticks.values(ymin, ymax):
                    polylines.append(Polyline((xmin, y, zmin, xmin - tick_size, y, zmin), width))
                    if self.labels.show:
                        labels.append(Label(
                            (xmin - tick_size + label_gap + ox, y + oy, zmin + oz),
                            format_tick_value(y, self.labels.format),
                        ))
            elif axis is Axis.Z:
                polylines.append(Polyline((xmin, ymin, zmin, xmin, ymin, zmax), width))
                for z in self.ticks.values(zmin, zmax):
                    polylines.append(Polyline((xmin, ymin, z, xmin - tick_size, ymin, z), width))
                    if self.labels.show:
                        labels.append(Label(
                            (xmin - tick_size + label_gap + ox, ymin + oy, z + oz),
                            format_tick_value(z, self.labels.format),
                        ))
            else:
                raise TypeError(f"Unsupported axis: {axis!r}")

        return polylines, labels

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "bounds": self.bounds.to_dict(),
            "axes": [a.value for a in self.axes],
            "line_width": self.line_width,
            "ticks": self.ticks.to_dict(),
            "labels": self.labels.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AxisBundle:
        return cls(
            id=str(data["id"]),
            bounds=AxisBounds.from_dict(data["bounds"]),
            axes=tuple(Axis(a) for a in data["axes"]),
            line_width=float(data["line_width"]),
            ticks=tick_spec_from_dict(data["ticks"]) if "ticks" in data else AutoTicks(),
            labels=LabelSpec.from_dict(data["labels"]) if "labels" in data else LabelSpec(),
        )


# ---------------------------------------------------------------------------
# Tick label formatting
# ---------------------------------------------------------------------------


def format_tick_value(value: float, fmt: str | None = None) -> str:
    """Format a tick value for a scientific figure.

    ``"%.Nf"`` formats are honoured.  Otherwise: ``"0"`` for zero,
    scientific notation for very small or very large magnitudes, and 3/2/1
    decimals (trailing zeros trimmed) as the magnitude grows.

    Examples
    --------
    >>> format_tick_value(0.25)
    '0.25'
    >>> format_tick_value(25000.0)
    '2.5e4'
    >>> format_tick_value(1.0, "%.3f")
    '1.000'
    """
    if fmt is not None and "%" in fmt:
        if fmt.startswith("%.") and fmt.endswith("f") and fmt[2:-1].isdigit():
            return f"{value:.{int(fmt[2:-1])}f}"
        text = repr(float(value))
        return text[:-2] if text.endswith(".0") else text

    if not math.isfinite(value):
        return str(value)
    magnitude = abs(value)
    if magnitude == 0.0:
        return "0"
    if magnitude < 0.001 or magnitude >= 10000.0:
        mantissa, exponent = f"{value:.1e}".split("e")
        return f"{mantissa}e{int(exponent)}"
    if magnitude < 0.1:
        return _format_trim_zeros(value, 3)
    if magnitude < 10.0:
        return _format_trim_zeros(value, 2)
    return _format_trim_zeros(value, 1)


def _format_trim_zeros(value: float, precision: int) -> str:
    text = f"{value:.{precision}f}"
    if "." in text:
        text = text.rstrip("0")
        if text.endswith("."):
            text += "0"
    return text
