"""Scene description consumed by the renderer and the audit layer.

Convenience imports:
    from src.scene import Scene, Bounds, Camera, Mesh, PointCloud, Polyline, AxisBundle
"""

from .camera import Camera, Projection
from .geometry import (
    AutoTicks,
    Axis,
    AxisBounds,
    AxisBundle,
    FixedTicks,
    Label,
    LabelSpec,
    Mesh,
    NoTicks,
    PointCloud,
    Polyline,
    format_tick_value,
)
from .scene import (
    SCENE_SCHEMA_VERSION,
    Bounds,
    Primitive,
    Scene,
    SceneDecodeError,
    SceneElement,
    element_tag,
    iter_primitives,
)

__all__ = [
    'AutoTicks',
    'Axis',
    'AxisBounds',
    'AxisBundle',
    'Bounds',
    'Camera',
    'FixedTicks',
    'Label',
    'LabelSpec',
    'Mesh',
    'NoTicks',
    'PointCloud',
    'Polyline',
    'Primitive',
    'Projection',
    'SCENE_SCHEMA_VERSION',
    'Scene',
    'SceneDecodeError',
    'SceneElement',
    'element_tag',
    'format_tick_value',
    'iter_primitives',
]
