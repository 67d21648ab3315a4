"""Shared fixtures: a small visible scene and synthetic RGBA frames."""

import numpy as np
import pytest

from src.scene import Bounds, Camera, Mesh, Scene


@pytest.fixture
def camera():
    """Perspective camera at +Z looking at the origin."""
    return Camera(position=(0.0, 0.0, 5.0), target=(0.0, 0.0, 0.0), near=0.1, far=100.0)


@pytest.fixture
def bounds():
    return Bounds(min=(-2.0, -2.0, -2.0), max=(2.0, 2.0, 2.0))


@pytest.fixture
def triangle():
    """Counter-clockwise triangle in the z=0 plane (faces the camera)."""
    return Mesh(
        positions=(-1.0, -1.0, 0.0, 1.0, -1.0, 0.0, 0.0, 1.0, 0.0),
        indices=(0, 1, 2),
    )


@pytest.fixture
def triangle_scene(camera, bounds, triangle):
    return Scene(camera=camera, bounds=bounds, elements=(triangle,))


@pytest.fixture
def black():
    return (0.0, 0.0, 0.0, 1.0)


def _solid_frame(width, height, rgba):
    return bytes(rgba) * (width * height)


def _block_frame(width, height, blocks, fg=(255, 255, 255), bg=(0, 0, 0)):
    img = np.zeros((height, width, 4), dtype=np.uint8)
    img[:, :, :3] = bg
    img[:, :, 3] = 255
    for x0, y0, x1, y1 in blocks:
        img[y0:y1, x0:x1, :3] = fg
    return img.tobytes()


@pytest.fixture
def solid_frame():
    """Factory: uniform RGBA8 frame as bytes."""
    return _solid_frame


@pytest.fixture
def block_frame():
    """Factory: opaque ``bg`` frame with ``fg`` rectangles ``(x0, y0, x1, y1)``."""
    return _block_frame


@pytest.fixture
def rendered_frame():
    """64x64 black frame with a white 16x16 square in the middle."""
    return _block_frame(64, 64, [(24, 24, 40, 40)])


@pytest.fixture
def bundle(triangle_scene, rendered_frame, black):
    """Audit bundle of the clean triangle render."""
    from src.audit import audit_render
    return audit_render(triangle_scene, rendered_frame, 64, 64, black, backend="Vulkan", adapter="test-gpu")
