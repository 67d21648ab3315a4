"""Atomic filesystem operations for audit artifacts.

Provides:
    - Atomic writes: tmp file → fsync → rename (prevents partial reads)
    - YAML loading for configs
    - RGBA8 PNG load/save for golden references
    - Directory creation with exist_ok semantics

Critical for unattended regression gates:
    - Bundles and golden PNGs are written atomically, so a CI job killed
      mid-write never leaves a truncated reference behind
    - Readers (compare scripts) never observe partial files

All paths use pathlib.Path for cross-platform compatibility.

Usage:
    from src.utils import fs
    fs.atomic_write_text(out_dir / "cube.audit.json", bundle.to_json())
    fs.atomic_save_png_rgba(pixels, 256, 256, out_dir / "cube.png")
    pixels, width, height = fs.load_png_rgba(out_dir / "cube.png")

Note: Module named `fs.py` to avoid shadowing stdlib `io`.
"""

import os
from pathlib import Path
from typing import Any, Dict, Tuple, Union

import numpy as np
import yaml
from PIL import Image


def ensure_dir(p: Union[str, Path]) -> Path:
    """Create directory if it doesn't exist, return Path object.

    Parameters
    ----------
    p : Union[str, Path]
        Directory path

    Returns
    -------
    Path
        Path object (guaranteed to exist)
    """
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def atomic_write_bytes(
    path: Union[str, Path],
    data: bytes,
    tmp_suffix: str = ".tmp"
) -> None:
    """Write bytes to file atomically (tmp → fsync → rename).

    Parameters
    ----------
    path : Union[str, Path]
        Target file path
    data : bytes
        Data to write
    tmp_suffix : str
        Temporary file suffix, default ".tmp"

    Raises
    ------
    RuntimeError
        If the write or rename fails (tmp file is cleaned up)

    Notes
    -----
    Uses same directory for tmp file to ensure atomic rename on same filesystem.
    """
    path = Path(path)
    ensure_dir(path.parent)

    tmp_path = path.with_suffix(path.suffix + tmp_suffix)

    try:
        with open(tmp_path, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        # Atomic rename (overwrites existing file on POSIX)
        tmp_path.replace(path)
    except Exception as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise RuntimeError(f"Failed to write {path} atomically: {e}") from e


def atomic_write_text(
    path: Union[str, Path],
    text: str,
    encoding: str = "utf-8"
) -> None:
    """Write text to file atomically (wrapper around atomic_write_bytes)."""
    atomic_write_bytes(path, text.encode(encoding))


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load YAML file safely.

    Parameters
    ----------
    path : Union[str, Path]
        YAML file path

    Returns
    -------
    Dict[str, Any]
        Parsed YAML content (empty dict for an empty file)

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    yaml.YAMLError
        If YAML parsing fails
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e


def atomic_save_png_rgba(
    pixels: Union[bytes, bytearray, np.ndarray],
    width: int,
    height: int,
    path: Union[str, Path]
) -> None:
    """Save an RGBA8 buffer as PNG atomically.

    Parameters
    ----------
    pixels : bytes-like or np.ndarray
        Row-major RGBA8 data, exactly width*height*4 bytes
    width, height : int
        Image dimensions in pixels
    path : Union[str, Path]
        Target PNG path

    Raises
    ------
    ValueError
        If the buffer length does not match width*height*4
    RuntimeError
        If encoding or the rename fails
    """
    path = Path(path)
    if isinstance(pixels, np.ndarray):
        arr = np.ascontiguousarray(pixels, dtype=np.uint8).reshape(-1)
    else:
        arr = np.frombuffer(bytes(pixels), dtype=np.uint8)
    if arr.size != width * height * 4:
        raise ValueError(
            f"RGBA buffer has {arr.size} bytes, expected {width}x{height}x4 = {width * height * 4}"
        )

    ensure_dir(path.parent)
    # (H, W, 4) uint8 is inferred as RGBA
    img = Image.fromarray(arr.reshape(height, width, 4))

    # Keep the extension last so PIL picks the PNG encoder
    tmp_path = path.with_name(path.stem + ".tmp" + path.suffix)
    try:
        img.save(tmp_path, format='PNG')
        tmp_path.replace(path)
    except Exception as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise RuntimeError(f"Failed to save image {path} atomically: {e}") from e


def load_png_rgba(path: Union[str, Path]) -> Tuple[bytes, int, int]:
    """Load an image file as a row-major RGBA8 buffer.

    Parameters
    ----------
    path : Union[str, Path]
        Image path (any format PIL reads; converted to RGBA)

    Returns
    -------
    Tuple[bytes, int, int]
        (pixels, width, height)

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")

    with Image.open(path) as img:
        rgba = img.convert('RGBA')
        width, height = rgba.size
        return rgba.tobytes(), width, height
