"""Audit an existing render: scene JSON + PNG → audit bundle.

Builds the same AuditBundle the renderer would emit, from a scene document
and the PNG it produced.  Background, backend and adapter default to the
``render`` section of the audit config.

CLI:
    python scripts/audit_render.py --scene out/cube.scene.json --image out/cube.png
    python scripts/audit_render.py --scene cube.scene.json --image cube.png \\
                                   --background 0.1 0.1 0.15 1.0 \\
                                   --backend Vulkan --out out/cube.audit.json

Exit codes:
    0: overall Pass or PassWithWarnings
    1: overall Fail
    2: unreadable scene, image or config
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.audit import OverallStatus, audit_render
from src.scene import Scene, SceneDecodeError
from src.utils import fs, validators
from src.utils.logging_config import install_excepthook, push_context, setup_logging

logger = logging.getLogger("audit_render")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compute an audit bundle for a rendered PNG and its scene",
    )
    parser.add_argument("--scene", type=str, required=True, help="Scene JSON document")
    parser.add_argument("--image", type=str, required=True, help="Rendered PNG (converted to RGBA8)")
    parser.add_argument(
        "--background",
        type=float,
        nargs=4,
        metavar=("R", "G", "B", "A"),
        help="Clear color in [0, 1] (default: config render.background)",
    )
    parser.add_argument("--backend", type=str, help="Backend identifier (informational)")
    parser.add_argument("--adapter", type=str, help="Adapter name (informational)")
    parser.add_argument("--renderer-version", type=str, help="Renderer version to record")
    parser.add_argument("--config", type=str, help="Audit config YAML (default: built-in defaults)")
    parser.add_argument("--out", type=str, help="Write bundle here instead of stdout")
    parser.add_argument("--log-level", type=str, default=None, help="Override config log level")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint; returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        cfg = validators.load_audit_config(args.config) if args.config else validators.default_audit_config()
    except (OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    log_kwargs = cfg.logging.as_setup_kwargs()
    if args.log_level:
        log_kwargs['log_level'] = args.log_level.upper()
    setup_logging(**log_kwargs, context={"app": "audit_render"})
    install_excepthook()

    try:
        scene = Scene.from_json(Path(args.scene).read_bytes())
        pixels, width, height = fs.load_png_rgba(args.image)
    except (OSError, SceneDecodeError) as e:
        logger.error("Cannot read inputs: %s", e)
        return 2
    push_context(image=Path(args.image).name)

    bundle = audit_render(
        scene,
        pixels,
        width,
        height,
        background=tuple(args.background) if args.background else cfg.render.background,
        backend=args.backend or cfg.render.backend,
        adapter=args.adapter or cfg.render.adapter,
        renderer_version=args.renderer_version,
    )

    if args.out:
        path = bundle.save(args.out)
        logger.info("Wrote audit bundle to %s", path)
    else:
        print(bundle.to_json())

    for violation in bundle.invariants.errors:
        print(f"ERROR [{violation.category.value}] {violation.message}", file=sys.stderr)
    for violation in bundle.invariants.warnings:
        print(f"WARNING [{violation.category.value}] {violation.message}", file=sys.stderr)

    return 1 if bundle.invariants.overall is OverallStatus.FAIL else 0


if __name__ == "__main__":
    sys.exit(main())
