"""Test the command-line entrypoints.

Tests for:
    - scripts/audit_render.py: scene JSON + PNG → bundle, exit 0/1/2
    - scripts/compare_bundles.py: MATCH / MISMATCH, exit 0/1/2
    - ci/golden_tests/compare.py: directory comparison and JSON report

Scripts are loaded from their file paths and driven through main(argv).

Run:
    pytest tests/test_cli.py -v
"""

import importlib.util
import json
import sys
from pathlib import Path

import pytest

from src.audit import AuditBundle, OverallStatus, PrimitiveCounts
from src.scene import Mesh, Scene
from src.utils import fs, logging_config

PROJECT_ROOT = Path(__file__).parent.parent


def load_script(relpath, name):
    spec = importlib.util.spec_from_file_location(name, PROJECT_ROOT / relpath)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture(scope="module")
def audit_cli():
    return load_script("scripts/audit_render.py", "audit_render_cli")


@pytest.fixture(scope="module")
def compare_cli():
    return load_script("scripts/compare_bundles.py", "compare_bundles_cli")


@pytest.fixture(scope="module")
def golden_cli():
    return load_script("ci/golden_tests/compare.py", "golden_compare_cli")


@pytest.fixture(autouse=True)
def isolate_process_state(monkeypatch):
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    yield
    logging_config.setup_logging(to_stderr=False, capture_warnings=False)
    logging_config.pop_context()


@pytest.fixture
def render_files(tmp_path, triangle_scene, rendered_frame):
    scene_path = tmp_path / "triangle.scene.json"
    scene_path.write_text(triangle_scene.to_json())
    image_path = tmp_path / "triangle.png"
    fs.atomic_save_png_rgba(rendered_frame, 64, 64, image_path)
    return scene_path, image_path


BLACK = ["--background", "0", "0", "0", "1"]


# ============================================================================
# audit_render.py
# ============================================================================

def test_audit_render_writes_bundle(audit_cli, render_files, tmp_path):
    scene_path, image_path = render_files
    out = tmp_path / "out" / "triangle.audit.json"

    code = audit_cli.main(["--scene", str(scene_path), "--image", str(image_path),
                           *BLACK, "--backend", "Vulkan", "--out", str(out)])

    assert code == 0
    bundle = AuditBundle.load(out)
    assert bundle.invariants.overall is OverallStatus.PASS
    assert bundle.metadata.backend == "Vulkan"
    assert bundle.metadata.resolution == (64, 64)


def test_audit_render_prints_to_stdout(audit_cli, render_files, capsys):
    scene_path, image_path = render_files

    code = audit_cli.main(["--scene", str(scene_path), "--image", str(image_path), *BLACK])

    assert code == 0
    data = json.loads(capsys.readouterr().out)
    assert data["bundle_version"] == "frustum/audit/v1"
    assert data["metadata"]["backend"] == "unknown"


def test_audit_render_fail_exit_code(audit_cli, render_files, camera, bounds, tmp_path, capsys):
    _, image_path = render_files
    nan_scene = Scene(camera=camera, bounds=bounds,
                      elements=(Mesh(positions=(float("nan"),) * 9, indices=(0, 1, 2)),))
    scene_path = tmp_path / "nan.scene.json"
    scene_path.write_text(nan_scene.to_json())

    code = audit_cli.main(["--scene", str(scene_path), "--image", str(image_path), *BLACK])

    assert code == 1
    assert "ERROR [Scene] Mesh 0 contains NaN or Inf vertex positions" in capsys.readouterr().err


def test_audit_render_unreadable_inputs(audit_cli, render_files, tmp_path):
    scene_path, image_path = render_files
    bad_scene = tmp_path / "bad.scene.json"
    bad_scene.write_text("{truncated")

    assert audit_cli.main(["--scene", str(scene_path), "--image", str(tmp_path / "none.png")]) == 2
    assert audit_cli.main(["--scene", str(bad_scene), "--image", str(image_path)]) == 2
    assert audit_cli.main(["--scene", str(scene_path), "--image", str(image_path),
                           "--config", str(tmp_path / "none.yaml")]) == 2


def test_audit_render_uses_config_defaults(audit_cli, render_files, tmp_path):
    scene_path, image_path = render_files
    config = tmp_path / "audit.yaml"
    config.write_text("schema: audit.v1\nrender:\n  background: [0, 0, 0, 1]\n  backend: Metal\n")
    out = tmp_path / "cfg.audit.json"

    code = audit_cli.main(["--scene", str(scene_path), "--image", str(image_path),
                           "--config", str(config), "--out", str(out)])

    assert code == 0
    bundle = AuditBundle.load(out)
    assert bundle.metadata.backend == "Metal"
    assert bundle.image_metrics.background_percentage == 93.75


# ============================================================================
# compare_bundles.py
# ============================================================================

def test_compare_bundles_match(compare_cli, bundle, tmp_path, capsys):
    a = bundle.save(tmp_path / "a.audit.json")
    b = bundle.save(tmp_path / "b.audit.json")

    assert compare_cli.main([str(a), str(b)]) == 0
    assert capsys.readouterr().out.splitlines()[0] == "MATCH"


def test_compare_bundles_mismatch(compare_cli, bundle, tmp_path, capsys):
    counts = PrimitiveCounts(meshes=1, total_triangles=4)
    changed = bundle.model_copy(
        update={"metadata": bundle.metadata.model_copy(update={"primitive_counts": counts})}
    )
    a = bundle.save(tmp_path / "a.audit.json")
    b = changed.save(tmp_path / "b.audit.json")

    assert compare_cli.main([str(a), str(b)]) == 1
    out = capsys.readouterr().out
    assert out.splitlines()[0] == "MISMATCH"
    assert "Triangle count changed: 1 -> 4" in out


def test_compare_bundles_unreadable(compare_cli, bundle, tmp_path):
    a = bundle.save(tmp_path / "a.audit.json")
    garbage = tmp_path / "garbage.audit.json"
    garbage.write_text("[]")

    assert compare_cli.main([str(a), str(tmp_path / "missing.audit.json")]) == 2
    assert compare_cli.main([str(a), str(garbage)]) == 2


def test_compare_bundles_directory_or_deep_json(compare_cli, bundle, tmp_path):
    a = bundle.save(tmp_path / "a.audit.json")
    folder = tmp_path / "folder.audit.json"
    folder.mkdir()
    deep = tmp_path / "deep.audit.json"
    deep.write_text("[" * 200000 + "]" * 200000)

    assert compare_cli.main([str(a), str(folder)]) == 2
    assert compare_cli.main([str(a), str(deep)]) == 2


def test_malformed_config_exits_2(compare_cli, golden_cli, bundle, tmp_path, capsys):
    a = bundle.save(tmp_path / "a.audit.json")
    bad = tmp_path / "bad.yaml"
    bad.write_text("regression: [unclosed\n")

    assert compare_cli.main([str(a), str(a), "--config", str(bad)]) == 2
    assert golden_cli.main(["--baseline-dir", str(tmp_path), "--current-dir", str(tmp_path),
                            "--config", str(bad)]) == 2
    assert "Audit config parse failed" in capsys.readouterr().err


# ============================================================================
# ci/golden_tests/compare.py
# ============================================================================

def test_golden_compare_directories(golden_cli, bundle, tmp_path):
    baseline, current = tmp_path / "baseline", tmp_path / "current"
    bundle.save(baseline / "triangle.audit.json")
    bundle.save(baseline / "orphan.audit.json")
    bundle.save(current / "triangle.audit.json")
    report = tmp_path / "report.json"

    code = golden_cli.main(["--baseline-dir", str(baseline), "--current-dir", str(current),
                            "--report", str(report)])

    assert code == 1
    data = json.loads(report.read_text())
    assert data["passed"] is False
    assert {c["name"]: c["status"] for c in data["cases"]} == {
        "orphan": "missing",
        "triangle": "matched",
    }


def test_golden_compare_all_matched(golden_cli, bundle, tmp_path):
    baseline, current = tmp_path / "baseline", tmp_path / "current"
    bundle.save(baseline / "triangle.audit.json")
    bundle.save(current / "triangle.audit.json")

    assert golden_cli.main(["--baseline-dir", str(baseline), "--current-dir", str(current)]) == 0


def test_golden_compare_unreadable_current(golden_cli, bundle, tmp_path):
    baseline, current = tmp_path / "baseline", tmp_path / "current"
    bundle.save(baseline / "triangle.audit.json")
    fs.atomic_write_text(current / "triangle.audit.json", "{")

    cases = golden_cli.compare_directories(baseline, current, golden_cli.RegressionTolerance())

    assert cases[0]["status"] == "unreadable"


def test_golden_compare_current_is_directory(golden_cli, bundle, tmp_path):
    baseline, current = tmp_path / "baseline", tmp_path / "current"
    bundle.save(baseline / "triangle.audit.json")
    (current / "triangle.audit.json").mkdir(parents=True)

    cases = golden_cli.compare_directories(baseline, current, golden_cli.RegressionTolerance())

    assert cases[0]["status"] == "unreadable"


def test_golden_compare_missing_baseline_dir(golden_cli, tmp_path):
    assert golden_cli.main(["--baseline-dir", str(tmp_path / "nope"), "--current-dir", str(tmp_path)]) == 2
