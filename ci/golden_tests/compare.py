"""Golden bundle comparison script for CI.

Compares every ``*.audit.json`` in a baseline directory against the bundle
of the same name in a current directory:
    - Loads regression tolerances from the audit config (defaults if none)
    - Runs the regression comparator on each pair
    - Prints differences and notes per case
    - Writes a JSON report when --report is given

CLI:
    python ci/golden_tests/compare.py --baseline-dir ci/golden --current-dir outputs/golden
    python ci/golden_tests/compare.py --baseline-dir ci/golden --current-dir out/ \\
                                      --config configs/audit.v1.yaml --report outputs/ci/report.json

Report format:
    {"passed": false,
     "cases": [{"name": "cube", "status": "mismatched",
                "differences": [...], "notes": [...]}, ...]}

Exit codes:
    0: All cases matched
    1: One or more cases mismatched, are missing or unreadable
    2: Bad arguments or config
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from src.audit import AuditBundle, AuditSerializationError, RegressionTolerance, compare_for_regression
from src.utils import fs, validators
from src.utils.logging_config import setup_logging

logger = logging.getLogger("golden_compare")

BUNDLE_SUFFIX = ".audit.json"


def compare_directories(
    baseline_dir: Path,
    current_dir: Path,
    tolerance: RegressionTolerance,
) -> List[Dict[str, Any]]:
    """Compare all baseline bundles against their current counterparts.

    Returns
    -------
    List[Dict[str, Any]]
        One record per baseline bundle with ``name``, ``status``
        (matched/mismatched/missing/unreadable), ``differences`` and ``notes``.
    """
    cases = []
    for baseline_path in sorted(baseline_dir.glob(f"*{BUNDLE_SUFFIX}")):
        name = baseline_path.name[: -len(BUNDLE_SUFFIX)]
        current_path = current_dir / baseline_path.name
        case: Dict[str, Any] = {"name": name, "differences": [], "notes": []}

        if not current_path.exists():
            case["status"] = "missing"
            case["differences"].append(f"No current bundle at {current_path}")
            cases.append(case)
            continue

        try:
            baseline = AuditBundle.load(baseline_path)
            current = AuditBundle.load(current_path)
        except (OSError, AuditSerializationError) as e:
            case["status"] = "unreadable"
            case["differences"].append(str(e))
            cases.append(case)
            continue

        result = compare_for_regression(baseline, current, tolerance)
        case["status"] = "matched" if result.matches else "mismatched"
        case["differences"] = result.differences
        case["notes"] = result.notes
        cases.append(case)

    return cases


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Compare golden audit bundles")
    parser.add_argument("--baseline-dir", type=str, required=True, help="Directory of reference bundles")
    parser.add_argument("--current-dir", type=str, required=True, help="Directory of freshly produced bundles")
    parser.add_argument("--config", type=str, help="Audit config YAML")
    parser.add_argument("--report", type=str, help="Optional JSON report path")
    args = parser.parse_args(argv)

    try:
        cfg = validators.load_audit_config(args.config) if args.config else validators.default_audit_config()
    except (OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    setup_logging(**cfg.logging.as_setup_kwargs(), context={"app": "golden_compare"})

    baseline_dir = Path(args.baseline_dir)
    if not baseline_dir.is_dir():
        print(f"error: baseline directory not found: {baseline_dir}", file=sys.stderr)
        return 2

    cases = compare_directories(baseline_dir, Path(args.current_dir),
                                RegressionTolerance.from_config(cfg.regression))
    if not cases:
        logger.warning("No baseline bundles found in %s", baseline_dir)

    passed = all(case["status"] == "matched" for case in cases)
    for case in cases:
        print(f"{case['status'].upper():<10} {case['name']}")
        for diff in case["differences"]:
            print(f"    difference: {diff}")
        for note in case["notes"]:
            print(f"    note: {note}")
    print(f"\n{sum(c['status'] == 'matched' for c in cases)}/{len(cases)} golden cases matched")

    if args.report:
        fs.atomic_write_text(args.report, json.dumps({"passed": passed, "cases": cases}, indent=2))
        logger.info("Report written to %s", args.report)

    return 0 if passed else 1


if __name__ == "__main__":
    sys.exit(main())
