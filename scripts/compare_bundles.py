"""Compare two audit bundles with the regression comparator.

Prints MATCH/MISMATCH followed by every difference and note.  Tolerances
come from the ``regression`` section of the audit config.

CLI:
    python scripts/compare_bundles.py baseline.audit.json current.audit.json
    python scripts/compare_bundles.py a.json b.json --config configs/audit.v1.yaml

Exit codes:
    0: bundles match
    1: regression detected
    2: unreadable bundle or config
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.audit import AuditBundle, AuditSerializationError, RegressionTolerance, compare_for_regression
from src.utils import validators
from src.utils.logging_config import setup_logging


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint; returns the process exit code."""
    parser = argparse.ArgumentParser(description="Regression-compare two audit bundles")
    parser.add_argument("baseline", type=str, help="Baseline bundle JSON")
    parser.add_argument("current", type=str, help="Current bundle JSON")
    parser.add_argument("--config", type=str, help="Audit config YAML (default: built-in defaults)")
    args = parser.parse_args(argv)

    try:
        cfg = validators.load_audit_config(args.config) if args.config else validators.default_audit_config()
        setup_logging(**cfg.logging.as_setup_kwargs(), context={"app": "compare_bundles"})
        baseline = AuditBundle.load(args.baseline)
        current = AuditBundle.load(args.current)
    except (OSError, AuditSerializationError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    result = compare_for_regression(baseline, current, RegressionTolerance.from_config(cfg.regression))
    print(result.report())
    return 0 if result.matches else 1


if __name__ == "__main__":
    sys.exit(main())
