#!/usr/bin/env python3
"""Escrow parameter invariant checks.

Usage:
    python3 tools/check_invariants.py
    python3 tools/check_invariants.py path/to/escrow_params.json
"""

import sys
from pathlib import Path

from daysinarow.config import DEFAULT_PARAMS_PATH, check_params_file


def check(params_path: Path = DEFAULT_PARAMS_PATH) -> int:
    errors = check_params_file(params_path)
    if errors:
        print("Invariant check failed:")
        for err in errors:
            print(f"  - {err}")
        return 1
    print("Invariant checks passed.")
    return 0


if __name__ == "__main__":
    target = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_PARAMS_PATH
    raise SystemExit(check(target))
