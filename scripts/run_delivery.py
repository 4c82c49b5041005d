#!/usr/bin/env python3
"""Deliver pending notification jobs (quiet-hours deferrals and retries).

Usage:
    python scripts/run_delivery.py

Meant to run every few minutes between sweeps. Exits 0 on success, 1 on failure.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from ssm_compliance.services.sweep import build_sweep_runner


def main() -> int:
    try:
        report = build_sweep_runner().run_delivery()
        print(
            f"status=completed "
            f"sent={report.sent} "
            f"failed={report.failed} "
            f"retried={report.retried} "
            f"skipped={report.skipped}"
        )
        return 0
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
