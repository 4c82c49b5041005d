#!/usr/bin/env python3
"""Send escalation reminders for alerts left unacknowledged.

Usage:
    python scripts/run_escalation.py

Reminds each organization's escalation contact about active alerts (warning or
worse) older than ESCALATION_AFTER_HOURS. Exits 0 on success, 1 on failure.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from ssm_compliance.services.sweep import build_sweep_runner


def main() -> int:
    try:
        result = build_sweep_runner().run_escalation()
        print(
            f"status={result['status']} "
            f"reminders_enqueued={result['reminders_enqueued']} "
            f"sent={result['delivery']['sent']}"
        )
        return 0 if result["status"] == "completed" else 1
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
