#!/usr/bin/env python3
"""Run the compliance sweep locally or from cron.

Usage:
    python scripts/run_sweep.py
    python scripts/run_sweep.py --force
    python scripts/run_sweep.py --organization-id <uuid>

Recomputes deadlines and scores, reconciles alerts and delivers notifications
for every active organization (or just one). Exits 0 when every organization
completed, 1 otherwise.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from uuid import UUID

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from ssm_compliance.errors import SweepOverlapError
from ssm_compliance.services.sweep import build_sweep_runner


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the compliance sweep")
    parser.add_argument("--force", action="store_true", help="Bypass the overlap guard")
    parser.add_argument("--organization-id", type=UUID, default=None)
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    trigger = "manual" if args.force else "scheduled"
    runner = build_sweep_runner()
    try:
        if args.organization_id is not None:
            summaries = [
                runner.run_organization(args.organization_id, force=args.force, trigger=trigger)
            ]
        else:
            summaries = runner.run_all(force=args.force, trigger=trigger)
    except SweepOverlapError as e:
        print(f"status=rejected error={e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    for s in summaries:
        print(
            f"organization_id={s.organization_id} "
            f"status={s.status} "
            f"checked={s.checked} "
            f"alerts_created={s.alerts_created} "
            f"alerts_escalated={s.alerts_escalated} "
            f"alerts_resolved={s.alerts_resolved} "
            f"notifications_sent={s.notifications_sent}"
        )
        for error in s.errors:
            print(f"error={error}", file=sys.stderr)
    return 0 if all(s.status == "completed" for s in summaries) else 1


if __name__ == "__main__":
    sys.exit(main())
