"""Internal job endpoints for cron/scripts.

These endpoints are secured with a static token (X-Internal-Token header).
They are meant for automated triggers only.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from ssm_compliance.api.deps import get_sweep_runner, parse_uuid_or_422
from ssm_compliance.config import get_settings
from ssm_compliance.errors import SweepOverlapError
from ssm_compliance.services.sweep import SweepRunner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", include_in_schema=False)


# ── Token dependency ────────────────────────────────────────────────


def _require_internal_token(x_internal_token: str = Header(...)) -> None:
    """Validate the internal job token from the request header.

    Uses constant-time comparison to prevent timing attacks.
    Raises 403 if the token is empty or does not match the configured value.
    """
    expected = get_settings().internal_job_token
    if not expected or not secrets.compare_digest(x_internal_token, expected):
        logger.warning("Internal endpoint auth failed: invalid or missing token")
        raise HTTPException(status_code=403, detail="Invalid internal token")


# ── Endpoints ───────────────────────────────────────────────────────


@router.post("/run_sweep")
def run_sweep(
    _token: None = Depends(_require_internal_token),
    runner: SweepRunner = Depends(get_sweep_runner),
    force: bool = Query(False, description="Bypass the per-organization overlap guard"),
    organization_id: str | None = Query(None, description="Sweep one organization only"),
):
    """Trigger the compliance sweep.

    Without organization_id every active organization is swept; one
    organization's failure is reported in its summary and never stops the rest.
    With organization_id an overlapping run is rejected with 409.
    """
    trigger = "manual" if force else "scheduled"
    if organization_id is not None:
        org_uuid = parse_uuid_or_422(organization_id, "organization_id")
        try:
            summary = runner.run_organization(org_uuid, force=force, trigger=trigger)
        except SweepOverlapError:
            raise HTTPException(status_code=409, detail="Sweep already running for organization")
        return {"status": summary.status, "organizations": [summary.as_dict()]}

    try:
        summaries = runner.run_all(force=force, trigger=trigger)
    except Exception as exc:
        logger.exception("Internal sweep failed")
        return {"status": "failed", "error": str(exc)}
    statuses = {s.status for s in summaries}
    return {
        "status": "completed" if statuses <= {"completed"} else "completed_with_errors",
        "organizations": [s.as_dict() for s in summaries],
    }


@router.post("/run_delivery")
def run_delivery(
    _token: None = Depends(_require_internal_token),
    runner: SweepRunner = Depends(get_sweep_runner),
):
    """Deliver deferred (quiet hours) and retried notification jobs."""
    try:
        report = runner.run_delivery()
        return {"status": "completed", **report.as_dict()}
    except Exception as exc:
        logger.exception("Internal delivery run failed")
        return {"status": "failed", "error": str(exc)}


@router.post("/run_escalation")
def run_escalation(
    _token: None = Depends(_require_internal_token),
    runner: SweepRunner = Depends(get_sweep_runner),
):
    """Remind escalation contacts about alerts left unacknowledged."""
    try:
        return runner.run_escalation()
    except Exception as exc:
        logger.exception("Internal escalation run failed")
        return {"status": "failed", "error": str(exc)}
