"""Alert mutation API: acknowledge, dismiss, resolve."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ssm_compliance.api.deps import get_actor, get_db
from ssm_compliance.errors import StateTransitionError
from ssm_compliance.schemas.alert import AlertActionRequest, AlertResponse
from ssm_compliance.services.alerts import acknowledge_alert, dismiss_alert, resolve_alert

router = APIRouter()


def _conflict(exc: StateTransitionError) -> HTTPException:
    return HTTPException(
        status_code=409,
        detail=f"Alert cannot move from {exc.current} to {exc.target}",
    )


@router.post("/{alert_id}/acknowledge", response_model=AlertResponse)
def api_acknowledge_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_actor),
) -> AlertResponse:
    try:
        alert = acknowledge_alert(db, alert_id, actor)
    except StateTransitionError as exc:
        raise _conflict(exc)
    if alert is None:
        raise HTTPException(status_code=404, detail="Alert not found")
    return AlertResponse.model_validate(alert)


@router.post("/{alert_id}/dismiss", response_model=AlertResponse)
def api_dismiss_alert(
    alert_id: int,
    data: AlertActionRequest | None = None,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_actor),
) -> AlertResponse:
    """Dismiss an alert. The entity will not re-alert at the same or a lower severity."""
    try:
        alert = dismiss_alert(db, alert_id, actor, data.reason if data else None)
    except StateTransitionError as exc:
        raise _conflict(exc)
    if alert is None:
        raise HTTPException(status_code=404, detail="Alert not found")
    return AlertResponse.model_validate(alert)


@router.post("/{alert_id}/resolve", response_model=AlertResponse)
def api_resolve_alert(
    alert_id: int,
    data: AlertActionRequest | None = None,
    db: Session = Depends(get_db),
    actor: str | None = Depends(get_actor),
) -> AlertResponse:
    try:
        alert = resolve_alert(db, alert_id, actor, data.reason if data else None)
    except StateTransitionError as exc:
        raise _conflict(exc)
    if alert is None:
        raise HTTPException(status_code=404, detail="Alert not found")
    return AlertResponse.model_validate(alert)
