"""Shared FastAPI dependencies for API routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import Header, HTTPException

from ssm_compliance.db.session import get_db  # re-export
from ssm_compliance.services.sweep import SweepRunner, build_sweep_runner

__all__ = [
    "get_actor",
    "get_db",
    "get_sweep_runner",
    "parse_uuid_or_422",
]


def parse_uuid_or_422(value: str, param_name: str) -> UUID:
    """Parse value as UUID; raise HTTPException 422 if it is not one."""
    try:
        return UUID(value.strip())
    except (ValueError, TypeError, AttributeError):
        raise HTTPException(
            status_code=422,
            detail=f"Invalid {param_name}: must be a valid UUID",
        ) from None


def get_actor(x_actor_id: str | None = Header(None, alias="X-Actor-Id")) -> str | None:
    """Acting user id, forwarded by the authentication layer in front of this service."""
    if x_actor_id is None or not x_actor_id.strip():
        return None
    return x_actor_id.strip()


def get_sweep_runner() -> SweepRunner:
    """Sweep runner wired to the real session factory and configured channels."""
    return build_sweep_runner()
