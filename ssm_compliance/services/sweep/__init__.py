"""Sweep orchestration: per-organization lock, budget and runner."""

from ssm_compliance.services.sweep.budget import SweepBudget
from ssm_compliance.services.sweep.locks import acquire_sweep_lock, release_sweep_lock
from ssm_compliance.services.sweep.runner import SweepRunner, SweepSummary, build_sweep_runner

__all__ = [
    "SweepBudget",
    "SweepRunner",
    "SweepSummary",
    "acquire_sweep_lock",
    "build_sweep_runner",
    "release_sweep_lock",
]
