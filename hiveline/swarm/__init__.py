"""Claim-based multi-worker swarm for hiveline."""

from __future__ import annotations

from hiveline.swarm.roles import Role, get_role, list_roles
from hiveline.swarm.scheduler import Swarm
from hiveline.swarm.types import SwarmRunResult, SwarmStatus, WorkerResult
from hiveline.swarm.worker import FunctionWorker, LLMWorker, Worker

__all__ = [
    "FunctionWorker",
    "LLMWorker",
    "Role",
    "Swarm",
    "SwarmRunResult",
    "SwarmStatus",
    "Worker",
    "WorkerResult",
    "get_role",
    "list_roles",
]
