# ============================================================================
# MODELS MODULE
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Model exports
# PURPOSE: Central export point for all Pydantic models
# LAST_REVIEWED: 14 OCT 2026
# ============================================================================
"""
Models Module - Central Export Point

All Pydantic models for the workflow planning engine.
Read-only records (definitions, events, instances, outcomes) are frozen.
"""

from core.models.event import Event, TriggerFilter
from core.models.workflow import WorkflowDefinition, JobSpec, MatrixSpec
from core.models.instance import JobInstance, JobOutcome

__all__ = [
    # Events
    "Event",
    "TriggerFilter",
    # Workflow
    "WorkflowDefinition",
    "JobSpec",
    "MatrixSpec",
    # Runtime
    "JobInstance",
    "JobOutcome",
]
