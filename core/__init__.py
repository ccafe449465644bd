# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Core module initialization
# PURPOSE: Export core contracts and models
# LAST_REVIEWED: 14 OCT 2026
# ============================================================================

from core.contracts import EventKind, InstanceStatus, RunStatus, RunConclusion
from core.models import (
    Event,
    TriggerFilter,
    WorkflowDefinition,
    JobSpec,
    MatrixSpec,
    JobInstance,
    JobOutcome,
)

__all__ = [
    # Enums
    "EventKind",
    "InstanceStatus",
    "RunStatus",
    "RunConclusion",
    # Models
    "Event",
    "TriggerFilter",
    "WorkflowDefinition",
    "JobSpec",
    "MatrixSpec",
    "JobInstance",
    "JobOutcome",
]
