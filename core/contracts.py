# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Foundation - Core enums shared by every engine component
# PURPOSE: Define event kinds and run/instance status enums
# LAST_REVIEWED: 14 OCT 2026
# EXPORTS: EventKind, InstanceStatus, RunStatus, RunConclusion
# DEPENDENCIES: enum
# ============================================================================
"""
Base contracts for the workflow planning engine.

These enums cross every boundary inside the engine:
- Trigger matching (EventKind)
- Scheduling (InstanceStatus, RunStatus)
- Reporting (RunConclusion)
"""

from enum import Enum


# ============================================================================
# EVENT KINDS
# ============================================================================

class EventKind(str, Enum):
    """Repository events that can start a workflow run."""
    PUSH = "push"
    PULL_REQUEST = "pull_request"
    SCHEDULE = "schedule"
    WORKFLOW_DISPATCH = "workflow_dispatch"
    RELEASE = "release"


# ============================================================================
# STATUS ENUMS
# ============================================================================

class InstanceStatus(str, Enum):
    """
    Job instance lifecycle states.

    State transitions:
        PENDING -> RUNNING -> SUCCESS
                           -> FAILURE
                           -> CANCELLED
                -> SKIPPED   (gating condition false)
                -> CANCELLED (run cancelled before it started)
    """
    PENDING = "pending"          # Waiting for dependencies
    RUNNING = "running"          # Handed to the executor
    SUCCESS = "success"          # Executor reported success
    FAILURE = "failure"          # Executor reported failure
    SKIPPED = "skipped"          # Gate evaluated false, never ran
    CANCELLED = "cancelled"      # Run cancelled

    def is_terminal(self) -> bool:
        """Check if this is a terminal state (no further transitions)."""
        return self in (
            InstanceStatus.SUCCESS,
            InstanceStatus.FAILURE,
            InstanceStatus.SKIPPED,
            InstanceStatus.CANCELLED,
        )

    def is_successful(self) -> bool:
        """Only SUCCESS counts; a skipped dependency is not a success."""
        return self == InstanceStatus.SUCCESS


class RunStatus(str, Enum):
    """
    Workflow run lifecycle states.

    State transitions:
        PENDING -> RUNNING -> COMPLETED
                           -> CANCELLED
        PENDING -> CANCELLED
    """
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def is_terminal(self) -> bool:
        """Check if this is a terminal state."""
        return self in (RunStatus.COMPLETED, RunStatus.CANCELLED)


class RunConclusion(str, Enum):
    """Overall verdict of a finished run."""
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"


__all__ = [
    "EventKind",
    "InstanceStatus",
    "RunStatus",
    "RunConclusion",
]
