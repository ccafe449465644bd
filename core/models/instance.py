# ============================================================================
# JOB INSTANCE & OUTCOME MODELS
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Core model - Runtime units of scheduling
# PURPOSE: One concrete matrix leg of a job, and its reported outcome
# LAST_REVIEWED: 14 OCT 2026
# EXPORTS: JobInstance, JobOutcome
# DEPENDENCIES: pydantic
# ============================================================================
"""
Job Instance Model

Key concept:
- JobSpec = TEMPLATE (what the workflow declares)
- JobInstance = one matrix leg of that template (what gets scheduled)
- JobOutcome = the state recorded for an instance in the ExecutionContext

Instances are created once by the matrix expander and never mutated.
"""

from typing import Any, Dict
from pydantic import BaseModel, Field, computed_field

from core.contracts import InstanceStatus


class JobInstance(BaseModel):
    """A JobSpec expanded with one concrete matrix assignment (or none)."""
    spec_id: str
    matrix_values: Dict[str, Any] = Field(default_factory=dict)
    instance_id: str

    model_config = {"frozen": True}

    @computed_field
    @property
    def is_matrixed(self) -> bool:
        return bool(self.matrix_values)


class JobOutcome(BaseModel):
    """Status and outputs of one job instance."""
    status: InstanceStatus = InstanceStatus.PENDING
    outputs: Dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @computed_field
    @property
    def is_terminal(self) -> bool:
        """Check if instance is in a terminal state."""
        return self.status.is_terminal()

    @classmethod
    def success(cls, **outputs: str) -> "JobOutcome":
        return cls(status=InstanceStatus.SUCCESS, outputs=outputs)

    @classmethod
    def failure(cls, **outputs: str) -> "JobOutcome":
        return cls(status=InstanceStatus.FAILURE, outputs=outputs)


__all__ = ["JobInstance", "JobOutcome"]
