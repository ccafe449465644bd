# ============================================================================
# WORKFLOW DEFINITION MODEL
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Core model - Workflow template/blueprint
# PURPOSE: Define jobs, dependencies, matrices and triggers
# LAST_REVIEWED: 14 OCT 2026
# EXPORTS: WorkflowDefinition, JobSpec, MatrixSpec
# DEPENDENCIES: pydantic
# ============================================================================
"""
Workflow Definition Models

A WorkflowDefinition is the template/blueprint for a run.
It defines:
- What jobs exist
- Dependencies between jobs (needs)
- Gating conditions (if)
- Matrix strategies
- Which events trigger it

Workflows are loaded from YAML files (services.workflow_service) and are
read-only for the lifetime of a run.
"""

from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, Field, field_validator

from core.contracts import EventKind
from core.models.event import TriggerFilter


class MatrixSpec(BaseModel):
    """
    Matrix strategy for a job.

    Values are validated by the matrix expander rather than here, so that
    malformed matrices surface as MatrixSpecError at expansion time.
    """
    axes: Dict[str, Any] = Field(
        default_factory=dict,
        description="Axis name -> ordered list of values (declaration order kept)"
    )
    include: List[Any] = Field(default_factory=list)
    exclude: List[Any] = Field(default_factory=list)

    model_config = {"frozen": True}


class JobSpec(BaseModel):
    """
    Definition of a single job in a workflow.

    This is the TEMPLATE. JobInstance (instance.py) is one concrete matrix leg.
    """
    id: str = Field(..., min_length=1, max_length=100)
    name: Optional[str] = None
    needs: Tuple[str, ...] = Field(
        default=(),
        description="Job ids that must reach a terminal state first"
    )
    condition: Optional[str] = Field(
        default=None,
        description="Gating expression (the `if:` key)"
    )
    matrix: Optional[MatrixSpec] = None
    runs_on: str = "ubuntu-latest"
    env: Dict[str, str] = Field(default_factory=dict)
    steps: List[Any] = Field(default_factory=list)

    model_config = {"frozen": True}

    @field_validator("needs", mode="before")
    @classmethod
    def normalize_needs(cls, v):
        """Accept a bare string; drop duplicates keeping declaration order."""
        if v is None:
            return ()
        if isinstance(v, str):
            v = [v]
        seen = []
        for item in v:
            if item not in seen:
                seen.append(item)
        return tuple(seen)

    @property
    def display_name(self) -> str:
        return self.name or self.id


class WorkflowDefinition(BaseModel):
    """
    Complete workflow definition.

    Immutable once loaded - changes require a new definition.
    """
    workflow_id: str = Field(..., max_length=128)
    name: Optional[str] = None
    env: Dict[str, str] = Field(default_factory=dict)
    jobs: List[JobSpec] = Field(default_factory=list)
    triggers: List[TriggerFilter] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def job_ids(self) -> List[str]:
        return [job.id for job in self.jobs]

    def get_job(self, job_id: str) -> JobSpec:
        """Get a job definition by ID."""
        for job in self.jobs:
            if job.id == job_id:
                return job
        raise KeyError(f"Job '{job_id}' not found in workflow '{self.workflow_id}'")

    def validate_structure(self) -> List[str]:
        """
        Validate workflow structure.

        Cycles are detected by the graph builder, not here.

        Returns list of validation errors (empty if valid).
        """
        errors = []

        if not self.jobs:
            errors.append("Workflow must define at least one job")

        # Job ids must be unique
        seen = set()
        for job_id in self.job_ids:
            if job_id in seen:
                errors.append(f"Duplicate job id '{job_id}'")
            seen.add(job_id)

        # All needs must reference known jobs
        for job in self.jobs:
            for dep in job.needs:
                if dep not in seen:
                    errors.append(f"Job '{job.id}' needs unknown job '{dep}'")

        # Schedule triggers need at least one cron entry
        for trigger in self.triggers:
            if trigger.kind == EventKind.SCHEDULE and not trigger.cron_expressions:
                errors.append("schedule trigger must declare at least one cron expression")

        return errors


__all__ = ["MatrixSpec", "JobSpec", "WorkflowDefinition"]
