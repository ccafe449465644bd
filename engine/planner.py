# ============================================================================
# RUN PLANNER
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Core - Wires triggers, matrices, graph and scheduler together
# PURPOSE: Turn (workflow, event) into a ready-to-drive Scheduler
# CREATED: 14 OCT 2026
# ============================================================================
"""
Run Planner

Event -> trigger match -> matrix expansion -> dependency graph -> Scheduler.

Fatal configuration errors (MatrixSpecError, GraphError) abort planning:
no Scheduler, no partial plan. simulate() is a synchronous driver for dry
runs and tests: it hands every instance of every batch to a callback and
reports whatever the callback returns.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from core.contracts import InstanceStatus
from core.models import Event, JobInstance, JobOutcome, WorkflowDefinition
from engine.graph import GraphBuilder
from engine.matrix import MatrixExpander
from engine.scheduler import RunReport, Scheduler
from engine.triggers import TriggerMatcher

logger = logging.getLogger(__name__)

Executor = Callable[[JobInstance], Union[JobOutcome, InstanceStatus]]


@dataclass
class ExecutionPlan:
    """Batches actually produced by a simulated run, plus its report."""
    batches: List[List[str]] = field(default_factory=list)
    report: Optional[RunReport] = None

    @property
    def order(self) -> List[str]:
        """Concatenation of all batches."""
        return [instance_id for batch in self.batches for instance_id in batch]


class RunPlanner:
    """Builds schedulers for workflow runs."""

    def __init__(
        self,
        matcher: Optional[TriggerMatcher] = None,
        expander: Optional[MatrixExpander] = None,
        graph_builder: Optional[GraphBuilder] = None,
    ):
        self.matcher = matcher or TriggerMatcher()
        self.expander = expander or MatrixExpander()
        self.graph_builder = graph_builder or GraphBuilder()

    def plan(
        self,
        workflow: WorkflowDefinition,
        event: Event,
        *,
        cron: Optional[str] = None,
        env: Optional[Mapping[str, Any]] = None,
        run_id: Optional[str] = None,
    ) -> Optional[Scheduler]:
        """
        Plan a run.

        Args:
            workflow: Workflow definition
            event: Triggering event
            cron: Fired cron expression, for schedule events
            env: Extra entries for the `env` expression context
            run_id: Optional run identifier

        Returns:
            Scheduler, or None if no trigger matches the event

        Raises:
            MatrixSpecError: a matrix cannot be expanded
            GraphError: duplicate job, unknown needs, or cycle
        """
        if workflow.triggers:
            trigger = self.matcher.first_match(event, workflow.triggers, cron=cron)
            if trigger is None:
                logger.info(
                    f"Workflow '{workflow.workflow_id}' not triggered by {event.kind.value} on '{event.ref}'"
                )
                return None

        instances = {job.id: self.expander.expand_job(job) for job in workflow.jobs}
        graph = self.graph_builder.build(workflow.jobs, instances)

        base_env: Dict[str, Any] = {
            "github": event.github_context(),
            "inputs": dict(event.inputs),
            "env": {**workflow.env, **(env or {})},
        }
        logger.info(
            f"Planned run for '{workflow.workflow_id}': {len(graph.instances)} instance(s)"
        )
        return Scheduler(
            graph,
            workflow.jobs,
            base_env,
            run_id=run_id,
            workflow_id=workflow.workflow_id,
        )


def simulate(scheduler: Scheduler, executor: Executor) -> ExecutionPlan:
    """
    Drive a scheduler to completion synchronously.

    Args:
        scheduler: Freshly planned scheduler
        executor: Called once per instance; returns its outcome

    Returns:
        ExecutionPlan with the produced batches and the final report
    """
    plan = ExecutionPlan()
    for batch in scheduler.batches():
        plan.batches.append(batch.instance_ids)
        for instance in batch:
            scheduler.report(instance.instance_id, executor(instance))
    plan.report = scheduler.report_summary()
    return plan


def plan_run(
    workflow: WorkflowDefinition,
    event: Event,
    *,
    cron: Optional[str] = None,
    env: Optional[Mapping[str, Any]] = None,
) -> Optional[Scheduler]:
    """Convenience function using default components."""
    return RunPlanner().plan(workflow, event, cron=cron, env=env)


__all__ = [
    "Executor",
    "ExecutionPlan",
    "RunPlanner",
    "simulate",
    "plan_run",
]
