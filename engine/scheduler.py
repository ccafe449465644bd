# ============================================================================
# SCHEDULER
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Core - Tick-based batch production
# PURPOSE: Decide which job instances run, in which batch, and which are skipped
# CREATED: 14 OCT 2026
# ============================================================================
"""
Scheduler

The scheduler never executes anything. Each tick it looks at every pending
instance whose dependencies are all terminal (success, failure, skipped or
cancelled) and gates it:

- no `if:`                      -> success()
- `if:` without status function -> success() && (<if>)   [implicit guard]
- `if:` with a status function  -> evaluated as written

Instances that pass move to RUNNING and form the tick's batch; the rest move
straight to SKIPPED without ever running. A skip can make further instances
ready, so gating repeats within the tick until nothing changes.

The executor runs each batch and calls report() exactly once per instance.
report() is not thread-safe: feed it from a single thread or behind a lock.

A condition that fails to parse or evaluate is treated as false, but it is
recorded as a ConditionDiagnostic and logged at ERROR so authoring mistakes
are never hidden behind an ordinary skip.

Instance states:
    PENDING -> RUNNING -> SUCCESS | FAILURE | CANCELLED
    PENDING -> SKIPPED | CANCELLED

Run states:
    PENDING -> RUNNING -> COMPLETED | CANCELLED
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from core.config import get_defaults
from core.contracts import InstanceStatus, RunConclusion, RunStatus
from core.logging import ComponentType, get_logger, log_checkpoint, log_context
from core.models import JobInstance, JobOutcome, JobSpec
from engine.context import ContextSnapshot, ExecutionContext
from engine.expressions import (
    EvaluationError,
    evaluate_condition,
    strip_wrapper,
    uses_status_function,
)
from engine.graph import DependencyGraph

logger = get_logger(__name__, ComponentType.SCHEDULER)


# ============================================================================
# ERRORS
# ============================================================================

class SchedulerError(Exception):
    """Raised when the scheduler is driven incorrectly."""
    pass


class DeadlockError(SchedulerError):
    """Pending instances remain but nothing can ever become ready."""

    def __init__(self, unresolved: List[str]):
        self.unresolved = list(unresolved)
        super().__init__(f"Scheduling deadlock, unresolved instances: {self.unresolved}")


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True)
class ConditionDiagnostic:
    """A gating expression that could not be evaluated."""
    instance_id: str
    expression: str
    error: str


@dataclass
class Batch:
    """Instances judged ready to run in one tick."""
    index: int
    instances: List[JobInstance] = field(default_factory=list)

    # Instances skipped during the same tick
    skipped: List[str] = field(default_factory=list)

    @property
    def instance_ids(self) -> List[str]:
        return [instance.instance_id for instance in self.instances]

    def __len__(self) -> int:
        return len(self.instances)

    def __iter__(self) -> Iterator[JobInstance]:
        return iter(self.instances)


@dataclass
class RunReport:
    """Final (or current) view of a run."""
    run_id: str
    workflow_id: Optional[str]
    status: RunStatus
    conclusion: Optional[RunConclusion]
    outcomes: Dict[str, InstanceStatus] = field(default_factory=dict)
    outputs: Dict[str, Dict[str, str]] = field(default_factory=dict)
    batches: List[List[str]] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    diagnostics: List[ConditionDiagnostic] = field(default_factory=list)
    cancel_reason: Optional[str] = None

    @property
    def has_diagnostics(self) -> bool:
        return bool(self.diagnostics)


# ============================================================================
# SCHEDULER
# ============================================================================

class Scheduler:
    """
    Single-owner scheduler for one workflow run.

    Drive it either with batches() (synchronous executors that report every
    instance of a batch before asking for the next) or with tick() after each
    report() (executors that finish instances at different times).
    """

    def __init__(
        self,
        graph: DependencyGraph,
        jobs: Union[Sequence[JobSpec], Mapping[str, JobSpec]],
        env: Optional[Mapping[str, Any]] = None,
        *,
        run_id: Optional[str] = None,
        workflow_id: Optional[str] = None,
        implicit_success_guard: Optional[bool] = None,
    ):
        """
        Args:
            graph: Validated dependency graph
            jobs: Job specs (sequence or id -> spec mapping)
            env: Base expression contexts (github, inputs, env)
            run_id: Identifier used in logs and the report
            workflow_id: Workflow identifier for logs and the report
            implicit_success_guard: Override SchedulerDefaults
        """
        if isinstance(jobs, Mapping):
            self._specs: Dict[str, JobSpec] = dict(jobs)
        else:
            self._specs = {job.id: job for job in jobs}

        missing = sorted({inst.spec_id for inst in graph.instances.values()} - set(self._specs))
        if missing:
            raise SchedulerError(f"Graph references jobs without specs: {missing}")

        self.graph = graph
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.workflow_id = workflow_id
        self._base_env: Dict[str, Any] = dict(env or {})
        if implicit_success_guard is None:
            implicit_success_guard = get_defaults().scheduler.implicit_success_guard
        self._implicit_guard = implicit_success_guard

        self._context = ExecutionContext(graph.nodes)
        self._legs: Dict[str, List[str]] = {}
        for instance in graph.instances.values():
            self._legs.setdefault(instance.spec_id, []).append(instance.instance_id)

        self._status = RunStatus.PENDING
        self._batches: List[Batch] = []
        self._skipped: List[str] = []
        self._diagnostics: List[ConditionDiagnostic] = []
        self._cancel_reason: Optional[str] = None

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def status(self) -> RunStatus:
        return self._status

    @property
    def diagnostics(self) -> List[ConditionDiagnostic]:
        return list(self._diagnostics)

    def outcome(self, instance_id: str) -> JobOutcome:
        return self._context.get(instance_id)

    def snapshot(self) -> ContextSnapshot:
        """Immutable copy of the execution context."""
        return self._context.snapshot()

    # ------------------------------------------------------------------
    # Batch production
    # ------------------------------------------------------------------

    def tick(self) -> Batch:
        """
        Run one scheduling tick.

        Returns:
            The batch of instances that moved to RUNNING (possibly empty)

        Raises:
            DeadlockError: pending instances remain but none can progress
        """
        batch = Batch(index=len(self._batches))
        if self._status.is_terminal():
            return batch

        with log_context(run_id=self.run_id, workflow_id=self.workflow_id):
            if self._status == RunStatus.PENDING:
                self._status = RunStatus.RUNNING
                logger.info(f"Run started with {len(self._context)} instance(s)")

            progress = True
            while progress:
                progress = False
                for instance_id in self._context.with_status(InstanceStatus.PENDING):
                    if not self._dependencies_done(instance_id):
                        continue
                    if self._gate(instance_id):
                        self._context.set_status(instance_id, InstanceStatus.RUNNING)
                        batch.instances.append(self.graph.instances[instance_id])
                    else:
                        self._context.set_status(instance_id, InstanceStatus.SKIPPED)
                        self._skipped.append(instance_id)
                        batch.skipped.append(instance_id)
                        progress = True

            pending = self._context.with_status(InstanceStatus.PENDING)
            running = self._context.with_status(InstanceStatus.RUNNING)

            if batch.instances:
                self._batches.append(batch)
                log_checkpoint(
                    "batch_produced",
                    {"index": batch.index, "instances": batch.instance_ids, "skipped": batch.skipped},
                )
            elif pending and not running:
                logger.error(f"Deadlock: {len(pending)} instance(s) can never become ready")
                raise DeadlockError(pending)

            if not pending and not running:
                self._complete()

        return batch

    def batches(self) -> Iterator[Batch]:
        """
        Lazily yield ready batches until nothing is pending.

        Every instance of a yielded batch must be reported before the next
        batch is requested.

        Raises:
            SchedulerError: next batch requested while instances are unreported
            DeadlockError: see tick()
        """
        while not self._status.is_terminal():
            running = self._context.with_status(InstanceStatus.RUNNING)
            if running:
                raise SchedulerError(f"Outcomes not reported for running instances: {running}")
            batch = self.tick()
            if batch.instances:
                yield batch

    # ------------------------------------------------------------------
    # Executor callbacks
    # ------------------------------------------------------------------

    def report(
        self,
        instance_id: str,
        outcome: Union[JobOutcome, InstanceStatus],
    ) -> None:
        """
        Record the outcome of a running instance.

        Args:
            instance_id: Instance handed out in a batch
            outcome: JobOutcome, or a bare status with no outputs

        Raises:
            SchedulerError: unknown instance, instance not running, or a
                non-terminal / skipped outcome
        """
        if instance_id not in self._context:
            raise SchedulerError(f"Unknown instance '{instance_id}'")
        if isinstance(outcome, InstanceStatus):
            outcome = JobOutcome(status=outcome)

        with log_context(run_id=self.run_id, workflow_id=self.workflow_id, instance_id=instance_id):
            current = self._context.status_of(instance_id)
            if current == InstanceStatus.CANCELLED and self._status == RunStatus.CANCELLED:
                logger.warning(f"Ignoring late report ({outcome.status.value}) for cancelled instance")
                return
            if current != InstanceStatus.RUNNING:
                raise SchedulerError(
                    f"Instance '{instance_id}' is {current.value}, only running instances can be reported"
                )
            if outcome.status not in (
                InstanceStatus.SUCCESS,
                InstanceStatus.FAILURE,
                InstanceStatus.CANCELLED,
            ):
                raise SchedulerError(
                    f"Invalid reported status '{outcome.status.value}' for '{instance_id}'"
                )

            self._context.record(instance_id, outcome)
            logger.info(f"Instance finished: {outcome.status.value}")

            if not self._context.with_status(InstanceStatus.PENDING, InstanceStatus.RUNNING):
                self._complete()

    def cancel(self, reason: str = "cancelled") -> List[str]:
        """
        Cancel the run.

        Pending and running instances become CANCELLED; recorded terminal
        outcomes are kept. No further batches are produced.

        Returns:
            Instance ids that were cancelled
        """
        if self._status.is_terminal():
            logger.info(f"Cancel ignored, run already {self._status.value}")
            return []

        with log_context(run_id=self.run_id, workflow_id=self.workflow_id):
            affected = self._context.with_status(InstanceStatus.PENDING, InstanceStatus.RUNNING)
            for instance_id in affected:
                self._context.set_status(instance_id, InstanceStatus.CANCELLED)
            self._status = RunStatus.CANCELLED
            self._cancel_reason = reason
            log_checkpoint("run_cancelled", {"reason": reason, "cancelled": affected})
        return affected

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def report_summary(self) -> RunReport:
        """Build the run report (valid at any point of the run)."""
        outcomes = {iid: self._context.status_of(iid) for iid in self._context}
        return RunReport(
            run_id=self.run_id,
            workflow_id=self.workflow_id,
            status=self._status,
            conclusion=self._conclusion(outcomes) if self._status.is_terminal() else None,
            outcomes=outcomes,
            outputs={
                iid: dict(self._context.get(iid).outputs)
                for iid in self._context
                if self._context.get(iid).outputs
            },
            batches=[batch.instance_ids for batch in self._batches],
            skipped=list(self._skipped),
            diagnostics=list(self._diagnostics),
            cancel_reason=self._cancel_reason,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _conclusion(self, outcomes: Mapping[str, InstanceStatus]) -> RunConclusion:
        if self._status == RunStatus.CANCELLED:
            return RunConclusion.CANCELLED
        statuses = set(outcomes.values())
        if InstanceStatus.FAILURE in statuses:
            return RunConclusion.FAILURE
        if InstanceStatus.CANCELLED in statuses:
            return RunConclusion.CANCELLED
        return RunConclusion.SUCCESS

    def _complete(self) -> None:
        if self._status.is_terminal():
            return
        self._status = RunStatus.COMPLETED
        outcomes = {iid: self._context.status_of(iid) for iid in self._context}
        log_checkpoint(
            "run_completed",
            {
                "conclusion": self._conclusion(outcomes).value,
                "batches": len(self._batches),
                "skipped": len(self._skipped),
                "diagnostics": len(self._diagnostics),
            },
        )

    def _dependencies_done(self, instance_id: str) -> bool:
        return all(
            self._context.status_of(dep).is_terminal()
            for dep in self.graph.get_dependencies(instance_id)
        )

    def _gating_expression(self, spec: JobSpec) -> str:
        condition = strip_wrapper(spec.condition) if spec.condition else ""
        if not condition:
            return "success()"
        if self._implicit_guard and not uses_status_function(condition):
            return f"success() && ({condition})"
        return condition

    def _gate(self, instance_id: str) -> bool:
        instance = self.graph.instances[instance_id]
        spec = self._specs[instance.spec_id]

        with log_context(job_id=spec.id, instance_id=instance_id):
            try:
                expression = self._gating_expression(spec)
                passed = evaluate_condition(
                    expression,
                    self._context.snapshot(self.graph.get_dependencies(instance_id)),
                    self._env_for(instance, spec),
                )
            except EvaluationError as e:
                self._diagnostics.append(
                    ConditionDiagnostic(
                        instance_id=instance_id,
                        expression=spec.condition or "",
                        error=str(e),
                    )
                )
                logger.error(f"Condition could not be evaluated, skipping: {e}")
                return False

            if not passed:
                logger.info(f"Condition false, skipping: {expression}")
            return passed

    def _env_for(self, instance: JobInstance, spec: JobSpec) -> Dict[str, Any]:
        env = dict(self._base_env)
        env["env"] = {**self._base_env.get("env", {}), **spec.env}
        env["matrix"] = dict(instance.matrix_values)
        env["needs"] = self._needs_context(spec)
        return env

    def _needs_context(self, spec: JobSpec) -> Dict[str, Any]:
        """needs.<job>.result / needs.<job>.outputs, aggregated over matrix legs."""
        context = {}
        for needed in spec.needs:
            legs = [self._context.get(iid) for iid in self._legs.get(needed, [])]
            statuses = {leg.status for leg in legs}
            if InstanceStatus.FAILURE in statuses:
                result = InstanceStatus.FAILURE
            elif InstanceStatus.CANCELLED in statuses:
                result = InstanceStatus.CANCELLED
            elif InstanceStatus.SUCCESS in statuses:
                result = InstanceStatus.SUCCESS
            else:
                result = InstanceStatus.SKIPPED
            outputs: Dict[str, str] = {}
            for leg in legs:
                outputs.update(leg.outputs)
            context[needed] = {"result": result.value, "outputs": outputs}
        return context


__all__ = [
    "SchedulerError",
    "DeadlockError",
    "ConditionDiagnostic",
    "Batch",
    "RunReport",
    "Scheduler",
]
