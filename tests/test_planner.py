# ============================================================================
# RUN PLANNER TESTS
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Tests - End-to-end planning
# PURPOSE: Verify event -> trigger -> matrix -> graph -> scheduler wiring
# CREATED: 16 OCT 2026
# ============================================================================
"""
Run Planner Tests

Covers:
1. Untriggered workflows produce no scheduler
2. Workflows without triggers are always planned
3. Full simulated run across a matrix
4. github / inputs / env contexts reach conditions
5. Matrix and graph errors abort planning
6. Schedule events planned with a cron identifier

Run with:
    pytest tests/test_planner.py -v
"""

import pytest

from core.contracts import EventKind, InstanceStatus, RunConclusion, RunStatus
from core.models import Event, JobOutcome, JobSpec, MatrixSpec, TriggerFilter, WorkflowDefinition
from engine.graph import GraphError, GraphErrorKind
from engine.matrix import MatrixSpecError
from engine.planner import RunPlanner, plan_run, simulate


# ============================================================================
# FIXTURES
# ============================================================================

def succeed(instance):
    return JobOutcome.success()


@pytest.fixture
def ci_workflow():
    """build (2 legs) -> test -> deploy (main only)."""
    return WorkflowDefinition(
        workflow_id="ci",
        name="CI",
        env={"TARGET": "staging"},
        jobs=[
            JobSpec(id="build", matrix=MatrixSpec(axes={"os": ["ubuntu", "windows"]})),
            JobSpec(id="test", needs=["build"]),
            JobSpec(
                id="deploy",
                needs=["test"],
                condition="${{ github.ref == 'refs/heads/main' && env.TARGET == 'staging' }}",
            ),
        ],
        triggers=[
            TriggerFilter(kind=EventKind.PUSH, branch_patterns=["main", "release/**"]),
            TriggerFilter(kind=EventKind.SCHEDULE, cron_expressions=["0 3 * * *"]),
        ],
    )


# ============================================================================
# TRIGGERING
# ============================================================================

class TestTriggering:
    """Whether a run is planned at all."""

    def test_matching_event_plans_a_run(self, ci_workflow):
        scheduler = plan_run(ci_workflow, Event(kind=EventKind.PUSH, ref="refs/heads/main"))
        assert scheduler is not None
        assert scheduler.workflow_id == "ci"
        assert len(scheduler.graph.nodes) == 4

    def test_non_matching_event(self, ci_workflow):
        event = Event(kind=EventKind.PUSH, ref="refs/heads/feature/x")
        assert plan_run(ci_workflow, event) is None

    def test_schedule_requires_known_cron(self, ci_workflow):
        event = Event(kind=EventKind.SCHEDULE)
        assert plan_run(ci_workflow, event, cron="0 3 * * *") is not None
        assert plan_run(ci_workflow, event, cron="0 4 * * *") is None

    def test_workflow_without_triggers_always_plans(self):
        workflow = WorkflowDefinition(workflow_id="adhoc", jobs=[JobSpec(id="only")])
        assert plan_run(workflow, Event(kind=EventKind.RELEASE)) is not None

    def test_run_id_is_passed_through(self, ci_workflow):
        scheduler = RunPlanner().plan(
            ci_workflow, Event(kind=EventKind.PUSH, ref="main"), run_id="run-42"
        )
        assert scheduler.run_id == "run-42"


# ============================================================================
# SIMULATION
# ============================================================================

class TestSimulation:
    """Driving a planned run to completion."""

    def test_full_run_on_main(self, ci_workflow):
        scheduler = plan_run(ci_workflow, Event(kind=EventKind.PUSH, ref="refs/heads/main"))
        plan = simulate(scheduler, succeed)
        assert plan.batches == [["build (ubuntu)", "build (windows)"], ["test"], ["deploy"]]
        assert plan.order == ["build (ubuntu)", "build (windows)", "test", "deploy"]
        assert plan.report.status == RunStatus.COMPLETED
        assert plan.report.conclusion == RunConclusion.SUCCESS

    def test_deploy_skipped_off_main(self, ci_workflow):
        event = Event(kind=EventKind.PUSH, ref="refs/heads/release/1.0")
        plan = simulate(plan_run(ci_workflow, event), succeed)
        assert plan.report.skipped == ["deploy"]
        assert "deploy" not in plan.order

    def test_extra_env_overrides_workflow_env(self, ci_workflow):
        event = Event(kind=EventKind.PUSH, ref="refs/heads/main")
        scheduler = plan_run(ci_workflow, event, env={"TARGET": "production"})
        plan = simulate(scheduler, succeed)
        assert plan.report.outcomes["deploy"] == InstanceStatus.SKIPPED

    def test_executor_may_return_bare_status(self, ci_workflow):
        def fail_windows(instance):
            if instance.matrix_values.get("os") == "windows":
                return InstanceStatus.FAILURE
            return InstanceStatus.SUCCESS

        scheduler = plan_run(ci_workflow, Event(kind=EventKind.PUSH, ref="main"))
        plan = simulate(scheduler, fail_windows)
        assert plan.batches == [["build (ubuntu)", "build (windows)"]]
        assert plan.report.conclusion == RunConclusion.FAILURE
        assert plan.report.skipped == ["test", "deploy"]

    def test_dispatch_inputs_reach_conditions(self):
        workflow = WorkflowDefinition(
            workflow_id="release",
            jobs=[
                JobSpec(id="package"),
                JobSpec(id="publish", needs=["package"], condition="inputs.dry_run != 'true'"),
            ],
            triggers=[TriggerFilter(kind=EventKind.WORKFLOW_DISPATCH)],
        )
        dry = Event(kind=EventKind.WORKFLOW_DISPATCH, inputs={"dry_run": "true"})
        real = Event(kind=EventKind.WORKFLOW_DISPATCH, inputs={"dry_run": "false"})

        assert simulate(plan_run(workflow, dry), succeed).order == ["package"]
        assert simulate(plan_run(workflow, real), succeed).order == ["package", "publish"]


# ============================================================================
# CONFIGURATION ERRORS
# ============================================================================

class TestPlanningErrors:
    """Fatal errors abort planning."""

    def test_bad_matrix(self):
        workflow = WorkflowDefinition(
            workflow_id="broken",
            jobs=[JobSpec(id="build", matrix=MatrixSpec(axes={"os": []}))],
        )
        with pytest.raises(MatrixSpecError):
            plan_run(workflow, Event(kind=EventKind.PUSH))

    def test_cycle(self):
        workflow = WorkflowDefinition(
            workflow_id="loop",
            jobs=[JobSpec(id="a", needs=["b"]), JobSpec(id="b", needs=["a"])],
        )
        with pytest.raises(GraphError) as exc_info:
            plan_run(workflow, Event(kind=EventKind.PUSH))
        assert exc_info.value.kind == GraphErrorKind.CYCLE

    def test_untriggered_workflow_is_not_validated(self):
        workflow = WorkflowDefinition(
            workflow_id="loop",
            jobs=[JobSpec(id="a", needs=["a"])],
            triggers=[TriggerFilter(kind=EventKind.RELEASE)],
        )
        assert plan_run(workflow, Event(kind=EventKind.PUSH)) is None
