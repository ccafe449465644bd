# ============================================================================
# PLANNING ENGINE
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Core - Engine components
# PURPOSE: Expressions, matrices, graph, scheduling, triggers
# CREATED: 13 OCT 2026
# ============================================================================
"""
Planning Engine Components

- expressions: `if:` condition language
- matrix: matrix strategy expansion
- graph: instance dependency graph and validation
- scheduler: tick-based batch production
- triggers: event/trigger matching
- planner: wiring of the above for one run
"""

from engine.context import ContextSnapshot, ExecutionContext
from engine.expressions import EvaluationError, evaluate, evaluate_condition
from engine.matrix import MatrixExpander, MatrixSpecError, expand
from engine.graph import DependencyGraph, GraphBuilder, GraphError, GraphErrorKind, build
from engine.scheduler import (
    Batch,
    ConditionDiagnostic,
    DeadlockError,
    RunReport,
    Scheduler,
    SchedulerError,
)
from engine.triggers import TriggerMatcher, match_triggers, matches
from engine.planner import ExecutionPlan, RunPlanner, plan_run, simulate

__all__ = [
    # Context
    "ContextSnapshot",
    "ExecutionContext",
    # Expressions
    "EvaluationError",
    "evaluate",
    "evaluate_condition",
    # Matrix
    "MatrixExpander",
    "MatrixSpecError",
    "expand",
    # Graph
    "DependencyGraph",
    "GraphBuilder",
    "GraphError",
    "GraphErrorKind",
    "build",
    # Scheduler
    "Batch",
    "ConditionDiagnostic",
    "DeadlockError",
    "RunReport",
    "Scheduler",
    "SchedulerError",
    # Triggers
    "TriggerMatcher",
    "match_triggers",
    "matches",
    # Planner
    "ExecutionPlan",
    "RunPlanner",
    "plan_run",
    "simulate",
]
