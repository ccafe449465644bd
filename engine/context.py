# ============================================================================
# EXECUTION CONTEXT
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Core - Run state owned by the scheduler
# PURPOSE: Single-writer outcome store plus immutable snapshots for readers
# CREATED: 13 OCT 2026
# ============================================================================
"""
Execution Context

The ExecutionContext maps instance_id -> JobOutcome. It is owned by exactly
one Scheduler, which is its only writer. Everything else (the expression
evaluator in particular) only ever receives a ContextSnapshot: a frozen copy
taken at the moment of evaluation, never a live reference.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Tuple

from core.contracts import InstanceStatus
from core.models import JobOutcome


_PENDING = JobOutcome()


@dataclass(frozen=True)
class ContextSnapshot:
    """
    Read-only view of instance outcomes.

    `dependencies` names the direct dependencies of the instance whose
    condition is being evaluated; status functions only look at those.
    """
    outcomes: Mapping[str, JobOutcome] = field(
        default_factory=lambda: MappingProxyType({})
    )
    dependencies: Tuple[str, ...] = ()

    @classmethod
    def from_outcomes(
        cls,
        outcomes: Mapping[str, JobOutcome],
        dependencies: Iterable[str] = (),
    ) -> "ContextSnapshot":
        """Build a snapshot from a plain mapping (copied)."""
        return cls(
            outcomes=MappingProxyType(dict(outcomes)),
            dependencies=tuple(dependencies),
        )

    def outcome_of(self, instance_id: str) -> JobOutcome:
        return self.outcomes.get(instance_id, _PENDING)

    def status_of(self, instance_id: str) -> InstanceStatus:
        return self.outcome_of(instance_id).status

    def dependency_statuses(self) -> List[InstanceStatus]:
        return [self.status_of(dep) for dep in self.dependencies]


class ExecutionContext:
    """Mutable outcome store. Not thread-safe; the Scheduler serialises writes."""

    def __init__(self, instance_ids: Iterable[str] = ()):
        self._outcomes: Dict[str, JobOutcome] = {
            instance_id: _PENDING for instance_id in instance_ids
        }

    def __contains__(self, instance_id: str) -> bool:
        return instance_id in self._outcomes

    def __iter__(self) -> Iterator[str]:
        return iter(self._outcomes)

    def __len__(self) -> int:
        return len(self._outcomes)

    def get(self, instance_id: str) -> JobOutcome:
        return self._outcomes[instance_id]

    def status_of(self, instance_id: str) -> InstanceStatus:
        return self._outcomes[instance_id].status

    def record(self, instance_id: str, outcome: JobOutcome) -> None:
        self._outcomes[instance_id] = outcome

    def set_status(self, instance_id: str, status: InstanceStatus) -> None:
        """Change status, keeping any outputs already recorded."""
        current = self._outcomes[instance_id]
        self._outcomes[instance_id] = current.model_copy(update={"status": status})

    def with_status(self, *statuses: InstanceStatus) -> List[str]:
        """Instance ids currently in any of the given statuses (declaration order)."""
        return [iid for iid, outcome in self._outcomes.items() if outcome.status in statuses]

    def snapshot(self, dependencies: Iterable[str] = ()) -> ContextSnapshot:
        """Immutable copy of the current state."""
        return ContextSnapshot.from_outcomes(self._outcomes, dependencies)


__all__ = ["ContextSnapshot", "ExecutionContext"]
