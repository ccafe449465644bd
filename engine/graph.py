# ============================================================================
# DEPENDENCY GRAPH BUILDER
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Core - Instance-level dependency graph
# PURPOSE: Expand `needs` across matrix legs, reject cycles and bad references
# CREATED: 13 OCT 2026
# ============================================================================
"""
Dependency Graph Builder

Builds a DAG whose nodes are JobInstance ids.

Edge expansion:
- B needs A, A has N matrix legs -> B depends on all N legs of A.
- If B is matrixed too, EVERY leg of B depends on every leg of A;
  matrix legs never narrow dependencies.

Validation happens before anything is scheduled:
- duplicate job ids      -> GraphError(kind=duplicate_job)
- unknown needs targets  -> GraphError(kind=unknown_reference)
- cycles (DFS colouring) -> GraphError(kind=cycle) with the full path
"""

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from core.models import JobInstance, JobSpec
from engine.matrix import instance_id_for

logger = logging.getLogger(__name__)


# ============================================================================
# ERRORS
# ============================================================================

class GraphErrorKind(str, Enum):
    CYCLE = "cycle"
    UNKNOWN_REFERENCE = "unknown_reference"
    DUPLICATE_JOB = "duplicate_job"


class GraphError(Exception):
    """Configuration error found while building the dependency graph."""

    def __init__(
        self,
        kind: GraphErrorKind,
        message: str,
        path: Optional[List[str]] = None,
        job_id: Optional[str] = None,
        reference: Optional[str] = None,
    ):
        self.kind = kind
        self.path = path or []
        self.job_id = job_id
        self.reference = reference
        super().__init__(message)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class DependencyGraph:
    """
    Dependency graph over job instances.

    A -> B means "B depends on A" (A must finish before B).
    """
    # Instance ID -> JobInstance, in declaration order
    instances: Dict[str, JobInstance] = field(default_factory=dict)

    # Instance ID -> instances that depend on it
    forward_edges: Dict[str, List[str]] = field(default_factory=lambda: defaultdict(list))

    # Instance ID -> instances it depends on
    backward_edges: Dict[str, List[str]] = field(default_factory=lambda: defaultdict(list))

    @property
    def nodes(self) -> List[str]:
        return list(self.instances)

    def add_instance(self, instance: JobInstance) -> None:
        self.instances[instance.instance_id] = instance

    def add_edge(self, from_node: str, to_node: str) -> None:
        """Add a dependency edge: to_node depends on from_node."""
        if to_node in self.forward_edges[from_node]:
            return
        self.forward_edges[from_node].append(to_node)
        self.backward_edges[to_node].append(from_node)

    def get_dependencies(self, instance_id: str) -> List[str]:
        """Get instances that this instance depends on."""
        return self.backward_edges.get(instance_id, [])

    def get_dependents(self, instance_id: str) -> List[str]:
        """Get instances that depend on this instance."""
        return self.forward_edges.get(instance_id, [])

    def spec_of(self, instance_id: str) -> str:
        return self.instances[instance_id].spec_id

    def instances_of(self, spec_id: str) -> List[JobInstance]:
        return [inst for inst in self.instances.values() if inst.spec_id == spec_id]

    def topological_order(self) -> List[str]:
        """Kahn order; ties broken by declaration order."""
        position = {iid: i for i, iid in enumerate(self.instances)}
        in_degree = {iid: len(self.get_dependencies(iid)) for iid in self.instances}
        queue = deque(iid for iid in self.instances if in_degree[iid] == 0)
        ordered = []

        while queue:
            node = queue.popleft()
            ordered.append(node)
            for dependent in sorted(self.get_dependents(node), key=position.__getitem__):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(ordered) != len(self.instances):
            remaining = [iid for iid in self.instances if iid not in ordered]
            raise GraphError(
                GraphErrorKind.CYCLE,
                f"Cycle detected involving instances: {remaining}",
                path=remaining,
            )
        return ordered


# ============================================================================
# GRAPH BUILDER
# ============================================================================

_WHITE, _GRAY, _BLACK = 0, 1, 2


class GraphBuilder:
    """Builds the instance dependency graph from job specs."""

    def build(
        self,
        job_specs: Sequence[JobSpec],
        job_instances: Optional[Mapping[str, Sequence[JobInstance]]] = None,
    ) -> DependencyGraph:
        """
        Build and validate the dependency graph.

        Args:
            job_specs: Jobs in declaration order
            job_instances: spec_id -> expanded instances. When omitted every
                job is treated as a single unmatrixed instance.

        Returns:
            DependencyGraph instance

        Raises:
            GraphError: duplicate job, unknown reference, or cycle
        """
        specs = self._index_specs(job_specs)
        self._check_references(job_specs, specs)

        if job_instances is None:
            job_instances = {
                spec.id: [JobInstance(spec_id=spec.id, instance_id=instance_id_for(spec.id, {}))]
                for spec in job_specs
            }
        missing = [spec_id for spec_id in specs if spec_id not in job_instances]
        if missing:
            raise ValueError(f"No instances supplied for jobs: {missing}")

        graph = DependencyGraph()
        for spec in job_specs:
            for instance in job_instances[spec.id]:
                graph.add_instance(instance)

        for spec in job_specs:
            for instance in job_instances[spec.id]:
                for needed in spec.needs:
                    for upstream in job_instances[needed]:
                        graph.add_edge(upstream.instance_id, instance.instance_id)

        self._check_cycles(graph)

        logger.info(
            f"Built dependency graph: {len(specs)} job(s), {len(graph.instances)} instance(s)"
        )
        return graph

    def _index_specs(self, job_specs: Sequence[JobSpec]) -> Dict[str, JobSpec]:
        specs: Dict[str, JobSpec] = {}
        for spec in job_specs:
            if spec.id in specs:
                raise GraphError(
                    GraphErrorKind.DUPLICATE_JOB,
                    f"Duplicate job id '{spec.id}'",
                    job_id=spec.id,
                )
            specs[spec.id] = spec
        return specs

    def _check_references(self, job_specs: Sequence[JobSpec], specs: Mapping[str, JobSpec]) -> None:
        for spec in job_specs:
            for needed in spec.needs:
                if needed not in specs:
                    raise GraphError(
                        GraphErrorKind.UNKNOWN_REFERENCE,
                        f"Job '{spec.id}' needs unknown job '{needed}'. "
                        f"Known jobs: {sorted(specs)}",
                        job_id=spec.id,
                        reference=needed,
                    )

    def _check_cycles(self, graph: DependencyGraph) -> None:
        colour = {iid: _WHITE for iid in graph.instances}

        for root in graph.instances:
            if colour[root] != _WHITE:
                continue
            # Explicit (node, dependency iterator) frames; depth is unbounded
            colour[root] = _GRAY
            frames: List[Tuple[str, Iterator[str]]] = [
                (root, iter(graph.get_dependencies(root)))
            ]
            while frames:
                node, dependencies = frames[-1]
                dependency = next(dependencies, None)
                if dependency is None:
                    frames.pop()
                    colour[node] = _BLACK
                elif colour[dependency] == _GRAY:
                    path = [n for n, _ in frames]
                    path = path[path.index(dependency):] + [dependency]
                    raise GraphError(
                        GraphErrorKind.CYCLE,
                        f"Dependency cycle: {' -> '.join(path)}",
                        path=path,
                    )
                elif colour[dependency] == _WHITE:
                    colour[dependency] = _GRAY
                    frames.append((dependency, iter(graph.get_dependencies(dependency))))


def build(
    job_specs: Sequence[JobSpec],
    job_instances: Optional[Mapping[str, Sequence[JobInstance]]] = None,
) -> DependencyGraph:
    """Convenience function to build a graph."""
    return GraphBuilder().build(job_specs, job_instances)


__all__ = [
    "GraphErrorKind",
    "GraphError",
    "DependencyGraph",
    "GraphBuilder",
    "build",
]
