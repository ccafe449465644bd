# ============================================================================
# EVENT & TRIGGER FILTER MODELS
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Core model - Repository events and trigger declarations
# PURPOSE: Describe what happened (Event) and what a workflow listens to
# LAST_REVIEWED: 14 OCT 2026
# EXPORTS: Event, TriggerFilter
# DEPENDENCIES: pydantic
# ============================================================================
"""
Event & Trigger Filter Models

An Event is constructed once per run by the event source and discarded after
trigger matching. A TriggerFilter is one entry of a workflow's `on:` block and
is read-only for the lifetime of the workflow definition.
"""

from typing import Any, Dict, FrozenSet, Optional, Tuple
from pydantic import BaseModel, Field, field_validator

from core.contracts import EventKind


_BRANCH_PREFIX = "refs/heads/"
_REF_PREFIXES = (_BRANCH_PREFIX, "refs/tags/", "refs/pull/")


class Event(BaseModel):
    """A repository event that may start a workflow run."""
    kind: EventKind
    ref: str = Field(default="", description="Full ref (refs/heads/main) or short name")
    changed_paths: FrozenSet[str] = Field(default_factory=frozenset)
    inputs: Dict[str, str] = Field(
        default_factory=dict,
        description="workflow_dispatch inputs"
    )
    base_ref: Optional[str] = Field(
        default=None,
        description="pull_request target branch; branch filters match it when set"
    )

    # Only used to populate the `github` expression context
    sha: Optional[str] = None
    actor: Optional[str] = None
    repository: Optional[str] = None

    model_config = {"frozen": True}

    @field_validator("changed_paths", mode="before")
    @classmethod
    def coerce_paths(cls, v):
        """Accept any iterable of paths."""
        if v is None:
            return frozenset()
        if isinstance(v, str):
            return frozenset([v])
        return frozenset(v)

    @property
    def ref_name(self) -> str:
        """Short ref name as exposed in `github.ref_name`: refs/tags/v1 -> v1."""
        for prefix in _REF_PREFIXES:
            if self.ref.startswith(prefix):
                return self.ref[len(prefix):]
        return self.ref

    @property
    def branch(self) -> Optional[str]:
        """
        Branch that branch filters are matched against.

        Pull requests use base_ref when given. Tag and pull refs are not
        branches and give None.
        """
        ref = self.base_ref if self.kind == EventKind.PULL_REQUEST and self.base_ref else self.ref
        if ref.startswith(_BRANCH_PREFIX):
            return ref[len(_BRANCH_PREFIX):]
        if ref.startswith("refs/"):
            return None
        return ref

    def github_context(self) -> Dict[str, Any]:
        """Values exposed to expressions as `github.*`."""
        return {
            "event_name": self.kind.value,
            "ref": self.ref,
            "ref_name": self.ref_name,
            "base_ref": self.base_ref,
            "sha": self.sha,
            "actor": self.actor,
            "repository": self.repository,
        }


class TriggerFilter(BaseModel):
    """
    One trigger declaration from a workflow's `on:` block.

    Category semantics (see engine.triggers):
    - OR within branch_patterns, OR within path_patterns
    - AND between the two categories
    - schedule triggers ignore branches/paths and match on cron_expressions
    """
    kind: EventKind
    branch_patterns: Tuple[str, ...] = ()
    branch_ignore_patterns: Tuple[str, ...] = ()
    path_patterns: Tuple[str, ...] = ()
    path_ignore_patterns: Tuple[str, ...] = ()
    cron_expressions: Tuple[str, ...] = ()

    model_config = {"frozen": True}

    @field_validator(
        "branch_patterns",
        "branch_ignore_patterns",
        "path_patterns",
        "path_ignore_patterns",
        "cron_expressions",
        mode="before",
    )
    @classmethod
    def handle_string_input(cls, v):
        """Allow single string as shorthand for single-item list."""
        if v is None:
            return ()
        if isinstance(v, str):
            return (v,)
        return tuple(v)


__all__ = ["Event", "TriggerFilter"]
