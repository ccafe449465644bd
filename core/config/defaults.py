# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Core - Default configuration values
# PURPOSE: Centralized defaults for matrix limits, gating, loading, logging
# CREATED: 12 OCT 2026
# ============================================================================
"""
Configuration Defaults

Provides sensible defaults for the planning engine.
These can be overridden via environment variables.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- Type-safe access
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class MatrixDefaults:
    """
    Defaults for matrix expansion.

    GitHub caps a single matrix at 256 jobs per workflow run.
    """
    max_combinations: int = 256

    @classmethod
    def from_env(cls) -> "MatrixDefaults":
        """Create from environment variables."""
        return cls(
            max_combinations=int(os.getenv("MATRIX_MAX_COMBINATIONS", 256)),
        )


@dataclass(frozen=True)
class SchedulerDefaults:
    """
    Defaults for gating decisions.

    implicit_success_guard: an explicit `if:` that calls no status function
    is evaluated as `success() && (<if>)`.
    """
    implicit_success_guard: bool = True

    @classmethod
    def from_env(cls) -> "SchedulerDefaults":
        """Create from environment variables."""
        return cls(
            implicit_success_guard=_env_bool("IMPLICIT_SUCCESS_GUARD", True),
        )


@dataclass(frozen=True)
class WorkflowDefaults:
    """Defaults for loading workflow definitions."""
    workflows_dir: str = "workflows"
    default_runs_on: str = "ubuntu-latest"

    @classmethod
    def from_env(cls) -> "WorkflowDefaults":
        """Create from environment variables."""
        return cls(
            workflows_dir=os.getenv("WORKFLOWS_DIR", "workflows"),
            default_runs_on=os.getenv("DEFAULT_RUNS_ON", "ubuntu-latest"),
        )


@dataclass(frozen=True)
class LoggingDefaults:
    """Defaults for log output."""
    level: str = "INFO"
    json_output: bool = False

    @classmethod
    def from_env(cls) -> "LoggingDefaults":
        """Create from environment variables."""
        return cls(
            level=os.getenv("LOG_LEVEL", "INFO"),
            json_output=os.getenv("LOG_FORMAT", "").lower() == "json",
        )


# ============================================================================
# GLOBAL DEFAULTS INSTANCE
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    matrix: MatrixDefaults = field(default_factory=MatrixDefaults)
    scheduler: SchedulerDefaults = field(default_factory=SchedulerDefaults)
    workflows: WorkflowDefaults = field(default_factory=WorkflowDefaults)
    logging: LoggingDefaults = field(default_factory=LoggingDefaults)

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        return cls(
            matrix=MatrixDefaults.from_env(),
            scheduler=SchedulerDefaults.from_env(),
            workflows=WorkflowDefaults.from_env(),
            logging=LoggingDefaults.from_env(),
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "MatrixDefaults",
    "SchedulerDefaults",
    "WorkflowDefaults",
    "LoggingDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
