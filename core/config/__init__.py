# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 12 OCT 2026
# ============================================================================
"""
Configuration Module

Provides centralized configuration and defaults for the planning engine.
"""

from core.config.defaults import (
    MatrixDefaults,
    SchedulerDefaults,
    WorkflowDefaults,
    LoggingDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)

__all__ = [
    "MatrixDefaults",
    "SchedulerDefaults",
    "WorkflowDefaults",
    "LoggingDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
