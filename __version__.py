# ============================================================================
# VERSION - WORKFLOW PLANNER
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# ============================================================================
"""
Version information for the workflow planner.

This is the single source of truth for the application version.
Updated manually for each release.
"""
# Version format: major.minor.patch.build
# Criteria for 0.1 - trigger to simulated run works end to end
__version__ = "0.1.0.0"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Build metadata
BUILD_DATE = "2026-10-18"

EPOCH = 1
CODENAME = "Workflow Planner"
