# ============================================================================
# SERVICES MODULE
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Core - Definition loading layer
# PURPOSE: Workflow definition management services
# CREATED: 14 OCT 2026
# ============================================================================
"""
Services Module

Loading and lookup of workflow definitions.

Usage:
    from services import WorkflowService

    service = WorkflowService("workflows")
    workflow = service.get_or_raise("ci")
"""

from .workflow_service import WorkflowService

__all__ = [
    "WorkflowService",
]
