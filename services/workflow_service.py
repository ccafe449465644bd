# ============================================================================
# WORKFLOW SERVICE
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Core - Workflow definition management
# PURPOSE: Load and cache workflow definitions from YAML
# CREATED: 14 OCT 2026
# ============================================================================
"""
Workflow Service

Loads workflow definitions from YAML files and provides lookup
capabilities. Caches loaded workflows.

Documents follow the familiar GitHub Actions layout:

    name: CI
    on:
      push:
        branches: [main, 'release/**']
        paths: ['src/**']
      schedule:
        - cron: '0 3 * * *'
      workflow_dispatch:
    env:
      PYTHONUNBUFFERED: "1"
    jobs:
      test:
        runs-on: ubuntu-latest
        strategy:
          matrix:
            python: ['3.11', '3.12']
            include:
              - python: '3.12'
                coverage: true
        steps:
          - run: pytest
      deploy:
        needs: test
        if: github.ref == 'refs/heads/main'

The workflow id is the file stem. PyYAML reads a bare `on:` key as the
boolean True; both spellings are accepted.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from core.config import get_defaults
from core.contracts import EventKind
from core.models import JobSpec, MatrixSpec, TriggerFilter, WorkflowDefinition

logger = logging.getLogger(__name__)

_FILTER_KEYS = {
    "branches": "branch_patterns",
    "branches-ignore": "branch_ignore_patterns",
    "paths": "path_patterns",
    "paths-ignore": "path_ignore_patterns",
}
_MATRIX_RESERVED = ("include", "exclude")


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _string_map(value: Any, label: str) -> Dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"{label} must be a mapping")
    return {str(k): _stringify(v) for k, v in value.items()}


class WorkflowService:
    """Service for loading and managing workflow definitions."""

    def __init__(self, workflows_dir: Optional[str] = None):
        """
        Initialize workflow service.

        Args:
            workflows_dir: Directory containing workflow YAML files.
                          Defaults to WorkflowDefaults.workflows_dir
        """
        defaults = get_defaults().workflows
        self.workflows_dir = Path(workflows_dir or defaults.workflows_dir)
        self.default_runs_on = defaults.default_runs_on

        self._cache: Dict[str, WorkflowDefinition] = {}
        self._loaded = False
        self.load_errors: Dict[str, str] = {}

    def load_all(self) -> int:
        """
        Load all workflow definitions from the workflows directory.

        Files that fail to load are logged and recorded in `load_errors`.

        Returns:
            Number of workflows loaded
        """
        if not self.workflows_dir.exists():
            logger.warning(f"Workflows directory not found: {self.workflows_dir}")
            return 0

        count = 0
        files = sorted(self.workflows_dir.glob("*.yaml")) + sorted(self.workflows_dir.glob("*.yml"))
        for yaml_file in files:
            try:
                workflow = self.load_file(yaml_file)
            except (OSError, ValueError, yaml.YAMLError) as e:
                self.load_errors[str(yaml_file)] = str(e)
                logger.error(f"Failed to load {yaml_file}: {e}")
                continue
            self._cache[workflow.workflow_id] = workflow
            count += 1
            logger.info(f"Loaded workflow: {workflow.workflow_id} ({len(workflow.jobs)} jobs)")

        self._loaded = True
        logger.info(f"Loaded {count} workflows from {self.workflows_dir}")
        return count

    def get(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        """
        Get a workflow definition by ID.

        Args:
            workflow_id: Workflow identifier (file stem)

        Returns:
            WorkflowDefinition or None if not found
        """
        if not self._loaded:
            self.load_all()

        return self._cache.get(workflow_id)

    def get_or_raise(self, workflow_id: str) -> WorkflowDefinition:
        """
        Get a workflow definition, raising if not found.

        Raises:
            KeyError if workflow not found
        """
        workflow = self.get(workflow_id)
        if workflow is None:
            raise KeyError(f"Workflow not found: {workflow_id}")
        return workflow

    def list_all(self) -> List[WorkflowDefinition]:
        """List all loaded workflows."""
        if not self._loaded:
            self.load_all()

        return list(self._cache.values())

    def register(self, workflow: WorkflowDefinition) -> None:
        """
        Register a workflow definition (for testing or programmatic use).

        Args:
            workflow: WorkflowDefinition to register
        """
        errors = workflow.validate_structure()
        if errors:
            raise ValueError(f"Invalid workflow: {errors}")

        self._cache[workflow.workflow_id] = workflow
        logger.info(f"Registered workflow: {workflow.workflow_id}")

    def reload(self) -> int:
        """
        Reload all workflows from disk.

        Returns:
            Number of workflows loaded
        """
        self._cache.clear()
        self.load_errors.clear()
        self._loaded = False
        return self.load_all()

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def load_file(self, path: Path) -> WorkflowDefinition:
        """
        Load a workflow from a YAML file.

        Raises:
            ValueError: invalid document or structure
        """
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f)

        try:
            return self.parse(data, workflow_id=path.stem)
        except ValueError as e:
            raise ValueError(f"Invalid workflow in {path}: {e}") from e

    def parse(self, data: Any, workflow_id: str) -> WorkflowDefinition:
        """
        Build a WorkflowDefinition from an already-decoded document.

        Raises:
            ValueError: invalid document or structure
        """
        if not isinstance(data, Mapping):
            raise ValueError("Workflow document must be a mapping")

        on = data["on"] if "on" in data else data.get(True)
        jobs_data = data.get("jobs") or {}
        if not isinstance(jobs_data, Mapping):
            raise ValueError("'jobs' must be a mapping of job id -> job")

        workflow = WorkflowDefinition(
            workflow_id=workflow_id,
            name=data.get("name"),
            env=_string_map(data.get("env"), "env"),
            jobs=[self._parse_job(str(job_id), job) for job_id, job in jobs_data.items()],
            triggers=self._parse_triggers(on),
        )

        errors = workflow.validate_structure()
        if errors:
            raise ValueError("; ".join(errors))
        return workflow

    def _parse_triggers(self, on: Any) -> List[TriggerFilter]:
        if on is None:
            return []
        if isinstance(on, str):
            on = [on]
        if isinstance(on, list):
            on = {name: None for name in on}
        if not isinstance(on, Mapping):
            raise ValueError("'on' must be a string, list or mapping")

        triggers = []
        for name, config in on.items():
            try:
                kind = EventKind(name)
            except ValueError:
                logger.warning(f"Ignoring unsupported trigger '{name}'")
                continue
            triggers.append(self._parse_trigger(kind, config))
        return triggers

    def _parse_trigger(self, kind: EventKind, config: Any) -> TriggerFilter:
        if kind == EventKind.SCHEDULE:
            if not isinstance(config, list):
                raise ValueError("'schedule' must be a list of {cron: ...} entries")
            crons = []
            for entry in config:
                if not isinstance(entry, Mapping) or "cron" not in entry:
                    raise ValueError("'schedule' entries must have a 'cron' key")
                crons.append(str(entry["cron"]))
            return TriggerFilter(kind=kind, cron_expressions=crons)

        if config is None:
            return TriggerFilter(kind=kind)
        if not isinstance(config, Mapping):
            raise ValueError(f"'{kind.value}' trigger configuration must be a mapping")

        if "branches" in config and "branches-ignore" in config:
            raise ValueError(f"'{kind.value}' cannot use both branches and branches-ignore")
        if "paths" in config and "paths-ignore" in config:
            raise ValueError(f"'{kind.value}' cannot use both paths and paths-ignore")

        fields = {}
        for key, field_name in _FILTER_KEYS.items():
            patterns = config.get(key) or []
            if isinstance(patterns, str):
                patterns = [patterns]
            fields[field_name] = [str(p) for p in patterns]
        return TriggerFilter(kind=kind, **fields)

    def _parse_job(self, job_id: str, data: Any) -> JobSpec:
        if not isinstance(data, Mapping):
            raise ValueError(f"Job '{job_id}' must be a mapping")

        condition = data.get("if")
        if condition is not None:
            condition = _stringify(condition)

        runs_on = data.get("runs-on", self.default_runs_on)
        if isinstance(runs_on, list):
            runs_on = ", ".join(str(label) for label in runs_on)

        return JobSpec(
            id=job_id,
            name=data.get("name"),
            needs=data.get("needs") or (),
            condition=condition,
            matrix=self._parse_matrix(job_id, data.get("strategy")),
            runs_on=str(runs_on),
            env=_string_map(data.get("env"), f"jobs.{job_id}.env"),
            steps=list(data.get("steps") or []),
        )

    def _parse_matrix(self, job_id: str, strategy: Any) -> Optional[MatrixSpec]:
        if strategy is None:
            return None
        if not isinstance(strategy, Mapping):
            raise ValueError(f"jobs.{job_id}.strategy must be a mapping")
        matrix = strategy.get("matrix")
        if matrix is None:
            return None
        if not isinstance(matrix, Mapping):
            raise ValueError(
                f"jobs.{job_id}.strategy.matrix must be a mapping; expression matrices are not supported"
            )
        return MatrixSpec(
            axes={str(k): v for k, v in matrix.items() if k not in _MATRIX_RESERVED},
            include=list(matrix.get("include") or []),
            exclude=list(matrix.get("exclude") or []),
        )


__all__ = ["WorkflowService"]
