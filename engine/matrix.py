# ============================================================================
# MATRIX EXPANDER
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Core - Matrix strategy expansion
# PURPOSE: Expand one JobSpec into its concrete JobInstances
# CREATED: 13 OCT 2026
# ============================================================================
"""
Matrix Expander

Expansion order (deterministic):
1. Cartesian product of axes, axes in declaration order, values in list order.
2. exclude: drop every combination that matches ALL keys of an exclude entry.
3. include: each entry is merged into every remaining combination whose
   original axis values it does not contradict. Merging may add keys or
   overwrite keys added by an earlier include, never an original axis value.
   An entry that merges into no combination is appended as a new,
   standalone combination.

Consequences worth knowing:
- {os: windows, experimental: true} adds `experimental` to every windows leg.
- {experimental: true} (no axis keys) decorates every combination.
- {os: macos} when `os` has no macos value appends a standalone combination.
- An exclude naming an axis that does not exist never matches anything.
- Excluding every combination is an error, not a job with zero legs.

Include/exclude values must be scalars (str, int, float, bool, null);
equality is type-strict, so `true` does not match `1`.
"""

import itertools
import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from core.config import get_defaults
from core.models import JobInstance, JobSpec, MatrixSpec

logger = logging.getLogger(__name__)

_SCALARS = (str, int, float, bool, type(None))


class MatrixSpecError(ValueError):
    """Raised when a matrix strategy cannot be expanded."""

    def __init__(self, message: str, job_id: Optional[str] = None):
        self.job_id = job_id
        if job_id:
            message = f"Job '{job_id}': {message}"
        super().__init__(message)


def _scalar_equal(left: Any, right: Any) -> bool:
    return type(left) is type(right) and left == right


def _matches_all(combination: Mapping[str, Any], entry: Mapping[str, Any]) -> bool:
    """Every key of `entry` is present in `combination` with an equal value."""
    return all(
        key in combination and _scalar_equal(combination[key], value)
        for key, value in entry.items()
    )


def _check_entries(entries: List[Any], label: str) -> List[Dict[str, Any]]:
    checked = []
    for position, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise MatrixSpecError(f"{label}[{position}] must be a mapping, got {type(entry).__name__}")
        for key, value in entry.items():
            if not isinstance(key, str):
                raise MatrixSpecError(f"{label}[{position}] has non-string key {key!r}")
            if not isinstance(value, _SCALARS):
                raise MatrixSpecError(
                    f"{label}[{position}].{key} must be a scalar, got {type(value).__name__}"
                )
        checked.append(dict(entry))
    return checked


def _check_axes(axes: Mapping[str, Any]) -> Dict[str, List[Any]]:
    checked = {}
    for name, values in axes.items():
        if not isinstance(values, (list, tuple)) or not values:
            raise MatrixSpecError(f"axis '{name}' must be a non-empty list of values")
        for value in values:
            if not isinstance(value, _SCALARS):
                raise MatrixSpecError(
                    f"axis '{name}' value must be a scalar, got {type(value).__name__}"
                )
        checked[name] = list(values)
    return checked


class MatrixExpander:
    """Expands matrix strategies into combinations and job instances."""

    def __init__(self, max_combinations: Optional[int] = None):
        if max_combinations is None:
            max_combinations = get_defaults().matrix.max_combinations
        self.max_combinations = max_combinations

    def expand(self, spec: Optional[MatrixSpec]) -> List[Dict[str, Any]]:
        """
        Expand a matrix into its ordered list of combinations.

        Args:
            spec: Matrix strategy, or None for an unmatrixed job

        Returns:
            List of mappings; [{}] when there is nothing to expand

        Raises:
            MatrixSpecError: malformed axes/include/exclude, or too many combinations
        """
        if spec is None:
            return [{}]

        axes = _check_axes(spec.axes)
        excludes = _check_entries(spec.exclude, "exclude")
        includes = _check_entries(spec.include, "include")

        if axes:
            product = [
                dict(zip(axes.keys(), values))
                for values in itertools.product(*axes.values())
            ]
        else:
            product = []

        combinations = [
            combo for combo in product
            if not any(_matches_all(combo, entry) for entry in excludes)
        ]
        if len(combinations) != len(product):
            logger.debug(f"Matrix exclude removed {len(product) - len(combinations)} combination(s)")

        standalone: List[Dict[str, Any]] = []
        for entry in includes:
            original = {key: value for key, value in entry.items() if key in axes}
            merged = False
            for combo in combinations:
                if _matches_all(combo, original):
                    combo.update({k: v for k, v in entry.items() if k not in axes})
                    merged = True
            if not merged and not any(_matches_all(s, entry) and len(s) == len(entry) for s in standalone):
                standalone.append(dict(entry))

        result = combinations + standalone
        if not result:
            if product:
                raise MatrixSpecError("exclude removes every matrix combination")
            result = [{}]

        if len(result) > self.max_combinations:
            raise MatrixSpecError(
                f"matrix expands to {len(result)} combinations, limit is {self.max_combinations}"
            )
        return result

    def expand_job(self, job: JobSpec) -> List[JobInstance]:
        """
        Expand a job into its instances.

        Distinct combinations that render to the same id (`1` and `"1"`, or
        two include entries sharing a value under different keys) get an
        ordinal suffix in expansion order: `job (1)`, `job (1) #2`.

        Raises:
            MatrixSpecError: as expand(), tagged with the job id
        """
        try:
            combinations = self.expand(job.matrix)
        except MatrixSpecError as e:
            if e.job_id is None:
                raise MatrixSpecError(str(e), job_id=job.id) from e
            raise

        instances = []
        seen = set()
        for combo in combinations:
            base_id = instance_id_for(job.id, combo)
            instance_id, ordinal = base_id, 1
            while instance_id in seen:
                ordinal += 1
                instance_id = f"{base_id} #{ordinal}"
            seen.add(instance_id)
            instances.append(
                JobInstance(spec_id=job.id, matrix_values=combo, instance_id=instance_id)
            )

        logger.info(f"Job '{job.id}' expanded to {len(instances)} instance(s)")
        return instances


def _display(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def instance_id_for(spec_id: str, matrix_values: Mapping[str, Any]) -> str:
    """`build` for no matrix, `build (ubuntu-latest, 3.12)` otherwise."""
    if not matrix_values:
        return spec_id
    return f"{spec_id} ({', '.join(_display(v) for v in matrix_values.values())})"


def expand(spec: Optional[MatrixSpec]) -> List[Dict[str, Any]]:
    """Convenience function using the configured combination limit."""
    return MatrixExpander().expand(spec)


__all__ = [
    "MatrixSpecError",
    "MatrixExpander",
    "instance_id_for",
    "expand",
]
