# ============================================================================
# MATRIX EXPANDER TESTS
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Tests - Matrix strategy expansion
# PURPOSE: Verify product order, exclude/include rules, limits and errors
# CREATED: 15 OCT 2026
# ============================================================================
"""
Matrix Expander Tests

Covers:
1. Cartesian product size, order and uniqueness
2. exclude removes combinations matching all of its keys
3. include decorates matching combinations or appends a standalone one
4. Type-strict value matching
5. Malformed matrices and the combination limit
6. expand_job instance ids and error tagging

Run with:
    pytest tests/test_matrix.py -v
"""

import pytest

from core.models import JobSpec, MatrixSpec
from engine.matrix import MatrixExpander, MatrixSpecError, expand, instance_id_for


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def os_python_axes():
    """2 x 3 matrix."""
    return {
        "os": ["ubuntu", "windows"],
        "python": ["3.11", "3.12", "3.13"],
    }


@pytest.fixture
def expander():
    return MatrixExpander(max_combinations=256)


# ============================================================================
# PRODUCT
# ============================================================================

class TestProduct:
    """Plain Cartesian product."""

    def test_no_matrix_is_single_empty_combination(self, expander):
        assert expander.expand(None) == [{}]
        assert expander.expand(MatrixSpec()) == [{}]

    def test_product_size_and_uniqueness(self, expander, os_python_axes):
        combos = expander.expand(MatrixSpec(axes=os_python_axes))
        assert len(combos) == 6
        as_tuples = {tuple(sorted(c.items())) for c in combos}
        assert len(as_tuples) == 6

    def test_declaration_order(self, expander, os_python_axes):
        combos = expander.expand(MatrixSpec(axes=os_python_axes))
        assert combos[0] == {"os": "ubuntu", "python": "3.11"}
        assert combos[1] == {"os": "ubuntu", "python": "3.12"}
        assert combos[3] == {"os": "windows", "python": "3.11"}
        assert list(combos[0]) == ["os", "python"]

    def test_convenience_function(self, os_python_axes):
        assert len(expand(MatrixSpec(axes=os_python_axes))) == 6


# ============================================================================
# EXCLUDE
# ============================================================================

class TestExclude:
    """exclude entries drop combinations matching all their keys."""

    def test_exclude_exact_combination(self, expander, os_python_axes):
        spec = MatrixSpec(axes=os_python_axes, exclude=[{"os": "windows", "python": "3.11"}])
        combos = expander.expand(spec)
        assert len(combos) == 5
        assert {"os": "windows", "python": "3.11"} not in combos

    def test_partial_exclude_drops_every_match(self, expander, os_python_axes):
        spec = MatrixSpec(axes=os_python_axes, exclude=[{"os": "windows"}])
        combos = expander.expand(spec)
        assert [c["os"] for c in combos] == ["ubuntu", "ubuntu", "ubuntu"]

    def test_exclude_unknown_axis_matches_nothing(self, expander, os_python_axes):
        spec = MatrixSpec(axes=os_python_axes, exclude=[{"arch": "arm64"}])
        assert len(expander.expand(spec)) == 6

    def test_exclude_everything_is_an_error(self, expander, os_python_axes):
        spec = MatrixSpec(
            axes=os_python_axes,
            exclude=[{"os": "ubuntu"}, {"os": "windows"}],
        )
        with pytest.raises(MatrixSpecError, match="every matrix combination"):
            expander.expand(spec)

    def test_exclude_is_type_strict(self, expander):
        spec = MatrixSpec(axes={"debug": [True, False]}, exclude=[{"debug": 1}])
        assert expander.expand(spec) == [{"debug": True}, {"debug": False}]


# ============================================================================
# INCLUDE
# ============================================================================

class TestInclude:
    """include merges into matching combinations or stands alone."""

    def test_include_decorates_matching_legs(self, expander, os_python_axes):
        spec = MatrixSpec(
            axes=os_python_axes,
            include=[{"os": "windows", "experimental": True}],
        )
        combos = expander.expand(spec)
        assert len(combos) == 6
        for combo in combos:
            if combo["os"] == "windows":
                assert combo["experimental"] is True
            else:
                assert "experimental" not in combo

    def test_include_without_axis_keys_decorates_all(self, expander, os_python_axes):
        spec = MatrixSpec(axes=os_python_axes, include=[{"label": "ci"}])
        combos = expander.expand(spec)
        assert len(combos) == 6
        assert all(c["label"] == "ci" for c in combos)

    def test_include_with_new_axis_value_is_standalone(self, expander, os_python_axes):
        spec = MatrixSpec(axes=os_python_axes, include=[{"os": "macos", "python": "3.12"}])
        combos = expander.expand(spec)
        assert len(combos) == 7
        assert combos[-1] == {"os": "macos", "python": "3.12"}

    def test_duplicate_standalone_entries_appear_once(self, expander, os_python_axes):
        spec = MatrixSpec(axes=os_python_axes, include=[{"os": "macos"}, {"os": "macos"}])
        combos = expander.expand(spec)
        assert len(combos) == 7
        assert combos.count({"os": "macos"}) == 1

    def test_later_include_overwrites_added_key(self, expander, os_python_axes):
        spec = MatrixSpec(
            axes=os_python_axes,
            include=[{"runner": "default"}, {"os": "ubuntu", "runner": "large"}],
        )
        combos = expander.expand(spec)
        assert {c["os"]: c["runner"] for c in combos} == {"ubuntu": "large", "windows": "default"}

    def test_include_never_overwrites_axis_values(self, expander):
        spec = MatrixSpec(axes={"os": ["ubuntu"]}, include=[{"os": "windows", "extra": 1}])
        combos = expander.expand(spec)
        assert combos == [{"os": "ubuntu"}, {"os": "windows", "extra": 1}]

    def test_include_applies_after_exclude(self, expander, os_python_axes):
        spec = MatrixSpec(
            axes=os_python_axes,
            exclude=[{"os": "windows", "python": "3.11"}],
            include=[{"os": "windows", "python": "3.11"}],
        )
        combos = expander.expand(spec)
        assert len(combos) == 6
        assert combos[-1] == {"os": "windows", "python": "3.11"}

    def test_include_only_matrix(self, expander):
        spec = MatrixSpec(include=[{"target": "linux"}, {"target": "wasm"}])
        assert expander.expand(spec) == [{"target": "linux"}, {"target": "wasm"}]


# ============================================================================
# VALIDATION
# ============================================================================

class TestValidation:
    """Malformed matrices raise MatrixSpecError."""

    @pytest.mark.parametrize("axes", [
        {"os": []},
        {"os": "ubuntu"},
        {"os": [{"name": "ubuntu"}]},
        {"os": [["nested"]]},
    ])
    def test_bad_axes(self, expander, axes):
        with pytest.raises(MatrixSpecError, match="axis 'os'"):
            expander.expand(MatrixSpec(axes=axes))

    def test_include_entry_must_be_mapping(self, expander):
        with pytest.raises(MatrixSpecError, match=r"include\[0\] must be a mapping"):
            expander.expand(MatrixSpec(axes={"os": ["a"]}, include=["oops"]))

    def test_exclude_values_must_be_scalars(self, expander):
        with pytest.raises(MatrixSpecError, match=r"exclude\[0\]\.os must be a scalar"):
            expander.expand(MatrixSpec(axes={"os": ["a"]}, exclude=[{"os": ["a"]}]))

    def test_combination_limit(self, os_python_axes):
        with pytest.raises(MatrixSpecError, match="limit is 4"):
            MatrixExpander(max_combinations=4).expand(MatrixSpec(axes=os_python_axes))

    def test_limit_counts_standalone_includes(self):
        spec = MatrixSpec(axes={"a": [1, 2]}, include=[{"a": 3}])
        with pytest.raises(MatrixSpecError):
            MatrixExpander(max_combinations=2).expand(spec)


# ============================================================================
# JOB EXPANSION
# ============================================================================

class TestExpandJob:
    """JobSpec -> JobInstance list."""

    def test_unmatrixed_job(self, expander):
        instances = expander.expand_job(JobSpec(id="lint"))
        assert len(instances) == 1
        assert instances[0].instance_id == "lint"
        assert instances[0].matrix_values == {}
        assert not instances[0].is_matrixed

    def test_matrixed_instance_ids(self, expander, os_python_axes):
        job = JobSpec(id="test", matrix=MatrixSpec(axes=os_python_axes))
        ids = [inst.instance_id for inst in expander.expand_job(job)]
        assert ids[0] == "test (ubuntu, 3.11)"
        assert ids[-1] == "test (windows, 3.13)"
        assert len(set(ids)) == 6

    def test_instance_id_renders_non_strings_as_json(self):
        assert instance_id_for("job", {"debug": True, "n": 2, "x": None}) == "job (true, 2, null)"
        assert instance_id_for("job", {}) == "job"

    def test_colliding_instance_ids_get_ordinals(self, expander):
        job = JobSpec(id="j", matrix=MatrixSpec(axes={"v": [1, "1"]}))
        instances = expander.expand_job(job)
        assert [inst.instance_id for inst in instances] == ["j (1)", "j (1) #2"]
        assert [inst.matrix_values for inst in instances] == [{"v": 1}, {"v": "1"}]

    def test_standalone_includes_with_shared_value(self, expander):
        job = JobSpec(
            id="j",
            matrix=MatrixSpec(
                axes={"os": ["ubuntu"], "arch": ["x64"]},
                include=[{"os": "windows"}, {"arch": "windows"}],
            ),
        )
        ids = [inst.instance_id for inst in expander.expand_job(job)]
        assert ids == ["j (ubuntu, x64)", "j (windows)", "j (windows) #2"]

    def test_errors_are_tagged_with_job_id(self, expander):
        job = JobSpec(id="build", matrix=MatrixSpec(axes={"os": []}))
        with pytest.raises(MatrixSpecError) as exc_info:
            expander.expand_job(job)
        assert exc_info.value.job_id == "build"
        assert str(exc_info.value).startswith("Job 'build':")

    def test_instances_are_frozen_and_keep_spec_id(self, expander, os_python_axes):
        job = JobSpec(id="test", matrix=MatrixSpec(axes=os_python_axes))
        instances = expander.expand_job(job)
        assert {inst.spec_id for inst in instances} == {"test"}
        assert all(inst.is_matrixed for inst in instances)
