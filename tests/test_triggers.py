# ============================================================================
# TRIGGER MATCHER TESTS
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Tests - Event / trigger matching
# PURPOSE: Verify glob semantics and branch/path/cron filter combination
# CREATED: 15 OCT 2026
# ============================================================================
"""
Trigger Matcher Tests

Covers:
1. Glob grammar (*, **, **/, ?, classes, escapes)
2. Ordered pattern lists with ! negation
3. Branch and path filters: OR within, AND between
4. branches-ignore and paths-ignore
5. Schedule triggers and cron identifiers
6. Event kind mismatch and first-match selection

Run with:
    pytest tests/test_triggers.py -v
"""

import pytest

from core.contracts import EventKind
from core.models import Event, TriggerFilter
from engine.triggers import TriggerMatcher, glob_match, match_patterns, match_triggers, matches


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def matcher():
    return TriggerMatcher()


@pytest.fixture
def main_src_trigger():
    """push to main touching src/**."""
    return TriggerFilter(
        kind=EventKind.PUSH,
        branch_patterns=["main"],
        path_patterns=["src/**"],
    )


def push(ref="refs/heads/main", paths=()):
    return Event(kind=EventKind.PUSH, ref=ref, changed_paths=paths)


# ============================================================================
# GLOB GRAMMAR
# ============================================================================

class TestGlob:
    """Pattern grammar."""

    @pytest.mark.parametrize("pattern,value,expected", [
        ("feature/*", "feature/login", True),
        ("feature/*", "feature/auth/login", False),
        ("feature/**", "feature/login", True),
        ("feature/**", "feature/auth/login", True),
        ("main", "main", True),
        ("main", "main-old", False),
        ("release/v?", "release/v1", True),
        ("release/v?", "release/v10", False),
        ("v[0-9]", "v7", True),
        ("v[0-9]", "vx", False),
        ("v[!0-9]", "vx", True),
        ("**/*.md", "README.md", True),
        ("**/*.md", "docs/guide/intro.md", True),
        ("docs/**/*.md", "docs/intro.md", True),
        ("*.py", "src/app.py", False),
        ("src/**", "src/app.py", True),
        ("src/**", "src", False),
        ("**", "anything/at/all", True),
        ("release\\*", "release*", True),
        ("release\\*", "release1", False),
        ("a.b", "axb", False),
    ])
    def test_glob(self, pattern, value, expected):
        assert glob_match(pattern, value) is expected

    def test_negation_excludes_earlier_match(self):
        patterns = ["feature/**", "!feature/wip"]
        assert match_patterns("feature/login", patterns) is True
        assert match_patterns("feature/wip", patterns) is False

    def test_later_pattern_re_includes(self):
        patterns = ["docs/**", "!docs/**/*.png", "docs/logo.png"]
        assert match_patterns("docs/diagram/flow.png", patterns) is False
        assert match_patterns("docs/logo.png", patterns) is True

    @pytest.mark.parametrize("pattern,value", [
        ("[]", "[]"),
        ("a[]b", "a[]b"),
        ("[!]", "[!]"),
        ("v[", "v["),
    ])
    def test_empty_or_open_class_is_literal(self, pattern, value):
        assert glob_match(pattern, value) is True
        assert glob_match(pattern, "x") is False

    def test_invalid_range_names_the_pattern(self):
        with pytest.raises(ValueError, match=r"v\[z-a\]"):
            glob_match("v[z-a]", "vb")

    def test_negation_alone_matches_nothing(self):
        assert match_patterns("main", ["!dev"]) is False


# ============================================================================
# BRANCH / PATH FILTERS
# ============================================================================

class TestFilters:
    """Filter combination."""

    @pytest.mark.parametrize("ref,paths,expected", [
        ("refs/heads/main", ["src/app.py"], True),
        ("refs/heads/main", ["docs/readme.md"], False),
        ("refs/heads/main", ["docs/readme.md", "src/lib/util.py"], True),
        ("refs/heads/dev", ["src/app.py"], False),
        ("main", ["src/app.py"], True),
        ("refs/heads/main", [], False),
    ])
    def test_branches_and_paths_both_required(self, matcher, main_src_trigger, ref, paths, expected):
        assert matcher.matches(push(ref, paths), main_src_trigger) is expected

    def test_no_filters_matches_any_event_of_kind(self, matcher):
        trigger = TriggerFilter(kind=EventKind.PUSH)
        assert matcher.matches(push("refs/heads/anything"), trigger) is True

    def test_branch_patterns_are_ored(self, matcher):
        trigger = TriggerFilter(kind=EventKind.PUSH, branch_patterns=["main", "release/**"])
        assert matcher.matches(push("refs/heads/release/2026/10"), trigger) is True
        assert matcher.matches(push("refs/heads/feature/x"), trigger) is False

    @pytest.mark.parametrize("ref", ["refs/tags/main", "refs/pull/12/merge"])
    def test_non_branch_refs_fail_branch_filters(self, matcher, ref):
        trigger = TriggerFilter(kind=EventKind.PUSH, branch_patterns=["main", "12/merge"])
        assert matcher.matches(push(ref), trigger) is False

    def test_non_branch_refs_fail_ignore_only_filters(self, matcher):
        trigger = TriggerFilter(kind=EventKind.PUSH, branch_ignore_patterns=["dev"])
        assert matcher.matches(push("refs/tags/v1.0"), trigger) is False

    def test_tag_push_without_branch_filters(self, matcher):
        trigger = TriggerFilter(kind=EventKind.PUSH, path_ignore_patterns=["docs/**"])
        assert matcher.matches(push("refs/tags/v1.0", ["src/app.py"]), trigger) is True

    def test_pull_request_matches_base_branch(self, matcher):
        trigger = TriggerFilter(kind=EventKind.PULL_REQUEST, branch_patterns=["main"])
        event = Event(kind=EventKind.PULL_REQUEST, ref="refs/pull/12/merge", base_ref="main")
        assert matcher.matches(event, trigger) is True
        other = Event(kind=EventKind.PULL_REQUEST, ref="refs/pull/13/merge", base_ref="refs/heads/dev")
        assert matcher.matches(other, trigger) is False

    def test_kind_must_match(self, matcher, main_src_trigger):
        event = Event(kind=EventKind.PULL_REQUEST, ref="main", changed_paths=["src/app.py"])
        assert matcher.matches(event, main_src_trigger) is False


# ============================================================================
# IGNORE LISTS
# ============================================================================

class TestIgnoreFilters:
    """branches-ignore / paths-ignore."""

    def test_branches_ignore(self, matcher):
        trigger = TriggerFilter(kind=EventKind.PUSH, branch_ignore_patterns="dependabot/**")
        assert matcher.matches(push("refs/heads/dependabot/npm/lodash"), trigger) is False
        assert matcher.matches(push("refs/heads/main"), trigger) is True

    @pytest.mark.parametrize("paths,expected", [
        (["docs/index.md"], False),
        (["docs/index.md", "docs/api.md"], False),
        (["docs/index.md", "src/app.py"], True),
        ([], True),
    ])
    def test_paths_ignore_requires_every_path_ignored(self, matcher, paths, expected):
        trigger = TriggerFilter(kind=EventKind.PUSH, path_ignore_patterns=["docs/**"])
        assert matcher.matches(push(paths=paths), trigger) is expected


# ============================================================================
# SCHEDULE
# ============================================================================

class TestSchedule:
    """Cron-based triggers."""

    @pytest.fixture
    def nightly(self):
        return TriggerFilter(
            kind=EventKind.SCHEDULE,
            cron_expressions=["0 3 * * *", "0 12 * * 1"],
            branch_patterns=["release/**"],
        )

    def test_matching_cron(self, matcher, nightly):
        event = Event(kind=EventKind.SCHEDULE)
        assert matcher.matches(event, nightly, cron="0 12 * * 1") is True

    def test_unknown_cron(self, matcher, nightly):
        event = Event(kind=EventKind.SCHEDULE)
        assert matcher.matches(event, nightly, cron="*/5 * * * *") is False

    def test_missing_cron(self, matcher, nightly):
        assert matcher.matches(Event(kind=EventKind.SCHEDULE), nightly) is False

    def test_branch_filters_ignored(self, matcher, nightly):
        event = Event(kind=EventKind.SCHEDULE, ref="refs/heads/main")
        assert matcher.matches(event, nightly, cron="0 3 * * *") is True


# ============================================================================
# CONVENIENCE
# ============================================================================

class TestConvenience:
    """Module-level helpers."""

    def test_first_match_wins(self):
        triggers = [
            TriggerFilter(kind=EventKind.PULL_REQUEST),
            TriggerFilter(kind=EventKind.PUSH, branch_patterns=["dev"]),
            TriggerFilter(kind=EventKind.PUSH, branch_patterns=["main"]),
            TriggerFilter(kind=EventKind.PUSH),
        ]
        assert match_triggers(push(), triggers) is triggers[2]

    def test_no_match(self):
        triggers = [TriggerFilter(kind=EventKind.RELEASE)]
        assert match_triggers(push(), triggers) is None

    def test_matches_helper(self):
        trigger = TriggerFilter(kind=EventKind.WORKFLOW_DISPATCH)
        assert matches(Event(kind=EventKind.WORKFLOW_DISPATCH), trigger) is True
