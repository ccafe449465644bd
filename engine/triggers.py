# ============================================================================
# EVENT / TRIGGER MATCHER
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Core - Decides whether a workflow run happens at all
# PURPOSE: Match events against trigger filters (branches, paths, cron)
# CREATED: 13 OCT 2026
# ============================================================================
"""
Event / Trigger Matcher

Rules:
- event.kind must equal filter.kind exactly.
- schedule events ignore branch/path filters; they match when the caller
  supplies a cron identifier listed in filter.cron_expressions. Cron strings
  are opaque tokens here.
- branch filters match Event.branch: refs/heads/X or a bare name, or the
  base_ref of a pull request. Tag and pull refs are not branches, so any
  branch filter rejects them.
- branch_patterns (if any): at least one must match the branch.
- path_patterns (if any): at least one changed path must match.
- Both present: BOTH categories must pass (AND between, OR within).
- branch_ignore_patterns: reject when the ref matches any of them.
- path_ignore_patterns: reject when EVERY changed path matches one of them.

Pattern lists are evaluated in order. A pattern starting with `!` un-matches
a value matched by an earlier pattern, so ["feature/**", "!feature/wip"]
accepts feature/a but not feature/wip.

Glob grammar:
    *      any run of characters except '/'
    **     any run of characters including '/'
    **/    zero or more whole directories
    ?      exactly one character except '/'
    [abc]  one character from the class ([!abc] / [^abc] negate)
    \\x    the literal character x
    other  literal

So `feature/*` matches feature/login but not feature/auth/login, while
`feature/**` matches both.
"""

import logging
import re
from functools import lru_cache
from typing import Iterable, Optional, Sequence

from core.contracts import EventKind
from core.models import Event, TriggerFilter

logger = logging.getLogger(__name__)


# ============================================================================
# GLOB COMPILATION
# ============================================================================

@lru_cache(maxsize=1024)
def compile_glob(pattern: str) -> "re.Pattern[str]":
    """Translate a glob pattern into an anchored regular expression."""
    parts = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                i += 2
                if pattern.startswith("/", i):
                    i += 1
                    parts.append("(?:.*/)?")
                else:
                    parts.append(".*")
                continue
            parts.append("[^/]*")
        elif c == "?":
            parts.append("[^/]")
        elif c == "[":
            end = pattern.find("]", i + 2 if pattern[i + 1:i + 2] in ("!", "^") else i + 1)
            body = pattern[i + 1:end] if end != -1 else ""
            negate = body[:1] in ("!", "^")
            if negate:
                body = body[1:]
            if not body:
                # Unterminated or empty class: literal '['
                parts.append(re.escape(c))
            else:
                body = body.replace("\\", "\\\\").replace("[", "\\[")
                parts.append(f"[{'^' if negate else ''}{body}]")
                i = end
        elif c == "\\" and i + 1 < n:
            i += 1
            parts.append(re.escape(pattern[i]))
        else:
            parts.append(re.escape(c))
        i += 1
    try:
        return re.compile("".join(parts) + r"\Z", re.DOTALL)
    except re.error as e:
        raise ValueError(f"Invalid glob pattern {pattern!r}: {e}") from e


def glob_match(pattern: str, value: str) -> bool:
    return compile_glob(pattern).match(value) is not None


def match_patterns(value: str, patterns: Sequence[str]) -> bool:
    """Ordered evaluation with `!` negation; the last matching pattern wins."""
    matched = False
    for pattern in patterns:
        if pattern.startswith("!"):
            if matched and glob_match(pattern[1:], value):
                matched = False
        elif not matched and glob_match(pattern, value):
            matched = True
    return matched


# ============================================================================
# MATCHER
# ============================================================================

class TriggerMatcher:
    """Evaluates trigger filters against events."""

    def matches(
        self,
        event: Event,
        trigger: TriggerFilter,
        cron: Optional[str] = None,
    ) -> bool:
        """
        Decide whether `event` satisfies `trigger`.

        Args:
            event: Incoming repository event
            trigger: One trigger declaration
            cron: For schedule events, the cron expression the caller's
                scheduler fired for

        Returns:
            True if the workflow should run for this trigger
        """
        if event.kind != trigger.kind:
            return False

        if trigger.kind == EventKind.SCHEDULE:
            return cron is not None and cron in trigger.cron_expressions

        if not self._branches_pass(event, trigger):
            return False
        if not self._paths_pass(event, trigger):
            return False
        return True

    def _branches_pass(self, event: Event, trigger: TriggerFilter) -> bool:
        if not (trigger.branch_patterns or trigger.branch_ignore_patterns):
            return True
        branch = event.branch
        if branch is None:
            logger.debug(f"Ref '{event.ref}' is not a branch; branch filters reject it")
            return False
        if trigger.branch_patterns and not match_patterns(branch, trigger.branch_patterns):
            logger.debug(f"Branch '{branch}' does not match {list(trigger.branch_patterns)}")
            return False
        if trigger.branch_ignore_patterns and match_patterns(branch, trigger.branch_ignore_patterns):
            logger.debug(f"Branch '{branch}' is ignored by {list(trigger.branch_ignore_patterns)}")
            return False
        return True

    def _paths_pass(self, event: Event, trigger: TriggerFilter) -> bool:
        paths = sorted(event.changed_paths)
        if trigger.path_patterns:
            if not any(match_patterns(path, trigger.path_patterns) for path in paths):
                logger.debug(f"No changed path matches {list(trigger.path_patterns)}")
                return False
        if trigger.path_ignore_patterns:
            if paths and all(match_patterns(path, trigger.path_ignore_patterns) for path in paths):
                logger.debug(f"Every changed path is ignored by {list(trigger.path_ignore_patterns)}")
                return False
        return True

    def first_match(
        self,
        event: Event,
        triggers: Iterable[TriggerFilter],
        cron: Optional[str] = None,
    ) -> Optional[TriggerFilter]:
        """Return the first trigger that matches, or None."""
        for trigger in triggers:
            if self.matches(event, trigger, cron=cron):
                return trigger
        return None


# ============================================================================
# CONVENIENCE FUNCTIONS
# ============================================================================

_matcher: Optional[TriggerMatcher] = None


def get_matcher() -> TriggerMatcher:
    """Get shared matcher instance."""
    global _matcher
    if _matcher is None:
        _matcher = TriggerMatcher()
    return _matcher


def matches(event: Event, trigger: TriggerFilter, *, cron: Optional[str] = None) -> bool:
    """Convenience function to match one trigger."""
    return get_matcher().matches(event, trigger, cron=cron)


def match_triggers(
    event: Event,
    triggers: Iterable[TriggerFilter],
    *,
    cron: Optional[str] = None,
) -> Optional[TriggerFilter]:
    """Convenience function: first matching trigger or None."""
    return get_matcher().first_match(event, triggers, cron=cron)


__all__ = [
    "compile_glob",
    "glob_match",
    "match_patterns",
    "TriggerMatcher",
    "get_matcher",
    "matches",
    "match_triggers",
]
