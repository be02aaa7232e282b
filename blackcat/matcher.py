# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 Felix, You Gotta Hack That
#
# This file is part of an AGPLv3-licensed project.
# You are free to use, modify, and distribute this file under the terms of
# the GNU Affero General Public License, version 3 or later.
# For details, see: https://www.gnu.org/licenses/agpl-3.0.html
# ---------------------------------------------------------------------------
# Filename:        matcher.py
# Description:     Decides whether one Azure / Entra permission string grants another
# ---------------------------------------------------------------------------
"""
Permission pattern matching for Azure RBAC and Entra ID role definitions.

A role definition lists permission patterns such as
``Microsoft.Compute/*`` or ``microsoft.directory/applications/allProperties/allTasks``.
``matches(pattern, target)`` answers whether such a pattern grants the target
permission. The rules run cheapest and most literal first; the action
hierarchy ("write" implies "read") is the loosest rule and runs last.

Both directories share the same rules. A ``MatchDialect`` carries what differs
between them: the action hierarchy table, the namespace scoped wildcard and
the literal implications.
"""

import re
from dataclasses import dataclass, field


@dataclass(frozen=True)
class MatchDialect:
    name: str
    # action verb (lower case) -> set of verbs it implies (lower case)
    action_hierarchy: dict
    scoped_wildcard: str = None
    # pattern -> permissions it grants without a shared action verb
    literal_implications: dict = field(default_factory=dict)


AZURE_RBAC = MatchDialect(
    name="azure",
    action_hierarchy={
        "write": {"read"},
        "delete": {"read"},
        "action": {"read"},
        "all": {"read", "write", "delete", "action"},
    },
)

ENTRA = MatchDialect(
    name="entra",
    action_hierarchy={
        "write": {"read"},
        "update": {"read"},
        "delete": {"read"},
        "action": {"read"},
        "manage": {"read", "write", "update", "delete"},
        "alltasks": {"read", "write", "update", "delete", "action"},
    },
    scoped_wildcard="microsoft.directory/*",
    literal_implications={
        "microsoft.directory/applications/allProperties/allTasks": {
            "microsoft.directory/applications/allProperties/read",
            "microsoft.directory/applications/allProperties/update",
        },
    },
)


def split_on_last_slash(value):
    """Return ``(base, action)`` split on the last ``/`` or ``None`` when there is no ``/``."""
    base, sep, action = value.rpartition("/")
    if not sep or not base or not action:
        return None
    return base, action


def _has_embedded_wildcard(pattern):
    if "/*/" in pattern:
        return True
    return any("*" in segment for segment in pattern.split("/")[:-1])


def _segments_match(pattern, target):
    pattern_segments = pattern.split("/")
    target_segments = target.split("/")
    if len(pattern_segments) != len(target_segments):
        return False
    return all(p == "*" or p == t for p, t in zip(pattern_segments, target_segments))


def _wildcard_regex(pattern):
    return re.compile("^" + re.escape(pattern).replace(r"\*", ".*") + "$")


def _literal_implication(pattern, target, dialect):
    if target in dialect.literal_implications.get(pattern, ()):
        return True
    # the reverse direction is consulted as well
    return pattern in dialect.literal_implications.get(target, ())


def _action_implies(pattern, target, dialect):
    pattern_parts = split_on_last_slash(pattern)
    target_parts = split_on_last_slash(target)
    if pattern_parts is None or target_parts is None:
        return False

    pattern_base, pattern_action = pattern_parts
    target_base, target_action = target_parts
    if pattern_base != target_base:
        return False

    pattern_action = pattern_action.lower()
    target_action = target_action.lower()
    if pattern_action == target_action:
        return True
    return target_action in dialect.action_hierarchy.get(pattern_action, ())


def matches(pattern, target, dialect=AZURE_RBAC):
    """Return True when permission ``pattern`` grants permission ``target``."""
    if not pattern or not target:
        return False

    if pattern == target:
        return True

    if pattern == "*":
        return True
    if dialect.scoped_wildcard and pattern == dialect.scoped_wildcard:
        return target.startswith(pattern[:-1])

    if pattern.endswith("/*") and target.startswith(pattern[:-1]):
        return True

    if _has_embedded_wildcard(pattern):
        return _segments_match(pattern, target)

    if "*" in pattern and _wildcard_regex(pattern).match(target):
        return True

    if target.startswith(pattern + "/"):
        return True
    if pattern.startswith(target + "/"):
        return True

    if dialect.literal_implications and _literal_implication(pattern, target, dialect):
        return True

    return _action_implies(pattern, target, dialect)


def matches_either(first, second, dialect=AZURE_RBAC):
    """Symmetric check, for when the searched permission may itself be a wildcard."""
    return matches(first, second, dialect) or matches(second, first, dialect)
