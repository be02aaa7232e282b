# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 Felix, You Gotta Hack That
#
# This file is part of an AGPLv3-licensed project.
# You are free to use, modify, and distribute this file under the terms of
# the GNU Affero General Public License, version 3 or later.
# For details, see: https://www.gnu.org/licenses/agpl-3.0.html
# ---------------------------------------------------------------------------
# Filename:        roles.py
# Description:     Role definition model and role-to-permission resolution
# ---------------------------------------------------------------------------

from dataclasses import dataclass, field

from blackcat.matcher import AZURE_RBAC, matches, matches_either

GRANTED = "granted"
BLOCKED = "blocked"
NOT_GRANTED = "none"


def _unique(values):
    seen = set()
    ordered = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


@dataclass
class RoleDefinition:
    id: str
    name: str
    actions: list = field(default_factory=list)
    not_actions: list = field(default_factory=list)
    data_actions: list = field(default_factory=list)
    not_data_actions: list = field(default_factory=list)
    role_type: str = None
    description: str = None

    @property
    def guid(self):
        """Last path segment of the id, which is the same for a built-in role in every subscription."""
        return self.id.rstrip("/").split("/")[-1].lower()

    @classmethod
    def from_arm(cls, data):
        """Build from an ARM ``Microsoft.Authorization/roleDefinitions`` object."""
        props = data.get("properties") or {}
        actions, not_actions, data_actions, not_data_actions = [], [], [], []
        for permission_set in props.get("permissions") or []:
            actions.extend(permission_set.get("actions") or [])
            not_actions.extend(permission_set.get("notActions") or [])
            data_actions.extend(permission_set.get("dataActions") or [])
            not_data_actions.extend(permission_set.get("notDataActions") or [])
        return cls(
            id=data.get("id") or data.get("name", ""),
            name=props.get("roleName") or data.get("name", ""),
            actions=_unique(actions),
            not_actions=_unique(not_actions),
            data_actions=_unique(data_actions),
            not_data_actions=_unique(not_data_actions),
            role_type=props.get("type"),
            description=props.get("description"),
        )

    @classmethod
    def from_entra(cls, data):
        """Build from a Graph ``unifiedRoleDefinition`` object."""
        actions, not_actions = [], []
        for permission_set in data.get("rolePermissions") or []:
            actions.extend(permission_set.get("allowedResourceActions") or [])
            not_actions.extend(permission_set.get("excludedResourceActions") or [])
        return cls(
            id=data.get("id", ""),
            name=data.get("displayName", ""),
            actions=_unique(actions),
            not_actions=_unique(not_actions),
            role_type="BuiltInRole" if data.get("isBuiltIn") else "CustomRole",
            description=data.get("description"),
        )


@dataclass
class PermissionCheck:
    target: str
    status: str
    matched: list = field(default_factory=list)
    blocked_by: list = field(default_factory=list)

    @property
    def granted(self):
        return self.status == GRANTED


@dataclass
class MatchingRole:
    role: RoleDefinition
    matched_permissions: list = field(default_factory=list)
    granted_targets: list = field(default_factory=list)
    blocked_targets: list = field(default_factory=list)


def check_permission(actions, not_actions, target, dialect=AZURE_RBAC):
    """
    Check one target permission against an allow list and a deny list.

    A wildcard target is also compared the other way round, so a search for
    ``Microsoft.Storage/*/write`` finds roles listing the concrete action.
    A deny entry covering the target wins over any number of allows. An
    action found only the other way round is dropped when a deny covers
    that action.

    Denies go through the full matcher, action hierarchy included, so
    denying ``.../delete`` also blocks a search for ``.../read``.
    """
    forward = [action for action in actions if matches(action, target, dialect)]
    reverse = []
    if "*" in target:
        reverse = [action for action in actions
                   if action not in forward and matches_either(action, target, dialect)]
    matched = forward + reverse
    if not matched:
        return PermissionCheck(target=target, status=NOT_GRANTED)

    blocked_by = [denied for denied in not_actions if matches(denied, target, dialect)]
    if blocked_by:
        return PermissionCheck(target=target, status=BLOCKED, matched=matched, blocked_by=blocked_by)

    surviving = list(forward)
    for action in reverse:
        denies = [denied for denied in not_actions if matches(denied, action, dialect)]
        if denies:
            blocked_by.extend(denied for denied in denies if denied not in blocked_by)
        else:
            surviving.append(action)
    if not surviving:
        return PermissionCheck(target=target, status=BLOCKED, matched=matched, blocked_by=blocked_by)

    return PermissionCheck(target=target, status=GRANTED, matched=surviving)


def check_role(role, target, dialect=AZURE_RBAC, include_data_actions=False):
    result = check_permission(role.actions, role.not_actions, target, dialect)
    if result.status == GRANTED or not include_data_actions:
        return result

    data_result = check_permission(role.data_actions, role.not_data_actions, target, dialect)
    if data_result.status != NOT_GRANTED:
        return data_result
    return result


def resolve_matching_roles(roles, targets, dialect=AZURE_RBAC, include_data_actions=False):
    """
    Filter ``roles`` down to those granting at least one of ``targets``.

    Returns ``MatchingRole`` objects in input order. ``matched_permissions``
    lists the role-side patterns that produced a grant.
    """
    if isinstance(targets, str):
        targets = [targets]

    matching = []
    for role in roles:
        matched, granted, blocked = [], [], []
        for target in targets:
            result = check_role(role, target, dialect, include_data_actions)
            if result.status == GRANTED:
                granted.append(target)
                matched.extend(result.matched)
            elif result.status == BLOCKED:
                blocked.append(target)

        if granted:
            matching.append(MatchingRole(
                role=role,
                matched_permissions=_unique(matched),
                granted_targets=granted,
                blocked_targets=blocked,
            ))
    return matching
