# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 Felix, You Gotta Hack That
#
# This file is part of an AGPLv3-licensed project.
# You are free to use, modify, and distribute this file under the terms of
# the GNU Affero General Public License, version 3 or later.
# For details, see: https://www.gnu.org/licenses/agpl-3.0.html
# ---------------------------------------------------------------------------
# Filename:        entra.py
# Description:     Entra ID directory roles granting a given permission, and
#                  the principals holding them
# ---------------------------------------------------------------------------

import logging

from blackcat.batch import parallel_map
from blackcat.matcher import ENTRA
from blackcat.principals import resolve_principals
from blackcat.roles import RoleDefinition, resolve_matching_roles

logger = logging.getLogger(__name__)


def get_entra_role_definitions(client, cache=None):
    key = "entra:roleDefinitions"
    definitions = cache.get(key) if cache is not None else None
    if definitions is None:
        definitions = client.get_paged(client.graph_url("roleManagement/directory/roleDefinitions"))
        if cache is not None:
            cache.set(key, definitions)
    roles = [RoleDefinition.from_entra(data) for data in definitions]
    logger.info(f"Loaded {len(roles)} Entra role definitions")
    return roles


def _role_assignments(client, role_id, include_eligible):
    """Active assignments, plus PIM eligibility schedules when requested."""
    role_filter = {"$filter": f"roleDefinitionId eq '{role_id}'"}
    found = [
        ("Active", assignment)
        for assignment in client.get_paged(client.graph_url("roleManagement/directory/roleAssignments"),
                                           params=role_filter)
    ]
    if include_eligible:
        found.extend(
            ("Eligible", schedule)
            for schedule in client.get_paged(client.graph_url("roleManagement/directory/roleEligibilitySchedules"),
                                             params=role_filter)
        )
    return found


def find_entra_permission_holders(client, permissions, include_eligible=False, cache=None, throttle_limit=10):
    """
    Find principals holding an Entra directory role that grants one of ``permissions``.

    Uses the Entra matching rules (``microsoft.directory/*`` namespace
    wildcard, ``manage`` / ``allTasks`` action hierarchy).
    """
    if isinstance(permissions, str):
        permissions = [permissions]

    roles = get_entra_role_definitions(client, cache)
    matching = resolve_matching_roles(roles, permissions, ENTRA)
    logger.info(f"{len(matching)} Entra roles grant {', '.join(permissions)}")
    if not matching:
        return []

    assignment_lists = parallel_map(
        lambda match: _role_assignments(client, match.role.id, include_eligible),
        matching, throttle_limit=throttle_limit, description="Entra role assignments",
    )

    selected = []
    for match, assignments in zip(matching, assignment_lists):
        for assignment_type, assignment in assignments:
            selected.append((match, assignment_type, assignment))

    principals = resolve_principals(
        client, [assignment.get("principalId") for _, _, assignment in selected],
        throttle_limit=throttle_limit, cache=cache,
    )

    records = []
    for match, assignment_type, assignment in selected:
        principal = principals.get(assignment.get("principalId"), {})
        records.append({
            "PrincipalId": assignment.get("principalId"),
            "PrincipalType": principal.get("type"),
            "DisplayName": principal.get("name"),
            "PrincipalStatus": principal.get("status"),
            "RoleName": match.role.name,
            "RoleId": match.role.id,
            "RoleType": match.role.role_type,
            "DirectoryScopeId": assignment.get("directoryScopeId"),
            "AssignmentType": assignment_type,
            "MatchedPermissions": match.matched_permissions,
        })

    logger.info(f"Found {len(records)} Entra permission holders")
    return sorted(records, key=lambda r: (r["RoleName"] or "", r["DisplayName"] or "", r["AssignmentType"]))
