# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 Felix, You Gotta Hack That
#
# This file is part of an AGPLv3-licensed project.
# You are free to use, modify, and distribute this file under the terms of
# the GNU Affero General Public License, version 3 or later.
# For details, see: https://www.gnu.org/licenses/agpl-3.0.html
# ---------------------------------------------------------------------------
# Filename:        azure_rbac.py
# Description:     Azure RBAC discovery: role definitions, assignments and
#                  principals holding a given permission
# ---------------------------------------------------------------------------

import logging

from blackcat.batch import parallel_map
from blackcat.config import API_VERSIONS
from blackcat.matcher import AZURE_RBAC
from blackcat.principals import resolve_principals
from blackcat.roles import RoleDefinition, resolve_matching_roles

logger = logging.getLogger(__name__)


def list_subscriptions(client):
    subscriptions = client.get_paged(
        client.arm_url("subscriptions"),
        params={"api-version": API_VERSIONS["subscriptions"]},
    )
    logger.info(f"Found {len(subscriptions)} subscriptions")
    return subscriptions


def _subscription_ids(client, subscription_ids):
    if subscription_ids:
        return list(subscription_ids)
    return [sub["subscriptionId"] for sub in list_subscriptions(client) if sub.get("subscriptionId")]


def get_role_definitions(client, subscription_ids, cache=None, throttle_limit=10):
    """
    Fetch role definitions for every subscription and merge them.

    Built-in roles show up once per subscription with the same GUID, so the
    result is de-duplicated on the GUID.
    """
    def fetch(subscription_id):
        return client.get_paged(
            client.arm_url(f"subscriptions/{subscription_id}/providers/Microsoft.Authorization/roleDefinitions"),
            params={"api-version": API_VERSIONS["roleDefinitions"]},
        )

    pages = parallel_map(
        fetch, subscription_ids, throttle_limit=throttle_limit, description="Role definitions",
        cache=cache, cache_key=lambda sub: f"roleDefinitions:{sub}",
    )

    roles = {}
    for definitions in pages:
        for data in definitions or []:
            role = RoleDefinition.from_arm(data)
            roles.setdefault(role.guid, role)
    logger.info(f"Loaded {len(roles)} role definitions")
    return list(roles.values())


def _props(assignment):
    return assignment.get("properties") or {}


def _fetch_assignments(client, subscription_ids, cache, throttle_limit):
    def fetch(subscription_id):
        return client.get_paged(
            client.arm_url(f"subscriptions/{subscription_id}/providers/Microsoft.Authorization/roleAssignments"),
            params={"api-version": API_VERSIONS["roleAssignments"]},
        )

    pages = parallel_map(
        fetch, subscription_ids, throttle_limit=throttle_limit, description="Role assignments",
        cache=cache, cache_key=lambda sub: f"roleAssignments:{sub}",
    )

    assignments = {}
    for subscription_id, page in zip(subscription_ids, pages):
        for assignment in page or []:
            # inherited assignments are returned by every subscription below the scope
            if assignment.get("id") not in assignments:
                assignments[assignment.get("id")] = (subscription_id, assignment)
    return list(assignments.values())


def _assignment_record(subscription_id, assignment, role, principal):
    props = _props(assignment)
    return {
        "PrincipalId": props.get("principalId"),
        "PrincipalType": principal.get("type") if principal.get("status") == "resolved" else props.get("principalType"),
        "DisplayName": principal.get("name"),
        "PrincipalStatus": principal.get("status"),
        "RoleName": role.name if role else None,
        "RoleId": role.guid if role else props.get("roleDefinitionId", "").split("/")[-1],
        "RoleType": role.role_type if role else None,
        "Scope": props.get("scope"),
        "SubscriptionId": subscription_id,
    }


def _sort_records(records):
    return sorted(records, key=lambda r: (r.get("RoleName") or "", r.get("DisplayName") or "", r.get("Scope") or ""))


def get_role_assignments(client, subscription_ids=None, principal_types=None, role_names=None,
                         cache=None, throttle_limit=10):
    """List role assignments across subscriptions with role names and principals resolved."""
    subscription_ids = _subscription_ids(client, subscription_ids)
    roles = {role.guid: role for role in get_role_definitions(client, subscription_ids, cache, throttle_limit)}
    assignments = _fetch_assignments(client, subscription_ids, cache, throttle_limit)

    wanted_types = {t.lower() for t in principal_types or []}
    wanted_roles = {name.lower() for name in role_names or []}

    selected = []
    for subscription_id, assignment in assignments:
        props = _props(assignment)
        role = roles.get(props.get("roleDefinitionId", "").split("/")[-1].lower())
        if wanted_types and (props.get("principalType") or "").lower() not in wanted_types:
            continue
        if wanted_roles and (role is None or role.name.lower() not in wanted_roles):
            continue
        selected.append((subscription_id, assignment, role))

    principals = resolve_principals(
        client, [_props(a).get("principalId") for _, a, _ in selected],
        throttle_limit=throttle_limit, cache=cache,
    )
    records = [
        _assignment_record(sub, assignment, role, principals.get(_props(assignment).get("principalId"), {}))
        for sub, assignment, role in selected
    ]
    logger.info(f"Found {len(records)} role assignments")
    return _sort_records(records)


def find_azure_permission_holders(client, permissions, subscription_ids=None, include_data_actions=False,
                                  cache=None, throttle_limit=10):
    """
    Find every principal assigned a role that grants one of ``permissions``.

    A failing role definition or role assignment request aborts the search.
    """
    if isinstance(permissions, str):
        permissions = [permissions]

    subscription_ids = _subscription_ids(client, subscription_ids)
    if not subscription_ids:
        logger.warning("No subscriptions available to search")
        return []

    roles = get_role_definitions(client, subscription_ids, cache, throttle_limit)
    matching = {
        match.role.guid: match
        for match in resolve_matching_roles(roles, permissions, AZURE_RBAC, include_data_actions)
    }
    logger.info(f"{len(matching)} roles grant {', '.join(permissions)}")
    for match in matching.values():
        logger.debug(f"{match.role.name}: {match.matched_permissions}")
    if not matching:
        return []

    selected = []
    for subscription_id, assignment in _fetch_assignments(client, subscription_ids, cache, throttle_limit):
        role_guid = _props(assignment).get("roleDefinitionId", "").split("/")[-1].lower()
        if role_guid in matching:
            selected.append((subscription_id, assignment, matching[role_guid]))

    principals = resolve_principals(
        client, [_props(a).get("principalId") for _, a, _ in selected],
        throttle_limit=throttle_limit, cache=cache,
    )

    records = []
    for subscription_id, assignment, match in selected:
        principal = principals.get(_props(assignment).get("principalId"), {})
        record = _assignment_record(subscription_id, assignment, match.role, principal)
        record["MatchedPermissions"] = match.matched_permissions
        records.append(record)

    logger.info(f"Found {len(records)} permission holders")
    return _sort_records(records)
