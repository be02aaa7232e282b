# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 Felix, You Gotta Hack That
#
# This file is part of an AGPLv3-licensed project.
# You are free to use, modify, and distribute this file under the terms of
# the GNU Affero General Public License, version 3 or later.
# For details, see: https://www.gnu.org/licenses/agpl-3.0.html
# ---------------------------------------------------------------------------
# Filename:        principals.py
# Description:     Resolves Entra object IDs to readable names and types
# ---------------------------------------------------------------------------

import logging
from collections import Counter

from blackcat.batch import parallel_map
from blackcat.errors import ApiRequestError

logger = logging.getLogger(__name__)

# Graph accepts at most this many ids per getByIds call
GET_BY_IDS_LIMIT = 1000

ODATA_TYPES = {
    "#microsoft.graph.user": "User",
    "#microsoft.graph.group": "Group",
    "#microsoft.graph.servicePrincipal": "ServicePrincipal",
    "#microsoft.graph.device": "Device",
    "#microsoft.graph.application": "Application",
}


def _chunks(values, size):
    for start in range(0, len(values), size):
        yield values[start:start + size]


def _describe(obj):
    return {
        "type": ODATA_TYPES.get(obj.get("@odata.type"), obj.get("@odata.type", "Unknown")),
        "name": obj.get("userPrincipalName") or obj.get("displayName") or obj.get("appId"),
        "status": "resolved",
    }


def resolve_principals(client, object_ids, throttle_limit=10, cache=None):
    """
    Resolve object IDs through Graph ``directoryObjects/getByIds``.

    Returns ``{object_id: {"type", "name", "status"}}``. IDs Graph does not
    return (deleted objects, principals from another tenant) are marked
    ``unresolved``. A failed chunk is logged and its IDs stay unresolved.
    """
    ids = sorted({object_id for object_id in object_ids if object_id})
    resolved = {object_id: {"type": "Unknown", "name": None, "status": "unresolved"} for object_id in ids}
    if not ids:
        return resolved

    url = client.graph_url("directoryObjects/getByIds")

    def lookup(chunk):
        try:
            return client.post(url, {"ids": chunk})["value"] if chunk else []
        except ApiRequestError as e:
            logger.warning(f"Could not resolve {len(chunk)} principals: {e}")
            return None

    chunks = list(_chunks(ids, GET_BY_IDS_LIMIT))
    for objects in parallel_map(
        lookup, chunks, throttle_limit=throttle_limit, description="Resolving principals",
        cache=cache, cache_key=lambda chunk: "principals:" + ",".join(chunk),
    ):
        for obj in objects or []:
            if obj.get("id") in resolved:
                resolved[obj["id"]] = _describe(obj)

    logger.info(f"Resolved {len(ids)} principals:")
    summarise_statuses(resolved)
    return resolved


def summarise_statuses(resolved):
    counter = Counter(entry["status"] for entry in resolved.values())
    for status, count in counter.items():
        logger.info(f"  {status:<10} : {count}")
    return counter
