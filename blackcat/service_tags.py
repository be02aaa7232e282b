# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 Felix, You Gotta Hack That
#
# This file is part of an AGPLv3-licensed project.
# You are free to use, modify, and distribute this file under the terms of
# the GNU Affero General Public License, version 3 or later.
# For details, see: https://www.gnu.org/licenses/agpl-3.0.html
# ---------------------------------------------------------------------------
# Filename:        service_tags.py
# Description:     Finds the Azure service tags an IP address belongs to
# ---------------------------------------------------------------------------

import ipaddress
import logging

from blackcat.config import API_VERSIONS

logger = logging.getLogger(__name__)


def parse_ip_query(value):
    """
    Turn an address into a network to search for. Trailing ``*`` octets are
    accepted for IPv4, so ``20.50.*.*`` searches 20.50.0.0/16.
    """
    value = value.strip()
    if "*" not in value:
        return ipaddress.ip_network(value, strict=False)

    octets = value.split(".")
    if len(octets) != 4:
        raise ValueError(f"Wildcards are only supported in IPv4 addresses: {value}")
    fixed = []
    for octet in octets:
        if octet == "*":
            break
        fixed.append(octet)
    if any(octet != "*" for octet in octets[len(fixed):]):
        raise ValueError(f"Wildcards must be trailing octets: {value}")
    prefix_length = 8 * len(fixed)
    address = ".".join(fixed + ["0"] * (4 - len(fixed)))
    return ipaddress.ip_network(f"{address}/{prefix_length}")


def get_service_tags(client, subscription_id, location="westeurope", cache=None):
    """Download the service tag document; any location returns the global list."""
    key = f"serviceTags:{location}"
    document = cache.get(key) if cache is not None else None
    if document is None:
        document = client.get(
            client.arm_url(f"subscriptions/{subscription_id}/providers/Microsoft.Network/locations/{location}/serviceTags"),
            params={"api-version": API_VERSIONS["serviceTags"]},
        )
        if cache is not None:
            cache.set(key, document)
    return document


def find_service_tag(document, ip):
    """Return one record per service tag with a prefix overlapping ``ip``."""
    network = parse_ip_query(ip) if isinstance(ip, str) else ip
    matches = []
    for tag in document.get("values", []):
        props = tag.get("properties") or {}
        prefixes = []
        for prefix in props.get("addressPrefixes") or []:
            candidate = ipaddress.ip_network(prefix, strict=False)
            if candidate.version == network.version and candidate.overlaps(network):
                prefixes.append(prefix)
        if prefixes:
            matches.append({
                "Name": tag.get("name") or "",
                "Region": props.get("region") or "global",
                "SystemService": props.get("systemService") or None,
                "AddressPrefixes": prefixes,
                "NetworkFeatures": props.get("networkFeatures") or [],
            })

    if not matches:
        logger.info(f"No matching service tag found for {ip}")
    # most specific tags first, the broad AzureCloud tags are always a match
    return sorted(matches, key=lambda m: (m["Name"].startswith("AzureCloud"), m["Name"]))
