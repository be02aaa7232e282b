# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 Felix, You Gotta Hack That
#
# This file is part of an AGPLv3-licensed project.
# You are free to use, modify, and distribute this file under the terms of
# the GNU Affero General Public License, version 3 or later.
# For details, see: https://www.gnu.org/licenses/agpl-3.0.html
# ---------------------------------------------------------------------------
# Filename:        storage.py
# Description:     Finds blob containers that allow anonymous listing
# ---------------------------------------------------------------------------

import logging
import xml.etree.ElementTree as ET

import requests

from blackcat.batch import parallel_map

logger = logging.getLogger(__name__)

BLOB_ENDPOINT = "https://{account}.blob.core.windows.net/{container}"

DEFAULT_CONTAINERS = [
    "$web", "backup", "backups", "data", "files", "images", "logs", "media", "public", "static",
    "uploads", "assets", "content", "documents", "downloads", "config", "archive", "temp", "test",
]


def _blob_names(xml_body, limit=10):
    try:
        root = ET.fromstring(xml_body)
    except ET.ParseError:
        return []
    return [name.text for name in root.iter("Name")][:limit]


def probe_container(session, account, container, timeout=10):
    """
    Try an anonymous container listing. Returns a result dict for a public
    container, ``None`` when the container is missing or private.
    """
    url = BLOB_ENDPOINT.format(account=account, container=container)
    try:
        response = session.get(url, params={"restype": "container", "comp": "list"}, timeout=timeout)
    except requests.exceptions.ConnectionError:
        # no such storage account, the name does not resolve
        return None

    if response.status_code != 200:
        logger.debug(f"{url} -> HTTP {response.status_code}")
        return None

    blobs = _blob_names(response.content, limit=1000)
    return {
        "StorageAccount": account,
        "Container": container,
        "Url": url,
        "BlobCount": len(blobs),
        "SampleBlobs": blobs[:10],
    }


def find_public_containers(accounts, containers=None, session=None, throttle_limit=100):
    session = session or requests.Session()
    containers = containers or DEFAULT_CONTAINERS
    probes = [(account.lower(), container) for account in accounts for container in containers]
    logger.info(f"Probing {len(probes)} account/container combinations")

    results = parallel_map(
        lambda probe: probe_container(session, *probe), probes, throttle_limit=throttle_limit,
        description="Containers", fail_fast=False,
    )
    found = [result for result in results if result]
    for result in found:
        logger.warning(f"Public container: {result['Url']} ({result['BlobCount']} blobs)")
    return found
