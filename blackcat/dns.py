# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 Felix, You Gotta Hack That
#
# This file is part of an AGPLv3-licensed project.
# You are free to use, modify, and distribute this file under the terms of
# the GNU Affero General Public License, version 3 or later.
# For details, see: https://www.gnu.org/licenses/agpl-3.0.html
# ---------------------------------------------------------------------------
# Filename:        dns.py
# Description:     DNS-over-HTTPS lookups and Azure service subdomain discovery
# ---------------------------------------------------------------------------

import logging

import requests

from blackcat.batch import parallel_map
from blackcat.config import DOH_ENDPOINTS

logger = logging.getLogger(__name__)

RECORD_TYPES = {
    "A": 1, "NS": 2, "CNAME": 5, "SOA": 6, "PTR": 12, "MX": 15, "TXT": 16, "AAAA": 28, "SRV": 33,
}
RECORD_NAMES = {number: name for name, number in RECORD_TYPES.items()}

NXDOMAIN = 3

AZURE_SERVICE_DOMAINS = {
    "onmicrosoft.com": "Microsoft Hosted Domain",
    "scm.azurewebsites.net": "App Services - Management",
    "azurewebsites.net": "App Services",
    "p.azurewebsites.net": "App Services",
    "cloudapp.net": "App Services",
    "file.core.windows.net": "Storage Accounts - Files",
    "blob.core.windows.net": "Storage Accounts - Blobs",
    "queue.core.windows.net": "Storage Accounts - Queues",
    "table.core.windows.net": "Storage Accounts - Tables",
    "dfs.core.windows.net": "Storage Accounts - Data Lake",
    "mail.protection.outlook.com": "Email",
    "sharepoint.com": "SharePoint",
    "redis.cache.windows.net": "Databases - Redis",
    "documents.azure.com": "Databases - Cosmos DB",
    "database.windows.net": "Databases - MSSQL",
    "vault.azure.net": "Key Vaults",
    "azureedge.net": "CDN",
    "search.windows.net": "Search Appliance",
    "azure-api.net": "API Services",
    "azurecr.io": "Container Registry",
    "servicebus.windows.net": "Service Bus",
    "azurefd.net": "Front Door",
    "trafficmanager.net": "Traffic Manager",
}

DEFAULT_PERMUTATIONS = [
    "dev", "prod", "test", "staging", "backup", "data", "storage", "files", "api", "app", "web",
]

PERMUTATION_PATTERNS = ("{word}-{base}", "{base}-{word}", "{word}{base}", "{base}{word}")


class DohResolver:
    """Resolves names through a JSON DNS-over-HTTPS endpoint (Cloudflare or Google)."""

    def __init__(self, endpoint=DOH_ENDPOINTS["cloudflare"], session=None, timeout=10):
        self.endpoint = DOH_ENDPOINTS.get(endpoint, endpoint)
        self.session = session or requests.Session()
        self.timeout = timeout

    def resolve(self, name, record_type="A"):
        """Return the answers for ``name`` as dicts; an NXDOMAIN gives an empty list."""
        response = self.session.get(
            self.endpoint,
            params={"name": name, "type": record_type},
            headers={"Accept": "application/dns-json"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        body = response.json()
        if body.get("Status") == NXDOMAIN:
            return []

        return [
            {
                "Name": answer.get("name", "").rstrip("."),
                "Type": RECORD_NAMES.get(answer.get("type"), str(answer.get("type"))),
                "TTL": answer.get("TTL"),
                "Data": answer.get("data", "").strip('"'),
            }
            for answer in body.get("Answer") or []
        ]


def find_dns_records(resolver, names, record_types=("A", "AAAA", "CNAME", "MX", "NS", "TXT"), throttle_limit=50):
    """Look up every record type for every name; failed lookups are logged and skipped."""
    queries = [(name, record_type) for name in names for record_type in record_types]

    def lookup(query):
        name, record_type = query
        return [dict(answer, Query=name) for answer in resolver.resolve(name, record_type)]

    records = []
    for answers in parallel_map(lookup, queries, throttle_limit=throttle_limit, description="DNS lookups",
                                fail_fast=False):
        records.extend(answers or [])
    return records


def candidate_names(base_name, permutations=None, domains=None):
    """Every ``{base}`` and permutation of it under each Azure service domain, as ``(name, domain)``."""
    if domains is None:
        domains = AZURE_SERVICE_DOMAINS
    bases = [base_name]
    for word in permutations or []:
        bases.extend(pattern.format(word=word, base=base_name) for pattern in PERMUTATION_PATTERNS)
    return [(f"{base}.{domain}", domain) for domain in domains for base in bases]


def find_azure_subdomains(resolver, base_name, categories=None, permutations=None, throttle_limit=1000):
    """
    Discover Azure hosted names for ``base_name`` by resolving candidate names.

    ``categories`` restricts the search to service domains whose category
    contains one of the given words (case-insensitive).
    """
    domains = AZURE_SERVICE_DOMAINS
    if categories:
        wanted = [c.lower() for c in categories]
        domains = {d: c for d, c in domains.items() if any(w in c.lower() for w in wanted)}

    candidates = candidate_names(base_name.lower(), permutations, domains)
    names = [name for name, _ in candidates]
    logger.info(f"Checking {len(names)} candidate names for {base_name}")

    results = parallel_map(
        lambda name: resolver.resolve(name, "A"), names, throttle_limit=throttle_limit,
        description="Subdomains", fail_fast=False,
    )

    found = []
    for (name, domain), answers in zip(candidates, results):
        if not answers:
            continue
        found.append({
            "Domain": name,
            "Category": AZURE_SERVICE_DOMAINS.get(domain, "Unknown"),
            "Addresses": [a["Data"] for a in answers if a["Type"] == "A"],
            "Aliases": [a["Data"].rstrip(".") for a in answers if a["Type"] == "CNAME"],
        })
    logger.info(f"Found {len(found)} Azure names for {base_name}")
    return sorted(found, key=lambda r: (r["Category"], r["Domain"]))
