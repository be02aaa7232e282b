# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 Felix, You Gotta Hack That
#
# This file is part of an AGPLv3-licensed project.
# You are free to use, modify, and distribute this file under the terms of
# the GNU Affero General Public License, version 3 or later.
# For details, see: https://www.gnu.org/licenses/agpl-3.0.html
# ---------------------------------------------------------------------------
# Filename:        config.py
# Description:     Endpoints, API versions and per-run session settings
# ---------------------------------------------------------------------------

import os
from dataclasses import dataclass
from pathlib import Path

ARM_ENDPOINT = "https://management.azure.com"
GRAPH_ENDPOINT = "https://graph.microsoft.com"
GRAPH_VERSION = "v1.0"

# resource identifiers passed to `az account get-access-token --resource`
ARM_RESOURCE = "https://management.azure.com/"
GRAPH_RESOURCE = "https://graph.microsoft.com/"

API_VERSIONS = {
    "subscriptions": "2022-12-01",
    "roleDefinitions": "2022-04-01",
    "roleAssignments": "2022-04-01",
    "serviceTags": "2023-09-01",
}

DOH_ENDPOINTS = {
    "cloudflare": "https://cloudflare-dns.com/dns-query",
    "google": "https://dns.google/resolve",
}

# worker counts used by the different lookups unless overridden with --throttle
THROTTLE_LIMITS = {
    "subscriptions": 10,
    "roles": 50,
    "storage": 100,
    "dns": 1000,
}

DEFAULT_OUTPUT_DIR = "blackcat-output"
DEFAULT_CACHE_DIR = str(Path.home() / ".blackcat" / "cache")
DEFAULT_CACHE_TTL_MINUTES = 30


def _env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class SessionConfig:
    debug: bool = False
    output_dir: str = DEFAULT_OUTPUT_DIR
    output_format: str = "Table"
    cache_dir: str = DEFAULT_CACHE_DIR
    cache_ttl_minutes: int = DEFAULT_CACHE_TTL_MINUTES
    use_cache: bool = True
    throttle_limit: int = None
    max_retries: int = 3
    request_timeout: int = 30
    doh_provider: str = "cloudflare"

    def throttle_for(self, kind):
        """Worker count for a lookup kind, an explicit --throttle wins."""
        if self.throttle_limit:
            return self.throttle_limit
        return THROTTLE_LIMITS.get(kind, 10)

    @property
    def doh_endpoint(self):
        return DOH_ENDPOINTS.get(self.doh_provider, self.doh_provider)

    @classmethod
    def from_args(cls, args):
        """Build from parsed command line arguments, then apply BLACKCAT_* environment overrides."""
        config = cls(
            debug=bool(getattr(args, "debug", False)),
            output_dir=getattr(args, "output_dir", None) or DEFAULT_OUTPUT_DIR,
            output_format=getattr(args, "output_format", None) or "Table",
            use_cache=not getattr(args, "no_cache", False),
            throttle_limit=getattr(args, "throttle", None),
        )
        config.cache_dir = os.environ.get("BLACKCAT_CACHE_DIR", config.cache_dir)
        ttl = os.environ.get("BLACKCAT_CACHE_TTL")
        if ttl:
            try:
                config.cache_ttl_minutes = int(ttl)
            except ValueError:
                raise ValueError(f"BLACKCAT_CACHE_TTL must be a number of minutes, got {ttl!r}")
        if _env_flag("BLACKCAT_NO_CACHE"):
            config.use_cache = False
        if _env_flag("BLACKCAT_DEBUG"):
            config.debug = True
        if os.environ.get("BLACKCAT_DOH_PROVIDER"):
            config.doh_provider = os.environ["BLACKCAT_DOH_PROVIDER"]
        return config
