# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 Felix, You Gotta Hack That
#
# This file is part of an AGPLv3-licensed project.
# You are free to use, modify, and distribute this file under the terms of
# the GNU Affero General Public License, version 3 or later.
# For details, see: https://www.gnu.org/licenses/agpl-3.0.html
# ---------------------------------------------------------------------------
# Filename:        auth.py
# Description:     Bearer tokens for ARM and Graph obtained through the az cli
#
# Requirements:    az cli installed from Microsoft repository and accessible via
#                  the PATH, logged in with `az login`
# ---------------------------------------------------------------------------

import json
import logging
import os
import shlex
import subprocess
import threading
from datetime import datetime, timedelta, timezone

from blackcat.config import ARM_RESOURCE, GRAPH_RESOURCE
from blackcat.errors import AuthenticationError, AzureCliError

logger = logging.getLogger(__name__)

AUTH_ERROR_SIGNATURES = [
    "tokenissuedbeforerevocationtimestamp",
    "interactionrequired",
    "az login",
    "refresh token has expired",
]

CLI_ERROR_SIGNATURES = [
    "is misspelled or not recognized by the system",
    "the following arguments are required",
]

OUTPUT_WARNING_SIGNATURES = [
    "behavior of this command has been altered",
    "is experimental and under development",
    "is in preview and under development",
    "is scheduled for retirement by",
    "command requires the extension",
]

# refresh this long before the token says it expires
TOKEN_EXPIRY_MARGIN = timedelta(minutes=5)


def run_az_cli(args):
    """Run an Azure CLI command and return structured output with parsed JSON."""
    if isinstance(args, str):
        args = shlex.split(args)
    if args[0] != "az":
        args = ["az"] + list(args)
    command = " ".join(args)
    logger.debug(f"Running: {command}")

    try:
        process = subprocess.run(args, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise AzureCliError(command, "az cli not found on the PATH") from e

    stdout = process.stdout.strip()
    stderr = process.stderr.strip()
    result = {
        "args": command,
        "returncode": process.returncode,
        "success": process.returncode == 0,
        "stdout": stdout,
        "stderr": stderr,
        "json": None,
    }

    if not result["success"]:
        lowered = (stdout + "\n" + stderr).lower()
        if any(sig in lowered for sig in AUTH_ERROR_SIGNATURES):
            raise AuthenticationError(f"Azure CLI session is not valid, run `az login` first ({stderr or stdout})")
        if any(sig in lowered for sig in CLI_ERROR_SIGNATURES):
            raise AzureCliError(command, "Unrecognised or malformed CLI command", stderr)
        raise AzureCliError(command, f"az exited with {process.returncode}", stderr or stdout)

    for line in stderr.splitlines():
        if any(sig in line.lower() for sig in OUTPUT_WARNING_SIGNATURES):
            logger.debug(f"az warning: {line}")

    if stdout.startswith("{") or stdout.startswith("["):
        try:
            result["json"] = json.loads(stdout)
        except ValueError as e:
            raise AzureCliError(command, f"JSON parsing error: {e}", stdout) from e
    elif stdout:
        raise AzureCliError(command, "Something has gone wrong - data returned but not JSON", stdout)

    return result


def ensure_az_login():
    """Return the current `az account show` context, raising when nobody is logged in."""
    logger.info("Checking Azure CLI login status...")
    account = run_az_cli(["account", "show", "--output", "json"])["json"] or {}
    user = (account.get("user") or {}).get("name", "unknown")
    logger.info(f"Azure CLI is authenticated as {user} (tenant {account.get('tenantId')})")
    return account


def _parse_expiry(token_json):
    if token_json.get("expires_on"):
        return datetime.fromtimestamp(int(token_json["expires_on"]), tz=timezone.utc)
    expires = token_json.get("expiresOn")
    if expires:
        # local time without offset, e.g. "2025-04-07 10:15:00.000000"
        return datetime.fromisoformat(expires).astimezone(timezone.utc)
    return datetime.now(timezone.utc) + timedelta(minutes=30)


class CliTokenProvider:
    """Caches one bearer token per resource until shortly before it expires."""

    def __init__(self, tenant_id=None):
        self.tenant_id = tenant_id
        self._tokens = {}
        self._lock = threading.Lock()

    def get_token(self, resource):
        with self._lock:
            cached = self._tokens.get(resource)
            if cached and datetime.now(timezone.utc) < cached[1] - TOKEN_EXPIRY_MARGIN:
                return cached[0]

            args = ["account", "get-access-token", "--resource", resource, "--output", "json"]
            if self.tenant_id:
                args += ["--tenant", self.tenant_id]
            token_json = run_az_cli(args)["json"] or {}
            token = token_json.get("accessToken")
            if not token:
                raise AuthenticationError(f"az did not return an access token for {resource}")

            self._tokens[resource] = (token, _parse_expiry(token_json))
            logger.debug(f"Obtained token for {resource}")
            return token


class StaticTokenProvider:
    """Serves tokens that were obtained elsewhere, keyed by resource."""

    def __init__(self, tokens):
        self.tokens = dict(tokens)

    def get_token(self, resource):
        token = self.tokens.get(resource)
        if not token:
            raise AuthenticationError(f"No access token supplied for {resource}")
        return token

    @classmethod
    def from_env(cls):
        tokens = {}
        if os.environ.get("BLACKCAT_ARM_TOKEN"):
            tokens[ARM_RESOURCE] = os.environ["BLACKCAT_ARM_TOKEN"]
        if os.environ.get("BLACKCAT_GRAPH_TOKEN"):
            tokens[GRAPH_RESOURCE] = os.environ["BLACKCAT_GRAPH_TOKEN"]
        return cls(tokens) if tokens else None
