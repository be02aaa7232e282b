# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 Felix, You Gotta Hack That
#
# This file is part of an AGPLv3-licensed project.
# You are free to use, modify, and distribute this file under the terms of
# the GNU Affero General Public License, version 3 or later.
# For details, see: https://www.gnu.org/licenses/agpl-3.0.html
# ---------------------------------------------------------------------------
# Filename:        client.py
# Description:     REST client for Azure Resource Manager and Microsoft Graph
# ---------------------------------------------------------------------------

import logging
import time

import requests

from blackcat.config import (
    ARM_ENDPOINT, ARM_RESOURCE, GRAPH_ENDPOINT, GRAPH_RESOURCE, GRAPH_VERSION, SessionConfig,
)
from blackcat.errors import ApiRequestError

logger = logging.getLogger(__name__)

RETRY_STATUS_CODES = (429, 503)
DEFAULT_RETRY_AFTER = 5


def _error_message(response):
    """Pull the service error message out of an ARM or Graph error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message") or error.get("code")
    return None


def _retry_after(response):
    value = response.headers.get("Retry-After")
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER


class AzureRestClient:
    """
    Thin wrapper around a ``requests.Session`` for ARM and Graph calls.

    Tokens come from ``token_provider`` (anything with ``get_token(resource)``).
    Throttled requests are retried, every other non-2xx response raises
    ``ApiRequestError``.
    """

    def __init__(self, token_provider, config=None, session=None, sleep=time.sleep):
        self.token_provider = token_provider
        self.config = config or SessionConfig()
        self.session = session or requests.Session()
        self._sleep = sleep

    @staticmethod
    def _resource_for(url):
        if url.startswith(GRAPH_ENDPOINT):
            return GRAPH_RESOURCE
        return ARM_RESOURCE

    def arm_url(self, path):
        return ARM_ENDPOINT + "/" + path.lstrip("/")

    def graph_url(self, path, version=GRAPH_VERSION):
        return f"{GRAPH_ENDPOINT}/{version}/" + path.lstrip("/")

    def request(self, method, url, params=None, json_body=None, headers=None):
        request_headers = {
            "Authorization": f"Bearer {self.token_provider.get_token(self._resource_for(url))}",
            "Content-Type": "application/json",
        }
        request_headers.update(headers or {})

        attempt = 0
        while True:
            logger.debug(f"{method} {url} params={params}")
            try:
                response = self.session.request(
                    method, url, params=params, json=json_body, headers=request_headers,
                    timeout=self.config.request_timeout,
                )
            except requests.exceptions.RequestException as e:
                raise ApiRequestError(None, url, str(e)) from e

            if response.status_code in RETRY_STATUS_CODES and attempt < self.config.max_retries:
                attempt += 1
                delay = _retry_after(response)
                logger.warning(f"Throttled by {url} (HTTP {response.status_code}), retry {attempt} in {delay}s")
                self._sleep(delay)
                continue

            if not response.ok:
                raise ApiRequestError(response.status_code, url, _error_message(response))

            if not response.content:
                return {}
            return response.json()

    def get(self, url, params=None, headers=None):
        return self.request("GET", url, params=params, headers=headers)

    def post(self, url, json_body, params=None):
        return self.request("POST", url, params=params, json_body=json_body)

    def get_paged(self, url, params=None, headers=None):
        """Follow ``nextLink`` / ``@odata.nextLink`` and return all ``value`` items."""
        items = []
        while url:
            body = self.get(url, params=params, headers=headers)
            items.extend(body.get("value", []))
            url = body.get("nextLink") or body.get("@odata.nextLink")
            # next links already carry the query string
            params = None
        return items
