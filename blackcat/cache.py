# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 Felix, You Gotta Hack That
#
# This file is part of an AGPLv3-licensed project.
# You are free to use, modify, and distribute this file under the terms of
# the GNU Affero General Public License, version 3 or later.
# For details, see: https://www.gnu.org/licenses/agpl-3.0.html
# ---------------------------------------------------------------------------
# Filename:        cache.py
# Description:     Time-boxed JSON cache for API lookups
# ---------------------------------------------------------------------------

import hashlib
import json
import logging
import threading
import time
from pathlib import Path

logger = logging.getLogger(__name__)


class ResultCache:
    """
    Keeps lookup results for ``ttl_minutes`` in memory and, when ``cache_dir``
    is set, as one JSON file per key so later runs can reuse them.
    """

    def __init__(self, cache_dir=None, ttl_minutes=30, enabled=True, clock=time.time):
        self.cache_dir = Path(cache_dir) if cache_dir else None
        self.ttl_seconds = ttl_minutes * 60
        self.enabled = enabled
        self._clock = clock
        self._memory = {}
        self._lock = threading.Lock()

    def _path(self, key):
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]
        return self.cache_dir / f"{digest}.json"

    def get(self, key):
        if not self.enabled:
            return None

        with self._lock:
            entry = self._memory.get(key)
        if entry is None and self.cache_dir:
            entry = self._read_file(key)

        if entry is None:
            return None
        if entry["expires"] <= self._clock():
            logger.debug(f"Cache expired: {key}")
            self.delete(key)
            return None

        logger.debug(f"Cache hit: {key}")
        return entry["data"]

    def _read_file(self, key):
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path) as f:
                entry = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache file {path}: {e}")
            return None
        if entry.get("key") != key:
            return None
        with self._lock:
            self._memory[key] = entry
        return entry

    def set(self, key, data):
        if not self.enabled:
            return
        entry = {"key": key, "expires": self._clock() + self.ttl_seconds, "data": data}
        with self._lock:
            self._memory[key] = entry
            if self.cache_dir:
                self.cache_dir.mkdir(parents=True, exist_ok=True)
                with open(self._path(key), "w") as f:
                    json.dump(entry, f)

    def delete(self, key):
        with self._lock:
            self._memory.pop(key, None)
            if self.cache_dir:
                path = self._path(key)
                if path.exists():
                    path.unlink()

    def clear(self):
        """Drop every entry and return how many cache files were removed."""
        removed = 0
        with self._lock:
            self._memory.clear()
            if self.cache_dir and self.cache_dir.exists():
                for path in self.cache_dir.glob("*.json"):
                    path.unlink()
                    removed += 1
        return removed
