# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 Felix, You Gotta Hack That
#
# This file is part of an AGPLv3-licensed project.
# You are free to use, modify, and distribute this file under the terms of
# the GNU Affero General Public License, version 3 or later.
# For details, see: https://www.gnu.org/licenses/agpl-3.0.html
# ---------------------------------------------------------------------------
# Filename:        batch.py
# Description:     Concurrent fan-out of I/O bound lookups with cache and progress bar
# ---------------------------------------------------------------------------

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed

from tqdm import tqdm

logger = logging.getLogger(__name__)


def parallel_map(func, items, throttle_limit=10, description=None, cache=None, cache_key=None,
                 fail_fast=True):
    """
    Call ``func(item)`` for every item on a pool of ``throttle_limit`` threads.

    Results come back in the order of ``items``. With ``cache`` and
    ``cache_key`` set, cached results skip the call and fresh results are
    stored. When ``fail_fast`` is set the first worker exception is re-raised,
    otherwise it is logged and the item's result is ``None``.
    """
    items = list(items)
    results = [None] * len(items)
    pending = []

    for index, item in enumerate(items):
        if cache is not None and cache_key is not None:
            cached = cache.get(cache_key(item))
            if cached is not None:
                results[index] = cached
                continue
        pending.append(index)

    if not pending:
        return results

    workers = max(1, min(throttle_limit, len(pending)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        future_to_index = {executor.submit(func, items[index]): index for index in pending}
        progress = tqdm(
            as_completed(future_to_index),
            total=len(future_to_index),
            desc=description or "Lookups",
            unit="req",
            disable=len(future_to_index) < 2,
            leave=False,
        )
        for future in progress:
            index = future_to_index[future]
            try:
                result = future.result()
            except Exception as e:
                if fail_fast:
                    for other in future_to_index:
                        other.cancel()
                    raise
                logger.warning(f"Lookup failed for {items[index]}: {e}")
                continue

            results[index] = result
            if cache is not None and cache_key is not None and result is not None:
                cache.set(cache_key(items[index]), result)

    return results
