# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 Felix, You Gotta Hack That
#
# This file is part of an AGPLv3-licensed project.
# You are free to use, modify, and distribute this file under the terms of
# the GNU Affero General Public License, version 3 or later.
# For details, see: https://www.gnu.org/licenses/agpl-3.0.html
# ---------------------------------------------------------------------------
# Filename:        output.py
# Description:     Renders result records as a table, JSON, CSV or HTML and
#                  saves them to the output directory
# ---------------------------------------------------------------------------

import csv
import io
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from json2html import json2html
from tabulate import tabulate

logger = logging.getLogger(__name__)

FORMATS = ("Table", "JSON", "CSV", "HTML")
EXTENSIONS = {"Table": "txt", "JSON": "json", "CSV": "csv", "HTML": "html"}


def normalize_records(records, fill_value=""):
    """
    Ensures all dictionaries in a list have the same keys, in first-seen order.
    Adds missing keys with `fill_value`.
    """
    keys = []
    for record in records:
        for key in record:
            if key not in keys:
                keys.append(key)
    return [{key: record.get(key, fill_value) for key in keys} for record in records]


def _flatten(value):
    if isinstance(value, (list, tuple)):
        return "; ".join(str(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value)
    if value is None:
        return ""
    return value


def to_table(records):
    if not records:
        return "No results."
    rows = [{k: _flatten(v) for k, v in record.items()} for record in normalize_records(records)]
    return tabulate(rows, headers="keys", tablefmt="simple")


def to_json(records):
    return json.dumps(records, indent=2, default=str)


def to_csv(records):
    rows = normalize_records(records)
    buffer = io.StringIO()
    if rows:
        writer = csv.DictWriter(buffer, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        for row in rows:
            writer.writerow({k: _flatten(v) for k, v in row.items()})
    return buffer.getvalue()


def to_html(records):
    return json2html.convert(json=normalize_records(records), table_attributes='class="table table-striped"')


RENDERERS = {"Table": to_table, "JSON": to_json, "CSV": to_csv, "HTML": to_html}


def render(records, output_format="Table"):
    try:
        renderer = RENDERERS[output_format]
    except KeyError:
        raise ValueError(f"Unknown output format {output_format}, expected one of {', '.join(FORMATS)}")
    return renderer(records)


def save_results(records, name, output_format, output_dir, timestamp=None):
    """Save rendered records as ``<name>_<timestamp>.<ext>`` and return the path."""
    timestamp = timestamp or datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    filename = name.lower().replace(" ", "_").replace("(", "").replace(")", "")
    path = output_dir / f"{filename}_{timestamp}.{EXTENSIONS[output_format]}"
    with open(path, "w", newline="") as f:
        f.write(render(records, output_format))
    logger.info(f"Saved: {path}")
    return path
