# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 Felix, You Gotta Hack That
#
# This file is part of an AGPLv3-licensed project.
# You are free to use, modify, and distribute this file under the terms of
# the GNU Affero General Public License, version 3 or later.
# For details, see: https://www.gnu.org/licenses/agpl-3.0.html
# ---------------------------------------------------------------------------
# Filename:        viewer.py
# Description:     Local web viewer for the JSON result files written with -o JSON
# ---------------------------------------------------------------------------

import json
import logging
from pathlib import Path

from flask import Flask, abort, render_template_string, request

from blackcat.output import to_html

logger = logging.getLogger(__name__)

PAGE_TEMPLATE = """
<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8">
    <title>BlackCat Results</title>
    <link href="https://cdn.jsdelivr.net/npm/bootstrap@5.3.0/dist/css/bootstrap.min.css" rel="stylesheet">
    <style>
      body { background-color: #121212; color: #e0e0e0; }
      table { width: 100%; border-collapse: collapse; }
      table th, table td { border: 1px solid #444444; padding: 6px; color: #e0e0e0; }
      table thead th { position: sticky; top: 0; background: #1e1e1e; }
      .results { overflow: auto; height: calc(100vh - 220px); }
    </style>
  </head>
  <body>
    <div class="container-fluid p-3">
      <div class="d-flex justify-content-between align-items-center">
        <h1>BlackCat Results</h1>
        <a href="/" class="btn btn-secondary">Result files</a>
      </div>
      {% if current %}
      <form method="get" action="/query/{{ current }}" class="d-flex gap-2 my-3">
        <input type="text" class="form-control" name="query" placeholder="Filter records"
               value="{{ query }}">
        <button type="submit" class="btn btn-primary">Search</button>
        <a href="/query/{{ current }}" class="btn btn-secondary">Reset</a>
      </form>
      <p>{{ current }}: {{ shown }} of {{ total }} records</p>
      <div class="results">{{ table|safe }}</div>
      {% else %}
      <table class="table mt-3">
        <thead><tr><th>Result file</th><th>Records</th><th></th></tr></thead>
        <tbody>
          {% for entry in files %}
          <tr>
            <td>{{ entry.name }}</td>
            <td>{{ entry.record_count }}</td>
            <td><a href="/query/{{ entry.filename }}" class="btn btn-primary btn-sm">View</a></td>
          </tr>
          {% else %}
          <tr><td colspan="3">No JSON result files found in {{ data_dir }}.</td></tr>
          {% endfor %}
        </tbody>
      </table>
      {% endif %}
    </div>
  </body>
</html>
"""


def load_json_file(filepath):
    """Load JSON data from the specified file, None when unreadable."""
    try:
        with open(filepath, "r") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Error loading {filepath}: {e}")
        return None


def record_count(data):
    if isinstance(data, list):
        return len(data)
    if isinstance(data, dict):
        return len(data.keys())
    return 0


def filter_records(data, query):
    """Keep the records whose JSON text contains ``query`` (case-insensitive)."""
    query = (query or "").lower()
    if not query:
        return data
    if isinstance(data, list):
        return [item for item in data if query in json.dumps(item).lower()]
    if isinstance(data, dict):
        return {k: v for k, v in data.items() if query in json.dumps(v).lower()}
    return data


def create_app(data_dir):
    data_dir = Path(data_dir)
    app = Flask(__name__)

    def result_files():
        files = []
        for path in sorted(data_dir.glob("*.json")):
            data = load_json_file(path)
            if data is None:
                continue
            files.append({"name": path.stem, "filename": path.name, "record_count": record_count(data)})
        return files

    @app.route("/")
    def dashboard():
        return render_template_string(PAGE_TEMPLATE, files=result_files(), current=None, data_dir=data_dir)

    @app.route("/query/<filename>", methods=["GET", "POST"])
    def query(filename):
        path = data_dir / Path(filename).name
        if path.suffix != ".json" or not path.exists():
            abort(404)
        data = load_json_file(path)
        if data is None:
            abort(500)

        search = request.form.get("query") or request.args.get("query") or ""
        filtered = filter_records(data, search)
        records = filtered if isinstance(filtered, list) else [filtered]
        table = to_html([r if isinstance(r, dict) else {"value": r} for r in records]) if records else ""
        return render_template_string(
            PAGE_TEMPLATE, current=path.name, query=search, table=table,
            shown=record_count(filtered), total=record_count(data),
        )

    return app


def serve(data_dir, host="127.0.0.1", port=5000, debug=False):
    logger.info(f"Serving results from {data_dir} on http://{host}:{port}/")
    create_app(data_dir).run(host=host, port=port, debug=debug)
