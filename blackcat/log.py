# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 Felix, You Gotta Hack That
#
# This file is part of an AGPLv3-licensed project.
# You are free to use, modify, and distribute this file under the terms of
# the GNU Affero General Public License, version 3 or later.
# For details, see: https://www.gnu.org/licenses/agpl-3.0.html
# ---------------------------------------------------------------------------
# Filename:        log.py
# Description:     Console logging in the toolkit's [*] / [!] style
# ---------------------------------------------------------------------------

import logging

from tqdm import tqdm

PREFIXES = {
    logging.DEBUG: "[DEBUG]",
    logging.INFO: "[*]",
    logging.WARNING: "[!]",
    logging.ERROR: "[ERROR]",
    logging.CRITICAL: "!!!FATAL!!!",
}


class PrefixFormatter(logging.Formatter):
    def format(self, record):
        prefix = PREFIXES.get(record.levelno, "[*]")
        return f"{prefix} {record.getMessage()}"


class TqdmHandler(logging.StreamHandler):
    """Writes through tqdm so messages do not break an active progress bar."""

    def emit(self, record):
        try:
            tqdm.write(self.format(record))
        except Exception:
            self.handleError(record)


def setup_logging(debug=False):
    logger = logging.getLogger("blackcat")
    logger.handlers.clear()
    handler = TqdmHandler()
    handler.setFormatter(PrefixFormatter())
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.propagate = False
    return logger
