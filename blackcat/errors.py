# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 Felix, You Gotta Hack That
#
# This file is part of an AGPLv3-licensed project.
# You are free to use, modify, and distribute this file under the terms of
# the GNU Affero General Public License, version 3 or later.
# For details, see: https://www.gnu.org/licenses/agpl-3.0.html
# ---------------------------------------------------------------------------
# Filename:        errors.py
# Description:     Exceptions raised by the toolkit
# ---------------------------------------------------------------------------


class BlackCatError(Exception):
    """Base class for errors the command line reports and exits on."""


class AzureCliError(BlackCatError):
    def __init__(self, command, message, output=None):
        self.command = command
        self.output = output
        super().__init__(f"{message} (command: {command})")


class AuthenticationError(BlackCatError):
    pass


class ApiRequestError(BlackCatError):
    def __init__(self, status_code, url, message=None):
        self.status_code = status_code
        self.url = url
        self.message = message
        text = f"HTTP {status_code} from {url}" if status_code else f"Request to {url} failed"
        if message:
            text += f": {message}"
        super().__init__(text)
