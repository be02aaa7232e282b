#!/usr/bin/env python3
# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 Felix, You Gotta Hack That
#
# This file is part of an AGPLv3-licensed project.
# You are free to use, modify, and distribute this file under the terms of
# the GNU Affero General Public License, version 3 or later.
# For details, see: https://www.gnu.org/licenses/agpl-3.0.html
# ---------------------------------------------------------------------------
# Filename:        cli.py
# Description:     Command line entry point for the BlackCat toolkit
#
# Usage:
#   blackcat azure-perms PERMISSION [PERMISSION ...] [options]
#   blackcat entra-perms PERMISSION [PERMISSION ...] [--include-eligible]
#   blackcat role-assignments [--subscription ID] [--principal-type TYPE] [--role NAME]
#   blackcat dns NAME [NAME ...] [--type A --type TXT]
#   blackcat subdomains BASE [--category Storage] [--permutations FILE]
#   blackcat storage ACCOUNT [ACCOUNT ...] [--containers FILE]
#   blackcat service-tag IP [--subscription ID] [--location westeurope]
#   blackcat view [-i DIR]
#   blackcat cache-clear
#
# Common options:
#   -d, --debug                   Enable debug output
#   -o, --output-format FORMAT    Table, JSON, CSV or HTML [default: Table]
#   --output-dir DIR              Directory to save output files [default: blackcat-output]
#   --throttle N                  Number of concurrent requests
#   --no-cache                    Do not read or write cached API results
# ---------------------------------------------------------------------------

import argparse
import logging
import sys
from pathlib import Path

from blackcat import __version__
from blackcat.auth import CliTokenProvider, StaticTokenProvider, ensure_az_login
from blackcat.azure_rbac import find_azure_permission_holders, get_role_assignments, list_subscriptions
from blackcat.cache import ResultCache
from blackcat.client import AzureRestClient
from blackcat.config import SessionConfig
from blackcat.dns import DEFAULT_PERMUTATIONS, DohResolver, find_azure_subdomains, find_dns_records
from blackcat.entra import find_entra_permission_holders
from blackcat.errors import BlackCatError
from blackcat.log import setup_logging
from blackcat.output import FORMATS, render, save_results
from blackcat.service_tags import find_service_tag, get_service_tags
from blackcat.storage import find_public_containers
from blackcat.viewer import serve

logger = logging.getLogger("blackcat.cli")


def _read_wordlist(path):
    with open(path) as f:
        return [line.strip() for line in f if line.strip() and not line.startswith("#")]


def parse_arguments(argv=None):
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-d", "--debug", action="store_true", help="Enable debug output (default: disabled)")
    common.add_argument(
        "-o", "--output-format", choices=FORMATS, default="Table",
        help="Table prints to the console, the other formats are saved to --output-dir (default: Table)",
    )
    common.add_argument("--output-dir", default=None, help="Directory where output files will be saved")
    common.add_argument("--throttle", type=int, default=None, help="Number of concurrent requests")
    common.add_argument("--no-cache", action="store_true", help="Do not read or write cached API results")

    parser = argparse.ArgumentParser(prog="blackcat", description="Azure and Entra ID reconnaissance toolkit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command", required=True)

    p = commands.add_parser("azure-perms", parents=[common], help="Find principals holding an Azure RBAC permission")
    p.add_argument("permissions", nargs="+", help="e.g. Microsoft.KeyVault/vaults/accessPolicies/write")
    p.add_argument("-s", "--subscription", action="append", help="Subscription ID (repeatable, default: all)")
    p.add_argument("--include-data-actions", action="store_true", help="Also match role dataActions")

    p = commands.add_parser("entra-perms", parents=[common], help="Find principals holding an Entra ID permission")
    p.add_argument("permissions", nargs="+", help="e.g. microsoft.directory/applications/credentials/update")
    p.add_argument("--include-eligible", action="store_true", help="Include PIM eligible assignments")

    p = commands.add_parser("role-assignments", parents=[common], help="List Azure RBAC role assignments")
    p.add_argument("-s", "--subscription", action="append", help="Subscription ID (repeatable, default: all)")
    p.add_argument("--principal-type", action="append", help="User, Group or ServicePrincipal (repeatable)")
    p.add_argument("--role", action="append", help="Role name (repeatable)")

    p = commands.add_parser("dns", parents=[common], help="Resolve DNS records over HTTPS")
    p.add_argument("names", nargs="+")
    p.add_argument("-t", "--type", action="append", help="Record type (repeatable, default: common types)")

    p = commands.add_parser("subdomains", parents=[common], help="Discover Azure hosted names for a base name")
    p.add_argument("base")
    p.add_argument("-c", "--category", action="append", help="Restrict to a service category (repeatable)")
    p.add_argument("-p", "--permutations", help="Permutation wordlist file")
    p.add_argument("--default-permutations", action="store_true", help="Use the built-in permutation list")

    p = commands.add_parser("storage", parents=[common], help="Find anonymously listable blob containers")
    p.add_argument("accounts", nargs="+")
    p.add_argument("--containers", help="Container name wordlist file")

    p = commands.add_parser("service-tag", parents=[common], help="Find the Azure service tags for an IP address")
    p.add_argument("ip", help="IPv4/IPv6 address, trailing * octets allowed (20.50.*.*)")
    p.add_argument("-s", "--subscription", help="Subscription used to download the tag list (default: first)")
    p.add_argument("--location", default="westeurope")

    p = commands.add_parser("view", parents=[common], help="Browse saved JSON results in a local web viewer")
    p.add_argument("-i", "--input-dir", default=None, help="Directory with JSON result files")
    p.add_argument("--port", type=int, default=5000)

    commands.add_parser("cache-clear", parents=[common], help="Remove cached API results")

    return parser.parse_args(argv)


def build_client(config):
    token_provider = StaticTokenProvider.from_env()
    if token_provider is None:
        account = ensure_az_login()
        token_provider = CliTokenProvider(tenant_id=account.get("tenantId"))
    return AzureRestClient(token_provider, config)


def build_cache(config):
    return ResultCache(config.cache_dir, config.cache_ttl_minutes, enabled=config.use_cache)


def run_command(args, config):
    """Run the selected command and return ``(result name, records)``."""
    cache = build_cache(config)

    if args.command == "azure-perms":
        records = find_azure_permission_holders(
            build_client(config), args.permissions, args.subscription, args.include_data_actions,
            cache=cache, throttle_limit=config.throttle_for("subscriptions"),
        )
        return "azure_permission_holders", records

    if args.command == "entra-perms":
        records = find_entra_permission_holders(
            build_client(config), args.permissions, args.include_eligible,
            cache=cache, throttle_limit=config.throttle_for("roles"),
        )
        return "entra_permission_holders", records

    if args.command == "role-assignments":
        records = get_role_assignments(
            build_client(config), args.subscription, args.principal_type, args.role,
            cache=cache, throttle_limit=config.throttle_for("subscriptions"),
        )
        return "role_assignments", records

    if args.command == "dns":
        resolver = DohResolver(config.doh_endpoint, timeout=config.request_timeout)
        kwargs = {"record_types": args.type} if args.type else {}
        return "dns_records", find_dns_records(resolver, args.names, throttle_limit=config.throttle_for("dns"), **kwargs)

    if args.command == "subdomains":
        permutations = []
        if args.permutations:
            permutations = _read_wordlist(args.permutations)
        elif args.default_permutations:
            permutations = DEFAULT_PERMUTATIONS
        resolver = DohResolver(config.doh_endpoint, timeout=config.request_timeout)
        records = find_azure_subdomains(
            resolver, args.base, args.category, permutations, throttle_limit=config.throttle_for("dns"),
        )
        return "azure_subdomains", records

    if args.command == "storage":
        containers = _read_wordlist(args.containers) if args.containers else None
        records = find_public_containers(args.accounts, containers, throttle_limit=config.throttle_for("storage"))
        return "public_containers", records

    if args.command == "service-tag":
        client = build_client(config)
        subscription_id = args.subscription
        if not subscription_id:
            subscriptions = list_subscriptions(client)
            if not subscriptions:
                raise BlackCatError("A subscription is needed to download service tags")
            subscription_id = subscriptions[0]["subscriptionId"]
        document = get_service_tags(client, subscription_id, args.location, cache)
        return "service_tags", find_service_tag(document, args.ip)

    raise BlackCatError(f"Unknown command {args.command}")


def main(argv=None):
    args = parse_arguments(argv)
    setup_logging(args.debug)

    try:
        config = SessionConfig.from_args(args)
        setup_logging(config.debug)

        if args.command == "view":
            serve(args.input_dir or config.output_dir, port=args.port, debug=config.debug)
            return 0

        if args.command == "cache-clear":
            removed = build_cache(config).clear()
            logger.info(f"Removed {removed} cached results from {config.cache_dir}")
            return 0

        name, records = run_command(args, config)
    except (BlackCatError, ValueError, OSError) as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130

    if config.output_format == "Table":
        print(render(records, "Table"))
    else:
        save_results(records, name, config.output_format, Path(config.output_dir))
    logger.info(f"{len(records)} results")
    return 0


if __name__ == "__main__":
    sys.exit(main())
