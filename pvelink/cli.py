"""pvelink CLI — thin command-line wrapper over ProxmoxClient.

Invariants:
    - stdout carries exactly one JSON document per successful run
    - Failures print the error's to_dict() as JSON on stderr and exit 1
    - Logs go to stderr through setup_logging (never mixed into stdout)
    - Secrets only come from the environment (PVE_PASSWORD / PVE_TOKEN_SECRET),
      never from argv
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from pydantic import ValidationError
from pydantic_core import to_jsonable_python

from pvelink import __version__
from pvelink.client import ProxmoxClient
from pvelink.config import Settings, get_settings
from pvelink.core.domain_types import GuestAction, GuestType
from pvelink.core.errors import ConfigurationError, PveLinkError
from pvelink.infrastructure.observability import setup_logging
from pvelink.services.operations_registry import get_operation, operation_names

logger = logging.getLogger(__name__)


# ─── Output helpers ──────────────────────────────────────────────

def json_output(data: Any) -> None:
    indent = 2 if sys.stdout.isatty() else None
    print(json.dumps(to_jsonable_python(data), indent=indent, default=str))


def error_output(error: PveLinkError) -> int:
    print(json.dumps(error.to_dict(), default=str), file=sys.stderr)
    return 1


def _parse_assignments(pairs: list[str]) -> dict[str, str]:
    values = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ConfigurationError(f"Expected key=value, got {pair!r}", "params")
        values[key] = value
    return values


# ─── Commands ────────────────────────────────────────────────────

async def cmd_version(client: ProxmoxClient, args: argparse.Namespace) -> Any:
    return await client.api.get_version()


async def cmd_nodes(client: ProxmoxClient, args: argparse.Namespace) -> Any:
    return await client.api.list_nodes()


async def cmd_resources(client: ProxmoxClient, args: argparse.Namespace) -> Any:
    return await client.api.get_cluster_resources(args.type)


async def cmd_guests(client: ProxmoxClient, args: argparse.Namespace) -> Any:
    if args.lxc:
        return await client.api.list_containers(args.node)
    return await client.api.list_vms(args.node)


async def cmd_status(client: ProxmoxClient, args: argparse.Namespace) -> Any:
    if args.lxc:
        return await client.api.get_container_status(args.node, args.vmid)
    return await client.api.get_vm_status(args.node, args.vmid)


async def cmd_action(client: ProxmoxClient, args: argparse.Namespace) -> Any:
    guest_type = GuestType.LXC if args.lxc else GuestType.QEMU
    upid = await client.api.guest_action(
        args.node, args.vmid, GuestAction(args.action), guest_type,
    )
    return {"upid": upid}


async def cmd_call(client: ProxmoxClient, args: argparse.Namespace) -> Any:
    try:
        get_operation(args.operation)
    except KeyError as e:
        raise ConfigurationError(str(e.args[0]), "operation") from e
    params = _parse_assignments(args.params)
    query = _parse_assignments(args.query or [])
    body = _parse_assignments(args.body or [])
    try:
        return await client.api.execute(
            args.operation, query=query or None, body=body or None, **params,
        )
    except ValueError as e:
        raise ConfigurationError(str(e), "params") from e


async def cmd_operations(client: ProxmoxClient, args: argparse.Namespace) -> Any:
    return operation_names()


_NO_LOGIN = {cmd_version, cmd_operations}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pvelink",
        description=(
            "Proxmox VE API client. Endpoint, trust and credentials come from "
            "PVE_* environment variables or a .env file."
        ),
    )
    parser.add_argument("--version", action="version", version=f"pvelink {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("version", help="API version (no login)")
    p.set_defaults(func=cmd_version)

    p = sub.add_parser("operations", help="List operation names usable with `call`")
    p.set_defaults(func=cmd_operations)

    p = sub.add_parser("nodes", help="List cluster nodes")
    p.set_defaults(func=cmd_nodes)

    p = sub.add_parser("resources", help="Cluster resource index")
    p.add_argument("--type", choices=["vm", "storage", "node", "sdn"])
    p.set_defaults(func=cmd_resources)

    p = sub.add_parser("guests", help="List VMs (or containers with --lxc) on a node")
    p.add_argument("node")
    p.add_argument("--lxc", action="store_true")
    p.set_defaults(func=cmd_guests)

    p = sub.add_parser("status", help="Live status of one guest")
    p.add_argument("node")
    p.add_argument("vmid", type=int)
    p.add_argument("--lxc", action="store_true")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("action", help="Power action on one guest (not retried)")
    p.add_argument("node")
    p.add_argument("vmid", type=int)
    p.add_argument("action", choices=[a.value for a in GuestAction])
    p.add_argument("--lxc", action="store_true")
    p.set_defaults(func=cmd_action)

    p = sub.add_parser("call", help="Run any registered operation")
    p.add_argument("operation")
    p.add_argument("params", nargs="*", help="path parameters as key=value")
    p.add_argument("--query", action="append", metavar="KEY=VALUE")
    p.add_argument("--body", action="append", metavar="KEY=VALUE")
    p.set_defaults(func=cmd_call)

    return parser


async def run(args: argparse.Namespace, settings: Settings) -> Any:
    async with ProxmoxClient(settings) as client:
        if args.func not in _NO_LOGIN:
            await client.login()
        return await args.func(client, args)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = get_settings()
    except ValidationError as e:
        return error_output(ConfigurationError(f"Invalid settings: {e}"))
    setup_logging(settings.log_level, settings.log_format)

    try:
        result = asyncio.run(run(args, settings))
    except PveLinkError as e:
        logger.debug(f"Command failed: {e.code}", extra={"error_code": e.code})
        return error_output(e)
    json_output(result)
    return 0
