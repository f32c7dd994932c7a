"""Guest Operations — QEMU VMs and LXC containers: inventory, creation, power, migration, snapshots.

Invariants:
    - Power actions are generated from GuestAction x GuestType, skipping pairs
      the server does not accept (reset on LXC)
    - Every POST/DELETE here is NOT retried by the transport; each returns a UPID
    - Operation names: <verb>_vm for QEMU, <verb>_container for LXC

Design Decisions:
    - Generated list over hand-written entries: the 13 power actions differ only
      in path segment, a loop keeps them from drifting apart
"""

from pvelink.core.api_request import Operation
from pvelink.core.domain_types import GuestAction, GuestType, HttpMethod
from pvelink.schemas.guests import Guest, GuestStatus, Snapshot

GUEST_NOUNS = {
    GuestType.QEMU: "vm",
    GuestType.LXC: "container",
}

_NOUN_PLURALS = {
    GuestType.QEMU: "vms",
    GuestType.LXC: "containers",
}


def _guest_operations(guest_type: GuestType) -> list[Operation]:
    noun = GUEST_NOUNS[guest_type]
    base = f"/nodes/{{node}}/{guest_type.value}"
    operations = [
        Operation(
            name=f"list_{_NOUN_PLURALS[guest_type]}",
            method=HttpMethod.GET,
            path=base,
            response_type=list[Guest],
            description=f"All {guest_type.value} guests on one node.",
        ),
        Operation(
            name=f"get_{noun}_status",
            method=HttpMethod.GET,
            path=f"{base}/{{vmid}}/status/current",
            response_type=GuestStatus,
            description=f"Live status of one {guest_type.value} guest.",
        ),
    ]
    for action in GuestAction:
        if not action.supported_by(guest_type):
            continue
        operations.append(Operation(
            name=f"{action.value}_{noun}",
            method=HttpMethod.POST,
            path=f"{base}/{{vmid}}/status/{action.value}",
            response_type=str,
            description=f"{action.value.capitalize()} a {noun}. Not retried; returns the task UPID.",
        ))
    operations.extend([
        Operation(
            name=f"create_{noun}",
            method=HttpMethod.POST,
            path=base,
            response_type=str,
            description=(
                f"Create a {noun} from the body (`vmid` plus {guest_type.value} config keys). "
                "Not retried; returns the task UPID."
            ),
        ),
        Operation(
            name=f"migrate_{noun}",
            method=HttpMethod.POST,
            path=f"{base}/{{vmid}}/migrate",
            response_type=str,
            description=(
                f"Migrate a {noun} to body `target`. Not retried; returns the task UPID."
            ),
        ),
        Operation(
            name=f"delete_{noun}",
            method=HttpMethod.DELETE,
            path=f"{base}/{{vmid}}",
            response_type=str,
            description=f"Destroy a {noun}. Not retried; returns the task UPID.",
        ),
    ])
    return operations


OPERATIONS_SNAPSHOT = [
    Operation(
        name="list_vm_snapshots",
        method=HttpMethod.GET,
        path="/nodes/{node}/qemu/{vmid}/snapshot",
        response_type=list[Snapshot],
        description="Snapshots of a VM, including the synthetic 'current' entry.",
    ),
    Operation(
        name="create_vm_snapshot",
        method=HttpMethod.POST,
        path="/nodes/{node}/qemu/{vmid}/snapshot",
        response_type=str,
        description=(
            "Snapshot a VM (body `snapname`, optional `description`, `vmstate`). "
            "Not retried; returns the task UPID."
        ),
    ),
    Operation(
        name="delete_vm_snapshot",
        method=HttpMethod.DELETE,
        path="/nodes/{node}/qemu/{vmid}/snapshot/{snapname}",
        response_type=str,
        description="Remove one VM snapshot. Not retried; returns the task UPID.",
    ),
]

OPERATIONS_GUEST = [
    *_guest_operations(GuestType.QEMU),
    *_guest_operations(GuestType.LXC),
    *OPERATIONS_SNAPSHOT,
]
