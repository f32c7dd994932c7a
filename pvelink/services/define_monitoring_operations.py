"""Monitoring Operations — RRD metric series, HA state, firewall and replication.

Invariants:
    - All operations here are GET: retriable once on transport failure
    - RRD series take query `timeframe` (hour, day, week, month, year) and `cf`
      (AVERAGE or MAX)
"""

from pvelink.core.api_request import Operation
from pvelink.core.domain_types import GuestType, HttpMethod
from pvelink.schemas.monitoring import (
    FirewallAlias, FirewallRule, HaResource, HaStatusEntry, ReplicationJob, RrdPoint,
)
from pvelink.services.define_guest_operations import GUEST_NOUNS


def _guest_rrd(guest_type: GuestType) -> Operation:
    noun = GUEST_NOUNS[guest_type]
    return Operation(
        name=f"get_{noun}_rrd",
        method=HttpMethod.GET,
        path=f"/nodes/{{node}}/{guest_type.value}/{{vmid}}/rrddata",
        response_type=list[RrdPoint],
        description=f"CPU, memory, disk and network samples of one {noun}.",
    )


OPERATIONS_MONITORING = [
    Operation(
        name="get_node_rrd",
        method=HttpMethod.GET,
        path="/nodes/{node}/rrddata",
        response_type=list[RrdPoint],
        description="CPU, load, memory and network samples of one node.",
    ),
    _guest_rrd(GuestType.QEMU),
    _guest_rrd(GuestType.LXC),
    Operation(
        name="get_storage_rrd",
        method=HttpMethod.GET,
        path="/nodes/{node}/storage/{storage}/rrddata",
        response_type=list[RrdPoint],
        description="Usage samples of one storage.",
    ),
    Operation(
        name="get_ha_status",
        method=HttpMethod.GET,
        path="/cluster/ha/status/current",
        response_type=list[HaStatusEntry],
        description="HA manager state: quorum, master, local resource managers, services.",
    ),
    Operation(
        name="list_ha_resources",
        method=HttpMethod.GET,
        path="/cluster/ha/resources",
        response_type=list[HaResource],
        description="Guests under HA management.",
    ),
    Operation(
        name="list_firewall_rules",
        method=HttpMethod.GET,
        path="/nodes/{node}/firewall/rules",
        response_type=list[FirewallRule],
        description="Host firewall rules of one node, in evaluation order.",
    ),
    Operation(
        name="list_firewall_aliases",
        method=HttpMethod.GET,
        path="/cluster/firewall/aliases",
        response_type=list[FirewallAlias],
        description="Cluster-wide firewall IP aliases.",
    ),
    Operation(
        name="list_replication_jobs",
        method=HttpMethod.GET,
        path="/nodes/{node}/replication",
        response_type=list[ReplicationJob],
        description="Storage replication jobs with last/next sync and failures.",
    ),
]
