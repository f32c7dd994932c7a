"""Node Operations — node inventory, status, system info, storage, network and task log.

Invariants:
    - {node}, {iface} and {upid} are URL-quoted by Operation.build_request (UPIDs contain ':')
    - Every operation is GET except stop_task (DELETE, not retried, no payload)
"""

from pvelink.core.api_request import Operation
from pvelink.core.domain_types import HttpMethod
from pvelink.schemas.cluster import VersionInfo
from pvelink.schemas.nodes import (
    NetworkInterface, Node, NodeDns, NodeStatus, NodeTime, Storage, Task, TaskStatus,
)

OPERATIONS_NODE = [
    Operation(
        name="list_nodes",
        method=HttpMethod.GET,
        path="/nodes",
        response_type=list[Node],
        description="Cluster nodes with online state and usage.",
    ),
    Operation(
        name="get_node_status",
        method=HttpMethod.GET,
        path="/nodes/{node}/status",
        response_type=NodeStatus,
        description="CPU, memory, uptime and versions of one node.",
    ),
    Operation(
        name="get_node_version",
        method=HttpMethod.GET,
        path="/nodes/{node}/version",
        response_type=VersionInfo,
        description="pve-manager version running on one node.",
    ),
    Operation(
        name="get_node_dns",
        method=HttpMethod.GET,
        path="/nodes/{node}/dns",
        response_type=NodeDns,
        description="DNS search domain and resolvers of one node.",
    ),
    Operation(
        name="get_node_time",
        method=HttpMethod.GET,
        path="/nodes/{node}/time",
        response_type=NodeTime,
        description="Clock and time zone of one node.",
    ),
    Operation(
        name="list_storage",
        method=HttpMethod.GET,
        path="/nodes/{node}/storage",
        response_type=list[Storage],
        description="Storages visible from one node.",
    ),
    Operation(
        name="list_network_interfaces",
        method=HttpMethod.GET,
        path="/nodes/{node}/network",
        response_type=list[NetworkInterface],
        description="Network interfaces configured on one node.",
    ),
    Operation(
        name="get_network_interface",
        method=HttpMethod.GET,
        path="/nodes/{node}/network/{iface}",
        response_type=NetworkInterface,
        description="Configuration of one network interface.",
    ),
    Operation(
        name="list_tasks",
        method=HttpMethod.GET,
        path="/nodes/{node}/tasks",
        response_type=list[Task],
        description="Task log of one node. Optional query `limit`, `start`.",
    ),
    Operation(
        name="get_task_status",
        method=HttpMethod.GET,
        path="/nodes/{node}/tasks/{upid}/status",
        response_type=TaskStatus,
        description="State and exit status of one task (UPID).",
    ),
    Operation(
        name="stop_task",
        method=HttpMethod.DELETE,
        path="/nodes/{node}/tasks/{upid}",
        response_type=None,
        description="Stop a running task. Not retried; the server answers with no payload.",
    ),
]
