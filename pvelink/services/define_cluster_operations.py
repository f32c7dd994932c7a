"""Cluster Operations — version probe and cluster-wide views.

Invariants:
    - get_version is the only operation that runs without a session
    - All operations here are GET: retriable once on transport failure
"""

from pvelink.core.api_request import Operation
from pvelink.core.domain_types import HttpMethod
from pvelink.schemas.cluster import ClusterResource, ClusterStatusEntry, VersionInfo

OPERATIONS_CLUSTER = [
    Operation(
        name="get_version",
        method=HttpMethod.GET,
        path="/version",
        response_type=VersionInfo,
        requires_auth=False,
        description="API version and release of the contacted node.",
    ),
    Operation(
        name="get_cluster_status",
        method=HttpMethod.GET,
        path="/cluster/status",
        response_type=list[ClusterStatusEntry],
        description="Quorum state plus one entry per cluster member.",
    ),
    Operation(
        name="get_cluster_resources",
        method=HttpMethod.GET,
        path="/cluster/resources",
        response_type=list[ClusterResource],
        description=(
            "Every node, guest and storage in the cluster. "
            "Optional query `type`: vm, storage, node, sdn."
        ),
    ),
]
