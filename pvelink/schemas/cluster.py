"""Cluster Schemas — version, cluster status and the cluster-wide resource index."""

from pydantic import BaseModel


class VersionInfo(BaseModel):
    """GET /version, the only call that works without a session."""
    version: str
    release: str | None = None
    repoid: str | None = None


class ClusterStatusEntry(BaseModel):
    """Entry of GET /cluster/status: one `cluster` record plus one per node."""
    type: str
    name: str
    id: str | None = None
    nodeid: int | None = None
    ip: str | None = None
    local: bool | None = None
    online: bool | None = None
    level: str | None = None
    quorate: bool | None = None
    nodes: int | None = None
    version: int | None = None


class ClusterResource(BaseModel):
    """Entry of GET /cluster/resources (node, qemu, lxc, storage, sdn...)."""
    id: str
    type: str
    node: str | None = None
    status: str | None = None
    name: str | None = None
    vmid: int | None = None
    storage: str | None = None
    cpu: float | None = None
    maxcpu: float | None = None
    mem: int | None = None
    maxmem: int | None = None
    disk: int | None = None
    maxdisk: int | None = None
    uptime: int | None = None
    template: bool | None = None
