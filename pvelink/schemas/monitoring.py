"""Monitoring Schemas — RRD metric samples, HA state, firewall and replication.

Invariants:
    - RRD samples keep every metric the server sends (extra="allow"); the common
      ones are typed
    - Samples with no data for a slot carry only `time`
"""

from pydantic import BaseModel, ConfigDict


class RrdPoint(BaseModel):
    """One sample of GET .../rrddata."""
    model_config = ConfigDict(extra="allow")

    time: int
    cpu: float | None = None
    maxcpu: float | None = None
    mem: float | None = None
    maxmem: float | None = None
    disk: float | None = None
    maxdisk: float | None = None
    netin: float | None = None
    netout: float | None = None
    diskread: float | None = None
    diskwrite: float | None = None
    loadavg: float | None = None
    total: float | None = None
    used: float | None = None


class HaStatusEntry(BaseModel):
    """Entry of GET /cluster/ha/status/current (quorum, master, lrm, service)."""
    id: str
    type: str
    status: str | None = None
    node: str | None = None
    sid: str | None = None
    state: str | None = None
    quorate: bool | None = None


class HaResource(BaseModel):
    """Entry of GET /cluster/ha/resources."""
    sid: str
    type: str | None = None
    state: str | None = None
    group: str | None = None
    max_restart: int | None = None
    max_relocate: int | None = None
    comment: str | None = None


class FirewallRule(BaseModel):
    """Entry of GET /nodes/{node}/firewall/rules."""
    pos: int
    type: str
    action: str
    enable: bool = False
    source: str | None = None
    dest: str | None = None
    proto: str | None = None
    dport: str | None = None
    sport: str | None = None
    macro: str | None = None
    iface: str | None = None
    comment: str | None = None


class FirewallAlias(BaseModel):
    """Entry of GET /cluster/firewall/aliases."""
    name: str
    cidr: str
    comment: str | None = None


class ReplicationJob(BaseModel):
    """Entry of GET /nodes/{node}/replication."""
    id: str
    guest: int
    target: str
    type: str | None = None
    schedule: str | None = None
    last_sync: int | None = None
    next_sync: int | None = None
    fail_count: int = 0
    error: str | None = None
    duration: float | None = None
    disable: bool = False

    @property
    def failing(self) -> bool:
        return self.fail_count > 0
