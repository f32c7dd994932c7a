"""Node Schemas — nodes, node status, storage, network interfaces, tasks."""

from pydantic import BaseModel, field_validator


class Node(BaseModel):
    """Entry of GET /nodes."""
    node: str
    status: str
    cpu: float | None = None
    maxcpu: int | None = None
    mem: int | None = None
    maxmem: int | None = None
    disk: int | None = None
    maxdisk: int | None = None
    uptime: int | None = None
    level: str | None = None
    ssl_fingerprint: str | None = None

    @property
    def online(self) -> bool:
        return self.status == "online"


class MemoryUsage(BaseModel):
    total: int
    used: int
    free: int | None = None


class NodeStatus(BaseModel):
    """GET /nodes/{node}/status."""
    uptime: int | None = None
    cpu: float | None = None
    loadavg: list[float] | None = None
    kversion: str | None = None
    pveversion: str | None = None
    memory: MemoryUsage | None = None
    swap: MemoryUsage | None = None
    rootfs: MemoryUsage | None = None
    cpuinfo: dict | None = None


class Storage(BaseModel):
    """Entry of GET /nodes/{node}/storage."""
    storage: str
    type: str
    content: list[str] = []
    active: bool | None = None
    enabled: bool | None = None
    shared: bool | None = None
    avail: int | None = None
    used: int | None = None
    total: int | None = None

    @field_validator("content", mode="before")
    @classmethod
    def split_content(cls, v):
        """Proxmox sends content types as one comma-separated string."""
        if isinstance(v, str):
            return [part for part in v.split(",") if part]
        return v


class NetworkInterface(BaseModel):
    """Entry of GET /nodes/{node}/network."""
    iface: str
    type: str
    method: str | None = None
    address: str | None = None
    netmask: str | None = None
    gateway: str | None = None
    cidr: str | None = None
    active: bool | None = None
    autostart: bool | None = None
    families: list[str] | None = None
    bridge_ports: str | None = None


class Task(BaseModel):
    """Entry of GET /nodes/{node}/tasks."""
    upid: str
    node: str
    type: str
    user: str
    starttime: int
    id: str | None = None
    pid: int | None = None
    status: str | None = None
    endtime: int | None = None


class TaskStatus(BaseModel):
    """GET /nodes/{node}/tasks/{upid}/status."""
    upid: str
    node: str
    status: str
    type: str | None = None
    user: str | None = None
    starttime: int | None = None
    exitstatus: str | None = None
    pid: int | None = None

    @property
    def running(self) -> bool:
        return self.status == "running"

    @property
    def succeeded(self) -> bool:
        return self.status == "stopped" and self.exitstatus == "OK"


class NodeDns(BaseModel):
    """GET /nodes/{node}/dns."""
    search: str | None = None
    dns1: str | None = None
    dns2: str | None = None
    dns3: str | None = None

    @property
    def servers(self) -> list[str]:
        return [s for s in (self.dns1, self.dns2, self.dns3) if s]


class NodeTime(BaseModel):
    """GET /nodes/{node}/time. `time` is UTC epoch, `localtime` is shifted by the zone."""
    timezone: str
    time: int
    localtime: int | None = None
