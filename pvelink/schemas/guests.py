"""Guest Schemas — QEMU virtual machines and LXC containers, plus snapshots.

Invariants:
    - vmid and status are always present; usage metrics may be absent on stopped guests
    - `template` arrives as 0/1 and is exposed as bool
"""

from pydantic import BaseModel


class Guest(BaseModel):
    """Entry of GET /nodes/{node}/{qemu|lxc}."""
    vmid: int
    status: str
    name: str | None = None
    cpu: float | None = None
    cpus: float | None = None
    mem: int | None = None
    maxmem: int | None = None
    disk: int | None = None
    maxdisk: int | None = None
    uptime: int | None = None
    netin: int | None = None
    netout: int | None = None
    diskread: int | None = None
    diskwrite: int | None = None
    template: bool = False
    tags: str | None = None
    lock: str | None = None

    @property
    def running(self) -> bool:
        return self.status == "running"

    @property
    def tag_list(self) -> list[str]:
        if not self.tags:
            return []
        return [t for t in self.tags.replace(",", ";").split(";") if t]


class GuestStatus(Guest):
    """GET /nodes/{node}/{qemu|lxc}/{vmid}/status/current."""
    qmpstatus: str | None = None
    ha: dict | None = None
    running_machine: str | None = None
    running_qemu: str | None = None


class Snapshot(BaseModel):
    """Entry of GET /nodes/{node}/qemu/{vmid}/snapshot ("current" is the live state)."""
    name: str
    description: str | None = None
    snaptime: int | None = None
    parent: str | None = None
    vmstate: bool | None = None

    @property
    def is_current(self) -> bool:
        return self.name == "current"
