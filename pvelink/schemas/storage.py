"""Storage Schemas — volumes listed under a storage (backups, images, ISOs, templates).

Invariants:
    - volid is always "<storage>:<path>" and is the handle for deletion
    - `protected` arrives as 0/1 and is exposed as bool
"""

from pydantic import BaseModel


class StorageVolume(BaseModel):
    """Entry of GET /nodes/{node}/storage/{storage}/content."""
    volid: str
    content: str
    format: str | None = None
    size: int | None = None
    used: int | None = None
    ctime: int | None = None
    vmid: int | None = None
    notes: str | None = None
    protected: bool = False
    subtype: str | None = None

    @property
    def is_backup(self) -> bool:
        return self.content == "backup"

    @property
    def storage(self) -> str:
        return self.volid.split(":", 1)[0]
