"""Backup Operations — storage content listing, vzdump backups and volume removal.

Invariants:
    - {volume} is a full volid ("local:backup/vzdump-qemu-100-....vma.zst"); its
      ':' and '/' are URL-quoted into one path segment
    - create_backup and delete_volume are NOT retried; create_backup returns the
      vzdump task UPID, delete_volume returns a UPID on servers that run removal
      as a task and null otherwise

Design Decisions:
    - Backups go through POST /nodes/{node}/vzdump with `vmid` in the body: the
      per-guest backup path does not exist on the server
"""

from pvelink.core.api_request import Operation
from pvelink.core.domain_types import HttpMethod
from pvelink.schemas.storage import StorageVolume

OPERATIONS_BACKUP = [
    Operation(
        name="list_storage_content",
        method=HttpMethod.GET,
        path="/nodes/{node}/storage/{storage}/content",
        response_type=list[StorageVolume],
        description=(
            "Volumes on one storage. Optional query `content` (backup, iso, "
            "vztmpl, images, rootdir) and `vmid`."
        ),
    ),
    Operation(
        name="create_backup",
        method=HttpMethod.POST,
        path="/nodes/{node}/vzdump",
        response_type=str,
        description=(
            "Back up guest body `vmid` to body `storage` (optional `mode`, "
            "`compress`, `notes-template`). Not retried; returns the task UPID."
        ),
    ),
    Operation(
        name="delete_volume",
        method=HttpMethod.DELETE,
        path="/nodes/{node}/storage/{storage}/content/{volume}",
        response_type=str | None,
        description="Remove one volume (e.g. a backup archive). Not retried.",
    ),
]
