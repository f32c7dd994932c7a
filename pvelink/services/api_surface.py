"""API Surface — typed Proxmox operations over SessionManager + TransportClient.

Invariants:
    - Every call goes through execute(): build -> attach auth -> send -> decode
    - Operations with requires_auth never reach the wire without auth headers
    - A 401 on an authenticated operation invalidates the session and raises AuthError
    - Mutating operations (create, power actions, migrate, snapshot create/delete,
      backups, volume and user changes, delete) are sent once; only GETs are
      retried, by the transport
    - Decoding failures raise DecodeError, never a default value

Design Decisions:
    - Typed methods are thin wrappers around execute(name, ...): the Operation
      tables stay the single source of verbs and paths
"""

import logging
from typing import Any

from pvelink.core.decode_response import decode_response
from pvelink.core.domain_types import (
    BackupCompression, BackupMode, GuestAction, GuestType, NodeName, RrdTimeframe,
    Upid, UserId, VmId,
)
from pvelink.core.errors import ApiStatusError, AuthError, ConfigurationError, ErrorContext
from pvelink.infrastructure.transport_client import TransportClient
from pvelink.schemas.access import User
from pvelink.schemas.cluster import ClusterResource, ClusterStatusEntry, VersionInfo
from pvelink.schemas.guests import Guest, GuestStatus, Snapshot
from pvelink.schemas.monitoring import (
    FirewallAlias, FirewallRule, HaResource, HaStatusEntry, ReplicationJob, RrdPoint,
)
from pvelink.schemas.nodes import (
    NetworkInterface, Node, NodeDns, NodeStatus, NodeTime, Storage, Task, TaskStatus,
)
from pvelink.schemas.storage import StorageVolume
from pvelink.services.define_guest_operations import GUEST_NOUNS
from pvelink.services.operations_registry import get_operation
from pvelink.services.session_manager import SessionManager

logger = logging.getLogger(__name__)


class ProxmoxApi:
    """Logical Proxmox VE operations. Owns nothing; borrows transport and sessions."""

    def __init__(self, transport: TransportClient, sessions: SessionManager):
        self._transport = transport
        self._sessions = sessions

    async def execute(
        self,
        name: str,
        *,
        query: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
        **params: Any,
    ) -> Any:
        """Run the registered operation `name` with path `params`."""
        operation = get_operation(name)
        request = operation.build_request(params, query=query, body=body)
        session = None
        if operation.requires_auth:
            session = await self._sessions.ensure_session()
            request = self._sessions.apply(session, request)

        try:
            raw = await self._transport.send(request)
        except ApiStatusError as e:
            if e.status_code == 401 and session is not None:
                self._sessions.invalidate(session)
                raise AuthError(
                    f"Session rejected by server: {e.server_message}",
                    "SESSION_REJECTED", context=e.context,
                ) from e
            raise

        context = ErrorContext(
            operation=request.operation,
            method=request.method.value,
            path=request.path,
            host=self._transport.host,
        )
        return decode_response(raw, operation.response_type, context)

    # ─── Cluster ─────────────────────────────────────────────────

    async def get_version(self) -> VersionInfo:
        return await self.execute("get_version")

    async def get_cluster_status(self) -> list[ClusterStatusEntry]:
        return await self.execute("get_cluster_status")

    async def get_cluster_resources(
        self, type: str | None = None,
    ) -> list[ClusterResource]:
        return await self.execute("get_cluster_resources", query={"type": type})

    # ─── Nodes ───────────────────────────────────────────────────

    async def list_nodes(self) -> list[Node]:
        return await self.execute("list_nodes")

    async def get_node_status(self, node: NodeName) -> NodeStatus:
        return await self.execute("get_node_status", node=node)

    async def list_storage(self, node: NodeName) -> list[Storage]:
        return await self.execute("list_storage", node=node)

    async def list_network_interfaces(self, node: NodeName) -> list[NetworkInterface]:
        return await self.execute("list_network_interfaces", node=node)

    async def list_tasks(
        self, node: NodeName, limit: int | None = None, start: int | None = None,
    ) -> list[Task]:
        return await self.execute(
            "list_tasks", node=node, query={"limit": limit, "start": start},
        )

    async def get_task_status(self, node: NodeName, upid: Upid) -> TaskStatus:
        return await self.execute("get_task_status", node=node, upid=upid)

    async def stop_task(self, node: NodeName, upid: Upid) -> None:
        """Stop a running task. Sent once, never retried."""
        await self.execute("stop_task", node=node, upid=upid)

    async def get_node_version(self, node: NodeName) -> VersionInfo:
        return await self.execute("get_node_version", node=node)

    async def get_node_dns(self, node: NodeName) -> NodeDns:
        return await self.execute("get_node_dns", node=node)

    async def get_node_time(self, node: NodeName) -> NodeTime:
        return await self.execute("get_node_time", node=node)

    async def get_network_interface(self, node: NodeName, iface: str) -> NetworkInterface:
        return await self.execute("get_network_interface", node=node, iface=iface)

    # ─── Guests ──────────────────────────────────────────────────

    async def list_vms(self, node: NodeName) -> list[Guest]:
        return await self.execute("list_vms", node=node)

    async def list_containers(self, node: NodeName) -> list[Guest]:
        return await self.execute("list_containers", node=node)

    async def get_vm_status(self, node: NodeName, vmid: VmId) -> GuestStatus:
        return await self.execute("get_vm_status", node=node, vmid=vmid)

    async def get_container_status(self, node: NodeName, vmid: VmId) -> GuestStatus:
        return await self.execute("get_container_status", node=node, vmid=vmid)

    async def create_vm(
        self,
        node: NodeName,
        vmid: VmId,
        name: str | None = None,
        cores: int = 1,
        memory: int = 512,
        ostype: str = "l26",
        scsi0: str | None = "local-lvm:32",
        net0: str | None = "virtio,bridge=vmbr0",
        **config: Any,
    ) -> Upid:
        """Create a QEMU VM. Extra qemu config keys pass through `config`."""
        return await self.execute(
            "create_vm", node=node,
            body={
                "vmid": vmid, "name": name, "cores": cores, "memory": memory,
                "ostype": ostype, "scsi0": scsi0, "net0": net0, **config,
            },
        )

    async def create_container(
        self,
        node: NodeName,
        vmid: VmId,
        ostemplate: str,
        hostname: str | None = None,
        cores: int = 1,
        memory: int = 512,
        rootfs: str | None = "local-lvm:8",
        net0: str | None = "name=eth0,bridge=vmbr0,ip=dhcp",
        password: str | None = None,
        **config: Any,
    ) -> Upid:
        """Create an LXC container from `ostemplate` (a vztmpl volid)."""
        return await self.execute(
            "create_container", node=node,
            body={
                "vmid": vmid, "ostemplate": ostemplate, "hostname": hostname,
                "cores": cores, "memory": memory, "rootfs": rootfs, "net0": net0,
                "password": password, **config,
            },
        )

    async def guest_action(
        self,
        node: NodeName,
        vmid: VmId,
        action: GuestAction,
        guest_type: GuestType = GuestType.QEMU,
        **options: Any,
    ) -> Upid:
        """Power action on a guest. Sent once, never retried."""
        if not action.supported_by(guest_type):
            raise ConfigurationError(
                f"Action {action.value!r} is not supported for {guest_type.value} guests",
                "action",
            )
        name = f"{action.value}_{GUEST_NOUNS[guest_type]}"
        logger.info(
            f"{name} on {node}/{vmid}",
            extra={"operation": name},
        )
        return await self.execute(name, node=node, vmid=vmid, body=options or None)

    async def start_vm(self, node: NodeName, vmid: VmId) -> Upid:
        return await self.guest_action(node, vmid, GuestAction.START)

    async def stop_vm(self, node: NodeName, vmid: VmId) -> Upid:
        return await self.guest_action(node, vmid, GuestAction.STOP)

    async def shutdown_vm(
        self, node: NodeName, vmid: VmId, timeout: int | None = None,
    ) -> Upid:
        return await self.guest_action(
            node, vmid, GuestAction.SHUTDOWN, timeout=timeout,
        )

    async def start_container(self, node: NodeName, vmid: VmId) -> Upid:
        return await self.guest_action(node, vmid, GuestAction.START, GuestType.LXC)

    async def stop_container(self, node: NodeName, vmid: VmId) -> Upid:
        return await self.guest_action(node, vmid, GuestAction.STOP, GuestType.LXC)

    async def migrate_vm(
        self,
        node: NodeName,
        vmid: VmId,
        target: NodeName,
        online: bool = False,
        with_local_disks: bool = False,
    ) -> Upid:
        """Migrate a VM to `target`. Sent once, never retried."""
        return await self.execute(
            "migrate_vm", node=node, vmid=vmid,
            body={
                "target": target,
                "online": online,
                "with-local-disks": with_local_disks or None,
            },
        )

    async def migrate_container(
        self, node: NodeName, vmid: VmId, target: NodeName, restart: bool = False,
    ) -> Upid:
        return await self.execute(
            "migrate_container", node=node, vmid=vmid,
            body={"target": target, "restart": restart or None},
        )

    async def delete_vm(self, node: NodeName, vmid: VmId) -> Upid:
        return await self.execute("delete_vm", node=node, vmid=vmid)

    async def delete_container(self, node: NodeName, vmid: VmId) -> Upid:
        return await self.execute("delete_container", node=node, vmid=vmid)

    # ─── Snapshots ───────────────────────────────────────────────

    async def list_vm_snapshots(self, node: NodeName, vmid: VmId) -> list[Snapshot]:
        return await self.execute("list_vm_snapshots", node=node, vmid=vmid)

    async def create_vm_snapshot(
        self,
        node: NodeName,
        vmid: VmId,
        snapname: str,
        description: str | None = None,
        vmstate: bool | None = None,
    ) -> Upid:
        return await self.execute(
            "create_vm_snapshot", node=node, vmid=vmid,
            body={
                "snapname": snapname,
                "description": description,
                "vmstate": vmstate,
            },
        )

    async def delete_vm_snapshot(
        self, node: NodeName, vmid: VmId, snapname: str,
    ) -> Upid:
        return await self.execute(
            "delete_vm_snapshot", node=node, vmid=vmid, snapname=snapname,
        )

    # ─── Storage content & backups ───────────────────────────────

    async def list_storage_content(
        self,
        node: NodeName,
        storage: str,
        content: str | None = None,
        vmid: VmId | None = None,
    ) -> list[StorageVolume]:
        return await self.execute(
            "list_storage_content", node=node, storage=storage,
            query={"content": content, "vmid": vmid},
        )

    async def list_backups(
        self, node: NodeName, storage: str, vmid: VmId | None = None,
    ) -> list[StorageVolume]:
        return await self.list_storage_content(node, storage, "backup", vmid)

    async def create_backup(
        self,
        node: NodeName,
        vmid: VmId,
        storage: str,
        mode: BackupMode = BackupMode.SNAPSHOT,
        compress: BackupCompression = BackupCompression.ZSTD,
        notes: str | None = None,
    ) -> Upid:
        """Start a vzdump backup of one guest. Sent once, never retried."""
        logger.info(
            f"Backup of {vmid} on {node} to {storage}",
            extra={"operation": "create_backup"},
        )
        return await self.execute(
            "create_backup", node=node,
            body={
                "vmid": vmid,
                "storage": storage,
                "mode": mode.value,
                "compress": compress.value,
                "notes-template": notes,
            },
        )

    async def delete_volume(self, node: NodeName, volid: str) -> Upid | None:
        """Remove a volume by volid ("<storage>:<path>"). Sent once, never retried."""
        storage, sep, _ = volid.partition(":")
        if not sep or not storage:
            raise ConfigurationError(
                f"Volume id must look like '<storage>:<path>', got {volid!r}", "volid",
            )
        return await self.execute(
            "delete_volume", node=node, storage=storage, volume=volid,
        )

    # ─── Users ───────────────────────────────────────────────────

    async def list_users(self, enabled: bool | None = None) -> list[User]:
        return await self.execute("list_users", query={"enabled": enabled})

    async def create_user(
        self,
        userid: UserId,
        password: str | None = None,
        *,
        email: str | None = None,
        firstname: str | None = None,
        lastname: str | None = None,
        comment: str | None = None,
        enable: bool = True,
        expire: int | None = None,
        groups: list[str] | None = None,
    ) -> None:
        await self.execute(
            "create_user",
            body={
                "userid": userid,
                "password": password,
                "email": email,
                "firstname": firstname,
                "lastname": lastname,
                "comment": comment,
                "enable": enable,
                "expire": expire,
                "groups": ",".join(groups) if groups else None,
            },
        )

    async def update_user(self, userid: UserId, **fields: Any) -> None:
        """Change account fields (email, comment, enable, expire, groups...)."""
        if not fields:
            raise ConfigurationError("update_user needs at least one field", "fields")
        if isinstance(fields.get("groups"), list):
            fields["groups"] = ",".join(fields["groups"])
        await self.execute("update_user", userid=userid, body=fields)

    async def delete_user(self, userid: UserId) -> None:
        await self.execute("delete_user", userid=userid)

    # ─── Monitoring ──────────────────────────────────────────────

    async def get_node_rrd(
        self,
        node: NodeName,
        timeframe: RrdTimeframe = RrdTimeframe.HOUR,
        cf: str = "AVERAGE",
    ) -> list[RrdPoint]:
        return await self.execute(
            "get_node_rrd", node=node, query=_rrd_query(timeframe, cf),
        )

    async def get_vm_rrd(
        self,
        node: NodeName,
        vmid: VmId,
        timeframe: RrdTimeframe = RrdTimeframe.HOUR,
        cf: str = "AVERAGE",
    ) -> list[RrdPoint]:
        return await self.execute(
            "get_vm_rrd", node=node, vmid=vmid, query=_rrd_query(timeframe, cf),
        )

    async def get_container_rrd(
        self,
        node: NodeName,
        vmid: VmId,
        timeframe: RrdTimeframe = RrdTimeframe.HOUR,
        cf: str = "AVERAGE",
    ) -> list[RrdPoint]:
        return await self.execute(
            "get_container_rrd", node=node, vmid=vmid, query=_rrd_query(timeframe, cf),
        )

    async def get_storage_rrd(
        self,
        node: NodeName,
        storage: str,
        timeframe: RrdTimeframe = RrdTimeframe.HOUR,
        cf: str = "AVERAGE",
    ) -> list[RrdPoint]:
        return await self.execute(
            "get_storage_rrd", node=node, storage=storage,
            query=_rrd_query(timeframe, cf),
        )

    async def get_ha_status(self) -> list[HaStatusEntry]:
        return await self.execute("get_ha_status")

    async def list_ha_resources(self) -> list[HaResource]:
        return await self.execute("list_ha_resources")

    async def list_firewall_rules(self, node: NodeName) -> list[FirewallRule]:
        return await self.execute("list_firewall_rules", node=node)

    async def list_firewall_aliases(self) -> list[FirewallAlias]:
        return await self.execute("list_firewall_aliases")

    async def list_replication_jobs(self, node: NodeName) -> list[ReplicationJob]:
        return await self.execute("list_replication_jobs", node=node)


def _rrd_query(timeframe: RrdTimeframe, cf: str) -> dict[str, str]:
    cf = cf.upper()
    if cf not in ("AVERAGE", "MAX"):
        raise ConfigurationError(f"cf must be AVERAGE or MAX, got {cf!r}", "cf")
    return {"timeframe": RrdTimeframe(timeframe).value, "cf": cf}
