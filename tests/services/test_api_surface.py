"""API Surface — tests for typed operations against the fake Proxmox API.

Tests cover:
    - get_version works without a session; everything else requires one
    - Typed decoding of nodes, storage, network, tasks, guests, snapshots
    - Mutating operations return UPIDs and carry the CSRF header
    - Query / body parameters on the wire
    - 401 on an authenticated call invalidates the session; next call re-logs in
    - A 401 for a ticket a concurrent refresh already replaced keeps the new session
    - Server errors surface as ApiStatusError, shape drift as DecodeError
"""

import pytest

from pvelink.core.api_request import ApiRequest, RawResponse
from pvelink.core.domain_types import AuthState, GuestAction, GuestType, HttpMethod
from pvelink.core.errors import (
    ApiStatusError, AuthError, ConfigurationError, DecodeError,
)
from pvelink.schemas.cluster import VersionInfo
from pvelink.schemas.guests import GuestStatus
from pvelink.services.api_surface import ProxmoxApi
from pvelink.services.session_manager import SessionManager
from tests.services.stub_transport import StubTransport, ticket_response

GET_NODES = ApiRequest("list_nodes", HttpMethod.GET, "/nodes")


# ─── Unauthenticated ─────────────────────────────────────────────

@pytest.mark.asyncio
async def test_get_version_needs_no_session(api, fake_pve):
    version = await api.get_version()
    assert version == VersionInfo(version="8.2.4", release="8.2", repoid="faa83925")
    sent = fake_pve.requests_to("/version")[0]
    assert "cookie" not in sent.headers
    assert fake_pve.login_calls == 0


@pytest.mark.asyncio
async def test_authenticated_operation_without_login_sends_nothing(api, fake_pve):
    with pytest.raises(AuthError):
        await api.list_nodes()
    assert fake_pve.requests == []


# ─── Cluster & nodes ─────────────────────────────────────────────

@pytest.mark.asyncio
async def test_cluster_status_and_resources(logged_in_api, fake_pve):
    status = await logged_in_api.get_cluster_status()
    assert [e.type for e in status] == ["cluster", "node"]
    assert status[0].quorate is True

    vms = await logged_in_api.get_cluster_resources("vm")
    assert {r.id for r in vms} == {"qemu/100", "lxc/200"}
    assert fake_pve.requests_to("/cluster/resources")[0].query == {"type": "vm"}

    everything = await logged_in_api.get_cluster_resources()
    assert len(everything) == 4
    assert fake_pve.requests_to("/cluster/resources")[1].query == {}


@pytest.mark.asyncio
async def test_list_nodes_and_status(logged_in_api):
    nodes = await logged_in_api.list_nodes()
    assert nodes[0].node == "pve1"
    assert nodes[0].online

    status = await logged_in_api.get_node_status("pve1")
    assert status.memory.total == 17179869184
    assert status.loadavg == [0.10, 0.05, 0.01]


@pytest.mark.asyncio
async def test_storage_and_network(logged_in_api):
    storage = await logged_in_api.list_storage("pve1")
    assert storage[0].content == ["iso", "vztmpl", "backup"]
    assert storage[1].total is None

    interfaces = await logged_in_api.list_network_interfaces("pve1")
    assert interfaces[0].iface == "vmbr0"
    assert interfaces[0].active is True


@pytest.mark.asyncio
async def test_tasks_paging_and_upid_roundtrip(logged_in_api, fake_pve):
    tasks = await logged_in_api.list_tasks("pve1", limit=2, start=1)
    assert len(tasks) == 2
    assert fake_pve.requests_to("/tasks")[0].query == {"limit": "2", "start": "1"}

    status = await logged_in_api.get_task_status("pve1", tasks[0].upid)
    assert status.upid == tasks[0].upid
    assert status.succeeded
    assert not status.running


# ─── Guests ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_and_status_of_guests(logged_in_api):
    vms = await logged_in_api.list_vms("pve1")
    assert [(g.vmid, g.name, g.running) for g in vms] == [(100, "web01", True)]
    assert vms[0].tag_list == ["prod", "web"]

    containers = await logged_in_api.list_containers("pve1")
    assert [(g.vmid, g.running) for g in containers] == [(200, False)]

    status = await logged_in_api.get_vm_status("pve1", 100)
    assert isinstance(status, GuestStatus)
    assert status.qmpstatus == "running"

    ct_status = await logged_in_api.get_container_status("pve1", 200)
    assert ct_status.qmpstatus is None


@pytest.mark.asyncio
async def test_power_actions_return_upid_with_csrf(logged_in_api, fake_pve, sessions):
    upid = await logged_in_api.stop_vm("pve1", 100)
    assert upid.startswith("UPID:pve1:")
    assert ":qmstop:100:" in upid

    sent = fake_pve.requests_to("/qemu/100/status/stop")[0]
    assert sent.method == "POST"
    assert sent.headers["csrfpreventiontoken"] == sessions.session.csrf_token
    assert fake_pve.guests["qemu"][100].status == "stopped"

    upid = await logged_in_api.start_container("pve1", 200)
    assert ":vzstart:200:" in upid
    assert fake_pve.guests["lxc"][200].status == "running"


@pytest.mark.asyncio
async def test_shutdown_sends_timeout_body(logged_in_api, fake_pve):
    await logged_in_api.shutdown_vm("pve1", 100, timeout=60)
    assert fake_pve.requests_to("/status/shutdown")[0].body == {"timeout": 60}


@pytest.mark.asyncio
async def test_guest_action_generic(logged_in_api, fake_pve):
    upid = await logged_in_api.guest_action("pve1", 100, GuestAction.RESET)
    assert ":qmreset:100:" in upid


@pytest.mark.asyncio
async def test_reset_on_container_refused_locally(logged_in_api, fake_pve):
    before = len(fake_pve.requests)
    with pytest.raises(ConfigurationError):
        await logged_in_api.guest_action("pve1", 200, GuestAction.RESET, GuestType.LXC)
    assert len(fake_pve.requests) == before


@pytest.mark.asyncio
async def test_migrate_vm_body(logged_in_api, fake_pve):
    upid = await logged_in_api.migrate_vm("pve1", 100, "pve2", online=True)
    assert ":qmigrate:100:" in upid
    assert fake_pve.requests_to("/migrate")[0].body == {"target": "pve2", "online": 1}


@pytest.mark.asyncio
async def test_migrate_container_body(logged_in_api, fake_pve):
    await logged_in_api.migrate_container("pve1", 200, "pve2", restart=True)
    assert fake_pve.requests_to("/migrate")[0].body == {"target": "pve2", "restart": 1}


@pytest.mark.asyncio
async def test_parameter_errors_surface_field_details(logged_in_api):
    with pytest.raises(ApiStatusError) as exc_info:
        await logged_in_api.execute("migrate_vm", node="pve1", vmid=100, body={"online": 1})
    assert exc_info.value.status_code == 400
    assert exc_info.value.errors == {"target": "property is missing and it is not optional"}


@pytest.mark.asyncio
async def test_snapshot_lifecycle(logged_in_api):
    upid = await logged_in_api.create_vm_snapshot("pve1", 100, "pre-upgrade", description="before 8.3")
    assert ":qmsnapshot:100:" in upid

    snapshots = await logged_in_api.list_vm_snapshots("pve1", 100)
    assert [s.name for s in snapshots] == ["pre-upgrade", "current"]
    assert snapshots[1].is_current

    await logged_in_api.delete_vm_snapshot("pve1", 100, "pre-upgrade")
    snapshots = await logged_in_api.list_vm_snapshots("pve1", 100)
    assert [s.name for s in snapshots] == ["current"]


@pytest.mark.asyncio
async def test_delete_guests(logged_in_api, fake_pve):
    assert ":vzdestroy:200:" in await logged_in_api.delete_container("pve1", 200)
    assert await logged_in_api.list_containers("pve1") == []
    assert ":qmdestroy:100:" in await logged_in_api.delete_vm("pve1", 100)
    assert fake_pve.requests_to("/qemu/100")[-1].method == "DELETE"


@pytest.mark.asyncio
async def test_missing_guest_is_api_status_error(logged_in_api):
    with pytest.raises(ApiStatusError) as exc_info:
        await logged_in_api.get_vm_status("pve1", 999)
    assert exc_info.value.status_code == 500
    assert "999.conf" in exc_info.value.server_message


# ─── Session rejection ───────────────────────────────────────────

@pytest.mark.asyncio
async def test_server_side_401_invalidates_then_relogs(logged_in_api, fake_pve, sessions):
    fake_pve.revoke_tickets()

    with pytest.raises(AuthError) as exc_info:
        await logged_in_api.list_nodes()
    assert exc_info.value.code == "SESSION_REJECTED"
    assert isinstance(exc_info.value.__cause__, ApiStatusError)
    assert sessions.state is AuthState.UNAUTHENTICATED

    nodes = await logged_in_api.list_nodes()
    assert nodes[0].node == "pve1"
    assert fake_pve.login_calls == 2


# ─── Errors ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_server_error_on_get_is_not_retried(logged_in_api, fake_pve):
    fake_pve.fail_next = [(500, "pveproxy worker died")]
    with pytest.raises(ApiStatusError) as exc_info:
        await logged_in_api.list_nodes()
    assert exc_info.value.server_message == "pveproxy worker died"
    assert len(fake_pve.requests_to("/nodes")) == 1


@pytest.mark.asyncio
async def test_unexpected_shape_is_decode_error(logged_in_api, fake_pve):
    fake_pve.overrides["/api2/json/nodes"] = {"data": {"node": "pve1"}}
    with pytest.raises(DecodeError) as exc_info:
        await logged_in_api.list_nodes()
    assert exc_info.value.context.operation == "list_nodes"


@pytest.mark.asyncio
async def test_missing_envelope_is_decode_error(logged_in_api, fake_pve):
    fake_pve.overrides["/api2/json/nodes/pve1/qemu"] = [{"vmid": 100, "status": "running"}]
    with pytest.raises(DecodeError):
        await logged_in_api.list_vms("pve1")


@pytest.mark.asyncio
async def test_unknown_operation_and_bad_params(api):
    with pytest.raises(KeyError):
        await api.execute("reboot_everything")
    with pytest.raises(ValueError):
        await api.execute("get_node_status")


@pytest.mark.asyncio
async def test_stale_401_does_not_discard_refreshed_session(credentials, clock):
    stub = StubTransport(ticket_response(1))
    sessions = SessionManager(stub, clock=clock)
    api = ProxmoxApi(stub, sessions)
    await sessions.authenticate(credentials)

    async def refreshed_while_in_flight(request):
        assert request.headers["Cookie"] == "PVEAuthCookie=PVE:root@pam:TICKET1"
        clock.advance(hours=3)
        await sessions.attach(GET_NODES)
        return ApiStatusError(401, "authentication failure")

    nodes_payload = RawResponse(200, b'{"data": [{"node": "pve1", "status": "online"}]}')
    stub.outcomes += [refreshed_while_in_flight, ticket_response(2), nodes_payload]

    with pytest.raises(AuthError) as exc_info:
        await api.list_nodes()
    assert exc_info.value.code == "SESSION_REJECTED"
    assert sessions.state is AuthState.AUTHENTICATED
    assert sessions.session.token == "PVE:root@pam:TICKET2"

    nodes = await api.list_nodes()
    assert nodes[0].node == "pve1"
    logins = [r for r in stub.sent if r.operation == "login"]
    assert len(logins) == 2
    assert stub.sent[-1].headers["Cookie"] == "PVEAuthCookie=PVE:root@pam:TICKET2"
