"""
Integration tests for the lockbox command API.
"""
import pytest
from fastapi.testclient import TestClient

from boxbuddy.api.app import create_app
from boxbuddy.config.loader import DEFAULT_CONFIG
from boxbuddy.lockbox.clock import ManualClock
from boxbuddy.lockbox.controller import LockboxController

T0 = 1_700_000_000_000


@pytest.fixture
def clock():
    return ManualClock(T0)


@pytest.fixture
def controller(clock):
    return LockboxController(DEFAULT_CONFIG, clock=clock)


@pytest.fixture
def client(controller):
    return TestClient(create_app(controller, start_timers=False))


@pytest.fixture
def device_id(controller):
    return controller.selected_device().id


def test_list_devices_returns_seeded_box(client):
    response = client.get("/api/v1/devices/")

    assert response.status_code == 200
    devices = response.json()
    assert len(devices) == 1
    assert devices[0]["name"] == "Hallway Box"
    assert devices[0]["status"]["temp_c"] == 4.0


def test_toggle_lock_records_actor(client, device_id):
    response = client.post(f"/api/v1/devices/{device_id}/lock/toggle", json={"actor": "Sam"})

    assert response.status_code == 200
    assert response.json()["status"]["locked"] is False
    log = client.get("/api/v1/audit/").json()
    assert log[0]["text"] == "Unlocked by Sam"
    assert log[0]["kind"] == "action"


def test_lock_with_open_door_returns_conflict(client, device_id):
    client.post(f"/api/v1/devices/{device_id}/lock/toggle")
    client.patch(f"/api/v1/devices/{device_id}/simulation", json={"door_open": True})

    response = client.post(f"/api/v1/devices/{device_id}/lock/toggle")

    assert response.status_code == 409
    assert response.json()["detail"] == "Close the door before locking"


def test_unknown_device_returns_404(client):
    response = client.post("/api/v1/devices/nope/lock/toggle")

    assert response.status_code == 404


def test_simulation_patch_distinguishes_null_temperature(client, device_id):
    response = client.patch(f"/api/v1/devices/{device_id}/simulation", json={"battery_pct": 12.5})
    body = response.json()
    assert body["status"]["battery_pct"] == 12.5
    assert body["status"]["temp_c"] == 4.0

    response = client.patch(f"/api/v1/devices/{device_id}/simulation", json={"temp_c": None})
    assert response.json()["status"]["temp_c"] is None


def test_issue_and_redeem_code_flow(client, clock, device_id):
    created = client.post(f"/api/v1/devices/{device_id}/codes", json={"hours": 2, "note": "DHL delivery"})
    assert created.status_code == 201
    code = created.json()
    assert code["state"] == "active"
    assert code["expires_at"] == T0 + 2 * 3600 * 1000

    active = client.get(f"/api/v1/devices/{device_id}/codes").json()
    assert [item["id"] for item in active] == [code["id"]]

    redeemed = client.post(f"/api/v1/codes/{code['id']}/redeem").json()
    assert redeemed["redeemed"] is True
    assert redeemed["code"]["state"] == "used"
    assert client.get(f"/api/v1/devices/{device_id}").json()["status"]["locked"] is False

    clock.advance(DEFAULT_CONFIG.codes.relock_delay_ms)
    assert client.get(f"/api/v1/devices/{device_id}").json()["status"]["locked"] is True

    again = client.post(f"/api/v1/codes/{code['id']}/redeem").json()
    assert again == {"redeemed": False, "code": None}
    completed = client.get(f"/api/v1/devices/{device_id}/codes", params={"state": "completed"}).json()
    assert [item["id"] for item in completed] == [code["id"]]


def test_add_select_and_remove_device(client, device_id):
    created = client.post("/api/v1/devices/", json={"variant": "shared"})
    assert created.status_code == 201
    lobby = created.json()
    assert lobby["name"] == "Lobby Box"
    assert client.get("/api/v1/devices/selected").json()["id"] == lobby["id"]

    client.post(f"/api/v1/devices/{device_id}/select")
    assert client.get("/api/v1/devices/selected").json()["id"] == device_id

    assert client.delete(f"/api/v1/devices/{lobby['id']}").status_code == 204
    assert client.delete(f"/api/v1/devices/{device_id}").status_code == 409


def test_system_event_is_logged(client):
    response = client.post("/api/v1/audit/system", json={"text": "Geofenced courier near box (mock)"})

    assert response.status_code == 201
    assert client.get("/api/v1/audit/").json()[0]["kind"] == "system"


def test_health_reports_timer_state(client):
    assert client.get("/health").json() == {"status": "ok", "timers": False}
