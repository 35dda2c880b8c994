"""Display push channel: socket binding, event delivery, polling without push."""

import asyncio
from datetime import date

import pytest
from starlette.websockets import WebSocketDisconnect

from chaosops.api.deps import get_notifier
from chaosops.main import app
from chaosops.services import device_store
from chaosops.services.notifier import NullNotifier, WebSocketNotifier
from chaosops.ws.display import ConnectionManager, manager, websocket_display


def _init(client) -> dict:
    return client.post("/api/displays/pairing/init").json()


def test_socket_without_device_id_is_closed(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/display"):
            pass
    assert exc.value.code == 4001


def test_socket_for_unknown_device_is_closed(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/display?deviceId=dsp_unknown"):
            pass
    assert exc.value.code == 4004


def test_socket_ping_pong(client):
    data = _init(client)
    with client.websocket_connect(f"/ws/display?deviceId={data['deviceId']}") as ws:
        assert ws.receive_json() == {"type": "connected", "data": {"deviceId": data["deviceId"]}}
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}
        ws.send_text("not json")
        assert ws.receive_json()["type"] == "error"


def test_paired_and_dayplan_events_are_pushed(client, auth_headers, org_id, make_day_plan):
    plan_id = make_day_plan(org_id, date.today(), [{"time": "09:00", "type": "session", "title": "Andacht"}])
    data = _init(client)

    with client.websocket_connect(f"/ws/display?deviceId={data['deviceId']}") as ws:
        assert ws.receive_json()["type"] == "connected"

        r = client.post(
            "/api/displays/pairing/register",
            json={"pairingCode": data["code"], "organisationId": org_id, "deviceName": "Foyer"},
            headers=auth_headers,
        )
        assert r.status_code == 200
        assert r.json()["connected"] is True

        msg = ws.receive_json()
        assert msg == {"type": "paired", "data": {"organisationId": org_id, "deviceName": "Foyer"}}

        r = client.put(
            f"/api/displays/pairing/{data['deviceId']}/dayplan",
            json={"dayPlanId": plan_id},
            headers=auth_headers,
        )
        assert r.status_code == 200

        msg = ws.receive_json()
        assert msg["type"] == "dayplan-assigned"
        assert msg["data"]["dayPlanId"] == plan_id
        assert msg["data"]["dayPlan"]["scheduleItems"][0]["title"] == "Andacht"

        status = client.get(f"/api/displays/pairing/status/{data['deviceId']}").json()
        assert msg["data"]["dayPlan"] == status["dayPlan"]


def test_pairing_works_without_push(client, auth_headers, org_id, make_day_plan):
    app.dependency_overrides[get_notifier] = NullNotifier
    plan_id = make_day_plan(org_id, date.today())
    data = _init(client)

    r = client.post(
        "/api/displays/pairing/register",
        json={"pairingCode": data["code"], "organisationId": org_id},
        headers=auth_headers,
    )
    assert r.status_code == 200
    r = client.put(
        f"/api/displays/pairing/{data['deviceId']}/dayplan",
        json={"dayPlanId": plan_id},
        headers=auth_headers,
    )
    assert r.status_code == 200

    status = client.get(f"/api/displays/pairing/status/{data['deviceId']}").json()
    assert status["isPaired"] is True
    assert status["dayPlan"]["id"] == plan_id


class RecordingChannel:
    def __init__(self, live: bool):
        self.live = live
        self.sent = []

    def send_threadsafe(self, handle, message):
        self.sent.append((handle, message))
        return self.live


def test_notifier_skips_devices_without_socket():
    channel = RecordingChannel(live=True)
    WebSocketNotifier(channel).notify(None, "paired", {})
    assert channel.sent == []


def test_notifier_tolerates_dead_socket():
    channel = RecordingChannel(live=False)
    WebSocketNotifier(channel).notify("sock_gone", "paired", {"organisationId": "org_1"})
    assert channel.sent == [("sock_gone", {"type": "paired", "data": {"organisationId": "org_1"}})]


def test_manager_without_connection_reports_unsent():
    fresh = ConnectionManager()
    assert fresh.send_threadsafe("sock_missing", {"type": "paired"}) is False
    assert fresh.connection_count == 0


class BrokenSocket:
    """Accepts, then fails on the first receive with a non-disconnect error."""

    def __init__(self):
        self.sent = []

    async def accept(self):
        return None

    async def send_json(self, data):
        self.sent.append(data)

    async def receive_text(self):
        raise RuntimeError("socket went away")

    async def close(self, code=1000, reason=None):
        return None


def test_socket_is_released_after_unexpected_error(session):
    device = device_store.create_device(session)
    before = manager.connection_count

    with pytest.raises(RuntimeError):
        asyncio.run(websocket_display(BrokenSocket(), device.id))

    assert manager.connection_count == before
    session.refresh(device)
    assert device.socket_handle is None
