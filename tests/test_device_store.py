"""Device identity store: invariants, claim atomicity, code uniqueness."""

import threading
from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import Session, select

from chaosops.config import settings
from chaosops.database import engine
from chaosops.models.device import Device, DeviceStatus
from chaosops.services import device_store, pairing_service
from chaosops.services.errors import ConflictError, NotFoundError


def _assert_invariants(device: Device):
    assert (device.pairing_code is not None) == (device.status == DeviceStatus.UNPAIRED)
    assert (device.organisation_id is not None) == (device.status == DeviceStatus.PAIRED)


def test_create_device_is_unpaired_with_code(session):
    device = device_store.create_device(session)
    assert device.status == DeviceStatus.UNPAIRED
    assert device.pairing_code is not None
    assert device.code_issued_at is not None
    _assert_invariants(device)

    assert device_store.find_by_id(session, device.id).id == device.id
    assert device_store.find_by_pairing_code(session, device.pairing_code).id == device.id


def test_pending_codes_are_unique(session):
    devices = [device_store.create_device(session) for _ in range(50)]
    codes = [d.pairing_code for d in devices]
    assert len(set(codes)) == len(codes)

    unpaired = session.exec(select(Device).where(Device.status == DeviceStatus.UNPAIRED)).all()
    assert len({d.pairing_code for d in unpaired}) == len(unpaired)


def test_claim_sets_binding_and_clears_code(session, org_id):
    device = device_store.create_device(session)
    code = device.pairing_code

    assert device_store.claim(session, device, code, org_id, "Foyer")
    assert device.status == DeviceStatus.PAIRED
    assert device.organisation_id == org_id
    assert device.name == "Foyer"
    assert device.pairing_code is None
    _assert_invariants(device)
    assert device_store.find_by_pairing_code(session, code) is None


def test_claim_with_stale_code_fails(session, org_id):
    device = device_store.create_device(session)
    code = device.pairing_code
    assert device_store.claim(session, device, code, org_id, "Foyer")
    assert not device_store.claim(session, device, code, org_id, "Again")
    assert device.name == "Foyer"


def test_release_returns_device_to_unpaired(session, org_id, make_day_plan):
    plan_id = make_day_plan(org_id, datetime.now().date())
    device = device_store.create_device(session)
    device_store.claim(session, device, device.pairing_code, org_id, "Foyer")
    device_store.set_day_plan(session, device, plan_id)

    device = device_store.release(session, device)
    assert device.status == DeviceStatus.UNPAIRED
    assert device.pairing_code is not None
    assert device.organisation_id is None
    assert device.current_day_plan_id is None
    assert device.name is None
    _assert_invariants(device)


def test_concurrent_claims_have_exactly_one_winner(session, org_id):
    device = device_store.create_device(session)
    code = device.pairing_code
    workers = 8
    barrier = threading.Barrier(workers)
    results = []
    lock = threading.Lock()

    def attempt(n):
        with Session(engine) as s:
            barrier.wait()
            try:
                pairing_service.register_device(s, code, org_id, f"Display {n}")
                outcome = "ok"
            except (NotFoundError, ConflictError) as e:
                outcome = type(e).__name__
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=attempt, args=(n,)) for n in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert len(results) == workers
    assert results.count("ok") == 1
    assert all(r in ("ok", "NotFoundError", "ConflictError") for r in results)

    session.expire_all()
    stored = device_store.find_by_id(session, device.id)
    assert stored.status == DeviceStatus.PAIRED
    _assert_invariants(stored)


def test_code_expiry_disabled_by_default(session):
    device = device_store.create_device(session)
    later = datetime.now(timezone.utc) + timedelta(days=365)
    assert not device_store.code_expired(device, later)


def test_code_expiry_when_configured(session, monkeypatch):
    monkeypatch.setattr(settings, "pairing_code_ttl_seconds", 60)
    device = device_store.create_device(session)
    now = datetime.now(timezone.utc)
    assert not device_store.code_expired(device, now)
    assert device_store.code_expired(device, now + timedelta(seconds=61))


def test_list_for_organisation(session, org_id, other_org_id):
    a = device_store.create_device(session)
    b = device_store.create_device(session)
    device_store.create_device(session)
    device_store.claim(session, a, a.pairing_code, org_id, "A")
    device_store.claim(session, b, b.pairing_code, other_org_id, "B")

    listed = device_store.list_for_organisation(session, org_id)
    assert [d.id for d in listed] == [a.id]


def test_socket_handle_is_only_cleared_by_its_owner(session):
    device = device_store.create_device(session)
    assert device_store.set_socket_handle(session, device.id, "sock_old")
    assert device_store.set_socket_handle(session, device.id, "sock_new")
    device_store.clear_socket_handle(session, device.id, "sock_old")

    session.expire_all()
    assert device_store.find_by_id(session, device.id).socket_handle == "sock_new"

    device_store.clear_socket_handle(session, device.id, "sock_new")
    session.expire_all()
    assert device_store.find_by_id(session, device.id).socket_handle is None


def test_set_socket_handle_unknown_device(session):
    assert not device_store.set_socket_handle(session, "dsp_missing", "sock_x")
