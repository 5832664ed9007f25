"""
Tests — FastAPI Application

Tier 2: Endpoints via TestClient with recognition, inventory and camera
dependencies overridden. Startup hooks are not run, so no database file is
created.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tests.fakes import (
    HONDA_VIN,
    FakeInventory,
    FakeVideoCapture,
    ScriptedCloudFallback,
    ScriptedLocalEngine,
    cloud_failure,
    local_candidate,
    local_failure,
)
from vinscan.common.schemas import VehicleSummary
from vinscan.database.session import Base, get_db
from vinscan.edge.camera_manager import CameraPermissionManager
from vinscan.services.inventory import SqlInventoryGateway
from vinscan.services.main import app, get_camera, get_pipeline, get_registry
from vinscan.services.pipeline import ScanPipeline
from vinscan.services.session_registry import SessionRegistry

EXISTING = VehicleSummary(id="car-42", vin=HONDA_VIN, brand="Honda", current_location="NEW_ARRIVALS")


@pytest.fixture()
def inventory() -> FakeInventory:
    return FakeInventory()


@pytest.fixture()
def client(inventory: FakeInventory):
    registry = SessionRegistry(inventory)
    pipeline = ScanPipeline(
        local_engine=ScriptedLocalEngine(
            local_candidate("LVGBE5AM1PY123456", "VOYAH FREE 2024 WHITE LVGBE5AM1PY123456")
        ),
        cloud_fallback=ScriptedCloudFallback(cloud_failure()),
    )
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    yield TestClient(app)
    app.dependency_overrides.clear()


def _manual(client: TestClient, text: str = HONDA_VIN) -> dict:
    response = client.post("/api/v1/scans/manual", json={"text": text, "client_id": "tablet-1"})
    assert response.status_code == 201
    return response.json()


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestScans:
    def test_upload_scan(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/scans",
            params={"client_id": "tablet-1"},
            files={"file": ("vin.jpg", b"\xff\xd8fake", "image/jpeg")},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["state"] == "CHECKING"
        assert body["result"]["vin"]["normalized"] == "LVGBE5AM1PY123456"
        assert body["result"]["confidence"] == 1.0
        assert body["result"]["category"] == "EV"

    def test_upload_scan_both_tiers_fail(self, client: TestClient) -> None:
        app.dependency_overrides[get_pipeline] = lambda: ScanPipeline(
            local_engine=ScriptedLocalEngine(local_failure()),
            cloud_fallback=ScriptedCloudFallback(cloud_failure()),
        )
        response = client.post("/api/v1/scans", files={"file": ("vin.jpg", b"blurry", "image/jpeg")})
        body = response.json()
        assert body["failure"] == "OCR_EXTRACTION_FAILED"
        assert body["state"] == "MANUAL_ENTRY_REQUIRED"

    def test_manual_scan_and_get(self, client: TestClient) -> None:
        created = _manual(client)
        assert created["failure"] is None
        assert created["result"]["source"] == "MANUAL"

        fetched = client.get(f"/api/v1/scans/{created['session_id']}").json()
        assert fetched["session_id"] == created["session_id"]
        assert fetched["state"] == "CHECKING"

    def test_scan_superseded_during_recognition_is_gone(self, client: TestClient, inventory: FakeInventory) -> None:
        registry = SessionRegistry(inventory)
        engine = ScriptedLocalEngine(local_candidate(HONDA_VIN))
        engine.on_recognize = lambda: registry.open("tablet-1")
        app.dependency_overrides[get_registry] = lambda: registry
        app.dependency_overrides[get_pipeline] = lambda: ScanPipeline(
            local_engine=engine,
            cloud_fallback=ScriptedCloudFallback(cloud_failure()),
        )

        response = client.post(
            "/api/v1/scans",
            params={"client_id": "tablet-1"},
            files={"file": ("vin.jpg", b"\xff\xd8fake", "image/jpeg")},
        )

        assert response.status_code == 410
        assert len(registry) == 1
        assert inventory.lookups == []

    def test_unknown_session(self, client: TestClient) -> None:
        response = client.get("/api/v1/scans/00000000-0000-0000-0000-000000000000")
        assert response.status_code == 404


class TestRouting:
    def test_not_found_then_add_to_arrivals(self, client: TestClient, inventory: FakeInventory) -> None:
        session_id = _manual(client)["session_id"]

        looked_up = client.post(f"/api/v1/scans/{session_id}/lookup").json()
        assert looked_up["state"] == "NOT_FOUND"
        assert looked_up["allowed_decisions"] == ["ADD_TO_INVENTORY", "ADD_TO_NEW_ARRIVALS"]

        decided = client.post(f"/api/v1/scans/{session_id}/decision", json={"kind": "ADD_TO_NEW_ARRIVALS"})
        assert decided.status_code == 200
        body = decided.json()
        assert body["state"] == "DECIDED"
        assert body["decision"] == {"kind": "ADD_TO_NEW_ARRIVALS", "vin": HONDA_VIN, "checksum_valid": True}
        assert inventory.mutations == [("arrival", HONDA_VIN, True)]

        again = client.post(f"/api/v1/scans/{session_id}/decision", json={"kind": "ADD_TO_INVENTORY"})
        assert again.status_code == 410

    def test_found_rejects_illegal_decision(self, client: TestClient, inventory: FakeInventory) -> None:
        inventory.vehicles[HONDA_VIN] = EXISTING
        session_id = _manual(client)["session_id"]

        looked_up = client.post(f"/api/v1/scans/{session_id}/lookup").json()
        assert looked_up["state"] == "FOUND"
        assert looked_up["lookup"]["existing_vehicle"]["id"] == "car-42"

        rejected = client.post(f"/api/v1/scans/{session_id}/decision", json={"kind": "ADD_TO_NEW_ARRIVALS"})
        assert rejected.status_code == 409

        moved = client.post(
            f"/api/v1/scans/{session_id}/decision",
            json={"kind": "MOVE_TO_INVENTORY", "target_location": "SHOWROOM_2"},
        )
        assert moved.json()["decision"]["target_location"] == "SHOWROOM_2"

    def test_lookup_failure_is_503_and_retryable(self, client: TestClient, inventory: FakeInventory) -> None:
        inventory.fail_lookups = 1
        session_id = _manual(client)["session_id"]

        failed = client.post(f"/api/v1/scans/{session_id}/lookup")
        assert failed.status_code == 503

        retried = client.post(f"/api/v1/scans/{session_id}/lookup")
        assert retried.status_code == 200
        assert retried.json()["state"] == "NOT_FOUND"

    def test_lookup_without_vin_conflicts(self, client: TestClient) -> None:
        session_id = _manual(client, "no vin here")["session_id"]
        response = client.post(f"/api/v1/scans/{session_id}/lookup")
        assert response.status_code == 409

    def test_cancel(self, client: TestClient, inventory: FakeInventory) -> None:
        session_id = _manual(client)["session_id"]
        cancelled = client.post(f"/api/v1/scans/{session_id}/cancel").json()
        assert cancelled["state"] == "CANCELLED"
        assert cancelled["decision"] == {"kind": "CANCELLED"}
        assert client.post(f"/api/v1/scans/{session_id}/lookup").status_code == 410
        assert inventory.lookups == []

    def test_new_scan_supersedes_previous(self, client: TestClient) -> None:
        first = _manual(client)["session_id"]
        _manual(client)
        assert client.get(f"/api/v1/scans/{first}").status_code == 404


class TestCameraScan:
    def test_denied_camera_is_403(self, client: TestClient) -> None:
        denied = CameraPermissionManager(source=0, capture_factory=lambda source: FakeVideoCapture(opened=False))
        app.dependency_overrides[get_camera] = lambda: denied
        response = client.post("/api/v1/scans/camera")
        assert response.status_code == 403

    def test_camera_scan(self, client: TestClient) -> None:
        camera = CameraPermissionManager(source=0, capture_factory=lambda source: FakeVideoCapture())
        app.dependency_overrides[get_camera] = lambda: camera
        response = client.post("/api/v1/scans/camera", params={"client_id": "kiosk"})
        assert response.status_code == 201
        assert response.json()["client_id"] == "kiosk"


class TestVinUtilities:
    def test_validate(self, client: TestClient) -> None:
        body = client.post("/api/v1/vin/validate", json={"vin": "1hgcm82633a004350"}).json()
        assert body["record"]["normalized"] == "1HGCM82633A004350"
        assert body["record"]["checksum_valid"] is False
        assert body["expected_check_character"] == "X"

    def test_validate_not_a_vin(self, client: TestClient) -> None:
        body = client.post("/api/v1/vin/validate", json={"vin": "ABC"}).json()
        assert body["record"]["normalized"] is None
        assert body["expected_check_character"] is None


class TestInventoryListing:
    def test_list_inventory(self, client: TestClient) -> None:
        engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
        Base.metadata.create_all(bind=engine)
        factory = sessionmaker(bind=engine)
        gateway = SqlInventoryGateway(factory)
        gateway.create_inventory_entry(HONDA_VIN, None, checksum_valid=True)
        gateway.create_arrival_entry("LVGBE5AM1PY123456", None, checksum_valid=False)

        def override_db():
            db = factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_db

        everything = client.get("/api/v1/inventory").json()
        assert {car["vin"] for car in everything} == {HONDA_VIN, "LVGBE5AM1PY123456"}

        arrivals = client.get("/api/v1/inventory", params={"location": "NEW_ARRIVALS"}).json()
        assert [car["vin"] for car in arrivals] == ["LVGBE5AM1PY123456"]
