"""
==============================================================================
API Integration Tests
==============================================================================

Tests for REST and WebSocket endpoints.

==============================================================================
"""

from fastapi.testclient import TestClient

from codescan.core import exceptions
from codescan.core.dependencies import get_orchestrator
from codescan.main import app
from codescan.scanner.orchestrator import ScanOrchestrator
from codescan.schemas.scan import DecodedCode, Symbology

from conftest import ScriptedFrameSource


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_health_check(self, client: TestClient):
        """Test health check returns status."""
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["source"] == "idle"
        assert data["session"]["enabled"] is False

    def test_readiness_probe(self, client: TestClient):
        """Test readiness probe."""
        response = client.get("/api/v1/health/ready")
        assert response.status_code == 200
        assert response.json()["ready"] is True

    def test_liveness_probe(self, client: TestClient):
        """Test liveness probe."""
        response = client.get("/api/v1/health/live")
        assert response.status_code == 200
        assert response.json()["alive"] is True

    def test_root_redirects_to_docs(self, client: TestClient):
        """Root redirects to the API docs."""
        response = client.get("/", follow_redirects=False)
        assert response.status_code == 307
        assert response.headers["location"] == "/docs"


class TestSessionEndpoints:
    """Tests for session intents."""

    def test_get_session(self, client: TestClient):
        """Initial session is disabled and front-facing."""
        response = client.get("/api/v1/session")
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["session"]["enabled"] is False
        assert data["session"]["facing"] == "front"
        assert data["session"]["result"] is None

    def test_enable_and_disable(self, client: TestClient, client_orchestrator: ScanOrchestrator):
        """Enable starts the stream, disable releases it."""
        response = client.post("/api/v1/session/enable")
        assert response.status_code == 200
        assert response.json()["session"]["enabled"] is True
        assert client_orchestrator.source.is_streaming

        health = client.get("/api/v1/health").json()
        assert health["components"]["source"] == "streaming"

        response = client.post("/api/v1/session/disable")
        assert response.status_code == 200
        assert response.json()["session"]["enabled"] is False
        assert not client_orchestrator.source.is_streaming

    def test_toggle(self, client: TestClient):
        """Toggle flips the enabled flag."""
        assert client.post("/api/v1/session/toggle").json()["session"]["enabled"] is True
        assert client.post("/api/v1/session/toggle").json()["session"]["enabled"] is False

    def test_set_facing(self, client: TestClient):
        """Facing can be selected explicitly."""
        response = client.put("/api/v1/session/facing", json={"facing": "back"})
        assert response.status_code == 200
        assert response.json()["session"]["facing"] == "back"

    def test_set_invalid_facing(self, client: TestClient):
        """Unknown facing modes are rejected by validation."""
        response = client.put("/api/v1/session/facing", json={"facing": "sideways"})
        assert response.status_code == 422

    def test_toggle_facing(self, client: TestClient):
        """Facing button switches cameras."""
        response = client.post("/api/v1/session/facing/toggle")
        assert response.json()["session"]["facing"] == "back"

    def test_capture_requires_stream(self, client: TestClient):
        """Capturing while disabled is a conflict."""
        response = client.post("/api/v1/session/capture")
        assert response.status_code == 409
        data = response.json()
        assert data["success"] is False
        assert data["error"]["code"] == "SOURCE_NOT_READY"

    def test_capture_download(self, client: TestClient):
        """Capture returns the frame as an attachment."""
        client.post("/api/v1/session/enable")

        response = client.post("/api/v1/session/capture")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert 'filename="photo.png"' in response.headers["content-disposition"]
        assert response.content.startswith(b"\x89PNG")

    def test_result_without_code(self, client: TestClient):
        """No result yet."""
        response = client.get("/api/v1/session/result", params={"timeout": 0})
        assert response.status_code == 200
        assert response.json()["found"] is False
        assert response.json()["result"] is None

    def test_result_after_code_found(self, client: TestClient, client_orchestrator: ScanOrchestrator):
        """A recorded result is returned."""
        client.post("/api/v1/session/enable")
        client_orchestrator.on_code_found(
            DecodedCode(payload="123456789", symbology=Symbology.LINEAR, format="CODE128")
        )

        response = client.get("/api/v1/session/result")
        data = response.json()

        assert data["found"] is True
        assert data["result"]["payload"] == "123456789"
        assert data["result"]["symbology"] == "linear"

        session = client.get("/api/v1/session").json()["session"]
        assert session["enabled"] is False
        assert session["result"]["payload"] == "123456789"

    def test_result_timeout_bounds(self, client: TestClient):
        """Negative timeouts are rejected."""
        response = client.get("/api/v1/session/result", params={"timeout": -1})
        assert response.status_code == 422


class TestSourceErrors:
    """Tests for camera failures surfaced over HTTP."""

    def test_permission_denied(self, orchestrator_factory, blank_image):
        """Enable without camera permission returns 503 and a degraded health."""
        source = ScriptedFrameSource(
            [blank_image], fail_with=exceptions.permission_denied(0)
        )
        orchestrator = orchestrator_factory(source)
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator

        try:
            with TestClient(app) as client:
                response = client.post("/api/v1/session/enable")
                assert response.status_code == 503
                error = response.json()["error"]
                assert error["code"] == "SOURCE_UNAVAILABLE"
                assert error["details"]["reason"] == "permission_denied"

                session = client.get("/api/v1/session").json()["session"]
                assert session["enabled"] is False
                assert session["last_error"] == "source_unavailable"

                assert client.get("/api/v1/health").json()["status"] == "degraded"
        finally:
            app.dependency_overrides.clear()


class TestSessionWebSocket:
    """Tests for the live session WebSocket."""

    def test_initial_state(self, client: TestClient):
        """The current session is sent on connect."""
        with client.websocket_connect("/ws/session") as websocket:
            message = websocket.receive_json()
            assert message["type"] == "state"
            assert message["session"]["enabled"] is False
            websocket.send_json({"type": "stop"})

    def test_toggle_intent(self, client: TestClient, client_orchestrator: ScanOrchestrator):
        """Intents are executed and their state change is pushed."""
        with client.websocket_connect("/ws/session") as websocket:
            websocket.receive_json()
            websocket.send_json({"type": "toggle"})

            message = websocket.receive_json()
            while message["type"] != "state":
                message = websocket.receive_json()

            assert message["session"]["enabled"] is True
            assert client_orchestrator.state().enabled is True
            websocket.send_json({"type": "stop"})

    def test_unknown_intent(self, client: TestClient):
        """Unknown messages get an error reply."""
        with client.websocket_connect("/ws/session") as websocket:
            websocket.receive_json()
            websocket.send_json({"type": "dance"})

            message = websocket.receive_json()
            assert message["type"] == "error"
            assert message["code"] == "UNKNOWN_TYPE"
            websocket.send_json({"type": "stop"})
