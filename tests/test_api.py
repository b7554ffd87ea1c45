import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

import main
from app.core.dependencies import get_advisor
from app.models.schemas import PreDriveRequest, RiskAssessment
from app.services.predrive_service import PreDriveAdvisor, PreDriveServiceError, parse_assessment

PREDRIVE_BODY = {"sleepHours": 5, "tripDurationHours": 3, "timeOfDay": "Night", "age": 41}


@pytest.fixture
def client():
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


def test_health(client):
    data = client.get("/health").json()
    assert data["status"] == "healthy"
    assert data["classifier_loaded"] is True
    assert data["session_running"] is False


def test_session_start_status_stop(client):
    started = client.post("/api/monitoring/start")
    assert started.status_code == 200
    assert started.json()["running"] is True

    assert client.post("/api/monitoring/start").status_code == 409

    status = client.get("/api/monitoring/status").json()
    assert status["display_state"] == "awake"
    assert status["config"]["on_threshold"] == 0.70

    stopped = client.post("/api/monitoring/stop").json()
    assert stopped["status"]["running"] is False
    assert stopped["finalized_episode"] is None


def test_samples_require_running_session(client):
    resp = client.post("/api/monitoring/samples", json={"samples": [{"channel": "C3", "value": 1.0}]})
    assert resp.status_code == 409


def test_samples_accepted_while_running(client):
    client.post("/api/monitoring/start")
    resp = client.post("/api/monitoring/samples", json={"samples": [
        {"channel": "C3", "value": 1.0, "timestamp": 0.0},
        {"channel": "HR", "value": 72.0, "timestamp": 0.0},
    ]})
    assert resp.status_code == 200
    assert resp.json() == {"accepted": 2, "ignored": 0}
    client.post("/api/monitoring/stop")


def test_episodes_listing_and_missing(client):
    data = client.get("/api/episodes").json()
    assert data["total"] == len(data["episodes"])
    assert client.get("/api/episodes/does-not-exist").status_code == 404


def test_monitoring_ws_ping(client):
    with client.websocket_connect("/ws/monitoring") as ws:
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}
        ws.send_json({"type": "status"})
        assert ws.receive_json()["type"] == "status"


def test_predrive_bad_input(client):
    resp = client.post("/predrive/analyze", json={"sleepHours": -1, "timeOfDay": "Night"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Bad input"}


class FakeAdvisor:
    def __init__(self, fail=False):
        self.fail = fail

    async def analyze(self, data):
        if self.fail:
            raise PreDriveServiceError("quota exceeded")
        return RiskAssessment(
            riskLevel="High",
            explanation=f"Only {data.sleepHours:g}h of sleep before a night drive.",
            recommendations=["Nap for 20 minutes", "Share the driving"],
        )


def test_predrive_success(client):
    main.app.dependency_overrides[get_advisor] = lambda: FakeAdvisor()
    resp = client.post("/predrive/analyze", json=PREDRIVE_BODY)
    assert resp.status_code == 200
    assert resp.json()["riskLevel"] == "High"
    assert len(resp.json()["recommendations"]) == 2


def test_predrive_model_failure(client):
    main.app.dependency_overrides[get_advisor] = lambda: FakeAdvisor(fail=True)
    resp = client.post("/predrive/analyze", json=PREDRIVE_BODY)
    assert resp.status_code == 500
    assert resp.json() == {"error": "Model call failed"}


def test_predrive_without_api_key_fails_cleanly(client):
    resp = client.post("/predrive/analyze", json=PREDRIVE_BODY)
    assert resp.status_code == 500


def _model_reply(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def test_parse_assessment_trims_recommendations():
    reply = _model_reply(
        '{"riskLevel": "Moderate", "explanation": "Short sleep.", '
        '"recommendations": ["a", "b", "c", "d"]}'
    )
    assert parse_assessment(reply).recommendations == ["a", "b", "c"]


@pytest.mark.parametrize("payload", [
    {},
    _model_reply("not json"),
    _model_reply('{"riskLevel": "Extreme", "explanation": "x", "recommendations": ["a"]}'),
    _model_reply('{"riskLevel": "Low", "explanation": "x", "recommendations": []}'),
])
def test_parse_assessment_rejects(payload):
    with pytest.raises(PreDriveServiceError):
        parse_assessment(payload)


def test_advisor_posts_to_generate_content():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        return httpx.Response(200, json=_model_reply(
            '{"riskLevel": "Low", "explanation": "Rested.", "recommendations": ["Drive safe"]}'
        ))

    advisor = PreDriveAdvisor("k3y", model="test-model", transport=httpx.MockTransport(handler))
    result = asyncio.run(advisor.analyze(PreDriveRequest.model_validate(PREDRIVE_BODY)))

    assert result.riskLevel.value == "Low"
    assert "/models/test-model:generateContent" in seen["url"]
    assert "key=k3y" in seen["url"]


def test_advisor_http_error_raises():
    transport = httpx.MockTransport(lambda request: httpx.Response(503, text="overloaded"))
    advisor = PreDriveAdvisor("k3y", transport=transport)
    with pytest.raises(PreDriveServiceError):
        asyncio.run(advisor.analyze(PreDriveRequest.model_validate(PREDRIVE_BODY)))
