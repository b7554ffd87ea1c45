"""
FatigueWatch Pre-Drive Advisory Service
Stateless wrapper around a generative model: turns trip context and fatigue
history into a risk level, a short explanation and 1-3 recommendations.
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from app.models.schemas import PreDriveRequest, RiskAssessment

logger = logging.getLogger("fatiguewatch.predrive")


class PreDriveServiceError(Exception):
    """Upstream model call failed or returned an unusable answer"""


RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "riskLevel": {"type": "STRING", "enum": ["Low", "Moderate", "High"]},
        "explanation": {"type": "STRING"},
        "recommendations": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["riskLevel", "explanation", "recommendations"],
}


def _na(value: Optional[int]) -> str:
    return "NA" if value is None else str(value)


def build_prompt(data: PreDriveRequest) -> str:
    return (
        "You are a driver fatigue specialist. Output STRICT JSON with keys:\n"
        '- riskLevel: "Low"|"Moderate"|"High"\n'
        "- explanation: string\n"
        "- recommendations: array of 1-3 strings\n"
        "\n"
        "Consider:\n"
        f"- Sleep last night: {data.sleepHours:g}h\n"
        f"- Planned drive: {data.tripDurationHours:g}h at {data.timeOfDay.value}\n"
        f"- History: drowsy={data.totalDrowsy or 0}, fatigued={data.totalFatigued or 0}\n"
        f"- Health: age={_na(data.age)}, height={_na(data.heightCm)}cm, weight={_na(data.weightKg)}kg\n"
        "\n"
        "Be concise and actionable.\n"
    )


def parse_assessment(payload: Dict[str, Any]) -> RiskAssessment:
    """Pull the JSON answer out of a generateContent response."""
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise PreDriveServiceError(f"Unexpected model response shape: {e}") from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise PreDriveServiceError(f"Model did not return JSON: {e}") from e

    if isinstance(data, dict) and isinstance(data.get("recommendations"), list):
        data["recommendations"] = [str(r) for r in data["recommendations"] if str(r).strip()][:3]
    try:
        return RiskAssessment.model_validate(data)
    except ValidationError as e:
        raise PreDriveServiceError(f"Model answer failed validation: {e}") from e


class PreDriveAdvisor:
    """Calls the Generative Language REST API with a JSON response schema"""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        api_base: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings) -> "PreDriveAdvisor":
        return cls(
            api_key=settings.GOOGLE_API_KEY,
            model=settings.PREDRIVE_MODEL,
            api_base=settings.PREDRIVE_API_BASE,
            timeout=settings.PREDRIVE_TIMEOUT_SECONDS,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def analyze(self, data: PreDriveRequest) -> RiskAssessment:
        if not self.configured:
            raise PreDriveServiceError("GOOGLE_API_KEY is not configured")

        body = {
            "contents": [{"role": "user", "parts": [{"text": build_prompt(data)}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }
        url = f"{self.api_base}/models/{self.model}:generateContent"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, params={"key": self.api_key}, json=body)
        except httpx.HTTPError as e:
            raise PreDriveServiceError(f"Model request failed: {e}") from e

        if resp.status_code != 200:
            logger.warning(f"Model API error {resp.status_code}: {resp.text[:300]}")
            raise PreDriveServiceError(f"Model API returned HTTP {resp.status_code}")

        try:
            payload = resp.json()
        except ValueError as e:
            raise PreDriveServiceError(f"Model API returned invalid JSON: {e}") from e

        assessment = parse_assessment(payload)
        logger.info("Pre-drive assessment: %s", assessment.riskLevel.value)
        return assessment
