from typing import Any, Dict, List, Optional

import httpx

from desktop_eyes.config import DetectionSettings
from desktop_eyes.contracts.errors import VisionServiceError

COMPLETIONS_PATH = "/v1/chat/completions"


def _build_messages(prompt: str, image_base64: str) -> List[Dict[str, Any]]:
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{image_base64}"}},
            ],
        }
    ]


class VisionClient:
    """OpenAI-compatible chat completions client for screenshot analysis."""

    def __init__(self, settings: DetectionSettings, transport: Optional[httpx.BaseTransport] = None) -> None:
        self.settings = settings
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self.settings.vlm_base_url.rstrip('/')}{COMPLETIONS_PATH}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.vlm_api_key:
            headers["Authorization"] = f"Bearer {self.settings.vlm_api_key}"
        return headers

    def ping(self) -> bool:
        """True when the endpoint answers ``GET /v1/models`` with a 2xx."""
        try:
            with httpx.Client(transport=self._transport, timeout=min(5.0, self.settings.vlm_timeout)) as client:
                response = client.get(f"{self.settings.vlm_base_url.rstrip('/')}/v1/models", headers=self._headers())
                return response.is_success
        except httpx.HTTPError:
            return False

    def complete(self, prompt: str, image_base64: str) -> str:
        """Send ``prompt`` with a PNG screenshot and return the assistant message content."""
        payload = {
            "model": self.settings.vlm_model,
            "messages": _build_messages(prompt, image_base64),
            "max_tokens": self.settings.vlm_max_tokens,
            "temperature": self.settings.vlm_temperature,
        }
        try:
            with httpx.Client(transport=self._transport, timeout=self.settings.vlm_timeout) as client:
                response = client.post(self.url, headers=self._headers(), json=payload)
                try:
                    response.raise_for_status()
                except httpx.HTTPStatusError as exc:
                    status = exc.response.status_code
                    reason = exc.response.reason_phrase
                    detail = (exc.response.text or "").strip()[:300]
                    raise VisionServiceError(
                        f"Vision API error {status} {reason}: {detail}".strip(": "),
                        detail={"status": status},
                    ) from exc
        except httpx.TimeoutException as exc:
            raise VisionServiceError("Vision API request timed out") from exc
        except httpx.HTTPError as exc:
            raise VisionServiceError(f"Failed to contact vision API: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise VisionServiceError("Failed to decode vision API response as JSON") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise VisionServiceError("Vision API response is missing expected content") from exc
        if not isinstance(content, str) or not content.strip():
            raise VisionServiceError("Vision API returned empty content")
        return content
