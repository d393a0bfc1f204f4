"""Shared configuration helpers for host/port selection and detection settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple

# Dedicated ports for different runtimes to avoid clashes and lingering sockets.
DEV_HOST = os.getenv("DESKTOP_EYES_DEV_HOST", "127.0.0.1")
DEV_PORT = int(os.getenv("DESKTOP_EYES_DEV_PORT", "5004"))
TEST_HOST = os.getenv("DESKTOP_EYES_TEST_HOST", DEV_HOST)
TEST_PORT = int(os.getenv("DESKTOP_EYES_TEST_PORT", "5015"))

DEFAULT_VLM_BASE_URL = "http://127.0.0.1:1234"
DEFAULT_VLM_MODEL = "gpt-oss-20b"
DEFAULT_VLM_TIMEOUT = 60.0
MAX_VLM_TIMEOUT = 90.0
DEFAULT_PRIMARY_ORIGIN = (100, 100)


def is_test_mode() -> bool:
    """Detect pytest/DESKTOP_EYES_TEST_MODE runs."""
    return os.getenv("DESKTOP_EYES_TEST_MODE") == "1" or bool(os.getenv("PYTEST_CURRENT_TEST"))


def resolve_host_port(host: str | None = None, port: int | None = None) -> Tuple[str, int]:
    """Return the host/port tuple for the current mode, honoring overrides."""
    if host and port:
        return host, int(port)

    if is_test_mode():
        resolved_host = host or TEST_HOST
        resolved_port = int(port or TEST_PORT)
    else:
        resolved_host = host or DEV_HOST
        resolved_port = int(port or DEV_PORT)

    return resolved_host, resolved_port


def _flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return str(value).strip().lower() not in {"0", "false", "off", "no", "none"}


def _float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _origin(name: str, default: Tuple[int, int]) -> Tuple[int, int]:
    raw = os.getenv(name)
    if not raw:
        return default
    parts = [p.strip() for p in raw.replace(";", ",").split(",") if p.strip()]
    if len(parts) != 2:
        return default
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return default


@dataclass(frozen=True)
class DetectionSettings:
    vlm_base_url: str = DEFAULT_VLM_BASE_URL
    vlm_model: str = DEFAULT_VLM_MODEL
    vlm_api_key: str | None = None
    vlm_timeout: float = DEFAULT_VLM_TIMEOUT
    vlm_max_tokens: int = 2000
    vlm_temperature: float = 0.1
    tesseract_cmd: str = "tesseract"
    primary_origin: Tuple[int, int] = DEFAULT_PRIMARY_ORIGIN
    settle_seconds: float = 0.3
    enable_accessibility: bool = True
    enable_ai: bool = True
    enable_ocr: bool = True

    @classmethod
    def from_env(cls) -> "DetectionSettings":
        return cls(
            vlm_base_url=(os.getenv("DESKTOP_EYES_VLM_BASE_URL") or DEFAULT_VLM_BASE_URL).rstrip("/"),
            vlm_model=os.getenv("DESKTOP_EYES_VLM_MODEL", DEFAULT_VLM_MODEL).strip() or DEFAULT_VLM_MODEL,
            vlm_api_key=(os.getenv("DESKTOP_EYES_VLM_API_KEY") or "").strip() or None,
            vlm_timeout=min(_float("DESKTOP_EYES_VLM_TIMEOUT", DEFAULT_VLM_TIMEOUT), MAX_VLM_TIMEOUT),
            vlm_max_tokens=_int("DESKTOP_EYES_VLM_MAX_TOKENS", 2000),
            vlm_temperature=_float("DESKTOP_EYES_VLM_TEMPERATURE", 0.1),
            tesseract_cmd=os.getenv("DESKTOP_EYES_TESSERACT_CMD", "tesseract").strip() or "tesseract",
            primary_origin=_origin("DESKTOP_EYES_PRIMARY_ORIGIN", DEFAULT_PRIMARY_ORIGIN),
            settle_seconds=max(0.0, _float("DESKTOP_EYES_SETTLE_SECONDS", 0.3)),
            enable_accessibility=_flag("DESKTOP_EYES_ENABLE_ACCESSIBILITY", True),
            enable_ai=_flag("DESKTOP_EYES_ENABLE_AI", True),
            enable_ocr=_flag("DESKTOP_EYES_ENABLE_OCR", True),
        )
