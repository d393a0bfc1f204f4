import json
import logging

from desktop_eyes import config, logging_utils
from desktop_eyes.config import DetectionSettings


def test_log_event_redacts_images_and_truncates(caplog):
    logger = logging.getLogger("desktop_eyes.events")
    original = logger.propagate
    logger.propagate = True
    try:
        with caplog.at_level(logging.INFO, logger="desktop_eyes.events"):
            logging_utils.log_event(
                "vision.request",
                "req-1",
                {"image_base64": "A" * 10, "prompt": "x" * 5000, "nested": {"screenshot_base64": "B"}},
            )
    finally:
        logger.propagate = original

    body = json.loads(caplog.records[-1].getMessage())
    assert body["event"] == "vision.request"
    assert body["request_id"] == "req-1"
    assert body["image_base64"] == "<redacted:image>"
    assert body["nested"]["screenshot_base64"] == "<redacted:image>"
    assert "truncated" in body["prompt"]


def test_log_event_never_raises_on_unserializable_payload():
    logging_utils.log_event("odd", None, {"obj": object()})


def test_generate_request_id_is_unique():
    assert logging_utils.generate_request_id() != logging_utils.generate_request_id()


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("DESKTOP_EYES_VLM_BASE_URL", "http://llm.local:9000/")
    monkeypatch.setenv("DESKTOP_EYES_VLM_TIMEOUT", "500")
    monkeypatch.setenv("DESKTOP_EYES_PRIMARY_ORIGIN", "40, 60")
    monkeypatch.setenv("DESKTOP_EYES_ENABLE_AI", "0")
    monkeypatch.setenv("DESKTOP_EYES_VLM_MAX_TOKENS", "lots")

    settings = DetectionSettings.from_env()

    assert settings.vlm_base_url == "http://llm.local:9000"
    assert settings.vlm_timeout == config.MAX_VLM_TIMEOUT
    assert settings.primary_origin == (40, 60)
    assert settings.enable_ai is False
    assert settings.enable_ocr is True
    assert settings.vlm_max_tokens == 2000


def test_settings_defaults(monkeypatch):
    for name in ("DESKTOP_EYES_VLM_BASE_URL", "DESKTOP_EYES_VLM_MODEL", "DESKTOP_EYES_PRIMARY_ORIGIN"):
        monkeypatch.delenv(name, raising=False)

    settings = DetectionSettings.from_env()

    assert settings.vlm_base_url == "http://127.0.0.1:1234"
    assert settings.vlm_model == "gpt-oss-20b"
    assert settings.primary_origin == (100, 100)


def test_resolve_host_port_prefers_test_port_under_pytest():
    host, port = config.resolve_host_port()

    assert port == config.TEST_PORT
    assert config.resolve_host_port("0.0.0.0", 9999) == ("0.0.0.0", 9999)


def test_typed_text_is_logged_by_length_only():
    payload = {"tool": "type_text", "arguments": {"appName": "Bank", "text": "hunter2", "clearFirst": True}}

    sanitized = logging_utils.sanitize_payload(payload)

    assert sanitized["arguments"]["text"] == "<redacted:7 chars>"
    assert sanitized["arguments"]["appName"] == "Bank"
    assert "hunter2" not in json.dumps(sanitized)
