import json

import httpx
import pytest
from PIL import Image

from desktop_eyes.config import DetectionSettings
from desktop_eyes.contracts.elements import DetectionMethod, ElementKind
from desktop_eyes.contracts.errors import DetectorFailed, ParseFailed, VisionServiceError
from desktop_eyes.detectors.vision_llm import VisionLLMDetector, parse_reply
from desktop_eyes.llm.vision_client import VisionClient


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _detector(handler, **settings):
    api_key = settings.pop("api_key", None)
    cfg = DetectionSettings(vlm_base_url="http://vlm.test", vlm_api_key=api_key, **settings)
    client = VisionClient(cfg, transport=httpx.MockTransport(handler))
    return VisionLLMDetector(cfg, client=client)


@pytest.fixture
def screenshot():
    return Image.new("RGB", (800, 600), "white")


def test_genuine_reply_is_parsed_and_stamped(frame, screenshot):
    seen = {}
    reply = {
        "elements": [
            {
                "type": "button",
                "text": "Save",
                "bounds": {"x": 380, "y": 40, "width": 40, "height": 40},
                "normalizedPosition": {"x": 0.5, "y": 0.1},
                "confidence": 0.3,
                "isClickable": True,
            },
            {"type": "widget", "bounds": {"x": 0, "y": 0, "width": 80, "height": 60}, "isEnabled": False},
        ],
        "summary": "Two elements",
        "suggestedActions": ["Click Save"],
    }

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion(json.dumps(reply)))

    result = _detector(handler, api_key="secret").detect("Demo", frame, screenshot)

    assert seen["url"] == "http://vlm.test/v1/chat/completions"
    assert seen["auth"] == "Bearer secret"
    content = seen["body"]["messages"][0]["content"]
    assert content[0]["type"] == "text" and "Demo" in content[0]["text"]
    assert content[1]["image_url"]["url"].startswith("data:image/png;base64,")
    assert seen["body"]["max_tokens"] == 2000
    assert seen["body"]["temperature"] == 0.1

    assert result.is_fallback is False
    assert result.summary == "Two elements"
    assert result.suggested_actions == ("Click Save",)
    save, unknown = result.elements
    assert save.kind is ElementKind.BUTTON and save.label == "Save"
    assert save.confidence == 0.85
    assert (save.normalized.x, save.normalized.y) == (0.5, 0.1)
    assert unknown.kind is ElementKind.UNKNOWN
    assert unknown.label == ""
    assert unknown.enabled is False and unknown.clickable is True
    # Position derived from bounds center when normalizedPosition is missing.
    assert (unknown.normalized.x, unknown.normalized.y) == (0.05, 0.05)


def test_fenced_reply_is_accepted():
    raw = 'Here you go:\n```json\n{"elements": [{"type": "link", "text": "Docs"}]}\n```'

    elements, summary, actions = parse_reply(raw, 100, 100)

    assert elements[0].kind is ElementKind.LINK
    assert elements[0].bounds.is_empty
    assert (elements[0].normalized.x, elements[0].normalized.y) == (0.0, 0.0)
    assert actions == []
    assert summary


def test_embedded_json_is_extracted():
    elements, _, _ = parse_reply('Sure! {"elements": [{"text": "OK"}], "summary": "s"} Done.', 10, 10)

    assert elements[0].label == "OK"


def test_unparseable_reply_raises_parse_failed():
    with pytest.raises(ParseFailed):
        parse_reply("I could not see anything.", 10, 10)
    with pytest.raises(ParseFailed):
        parse_reply('{"elements": "nope"}', 10, 10)


@pytest.mark.parametrize(
    "handler",
    [
        lambda request: httpx.Response(500, text="model crashed"),
        lambda request: httpx.Response(200, json=_completion("not json at all")),
        lambda request: httpx.Response(200, json={"unexpected": True}),
    ],
)
def test_service_or_parse_failure_returns_fixed_fallback(frame, screenshot, handler):
    result = _detector(handler).detect("Demo", frame, screenshot)

    assert result.is_fallback is True
    assert result.method is DetectionMethod.AI
    assert [e.label for e in result.elements] == ["Update Available", "Settings"]
    assert [(e.normalized.x, e.normalized.y) for e in result.elements] == [(0.91, 0.08), (0.06, 0.07)]
    assert all(e.confidence == 0.7 for e in result.elements)
    update = result.elements[0]
    assert update.bounds.x == pytest.approx(800 * 0.85)
    assert update.bounds.height == pytest.approx(600 * 0.06)
    assert result.suggested_actions[0] == 'Click "Update Available" button at (0.910, 0.080)'


def test_transport_error_returns_fallback(frame, screenshot):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert _detector(handler).detect("Demo", frame, screenshot).is_fallback is True


def test_empty_element_list_is_genuine_empty_result(frame, screenshot):
    handler = lambda request: httpx.Response(200, json=_completion('{"elements": [], "summary": "nothing"}'))

    result = _detector(handler).detect("Demo", frame, screenshot)

    assert result.elements == ()
    assert result.is_fallback is False


def test_missing_screenshot_is_a_detector_failure(frame):
    with pytest.raises(DetectorFailed):
        _detector(lambda r: httpx.Response(200)).detect("Demo", frame, None)


def test_client_raises_vision_service_error_on_timeout():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    client = VisionClient(DetectionSettings(vlm_base_url="http://vlm.test"), transport=httpx.MockTransport(handler))

    with pytest.raises(VisionServiceError, match="timed out"):
        client.complete("prompt", "aGVsbG8=")


def test_client_ping():
    ok = VisionClient(DetectionSettings(), transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"data": []})))
    down = VisionClient(DetectionSettings(), transport=httpx.MockTransport(lambda r: httpx.Response(503)))

    assert ok.ping() is True
    assert down.ping() is False
