import pytest

from desktop_eyes.config import DetectionSettings
from desktop_eyes.contracts.elements import DetectionMethod, ElementKind, WindowFrame
from desktop_eyes.contracts.errors import ActuationFailed
from desktop_eyes.executor.dispatch import TOOL_SPECS, build_dispatcher, dispatch_tool
from desktop_eyes.executor.input import KeyboardController
from desktop_eyes.executor.mouse import MouseController
from desktop_eyes.executor.tools import DesktopTools

A = DetectionMethod.ACCESSIBILITY


class FakePointer:
    def __init__(self):
        self.events = []

    def size(self):
        return (1920, 1080)

    def moveTo(self, x, y, duration=0.0):
        self.events.append(("move", x, y))

    def click(self, x=None, y=None, button="left"):
        self.events.append(("click", x, y, button))

    def hotkey(self, *keys):
        self.events.append(("hotkey",) + keys)

    def press(self, key):
        self.events.append(("press", key))

    def typewrite(self, text, interval=0.0):
        self.events.append(("type", text))


@pytest.fixture
def pointer():
    return FakePointer()


@pytest.fixture
def tools_factory(pipeline_factory, strategy_factory, element_factory, pointer, session):
    def build(elements=None, frames=None, strategies=None):
        if strategies is None:
            if elements is None:
                elements = [
                    element_factory("Save", 0.5, 0.1),
                    element_factory("Search", 0.5, 0.5, kind=ElementKind.TEXT_INPUT),
                    element_factory("Cancel", 0.25, 0.9),
                ]
            strategies = [strategy_factory(A, elements)]
        pipeline = pipeline_factory(strategies, frames=frames)
        return DesktopTools(
            pipeline,
            session=session,
            mouse=MouseController(pointer),
            keyboard=KeyboardController(pointer, interval=0),
            settings=DetectionSettings(),
        )

    return build


def _call(tools, name, **args):
    return dispatch_tool(build_dispatcher(tools), name, args)


def test_get_clickable_elements_returns_report_and_structured_outcome(tools_factory):
    result = _call(tools_factory(), "get_clickable_elements", appName="Demo")

    assert result["isError"] is False
    text = result["content"][0]["text"]
    assert "Clickable Elements for Demo (accessibility method):" in text
    assert "Found 3 clickable elements:" in text
    outcome = result["data"]["outcome"]
    assert outcome["chosen_method"] == "accessibility"
    assert outcome["elements"][0]["screen"] == {"x": 500.0, "y": 110.0}
    assert outcome["request_id"]


def test_element_index_out_of_range_is_structured_error(tools_factory, pointer):
    result = _call(tools_factory(), "click_element", appName="Demo", elementIndex=5)

    assert result["isError"] is True
    assert result["error"]["code"] == "element_index_out_of_range"
    assert "0–2" in result["error"]["message"]
    assert result["content"][0]["text"].startswith("Error: Element index 5 out of range")
    assert pointer.events == []


def test_click_re_resolves_frame_before_acting(tools_factory, pointer):
    first = WindowFrame(x=100, y=50, width=800, height=600)
    moved = WindowFrame(x=300, y=250, width=800, height=600)
    # Detection sees ``first``; the window has moved by the time we click.
    tools = tools_factory(frames=[first, moved])

    result = _call(tools, "click_element", appName="Demo", elementIndex=0)

    assert result["isError"] is False
    assert pointer.events == [("click", 700, 310, "left")]
    assert result["data"]["x"] == 700


def test_click_by_request_id_skips_redetection(tools_factory, pointer, session):
    tools = tools_factory()
    listing = _call(tools, "get_clickable_elements", appName="Demo")
    request_id = listing["data"]["outcome"]["request_id"]
    strategy = tools.pipeline.strategy(A)
    calls_before = strategy.calls

    result = _call(tools, "click_element", appName="Demo", elementIndex=2, requestId=request_id, button="right")

    assert result["isError"] is False
    assert strategy.calls == calls_before
    assert pointer.events == [("click", 300, 590, "right")]


def test_unknown_request_id_is_element_not_found(tools_factory):
    result = _call(tools_factory(), "move_mouse_to_element", appName="Demo", elementIndex=0, requestId="nope")

    assert result["error"]["code"] == "element_not_found"


def test_move_mouse_to_element(tools_factory, pointer):
    result = _call(tools_factory(), "move_mouse_to_element", appName="Demo", elementIndex=1)

    assert result["isError"] is False
    assert pointer.events == [("move", 500, 350)]


def test_find_and_click_by_text_and_type(tools_factory, pointer):
    result = _call(tools_factory(), "find_and_click_element", appName="Demo", searchText="canc")
    assert pointer.events[-1] == ("click", 300, 590, "left")
    assert "Cancel" in result["content"][0]["text"]

    result = _call(tools_factory(), "find_and_click_element", appName="Demo", elementType="input")
    assert result["data"]["element"]["label"] == "Search"


def test_find_and_click_without_match(tools_factory, pointer):
    result = _call(tools_factory(), "find_and_click_element", appName="Demo", searchText="Publish")

    assert result["error"]["code"] == "element_not_found"
    assert pointer.events == []


def test_find_and_click_requires_a_criterion(tools_factory):
    result = _call(tools_factory(), "find_and_click_element", appName="Demo")

    assert result["error"]["code"] == "invalid_arguments"


def test_type_text_clicks_clears_and_types(tools_factory, pointer):
    result = _call(tools_factory(), "type_text", appName="Demo", elementIndex=1, text="hello", clearFirst=True)

    assert result["isError"] is False
    assert pointer.events == [
        ("click", 500, 350, "left"),
        ("hotkey", "ctrl", "a"),
        ("press", "delete"),
        ("type", "hello"),
    ]


def test_forced_empty_method_is_reported_as_exhausted(tools_factory, strategy_factory):
    tools = tools_factory(strategies=[strategy_factory(A)])

    result = _call(tools, "get_clickable_elements", appName="Demo", forceMethod="accessibility")

    assert result["error"]["code"] == "detection_exhausted"


def test_unknown_app_is_window_not_found(tools_factory):
    result = _call(tools_factory(), "focus_application", identifier="Nowhere")

    assert result["error"]["code"] == "window_not_found"


def test_focus_and_list_applications(tools_factory, session):
    tools = tools_factory()

    focus = _call(tools, "focus_application", identifier="Demo")
    listing = _call(tools, "list_applications")

    assert "Focused on Demo" in focus["content"][0]["text"]
    assert "800x600 at (100, 50)" in focus["content"][0]["text"]
    assert session.current_app == "Demo"
    assert listing["data"]["applications"][0]["title"] == "Demo"


def test_analyze_window_combines(tools_factory, strategy_factory, element_factory):
    tools = tools_factory(
        strategies=[
            strategy_factory(A, [element_factory("OK", 0.5, 0.8)]),
            strategy_factory(DetectionMethod.OCR, [element_factory("OK", 0.5, 0.8, method=DetectionMethod.OCR)]),
        ]
    )

    result = _call(tools, "analyze_window", appName="Demo")

    assert "Combined 1 unique elements:" in result["content"][0]["text"]
    assert result["data"]["outcome"]["methods_used"] == ["accessibility", "ocr"]


def test_test_detection_methods_reports_each_strategy(tools_factory):
    result = _call(tools_factory(), "test_detection_methods")

    methods = [row["method"] for row in result["data"]["methods"]]
    assert methods == ["accessibility", "heuristic"]
    assert "Detection Methods Test Results:" in result["content"][0]["text"]


def test_missing_arguments_and_unknown_tool(tools_factory):
    tools = tools_factory()

    assert _call(tools, "click_element", appName="Demo")["error"]["code"] == "invalid_arguments"
    assert _call(tools, "teleport")["error"]["code"] == "unknown_tool"
    assert _call(tools, "click_element", appName="Demo", elementIndex="two")["error"]["code"] == "invalid_arguments"


def test_actuation_failure_is_structured(tools_factory, pointer, monkeypatch):
    def broken_click(**kwargs):
        raise OSError("input blocked")

    monkeypatch.setattr(pointer, "click", broken_click)

    result = _call(tools_factory(), "click_element", appName="Demo", elementIndex=0)

    assert result["error"]["code"] == "actuation_failed"


def test_unexpected_exception_becomes_internal_error(tools_factory, monkeypatch):
    tools = tools_factory()
    monkeypatch.setattr(tools.resolver, "list_applications", lambda: 1 / 0)

    result = _call(tools, "list_applications")

    assert result["error"]["code"] == "internal_error"
    assert "ZeroDivisionError" in result["error"]["message"]


def test_mouse_rejects_unknown_button(pointer):
    with pytest.raises(ActuationFailed):
        MouseController(pointer).click(10, 10, button="thumb")


def test_every_tool_spec_has_a_handler(tools_factory):
    dispatcher = build_dispatcher(tools_factory())

    assert all(dispatcher.get_handler(spec.name) for spec in TOOL_SPECS)
