import subprocess

import pytest
import pytesseract
from PIL import Image, ImageDraw

from desktop_eyes.config import DetectionSettings
from desktop_eyes.contracts.elements import DetectionMethod, ElementKind
from desktop_eyes.detectors.ocr import OcrDetector, suggest_action
from desktop_eyes.vision.ocr import OcrBox, preprocess_image


def _missing(image):
    raise pytesseract.TesseractNotFoundError()


def _binary_missing(image):
    raise FileNotFoundError("tesseract")


@pytest.fixture
def screenshot():
    img = Image.new("RGB", (400, 200), "white")
    ImageDraw.Draw(img).rectangle((10, 10, 60, 30), fill="black")
    return img


def test_word_boxes_are_preferred(frame, screenshot):
    lines_called = []
    detector = OcrDetector(
        DetectionSettings(),
        word_reader=lambda image: [
            OcrBox(text="Save", x=180, y=90, width=40, height=20, conf=91.0),
            OcrBox(text="", x=0, y=0, width=5, height=5, conf=50.0),
            OcrBox(text="noise", x=0, y=0, width=5, height=5, conf=-1.0),
        ],
        line_reader=lambda image: lines_called.append(True) or ["unused"],
    )

    result = detector.detect("Demo", frame, screenshot)

    assert lines_called == []
    assert [e.label for e in result.elements] == ["Save"]
    save = result.elements[0]
    assert save.kind is ElementKind.BUTTON and save.clickable
    assert save.confidence == 0.9
    assert save.source is DetectionMethod.OCR
    assert (save.normalized.x, save.normalized.y) == (0.5, 0.5)
    assert result.suggested_actions == ('Click "Save" button at (0.500, 0.500)',)


def test_binary_lines_used_when_engine_module_missing(frame, screenshot):
    detector = OcrDetector(
        DetectionSettings(),
        word_reader=_missing,
        line_reader=lambda image: ["Sign in to continue", "Preferences"],
    )

    result = detector.detect("Demo", frame, screenshot)

    first, second = result.elements
    assert first.confidence == 0.8
    assert (first.bounds.x, first.bounds.y, first.bounds.width, first.bounds.height) == (50, 50, 190, 25)
    assert (second.bounds.y, second.normalized.x) == (80, 0.1)
    assert second.normalized.y == pytest.approx(0.15)
    assert result.suggested_actions[0].startswith('Click "Login" button')
    assert result.suggested_actions[1].startswith('Click "Settings" button')


def test_pattern_guess_when_no_engine_available(frame, screenshot):
    detector = OcrDetector(DetectionSettings(), word_reader=_missing, line_reader=_binary_missing)

    result = detector.detect("Demo", frame, screenshot)

    labels = [e.label for e in result.elements]
    assert labels == ["Update Available", "Settings", "OK", "Cancel", "Save", "Login", "Submit", "Next", "Previous", "Close"]
    assert all(e.confidence == 0.7 for e in result.elements)
    ok = result.elements[2]
    assert ok.normalized.x == pytest.approx(0.5)
    assert ok.normalized.y == pytest.approx(0.825)
    assert ok.bounds.x == pytest.approx(frame.width * 0.45)


def test_empty_word_result_falls_to_binary(frame, screenshot):
    detector = OcrDetector(DetectionSettings(), word_reader=lambda image: [], line_reader=lambda image: ["OK"])

    result = detector.detect("Demo", frame, screenshot)

    assert [e.confidence for e in result.elements] == [0.8]


def _missing_language(image):
    raise pytesseract.TesseractError(1, "Failed loading language 'eng'")


def _cli_timeout(image):
    raise subprocess.TimeoutExpired(["tesseract"], 30)


def test_engine_error_falls_through_to_binary_lines(frame, screenshot):
    detector = OcrDetector(DetectionSettings(), word_reader=_missing_language, line_reader=lambda image: ["OK"])

    result = detector.detect("Demo", frame, screenshot)

    assert [(e.label, e.confidence) for e in result.elements] == [("OK", 0.8)]


def test_binary_timeout_falls_through_to_patterns(frame, screenshot):
    detector = OcrDetector(DetectionSettings(), word_reader=lambda image: [], line_reader=_cli_timeout)

    result = detector.detect("Demo", frame, screenshot)

    assert len(result.elements) == 10
    assert all(e.confidence == 0.7 for e in result.elements)


def test_forced_ocr_survives_engine_errors(pipeline_factory, session, frame):
    detector = OcrDetector(DetectionSettings(), word_reader=_missing_language, line_reader=_cli_timeout)
    pipeline = pipeline_factory([detector])

    outcome = pipeline.run(session, "demo", method="ocr")

    assert outcome.chosen_method is DetectionMethod.OCR
    assert outcome.elements[0].label == "Update Available"


def test_suggest_action_falls_back_to_raw_text(element_factory):
    element = element_factory("Download report", 0.25, 0.75, method=DetectionMethod.OCR)

    assert suggest_action(element) == 'Click "Download report" at (0.250, 0.750)'


def test_preprocess_produces_grayscale(screenshot):
    processed = preprocess_image(screenshot)

    assert processed.mode == "L"
    assert processed.size == screenshot.size
