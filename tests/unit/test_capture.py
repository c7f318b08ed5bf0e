"""Unit tests for capture module."""

import logging

import pytest

from omnirag.capture import ContextCapture, ocr_strategy


@pytest.mark.unit
class TestContextCapture:
    """Tests for ContextCapture class."""

    def test_first_non_empty_wins(self):
        calls = []

        def accessibility():
            calls.append("accessibility")
            return "Focused window text"

        def screenshot():
            calls.append("screenshot")
            return "OCR text"

        assert ContextCapture([accessibility, screenshot]).capture() == "Focused window text"
        assert calls == ["accessibility"]

    def test_falls_through_empty_results(self):
        capture = ContextCapture([lambda: None, lambda: "   ", lambda: "fallback text"])
        assert capture.capture() == "fallback text"

    def test_exception_logged_and_skipped(self, caplog):
        def broken():
            raise PermissionError("accessibility not granted")

        with caplog.at_level(logging.WARNING, logger="omnirag.capture"):
            assert ContextCapture([broken, lambda: "from OCR"]).capture() == "from OCR"

        assert "accessibility not granted" in caplog.text

    def test_nothing_captured(self):
        assert ContextCapture([lambda: None]).capture() is None
        assert ContextCapture([]).capture() is None


@pytest.mark.unit
class TestOcrStrategy:
    """Tests for ocr_strategy function."""

    def test_filters_by_confidence(self, make_ocr, tmp_path):
        image = tmp_path / "screen.png"
        engine = make_ocr([("Title bar", 0.9), ("noise", 0.2), ("Body text", 0.7)])

        strategy = ocr_strategy(lambda: image, engine, min_confidence=0.4)

        assert strategy() == "Title bar\nBody text"
        assert engine.calls == [image]

    def test_no_screenshot(self, make_ocr):
        assert ocr_strategy(lambda: None, make_ocr())() is None

    def test_nothing_recognized(self, make_ocr, tmp_path):
        strategy = ocr_strategy(lambda: tmp_path / "s.png", make_ocr([("faint", 0.1)]))
        assert strategy() is None
