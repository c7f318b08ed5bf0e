"""
On-screen context capture.

Capture strategies are plain callables returning text or ``None``. They are
tried in priority order (typically accessibility text first, screenshot OCR
second) and the first non-empty result wins.
"""

import logging
from pathlib import Path
from typing import Callable, Optional, Sequence

from omnirag.retrieval.extractors import OcrEngine

logger = logging.getLogger(__name__)

CaptureStrategy = Callable[[], Optional[str]]


class ContextCapture:
    """
    Run capture strategies until one produces text.

    Example:
        >>> capture = ContextCapture([read_focused_window, ocr_strategy(grab_screen, engine)])
        >>> text = capture.capture()
    """

    def __init__(self, strategies: Sequence[CaptureStrategy]) -> None:
        self.strategies = list(strategies)

    def capture(self) -> Optional[str]:
        for strategy in self.strategies:
            name = getattr(strategy, "__name__", type(strategy).__name__)
            try:
                text = strategy()
            except Exception as e:
                logger.warning(f"Capture strategy {name} failed: {e}")
                continue
            if text and text.strip():
                logger.debug(f"Captured {len(text)} chars via {name}")
                return text
        logger.info("No capture strategy produced text")
        return None


def ocr_strategy(
    grab: Callable[[], Optional[Path]],
    engine: OcrEngine,
    min_confidence: float = 0.4,
) -> CaptureStrategy:
    """
    Build a strategy that OCRs a screenshot.

    Args:
        grab: Produces an image file of the screen, or None
        engine: OCR engine used on the image
        min_confidence: Recognitions at or below this are dropped
    """

    def capture_screenshot_text() -> Optional[str]:
        image = grab()
        if image is None:
            return None
        lines = [text for text, conf in engine.recognize(image) if conf > min_confidence]
        return "\n".join(lines) or None

    return capture_screenshot_text
