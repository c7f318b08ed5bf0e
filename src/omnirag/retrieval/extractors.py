"""
Content extraction for text, PDF and image files.

Text-like files are read verbatim, PDFs are read page by page with pypdf,
and images are handed to an OCR engine whose recognitions are filtered by
confidence. Anything that cannot produce text raises UnreadableFile.
"""

import logging
from pathlib import Path
from typing import Optional, Protocol

from pypdf import PdfReader

from omnirag.errors import UnreadableFile
from omnirag.retrieval.access import AccessBroker, scoped_access

logger = logging.getLogger(__name__)


TEXT_EXTENSIONS = frozenset(
    {
        "txt", "md", "markdown", "rst", "html", "htm", "rtf", "log",
        "json", "xml", "yml", "yaml", "toml", "ini", "csv", "tsv",
        "swift", "py", "js", "ts", "css", "java", "c", "h", "cpp", "hpp",
        "cs", "go", "rb", "php", "rs", "kt", "sh", "sql",
    }
)
PDF_EXTENSIONS = frozenset({"pdf"})
IMAGE_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "tif", "tiff", "bmp", "gif", "heic"})

PAGE_SEPARATOR = "\n\n"
RECOGNITION_SEPARATOR = "\n\n"


def file_extension(path: Path) -> str:
    """Lower-case extension without the leading dot."""
    return path.suffix.lower().lstrip(".")


def is_supported(path: Path) -> bool:
    ext = file_extension(path)
    return ext in TEXT_EXTENSIONS or ext in PDF_EXTENSIONS or ext in IMAGE_EXTENSIONS


class OcrEngine(Protocol):
    """External OCR collaborator."""

    def recognize(self, image_path: Path) -> list[tuple[str, float]]:
        """Return (text, confidence) pairs in reading order."""
        ...


class RapidOcrEngine:
    """
    OCR backed by RapidOCR (ONNX Runtime).

    The model is loaded on first use. Install with ``pip install omnirag[ocr]``.
    """

    def __init__(self) -> None:
        self._engine = None

    def _load(self):
        if self._engine is None:
            from rapidocr_onnxruntime import RapidOCR

            self._engine = RapidOCR()
        return self._engine

    def recognize(self, image_path: Path) -> list[tuple[str, float]]:
        engine = self._load()
        # RapidOCR returns (result, elapsed); result rows are [box, text, score]
        result, _ = engine(str(image_path))
        if not result:
            return []

        recognitions: list[tuple[str, float]] = []
        for item in result:
            if not item or len(item) < 3:
                continue
            recognitions.append((str(item[1]), float(item[2])))
        return recognitions


class ContentExtractor:
    """
    Convert a file into raw text.

    Example:
        >>> extractor = ContentExtractor(ocr=RapidOcrEngine())
        >>> text = extractor.extract(Path("notes/meeting.pdf"))
    """

    def __init__(
        self,
        ocr: Optional[OcrEngine] = None,
        broker: Optional[AccessBroker] = None,
        min_confidence: float = 0.4,
        scratch_dir: Optional[Path] = None,
    ) -> None:
        """
        Initialize the extractor.

        Args:
            ocr: Engine used for image files; images are unreadable without one
            broker: Access broker bracketing reads outside scratch storage
            min_confidence: OCR recognitions must score strictly above this
            scratch_dir: Override for the temporary directory (tests)
        """
        self.ocr = ocr
        self.broker = broker
        self.min_confidence = min_confidence
        self.scratch_dir = scratch_dir

    def extract(self, path: Path) -> str:
        """
        Extract text from a file.

        Args:
            path: File to read

        Returns:
            Extracted text (never empty for PDFs and images)

        Raises:
            UnreadableFile: Unsupported type, unreadable bytes, no PDF text,
                or no OCR recognition above the confidence threshold
        """
        path = Path(path)
        ext = file_extension(path)

        if ext in TEXT_EXTENSIONS:
            reader = self._read_text
        elif ext in PDF_EXTENSIONS:
            reader = self._read_pdf
        elif ext in IMAGE_EXTENSIONS:
            reader = self._read_image
        else:
            raise UnreadableFile(str(path), f"unsupported file type '.{ext}'")

        with scoped_access(path, self.broker, self.scratch_dir) as granted:
            if not granted:
                raise UnreadableFile(str(path), "access denied")
            return reader(path)

    def _read_text(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise UnreadableFile(str(path), str(e)) from e

    def _read_pdf(self, path: Path) -> str:
        try:
            reader = PdfReader(str(path))
            pages = [page.extract_text() or "" for page in reader.pages]
        except Exception as e:
            # pypdf raises ValueError, KeyError or AttributeError on malformed objects
            raise UnreadableFile(str(path), f"invalid PDF: {e}") from e

        text = PAGE_SEPARATOR.join(p for p in pages if p.strip())
        if not text:
            raise UnreadableFile(str(path), "PDF contains no extractable text")

        logger.debug(f"Extracted {len(pages)} pages from {path.name}")
        return text

    def _read_image(self, path: Path) -> str:
        if self.ocr is None:
            raise UnreadableFile(str(path), "no OCR engine configured")

        try:
            recognitions = self.ocr.recognize(path)
        except ImportError as e:
            raise UnreadableFile(str(path), "OCR support not installed (pip install omnirag[ocr])") from e
        except Exception as e:
            raise UnreadableFile(str(path), f"OCR failed: {e}") from e

        kept = [
            text.strip()
            for text, confidence in recognitions
            if confidence > self.min_confidence and text.strip()
        ]
        if not kept:
            raise UnreadableFile(str(path), "no text recognized above confidence threshold")

        logger.debug(f"OCR kept {len(kept)}/{len(recognitions)} recognitions for {path.name}")
        return RECOGNITION_SEPARATOR.join(kept)
