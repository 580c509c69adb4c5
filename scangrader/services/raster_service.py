"""
Scan rasterization: turns an uploaded PDF or image into page images.

PDF pages are rendered with PyMuPDF at RENDER_SCALE (2x by default, enough
resolution for OCR on handwriting). Image files are a single page.
"""

import logging
from pathlib import Path
from typing import Iterator, Optional, Union

import cv2  # type: ignore
import fitz  # PyMuPDF
import numpy as np  # type: ignore

from ..config import RENDER_SCALE, SUPPORTED_SCAN_TYPES

logger = logging.getLogger(__name__)


class RasterError(ValueError):
    """Raised when a scan file cannot be read."""


def _pixmap_to_bgr(pix) -> np.ndarray:
    arr = np.frombuffer(pix.samples, dtype=np.uint8).reshape(pix.height, pix.width, pix.n)
    if pix.n == 1:
        return cv2.cvtColor(arr, cv2.COLOR_GRAY2BGR)
    if pix.n == 4:
        return cv2.cvtColor(arr, cv2.COLOR_RGBA2BGR)
    return cv2.cvtColor(arr, cv2.COLOR_RGB2BGR)


def _is_pdf(data: bytes, filename: str) -> bool:
    return filename.lower().endswith(".pdf") or data[:5] == b"%PDF-"


def _read(source: Union[str, Path, bytes], filename: Optional[str]):
    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.exists():
            raise RasterError(f"scan file not found: {path}")
        return path.read_bytes(), filename or path.name
    return source, filename or ""


def _check_suffix(name: str) -> None:
    suffix = Path(name).suffix.lower()
    if suffix and suffix not in SUPPORTED_SCAN_TYPES:
        raise RasterError(f"unsupported scan type: {suffix}")


def count_pages(source: Union[str, Path, bytes], filename: Optional[str] = None) -> int:
    data, name = _read(source, filename)
    if not _is_pdf(data, name):
        _check_suffix(name)
        return 1
    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            return doc.page_count
    except (fitz.FileDataError, RuntimeError) as e:
        raise RasterError(f"could not open PDF {name}: {e}")


def render_pages(source: Union[str, Path, bytes], filename: Optional[str] = None,
                 scale: float = RENDER_SCALE) -> Iterator[np.ndarray]:
    """Yield one BGR image per page, in document order."""
    data, name = _read(source, filename)

    if _is_pdf(data, name):
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except (fitz.FileDataError, RuntimeError) as e:
            raise RasterError(f"could not open PDF {name}: {e}")
        with doc:
            matrix = fitz.Matrix(scale, scale)
            for page in doc:
                yield _pixmap_to_bgr(page.get_pixmap(matrix=matrix, alpha=False))
        return

    _check_suffix(name)
    try:
        image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    except cv2.error as e:
        raise RasterError(f"could not decode image {name}: {e}")
    if image is None:
        raise RasterError(f"could not decode image {name}")
    yield image


def render_page(source: Union[str, Path, bytes], page_index: int, filename: Optional[str] = None,
                scale: float = RENDER_SCALE) -> np.ndarray:
    """Render a single 1-based page."""
    for i, image in enumerate(render_pages(source, filename, scale), start=1):
        if i == page_index:
            return image
    raise RasterError(f"page {page_index} out of range")
