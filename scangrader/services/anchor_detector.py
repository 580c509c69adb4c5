"""
QR Anchor Detection
===================
Finds the QR code printed on every answer sheet. The same detector runs on
the template page (to record where the anchor sits) and on every scanned
page (to compute the page transform and read the student identity).

The scanner reports four corner points; the bounding box is taken over all
four so a slightly rotated code still yields a sensible box.
"""

import logging
from typing import Callable, Optional, Sequence, Tuple

import cv2  # type: ignore
import numpy as np  # type: ignore

from ..models import AnchorGeometry, Rect

logger = logging.getLogger(__name__)

# scanner(image) -> (decoded_text, corners) or None when nothing was found
Scanner = Callable[[np.ndarray], Optional[Tuple[str, Sequence[Sequence[float]]]]]


def bounding_rect(corners) -> Rect:
    """Axis-aligned box over every corner point."""
    pts = np.asarray(corners, dtype=np.float32).reshape(-1, 2)
    min_x, min_y = pts.min(axis=0)
    max_x, max_y = pts.max(axis=0)
    return Rect(x=float(min_x), y=float(min_y), w=float(max_x - min_x), h=float(max_y - min_y))


def opencv_qr_scanner(image: np.ndarray):
    detector = cv2.QRCodeDetector()
    data, points, _ = detector.detectAndDecode(image)
    if points is None or len(points) == 0:
        return None
    return data or "", points


class AnchorDetector:
    """Locates the QR anchor on a page image.

    Usage:
        detector = AnchorDetector()
        anchor = detector.scan(page_bgr)
        if anchor and anchor.has_payload:
            ...
    """

    def __init__(self, scanner: Optional[Scanner] = None):
        self.scanner = scanner or opencv_qr_scanner

    def scan(self, image) -> Optional[AnchorGeometry]:
        if image is None or getattr(image, "size", 0) == 0:
            return None

        try:
            found = self.scanner(image)
        except Exception as e:
            logger.warning("QR scan failed: %s", e)
            return None

        if not found:
            return None

        payload, corners = found
        rect = bounding_rect(corners)
        if not rect.is_mapped:
            return None
        return AnchorGeometry(rect=rect, payload=payload or None)
