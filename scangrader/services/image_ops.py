"""
Image helpers for grading: cropping mapped regions, stitching tagged crops
into one OCR-friendly sheet, and base64 JPEG encoding.

Images are numpy BGR arrays (the OpenCV convention) everywhere except while
drawing the stitched sheet, which is done with Pillow.
"""

import base64
from typing import List, Tuple

import cv2  # type: ignore
import numpy as np  # type: ignore
from PIL import Image, ImageDraw, ImageFont

from ..models import Rect

STITCH_PADDING = 20
STITCH_LABEL_WIDTH = 40
TAG_FONT_SIZE = 20
BOLD_FONT_CANDIDATES = ("DejaVuSans-Bold.ttf", "Arial Bold.ttf", "arialbd.ttf")


def _clamp(v: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, v))


def crop(image: np.ndarray, rect: Rect) -> np.ndarray:
    """Cut the on-page part of rect out of image (at least 1x1)."""
    img_h, img_w = image.shape[:2]
    x0 = _clamp(int(round(rect.x)), 0, img_w - 1)
    y0 = _clamp(int(round(rect.y)), 0, img_h - 1)
    x1 = _clamp(int(round(rect.x + rect.w)), x0 + 1, img_w)
    y1 = _clamp(int(round(rect.y + rect.h)), y0 + 1, img_h)
    return image[y0:y1, x0:x1].copy()


def encode_jpeg_base64(image: np.ndarray, quality: int = 85) -> str:
    ok, buf = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise ValueError("could not encode image as JPEG")
    return base64.b64encode(buf.tobytes()).decode("utf-8")


def _tag_font():
    for name in BOLD_FONT_CANDIDATES:
        try:
            return ImageFont.truetype(name, TAG_FONT_SIZE)
        except OSError:
            continue
    return ImageFont.load_default(size=TAG_FONT_SIZE)


def stitch_tagged(crops: List[Tuple[str, np.ndarray]]) -> np.ndarray:
    """Stack crops vertically on a white sheet, each prefixed by "<tag>:".

    Layout, single column so the OCR reads tags in order:

        | pad | tag | crop ............ | pad |
    """
    if not crops:
        raise ValueError("nothing to stitch")

    max_w = max(img.shape[1] for _, img in crops)
    total_h = STITCH_PADDING + sum(img.shape[0] + STITCH_PADDING for _, img in crops)
    sheet = Image.new("RGB", (max_w + STITCH_LABEL_WIDTH + STITCH_PADDING * 2, total_h), (255, 255, 255))
    draw = ImageDraw.Draw(sheet)
    font = _tag_font()

    current_y = STITCH_PADDING
    for tag, img in crops:
        text = f"{tag}:"
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        text_y = current_y + img.shape[0] / 2 - (bottom - top) / 2 - top
        draw.text((STITCH_PADDING, text_y), text, fill=(0, 0, 0), font=font)

        rgb = cv2.cvtColor(img, cv2.COLOR_BGR2RGB) if img.ndim == 3 else cv2.cvtColor(img, cv2.COLOR_GRAY2RGB)
        sheet.paste(Image.fromarray(rgb), (STITCH_PADDING + STITCH_LABEL_WIDTH, current_y))
        current_y += img.shape[0] + STITCH_PADDING

    return cv2.cvtColor(np.asarray(sheet), cv2.COLOR_RGB2BGR)
