"""
Test: Cropping, tagged stitching and JPEG encoding.
"""
import base64

import numpy as np

from scangrader.models import Rect
from scangrader.services.image_ops import (
    STITCH_LABEL_WIDTH, STITCH_PADDING, crop, encode_jpeg_base64, stitch_tagged,
)


class TestCrop:
    def test_inside(self, blank_page):
        assert crop(blank_page, Rect(10, 20, 30, 40)).shape == (40, 30, 3)

    def test_clamped_to_page(self, blank_page):
        assert crop(blank_page, Rect(580, 790, 100, 100)).shape == (10, 20, 3)

    def test_outside_page_is_one_pixel(self, blank_page):
        assert crop(blank_page, Rect(5000, 5000, 10, 10)).shape == (1, 1, 3)

    def test_negative_origin_keeps_only_on_page_part(self, blank_page):
        page = blank_page.copy()
        page[:, 20:] = 0
        piece = crop(page, Rect(-20, 0, 40, 10))
        assert piece.shape == (10, 20, 3)
        assert (piece == 255).all()

    def test_region_above_page(self, blank_page):
        assert crop(blank_page, Rect(100, -30, 50, 40)).shape == (10, 50, 3)

    def test_region_entirely_left_of_page(self, blank_page):
        assert crop(blank_page, Rect(-50, 0, 10, 10)).shape == (10, 1, 3)

    def test_returns_copy(self, blank_page):
        piece = crop(blank_page, Rect(0, 0, 5, 5))
        piece[:] = 0
        assert blank_page[0, 0, 0] == 255


class TestStitchTagged:
    def test_sheet_size(self):
        crops = [("Q1", np.zeros((30, 100, 3), np.uint8)), ("Q2", np.zeros((50, 80, 3), np.uint8))]
        sheet = stitch_tagged(crops)
        assert sheet.shape == (
            STITCH_PADDING + 30 + STITCH_PADDING + 50 + STITCH_PADDING,
            100 + STITCH_LABEL_WIDTH + 2 * STITCH_PADDING,
            3,
        )

    def test_crop_pasted_after_label(self):
        sheet = stitch_tagged([("Q1", np.zeros((30, 100, 3), np.uint8))])
        x = STITCH_PADDING + STITCH_LABEL_WIDTH
        assert sheet[STITCH_PADDING + 5, x + 5].tolist() == [0, 0, 0]
        # right margin stays white
        assert sheet[STITCH_PADDING + 5, x + 100 + 5].tolist() == [255, 255, 255]


class TestEncode:
    def test_jpeg_base64(self, blank_page):
        data = base64.b64decode(encode_jpeg_base64(blank_page, quality=82))
        assert data[:2] == b"\xff\xd8"
