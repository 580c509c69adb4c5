"""
Template-to-page coordinate transform.

A scanned page is never pixel-identical to the template: printers and
scanners shift and stretch it a little. Comparing the QR anchor found on the
template with the one found on the scanned page gives an independent X/Y
scale and offset that maps every template rectangle onto the page.

Scan rotation is assumed to be negligible, so this is scale + translation
only, not a homography.
"""

from dataclasses import dataclass

from ..models import Point, Rect


@dataclass(frozen=True)
class Transform:
    scale_x: float = 1.0
    scale_y: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    @classmethod
    def identity(cls) -> "Transform":
        return cls()

    @classmethod
    def from_anchors(cls, template_anchor: Rect, page_anchor: Rect) -> "Transform":
        """Derive the transform that moves template_anchor onto page_anchor."""
        if template_anchor.w <= 0 or template_anchor.h <= 0:
            raise ValueError("template anchor must have a positive width and height")

        scale_x = page_anchor.w / template_anchor.w
        scale_y = page_anchor.h / template_anchor.h
        return cls(
            scale_x=scale_x,
            scale_y=scale_y,
            offset_x=page_anchor.x - template_anchor.x * scale_x,
            offset_y=page_anchor.y - template_anchor.y * scale_y,
        )

    @property
    def is_identity(self) -> bool:
        return (self.scale_x, self.scale_y, self.offset_x, self.offset_y) == (1.0, 1.0, 0.0, 0.0)

    def apply_rect(self, rect: Rect) -> Rect:
        return Rect(
            x=rect.x * self.scale_x + self.offset_x,
            y=rect.y * self.scale_y + self.offset_y,
            w=rect.w * self.scale_x,
            h=rect.h * self.scale_y,
        )

    def apply_point(self, x: float, y: float) -> Point:
        return Point(x=x * self.scale_x + self.offset_x, y=y * self.scale_y + self.offset_y)

    def to_dict(self) -> dict:
        return {
            "scale_x": self.scale_x,
            "scale_y": self.scale_y,
            "offset_x": self.offset_x,
            "offset_y": self.offset_y,
        }
