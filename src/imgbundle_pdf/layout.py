"""Per-image page layout planning: scale and orientation on a fixed page."""

from __future__ import annotations

import enum
from dataclasses import dataclass

MM_PER_INCH = 25.4

DEFAULT_PAGE_WIDTH_MM = 210.0
DEFAULT_PAGE_HEIGHT_MM = 297.0
DEFAULT_MARGIN_MM = 10.0
DEFAULT_DPI = 300.0


def px_to_mm(px: int, dpi: float) -> float:
    """Convert a pixel length to millimeters at *dpi*."""
    return px / dpi * MM_PER_INCH


class Rotation(enum.Enum):
    NONE = 0
    CLOCKWISE_90 = 90


@dataclass(frozen=True)
class PageGeometry:
    """Physical page size, per-side margin and the assumed image DPI (mm)."""

    page_width: float = DEFAULT_PAGE_WIDTH_MM
    page_height: float = DEFAULT_PAGE_HEIGHT_MM
    margin: float = DEFAULT_MARGIN_MM
    dpi: float = DEFAULT_DPI

    def __post_init__(self) -> None:
        if self.dpi <= 0:
            raise ValueError(f"dpi must be positive, got {self.dpi}")
        if self.margin < 0:
            raise ValueError(f"margin must not be negative, got {self.margin}")
        if self.usable_width <= 0 or self.usable_height <= 0:
            raise ValueError(
                f"margin {self.margin}mm leaves no usable area on a "
                f"{self.page_width}x{self.page_height}mm page"
            )

    @property
    def usable_width(self) -> float:
        return self.page_width - 2 * self.margin

    @property
    def usable_height(self) -> float:
        return self.page_height - 2 * self.margin


@dataclass(frozen=True)
class PageLayoutDecision:
    """Scale and rotation chosen for one image."""

    scale: float
    rotation: Rotation
    dpi: float
    page_width: float
    page_height: float

    @property
    def rotated(self) -> bool:
        return self.rotation is Rotation.CLOCKWISE_90


def plan_page_layout(
    width_px: int,
    height_px: int,
    geometry: PageGeometry,
) -> PageLayoutDecision:
    """Pick the orientation that lets the image be drawn largest.

    Both orientations are scored by the largest uniform scale that fits the
    usable area. Rotation wins only when strictly better; the 1.0 cap is
    applied after the orientation is chosen, so images are never enlarged.
    """
    w_mm = px_to_mm(width_px, geometry.dpi)
    h_mm = px_to_mm(height_px, geometry.dpi)
    usable_w = geometry.usable_width
    usable_h = geometry.usable_height

    scale_unrotated = min(usable_w / w_mm, usable_h / h_mm)
    scale_rotated = min(usable_w / h_mm, usable_h / w_mm)

    if scale_rotated > scale_unrotated:
        scale, rotation = min(scale_rotated, 1.0), Rotation.CLOCKWISE_90
    else:
        scale, rotation = min(scale_unrotated, 1.0), Rotation.NONE

    return PageLayoutDecision(
        scale=scale,
        rotation=rotation,
        dpi=geometry.dpi,
        page_width=geometry.page_width,
        page_height=geometry.page_height,
    )
