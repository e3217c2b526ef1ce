# CardLink_Crop/libs/card_crop/card_crop/crop_rect.py
from __future__ import annotations
import math

from .errors import InvalidGeometry
from .fit import resolve_fit
from .models import CropRect, FitResult, FrameRect, ImageDimensions, ViewportRect, ViewTransform

# Values such as 75.99999999999999 come out of the float mapping when the exact
# answer is an integer; nudge before flooring so they land on 76.
FLOOR_TOLERANCE = 1e-6


def _floor_clamped(value: float, lo: int, hi: int) -> int:
    """floor(value) limited to [lo, hi]; infinities clamp, NaN is rejected."""
    if math.isnan(value):
        raise InvalidGeometry("crop mapping produced NaN")
    value += FLOOR_TOLERANCE
    if value >= hi:
        return hi
    if value < lo:
        return lo
    return math.floor(value)


def frame_origin(viewport: ViewportRect, frame: FrameRect) -> tuple[float, float]:
    """Top-left of the frame, centered inside the viewport."""
    return (
        viewport.x + (viewport.width - frame.width) / 2,
        viewport.y + (viewport.height - frame.height) / 2,
    )


def display_top_left(fit: FitResult, viewport: ViewportRect, transform: ViewTransform) -> tuple[float, float]:
    """
    Where the fitted image's top-left corner is drawn after pinch + pan.

    Scaling is anchored at the viewport center c, so a point p moves to
    c + s * (p - c) = p * s + (1 - s) * c; the pan is added afterwards.
    """
    center_x, center_y = viewport.center
    s = transform.scale
    return (
        fit.top_left_x * s + (1 - s) * center_x + transform.translate_x,
        fit.top_left_y * s + (1 - s) * center_y + transform.translate_y,
    )


def resolve_crop_rect(
    image: ImageDimensions,
    viewport: ViewportRect,
    frame: FrameRect,
    transform: ViewTransform,
) -> CropRect:
    """
    Map the on-screen crop frame back to a pixel rectangle of the original image.

    Pure and deterministic. The result is floored to whole pixels and clamped
    so it always lies inside the image and is at least 1x1, even when the
    frame covers area outside the photo.

    Raises InvalidGeometry for non-positive image/viewport/frame sizes or a
    non-positive effective scale.
    """
    fit = resolve_fit(image, viewport)

    if not (math.isfinite(frame.width) and math.isfinite(frame.height)) or frame.width <= 0 or frame.height <= 0:
        raise InvalidGeometry(f"frame dimensions must be positive, got {frame.width}x{frame.height}")
    if not (math.isfinite(transform.translate_x) and math.isfinite(transform.translate_y)):
        raise InvalidGeometry(
            f"translation must be finite, got ({transform.translate_x}, {transform.translate_y})"
        )

    effective_scale = fit.base_scale * transform.scale
    if not math.isfinite(effective_scale) or effective_scale <= 0:
        raise InvalidGeometry(f"effective scale must be positive, got {effective_scale}")

    left, top = display_top_left(fit, viewport, transform)
    frame_x, frame_y = frame_origin(viewport, frame)

    # display units -> original pixels
    origin_x = (frame_x - left) / effective_scale
    origin_y = (frame_y - top) / effective_scale
    width = frame.width / effective_scale
    height = frame.height / effective_scale

    # origin first, then size against the clamped origin
    ox = _floor_clamped(origin_x, 0, image.width - 1)
    oy = _floor_clamped(origin_y, 0, image.height - 1)
    w = _floor_clamped(width, 1, image.width - ox)
    h = _floor_clamped(height, 1, image.height - oy)

    return CropRect(origin_x=ox, origin_y=oy, width=w, height=h)
