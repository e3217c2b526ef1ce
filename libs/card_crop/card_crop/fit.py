# CardLink_Crop/libs/card_crop/card_crop/fit.py
from __future__ import annotations
import math

from .errors import InvalidGeometry
from .models import FitResult, ImageDimensions, ViewportRect


def _positive(value: float) -> bool:
    return math.isfinite(value) and value > 0


def resolve_fit(image: ImageDimensions, viewport: ViewportRect) -> FitResult:
    """
    "Contain" placement of `image` inside `viewport`.

    The image is scaled by the largest factor that keeps it fully visible and
    centered in the viewport. Returned coordinates are in viewport (screen)
    space, before any pinch/pan transform.

    Raises InvalidGeometry if any dimension is not strictly positive.
    """
    if not (_positive(image.width) and _positive(image.height)):
        raise InvalidGeometry(f"image dimensions must be positive, got {image.width}x{image.height}")
    if not (_positive(viewport.width) and _positive(viewport.height)):
        raise InvalidGeometry(
            f"viewport dimensions must be positive, got {viewport.width}x{viewport.height}"
        )
    if not (math.isfinite(viewport.x) and math.isfinite(viewport.y)):
        raise InvalidGeometry(f"viewport origin must be finite, got ({viewport.x}, {viewport.y})")

    base_scale = min(viewport.width / image.width, viewport.height / image.height)
    display_width = image.width * base_scale
    display_height = image.height * base_scale
    return FitResult(
        base_scale=base_scale,
        display_width=display_width,
        display_height=display_height,
        top_left_x=viewport.x + (viewport.width - display_width) / 2,
        top_left_y=viewport.y + (viewport.height - display_height) / 2,
    )
