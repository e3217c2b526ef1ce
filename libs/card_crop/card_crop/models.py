# CardLink_Crop/libs/card_crop/card_crop/models.py
from __future__ import annotations
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_FRAME_WIDTH_RATIO = 0.9
DEFAULT_FRAME_ASPECT = 0.6

GesturePhase = Literal["start", "active", "end"]


class ImageDimensions(BaseModel):
    """
    Native pixel resolution of the original (undisplayed) photo.

    Positivity is not enforced here; resolve_fit / resolve_crop_rect reject
    non-positive sizes with InvalidGeometry.
    """
    model_config = ConfigDict(frozen=True)

    width: int
    height: int


class ViewportRect(BaseModel):
    """
    On-screen box the image is drawn into ("contain" fit).

    (x, y) ----------
       |            |
       |  viewport  |
       ---------- (x + width, y + height)
    """
    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0
    width: float
    height: float

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2


class FrameRect(BaseModel):
    """Stationary crop frame, always centered inside the viewport."""
    model_config = ConfigDict(frozen=True)

    width: float
    height: float

    @classmethod
    def for_viewport(
        cls,
        viewport: ViewportRect,
        width_ratio: float = DEFAULT_FRAME_WIDTH_RATIO,
        aspect: float = DEFAULT_FRAME_ASPECT,
    ) -> "FrameRect":
        """
        Business-card frame: a fixed share of the viewport width, with the
        height derived from the card aspect (height / width).
        """
        width = viewport.width * width_ratio
        return cls(width=width, height=width * aspect)


class ViewTransform(BaseModel):
    """Immutable snapshot of the interactive pinch/pan transform."""
    model_config = ConfigDict(frozen=True)

    scale: float = 1.0
    translate_x: float = 0.0
    translate_y: float = 0.0

    @classmethod
    def identity(cls) -> "ViewTransform":
        return cls()


class GestureSnapshot(BaseModel):
    """Values captured once at gesture start; deltas are applied on top of these."""
    model_config = ConfigDict(frozen=True)

    start_scale: float = 1.0
    start_translate_x: float = 0.0
    start_translate_y: float = 0.0


class FitResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_scale: float
    display_width: float
    display_height: float
    top_left_x: float
    top_left_y: float


class CropRect(BaseModel):
    """
    Pixel rectangle in the original image (top-left origin + size).

    Always non-empty; resolve_crop_rect guarantees it lies inside the image.
    """
    model_config = ConfigDict(frozen=True)

    origin_x: int = Field(..., ge=0, description="Left")
    origin_y: int = Field(..., ge=0, description="Top")
    width: int = Field(..., ge=1)
    height: int = Field(..., ge=1)

    def to_box(self) -> tuple[int, int, int, int]:
        """(left, top, right, bottom) as expected by PIL's Image.crop."""
        return (
            self.origin_x,
            self.origin_y,
            self.origin_x + self.width,
            self.origin_y + self.height,
        )

    def fits(self, image: ImageDimensions) -> bool:
        return (
            self.origin_x + self.width <= image.width
            and self.origin_y + self.height <= image.height
        )


class PinchEvent(BaseModel):
    """
    One pinch callback. `scale` is the cumulative factor since the gesture
    started, `pointers` the number of fingers currently down.

    Accepts the touch layer's camelCase keys (`numberOfPointers`) as well as
    field names. Active events must say how many fingers are down.
    """
    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["pinch"] = "pinch"
    phase: GesturePhase
    scale: float = 1.0
    pointers: int | None = Field(default=None, ge=0, alias="numberOfPointers")

    @model_validator(mode="after")
    def _active_needs_pointers(self) -> "PinchEvent":
        if self.phase == "active" and self.pointers is None:
            raise ValueError("active pinch events must carry numberOfPointers")
        return self


class PanEvent(BaseModel):
    """One pan callback; translation is cumulative since the gesture started."""
    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["pan"] = "pan"
    phase: GesturePhase
    translation_x: float = Field(default=0.0, alias="translationX")
    translation_y: float = Field(default=0.0, alias="translationY")
