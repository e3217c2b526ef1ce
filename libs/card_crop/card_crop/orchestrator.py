# CardLink_Crop/libs/card_crop/card_crop/orchestrator.py
from __future__ import annotations
import logging
import threading
from typing import Protocol

from pydantic import BaseModel

from .crop_rect import resolve_crop_rect
from .errors import CropInProgress, CropPipelineError
from .gestures import MIN_SCALE, GestureSessionController, ViewTransformState
from .models import (
    DEFAULT_FRAME_ASPECT,
    DEFAULT_FRAME_WIDTH_RATIO,
    CropRect,
    FrameRect,
    ImageDimensions,
    PanEvent,
    PinchEvent,
    ViewportRect,
    ViewTransform,
)

log = logging.getLogger("cardcrop.orchestrator")


class ImageDecoder(Protocol):
    def dimensions(self, handle: str) -> ImageDimensions:
        ...


class ImageCropper(Protocol):
    def crop(self, handle: str, rect: CropRect) -> str:
        ...

    def discard(self, handle: str) -> None:
        ...


class Uploader(Protocol):
    def upload(self, handle: str) -> str:
        ...


class CropOutcome(BaseModel):
    crop_rect: CropRect
    cropped_handle: str
    url: str


class CropSession:
    """
    One interactive crop of one photo: the gesture-driven transform plus the
    last viewport measurement and the frame derived from it.

    Layout passes arrive through remeasure(); the orchestrator reads viewport,
    frame and transform together through capture().
    """
    def __init__(
        self,
        image_handle: str,
        viewport: ViewportRect | None = None,
        frame_width_ratio: float = DEFAULT_FRAME_WIDTH_RATIO,
        frame_aspect: float = DEFAULT_FRAME_ASPECT,
        min_scale: float = MIN_SCALE,
    ):
        self.image_handle = image_handle
        self.frame_width_ratio = frame_width_ratio
        self.frame_aspect = frame_aspect
        self.state = ViewTransformState()
        self.gestures = GestureSessionController(self.state, min_scale=min_scale)
        self.viewport: ViewportRect | None = None
        self.frame: FrameRect | None = None
        self._lock = threading.Lock()
        if viewport is not None:
            self.remeasure(viewport)

    def remeasure(self, viewport: ViewportRect) -> None:
        """
        New layout pass (first layout, rotation, resize). Viewport and frame
        are replaced together and any in-flight gesture is dropped.
        """
        frame = FrameRect.for_viewport(viewport, self.frame_width_ratio, self.frame_aspect)
        with self._lock:
            self.viewport = viewport
            self.frame = frame
            self.gestures.invalidate()

    def apply(self, event: PinchEvent | PanEvent) -> ViewTransform:
        with self._lock:
            return self.gestures.handle(event)

    @property
    def transform(self) -> ViewTransform:
        with self._lock:
            return self.state.snapshot()

    def capture(self) -> tuple[ViewportRect | None, FrameRect | None, ViewTransform]:
        """Viewport, frame and transform read together, never across a gesture update."""
        with self._lock:
            return self.viewport, self.frame, self.state.snapshot()

    def resolve(self, image: ImageDimensions) -> CropRect:
        viewport, frame, transform = self.capture()
        if viewport is None or frame is None:
            raise CropPipelineError("viewport has not been measured yet")
        return resolve_crop_rect(image, viewport, frame, transform)


class CropOrchestrator:
    """
    Confirm pipeline: measure -> read dimensions -> resolve rect -> crop -> upload.

    Geometry errors (InvalidGeometry) propagate unchanged so the caller can
    re-measure; collaborator failures are logged and wrapped in CropPipelineError.
    """
    def __init__(self, decoder: ImageDecoder, cropper: ImageCropper, uploader: Uploader):
        self.decoder = decoder
        self.cropper = cropper
        self.uploader = uploader
        self._busy = threading.Lock()

    @property
    def processing(self) -> bool:
        return self._busy.locked()

    def confirm(self, session: CropSession) -> CropOutcome | None:
        if not self._busy.acquire(blocking=False):
            raise CropInProgress("a crop is already being processed")
        try:
            return self._confirm(session)
        finally:
            self._busy.release()

    def _confirm(self, session: CropSession) -> CropOutcome | None:
        viewport, frame, transform = session.capture()
        if viewport is None or frame is None:
            log.warning("confirm ignored: no layout measured for %s", session.image_handle)
            return None

        try:
            image = self.decoder.dimensions(session.image_handle)
        except Exception as e:
            log.exception(f"reading dimensions failed: {session.image_handle}")
            raise CropPipelineError(f"could not read image dimensions: {e}") from e

        rect = resolve_crop_rect(image, viewport, frame, transform)
        log.info(
            "crop %s: image=%dx%d scale=%.4f translate=(%.1f, %.1f) -> %s",
            session.image_handle, image.width, image.height,
            transform.scale, transform.translate_x, transform.translate_y, rect.to_box(),
        )

        try:
            cropped = self.cropper.crop(session.image_handle, rect)
        except Exception as e:
            log.exception(f"crop failed: {session.image_handle}")
            raise CropPipelineError(f"crop failed: {e}") from e

        try:
            url = self.uploader.upload(cropped)
        except Exception as e:
            log.exception(f"upload failed: {cropped}")
            self.cropper.discard(cropped)
            raise CropPipelineError(f"upload failed: {e}") from e

        return CropOutcome(crop_rect=rect, cropped_handle=cropped, url=url)
