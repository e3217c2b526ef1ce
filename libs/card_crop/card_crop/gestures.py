# CardLink_Crop/libs/card_crop/card_crop/gestures.py
from __future__ import annotations
import logging
import math

from .models import GestureSnapshot, PanEvent, PinchEvent, ViewTransform

log = logging.getLogger("cardcrop.gestures")

# Lowest scale a pinch may reach. Keeps base_scale * scale > 0 so a confirm
# right after an aggressive pinch-out still resolves.
MIN_SCALE = 0.05


class ViewTransformState:
    """
    Live scale/translate values driven by gestures.

    Only GestureSessionController writes to it; readers take snapshot() so
    they never see a half-updated transform.
    """
    def __init__(self, scale: float = 1.0, translate_x: float = 0.0, translate_y: float = 0.0):
        self.scale = scale
        self.translate_x = translate_x
        self.translate_y = translate_y

    def snapshot(self) -> ViewTransform:
        return ViewTransform(scale=self.scale, translate_x=self.translate_x, translate_y=self.translate_y)

    def reset(self) -> None:
        self.scale = 1.0
        self.translate_x = 0.0
        self.translate_y = 0.0

    def __repr__(self) -> str:
        return (
            f"ViewTransformState(scale={self.scale!r}, "
            f"translate_x={self.translate_x!r}, translate_y={self.translate_y!r})"
        )


class GestureSessionController:
    """
    Turns pinch/pan callbacks (start -> active* -> end) into state updates.

    Each session snapshots the state once at start; every active event is
    applied as snapshot + cumulative delta, so replayed or dropped
    intermediate events never drift the result. Pinch and pan may run at the
    same time: pinch writes scale, pan writes translation.
    """
    def __init__(self, state: ViewTransformState | None = None, min_scale: float = MIN_SCALE):
        self.state = state if state is not None else ViewTransformState()
        self.min_scale = min_scale
        self._pinch: GestureSnapshot | None = None
        self._pan: GestureSnapshot | None = None

    @property
    def phase(self) -> str:
        if self._pinch is not None and self._pan is not None:
            return "pinch+pan"
        if self._pinch is not None:
            return "pinch"
        if self._pan is not None:
            return "pan"
        return "idle"

    @property
    def pinch_active(self) -> bool:
        return self._pinch is not None

    @property
    def pan_active(self) -> bool:
        return self._pan is not None

    def handle(self, event: PinchEvent | PanEvent) -> ViewTransform:
        if isinstance(event, PinchEvent):
            return self.handle_pinch(event)
        return self.handle_pan(event)

    def handle_pinch(self, event: PinchEvent) -> ViewTransform:
        if event.phase == "start":
            self._pinch = GestureSnapshot(
                start_scale=self.state.scale,
                start_translate_x=self.state.translate_x,
                start_translate_y=self.state.translate_y,
            )
            log.debug("pinch start at scale=%s", self.state.scale)
            return self.state.snapshot()

        if self._pinch is None:
            log.debug("pinch %s without a session; ignored", event.phase)
            return self.state.snapshot()

        if event.phase == "end":
            self._pinch = None
            log.debug("pinch end, committed scale=%s", self.state.scale)
        else:
            self._apply_pinch(event)
        return self.state.snapshot()

    def handle_pan(self, event: PanEvent) -> ViewTransform:
        if event.phase == "start":
            self._pan = GestureSnapshot(
                start_scale=self.state.scale,
                start_translate_x=self.state.translate_x,
                start_translate_y=self.state.translate_y,
            )
            log.debug("pan start at (%s, %s)", self.state.translate_x, self.state.translate_y)
            return self.state.snapshot()

        if self._pan is None:
            log.debug("pan %s without a session; ignored", event.phase)
            return self.state.snapshot()

        if event.phase == "end":
            self._pan = None
            log.debug("pan end, committed (%s, %s)", self.state.translate_x, self.state.translate_y)
        elif math.isfinite(event.translation_x) and math.isfinite(event.translation_y):
            self.state.translate_x = self._pan.start_translate_x + event.translation_x
            self.state.translate_y = self._pan.start_translate_y + event.translation_y
        return self.state.snapshot()

    def invalidate(self) -> None:
        """Drop in-flight sessions (e.g. after a viewport re-measure); committed values stay."""
        if self._pinch is not None or self._pan is not None:
            log.debug("invalidating in-flight gestures (%s)", self.phase)
        self._pinch = None
        self._pan = None

    def _apply_pinch(self, event: PinchEvent) -> None:
        # a single finger cannot pinch; such events are noise from the recognizer
        if (event.pointers or 0) < 2:
            return
        if not math.isfinite(event.scale) or event.scale <= 0:
            log.debug("ignoring pinch factor %s", event.scale)
            return
        self.state.scale = max(self._pinch.start_scale * event.scale, self.min_scale)
