# CardLink_Crop/libs/card_crop/card_crop/json_adapter.py
from __future__ import annotations
from typing import Iterable

from .models import CropRect, PanEvent, PinchEvent, ViewTransform


def crop_rect_to_json(rect: CropRect) -> dict:
    return {
        "originX": rect.origin_x,
        "originY": rect.origin_y,
        "width": rect.width,
        "height": rect.height,
    }


def transform_to_json(t: ViewTransform) -> dict:
    return {"scale": t.scale, "translateX": t.translate_x, "translateY": t.translate_y}


def event_from_json(d: dict) -> PinchEvent | PanEvent:
    """
    Accepts one gesture callback as delivered by the touch layer:
      {"kind": "pinch", "phase": "active", "scale": 1.4, "numberOfPointers": 2}
      {"kind": "pan", "phase": "active", "translationX": 12, "translationY": -3}
    snake_case field names are accepted as well. Malformed events raise
    pydantic.ValidationError (a ValueError).
    """
    if not isinstance(d, dict):
        raise ValueError(f"gesture event must be an object, got {type(d).__name__}")
    kind = d.get("kind")
    if kind == "pinch":
        return PinchEvent.model_validate(d)
    if kind == "pan":
        return PanEvent.model_validate(d)
    raise ValueError(f"unknown gesture kind: {kind!r}")


def events_from_json(payload: Iterable[dict] | None) -> list[PinchEvent | PanEvent]:
    return [event_from_json(d) for d in payload or []]
