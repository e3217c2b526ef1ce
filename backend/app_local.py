# backend/app_local.py
# Run: uvicorn backend.app_local:app --reload

from __future__ import annotations

import os, logging, threading
from uuid import uuid4
from pathlib import Path
from typing import Dict, List, Optional

from fastapi import FastAPI, UploadFile, File, HTTPException, Body
from fastapi.responses import FileResponse, RedirectResponse
from pydantic import BaseModel
from PIL import UnidentifiedImageError

from card_crop.crop_rect import resolve_crop_rect
from card_crop.errors import CropInProgress, CropPipelineError, InvalidGeometry
from card_crop.fit import resolve_fit
from card_crop.image_codec import PillowImageCodec
from card_crop.json_adapter import crop_rect_to_json, events_from_json, transform_to_json
from card_crop.models import FitResult, FrameRect, ImageDimensions, ViewportRect, ViewTransform
from card_crop.orchestrator import CropOrchestrator, CropSession

from .storage_local import LocalStorage

log = logging.getLogger("cardcrop.backend")

# -------------------------- Directories & Globals --------------------------
DATA_DIR = Path(os.getenv("DATA_DIR", "./data")).resolve()
IMAGES_DIR = DATA_DIR / "images"
WORK_DIR = DATA_DIR / "work"
CROPS_DIR = DATA_DIR / "crops"
IMAGES_DIR.mkdir(parents=True, exist_ok=True)
WORK_DIR.mkdir(parents=True, exist_ok=True)
CROPS_DIR.mkdir(parents=True, exist_ok=True)

FRAME_WIDTH_RATIO = float(os.getenv("FRAME_WIDTH_RATIO", "0.9"))
FRAME_ASPECT = float(os.getenv("FRAME_ASPECT", "0.6"))
MIN_SCALE = float(os.getenv("MIN_SCALE", "0.05"))
JPEG_QUALITY = int(os.getenv("JPEG_QUALITY", "100"))

# In-memory maps / locks
image_key_by_id: Dict[str, str] = {}
sessions: Dict[str, CropSession] = {}
confirmers: Dict[str, CropOrchestrator] = {}
sessions_lock = threading.Lock()

storage = LocalStorage(IMAGES_DIR)
crop_store = LocalStorage(CROPS_DIR, url_prefix="/crops")
codec = PillowImageCodec(WORK_DIR, quality=JPEG_QUALITY)


def _parse_image_entry(fname: str):
    """Expect '<image_id>_<originalname.ext>'. Return (image_id, originalname.ext) or (None, None)."""
    if "_" not in fname:
        return None, None
    image_id, original = fname.split("_", 1)
    return image_id, original


def _rebuild_image_index():
    """Scan IMAGES_DIR and reconstruct image_key_by_id (survives restarts)."""
    image_key_by_id.clear()
    for p in IMAGES_DIR.iterdir():
        if not p.is_file():
            continue
        iid, original = _parse_image_entry(p.name)
        if iid and original:
            image_key_by_id[iid] = p.name


_rebuild_image_index()


def _image_path(image_id: str) -> Path:
    key = image_key_by_id.get(image_id)
    if not key:
        raise HTTPException(404, "image_id not found")
    p = storage.get_path(key)
    if not p.exists():
        raise HTTPException(404, "file not found on disk")
    return p


def _session(session_id: str) -> CropSession:
    s = sessions.get(session_id)
    if s is None:
        raise HTTPException(404, "session not found")
    return s


# -------------------------- FastAPI --------------------------
app = FastAPI(title="CardLink_Crop (local)", version="0.1.0")


@app.get("/", include_in_schema=False)
def root():
    return RedirectResponse(url="/docs")


# -------------------------- Schemas --------------------------
class UploadResp(BaseModel):
    image_id: str
    filename: str
    width: int
    height: int


class SessionReq(BaseModel):
    image_id: str
    viewport: Optional[ViewportRect] = None


class SessionResp(BaseModel):
    session_id: str
    image_id: str
    viewport: Optional[ViewportRect] = None
    frame: Optional[FrameRect] = None
    transform: dict
    phase: str


class ConfirmResp(BaseModel):
    crop_rect: dict
    url: str


class FitReq(BaseModel):
    image: ImageDimensions
    viewport: ViewportRect


class CropRectReq(BaseModel):
    image: ImageDimensions
    viewport: ViewportRect
    frame: Optional[FrameRect] = None
    transform: ViewTransform = ViewTransform()


def _session_resp(session_id: str, s: CropSession) -> SessionResp:
    viewport, frame, transform = s.capture()
    iid, _ = _parse_image_entry(Path(s.image_handle).name)
    return SessionResp(
        session_id=session_id,
        image_id=iid or "",
        viewport=viewport,
        frame=frame,
        transform=transform_to_json(transform),
        phase=s.gestures.phase,
    )


# -------------------------- Endpoints --------------------------
@app.get("/health")
def health():
    return {"status": "ok", "sessions": len(sessions)}


@app.post("/images", response_model=UploadResp)
async def upload_image(file: UploadFile = File(...)):
    data = await file.read()
    if not data:
        raise HTTPException(400, "Empty file")
    # only the base name of the client path; never a directory component
    filename = Path(file.filename or "").name or "upload"
    image_id = str(uuid4())
    key = f"{image_id}_{filename}"
    storage.put(key, data)
    try:
        dims = codec.dimensions(storage.get_path(key))
    except (UnidentifiedImageError, OSError) as e:
        storage.get_path(key).unlink(missing_ok=True)
        raise HTTPException(400, f"not an image: {e}")
    image_key_by_id[image_id] = key
    log.info(f"image stored: image_id={image_id} size={dims.width}x{dims.height}")
    return UploadResp(image_id=image_id, filename=filename, width=dims.width, height=dims.height)


@app.get("/images/{image_id}/file")
def get_image_file(image_id: str):
    return FileResponse(_image_path(image_id))


@app.post("/sessions", response_model=SessionResp)
def create_session(req: SessionReq):
    path = _image_path(req.image_id)
    s = CropSession(
        str(path),
        req.viewport,
        frame_width_ratio=FRAME_WIDTH_RATIO,
        frame_aspect=FRAME_ASPECT,
        min_scale=MIN_SCALE,
    )
    session_id = str(uuid4())
    with sessions_lock:
        sessions[session_id] = s
        confirmers[session_id] = CropOrchestrator(codec, codec, crop_store)
    return _session_resp(session_id, s)


@app.get("/sessions/{session_id}", response_model=SessionResp)
def get_session(session_id: str):
    return _session_resp(session_id, _session(session_id))


@app.put("/sessions/{session_id}/viewport", response_model=SessionResp)
def remeasure(session_id: str, viewport: ViewportRect):
    s = _session(session_id)
    s.remeasure(viewport)
    return _session_resp(session_id, s)


@app.post("/sessions/{session_id}/gestures", response_model=SessionResp)
def apply_gestures(session_id: str, payload: List[dict] = Body(...)):
    """
    Feed raw touch callbacks, in order:
      [{"kind": "pinch", "phase": "start"}, {"kind": "pinch", "phase": "active", "scale": 1.3, "numberOfPointers": 2}, ...]
    """
    s = _session(session_id)
    try:
        events = events_from_json(payload)
    except ValueError as e:
        raise HTTPException(422, f"bad gesture event: {e}")
    for ev in events:
        s.apply(ev)
    return _session_resp(session_id, s)


@app.post("/sessions/{session_id}/confirm", response_model=ConfirmResp)
def confirm(session_id: str):
    s = _session(session_id)
    try:
        outcome = confirmers[session_id].confirm(s)
    except InvalidGeometry as e:
        raise HTTPException(422, f"invalid geometry, re-measure and retry: {e}")
    except CropInProgress:
        raise HTTPException(409, "crop already in progress")
    except CropPipelineError as e:
        raise HTTPException(502, str(e))
    if outcome is None:
        raise HTTPException(409, "viewport not measured yet")
    codec.discard(outcome.cropped_handle)
    return ConfirmResp(crop_rect=crop_rect_to_json(outcome.crop_rect), url=outcome.url)


@app.delete("/sessions/{session_id}")
def close_session(session_id: str):
    with sessions_lock:
        removed = sessions.pop(session_id, None)
        confirmers.pop(session_id, None)
    if removed is None:
        raise HTTPException(404, "session not found")
    return {"ok": True}


@app.get("/crops/{key}")
def get_crop(key: str):
    p = crop_store.get_path(key)
    if p.parent != CROPS_DIR or not p.is_file():
        raise HTTPException(404, "crop not found")
    return FileResponse(p, media_type="image/jpeg")


# -------------------------- Stateless geometry --------------------------
@app.post("/geometry/fit", response_model=FitResult)
def geometry_fit(req: FitReq):
    try:
        return resolve_fit(req.image, req.viewport)
    except InvalidGeometry as e:
        raise HTTPException(422, str(e))


@app.post("/geometry/crop-rect")
def geometry_crop_rect(req: CropRectReq):
    frame = req.frame or FrameRect.for_viewport(req.viewport, FRAME_WIDTH_RATIO, FRAME_ASPECT)
    try:
        rect = resolve_crop_rect(req.image, req.viewport, frame, req.transform)
    except InvalidGeometry as e:
        raise HTTPException(422, str(e))
    return crop_rect_to_json(rect)

