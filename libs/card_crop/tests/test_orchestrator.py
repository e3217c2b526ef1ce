import threading
from pathlib import Path

import pytest
from PIL import Image

from card_crop.errors import CropInProgress, CropPipelineError, InvalidGeometry
from card_crop.image_codec import PillowImageCodec
from card_crop.models import CropRect, ImageDimensions, PanEvent, PinchEvent, ViewportRect
from card_crop.orchestrator import CropOrchestrator, CropSession


class FakeDecoder:
    def __init__(self, dims=ImageDimensions(width=1200, height=800)):
        self.dims = dims

    def dimensions(self, handle):
        return self.dims


class FakeCropper:
    def __init__(self):
        self.calls = []
        self.discarded = []

    def crop(self, handle, rect):
        self.calls.append((handle, rect))
        return f"{handle}.cropped.jpg"

    def discard(self, handle):
        self.discarded.append(handle)


class FakeUploader:
    def __init__(self, fail=False):
        self.fail = fail
        self.uploaded = []

    def upload(self, handle):
        if self.fail:
            raise IOError("disk full")
        self.uploaded.append(handle)
        return f"/crops/{handle}"


class BlockingCropper(FakeCropper):
    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def crop(self, handle, rect):
        self.entered.set()
        self.release.wait(timeout=5)
        return super().crop(handle, rect)


# 360 wide viewport -> frame 324 x 194.4
PREVIEW = ViewportRect(width=360, height=244.8)


def test_confirm_runs_full_pipeline():
    cropper, uploader = FakeCropper(), FakeUploader()
    orch = CropOrchestrator(FakeDecoder(), cropper, uploader)
    session = CropSession("card.jpg", PREVIEW)

    outcome = orch.confirm(session)

    assert outcome.crop_rect == CropRect(origin_x=60, origin_y=76, width=1080, height=648)
    assert cropper.calls == [("card.jpg", outcome.crop_rect)]
    assert uploader.uploaded == ["card.jpg.cropped.jpg"]
    assert outcome.url == "/crops/card.jpg.cropped.jpg"
    assert not orch.processing

def test_confirm_without_layout_is_a_no_op():
    cropper = FakeCropper()
    orch = CropOrchestrator(FakeDecoder(), cropper, FakeUploader())
    assert orch.confirm(CropSession("card.jpg")) is None
    assert cropper.calls == []

def test_confirm_mid_gesture_uses_current_values():
    orch = CropOrchestrator(FakeDecoder(), FakeCropper(), FakeUploader())
    session = CropSession("card.jpg", PREVIEW)
    session.apply(PinchEvent(phase="start"))
    session.apply(PinchEvent(phase="active", scale=2.0, pointers=2))
    outcome = orch.confirm(session)
    assert outcome.crop_rect.width == 540
    assert session.gestures.pinch_active

def test_remeasure_replaces_frame_and_drops_gesture():
    session = CropSession("card.jpg", PREVIEW)
    session.apply(PanEvent(phase="start"))
    session.apply(PanEvent(phase="active", translation_x=10))
    session.remeasure(ViewportRect(width=720, height=489.6))
    assert session.frame.width == pytest.approx(648)
    session.apply(PanEvent(phase="active", translation_x=99))
    assert session.transform.translate_x == 10
    assert session.gestures.phase == "idle"

def test_invalid_geometry_propagates():
    orch = CropOrchestrator(FakeDecoder(ImageDimensions(width=0, height=10)), FakeCropper(), FakeUploader())
    with pytest.raises(InvalidGeometry):
        orch.confirm(CropSession("card.jpg", PREVIEW))
    assert not orch.processing

def test_collaborator_failure_is_wrapped():
    orch = CropOrchestrator(FakeDecoder(), FakeCropper(), FakeUploader(fail=True))
    with pytest.raises(CropPipelineError) as exc:
        orch.confirm(CropSession("card.jpg", PREVIEW))
    assert isinstance(exc.value.__cause__, IOError)

def test_concurrent_confirm_rejected():
    cropper = BlockingCropper()
    orch = CropOrchestrator(FakeDecoder(), cropper, FakeUploader())
    results = []
    first = threading.Thread(target=lambda: results.append(orch.confirm(CropSession("card.jpg", PREVIEW))))
    first.start()
    try:
        assert cropper.entered.wait(timeout=5)
        assert orch.processing
        with pytest.raises(CropInProgress):
            orch.confirm(CropSession("other.jpg", PREVIEW))
    finally:
        cropper.release.set()
        first.join(timeout=5)
    assert results[0].url == "/crops/card.jpg.cropped.jpg"
    assert not orch.processing

def test_resolve_requires_viewport():
    with pytest.raises(CropPipelineError):
        CropSession("card.jpg").resolve(ImageDimensions(width=10, height=10))

def test_failed_upload_discards_cropped_file(tmp_path: Path):
    src = tmp_path / "card.jpg"
    Image.new("RGB", (1200, 800), (255, 255, 255)).save(src, "JPEG")
    work = tmp_path / "work"
    codec = PillowImageCodec(work)
    orch = CropOrchestrator(codec, codec, FakeUploader(fail=True))

    with pytest.raises(CropPipelineError):
        orch.confirm(CropSession(str(src), PREVIEW))

    assert list(work.iterdir()) == []

def test_failed_upload_calls_discard():
    cropper = FakeCropper()
    orch = CropOrchestrator(FakeDecoder(), cropper, FakeUploader(fail=True))
    with pytest.raises(CropPipelineError):
        orch.confirm(CropSession("card.jpg", PREVIEW))
    assert cropper.discarded == ["card.jpg.cropped.jpg"]
