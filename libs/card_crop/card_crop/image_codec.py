# CardLink_Crop/libs/card_crop/card_crop/image_codec.py
from __future__ import annotations
from pathlib import Path
from uuid import uuid4

from PIL import Image, ImageOps

from .models import CropRect, ImageDimensions

# EXIF orientations that rotate the photo by 90/270 degrees
_TRANSPOSED_ORIENTATIONS = {5, 6, 7, 8}
_EXIF_ORIENTATION = 0x0112


class PillowImageCodec:
    """
    Decoder + crop/encode collaborator backed by Pillow.

    Handles are file paths. Phone cameras store the sensor image plus an EXIF
    orientation tag; both the reported dimensions and the crop work on the
    upright image, which is what the user saw in the preview.
    """
    def __init__(self, output_dir: str | Path, quality: int = 100):
        self.output_dir = Path(output_dir)
        self.quality = quality

    def dimensions(self, handle: str | Path) -> ImageDimensions:
        # Image.open only parses the header; pixels stay on disk
        with Image.open(handle) as img:
            width, height = img.size
            orientation = img.getexif().get(_EXIF_ORIENTATION, 1)
        if orientation in _TRANSPOSED_ORIENTATIONS:
            width, height = height, width
        return ImageDimensions(width=width, height=height)

    def crop(self, handle: str | Path, rect: CropRect) -> str:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        src = Path(handle)
        out = self.output_dir / f"{uuid4()}_{src.stem}.jpg"
        with Image.open(src) as img:
            upright = ImageOps.exif_transpose(img)
            cropped = upright.crop(rect.to_box())
            if cropped.mode not in ("RGB", "L"):
                cropped = cropped.convert("RGB")
            cropped.save(out, "JPEG", quality=int(self.quality), subsampling=0)
        return str(out)

    def discard(self, handle: str | Path) -> None:
        """Remove a crop produced by crop() once it is no longer needed."""
        Path(handle).unlink(missing_ok=True)
