# CardLink_Crop/libs/card_crop/card_crop/errors.py
from __future__ import annotations


class InvalidGeometry(ValueError):
    """
    Raised when measurements handed to the resolvers cannot describe a
    drawable image: a non-positive image/viewport/frame dimension or a
    non-positive effective scale. Callers re-measure and retry the whole call.
    """


class CropPipelineError(RuntimeError):
    """A crop/encode or upload collaborator failed during confirm."""


class CropInProgress(CropPipelineError):
    """confirm() was called while a previous confirm is still running."""
