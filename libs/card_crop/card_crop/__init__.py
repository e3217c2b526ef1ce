# CardLink_Crop/libs/card_crop/card_crop/__init__.py
from .models import CropRect, FitResult, FrameRect, ImageDimensions, PanEvent, PinchEvent, ViewportRect, ViewTransform
from .errors import CropInProgress, CropPipelineError, InvalidGeometry
from .fit import resolve_fit
from .crop_rect import resolve_crop_rect
from .gestures import GestureSessionController, ViewTransformState
from .orchestrator import CropOrchestrator, CropOutcome, CropSession
