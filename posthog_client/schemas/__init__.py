from .decide import DecideRequest, DecideResponse
from .events import BatchRequest, CaptureEvent
from .flags import Condition, FeatureFlagsResponse, Filters, Flag, Property, Variant, Variants

__all__ = [
    "BatchRequest",
    "CaptureEvent",
    "Condition",
    "DecideRequest",
    "DecideResponse",
    "FeatureFlagsResponse",
    "Filters",
    "Flag",
    "Property",
    "Variant",
    "Variants",
]
