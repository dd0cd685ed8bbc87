"""SiBCS Classifier: rank the Brazilian soil orders for a described profile."""

__version__ = "0.1.0"

from .contract import classify_request
from .engine import classify
from .models import ClassificationResult, SoilOrder, SoilProfile

__all__ = [
    "ClassificationResult",
    "SoilOrder",
    "SoilProfile",
    "classify",
    "classify_request",
]
