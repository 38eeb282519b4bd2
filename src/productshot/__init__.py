"""Productshot Studio - product photography prompts with multi-key Gemini dispatch."""

__version__ = "0.3.0"

from productshot.core.config import ProductshotConfig, config
from productshot.core.dispatcher import RequestDispatcher
from productshot.core.outcome import DispatchOutcome, Failure, FailureKind, Success

__all__ = [
    "DispatchOutcome",
    "Failure",
    "FailureKind",
    "ProductshotConfig",
    "RequestDispatcher",
    "Success",
    "config",
]
