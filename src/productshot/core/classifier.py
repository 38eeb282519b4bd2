"""Classification of attempt failures into :class:`FailureKind` values.

Classification uses structured data only: the HTTP status code, the RPC
status string, the ``google.rpc.RetryInfo`` detail and the ``Retry-After``
header.  Provider message text is carried along for diagnostics but never
inspected.

=====================================  ==================
Signal                                 Kind
=====================================  ==================
HTTP 429 / ``RESOURCE_EXHAUSTED``      ``QUOTA_EXCEEDED``
HTTP 408, 5xx / ``UNAVAILABLE`` etc.   ``TRANSIENT``
Transport timeout / network failure    ``TRANSIENT``
Text or block reason instead of image  ``REFUSAL``
Anything else                          ``FATAL``
=====================================  ==================
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Any

import httpx
from google.genai import errors as genai_errors

from productshot.core.outcome import FailureKind
from productshot.core.transport import GenerationResponse

_QUOTA_STATUSES = {"RESOURCE_EXHAUSTED"}
_TRANSIENT_STATUSES = {"UNAVAILABLE", "DEADLINE_EXCEEDED", "INTERNAL", "ABORTED"}
_DURATION = re.compile(r"^\s*(\d+(?:\.\d+)?)s\s*$")

# Refusal text is truncated before it reaches users or logs.
_REFUSAL_PREVIEW = 150


@dataclass(frozen=True)
class ClassifiedFailure:
    """One attempt's failure after classification.

    Attributes:
        kind: The failure kind.
        message: Diagnostic message.
        retry_after: Provider-suggested wait in seconds, if any.
    """

    kind: FailureKind
    message: str
    retry_after: float | None = None


def _error_body(details: Any) -> dict:
    if isinstance(details, list) and len(details) == 1:
        details = details[0]
    if not isinstance(details, dict):
        return {}
    inner = details.get("error")
    return inner if isinstance(inner, dict) else details


def _parse_duration(value: Any) -> float | None:
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, dict):
        seconds = float(value.get("seconds", 0) or 0)
        nanos = float(value.get("nanos", 0) or 0)
        return seconds + nanos / 1e9
    if isinstance(value, str):
        match = _DURATION.match(value)
        if match:
            return float(match.group(1))
        try:
            return float(value)
        except ValueError:
            return None
    return None


def suggested_retry_delay(error: genai_errors.APIError) -> float | None:
    """Return the provider-suggested wait for a rate-limit error, if any.

    Looks for a ``google.rpc.RetryInfo`` entry in the error details first,
    then for a ``Retry-After`` header on the raw HTTP response.
    """
    body = _error_body(getattr(error, "details", None))
    for detail in body.get("details", []) or []:
        if not isinstance(detail, dict):
            continue
        if str(detail.get("@type", "")).endswith("google.rpc.RetryInfo"):
            delay = _parse_duration(detail.get("retryDelay"))
            if delay is not None:
                return delay

    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None)
    if headers is not None:
        header = headers.get("retry-after")
        if header is not None:
            return _parse_duration(header)
    return None


def classify_api_error(error: genai_errors.APIError) -> ClassifiedFailure:
    """Classify an SDK ``APIError`` by status code and RPC status."""
    code = getattr(error, "code", None)
    status = (getattr(error, "status", None) or "").upper()
    message = getattr(error, "message", None) or str(error)
    label = f"{code} {status}".strip() if status else str(code)

    if code == 429 or status in _QUOTA_STATUSES:
        return ClassifiedFailure(
            FailureKind.QUOTA_EXCEEDED,
            f"{label}: {message}",
            retry_after=suggested_retry_delay(error),
        )
    if (isinstance(code, int) and (code >= 500 or code == 408)) or status in _TRANSIENT_STATUSES:
        return ClassifiedFailure(FailureKind.TRANSIENT, f"{label}: {message}")
    return ClassifiedFailure(FailureKind.FATAL, f"{label}: {message}")


def classify_exception(error: BaseException) -> ClassifiedFailure:
    """Classify any exception raised by a transport call.

    ``asyncio.CancelledError`` must never reach this function; callers let
    cancellation propagate.
    """
    if isinstance(error, genai_errors.APIError):
        return classify_api_error(error)
    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return ClassifiedFailure(FailureKind.TRANSIENT, f"request timed out: {error!r}")
    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return ClassifiedFailure(FailureKind.TRANSIENT, f"network failure: {error!r}")
    return ClassifiedFailure(FailureKind.FATAL, f"{type(error).__name__}: {error}")


def classify_response(response: GenerationResponse) -> ClassifiedFailure | None:
    """Classify a response that returned without raising.

    Returns:
        ``None`` when the response carries an image, otherwise the failure.
    """
    if response.has_image:
        return None
    if response.text:
        preview = response.text[:_REFUSAL_PREVIEW]
        if len(response.text) > _REFUSAL_PREVIEW:
            preview += "..."
        return ClassifiedFailure(FailureKind.REFUSAL, preview)
    if response.block_reason:
        return ClassifiedFailure(FailureKind.REFUSAL, f"blocked: {response.block_reason}")
    return ClassifiedFailure(FailureKind.FATAL, "no image data returned")
