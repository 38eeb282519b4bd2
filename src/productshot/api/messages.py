"""User-facing messages for dispatch failures."""

from __future__ import annotations

from productshot.core.outcome import Failure, FailureKind

FAILURE_MESSAGES: dict[FailureKind, str] = {
    FailureKind.CONFIGURATION: (
        "Setup error: no API key configured. Set PRODUCTSHOT_API_KEYS (or API_KEY) "
        "to one or more comma-separated keys and try again."
    ),
    FailureKind.QUOTA_EXCEEDED: (
        "Quota exhausted (429). The service is busy, please try again in a minute."
    ),
    FailureKind.REFUSAL: (
        "The image was rejected by the AI safety filter. Try a different prompt or image"
    ),
    FailureKind.TRANSIENT: (
        "The generation service is temporarily unavailable. Please try again shortly."
    ),
    FailureKind.FATAL: "The request could not be processed",
}


def user_message(failure: Failure) -> str:
    """Return the actionable message shown for *failure*.

    Refusals append the model's own explanation.  Fatal errors append the
    underlying message, which usually points at the request itself
    (disabled API, invalid key, unsupported image).
    """
    text = FAILURE_MESSAGES[failure.kind]
    if failure.kind in (FailureKind.REFUSAL, FailureKind.FATAL) and failure.message:
        return f"{text}: {failure.message}"
    return text
