"""Dispatch outcome types and the failure taxonomy."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FailureKind(str, Enum):
    """Classified reason a dispatch (or a single attempt) failed.

    Only ``QUOTA_EXCEEDED`` and ``TRANSIENT`` are retried on another
    credential; every other kind ends the dispatch.
    """

    CONFIGURATION = "configuration"
    REFUSAL = "refusal"
    QUOTA_EXCEEDED = "quota_exceeded"
    TRANSIENT = "transient"
    FATAL = "fatal"

    @property
    def retryable(self) -> bool:
        return self in (FailureKind.QUOTA_EXCEEDED, FailureKind.TRANSIENT)


@dataclass(frozen=True)
class Success:
    """Terminal success: a generated image as a displayable data URI."""

    image_data: str
    attempts: int = 1
    credential_hint: str | None = None

    ok = True


@dataclass(frozen=True)
class Failure:
    """Terminal failure carrying the last classified error.

    Attributes:
        kind: Classified failure kind.
        message: Underlying provider or configuration message.
        attempts: Number of network calls made (0 for configuration errors).
        credential_hint: Redacted suffix of the last credential used.
    """

    kind: FailureKind
    message: str
    attempts: int = 0
    credential_hint: str | None = None

    ok = False


DispatchOutcome = Success | Failure
