"""Request payload types and data URI helpers.

A generation request is an ordered list of parts: zero or more inline images
followed by exactly one text part.  The remote model reads images in the
order supplied relative to the instruction text, so callers build payloads
with :func:`build_payload`, which fixes the order

    product images -> background reference -> logo -> face -> prompt text

Payloads are frozen; retries across credentials always resend the identical
object.
"""

from __future__ import annotations

import base64
import binascii
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

_DATA_URI = re.compile(
    r"^data:(?P<media_type>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^,;]*)*?);base64,(?P<data>.*)$",
    re.S,
)


class PayloadError(ValueError):
    """Raised for malformed image input (bad data URI, empty prompt)."""

    pass


@dataclass(frozen=True)
class ImagePart:
    """A single inline image attachment."""

    data: bytes
    media_type: str = "image/png"

    def __post_init__(self) -> None:
        if not self.data:
            raise PayloadError("image part has no data")
        if not self.media_type.startswith("image/"):
            raise PayloadError(f"unsupported media type: {self.media_type}")

    @classmethod
    def from_data_uri(cls, uri: str) -> ImagePart:
        data, media_type = decode_data_uri(uri)
        return cls(data=data, media_type=media_type)


@dataclass(frozen=True)
class RequestPayload:
    """Ordered image parts plus the prompt text that follows them."""

    prompt: str
    images: tuple[ImagePart, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.prompt or not self.prompt.strip():
            raise PayloadError("prompt must not be empty")

    def parts(self) -> list[ImagePart | str]:
        """Return the wire order: every image, then the prompt."""
        return [*self.images, self.prompt]


def build_payload(
    prompt: str,
    product_images: Iterable[ImagePart],
    *,
    reference: ImagePart | None = None,
    logo: ImagePart | None = None,
    face: ImagePart | None = None,
) -> RequestPayload:
    """Assemble a payload with images in the order the model expects."""
    images = list(product_images)
    for extra in (reference, logo, face):
        if extra is not None:
            images.append(extra)
    return RequestPayload(prompt=prompt, images=tuple(images))


def to_data_uri(data: bytes, media_type: str = "image/png") -> str:
    """Encode raw bytes as a self-contained ``data:`` URI."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{media_type};base64,{encoded}"


def decode_data_uri(uri: str) -> tuple[bytes, str]:
    """Decode a base64 ``data:`` URI into ``(bytes, media_type)``.

    A missing media type defaults to ``application/octet-stream``.

    Raises:
        PayloadError: If the URI is not a base64 data URI or the payload is
            not valid base64.
    """
    match = _DATA_URI.match(uri.strip()) if uri else None
    if match is None:
        raise PayloadError("expected a base64 data URI")
    media_type = match.group("media_type") or "application/octet-stream"
    try:
        data = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise PayloadError(f"invalid base64 payload: {e}") from e
    return data, media_type.lower()
