"""Remote generation transport backed by the ``google-genai`` SDK.

The transport performs exactly one network call per :meth:`generate`
invocation and normalises the SDK response into a :class:`GenerationResponse`.
It does not retry, sleep, or classify errors: SDK and transport exceptions
propagate unchanged so the dispatcher can classify them in one place.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx
from google import genai
from google.genai import types

from productshot.core.payload import ImagePart, RequestPayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationResponse:
    """Normalised result of one generation call.

    Exactly one of ``image`` or ``text``/``block_reason`` is meaningful:
    a response with image bytes is a success regardless of any text parts.
    """

    image: bytes | None = None
    image_media_type: str | None = None
    text: str | None = None
    block_reason: str | None = None

    @property
    def has_image(self) -> bool:
        return bool(self.image)


class GenerationTransport(Protocol):
    """Anything that can send one payload with one credential."""

    async def generate(self, credential: str, payload: RequestPayload) -> GenerationResponse: ...

    async def aclose(self) -> None: ...


class GeminiTransport:
    """Calls ``models.generate_content`` on the async Gemini client.

    A new SDK client is built per call because each attempt may use a
    different API key.  Every SDK client shares one ``httpx.AsyncClient``
    owned by the transport, which also keeps the SDK on its httpx code path
    when aiohttp is installed.  Call :meth:`aclose` on shutdown.

    Args:
        model_name: Gemini model identifier.
        timeout: Per-call timeout in seconds, enforced by the SDK's HTTP
            layer.  Expiry surfaces as an ``httpx`` timeout exception.
        http_client: Shared HTTP client.  One is created when omitted.
    """

    def __init__(
        self,
        model_name: str,
        timeout: float,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.model_name = model_name
        self.timeout = timeout
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    def _client(self, credential: str) -> genai.Client:
        return genai.Client(
            api_key=credential,
            http_options=types.HttpOptions(
                timeout=int(self.timeout * 1000),
                httpx_async_client=self._http_client,
            ),
        )

    @staticmethod
    def _to_part(part: ImagePart | str) -> types.Part:
        if isinstance(part, str):
            return types.Part.from_text(text=part)
        return types.Part.from_bytes(data=part.data, mime_type=part.media_type)

    async def generate(self, credential: str, payload: RequestPayload) -> GenerationResponse:
        contents = [
            types.Content(role="user", parts=[self._to_part(p) for p in payload.parts()])
        ]
        async with self._client(credential).aio as client:
            response = await client.models.generate_content(
                model=self.model_name,
                contents=contents,
                config=types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"]),
            )
        return parse_response(response)

    async def aclose(self) -> None:
        await self._http_client.aclose()


def parse_response(response) -> GenerationResponse:
    """Extract the first inline image, or refusal text, from an SDK response.

    Args:
        response: A ``GenerateContentResponse`` (or any object with the same
            ``candidates`` / ``prompt_feedback`` shape).

    Returns:
        A :class:`GenerationResponse`.  When the response carries neither an
        image nor text, ``block_reason`` is filled from prompt feedback or
        the candidate's finish reason if either is present.
    """
    block_reason = None
    feedback = getattr(response, "prompt_feedback", None)
    if feedback is not None and getattr(feedback, "block_reason", None):
        block_reason = getattr(feedback.block_reason, "name", str(feedback.block_reason))

    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return GenerationResponse(block_reason=block_reason)

    candidate = candidates[0]
    content = getattr(candidate, "content", None)
    parts = getattr(content, "parts", None) or []

    texts: list[str] = []
    for part in parts:
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data:
            return GenerationResponse(
                image=inline.data,
                image_media_type=inline.mime_type or "image/png",
            )
        if getattr(part, "text", None):
            texts.append(part.text)

    if texts:
        return GenerationResponse(text=" ".join(texts).strip(), block_reason=block_reason)

    finish_reason = getattr(candidate, "finish_reason", None)
    if block_reason is None and finish_reason is not None:
        name = getattr(finish_reason, "name", str(finish_reason))
        if name not in ("STOP", "FINISH_REASON_UNSPECIFIED"):
            block_reason = name
    return GenerationResponse(block_reason=block_reason)
