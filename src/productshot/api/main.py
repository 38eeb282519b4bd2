"""Productshot Studio — FastAPI Application.

This module defines the FastAPI ``app`` instance, all REST API routes, and
the ``main()`` CLI function that launches the uvicorn server.

Architecture
------------
- **Presets** (scene lists, option values) are loaded from ``presets.json``
  and served to the frontend via ``GET /api/config``.
- **Image generation** is delegated to
  :class:`~productshot.core.dispatcher.RequestDispatcher`, which rotates
  across the configured API keys.  One dispatch runs per batch slot.
- **Uploaded images** arrive as base64 data URIs and are checked with
  Pillow before any network call is made.
- Nothing is persisted; generated images are returned inline as data URIs.

Endpoints
---------
========  ========================  ====================================
Method    Path                      Purpose
========  ========================  ====================================
GET       ``/api/config``           Modes, option lists, batch size
POST      ``/api/prompt/compile``   Preview the slot prompts
POST      ``/api/generate``         Generate a batch of images
========  ========================  ====================================

Usage
-----
CLI (installed entry point)::

    productshot

Direct invocation::

    python -m productshot.api.main
"""

from __future__ import annotations

import io
import logging
import random
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from PIL import Image, UnidentifiedImageError

from productshot import __version__
from productshot.api.messages import user_message
from productshot.api.models import GenerateRequest
from productshot.core.batch import run_batch
from productshot.core.config import config
from productshot.core.dispatcher import RequestDispatcher
from productshot.core.outcome import Success
from productshot.core.payload import ImagePart, PayloadError, decode_data_uri
from productshot.core.prompt_builder import (
    FormInput,
    FormValidationError,
    PresetLibrary,
    SlotPlan,
    plan_batch,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the dispatcher and load presets on startup.

    The dispatcher keeps no credentials of its own; keys are re-read from
    the configured sources on every dispatch.  Its HTTP client is closed on
    shutdown.
    """
    dispatcher = RequestDispatcher.from_config(config)
    app.state.dispatcher = dispatcher
    app.state.presets = PresetLibrary.load(config.data_dir)
    logger.info(
        "Dispatcher ready (model=%s, batch=%d, strategy=%s).",
        config.model_name,
        config.batch_size,
        config.batch_strategy,
    )

    yield

    await dispatcher.aclose()


app = FastAPI(
    title="Productshot Studio",
    description="Product photography generation with multi-key Gemini dispatch.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request decoding helpers.
# ---------------------------------------------------------------------------


def _decode_image(uri: str, field_name: str) -> ImagePart:
    """Decode and sanity-check one uploaded image.

    The image is opened with Pillow so that corrupt or non-image uploads are
    rejected with a 400 here instead of a fatal error from the remote
    service.  When the data URI carries no usable media type, the one
    Pillow detects is used.

    Raises:
        HTTPException: 400 if the URI is malformed or not a readable image.
    """
    try:
        data, media_type = decode_data_uri(uri)
        with Image.open(io.BytesIO(data)) as img:
            detected = Image.MIME.get(img.format or "")
            img.verify()
        if not media_type.startswith("image/"):
            if detected is None:
                raise PayloadError("unrecognised image format")
            media_type = detected
        return ImagePart(data=data, media_type=media_type)
    except (PayloadError, UnidentifiedImageError, OSError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid {field_name}: {e}") from e


def _build_form(req: GenerateRequest) -> FormInput:
    """Convert a validated request into prompt-builder input."""

    def optional(uri: str | None, name: str) -> ImagePart | None:
        return _decode_image(uri, name) if uri else None

    return FormInput(
        product_images=[
            _decode_image(uri, f"product image {i + 1}") for i, uri in enumerate(req.product_images)
        ],
        background_reference=optional(req.background_reference, "background reference"),
        logo=optional(req.logo, "logo"),
        face=optional(req.face, "face reference"),
        background_description=req.background_description,
        lighting=req.lighting,
        ambience=req.ambience,
        location=req.location,
        gender=req.gender,
        model_type=req.model_type,
        age_range=req.age_range,
        visual_style=req.visual_style,
        hijab=req.hijab,
    )


def _plan(req: GenerateRequest) -> list[SlotPlan]:
    form = _build_form(req)
    try:
        return plan_batch(
            req.mode,
            form,
            app.state.presets,
            count=config.batch_size,
            rng=random.Random(req.seed),
        )
    except FormValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.get("/api/config")
async def get_config() -> dict:
    """Return modes, option lists and defaults for the frontend form."""
    presets: PresetLibrary = app.state.presets
    return {
        "version": __version__,
        "modes": presets.modes,
        "options": presets.options,
        "defaults": presets.defaults,
        "batch_size": config.batch_size,
    }


@app.post("/api/prompt/compile")
async def compile_prompts(req: GenerateRequest) -> dict:
    """Preview the prompt each slot would receive, without generating."""
    plans = _plan(req)
    return {
        "prompts": [plan.prompt for plan in plans],
        "image_counts": [len(plan.payload().images) for plan in plans],
    }


@app.post("/api/generate")
async def generate_images(req: GenerateRequest) -> dict:
    """Generate one image per batch slot.

    Each slot is an independent dispatch; a failure in one slot never
    affects the others.  Slots run concurrently or sequentially according to
    ``config.batch_strategy``.

    Returns:
        Dictionary with ``success`` (true if at least one slot produced an
        image), ``mode`` and ``images``: one entry per slot holding either
        ``url`` (a PNG data URI) or ``error`` and ``error_kind``.

    Raises:
        HTTPException: 400 for missing product images, unreadable uploads,
            unknown modes or invalid option values.
    """
    plans = _plan(req)
    dispatcher: RequestDispatcher = app.state.dispatcher

    outcomes = await run_batch(
        dispatcher.dispatch_payload,
        [plan.payload() for plan in plans],
        strategy=config.batch_strategy,
        cooldown=config.sequential_cooldown,
    )

    images: list[dict] = []
    for plan, outcome in zip(plans, outcomes):
        entry = {
            "slot": plan.index,
            "prompt": plan.prompt,
            "attempts": outcome.attempts,
            "url": None,
            "error": None,
            "error_kind": None,
        }
        if isinstance(outcome, Success):
            entry["url"] = outcome.image_data
        else:
            entry["error"] = user_message(outcome)
            entry["error_kind"] = outcome.kind.value
            logger.warning(
                "Slot %d failed (%s, key %s): %s",
                plan.index,
                outcome.kind.value,
                outcome.credential_hint,
                outcome.message,
            )
        images.append(entry)

    return {
        "success": any(e["url"] for e in images),
        "mode": req.mode,
        "images": images,
    }


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from
    :data:`~productshot.core.config.config`.  Registered as the
    ``productshot`` console script in ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "productshot.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
