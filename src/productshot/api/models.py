"""Pydantic request models for the Productshot API.

Models
------
GenerateRequest
    Payload for ``POST /api/generate`` and ``POST /api/prompt/compile``.
    Images travel as base64 ``data:`` URIs, exactly as a browser
    ``FileReader.readAsDataURL`` produces them.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class GenerateRequest(BaseModel):
    """Request body for the ``POST /api/generate`` endpoint.

    Attributes:
        mode: ``"pov"``, ``"product"`` or ``"model"``.
        product_images: One or more product images as data URIs.
        background_reference: Optional background reference (POV mode).
        logo: Optional logo image (product mode).
        face: Optional face reference (model mode).
        background_description: Extra background text (POV mode).
        lighting, ambience, location: Product-mode options.
        gender, model_type, age_range, visual_style, hijab: Model-mode
            options.  ``None`` selects the preset default.
        seed: Optional seed for the variation draw, for reproducible
            prompts.
    """

    mode: str = Field(..., description="Generation mode: 'pov', 'product' or 'model'.")
    product_images: list[str] = Field(
        default_factory=list,
        description="Product images as base64 data URIs (at least one required).",
    )
    background_reference: str | None = Field(
        default=None,
        description="Background reference image as a data URI (POV mode).",
    )
    logo: str | None = Field(default=None, description="Logo image as a data URI (product mode).")
    face: str | None = Field(default=None, description="Face reference as a data URI (model mode).")
    background_description: str = Field(
        default="",
        description="Additional background details (POV mode).",
    )
    lighting: str | None = None
    ambience: str | None = None
    location: str | None = None
    gender: str | None = None
    model_type: str | None = None
    age_range: str | None = None
    visual_style: str | None = None
    hijab: str | None = None
    seed: int | None = Field(
        default=None,
        description="Seed for scene/pose sampling.  None = random.",
    )
