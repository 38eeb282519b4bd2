"""Per-mode prompt composition for a batch of image slots.

Each generate request produces a small batch (four by default) of images for
one *mode*.  Every slot gets its own prompt, built from the user's form input
plus a randomly drawn scene or pose so the batch shows variety.  Variations
are drawn without replacement within a batch.

Modes
-----
``pov``
    A hand holding the product in a styled scene.  When a background
    reference image is supplied, slot 0 is pinned to that background and
    receives the reference image; the other slots use random scenes.
``product``
    Commercial product photography in a random scene, shaped by the
    lighting, location and ambience options.  An uploaded logo is attached
    to every slot.
``model``
    Fashion shot on a human model or a fabric mannequin.  Gender and hijab
    choices only apply to human models, and a face reference image is
    attached when supplied.

Preset lists and option values come from ``presets.json`` in the configured
data directory, so wording can be tuned without code changes.  Sections are
joined with single spaces, and empty optional sections are omitted.

Usage
-----
::

    presets = PresetLibrary.load(config.data_dir)
    plans = plan_batch(AppMode.PRODUCT, form, presets, count=4)
    payloads = [plan.payload() for plan in plans]
"""

from __future__ import annotations

import json
import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from productshot.core.payload import ImagePart, RequestPayload, build_payload

logger = logging.getLogger(__name__)

PRESETS_FILENAME = "presets.json"


class AppMode(str, Enum):
    POV = "pov"
    PRODUCT = "product"
    MODEL = "model"


class FormValidationError(ValueError):
    """User-friendly form validation error.

    The message is intended to be displayed directly to the user.
    """

    pass


@dataclass
class FormInput:
    """Everything the user filled in for one batch.

    Option fields hold values from ``PresetLibrary.options``; ``None`` means
    "use the preset default".
    """

    product_images: list[ImagePart] = field(default_factory=list)
    background_reference: ImagePart | None = None
    logo: ImagePart | None = None
    face: ImagePart | None = None
    background_description: str = ""
    lighting: str | None = None
    ambience: str | None = None
    location: str | None = None
    gender: str | None = None
    model_type: str | None = None
    age_range: str | None = None
    visual_style: str | None = None
    hijab: str | None = None


@dataclass(frozen=True)
class SlotPlan:
    """Prompt and ordered images for one slot of the batch."""

    index: int
    prompt: str
    product_images: tuple[ImagePart, ...]
    reference: ImagePart | None = None
    logo: ImagePart | None = None
    face: ImagePart | None = None

    def payload(self) -> RequestPayload:
        return build_payload(
            self.prompt,
            self.product_images,
            reference=self.reference,
            logo=self.logo,
            face=self.face,
        )


class PresetLibrary:
    """Option lists and scene presets loaded from ``presets.json``."""

    def __init__(self, data: dict) -> None:
        self.modes: list[dict] = data.get("modes", [])
        self.options: dict[str, list[str]] = data.get("options", {})
        self.defaults: dict[str, str] = data.get("defaults", {})
        self.mannequin_option: str = data.get("mannequin_option", "")
        self.male_option: str = data.get("male_option", "")
        self.no_hijab_option: str = data.get("no_hijab_option", "")
        self.pov_scenes: list[str] = data.get("pov_scenes", [])
        self.pov_hands: list[str] = data.get("pov_hands", [])
        self.product_scenes: list[str] = data.get("product_scenes", [])
        self.model_poses: list[str] = data.get("model_poses", [])
        self.model_backgrounds: list[str] = data.get("model_backgrounds", [])

    @classmethod
    def load(cls, data_dir: Path) -> PresetLibrary:
        """Load presets from ``data_dir / presets.json``.

        Raises:
            FileNotFoundError: If the presets file is missing.
            json.JSONDecodeError: If the file is not valid JSON.
        """
        path = Path(data_dir) / PRESETS_FILENAME
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        logger.debug("Loaded presets from %s", path)
        return cls(data)

    def resolve(self, name: str, value: str | None) -> str:
        """Return *value* if it is a known option for *name*, else raise.

        ``None`` or empty input resolves to the preset default.  Fields with
        no option list (for example ``age_range``) accept free text.
        """
        if not value:
            return self.defaults.get(name, "")
        allowed = self.options.get(name)
        if allowed is not None and value not in allowed:
            raise FormValidationError(
                f"Invalid {name.replace('_', ' ')}: {value!r}. Choose one of: {', '.join(allowed)}"
            )
        return value


def _pick(rng: random.Random, items: list[str], count: int) -> list[str]:
    """Draw *count* items without replacement, cycling if the list is short."""
    if not items:
        return [""] * count
    picked: list[str] = []
    while len(picked) < count:
        picked.extend(rng.sample(items, min(len(items), count - len(picked))))
    return picked


def _pov_prompt(index: int, form: FormInput, hand: str, scene: str) -> tuple[str, bool]:
    parts = ["High quality product photography. Show the uploaded product image(s) exactly as is."]
    use_reference = index == 0 and form.background_reference is not None
    if use_reference:
        parts.append(f"Create a POV shot where a hand is holding the product(s). {hand}")
        parts.append(
            "The background MUST match the provided reference background image exactly. "
            "Blend the product naturally into the scene."
        )
    else:
        parts.append(f"Create a realistic POV shot where a hand is holding the product(s). {hand}")
        parts.append(f"Background context: {scene}")
        if form.background_description.strip():
            parts.append(f"Additional details: {form.background_description.strip()}.")
    return " ".join(parts), use_reference


def _product_prompt(form: FormInput, presets: PresetLibrary, scene: str) -> str:
    lighting = presets.resolve("lighting", form.lighting)
    location = presets.resolve("location", form.location)
    ambience = presets.resolve("ambience", form.ambience)

    parts = [
        "Commercial Product Photography.",
        f'Task: Contextually blend the uploaded product(s) into the following scene: "{scene}".',
        "Analyze the uploaded product type and make sure it sits naturally in this environment; "
        "adapt the props slightly if the scene is physically implausible for it.",
        f"Lighting: {lighting}. Location: {location}. Atmosphere: {ambience}.",
    ]
    if form.logo is not None:
        parts.append(
            "Integrate the uploaded logo image naturally into the scene "
            "(on the packaging or as a background element)."
        )
    parts.append("Professional studio lighting, 8k resolution, hyper-realistic, detailed texture.")
    return " ".join(parts)


def _model_prompt(
    form: FormInput, presets: PresetLibrary, pose: str, background: str
) -> tuple[str, bool]:
    model_type = presets.resolve("model_type", form.model_type)
    visual_style = presets.resolve("visual_style", form.visual_style)
    location = presets.resolve("location", form.location)

    parts = [
        "Professional high-end fashion photography.",
        "Task: Create a seamless composition featuring the uploaded product(s).",
        "The product must be physically integrated: clothing drapes and stretches realistically, "
        "no cut-out effect.",
    ]
    use_face = False

    if model_type == presets.mannequin_option:
        parts.append(
            "Subject: a neutral, headless fabric mannequin. No human skin, faces, eyes or hair. "
            "Focus on the 3D form and fit of the product."
        )
    else:
        gender = presets.resolve("gender", form.gender)
        is_male = gender == presets.male_option
        if is_male:
            parts.append("Subject: a realistic MALE model with masculine features and styling.")
        else:
            parts.append("Subject: a realistic FEMALE model with a feminine physique.")
        age = (form.age_range or "").strip() or presets.defaults.get("age_range", "young adult")
        parts.append(f"Approximate age: {age}.")

        if not is_male:
            hijab = presets.resolve("hijab", form.hijab)
            if hijab != presets.no_hijab_option:
                parts.append(f"The model wears a {hijab} that matches the outfit.")
            else:
                parts.append("The model is not wearing a hijab; hair styled naturally.")

        if form.face is not None:
            parts.append("The model's face MUST match the provided reference face image exactly.")
            use_face = True
        else:
            parts.append("The model has a natural look with realistic skin texture.")

    parts.append(f"Pose: {pose}")
    parts.append(f"Visual style: {visual_style}. Location: {location}. Background: {background}")
    parts.append("Editorial fashion magazine quality, 8k, highly detailed.")
    return " ".join(parts), use_face


def plan_batch(
    mode: AppMode | str,
    form: FormInput,
    presets: PresetLibrary,
    count: int = 4,
    rng: random.Random | None = None,
) -> list[SlotPlan]:
    """Build prompt and image plans for every slot in a batch.

    Args:
        mode: Generation mode.
        form: User input for the batch.
        presets: Loaded preset library.
        count: Number of slots.
        rng: Random source for variation sampling.

    Returns:
        ``count`` slot plans, in slot order.

    Raises:
        FormValidationError: If no product image is supplied, the mode is
            unknown, or an option value is not in its preset list.
    """
    if not form.product_images:
        raise FormValidationError("Upload at least one product image")
    try:
        mode = AppMode(mode)
    except ValueError as e:
        raise FormValidationError(f"Unknown mode: {mode}") from e

    rng = rng or random.Random()
    products = tuple(form.product_images)
    plans: list[SlotPlan] = []

    if mode is AppMode.POV:
        hands = _pick(rng, presets.pov_hands, count)
        scenes = _pick(rng, presets.pov_scenes, count)
        for i in range(count):
            prompt, use_reference = _pov_prompt(i, form, hands[i], scenes[i])
            plans.append(
                SlotPlan(
                    i,
                    prompt,
                    products,
                    reference=form.background_reference if use_reference else None,
                )
            )
    elif mode is AppMode.PRODUCT:
        scenes = _pick(rng, presets.product_scenes, count)
        for i in range(count):
            plans.append(SlotPlan(i, _product_prompt(form, presets, scenes[i]), products, logo=form.logo))
    else:
        poses = _pick(rng, presets.model_poses, count)
        backgrounds = _pick(rng, presets.model_backgrounds, count)
        for i in range(count):
            prompt, use_face = _model_prompt(form, presets, poses[i], backgrounds[i])
            plans.append(SlotPlan(i, prompt, products, face=form.face if use_face else None))

    logger.info("Planned %d %s slot(s)", len(plans), mode.value)
    return plans
