"""Tests for productshot.core.prompt_builder.

Tests cover:
- Preset loading and option resolution
- Per-mode prompt content and image attachment
- Validation errors for bad form input
- Variation sampling without replacement
"""

import random

import pytest

from productshot.core.payload import ImagePart
from productshot.core.prompt_builder import (
    AppMode,
    FormInput,
    FormValidationError,
    PresetLibrary,
    _pick,
    plan_batch,
)


def _part(tag: bytes) -> ImagePart:
    return ImagePart(data=tag, media_type="image/png")


@pytest.fixture
def form(product_image):
    return FormInput(product_images=[product_image])


class TestPresetLibrary:
    def test_bundled_presets_load(self, presets):
        assert [m["id"] for m in presets.modes] == ["pov", "product", "model"]
        assert "Light" in presets.options["lighting"]
        assert len(presets.product_scenes) >= 4
        assert len(presets.pov_hands) >= 4

    def test_resolve_default(self, presets):
        assert presets.resolve("lighting", None) == "Light"
        assert presets.resolve("lighting", "") == "Light"

    def test_resolve_known_value(self, presets):
        assert presets.resolve("lighting", "Dark") == "Dark"

    def test_resolve_unknown_value(self, presets):
        with pytest.raises(FormValidationError, match="Invalid lighting"):
            presets.resolve("lighting", "Neon")

    def test_resolve_free_text_field(self):
        library = PresetLibrary({"options": {}, "defaults": {}})
        assert library.resolve("age_range", "40s") == "40s"

    def test_load_missing_file(self, temp_dir):
        with pytest.raises(FileNotFoundError):
            PresetLibrary.load(temp_dir)


class TestPick:
    def test_without_replacement(self):
        picked = _pick(random.Random(1), ["a", "b", "c", "d", "e"], 4)
        assert len(set(picked)) == 4

    def test_cycles_when_short(self):
        picked = _pick(random.Random(1), ["a", "b"], 4)
        assert sorted(picked) == ["a", "a", "b", "b"]

    def test_empty_list(self):
        assert _pick(random.Random(1), [], 2) == ["", ""]


class TestPlanBatchValidation:
    def test_requires_product_image(self, presets):
        with pytest.raises(FormValidationError, match="at least one product image"):
            plan_batch(AppMode.PRODUCT, FormInput(), presets)

    def test_unknown_mode(self, presets, form):
        with pytest.raises(FormValidationError, match="Unknown mode"):
            plan_batch("banner", form, presets)

    def test_invalid_option(self, presets, form):
        form.ambience = "Disco"
        with pytest.raises(FormValidationError, match="Invalid ambience"):
            plan_batch(AppMode.PRODUCT, form, presets)

    def test_mode_accepts_string(self, presets, form):
        assert len(plan_batch("product", form, presets)) == 4


class TestPovMode:
    def test_reference_only_on_first_slot(self, presets, form):
        form.background_reference = _part(b"ref")

        plans = plan_batch(AppMode.POV, form, presets, rng=random.Random(0))

        assert plans[0].reference is form.background_reference
        assert "reference background" in plans[0].prompt
        assert all(p.reference is None for p in plans[1:])
        assert all("Background context:" in p.prompt for p in plans[1:])

    def test_without_reference_uses_scenes(self, presets, form):
        form.background_description = "marble countertop"

        plans = plan_batch(AppMode.POV, form, presets, rng=random.Random(0))

        assert all(p.reference is None for p in plans)
        assert all("Additional details: marble countertop." in p.prompt for p in plans)

    def test_payload_order(self, presets, form):
        form.background_reference = _part(b"ref")
        payload = plan_batch(AppMode.POV, form, presets, rng=random.Random(0))[0].payload()
        assert [p.data for p in payload.images] == [form.product_images[0].data, b"ref"]


class TestProductMode:
    def test_options_in_prompt(self, presets, form):
        form.lighting = "Dark"
        form.location = "Outdoor"
        form.ambience = "Dark Luxury"

        plans = plan_batch(AppMode.PRODUCT, form, presets, rng=random.Random(0))

        assert all("Lighting: Dark. Location: Outdoor. Atmosphere: Dark Luxury." in p.prompt for p in plans)
        assert all(p.logo is None for p in plans)

    def test_logo_attached_to_every_slot(self, presets, form):
        form.logo = _part(b"logo")

        plans = plan_batch(AppMode.PRODUCT, form, presets, rng=random.Random(0))

        assert all(p.logo is form.logo for p in plans)
        assert all("logo" in p.prompt for p in plans)

    def test_scenes_vary_within_batch(self, presets, form):
        plans = plan_batch(AppMode.PRODUCT, form, presets, rng=random.Random(0))
        assert len({p.prompt for p in plans}) == len(plans)

    def test_seeded_rng_is_deterministic(self, presets, form):
        first = plan_batch(AppMode.PRODUCT, form, presets, rng=random.Random(42))
        second = plan_batch(AppMode.PRODUCT, form, presets, rng=random.Random(42))
        assert [p.prompt for p in first] == [p.prompt for p in second]

    def test_count(self, presets, form):
        plans = plan_batch(AppMode.PRODUCT, form, presets, count=2)
        assert [p.index for p in plans] == [0, 1]


class TestModelMode:
    def test_mannequin_skips_human_details(self, presets, form):
        form.model_type = "Fabric Mannequin"
        form.face = _part(b"face")
        form.hijab = "Modern Hijab"

        plans = plan_batch(AppMode.MODEL, form, presets, rng=random.Random(0))

        assert all("mannequin" in p.prompt for p in plans)
        assert all("hijab" not in p.prompt.lower() for p in plans)
        assert all(p.face is None for p in plans)

    def test_male_model_ignores_hijab(self, presets, form):
        form.gender = "Male"
        form.hijab = "Modern Hijab"

        plans = plan_batch(AppMode.MODEL, form, presets, rng=random.Random(0))

        assert all("MALE model" in p.prompt for p in plans)
        assert all("hijab" not in p.prompt.lower() for p in plans)

    def test_female_with_hijab(self, presets, form):
        form.hijab = "Syar'i Hijab"
        plans = plan_batch(AppMode.MODEL, form, presets, rng=random.Random(0))
        assert all("wears a Syar'i Hijab" in p.prompt for p in plans)

    def test_default_age(self, presets, form):
        plans = plan_batch(AppMode.MODEL, form, presets, rng=random.Random(0))
        assert "Approximate age: 25 years old." in plans[0].prompt

    def test_face_reference_attached(self, presets, form):
        form.face = _part(b"face")

        plans = plan_batch(AppMode.MODEL, form, presets, rng=random.Random(0))

        assert all(p.face is form.face for p in plans)
        assert all("reference face" in p.prompt for p in plans)
        assert plans[0].payload().images[-1].data == b"face"
