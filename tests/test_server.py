"""Tests for the MCP tool handlers and input models."""

import json

import pytest
from conftest import FakeAdapter
from pydantic import ValidationError

from image_for_me.models.domain import Capability, ImageTag
from image_for_me.models.input_models import (
    Backend,
    DescriptionFocus,
    DetailLevel,
    ImageDescriptionInput,
    ImageGenerationInput,
    ImageTaggingInput,
    ListProvidersInput,
    LogoGenerationInput,
    LogoStyle,
    LogoType,
    TagCategory,
)
from image_for_me.providers.orchestrator import ProviderOrchestrator
from image_for_me.server import (
    build_logo_prompt,
    handle_describe_image,
    handle_generate_image,
    handle_generate_logo,
    handle_list_providers,
    handle_tag_image,
    refine_description,
)
from image_for_me.services.cache import ResultCache

ALL_CAPABILITIES = frozenset(Capability)


class TestServerImports:
    def test_server_imports(self):
        from image_for_me.server import create_app, mcp

        assert mcp is not None
        assert create_app() is mcp

    def test_package_exports(self):
        import image_for_me

        assert image_for_me.__version__ == "1.0.0"


class TestInputModels:
    def test_generation_defaults(self):
        params = ImageGenerationInput(prompt="  a red bicycle  ")

        assert params.prompt == "a red bicycle"
        assert params.count == 1
        assert params.format == "png"
        assert params.preferred_backend() is None

    def test_explicit_backend(self):
        params = ImageGenerationInput(prompt="cat", provider="huggingface")
        assert params.preferred_backend() == "huggingface"

    @pytest.mark.parametrize(
        "fields",
        [
            {"prompt": ""},
            {"prompt": "cat", "count": 11},
            {"prompt": "cat", "format": "gif"},
            {"prompt": "cat", "quality": "ultra"},
            {"prompt": "cat", "style": "baroque"},
            {"prompt": "cat", "unknown": True},
        ],
    )
    def test_generation_rejects_bad_input(self, fields):
        with pytest.raises(ValidationError):
            ImageGenerationInput(**fields)

    def test_logo_size_bounds(self):
        with pytest.raises(ValidationError):
            LogoGenerationInput(prompt="owl", logo_type="icon", size=64)
        assert LogoGenerationInput(prompt="owl", logo_type="icon").size == 512

    def test_image_url_must_be_http(self):
        with pytest.raises(ValidationError):
            ImageDescriptionInput(image_url="file:///etc/passwd")
        with pytest.raises(ValidationError):
            ImageTaggingInput(image_url="ftp://img.example/cat.png")

    def test_tagging_categories(self):
        params = ImageTaggingInput(image_url="https://img.example/cat.png", categories=["animal"])
        assert params.categories == [TagCategory.ANIMAL]


class TestLogoPrompt:
    def test_text_logo(self):
        params = LogoGenerationInput(
            prompt="coffee roaster",
            logo_type=LogoType.TEXT,
            business_name="Bean There",
            style=LogoStyle.VINTAGE,
            primary_color="brown",
            industry="food and beverage",
        )

        prompt = build_logo_prompt(params)

        assert prompt.startswith("coffee roaster, text-only logo")
        assert 'featuring the text "Bean There"' in prompt
        assert "vintage style design" in prompt
        assert "primary color: brown" in prompt
        assert "suitable for food and beverage industry" in prompt
        assert "transparent background" in prompt

    def test_icon_logo_ignores_business_name(self):
        params = LogoGenerationInput(prompt="owl", logo_type="icon", business_name="Hoot")

        prompt = build_logo_prompt(params)

        assert "icon-only logo" in prompt
        assert "Hoot" not in prompt
        assert "minimalist style design" in prompt

    def test_combination_logo(self):
        params = LogoGenerationInput(prompt="rocket", logo_type="combination", business_name="Lift")
        prompt = build_logo_prompt(params)
        assert 'incorporating the business name "Lift"' in prompt


class TestGenerateImageHandler:
    @pytest.mark.asyncio
    async def test_markdown_success(self):
        orchestrator = ProviderOrchestrator([FakeAdapter("openai")])

        output = await handle_generate_image(
            orchestrator, ImageGenerationInput(prompt="a red bicycle", width=512, height=512)
        )

        assert "Generated Successfully" in output
        assert "**Provider:** openai" in output
        assert "**Size:** 512x512" in output

    @pytest.mark.asyncio
    async def test_json_output(self):
        orchestrator = ProviderOrchestrator([FakeAdapter("openai")])

        output = await handle_generate_image(
            orchestrator, ImageGenerationInput(prompt="a red bicycle", output_format="json")
        )
        data = json.loads(output)

        assert data["success"] is True
        assert data["backend_name"] == "openai"
        assert data["images"][0]["metadata"]["prompt"] == "a red bicycle"

    @pytest.mark.asyncio
    async def test_cached_response_is_flagged(self):
        orchestrator = ProviderOrchestrator([FakeAdapter("openai")], cache=ResultCache(max_size=5))
        params = ImageGenerationInput(prompt="a red bicycle")

        await handle_generate_image(orchestrator, params)
        output = await handle_generate_image(orchestrator, params)

        assert "**Cached:** yes" in output

    @pytest.mark.asyncio
    async def test_width_without_height(self):
        adapter = FakeAdapter("openai")
        orchestrator = ProviderOrchestrator([adapter])

        output = await handle_generate_image(
            orchestrator, ImageGenerationInput(prompt="cat", width=512, output_format="json")
        )

        assert json.loads(output)["error_code"] == "INVALID_REQUEST"
        assert adapter.probe_calls == 0

    @pytest.mark.asyncio
    async def test_out_of_range_dimensions(self):
        orchestrator = ProviderOrchestrator([FakeAdapter("openai")])

        output = await handle_generate_image(
            orchestrator, ImageGenerationInput(prompt="cat", width=4000, height=512)
        )

        assert "Generation Failed" in output
        assert "`INVALID_REQUEST`" in output

    @pytest.mark.asyncio
    async def test_preferred_backend_is_honored(self):
        orchestrator = ProviderOrchestrator([FakeAdapter("openai"), FakeAdapter("huggingface")])

        output = await handle_generate_image(
            orchestrator, ImageGenerationInput(prompt="cat", provider=Backend.HUGGINGFACE)
        )

        assert "**Provider:** huggingface" in output

    @pytest.mark.asyncio
    async def test_no_backends(self):
        output = await handle_generate_image(ProviderOrchestrator([]), ImageGenerationInput(prompt="cat"))
        assert "`FEATURE_NOT_AVAILABLE`" in output


class TestGenerateLogoHandler:
    @pytest.mark.asyncio
    async def test_logo_is_square_transparent_png(self):
        orchestrator = ProviderOrchestrator([FakeAdapter("openai")])

        output = await handle_generate_logo(
            orchestrator,
            LogoGenerationInput(prompt="owl", logo_type="icon", size=256, output_format="json"),
        )
        data = json.loads(output)

        assert data["success"] is True
        image = data["images"][0]
        assert image["format"] == "png"
        assert image["dimensions"] == {"width": 256, "height": 256}
        assert data["logo_specs"]["transparent"] is True
        assert data["logo_specs"]["style"] == "minimalist"

    @pytest.mark.asyncio
    async def test_logo_requires_logo_capable_backend(self):
        plain = FakeAdapter("openai", capabilities=frozenset({Capability.GENERATION}))
        orchestrator = ProviderOrchestrator([plain])

        output = await handle_generate_logo(orchestrator, LogoGenerationInput(prompt="owl", logo_type="icon"))

        assert "Logo Generation Failed" in output
        assert plain.generate_calls == 0


class TestDescribeHandler:
    @pytest.mark.asyncio
    async def test_detailed_description(self):
        adapter = FakeAdapter(
            "openai",
            capabilities=ALL_CAPABILITIES,
            description="A red bicycle. It leans on a wall. The sky is blue.",
        )

        output = await handle_describe_image(
            ProviderOrchestrator([adapter]), ImageDescriptionInput(image_url="https://img.example/b.png")
        )

        assert "The sky is blue." in output
        assert "**Provider:** openai" in output

    @pytest.mark.asyncio
    async def test_brief_keeps_two_sentences(self):
        adapter = FakeAdapter(
            "openai",
            capabilities=ALL_CAPABILITIES,
            description="A red bicycle. It leans on a wall. The sky is blue.",
        )

        output = await handle_describe_image(
            ProviderOrchestrator([adapter]),
            ImageDescriptionInput(
                image_url="https://img.example/b.png", detail_level="brief", output_format="json"
            ),
        )

        assert json.loads(output)["description"] == "A red bicycle. It leans on a wall."

    @pytest.mark.asyncio
    async def test_focus_keeps_matching_sentences(self):
        adapter = FakeAdapter(
            "openai",
            capabilities=ALL_CAPABILITIES,
            description="A woman rides a bicycle. The walls are bright yellow. It is noon.",
        )

        output = await handle_describe_image(
            ProviderOrchestrator([adapter]),
            ImageDescriptionInput(
                image_url="https://img.example/b.png",
                focus="colors",
                language="french",
                output_format="json",
            ),
        )
        data = json.loads(output)

        assert data["description"] == "Focusing on colors: The walls are bright yellow."
        assert data["original_description"].startswith("A woman rides")
        assert data["parameters"] == {
            "detail_level": "detailed",
            "focus": "colors",
            "language": "french",
        }

    @pytest.mark.asyncio
    async def test_focus_in_markdown(self):
        adapter = FakeAdapter(
            "openai", capabilities=ALL_CAPABILITIES, description="A man waves. The sky is clear."
        )

        output = await handle_describe_image(
            ProviderOrchestrator([adapter]),
            ImageDescriptionInput(image_url="https://img.example/b.png", focus="people"),
        )

        assert "Focusing on people: A man waves." in output
        assert "**Focus:** people" in output

    @pytest.mark.asyncio
    async def test_comprehensive_flags_short_descriptions(self):
        adapter = FakeAdapter(
            "openai", capabilities=ALL_CAPABILITIES, description="A red bicycle."
        )

        output = await handle_describe_image(
            ProviderOrchestrator([adapter]),
            ImageDescriptionInput(
                image_url="https://img.example/b.png",
                detail_level="comprehensive",
                output_format="json",
            ),
        )

        description = json.loads(output)["description"]
        assert description.startswith("A red bicycle. This image would benefit")

    @pytest.mark.asyncio
    async def test_no_describer(self):
        output = await handle_describe_image(
            ProviderOrchestrator([FakeAdapter("openai")]),
            ImageDescriptionInput(image_url="https://img.example/b.png"),
        )
        assert "`FEATURE_NOT_AVAILABLE`" in output


class TestTagHandler:
    TAGS = [
        ImageTag("tabby cat", 0.92, "animal"),
        ImageTag("sofa", 0.40, "object"),
        ImageTag("dog bed", 0.30, "animal"),
        ImageTag("window", 0.05, "object"),
    ]

    def orchestrator(self) -> ProviderOrchestrator:
        return ProviderOrchestrator(
            [FakeAdapter("huggingface", capabilities=ALL_CAPABILITIES, tags=self.TAGS)]
        )

    async def tags_for(self, **fields) -> list[dict]:
        params = ImageTaggingInput(
            image_url="https://img.example/cat.png", output_format="json", **fields
        )
        return json.loads(await handle_tag_image(self.orchestrator(), params))["tags"]

    @pytest.mark.asyncio
    async def test_default_threshold_drops_low_confidence(self):
        labels = [tag["label"] for tag in await self.tags_for()]
        assert labels == ["tabby cat", "sofa", "dog bed"]

    @pytest.mark.asyncio
    async def test_category_filter(self):
        labels = [tag["label"] for tag in await self.tags_for(categories=["animal"])]
        assert labels == ["tabby cat", "dog bed"]

    @pytest.mark.asyncio
    async def test_max_tags(self):
        labels = [tag["label"] for tag in await self.tags_for(max_tags=1, min_confidence=0.0)]
        assert labels == ["tabby cat"]

    @pytest.mark.asyncio
    async def test_markdown_lists_tags(self):
        output = await handle_tag_image(
            self.orchestrator(), ImageTaggingInput(image_url="https://img.example/cat.png")
        )
        assert "- **tabby cat** (animal): 92%" in output

    @pytest.mark.asyncio
    async def test_empty_after_filtering(self):
        output = await handle_tag_image(
            self.orchestrator(),
            ImageTaggingInput(image_url="https://img.example/cat.png", categories=["food"]),
        )
        assert "No tags matched" in output


class TestListProvidersHandler:
    @pytest.mark.asyncio
    async def test_markdown(self):
        orchestrator = ProviderOrchestrator(
            [FakeAdapter("openai"), FakeAdapter("gemini", available=False)],
            cache=ResultCache(max_size=5),
        )

        output = await handle_list_providers(orchestrator, ListProvidersInput())

        assert "**Configured:** 2  **Available:** 1" in output
        assert "- Generate images: ✅" in output
        assert "- Tag images: ❌" in output
        assert "❌ **Fake gemini** (`gemini`)" in output
        assert "### Cache" in output

    @pytest.mark.asyncio
    async def test_json(self):
        orchestrator = ProviderOrchestrator([FakeAdapter("openai")])

        data = json.loads(
            await handle_list_providers(orchestrator, ListProvidersInput(output_format="json"))
        )

        assert data["capabilities"]["can_generate"] is True
        assert data["total_providers"] == 1
        assert data["cache"] is None

    @pytest.mark.asyncio
    async def test_no_backends_configured(self):
        output = await handle_list_providers(ProviderOrchestrator([]), ListProvidersInput())
        assert "No backends configured" in output


class TestRefineDescription:
    TEXT = "A man holds a lamp. The room is dark blue. The framing is tight."

    def test_detailed_is_unchanged(self):
        assert refine_description(self.TEXT) == self.TEXT

    def test_focus_without_matches_keeps_detail_level(self):
        refined = refine_description(self.TEXT, DetailLevel.BRIEF, DescriptionFocus.STYLE)
        assert refined == "A man holds a lamp. The room is dark blue."

    def test_keywords_match_whole_words(self):
        # "many" must not count as a mention of "man"
        refined = refine_description(
            "Many lamps glow. A man reads.", focus=DescriptionFocus.PEOPLE
        )
        assert refined == "Focusing on people: A man reads."

    def test_long_comprehensive_text_is_unchanged(self):
        text = "A detailed sentence about the scene. " * 10
        refined = refine_description(text, DetailLevel.COMPREHENSIVE)
        assert refined == text.strip()

    def test_composition_focus(self):
        refined = refine_description(self.TEXT, focus=DescriptionFocus.COMPOSITION)
        assert refined == "Focusing on composition: The framing is tight."
