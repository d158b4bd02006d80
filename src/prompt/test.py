"""Tests for the structured prompt builder."""

import pytest

from src.layout import LayoutStrategy, SectionRole, compute_layout
from src.schema import AudienceTier, CompiledInput

from . import (
    PromptBuildError,
    StructuredPromptBuilder,
    TextSlot,
    build_structured_prompt,
    color_scheme,
    estimate_generation_time,
    typography,
    validate_structured_prompt,
)


def _build(compiled: CompiledInput, tags=None):
    layout = compute_layout(
        compiled.concept_count, compiled.audience_tier, tags or compiled.tags
    )
    return StructuredPromptBuilder().build(compiled, layout), layout


class TestStructuredPromptBuilder:
    """Tests for object and overlay assembly."""

    @pytest.mark.unit
    @pytest.mark.parametrize("tier", ["beginner", "intermediate", "advanced"])
    @pytest.mark.parametrize("count", [3, 5, 7])
    def test_counts(self, make_input, tier, count):
        """Exactly one concept object per concept and 2n+4 overlays."""
        prompt, layout = _build(make_input(count, tier))
        assert len(prompt.concept_objects()) == count
        assert len(prompt.text_elements) == 2 * count + 4
        assert len(prompt.objects) == len(layout.sections)

    @pytest.mark.unit
    def test_beginner_flow_objects(self, sample_input):
        """Flow layout yields header, concepts, connector and footer."""
        prompt, _ = _build(sample_input)
        roles = [o.role for o in prompt.objects]
        assert roles == [
            SectionRole.HEADER,
            SectionRole.CONCEPT,
            SectionRole.CONCEPT,
            SectionRole.CONCEPT,
            SectionRole.CONNECTOR,
            SectionRole.FOOTER,
        ]
        assert "3 concept sections" in prompt.objects[4].description

    @pytest.mark.unit
    def test_no_connector_outside_flow(self, make_input):
        """Grid layouts carry no connector object."""
        prompt, layout = _build(make_input(3, "intermediate"))
        assert layout.type.value == "grid"
        assert all(o.role != SectionRole.CONNECTOR for o in prompt.objects)

    @pytest.mark.unit
    def test_dense_paired_diagram_objects(self, make_input):
        """Diagram-tagged dense layouts carry concepts in diagram panels too."""
        compiled = make_input(4, "advanced", ["mathematical"])
        prompt, _ = _build(compiled)
        diagrams = [o for o in prompt.objects if o.role == SectionRole.DIAGRAM]
        assert len(diagrams) == 2
        assert [o.concept_index for o in prompt.concept_objects()] == [0, 1, 2, 3]

    @pytest.mark.unit
    def test_overlay_order(self, sample_input):
        """Overlays follow title, subtitle, heading/body pairs, insight, citation."""
        prompt, _ = _build(sample_input)
        slots = [t.slot for t in prompt.text_elements]
        assert slots[0] == TextSlot.TITLE
        assert slots[1] == TextSlot.SUBTITLE
        assert slots[2:8] == [TextSlot.CONCEPT_HEADING, TextSlot.CONCEPT_BODY] * 3
        assert slots[-2:] == [TextSlot.KEY_INSIGHT, TextSlot.CITATION]

    @pytest.mark.unit
    def test_overlay_text(self, sample_input):
        """Literal overlay text is derived from the input."""
        prompt, _ = _build(sample_input)
        texts = [t.text for t in prompt.text_elements]
        assert texts[0] == "ATTENTION IS ALL YOU NEED"
        assert texts[1] == sample_input.summary.one_liner
        assert texts[2] == "1. SELF-ATTENTION"
        assert texts[3] == sample_input.summary.concepts[0].explanation
        assert texts[-2] == f"KEY INSIGHT: {sample_input.summary.key_finding}"
        assert texts[-1] == "Source: arxiv.org/abs/1706.03762"

    @pytest.mark.unit
    def test_heading_location_uses_section_offset(self, sample_input):
        """Headings sit two percent below their section's top."""
        prompt, _ = _build(sample_input)
        heading = prompt.overlays_for(TextSlot.CONCEPT_HEADING)[0]
        assert "approximately 17% from top" in heading.location

    @pytest.mark.unit
    def test_idempotent(self, sample_input):
        """Identical inputs produce identical prompts."""
        first, layout = _build(sample_input)
        second = build_structured_prompt(sample_input, layout)
        assert first == second
        assert first.to_service_payload() == second.to_service_payload()

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "length,expected",
        [(100, "18px"), (160, "16.2px"), (210, "14.4px")],
    )
    def test_body_font_shrinks(self, sample_input_data, length, expected):
        """Long explanations get a smaller body size."""
        sample_input_data["summary"]["concepts"][0]["explanation"] = "x" * length
        compiled = CompiledInput.model_validate(sample_input_data)
        prompt, _ = _build(compiled)
        body = prompt.overlays_for(TextSlot.CONCEPT_BODY)[0]
        assert body.size == f"{expected} equivalent in context"

    @pytest.mark.unit
    def test_context_mentions_background(self, sample_input):
        """Viewer background from preferences reaches the context."""
        prompt, _ = _build(sample_input)
        assert "The viewer has background in: software engineering." in prompt.context

    @pytest.mark.unit
    def test_tier_styles(self, make_input):
        """Tier palette and fonts flow into the prompt."""
        prompt, _ = _build(make_input(3, "advanced"))
        scheme = color_scheme(AudienceTier.ADVANCED)
        assert scheme.primary in prompt.aesthetics.color_scheme
        assert prompt.text_elements[0].font == typography("advanced").title_font
        assert "#EDF2F7" in prompt.background

    @pytest.mark.unit
    def test_mismatched_layout_raises(self, make_input):
        """A layout with too few concept sections is a builder defect."""
        compiled = make_input(5, "beginner")
        layout = compute_layout(3, "beginner")
        with pytest.raises(PromptBuildError):
            StructuredPromptBuilder().build(compiled, layout)

    @pytest.mark.unit
    def test_empty_layout_raises(self, sample_input):
        """A layout without sections cannot place any concept."""
        layout = compute_layout(3, "beginner")
        empty = LayoutStrategy(
            type=layout.type, sections=(), margins=layout.margins, spacing=2
        )
        with pytest.raises(PromptBuildError):
            StructuredPromptBuilder().build(sample_input, empty)


class TestServicePayload:
    """Tests for serialization to the rendering service's field names."""

    @pytest.mark.unit
    def test_field_names(self, sample_input):
        """Background and overlays are renamed; bookkeeping is dropped."""
        prompt, _ = _build(sample_input)
        payload = prompt.to_service_payload()
        assert "background_setting" in payload
        assert "text_render" in payload
        assert "background" not in payload
        assert "text_elements" not in payload
        assert "role" not in payload["objects"][0]
        assert "concept_index" not in payload["objects"][1]
        assert "slot" not in payload["text_render"][0]
        assert len(payload["text_render"]) == 10


class TestValidateStructuredPrompt:
    """Tests for the structural prompt check."""

    @pytest.mark.unit
    def test_built_prompt_is_valid(self, sample_input):
        """Builder output passes the structural check."""
        prompt, _ = _build(sample_input)
        result = validate_structured_prompt(prompt)
        assert result.valid
        assert result.errors == []

    @pytest.mark.unit
    def test_missing_parts(self, sample_input):
        """Missing objects and short description are errors."""
        prompt, _ = _build(sample_input)
        broken = prompt.model_copy(update={"objects": [], "short_description": "x"})
        result = validate_structured_prompt(broken)
        assert not result.valid
        assert "At least one object is required" in result.errors
        assert "Short description is too short or missing" in result.errors

    @pytest.mark.unit
    def test_long_overlay_warns(self, sample_input_data):
        """Overlays over 200 characters are warnings, not errors."""
        sample_input_data["summary"]["concepts"][0]["explanation"] = "y" * 250
        compiled = CompiledInput.model_validate(sample_input_data)
        prompt, _ = _build(compiled)
        result = validate_structured_prompt(prompt)
        assert result.valid
        assert len(result.warnings) == 1


class TestEstimateGenerationTime:
    """Tests for the rendering time estimate."""

    @pytest.mark.unit
    def test_beginner_three_concepts(self, sample_input):
        """15s base + 6 objects + 10 overlays * 0.5 + 5 for very high aesthetics."""
        prompt, _ = _build(sample_input)
        assert estimate_generation_time(prompt) == 31
