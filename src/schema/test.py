"""Tests for the compiled input schema and validator."""

import json

import pytest
from pydantic import ValidationError

from .lib import (
    MAX_CONCEPTS,
    MIN_CONCEPTS,
    REFERENCE_EXAMPLE,
    AudienceTier,
    CompiledInput,
    export_json_schema,
    is_valid_compiled_input,
    reference_example_json,
    schema_definition,
    validate_compiled_input,
)


class TestValidateCompiledInput:
    """Tests for the schema validator."""

    @pytest.mark.unit
    def test_valid_input(self, sample_input_data):
        """A well-formed payload validates with zero errors."""
        result = validate_compiled_input(sample_input_data)
        assert result.ok
        assert result.errors == []
        assert isinstance(result.value, CompiledInput)
        assert result.value.audience_tier is AudienceTier.BEGINNER

    @pytest.mark.unit
    def test_round_trip(self, sample_input):
        """A valid CompiledInput revalidates from its JSON dump."""
        dumped = json.loads(sample_input.model_dump_json())
        result = validate_compiled_input(dumped)
        assert result.ok
        assert result.errors == []
        assert result.value == sample_input

    @pytest.mark.unit
    def test_existing_instance_passes_through(self, sample_input):
        """An existing model is accepted without re-parsing."""
        result = validate_compiled_input(sample_input)
        assert result.ok
        assert result.value is sample_input

    @pytest.mark.unit
    def test_reference_example_is_valid(self):
        """The few-shot example satisfies the schema it is paired with."""
        assert is_valid_compiled_input(REFERENCE_EXAMPLE)

    @pytest.mark.unit
    def test_too_few_concepts(self, sample_input_data):
        """Fewer than the minimum concept count is rejected."""
        sample_input_data["summary"]["concepts"] = sample_input_data["summary"][
            "concepts"
        ][: MIN_CONCEPTS - 1]
        result = validate_compiled_input(sample_input_data)
        assert not result.ok
        assert result.value is None
        assert any(
            e.startswith("summary.concepts:") and f"at least {MIN_CONCEPTS}" in e
            for e in result.errors
        )

    @pytest.mark.unit
    def test_too_many_concepts(self, sample_input_data):
        """More than the maximum concept count is rejected."""
        concept = sample_input_data["summary"]["concepts"][0]
        sample_input_data["summary"]["concepts"] = [concept] * (MAX_CONCEPTS + 1)
        result = validate_compiled_input(sample_input_data)
        assert not result.ok
        assert any(f"at most {MAX_CONCEPTS}" in e for e in result.errors)

    @pytest.mark.unit
    def test_repeated_concept_rejected(self, sample_input_data):
        """Padding the list with copies of one concept is not enough."""
        concept = sample_input_data["summary"]["concepts"][0]
        sample_input_data["summary"]["concepts"] = [concept] * MIN_CONCEPTS
        result = validate_compiled_input(sample_input_data)
        assert not result.ok
        assert any(
            e.startswith("summary.concepts:") and "Duplicate concept name" in e
            for e in result.errors
        )

    @pytest.mark.unit
    def test_concept_names_compared_case_insensitively(self, sample_input_data):
        """Names differing only in case or padding count as duplicates."""
        concepts = sample_input_data["summary"]["concepts"]
        concepts[1]["name"] = f"  {concepts[0]['name'].upper()} "
        assert not validate_compiled_input(sample_input_data).ok

    @pytest.mark.unit
    def test_missing_field_path(self, sample_input_data):
        """Missing required fields are reported with dotted paths."""
        del sample_input_data["summary"]["concepts"][1]["visual_metaphor"]
        result = validate_compiled_input(sample_input_data)
        assert not result.ok
        assert "summary.concepts.1.visual_metaphor: Field required" in result.errors

    @pytest.mark.unit
    def test_whitespace_only_name_rejected(self, sample_input_data):
        """Whitespace-only strings count as empty."""
        sample_input_data["summary"]["concepts"][0]["name"] = "   "
        result = validate_compiled_input(sample_input_data)
        assert not result.ok
        assert any(e.startswith("summary.concepts.0.name:") for e in result.errors)

    @pytest.mark.unit
    def test_invalid_tier(self, sample_input_data):
        """Unknown audience tiers are rejected."""
        sample_input_data["audience_tier"] = "expert"
        result = validate_compiled_input(sample_input_data)
        assert not result.ok
        assert any(e.startswith("audience_tier:") for e in result.errors)

    @pytest.mark.unit
    def test_unknown_field_rejected(self, sample_input_data):
        """Invented fields are not accepted."""
        sample_input_data["mood"] = "cheerful"
        result = validate_compiled_input(sample_input_data)
        assert not result.ok
        assert any(e.startswith("mood:") for e in result.errors)

    @pytest.mark.unit
    def test_empty_tags_rejected(self, sample_input_data):
        """At least one tag is required."""
        sample_input_data["tags"] = []
        assert not is_valid_compiled_input(sample_input_data)

    @pytest.mark.unit
    @pytest.mark.parametrize("value", [None, 42, "text", [1, 2]])
    def test_non_mapping_reports_root(self, value):
        """Non-mapping values produce a root-level error instead of raising."""
        result = validate_compiled_input(value)
        assert not result.ok
        assert result.errors[0].startswith("(root):")


class TestCompiledInputModel:
    """Tests for model behaviour."""

    @pytest.mark.unit
    def test_frozen(self, sample_input):
        """Compiled input cannot be mutated after construction."""
        with pytest.raises(ValidationError):
            sample_input.source_id = "other"

    @pytest.mark.unit
    def test_concept_count(self, sample_input):
        """concept_count mirrors the concept list."""
        assert sample_input.concept_count == 3

    @pytest.mark.unit
    def test_strips_whitespace(self, sample_input_data):
        """Leading and trailing whitespace is removed."""
        sample_input_data["source_id"] = "  2401.00001  "
        result = validate_compiled_input(sample_input_data)
        assert result.value.source_id == "2401.00001"


class TestSchemaExport:
    """Tests for prompt schema material."""

    @pytest.mark.unit
    def test_export_has_required_fields(self):
        """JSON schema lists the top-level required fields."""
        schema = export_json_schema()
        assert set(schema["required"]) == {
            "summary",
            "audience_tier",
            "tags",
            "source_id",
        }

    @pytest.mark.unit
    def test_schema_definition_is_json(self):
        """Schema text parses back to the exported schema."""
        assert json.loads(schema_definition()) == export_json_schema()

    @pytest.mark.unit
    def test_reference_example_json(self):
        """Example text parses back to the example dict."""
        assert json.loads(reference_example_json()) == REFERENCE_EXAMPLE
