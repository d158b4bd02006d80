"""Tests for the layout engine."""

import pytest
from pydantic import ValidationError

from src.core.errors import InputContractViolation

from .lib import (
    HEIGHT_TOLERANCE,
    LayoutEngine,
    LayoutStrategy,
    LayoutType,
    Margins,
    Position,
    Section,
    SectionRole,
    alternative_layouts,
    compute_layout,
    format_percent,
    layout_recommendations,
    position_label,
    validate_layout,
)

TIERS = ["beginner", "intermediate", "advanced"]
TAG_SETS = [[], ["nlp"], ["mathematical"], ["Visual", "theory"]]
OVERHEAD = {
    LayoutType.FLOW: 3,
    LayoutType.GRID: 2,
    LayoutType.F_PATTERN: 2,
    LayoutType.DENSE: 2,
}


class TestLayoutSelection:
    """Tests for the fixed selection policy."""

    @pytest.mark.unit
    @pytest.mark.parametrize("count", [1, 3, 7, 10])
    def test_beginner_always_flow(self, count):
        """Beginner posters use the flow layout regardless of count."""
        assert compute_layout(count, "beginner", []).type == LayoutType.FLOW

    @pytest.mark.unit
    @pytest.mark.parametrize("count", [1, 2, 3, 4])
    def test_intermediate_small_is_grid(self, count):
        """Intermediate posters with up to four concepts use a grid."""
        assert compute_layout(count, "intermediate", []).type == LayoutType.GRID

    @pytest.mark.unit
    @pytest.mark.parametrize("count", [5, 6, 7, 10])
    def test_intermediate_large_is_f_pattern(self, count):
        """Intermediate posters with five or more concepts use the F-pattern."""
        assert compute_layout(count, "intermediate", []).type == LayoutType.F_PATTERN

    @pytest.mark.unit
    @pytest.mark.parametrize("count", [1, 4, 7])
    def test_advanced_is_dense(self, count):
        """Advanced posters always use the dense layout."""
        assert compute_layout(count, "advanced", ["mathematical"]).type == (
            LayoutType.DENSE
        )

    @pytest.mark.unit
    def test_accepts_enum_tier(self):
        """Tier may be passed as an AudienceTier member."""
        from src.schema import AudienceTier

        layout = compute_layout(3, AudienceTier.INTERMEDIATE)
        assert layout.type == LayoutType.GRID

    @pytest.mark.unit
    def test_deterministic(self):
        """Identical inputs produce equal layouts."""
        first = compute_layout(6, "advanced", ["visual"])
        second = compute_layout(6, "advanced", ["visual"])
        assert first == second
        assert first is not second


class TestLayoutInvariants:
    """Height and section-count invariants across every supported input."""

    @pytest.mark.unit
    @pytest.mark.parametrize("tier", TIERS)
    @pytest.mark.parametrize("tags", TAG_SETS)
    @pytest.mark.parametrize("count", range(1, 11))
    def test_heights_sum_to_100(self, count, tier, tags):
        """Covered height is 100 within tolerance."""
        layout = compute_layout(count, tier, tags)
        assert abs(layout.total_height_share() - 100) <= HEIGHT_TOLERANCE

    @pytest.mark.unit
    @pytest.mark.parametrize("tier", TIERS)
    @pytest.mark.parametrize("tags", TAG_SETS)
    @pytest.mark.parametrize("count", range(1, 11))
    def test_section_count(self, count, tier, tags):
        """Section count is the concept count plus a per-type overhead."""
        layout = compute_layout(count, tier, tags)
        assert len(layout.sections) == count + OVERHEAD[layout.type]
        assert len(layout.concept_sections()) == count
        assert [s.concept_index for s in layout.concept_sections()] == list(
            range(count)
        )

    @pytest.mark.unit
    @pytest.mark.parametrize("tier", TIERS)
    def test_single_header_and_footer(self, tier):
        """Every layout has exactly one header and one footer."""
        layout = compute_layout(4, tier, ["visual"])
        assert len(layout.sections_for(SectionRole.HEADER)) == 1
        assert len(layout.sections_for(SectionRole.FOOTER)) == 1
        assert layout.sections[0].role == SectionRole.HEADER
        assert layout.sections[-1].role == SectionRole.FOOTER

    @pytest.mark.unit
    def test_layout_is_frozen(self):
        """Computed layouts cannot be mutated."""
        layout = compute_layout(3, "beginner")
        with pytest.raises(ValidationError):
            layout.type = LayoutType.GRID


class TestLayoutGeometry:
    """Tests for the geometry of each layout type."""

    @pytest.mark.unit
    def test_flow_geometry(self):
        """Flow splits 75% evenly and adds a spanning connector overlay."""
        layout = compute_layout(3, "beginner", [])
        roles = [s.role for s in layout.sections]
        assert roles == [
            SectionRole.HEADER,
            SectionRole.CONCEPT,
            SectionRole.CONCEPT,
            SectionRole.CONCEPT,
            SectionRole.CONNECTOR,
            SectionRole.FOOTER,
        ]
        concepts = layout.sections_for(SectionRole.CONCEPT)
        assert [s.height_share for s in concepts] == [25.0, 25.0, 25.0]
        assert [s.position.y for s in concepts] == [15.0, 40.0, 65.0]
        connector = layout.sections_for(SectionRole.CONNECTOR)[0]
        assert connector.overlay
        assert connector.height_share == 75.0
        assert connector.position.y == 15.0
        assert layout.margins == Margins(top=5, right=10, bottom=5, left=10)
        assert layout.spacing == 2

    @pytest.mark.unit
    def test_grid_geometry(self):
        """Grid uses two columns and shares rows between cells."""
        layout = compute_layout(3, "intermediate", [])
        assert layout.grid_columns == 2
        assert layout.grid_rows == 2
        concepts = layout.sections_for(SectionRole.CONCEPT)
        assert [s.position.x for s in concepts] == ["25%", "75%", "25%"]
        assert [s.position.y for s in concepts] == [20.0, 20.0, 54.0]
        assert all(s.height_share == 34.0 for s in concepts)
        assert layout.sections[-1].position.y == 88.0

    @pytest.mark.unit
    def test_grid_two_concepts_single_row(self):
        """Two concepts sit side by side in one row."""
        layout = compute_layout(2, "intermediate", [])
        assert layout.grid_columns == 2
        assert layout.grid_rows == 1
        assert [s.height_share for s in layout.concept_sections()] == [68.0, 68.0]

    @pytest.mark.unit
    def test_f_pattern_geometry(self):
        """The lead concept is full width, the rest alternate columns."""
        layout = compute_layout(5, "intermediate", [])
        concepts = layout.concept_sections()
        lead = concepts[0]
        assert lead.position.x == "center"
        assert lead.height_share == pytest.approx(18.0)
        assert [s.position.x for s in concepts[1:]] == ["25%", "75%", "25%", "75%"]
        assert all(s.height_share == pytest.approx(27.0) for s in concepts[1:])
        assert layout.spacing == 2.5

    @pytest.mark.unit
    def test_dense_stacked_without_diagram_tags(self):
        """Without diagram tags concepts stack in one column."""
        layout = compute_layout(4, "advanced", ["nlp"])
        assert not layout.sections_for(SectionRole.DIAGRAM)
        assert all(s.position.x == "center" for s in layout.concept_sections())
        assert layout.margins == Margins(top=4, right=5, bottom=4, left=5)

    @pytest.mark.unit
    def test_dense_pairs_with_diagram_tags(self):
        """Diagram tags with four or more concepts pair concepts per row."""
        layout = compute_layout(5, "advanced", ["Mathematical"])
        carrying = layout.concept_sections()
        assert [s.role for s in carrying] == [
            SectionRole.CONCEPT,
            SectionRole.DIAGRAM,
            SectionRole.CONCEPT,
            SectionRole.DIAGRAM,
            SectionRole.CONCEPT,
        ]
        assert [s.position.x for s in carrying[:2]] == ["30%", "70%"]
        assert carrying[0].position.y == carrying[1].position.y

    @pytest.mark.unit
    def test_dense_small_count_ignores_diagram_tags(self):
        """Fewer than four concepts stack even with diagram tags."""
        layout = compute_layout(3, "advanced", ["visual"])
        assert not layout.sections_for(SectionRole.DIAGRAM)


class TestLayoutContract:
    """Tests for rejected inputs."""

    @pytest.mark.unit
    @pytest.mark.parametrize("count", [0, -1, 11, 50])
    def test_count_out_of_range(self, count):
        """Counts outside 1..10 are rejected before geometry."""
        with pytest.raises(InputContractViolation, match="between 1 and 10"):
            compute_layout(count, "beginner", [])

    @pytest.mark.unit
    def test_unknown_tier(self):
        """Unknown tiers are rejected."""
        with pytest.raises(InputContractViolation, match="Unknown audience tier"):
            compute_layout(3, "expert", [])


class TestValidateLayout:
    """Tests for layout validation."""

    @pytest.mark.unit
    def test_computed_layouts_are_valid(self):
        """Every computed layout passes validation without warnings."""
        for tier in TIERS:
            result = validate_layout(compute_layout(5, tier, ["visual"]))
            assert result.valid
            assert result.errors == []
            assert result.warnings == []

    @pytest.mark.unit
    def test_height_deviation_is_warning(self):
        """A layout that does not cover the poster warns but stays valid."""
        layout = LayoutStrategy(
            type=LayoutType.FLOW,
            sections=(
                Section(role=SectionRole.HEADER, height_share=15, position=Position()),
                Section(
                    role=SectionRole.FOOTER,
                    height_share=10,
                    position=Position(y=90),
                ),
            ),
            margins=Margins(top=5, right=10, bottom=5, left=10),
            spacing=2,
        )
        result = validate_layout(layout)
        assert result.valid
        assert "25.00%" in result.warnings[0]

    @pytest.mark.unit
    def test_large_margins_are_error(self):
        """Margins over half the poster invalidate the layout."""
        base = compute_layout(3, "beginner")
        layout = base.model_copy(
            update={"margins": Margins(top=30, right=5, bottom=25, left=5)}
        )
        result = validate_layout(layout)
        assert not result.valid
        assert "Margins are too large" in result.errors[0]

    @pytest.mark.unit
    def test_empty_sections_error(self):
        """A layout without sections is invalid."""
        layout = LayoutStrategy(
            type=LayoutType.DENSE,
            sections=(),
            margins=Margins(top=4, right=5, bottom=4, left=5),
            spacing=1.5,
        )
        result = validate_layout(layout)
        assert not result.valid
        assert "at least one section" in result.errors[0]


class TestRecommendations:
    """Tests for layout recommendations and alternatives."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "count,tier,expected",
        [
            (3, "beginner", LayoutType.FLOW),
            (4, "intermediate", LayoutType.GRID),
            (6, "intermediate", LayoutType.F_PATTERN),
            (3, "advanced", LayoutType.DENSE),
        ],
    )
    def test_recommended_matches_selection(self, count, tier, expected):
        """The recommendation agrees with the selected layout."""
        recommendation = layout_recommendations(count, tier, [])
        assert recommendation.recommended == expected
        assert compute_layout(count, tier, []).type == expected
        assert expected not in recommendation.alternatives
        assert recommendation.reasoning

    @pytest.mark.unit
    def test_alternatives_are_recomputed(self):
        """Alternative layouts carry geometry of their own type."""
        alternatives = alternative_layouts(3, "beginner", [])
        grid = alternatives[LayoutType.GRID]
        assert grid.type == LayoutType.GRID
        assert grid.grid_columns == 2
        assert not grid.sections_for(SectionRole.CONNECTOR)

    @pytest.mark.unit
    def test_f_pattern_alternative_single_concept(self):
        """A single-concept F-pattern gives the lead concept all the space."""
        layout = LayoutEngine().layout_for_type(LayoutType.F_PATTERN, 1)
        assert len(layout.sections) == 3
        assert layout.total_height_share() == pytest.approx(100.0)


class TestHelpers:
    """Tests for position labels and font scaling."""

    @pytest.mark.unit
    def test_position_labels_for_flow(self):
        """Header is top, concepts middle, footer bottom."""
        layout = compute_layout(3, "beginner")
        labels = [position_label(s) for s in layout.sections]
        assert labels[0] == "top-center"
        assert labels[1] == "middle-center"
        assert labels[-1] == "bottom-center"

    @pytest.mark.unit
    def test_position_labels_for_columns(self):
        """Column anchors map to left and right."""
        layout = compute_layout(4, "intermediate")
        concepts = layout.concept_sections()
        assert position_label(concepts[0]) == "middle-left"
        assert position_label(concepts[1]) == "middle-right"

    @pytest.mark.unit
    def test_grid_footer_is_bottom(self):
        """The footer reaches the bottom edge for every layout."""
        layout = compute_layout(3, "intermediate")
        assert position_label(layout.sections[-1]) == "bottom-center"

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "value,expected",
        [(15.0, "15%"), (100 / 3, "33.33%"), (62.5, "62.5%")],
    )
    def test_format_percent(self, value, expected):
        """Percentages are printed compactly."""
        assert format_percent(value) == expected
