from __future__ import annotations

from citelens.core.settings import Settings
from citelens.services.blocks import BlockRules, are_related_lines, group_lines_into_blocks
from citelens.services.classify import classify_block, is_list_item, list_type, paged_indent_level
from citelens.services.lines import band_key, group_units_into_lines
from citelens.services.text_model import PositionedTextUnit, TextLine, union_box
from citelens.services.units import RawFragment, normalize_page_fragments, normalize_paragraphs

PAGED_RULES = BlockRules(block_tolerance=25.0)
FLOWING_RULES = BlockRules(block_tolerance=30.0)


def unit(text: str, x: float, y: float, width: float = 50.0, height: float = 11.0, page: int = 1) -> PositionedTextUnit:
    return PositionedTextUnit(text=text, x=x, y=y, width=width, height=height, font_size=height, page=page)


def line(text: str, x: float = 72.0, y: float = 700.0, *, listed: bool = False, font_size: float = 11.0) -> TextLine:
    u = unit(text, x, y)
    return TextLine(
        text=text,
        x=x,
        y=y,
        width=u.width,
        height=u.height,
        page=1,
        units=(u,),
        font_size=font_size,
        is_list_item=listed,
    )


class TestNormalizer:
    def test_page_fragments_use_translation_only(self):
        fragments = [
            RawFragment(text="  Hello world  ", width=40.0, height=12.0, transform=(2, 0.5, 0.5, 2, 100.0, 650.0)),
            RawFragment(text="   ", width=5.0, height=12.0, transform=(1, 0, 0, 1, 0, 0)),
        ]
        units = normalize_page_fragments(fragments, page=3)
        assert len(units) == 1
        only = units[0]
        assert (only.text, only.x, only.y, only.width, only.height) == ("Hello world", 100.0, 650.0, 40.0, 12.0)
        assert only.font_size == 12.0
        assert only.page == 3

    def test_paragraphs_get_synthetic_grid(self):
        settings = Settings()
        units = normalize_paragraphs("First paragraph\n\n   \n  Indented second\n" + "x" * 200, settings)
        assert [u.paragraph_index for u in units] == [0, 1, 2]
        assert [u.y for u in units] == [0.0, 25.0, 50.0]
        assert units[1].text == "Indented second"
        assert units[1].leading_whitespace == 2
        assert units[0].width == len("First paragraph") * 7
        assert units[2].width == 800
        assert all(u.height == 20 and u.x == 0 for u in units)


class TestLineGrouper:
    def test_units_in_one_band_merge_left_to_right(self):
        units = [
            unit("world of text", 130, 700.4, width=60),
            unit("Hello there", 72, 699.8, width=55),
            unit("Another line entirely", 72, 680, width=100),
        ]
        lines = group_units_into_lines(units, "paged")
        assert [ln.text for ln in lines] == ["Hello there world of text", "Another line entirely"]

    def test_line_box_is_union_of_unit_boxes(self):
        members = [unit("alpha beta", 72, 700, width=40, height=11), unit("gamma delta", 120, 700.5, width=45, height=14)]
        (merged,) = group_units_into_lines(members, "paged", min_chars=1)
        expected = union_box([m.box for m in members])
        assert merged.box == expected
        assert merged.font_size == 14

    def test_short_lines_are_dropped(self):
        lines = group_units_into_lines([unit("12", 300, 40), unit("A long enough body line", 72, 700)], "paged")
        assert [ln.text for ln in lines] == ["A long enough body line"]

    def test_bands_round_half_up(self):
        assert band_key(699.0, 2.0) == 700.0
        assert band_key(700.9, 2.0) == 700.0
        assert band_key(701.0, 2.0) == 702.0

    def test_lines_never_span_pages(self):
        units = [unit("page one body text", 72, 700, page=1), unit("page two body text", 72, 700, page=2)]
        lines = group_units_into_lines(units, "paged")
        assert [(ln.page, ln.text) for ln in lines] == [(1, "page one body text"), (2, "page two body text")]

    def test_paged_indent_is_twenty_points_per_level(self):
        assert [paged_indent_level(x) for x in (0, 19.9, 20, 72, 145)] == [0, 0, 1, 3, 7]
        (indented,) = group_units_into_lines([unit("indented body line text", 90, 700, width=120)], "paged")
        assert indented.indent_level == 4

    def test_flow_lines_keep_paragraph_and_list_flags(self):
        units = normalize_paragraphs("Scope:\n  - first item\n1. numbered")
        lines = group_units_into_lines(units, "flowing", min_chars=1)
        assert [ln.paragraph_index for ln in lines] == [0, 1, 2]
        assert [ln.is_list_item for ln in lines] == [False, True, True]
        assert [ln.list_type for ln in lines] == [None, "bullet", "numbered"]
        assert lines[1].indent_level == 1


class TestBlockGrouper:
    def test_block_box_is_union_of_line_boxes(self):
        lines = [line("first line of body", y=700), line("second line of body", x=90, y=685)]
        (block,) = group_lines_into_blocks(lines, "paged", PAGED_RULES)
        assert block.box == union_box([ln.box for ln in lines])
        assert block.text == "first line of body\nsecond line of body"

    def test_gap_or_column_jump_starts_new_block(self):
        lines = [
            line("top paragraph text", y=700),
            line("far below paragraph", y=600),
            line("other column text", x=350, y=585),
        ]
        blocks = group_lines_into_blocks(lines, "paged", PAGED_RULES)
        assert [b.text for b in blocks] == ["top paragraph text", "far below paragraph", "other column text"]

    def test_blocks_are_in_reading_order(self):
        lines = [line("lower line of text", y=500), line("upper line of text", y=700)]
        blocks = group_lines_into_blocks(lines, "paged", PAGED_RULES)
        assert [b.text for b in blocks] == ["upper line of text", "lower line of text"]

    def test_grouping_is_idempotent(self):
        units = [unit(f"body text line number {i}", 72 + (i % 2) * 5, 700 - i * 14) for i in range(8)]
        units += [unit("detached footer text here", 72, 60)]
        first = group_lines_into_blocks(group_units_into_lines(units, "paged"), "paged", PAGED_RULES)
        second = group_lines_into_blocks(group_units_into_lines(units, "paged"), "paged", PAGED_RULES)
        assert [(b.text, b.block_type, b.box) for b in first] == [(b.text, b.block_type, b.box) for b in second]
        assert len(first) == 2

    def test_flow_relatedness(self):
        heading = line("Scope:", x=0)
        item = line("- item", x=0, listed=True)
        assert are_related_lines(heading, item)
        deep = TextLine(text="deep text", x=0, y=0, width=1, height=1, page=1, units=(), indent_level=4)
        assert not are_related_lines(line("plain text", x=0), deep)


class TestBlockClassifier:
    def test_two_of_three_list_items_is_list(self):
        lines = [line("1. one", listed=True), line("2. two", listed=True), line("plain")]
        assert classify_block(lines, "paged") == "list"

    def test_one_of_three_list_items_is_not_list(self):
        lines = [line("1. one", listed=True), line("plain"), line("plain again")]
        assert classify_block(lines, "paged") != "list"

    def test_paged_heading_by_font_size(self):
        assert classify_block([line("Big title", font_size=18)], "paged") == "heading"
        assert classify_block([line("Body text", font_size=14)], "paged") == "paragraph"

    def test_flow_heading_ends_with_colon(self):
        assert classify_block([line("Scope of the policy:")], "flowing") == "heading"
        assert classify_block([line("x" * 120 + ":")], "flowing") == "paragraph"

    def test_paged_table_needs_columns(self):
        columns = [line("cell", x=x, y=700 - i) for i, x in enumerate((72, 150, 250, 72))]
        assert classify_block(columns, "paged") == "table"
        assert classify_block(columns[:3], "paged") == "paragraph"

    def test_flow_table_needs_delimiters(self):
        rows = [line("a | b"), line("c | d"), line("e | f"), line("g | h")]
        assert classify_block(rows, "flowing") == "table"
        assert classify_block([line("a b")] * 4, "flowing") == "paragraph"

    def test_list_markers(self):
        assert is_list_item("• bullet", "paged")
        assert is_list_item("▪ square bullet", "paged")
        assert is_list_item("12. twelfth", "paged")
        assert is_list_item("b. second", "paged")
        assert is_list_item("IV. fourth", "paged")
        assert not is_list_item("- dash", "paged")
        assert is_list_item("- dash", "flowing")
        assert is_list_item("+ plus", "flowing")
        assert not is_list_item("Plain sentence.", "flowing")

    def test_list_types(self):
        assert list_type("• x") == "bullet"
        assert list_type("* x") == "bullet"
        assert list_type("3. x") == "numbered"
        assert list_type("iv. x") == "roman"
        assert list_type("b. x") == "alpha"
        assert list_type("plain") is None


class TestFlowEndToEnd:
    def test_heading_with_items_is_one_list_block(self):
        units = normalize_paragraphs("Scope of the policy:\n- item one is listed here\n- item two is listed here")
        lines = group_units_into_lines(units, "flowing", min_chars=1)
        (block,) = group_lines_into_blocks(lines, "flowing", FLOWING_RULES)
        assert block.block_type == "list"
        assert block.paragraph_indices == (0, 1, 2)

    def test_lone_colon_paragraph_is_heading(self):
        units = normalize_paragraphs("Intro: see list below:")
        lines = group_units_into_lines(units, "flowing", min_chars=1)
        (block,) = group_lines_into_blocks(lines, "flowing", FLOWING_RULES)
        assert block.block_type == "heading"

    def test_intro_sentence_and_item_paragraph_stay_together(self):
        units = normalize_paragraphs("Intro: see list below.\n- item one. - item two.")
        lines = group_units_into_lines(units, "flowing", min_chars=1)
        assert [ln.is_list_item for ln in lines] == [False, True]
        (block,) = group_lines_into_blocks(lines, "flowing", FLOWING_RULES)
        assert block.paragraph_indices == (0, 1)
        # One list line out of two is not a majority.
        assert block.block_type == "paragraph"
        assert classify_block(lines[1:], "flowing") == "list"
        assert classify_block(lines[:1], "flowing") == "paragraph"
