"""Tests for filling tool change placeholder slots."""

import pytest

from gcode_parser import DERETRACTION_TAG, TOOLCHANGE_TAG
from toolchange_template import ToolChangeTemplate, fill_tool_change
from wipe_tower_plan import MissingSubBlockError


BLOCK = f"A\n{TOOLCHANGE_TAG}\nB\n{TOOLCHANGE_TAG}\nC {DERETRACTION_TAG}\n{DERETRACTION_TAG}\n"


def test_tool_change_tags_are_filled_in_order():
    out = fill_tool_change(BLOCK, "T0", "T1", "G1 E0.8")
    assert out == "A\nT0\nB\nT1\nC G1 E0.8\nG1 E0.8\n"


def test_overlapping_blocks_are_not_confused():
    out = fill_tool_change(BLOCK, "T0 T1", "T1", "D")
    assert out == "A\nT0 T1\nB\nT1\nC D\nD\n"


def test_single_tool_change_tag_uses_contour_block():
    out = fill_tool_change(f"{TOOLCHANGE_TAG}\n", "T2", "T3", "D")
    assert out == "T2\n"


def test_empty_activation_block_is_fatal():
    with pytest.raises(MissingSubBlockError) as exc:
        fill_tool_change(BLOCK, "T0", "", "D")
    assert exc.value.slot == "inner_toolchange"


def test_more_tags_than_blocks_is_fatal():
    gcode = "\n".join([TOOLCHANGE_TAG] * 3)
    with pytest.raises(MissingSubBlockError):
        fill_tool_change(gcode, "T0", "T1", "D")


def test_required_deretraction_must_not_be_empty():
    with pytest.raises(MissingSubBlockError) as exc:
        fill_tool_change("G1 X1\n", "T0", "T1", "")
    assert exc.value.slot == "deretraction"


def test_optional_deretraction_only_fails_when_used():
    assert fill_tool_change("G1 X1\n", "T0", "T1", "", deretraction_required=False) == "G1 X1\n"
    with pytest.raises(MissingSubBlockError):
        fill_tool_change(BLOCK, "T0", "T1", "", deretraction_required=False)


def test_validation_happens_before_any_substitution():
    template = ToolChangeTemplate("X [a] [b]").ordered("[a]", ("a", "1")).ordered("[b]", ("b", ""))
    with pytest.raises(MissingSubBlockError):
        template.render()
    assert template.gcode == "X [a] [b]"
