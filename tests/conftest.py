"""Shared fixtures for the wipe tower tests."""

import pytest

from coordinate_transform import TowerTransform
from gcode_parser import DERETRACTION_TAG, TOOLCHANGE_TAG
from gcode_writer import SimpleGCodeWriter
from wipe_tower_integration import WipeTowerConfig, WipeTowerIntegration
from wipe_tower_plan import ExtruderOffsets, ToolChangeResult, WipeTowerState


TOWER_GCODE = "\n".join([
    "G1 X0.000 Y0.000 F3000",
    "G1 X10.000 Y0.000 E1.0000",
    TOOLCHANGE_TAG,
    TOOLCHANGE_TAG,
    DERETRACTION_TAG,
    "G1 X10.000 Y5.000 E0.5000",
]) + "\n"


def make_tcr(initial_tool=0, new_tool=1, **kwargs) -> ToolChangeResult:
    values = dict(
        gcode=TOWER_GCODE,
        start_pos=(0.0, 0.0),
        end_pos=(10.0, 5.0),
        initial_tool=initial_tool,
        new_tool=new_tool,
        contour_tool=new_tool,
        print_z=0.2,
        extrusions=((0.0, 0.0), (10.0, 0.0)),
        layer_height=0.2,
    )
    values.update(kwargs)
    return ToolChangeResult(**values)


@pytest.fixture
def tcr_factory():
    return make_tcr


@pytest.fixture
def writer():
    """Writer holding T0 at the first layer height."""
    return SimpleGCodeWriter(tool=0, position=(0.0, 0.0, 0.2))


@pytest.fixture
def integration_factory():
    def build(tool_changes, priming=(), config=None, offsets=None,
              rotation_deg=0.0, position=(0.0, 0.0)):
        state = WipeTowerState(
            transform=TowerTransform(rotation_deg=rotation_deg, position=position),
            priming=tuple(priming),
            tool_changes=tuple(tuple(layer) for layer in tool_changes),
        )
        return WipeTowerIntegration(config or WipeTowerConfig(), state,
                                    ExtruderOffsets(offsets or {}))
    return build
