"""Splice wipe tower tool changes into the print's G-code.

The wipe tower planner renders every tool change ahead of time. During
G-code export this module takes the next planned change, decides whether the
nozzle has to travel to the tower first, relocates the tower G-code and
wraps it in the retractions, Z moves and acceleration changes it needs.
"""

import logging
import math
from typing import Any, Mapping, Optional, Sequence
from dataclasses import dataclass, field, fields

from coordinate_transform import Point2D
from gcode_parser import unescape_cstyle
from gcode_writer import GCodeGenerator
from toolchange_template import fill_tool_change
from wipe_tower_moves import WipeTowerMoveRewriter
from wipe_tower_plan import (ChangeCursor, CursorPhase, ExtruderOffsets,
                             InvalidToolChangeError, ToolChangeOutput,
                             ToolChangeResult, WipeTowerState)
from zhop_manager import ZHopManager


logger = logging.getLogger(__name__)


@dataclass
class WipeTowerConfig:
    """Print settings the wipe tower integration reads."""
    wipe_tower: bool = True
    single_extruder_multi_material: bool = False
    filament_multitool_ramming: Sequence[bool] = field(default_factory=tuple)
    default_acceleration: float = 0.0  # mm/s^2, 0 leaves acceleration alone
    wipe_tower_acceleration: float = 0.0  # mm/s^2
    wipe_tower_no_sparse_layers: bool = False

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "WipeTowerConfig":
        """Build a config from print settings, ignoring keys it does not use."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in values.items() if key in known})

    def is_ramming(self, tool: int) -> bool:
        """Return True if unloading this tool rams filament over the tower."""
        if self.single_extruder_multi_material:
            return True
        if 0 <= tool < len(self.filament_multitool_ramming):
            return bool(self.filament_multitool_ramming[tool])
        return False


class WipeTowerIntegration:
    """Hands out the planned tool changes one by one during G-code export."""

    def __init__(self, config: WipeTowerConfig, state: WipeTowerState,
                 extruder_offsets: Optional[ExtruderOffsets] = None):
        """
        Initialize the integration.

        Args:
            config: Print settings
            state: Tower placement and tool change plan
            extruder_offsets: Nozzle offset per tool
        """
        self.config = config
        self.state = state
        self.extruder_offsets = extruder_offsets or ExtruderOffsets()
        self.rewriter = WipeTowerMoveRewriter(state.transform, self.extruder_offsets)

    def next_layer(self) -> None:
        """Move to the next layer of the plan. Called by the layer driver."""
        self.state.cursor = self.state.cursor.advance_layer(len(self.state.tool_changes))
        logger.debug("Wipe tower cursor at %s", self.state.cursor)

    def prime(self, writer: GCodeGenerator) -> ToolChangeOutput:
        """Print the priming lines of every extruder before the first layer."""
        if self.state.cursor.phase == CursorPhase.NOT_STARTED:
            self.state.cursor = ChangeCursor(CursorPhase.PRIMING)
        output = ToolChangeOutput(last_position=writer.last_position)
        for tcr in self.state.priming:
            if tcr.is_empty():
                continue
            output = output + self.append_tool_change(
                writer, tcr, tcr.new_tool, last_position=output.last_position)
        return output

    def tool_change(self, writer: GCodeGenerator, tool: int,
                    finish_layer: bool) -> ToolChangeOutput:
        """Emit the next planned tool change.

        Args:
            writer: G-code generator of the print
            tool: Tool the print wants to switch to
            finish_layer: Finish the tower layer even without a tool change

        Returns:
            The tool change G-code, empty when nothing has to be done

        Raises:
            SequencingOverflowError: The plan has no change left for this layer
            InvalidToolChangeError: The next planned change is for another tool
        """
        if not (writer.need_toolchange(tool) or finish_layer):
            return ToolChangeOutput()

        layer = self.state.cursor.layer
        first_in_layer = self.state.cursor.index == 0
        tcr = self.state.next_change()

        # The tower is printed at the object's height unless sparse layers are left out
        z = writer.get_position()[2]
        if self.config.wipe_tower_no_sparse_layers:
            z, skip = self._no_sparse_z(layer, first_in_layer)
            if skip:
                logger.debug("Skipping sparse wipe tower layer %d", layer)
                return ToolChangeOutput()

        output = self.append_tool_change(writer, tcr, tool, z, writer.last_position)
        self.state.last_wipe_tower_print_z = z
        return output

    def finalize(self, writer: GCodeGenerator) -> ToolChangeOutput:
        """End of print. Nothing is unloaded over the tower yet."""
        self.state.cursor = ChangeCursor(CursorPhase.DONE, self.state.cursor.layer)
        return ToolChangeOutput(last_position=writer.last_position)

    def _no_sparse_z(self, layer: int, first_in_layer: bool):
        """Return the tower Z and whether the change can be left out entirely.

        Without sparse layers the tower only grows when a real tool change
        happens, so its height is tracked separately from the object's.
        """
        changes = self.state.layer_changes(layer)
        last_z = self.state.last_wipe_tower_print_z or 0.0
        skip = (len(changes) == 1
                and changes[0].initial_tool == changes[0].new_tool
                and layer != 0)
        if first_in_layer and not skip:
            return last_z + changes[0].layer_height, False
        return last_z, skip

    def append_tool_change(self, writer: GCodeGenerator, tcr: ToolChangeResult,
                           new_tool: Optional[int], z: Optional[float] = None,
                           last_position: Optional[Point2D] = None) -> ToolChangeOutput:
        """Relocate one tool change and wrap it in travel, retraction and Z moves.

        Args:
            writer: G-code generator of the print
            tcr: Planned tool change
            new_tool: Tool the caller expects to switch to, None to accept any
            z: Height to print the tower at, None for the current height
            last_position: Nozzle position in object coordinates before the change

        Returns:
            The tool change G-code and the nozzle position after it
        """
        if new_tool is not None and new_tool != tcr.new_tool:
            raise InvalidToolChangeError(
                f"Wipe tower was asked for a tool change to T{new_tool}, "
                f"but the next planned change is to T{tcr.new_tool}.")

        transform = self.state.transform
        start_pos = transform.apply(tcr.start_pos)
        end_pos = transform.apply(tcr.end_pos)
        rotated_gcode = self.rewriter.rewrite(tcr.gcode, tcr.start_pos,
                                              tcr.initial_tool, tcr.new_tool)

        zhop = ZHopManager(writer)
        current_z = writer.get_position()[2]
        gcode = writer.travel_to_z(current_z)
        z = zhop.resolve_z(z)

        needs_toolchange = writer.need_toolchange(new_tool if new_tool is not None else tcr.new_tool)
        will_go_down = zhop.needs_z_change(z, current_z)
        is_ramming = self.config.is_ramming(tcr.initial_tool)
        should_travel_to_tower = (tcr.force_travel
                                  or not needs_toolchange
                                  or is_ramming
                                  or will_go_down)
        logger.debug(
            "Tool change T%d -> T%d at z=%.3f: travel=%s, ramming=%s, down=%s",
            tcr.initial_tool, tcr.new_tool, z, should_travel_to_tower, is_ramming, will_go_down)

        if should_travel_to_tower:
            gcode += self._travel_to_tower(writer, start_pos, z, current_z, last_position)

        if will_go_down:
            gcode += zhop.lower_to_tower(z)

        contour_toolchange = writer.set_extruder(tcr.contour_tool, tcr.print_z)
        inner_toolchange = writer.set_extruder(tcr.new_tool, tcr.print_z)
        deretraction = ""
        if self.config.wipe_tower:
            deretraction += writer.get_travel_to_z_gcode(z, "restore layer Z")
            x, y, _ = writer.get_position()
            writer.update_position((x, y, z))
            deretraction += writer.unretract()

        tcr_gcode = fill_tool_change(rotated_gcode, contour_toolchange,
                                     inner_toolchange, deretraction,
                                     deretraction_required=self.config.wipe_tower)
        tcr_gcode = unescape_cstyle(tcr_gcode)

        if self.config.default_acceleration > 0:
            gcode += writer.set_print_acceleration(
                math.ceil(self.config.wipe_tower_acceleration))
            gcode += tcr_gcode
            gcode += writer.set_print_acceleration(
                math.ceil(self.config.default_acceleration))
        else:
            gcode += tcr_gcode

        # Final position at the tower, as seen by the new tool's nozzle
        offset = self.extruder_offsets[tcr.new_tool]
        gcode += writer.travel_to_xy((end_pos[0] - offset[0], end_pos[1] - offset[1]))
        last_position = self._to_object(writer, end_pos)

        if will_go_down:
            gcode += zhop.raise_to_object(current_z)

        # The next travel goes between objects
        writer.use_external_mp_once = True
        return ToolChangeOutput(gcode, last_position)

    def _travel_to_tower(self, writer: GCodeGenerator, start_pos: Point2D,
                         z: float, current_z: float,
                         last_position: Optional[Point2D]) -> str:
        xy_point = self._to_object(writer, start_pos)
        comment = "Travel to a Wipe Tower"

        gcode = writer.maybe_stop_instance()
        gcode += writer.retract_and_wipe()
        writer.use_external_mp_once = True
        if writer.current_layer_first_position is not None:
            if last_position is not None:
                gcode += writer.travel_to(last_position, xy_point, comment)
            else:
                gcode += writer.travel_to_xy(start_pos, comment)
                gcode += writer.get_travel_to_z_gcode(z, comment)
        else:
            gcode += writer.travel_to_first_position((xy_point[0], xy_point[1], z), current_z)
        gcode += writer.unretract()
        return gcode

    @staticmethod
    def _to_object(writer: GCodeGenerator, point: Point2D) -> Point2D:
        return (point[0] - writer.origin[0], point[1] - writer.origin[1])
