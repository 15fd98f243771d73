"""Relocate wipe tower moves into the print's coordinate frame.

The generator writes every tool change block as if the tower were placed at
the origin without rotation. The rewriter walks the block line by line,
rotates and shifts every G1 move, drops coordinates that did not change and
applies the nozzle offset of the tool that is active at that point.
"""

from typing import List, Tuple

from coordinate_transform import Point2D, TowerTransform
from gcode_parser import (LINEAR_MOVE, TOOLCHANGE_TAG, TokenKind, format_coordinate,
                          is_linear_move, strip_never_skip, tokenize_move)
from wipe_tower_plan import ExtruderOffsets


# Guaranteed to differ from the first transformed position of any block
UNSET_POSITION: Point2D = (-1000.1, -1000.1)


class WipeTowerMoveRewriter:
    """Rewrites tower-local G1 moves for one tool change block."""

    def __init__(self, transform: TowerTransform, extruder_offsets: ExtruderOffsets):
        """
        Initialize the rewriter.

        Args:
            transform: Placement of the wipe tower on the bed
            extruder_offsets: Nozzle offset per tool
        """
        self.transform = transform
        self.extruder_offsets = extruder_offsets

    def rewrite(self, gcode: str, start_pos: Point2D,
                initial_tool: int, new_tool: int) -> str:
        """Rotate and translate every G1 move in a tool change block.

        Args:
            gcode: Tower-local G-code with placeholder tags
            start_pos: Tower-local position the block starts at
            initial_tool: Tool active when the block starts
            new_tool: Tool active after the tool change tag

        Returns:
            Relocated G-code, one output line per input line plus any
            offset compensation moves
        """
        initial_offset = self.extruder_offsets[initial_tool]
        offset = initial_offset
        pos = tuple(start_pos)
        transformed = self.transform.apply(pos)
        old_pos = UNSET_POSITION

        out: List[str] = []
        lines = gcode.split("\n")
        # A trailing newline does not start another line
        if lines and lines[-1] == "":
            lines.pop()

        for line in lines:
            if is_linear_move(line):
                line, never_skip = strip_never_skip(line)
                pos, rest = self._read_move(line, pos)
                transformed = self.transform.apply(pos)

                words = [LINEAR_MOVE]
                emitted = False
                if transformed[0] != old_pos[0] or never_skip:
                    words.append(format_coordinate("X", transformed[0] - offset[0]))
                    emitted = True
                if transformed[1] != old_pos[1] or never_skip:
                    words.append(format_coordinate("Y", transformed[1] - offset[1]))
                    emitted = True
                words.extend(rest)
                line = " ".join(words)
                if emitted:
                    old_pos = transformed

            out.append(line)

            if line == TOOLCHANGE_TAG:
                offset = self.extruder_offsets[new_tool]
                # Keep the motion continuous whenever the new nozzle sits elsewhere
                if offset != initial_offset:
                    out.append(" ".join([
                        LINEAR_MOVE,
                        format_coordinate("X", transformed[0] - offset[0]),
                        format_coordinate("Y", transformed[1] - offset[1]),
                    ]))

        return "".join(l + "\n" for l in out)

    @staticmethod
    def _read_move(line: str, pos: Tuple[float, float]) -> Tuple[Point2D, List[str]]:
        """Pull X/Y out of a move, keeping every other token in order."""
        x, y = pos
        rest = []
        for token in tokenize_move(line):
            if token.kind == TokenKind.COMMAND:
                continue
            if token.kind == TokenKind.COORDINATE:
                if token.axis == "X":
                    x = token.value
                else:
                    y = token.value
            else:
                rest.append(token.text)
        return (x, y), rest
