"""Wipe tower plan: tool change results, sequencing cursor and errors.

The upstream tower planner produces one ToolChangeResult per material
change, grouped by layer. This module holds that plan together with the
cursor the sequencer uses to walk through it.
"""

from enum import Enum
from typing import Dict, Mapping, Optional, Sequence, Tuple
from dataclasses import dataclass, field

from coordinate_transform import Point2D, TowerTransform


class WipeTowerError(RuntimeError):
    """Base class for errors that abort G-code generation of a print."""


class InvalidToolChangeError(WipeTowerError, ValueError):
    """The requested tool does not match the next planned tool change."""


class SequencingOverflowError(WipeTowerError):
    """No planned tool change is left where one was expected."""

    def __init__(self, message: str, layer: Optional[int] = None,
                 index: Optional[int] = None):
        super().__init__(message)
        self.layer = layer
        self.index = index


class MissingSubBlockError(WipeTowerError):
    """A G-code block required to assemble a tool change is missing or empty."""

    def __init__(self, slot: str):
        super().__init__(f"Tool change sub-block '{slot}' is empty")
        self.slot = slot


@dataclass(frozen=True)
class ToolChangeResult:
    """One tool change as rendered by the wipe tower generator.

    All positions are in tower-local coordinates.
    """
    gcode: str
    start_pos: Point2D
    end_pos: Point2D
    initial_tool: int
    new_tool: int
    contour_tool: int
    print_z: float
    force_travel: bool = False
    extrusions: Tuple = ()
    layer_height: float = 0.0

    def is_empty(self) -> bool:
        """True when the change deposits no material."""
        return len(self.extrusions) == 0


@dataclass(frozen=True)
class ToolChangeOutput:
    """G-code produced by one sequencer call and where the nozzle ended up."""
    gcode: str = ""
    last_position: Optional[Point2D] = None

    def __add__(self, other: "ToolChangeOutput") -> "ToolChangeOutput":
        last = other.last_position if other.last_position is not None else self.last_position
        return ToolChangeOutput(self.gcode + other.gcode, last)


class ExtruderOffsets:
    """Read-only nozzle offsets per tool. Unknown tools have no offset."""

    def __init__(self, offsets: Optional[Mapping[int, Point2D]] = None):
        self._offsets: Dict[int, Point2D] = {
            tool: (float(x), float(y)) for tool, (x, y) in (offsets or {}).items()
        }

    def __getitem__(self, tool: int) -> Point2D:
        return self._offsets.get(tool, (0.0, 0.0))


class CursorPhase(Enum):
    """Where the sequencer is in the print."""
    NOT_STARTED = "not_started"
    PRIMING = "priming"
    AT_LAYER = "at_layer"
    DONE = "done"


@dataclass(frozen=True)
class ChangeCursor:
    """Position of the sequencer in the per-layer plan."""
    phase: CursorPhase = CursorPhase.NOT_STARTED
    layer: int = -1
    index: int = 0

    def advance_change(self) -> "ChangeCursor":
        return ChangeCursor(self.phase, self.layer, self.index + 1)

    def advance_layer(self, layer_count: int) -> "ChangeCursor":
        next_layer = self.layer + 1
        if next_layer >= layer_count:
            return ChangeCursor(CursorPhase.DONE, next_layer, 0)
        return ChangeCursor(CursorPhase.AT_LAYER, next_layer, 0)


@dataclass
class WipeTowerState:
    """Everything the sequencer knows about the wipe tower of one print job.

    Placement and plan are fixed at construction; only the cursor and the
    last tower print z move afterwards.
    """
    transform: TowerTransform
    priming: Tuple[ToolChangeResult, ...] = ()
    tool_changes: Tuple[Tuple[ToolChangeResult, ...], ...] = ()
    cursor: ChangeCursor = field(default_factory=ChangeCursor)
    last_wipe_tower_print_z: Optional[float] = None

    @classmethod
    def from_plan(cls, position: Point2D, rotation_deg: float,
                  priming: Sequence[ToolChangeResult],
                  tool_changes: Sequence[Sequence[ToolChangeResult]]) -> "WipeTowerState":
        """Build the state from the tower planner's output."""
        return cls(
            transform=TowerTransform(rotation_deg=rotation_deg, position=position),
            priming=tuple(priming),
            tool_changes=tuple(tuple(layer) for layer in tool_changes),
        )

    def layer_changes(self, layer: int) -> Tuple[ToolChangeResult, ...]:
        return self.tool_changes[layer]

    def next_change(self) -> ToolChangeResult:
        """Return the tool change under the cursor and advance past it.

        Raises:
            SequencingOverflowError: The cursor is not at a layer or the
                layer has no change left
        """
        cursor = self.cursor
        if cursor.phase != CursorPhase.AT_LAYER or cursor.layer >= len(self.tool_changes):
            raise SequencingOverflowError(
                "Wipe tower generation failed: no layer is active in the tower plan.",
                layer=cursor.layer, index=cursor.index)

        layer = self.tool_changes[cursor.layer]
        if cursor.index >= len(layer):
            raise SequencingOverflowError(
                "Wipe tower generation failed, possibly due to empty first layer.",
                layer=cursor.layer, index=cursor.index)

        self.cursor = cursor.advance_change()
        return layer[cursor.index]

