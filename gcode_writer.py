"""Motion writer interface used by the wipe tower integration.

The wipe tower integration does not format retractions, travels or tool
selections itself. It asks the surrounding G-code generator for them through
the GCodeGenerator protocol. SimpleGCodeWriter is a small implementation of
that protocol with fixed retraction, good enough for previews and tests.
"""

import math
from typing import List, Optional, Protocol, Tuple
from dataclasses import dataclass

from coordinate_transform import Point2D


Point3D = Tuple[float, float, float]


class GCodeGenerator(Protocol):
    """Operations the wipe tower integration needs from the G-code generator."""

    origin: Point2D
    last_position: Optional[Point2D]
    current_layer_first_position: Optional[Point3D]
    use_external_mp_once: bool

    def need_toolchange(self, tool: int) -> bool: ...

    def get_position(self) -> Point3D: ...

    def update_position(self, position: Point3D) -> None: ...

    def travel_to_z(self, z: float, comment: str = "") -> str: ...

    def get_travel_to_z_gcode(self, z: float, comment: str = "") -> str: ...

    def travel_to_xy(self, point: Point2D, comment: str = "") -> str: ...

    def travel_to(self, start: Point2D, end: Point2D, comment: str = "") -> str: ...

    def travel_to_first_position(self, point: Point3D, current_z: float) -> str: ...

    def retract(self) -> str: ...

    def retract_and_wipe(self) -> str: ...

    def unretract(self) -> str: ...

    def set_extruder(self, tool: int, print_z: float) -> str: ...

    def set_print_acceleration(self, acceleration: int) -> str: ...

    def maybe_stop_instance(self) -> str: ...


@dataclass
class WriterConfig:
    """Fixed motion parameters for SimpleGCodeWriter."""
    retract_length: float = 0.8  # mm of filament
    retract_speed: float = 35.0  # mm/s
    travel_speed: float = 150.0  # XY travel speed in mm/s
    z_speed: float = 10.0  # Z movement speed in mm/s

    def retract_feedrate(self) -> float:
        """Return retraction feedrate in mm/min."""
        return self.retract_speed * 60

    def travel_feedrate(self) -> float:
        """Return travel feedrate in mm/min."""
        return self.travel_speed * 60

    def z_feedrate(self) -> float:
        """Return Z feedrate in mm/min."""
        return self.z_speed * 60


class SimpleGCodeWriter:
    """Minimal GCodeGenerator with fixed-length retraction."""

    def __init__(self, config: Optional[WriterConfig] = None,
                 tool: Optional[int] = None,
                 position: Point3D = (0.0, 0.0, 0.0),
                 origin: Point2D = (0.0, 0.0)):
        self.config = config or WriterConfig()
        self.tool = tool
        self.position: List[float] = list(position)
        self.origin = origin
        self.last_position: Optional[Point2D] = None
        self.current_layer_first_position: Optional[Point3D] = None
        self.use_external_mp_once = False
        self.retracted = False
        self.acceleration: Optional[int] = None
        self.instance_active = False

    def need_toolchange(self, tool: int) -> bool:
        return self.tool is None or self.tool != tool

    def get_position(self) -> Point3D:
        return (self.position[0], self.position[1], self.position[2])

    def update_position(self, position: Point3D) -> None:
        self.position = list(position)

    def travel_to_z(self, z: float, comment: str = "") -> str:
        if math.isclose(z, self.position[2], abs_tol=1e-9):
            return ""
        return self.get_travel_to_z_gcode(z, comment)

    def get_travel_to_z_gcode(self, z: float, comment: str = "") -> str:
        """Return a Z move even when the nozzle is already at that height."""
        self.position[2] = z
        return self._line(f"G1 Z{z:.3f} F{self.config.z_feedrate():.0f}", comment)

    def travel_to_xy(self, point: Point2D, comment: str = "") -> str:
        self.position[0], self.position[1] = point
        return self._line(
            f"G1 X{point[0]:.3f} Y{point[1]:.3f} F{self.config.travel_feedrate():.0f}",
            comment)

    def travel_to(self, start: Point2D, end: Point2D, comment: str = "") -> str:
        # No obstacle avoidance here, a straight travel is all we do
        self.use_external_mp_once = False
        return self.travel_to_xy(self._to_gcode(end), comment)

    def travel_to_first_position(self, point: Point3D, current_z: float) -> str:
        x, y, z = point
        gcode = self.travel_to_xy(self._to_gcode((x, y)), "Travel to a Wipe Tower")
        gcode += self.travel_to_z(z)
        self.current_layer_first_position = (x, y, z)
        return gcode

    def retract(self) -> str:
        if self.retracted:
            return ""
        self.retracted = True
        return self._line(
            f"G1 E{-self.config.retract_length:.5f} F{self.config.retract_feedrate():.0f}",
            "retract")

    def retract_and_wipe(self) -> str:
        return self.retract()

    def unretract(self) -> str:
        if not self.retracted:
            return ""
        self.retracted = False
        return self._line(
            f"G1 E{self.config.retract_length:.5f} F{self.config.retract_feedrate():.0f}",
            "unretract")

    def set_extruder(self, tool: int, print_z: float) -> str:
        self.tool = tool
        return f"T{tool}\n"

    def set_print_acceleration(self, acceleration: int) -> str:
        # Zero means the acceleration is not configured
        if acceleration <= 0 or acceleration == self.acceleration:
            return ""
        self.acceleration = acceleration
        return f"M204 S{acceleration}\n"

    def start_instance(self, instance_id: int) -> str:
        """Start printing a labelled object instance."""
        self.instance_active = True
        return f"M624 S{instance_id}\n"

    def maybe_stop_instance(self) -> str:
        if not self.instance_active:
            return ""
        self.instance_active = False
        return "M625\n"

    def _to_gcode(self, point: Point2D) -> Point2D:
        return (point[0] + self.origin[0], point[1] + self.origin[1])

    @staticmethod
    def _line(gcode: str, comment: str = "") -> str:
        if comment:
            return f"{gcode} ; {comment}\n"
        return gcode + "\n"
