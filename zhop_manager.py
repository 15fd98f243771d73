"""Z moves around a visit to the wipe tower.

When the tower is printed at a height other than the one the nozzle is
currently at, the nozzle has to go down to the tower layer and come back up
afterwards. Both moves are retracted so nothing oozes on the way.
"""

import math
from typing import Optional

from gcode_writer import GCodeGenerator


# Heights closer than this are the same layer
Z_EPSILON = 1e-6


class ZHopManager:
    """Brackets tower visits that need a different Z height."""

    def __init__(self, writer: GCodeGenerator):
        """
        Initialize the Z manager.

        Args:
            writer: G-code generator the Z moves are emitted through
        """
        self.writer = writer

    @staticmethod
    def needs_z_change(target_z: float, current_z: float) -> bool:
        """Return True when the tower is printed at another height."""
        return not math.isclose(target_z, current_z, abs_tol=Z_EPSILON)

    def resolve_z(self, z: Optional[float]) -> float:
        """Return the requested Z, or the current nozzle height if none was given."""
        if z is None:
            return self.writer.get_position()[2]
        return z

    def move_to(self, z: float, comment: str) -> str:
        """Retract, move to Z and deretract."""
        gcode = self.writer.retract()
        gcode += self.writer.travel_to_z(z, comment)
        gcode += self.writer.unretract()
        return gcode

    def lower_to_tower(self, z: float) -> str:
        return self.move_to(z, "Travel down to the last wipe tower layer.")

    def raise_to_object(self, z: float) -> str:
        return self.move_to(z, "Travel back up to the topmost object layer.")
