"""Priming pass before the first printed layer.

Every extruder lays down a priming line on the bed before the print starts
so the nozzles are full when their first real tool change comes.
"""

import logging

from gcode_writer import GCodeGenerator
from wipe_tower_integration import WipeTowerIntegration
from wipe_tower_plan import WipeTowerError


logger = logging.getLogger(__name__)


class PrimeRunner:
    """Runs the priming tool changes once at the start of the print."""

    def __init__(self, integration: WipeTowerIntegration, writer: GCodeGenerator):
        """
        Initialize the prime runner.

        Args:
            integration: Wipe tower integration holding the priming plan
            writer: G-code generator of the print
        """
        self.integration = integration
        self.writer = writer
        self.primed = False

    def run(self) -> str:
        """Return the priming G-code and leave the writer where priming ended.

        Raises:
            WipeTowerError: Priming already ran for this print
        """
        if self.primed:
            raise WipeTowerError("Extruders were already primed for this print.")

        priming = self.integration.state.priming
        count = sum(1 for tcr in priming if not tcr.is_empty())
        output = self.integration.prime(self.writer)
        self.primed = True

        if output.last_position is not None:
            self.writer.last_position = output.last_position
        logger.info("Primed %d of %d extruders", count, len(priming))
        return output.gcode
