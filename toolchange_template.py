"""Fill the placeholder slots of a wipe tower tool change block.

A rewritten tool change block still contains the generator's placeholder
tags. Each tag is a slot holding named blocks: ordered slots take one block
per occurrence in textual order, shared slots put the same block at every
occurrence. All slots are validated before any text is assembled.
"""

from typing import List, Tuple
from dataclasses import dataclass

from gcode_parser import DERETRACTION_TAG, TOOLCHANGE_TAG
from wipe_tower_plan import MissingSubBlockError


NamedBlock = Tuple[str, str]


@dataclass(frozen=True)
class TemplateSlot:
    """A placeholder tag and the named blocks that replace it."""
    tag: str
    blocks: Tuple[NamedBlock, ...]
    ordered: bool = True
    required: bool = True


class ToolChangeTemplate:
    """Substitutes named slots into a tool change block."""

    def __init__(self, gcode: str):
        self.gcode = gcode
        self.slots: List[TemplateSlot] = []

    def ordered(self, tag: str, *blocks: NamedBlock) -> "ToolChangeTemplate":
        """Register a tag whose occurrences are filled one block each, in order."""
        self.slots.append(TemplateSlot(tag, tuple(blocks), ordered=True))
        return self

    def shared(self, tag: str, name: str, block: str,
               required: bool = True) -> "ToolChangeTemplate":
        """Register a tag whose occurrences all receive the same block.

        A block that is not required may be empty as long as the tag does
        not occur in the G-code.
        """
        self.slots.append(TemplateSlot(tag, ((name, block),), ordered=False,
                                       required=required))
        return self

    def validate(self) -> None:
        """Check every slot has a non-empty block for each occurrence.

        Raises:
            MissingSubBlockError: A block is empty or a tag occurs more
                often than there are blocks for it
        """
        for slot in self.slots:
            occurrences = self.gcode.count(slot.tag)
            for name, block in slot.blocks:
                if not block and (slot.required or occurrences):
                    raise MissingSubBlockError(name)
            if slot.ordered and occurrences > len(slot.blocks):
                raise MissingSubBlockError(f"{slot.tag} #{len(slot.blocks) + 1}")

    def render(self) -> str:
        """Validate the slots and return the block with every tag replaced."""
        self.validate()
        gcode = self.gcode
        for slot in self.slots:
            if slot.ordered:
                parts = gcode.split(slot.tag)
                out = [parts[0]]
                for (_, block), part in zip(slot.blocks, parts[1:]):
                    out.append(block)
                    out.append(part)
                gcode = "".join(out)
            else:
                gcode = gcode.replace(slot.tag, slot.blocks[0][1])
        return gcode


def fill_tool_change(gcode: str, contour_toolchange: str,
                     inner_toolchange: str, deretraction: str,
                     deretraction_required: bool = True) -> str:
    """Insert tool change and deretraction G-code into a rewritten tower block.

    The first tool change tag receives the contour tool's activation, the
    second the new tool's. Every deretraction tag receives the same block.
    """
    template = (ToolChangeTemplate(gcode)
                .ordered(TOOLCHANGE_TAG,
                         ("contour_toolchange", contour_toolchange),
                         ("inner_toolchange", inner_toolchange))
                .shared(DERETRACTION_TAG, "deretraction", deretraction,
                        required=deretraction_required))
    return template.render()
