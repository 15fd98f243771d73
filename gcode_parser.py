"""G-code tokenizer for wipe tower tool change blocks.

This module splits linear move commands into typed tokens, recognizes the
placeholder tags left by the wipe tower generator and formats coordinates
the way the rest of the motion stream expects them.
"""

import re
from enum import Enum
from typing import List, Optional, Tuple
from dataclasses import dataclass


LINEAR_MOVE = "G1"

# Placeholder tags emitted by the wipe tower generator
NEVER_SKIP_TAG = "_GCODE_WIPE_TOWER_NEVER_SKIP_TAG"
TOOLCHANGE_TAG = "[toolchange_gcode_from_wipe_tower_generator]"
DERETRACTION_TAG = "[deretraction_from_wipe_tower_generator]"

_COORDINATE_RE = re.compile(r'^([XY])([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)$')
_ESCAPE_RE = re.compile(r"\\(.?)", re.DOTALL)
_ESCAPES = {'n': '\n', 'r': '\r'}


class TokenKind(Enum):
    """Kinds of tokens found on a linear move line."""
    COMMAND = "command"
    COORDINATE = "coordinate"
    PARAMETER = "parameter"
    COMMENT = "comment"


@dataclass(frozen=True)
class Token:
    """A single piece of a G-code line."""
    kind: TokenKind
    text: str
    axis: Optional[str] = None
    value: Optional[float] = None


def is_linear_move(line: str) -> bool:
    """Return True for lines the tower rewriter has to relocate."""
    return line.startswith(LINEAR_MOVE + " ")


def strip_never_skip(line: str) -> Tuple[str, bool]:
    """Remove the never-skip tag from a line.

    Returns:
        The line without the tag and whether the tag was present
    """
    if NEVER_SKIP_TAG not in line:
        return line, False
    return line.replace(NEVER_SKIP_TAG, "", 1).rstrip(), True


def tokenize_move(line: str) -> List[Token]:
    """Split a linear move into command, coordinate, parameter and comment tokens.

    Token order follows the original line. A comment, if any, is always the
    last token and keeps its text verbatim including the leading ';'.
    """
    comment = None
    if ';' in line:
        idx = line.index(';')
        line, comment = line[:idx], line[idx:]

    tokens: List[Token] = []
    parts = line.split()
    if parts:
        tokens.append(Token(TokenKind.COMMAND, parts[0]))

    for word in parts[1:]:
        match = _COORDINATE_RE.match(word)
        if match:
            tokens.append(Token(TokenKind.COORDINATE, word,
                                axis=match.group(1),
                                value=float(match.group(2))))
        else:
            tokens.append(Token(TokenKind.PARAMETER, word))

    if comment is not None:
        tokens.append(Token(TokenKind.COMMENT, comment))

    return tokens


def format_coordinate(axis: str, value: float) -> str:
    """Format a coordinate with three decimal places, e.g. X10.000."""
    return f"{axis}{value:.3f}"


def unescape_cstyle(text: str) -> str:
    """Resolve C-style backslash escapes embedded in generated G-code.

    Only \\n and \\r have a special meaning, any other escaped character
    stands for itself.

    Raises:
        ValueError: The text ends with an unpaired backslash
    """
    def _unescape(match):
        char = match.group(1)
        if not char:
            raise ValueError("G-code ends with an unpaired escape character")
        return _ESCAPES.get(char, char)

    return _ESCAPE_RE.sub(_unescape, text)
