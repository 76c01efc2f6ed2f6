"""
ANSI frame encoder for the Life terminal renderer.

Every cell is drawn as a 6-byte token ``ESC [ C C m SPACE`` where ``CC`` is a
4-bit background colour. Each row ends with ``ESC [ 0 0 m \\n``, which is also
6 bytes, so the whole frame is one ``(height, width + 1, 6)`` byte array.

The scaffolding (escape prefix, ``m``, space / newline) is written once when
the frame is built; ``encode`` only rewrites the two colour digits per cell.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

# ── Control sequences ───────────────────────────────────────────────────
# Cursor home, clear screen, full terminal reset (drops scrollback)
CLEAR_SCREEN: bytes = b"\x1b[1;1H\x1b[2J\x1bc"
RESET_FONT: bytes = b"\x1b[0m"

# ── Token layout ────────────────────────────────────────────────────────
TOKEN_SIZE: int = 6
COLOR_SLICE = slice(2, 4)           # the "CC" digits inside a token
CELL_SCAFFOLD: bytes = b"\x1b[00m "
ROW_TERMINATOR: bytes = b"\x1b[00m\n"

# ── Token tables ────────────────────────────────────────────────────────
# Indexed by transition key (current << 1) | previous:
#   0 dead->dead, 1 live->dead, 2 dead->live, 3 live->live
COLOR_MODE: str = "color"
BW_MODE: str = "bw"

TOKEN_TABLES: dict[str, tuple[bytes, bytes, bytes, bytes]] = {
    # black, red (died), green (born), white
    COLOR_MODE: (b"40", b"41", b"42", b"47"),
    # only the current state matters
    BW_MODE: (b"40", b"40", b"47", b"47"),
}


def _table_array(tokens: tuple[bytes, ...]) -> NDArray[np.uint8]:
    return np.frombuffer(b"".join(tokens), dtype=np.uint8).reshape(4, 2).copy()


_TABLE_ARRAYS: dict[str, NDArray[np.uint8]] = {
    mode: _table_array(tokens) for mode, tokens in TOKEN_TABLES.items()
}


def transition_keys(
    current: NDArray, previous: NDArray
) -> NDArray[np.uint8]:
    """2-bit transition key per cell; any nonzero cell counts as live."""
    cur = (current != 0).view(np.uint8)
    prev = (previous != 0).view(np.uint8)
    return (cur << 1) | prev


def generation_line(generation: int) -> bytes:
    return f"gen: {generation}\n".encode("ascii")


class EncodedFrame:
    """Pre-scaffolded ANSI byte buffer, rewritten in place every generation."""

    def __init__(self, height: int, width: int, mode: str = COLOR_MODE) -> None:
        if mode not in _TABLE_ARRAYS:
            raise ValueError(f"unknown color mode: {mode!r}")
        self.height = height
        self.width = width
        self.mode = mode
        self._tokens = _TABLE_ARRAYS[mode]

        self.buffer: NDArray[np.uint8] = np.empty(
            (height, width + 1, TOKEN_SIZE), dtype=np.uint8
        )
        self.buffer[:, :width] = np.frombuffer(CELL_SCAFFOLD, dtype=np.uint8)
        self.buffer[:, width] = np.frombuffer(ROW_TERMINATOR, dtype=np.uint8)

        # View of just the colour digits of the cell tokens
        self._colors = self.buffer[:, :width, COLOR_SLICE]

    @property
    def nbytes(self) -> int:
        return self.buffer.nbytes

    def encode(self, current: NDArray, previous: NDArray) -> None:
        """Write the colour of every cell for the (previous -> current) step."""
        keys = transition_keys(current, previous)
        self._colors[...] = self._tokens[keys]

    def tobytes(self) -> bytes:
        return self.buffer.tobytes()
