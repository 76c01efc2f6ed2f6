#!/usr/bin/env python3
"""
  L I F E  in ANSI
  Conway's Game of Life on a wrap-around grid, painted straight into the
  terminal with 4-bit background colours.

  Cells that were just born flash green, cells that just died flash red,
  survivors stay white and the void stays black. Pass --bw to drop the
  red/green and see only who is alive right now.

  Usage:
    python3 life.py 25 50 5            # 25 tall, 50 wide, at most 5 fps
    python3 life.py --bw 25 50 10      # black and white only
    python3 life.py 40 120 0           # uncapped frame rate
    python3 life.py --seed 7 --stats life_stats.csv 40 120 30

  Ctrl-C stops the run after the current frame and resets the terminal colours.
"""

from __future__ import annotations

import argparse
import signal
import sys
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import IO, BinaryIO, ClassVar, NoReturn

import numpy as np
from numpy.typing import NDArray

from life_frame import (
    BW_MODE,
    CLEAR_SCREEN,
    COLOR_MODE,
    RESET_FONT,
    EncodedFrame,
    generation_line,
)

# ── Limits ──────────────────────────────────────────────────────────────
ARG_RANGES: dict[str, tuple[int, int]] = {
    "height": (1, 2000),
    "width": (1, 2000),
    "max_fps": (0, 4800),
    "generations": (1, 50_000_000),
}
GENERATION_LIMIT: int = 50_000  # safety stop for unattended runs

EXIT_OK: int = 0
EXIT_FAILURE: int = 1

# ── Seeding (FxHash) ────────────────────────────────────────────────────
FX_MULTIPLIER: int = 0x517CC1B727220A95
MASK64: int = (1 << 64) - 1
LOW_BIT_OF_EACH_BYTE: int = 0x0101010101010101
CELLS_PER_WORD: int = 8

# ── Neighbourhood ───────────────────────────────────────────────────────
OFFSETS: tuple[int, ...] = (-1, 0, 1)


# ═══════════════════════════════════════════════════════════════════════
#  Seeding
# ═══════════════════════════════════════════════════════════════════════

def rotl5(value: int) -> int:
    return ((value << 5) | (value >> 59)) & MASK64


def fxhash(h: int, w: int) -> int:
    return ((rotl5(h) ^ w) * FX_MULTIPLIER) & MASK64


def seed_grid(height: int, width: int, seed: int | None = None) -> NDArray[np.uint8]:
    """Random initial grid, roughly half alive.

    Each hashing step yields one 64-bit word; the low bit of each of its
    8 little-endian bytes becomes one cell. Seeded from the wall clock
    unless ``seed`` is given.
    """
    if seed is None:
        seed = time.time_ns()
    area = height * width
    n_words = (area + CELLS_PER_WORD - 1) // CELLS_PER_WORD

    h = seed & MASK64
    words: list[int] = []
    for i in range(n_words):
        h = fxhash(h, i)
        words.append(h & LOW_BIT_OF_EACH_BYTE)

    cells = np.array(words, dtype="<u8").view(np.uint8)[:area]
    return cells.reshape(height, width).copy()


# ═══════════════════════════════════════════════════════════════════════
#  Simulation
# ═══════════════════════════════════════════════════════════════════════

def neighborhood_count(grid: NDArray) -> NDArray[np.uint8]:
    """Live cells in the wrapped 3x3 window around every cell, itself included.

    Tiny grids wrap onto themselves, so a 1-wide grid counts each cell's own
    column three times.
    """
    g = (grid != 0).view(np.uint8)
    count = np.zeros(g.shape, dtype=np.uint8)
    for dy in OFFSETS:
        rows = np.roll(g, -dy, axis=0)
        for dx in OFFSETS:
            count += np.roll(rows, -dx, axis=1)
    return count


def advance(source: NDArray, out: NDArray[np.uint8] | None = None) -> NDArray[np.uint8]:
    """Compute the next generation of ``source`` into ``out``.

    A cell is alive next if its window count is 3, or 4 and it is alive now.
    ``out`` must not alias ``source``; it is only written once the whole
    count is known.
    """
    count = neighborhood_count(source)
    alive = (count == 3) | ((count == 4) & (source != 0))
    if out is None:
        out = np.empty(source.shape, dtype=np.uint8)
    np.copyto(out, alive)
    return out


# ═══════════════════════════════════════════════════════════════════════
#  Stats logger
# ═══════════════════════════════════════════════════════════════════════

class StatsLogger:
    """Writes per-generation telemetry to CSV."""

    HEADER: ClassVar[str] = "gen,time_s,population,births,deaths,event\n"

    def __init__(self, path: Path) -> None:
        self._path = path
        self._fh: IO[str] | None = None
        self._t0: float = time.monotonic()

    def open(self) -> None:
        try:
            self._fh = open(self._path, "w")
            self._fh.write(self.HEADER)
            self._fh.flush()
        except OSError:
            self._fh = None

    def log(
        self,
        gen: int,
        population: int,
        births: int,
        deaths: int,
        event: str = "",
    ) -> None:
        if self._fh is None:
            return
        t = time.monotonic() - self._t0
        self._fh.write(f"{gen},{t:.3f},{population},{births},{deaths},{event}\n")
        # Flush on events or periodically
        if event or gen % 50 == 0:
            try:
                self._fh.flush()
            except OSError:
                pass

    def close(self) -> None:
        if self._fh is not None:
            try:
                self._fh.close()
            except OSError:
                pass
            self._fh = None


# ═══════════════════════════════════════════════════════════════════════
#  Configuration
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LifeConfig:
    """Everything the frame pump needs to start a run."""
    height: int
    width: int
    max_fps: int
    color_mode: str = COLOR_MODE
    seed: int | None = None
    max_generations: int = GENERATION_LIMIT
    stats_path: Path | None = None

    @property
    def frame_interval(self) -> float:
        """Seconds to sleep between frames; 0 means uncapped."""
        return 1.0 / self.max_fps if self.max_fps else 0.0


class LifeArgumentParser(argparse.ArgumentParser):
    """argparse with the exit status and wording of a bad-input error."""

    def error(self, message: str) -> NoReturn:
        self.exit(EXIT_FAILURE, f"bad input: {message}\ntry --help for more info\n")


def _bounded_int(name: str):
    lo, hi = ARG_RANGES[name]

    def convert(text: str) -> int:
        try:
            value = int(text, 10)
        except ValueError:
            value = None
        if value is None or not lo <= value <= hi:
            raise argparse.ArgumentTypeError(
                f"'{text}' expects an int between {lo} and {hi}"
            )
        return value

    convert.__name__ = name
    return convert


def build_parser() -> LifeArgumentParser:
    parser = LifeArgumentParser(
        prog="life",
        description="Conway's Game of Life in the terminal, with ANSI colours.",
        epilog=(
            "Example: 'life 25 50 5' => 25 tall, 50 wide, 5 max FPS. "
            "Passing 0 for max_fps results in an uncapped framerate."
        ),
    )
    parser.add_argument("height", type=_bounded_int("height"),
                        help="Grid rows (1-2000)")
    parser.add_argument("width", type=_bounded_int("width"),
                        help="Grid columns (1-2000)")
    parser.add_argument("max_fps", type=_bounded_int("max_fps"),
                        help="Frame rate cap (0-4800, 0 = uncapped)")
    parser.add_argument("-bw", "--bw", action="store_true",
                        help="Disable red/green; show cells in black and white only")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed (default: current time)")
    parser.add_argument("--generations", type=_bounded_int("generations"),
                        default=GENERATION_LIMIT,
                        help=f"Stop after this many generations (default: {GENERATION_LIMIT})")
    parser.add_argument("--stats", type=Path, default=None,
                        help="Write per-generation CSV stats to this path")
    return parser


def parse_args(
    argv: list[str], parser: argparse.ArgumentParser | None = None
) -> LifeConfig:
    """Parse command-line arguments into a LifeConfig (exits 1 on bad input)."""
    if parser is None:
        parser = build_parser()
    args = parser.parse_args(argv)
    return LifeConfig(
        height=args.height,
        width=args.width,
        max_fps=args.max_fps,
        color_mode=BW_MODE if args.bw else COLOR_MODE,
        seed=args.seed,
        max_generations=args.generations,
        stats_path=args.stats,
    )


# ═══════════════════════════════════════════════════════════════════════
#  Interrupts
# ═══════════════════════════════════════════════════════════════════════

def install_interrupt_handler(stop: threading.Event):
    """Turn SIGINT into a stop request. Returns the previous handler."""

    def _request_stop(signo, frame) -> None:
        stop.set()

    return signal.signal(signal.SIGINT, _request_stop)


# ═══════════════════════════════════════════════════════════════════════
#  Frame pump
# ═══════════════════════════════════════════════════════════════════════

class PumpState(Enum):
    RUNNING = "running"
    STOP_REQUESTED = "stop_requested"
    TERMINATED = "terminated"


class FramePump:
    """
    Drives the generation loop: encode, emit, swap, advance, pace.

    Owns both grids and the encoded frame. ``front`` is always the generation
    being shown and ``back`` the one before it. The stop flag is only checked
    at the top of a generation, so a frame that has started always finishes.
    """

    def __init__(
        self,
        config: LifeConfig,
        out: BinaryIO,
        stop: threading.Event | None = None,
        stats: StatsLogger | None = None,
    ) -> None:
        self.config = config
        self.stop = stop if stop is not None else threading.Event()
        self.state = PumpState.RUNNING
        self.generation = 0
        self._out = out
        self._stats = stats
        self._interval = config.frame_interval

        self.front: NDArray[np.uint8] = seed_grid(config.height, config.width, config.seed)
        # Same state on both sides, so the first frame shows no transitions
        self.back: NDArray[np.uint8] = self.front.copy()
        self.frame = EncodedFrame(config.height, config.width, config.color_mode)

    def run(self) -> int:
        """Pump frames until stopped or the generation limit. Returns frames shown."""
        while self.generation < self.config.max_generations:
            if self.stop.is_set():
                self.state = PumpState.STOP_REQUESTED
                # fix the colours if we get interrupted
                self._out.write(RESET_FONT)
                self._out.flush()
                self._terminate("interrupted")
                return self.generation

            self.generation += 1
            self.emit()

            self.front, self.back = self.back, self.front
            advance(self.back, out=self.front)

            if self._interval:
                time.sleep(self._interval)

        self._terminate("limit")
        return self.generation

    def emit(self) -> None:
        """Encode the current generation and write it out."""
        self.frame.encode(self.front, self.back)
        if self._stats is not None:
            self._stats.log(
                self.generation,
                int(self.front.sum()),
                int(np.count_nonzero(self.front > self.back)),
                int(np.count_nonzero(self.front < self.back)),
            )

        out = self._out
        out.write(CLEAR_SCREEN)
        out.write(self.frame.tobytes())
        out.write(RESET_FONT)
        out.write(generation_line(self.generation))
        out.flush()

    def _terminate(self, event: str) -> None:
        self.state = PumpState.TERMINATED
        if self._stats is not None:
            self._stats.log(self.generation, int(self.front.sum()), 0, 0, event=event)


# ═══════════════════════════════════════════════════════════════════════
#  Entry point
# ═══════════════════════════════════════════════════════════════════════

def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    parser = build_parser()
    if not argv:
        parser.print_help()
        return EXIT_OK
    config = parse_args(argv, parser)

    stop = threading.Event()
    try:
        previous_handler = install_interrupt_handler(stop)
    except (ValueError, OSError) as exc:
        print(f"An error occurred while setting a signal handler: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    out = sys.stdout.buffer
    stats = StatsLogger(config.stats_path) if config.stats_path else None
    try:
        try:
            pump = FramePump(config, out, stop=stop, stats=stats)
        except MemoryError:
            print("allocation failed, aborting", file=sys.stderr)
            return EXIT_FAILURE

        if stats is not None:
            stats.open()
        pump.run()
    except KeyboardInterrupt:
        out.write(RESET_FONT)
        out.flush()
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)
        if stats is not None:
            stats.close()
    return EXIT_OK


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
