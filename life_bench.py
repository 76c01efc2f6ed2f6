#!/usr/bin/env python3
"""
Profiling harness for the Life renderer.

Runs the advance + encode pipeline headlessly under cProfile, then prints
a ranked breakdown of where time is spent. Nothing is written to the terminal
except the report.

Usage:
  python3 life_bench.py                  # 500 frames, summary
  python3 life_bench.py -n 1000          # 1000 frames
  python3 life_bench.py --bw             # black/white token table
  python3 life_bench.py --line-timing    # per-frame component timing
  python3 life_bench.py --dump prof.out  # dump cProfile binary for snakeviz etc.
"""

from __future__ import annotations

import argparse
import cProfile
import pstats
import time
from io import StringIO

import numpy as np
from numpy.typing import NDArray

from life import advance, seed_grid
from life_frame import BW_MODE, COLOR_MODE, EncodedFrame


class FrameBuffers:
    """The two grids and the encoded frame, rotated the same way the pump does."""

    def __init__(self, rows: int, cols: int, mode: str, seed: int | None) -> None:
        self.front: NDArray[np.uint8] = seed_grid(rows, cols, seed)
        self.back: NDArray[np.uint8] = self.front.copy()
        self.frame = EncodedFrame(rows, cols, mode)

    def step(self) -> dict[str, float]:
        """One generation, timing each component. Returns component -> seconds."""
        timings: dict[str, float] = {}

        t0 = time.perf_counter()
        self.frame.encode(self.front, self.back)
        timings["encode"] = time.perf_counter() - t0

        t0 = time.perf_counter()
        _ = self.frame.tobytes()
        timings["tobytes"] = time.perf_counter() - t0

        t0 = time.perf_counter()
        self.front, self.back = self.back, self.front
        advance(self.back, out=self.front)
        timings["advance"] = time.perf_counter() - t0

        return timings


def stats_line(name: str, data: list[float]) -> str:
    arr = np.array(data) * 1000  # to ms
    return (f"{name:<25} {arr.mean():8.2f} {np.median(arr):8.2f} "
            f"{np.percentile(arr, 95):8.2f} {np.percentile(arr, 99):8.2f} "
            f"{arr.max():8.2f}")


def run_benchmark(
    n_frames: int,
    rows: int = 60,
    cols: int = 200,
    mode: str = COLOR_MODE,
    seed: int | None = None,
    line_timing: bool = False,
    dump_path: str | None = None,
) -> None:
    """Run the benchmark for n_frames and report results."""

    bufs = FrameBuffers(rows, cols, mode, seed)

    print(f"Grid: {rows}x{cols}  Mode: {mode}  "
          f"Frame: {bufs.frame.nbytes:,} bytes  Frames: {n_frames}")
    print()

    # ── Per-frame component timing ─────────────────────────────────
    if line_timing:
        component_times: dict[str, list[float]] = {}
        total_times: list[float] = []

        for frame in range(n_frames):
            frame_t0 = time.perf_counter()
            for k, v in bufs.step().items():
                component_times.setdefault(k, []).append(v)
            total_times.append(time.perf_counter() - frame_t0)

            if (frame + 1) % 100 == 0:
                avg_ms = sum(total_times[-100:]) / 100 * 1000
                print(f"  frame {frame + 1}/{n_frames}  "
                      f"avg {avg_ms:.2f}ms/frame  "
                      f"pop {int(bufs.front.sum()):,}")

        print()
        print("=== Per-Frame Component Breakdown (ms) ===")
        print(f"{'Component':<25} {'Mean':>8} {'P50':>8} {'P95':>8} {'P99':>8} {'Max':>8}")
        print("-" * 73)
        for k in sorted(component_times):
            print(stats_line(k, component_times[k]))
        print(stats_line("TOTAL", total_times))

        total_arr = np.array(total_times)
        print(f"\nSustainable FPS (mean): {1.0 / max(total_arr.mean(), 1e-9):.1f}")
        return

    # ── cProfile run ───────────────────────────────────────────────
    def profiled_run() -> None:
        for _ in range(n_frames):
            bufs.step()

    profiler = cProfile.Profile()
    wall_t0 = time.perf_counter()
    profiler.runctx("profiled_run()", globals(), locals())
    wall_dt = time.perf_counter() - wall_t0

    print(f"Wall time: {wall_dt:.2f}s  ({wall_dt / n_frames * 1000:.2f}ms/frame)")
    print(f"Effective FPS: {n_frames / wall_dt:.1f}")
    print()

    if dump_path:
        profiler.dump_stats(dump_path)
        print(f"Profile data saved to: {dump_path}")
        print(f"  View with: python3 -m pstats {dump_path}")
        print()

    buf = StringIO()
    ps = pstats.Stats(profiler, stream=buf)
    ps.sort_stats("cumulative")
    ps.print_stats(25)
    print(buf.getvalue())


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Profile the Life renderer")
    parser.add_argument("-n", "--frames", type=int, default=500,
                        help="Number of frames to simulate (default: 500)")
    parser.add_argument("--rows", type=int, default=60,
                        help="Grid rows (default: 60)")
    parser.add_argument("--cols", type=int, default=200,
                        help="Grid cols (default: 200)")
    parser.add_argument("--bw", action="store_true",
                        help="Use the black/white token table")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed (default: current time)")
    parser.add_argument("--line-timing", action="store_true",
                        help="Per-frame component timing instead of cProfile")
    parser.add_argument("--dump", type=str, default=None,
                        help="Dump cProfile binary to this path")
    args = parser.parse_args(argv)

    run_benchmark(
        n_frames=args.frames,
        rows=args.rows,
        cols=args.cols,
        mode=BW_MODE if args.bw else COLOR_MODE,
        seed=args.seed,
        line_timing=args.line_timing,
        dump_path=args.dump,
    )


if __name__ == "__main__":
    main()
