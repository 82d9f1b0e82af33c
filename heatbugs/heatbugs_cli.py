#!/usr/bin/env python3
"""
Command line front end for the Heatbugs model.

Reads the simulation parameters, checks them, runs the model and writes the
mean unhappiness of every step (step 0 included) to a results file, one
value per line.

Usage
-----
$ heatbugs                                  # defaults, random seed
$ heatbugs -n 200 -w 50 -W 50 -i 500 -s 7 -f results/heatbugs.csv
$ heatbugs -t 10 -T 40 -h 5 -H 25 -r 1.5 --plot

Note that -h is the minimum output heat; use --help for help.
"""

from __future__ import annotations

import argparse
import os
import signal
import sys
import time
from enum import IntEnum
from pathlib import Path
from typing import List, Sequence

from heatbugs.heatbugs_model import HeatbugsModel, Params


# Bugs above this share of the world slots trigger a warning.
CROWDED_WORLD_RATIO = 0.8


class ErrorCode(IntEnum):
    SUCCESS = 0
    INVALID_PARAMETER = -1
    PARAM_ARG_MISSING = -2
    PARAM_OPTION_UNKNOWN = -3
    PARAM_CHAR_UNKNOWN = -4
    PARAM_PARSING = -5
    BUGS_ZERO = -6
    BUGS_OVERFLOW = -7
    TEMPERATURE_OVERLAP = -8
    TEMPERATURE_OUT_RANGE = -9
    OUTPUT_HEAT_OVERLAP = -10
    OUTPUT_HEAT_OUT_RANGE = -11
    UNABLE_OPEN_FILE = -12
    MALLOC_FAILURE = -13


class HeatbugsError(Exception):
    def __init__(self, code: ErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class HeatbugsArgumentParser(argparse.ArgumentParser):
    """Turns argparse usage errors into HeatbugsError."""

    def error(self, message):
        if "expected one argument" in message:
            code = ErrorCode.PARAM_ARG_MISSING
        elif "unrecognized arguments" in message and not message.isprintable():
            code = ErrorCode.PARAM_CHAR_UNKNOWN
        elif "unrecognized arguments" in message:
            code = ErrorCode.PARAM_OPTION_UNKNOWN
        else:
            code = ErrorCode.PARAM_PARSING
        raise HeatbugsError(code, message)


def build_parser() -> argparse.ArgumentParser:
    d = Params()
    ap = HeatbugsArgumentParser(
        prog="heatbugs",
        description="Heatbugs agent-based simulation.",
        add_help=False,
    )
    ap.add_argument("--help", action="help", help="show this help message and exit")
    ap.add_argument("-i", "--iterations", type=int, default=d.iterations,
                    help="number of iterations (0 = non stop)")
    ap.add_argument("-n", "--bugs", type=int, default=d.bugs)
    ap.add_argument("-w", "--width", type=int, default=d.width)
    ap.add_argument("-W", "--height", type=int, default=d.height)
    ap.add_argument("-d", "--diffusion-rate", type=float, default=d.diffusion_rate)
    ap.add_argument("-e", "--evaporation-rate", type=float, default=d.evaporation_rate)
    ap.add_argument("-r", "--random-move-chance", type=float, default=d.random_move_chance,
                    help="[0..100] chance a bug moves to any free neighbour")
    ap.add_argument("-t", "--temperature-min-ideal", type=int, default=d.temperature_min_ideal)
    ap.add_argument("-T", "--temperature-max-ideal", type=int, default=d.temperature_max_ideal)
    ap.add_argument("-h", "--heat-min-output", type=int, default=d.heat_min_output)
    ap.add_argument("-H", "--heat-max-output", type=int, default=d.heat_max_output)
    ap.add_argument("-s", "--seed", type=int, default=None,
                    help="random seed (default: read from the OS entropy pool)")
    ap.add_argument("-f", "--output-filename", type=str, default=d.output_filename)
    ap.add_argument("--report-every", type=int, default=0,
                    help="print progress every N steps (0 = off)")
    ap.add_argument("--plot", action="store_true", default=False,
                    help="plot the unhappiness curve at the end (requires a display)")
    return ap


def urandom_seed() -> int:
    return int.from_bytes(os.urandom(4), "little")


def parse_params(argv: Sequence[str] | None = None) -> tuple[Params, argparse.Namespace]:
    args = build_parser().parse_args(argv)
    params = Params(
        iterations=args.iterations,
        bugs=args.bugs,
        width=args.width,
        height=args.height,
        diffusion_rate=args.diffusion_rate,
        evaporation_rate=args.evaporation_rate,
        random_move_chance=args.random_move_chance,
        temperature_min_ideal=args.temperature_min_ideal,
        temperature_max_ideal=args.temperature_max_ideal,
        heat_min_output=args.heat_min_output,
        heat_max_output=args.heat_max_output,
        seed=args.seed if args.seed is not None else urandom_seed(),
        output_filename=args.output_filename,
    )
    return params, args


def validate_params(params: Params) -> None:
    """Raise HeatbugsError for the first bad parameter. Checking order matters."""
    if params.iterations < 0:
        raise HeatbugsError(ErrorCode.INVALID_PARAMETER, "Number of iterations is negative.")
    if params.width <= 0 or params.height <= 0:
        raise HeatbugsError(ErrorCode.INVALID_PARAMETER, "World dimensions must be positive.")
    if not 0.0 <= params.diffusion_rate <= 1.0:
        raise HeatbugsError(ErrorCode.INVALID_PARAMETER, "Diffusion rate must be in [0, 1].")
    if not 0.0 <= params.evaporation_rate <= 1.0:
        raise HeatbugsError(ErrorCode.INVALID_PARAMETER, "Evaporation rate must be in [0, 1].")
    if not 0.0 <= params.random_move_chance <= 100.0:
        raise HeatbugsError(ErrorCode.INVALID_PARAMETER, "Random move chance must be in [0, 100].")
    if params.temperature_min_ideal < 0 or params.heat_min_output < 0:
        raise HeatbugsError(ErrorCode.INVALID_PARAMETER, "Temperature and heat bounds must not be negative.")

    if params.bugs <= 0:
        raise HeatbugsError(ErrorCode.BUGS_ZERO, "There are no bugs.")
    if params.bugs >= params.world_size:
        raise HeatbugsError(ErrorCode.BUGS_OVERFLOW, "Number of bugs exceed available world slots.")

    if params.temperature_min_ideal > params.temperature_max_ideal:
        raise HeatbugsError(ErrorCode.TEMPERATURE_OVERLAP, "Bug's ideal temperature range overlaps.")
    if params.temperature_max_ideal >= 200:
        raise HeatbugsError(ErrorCode.TEMPERATURE_OUT_RANGE, "Bug's max ideal temperature is out of range.")

    if params.heat_min_output > params.heat_max_output:
        raise HeatbugsError(ErrorCode.OUTPUT_HEAT_OVERLAP, "Bug's output heat range overlaps.")
    if params.heat_max_output >= 100:
        raise HeatbugsError(ErrorCode.OUTPUT_HEAT_OUT_RANGE, "Bug's max output heat is out of range.")

    if params.bugs >= CROWDED_WORLD_RATIO * params.world_size:
        print("Warning: Bugs number near available world slots.", file=sys.stderr)


class UnhappinessWriter:
    """
    Results sink: one mean unhappiness per line, written with "%.17g".
    The file is opened on construction and left to the usual write buffering.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._handle = open(self.path, "w", encoding="utf-8")
        self.count = 0

    def __call__(self, value: float) -> None:
        self._handle.write("%.17g\n" % value)
        self.count += 1

    def close(self) -> None:
        self._handle.close()

    def __enter__(self) -> "UnhappinessWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def run_simulation(params: Params, sink, report_every: int = 0) -> HeatbugsModel:
    """
    Run until the iteration limit. Ctrl-C only raises a stop flag, checked
    between steps, so the run always ends on a completed step.
    """
    model = HeatbugsModel(params, sink=sink)
    interrupted = []

    def on_sigint(signum, frame):
        interrupted.append(signum)

    previous = signal.signal(signal.SIGINT, on_sigint)
    try:
        while not model.done and not interrupted:
            value = model.go()
            if report_every and model.ticks % report_every == 0:
                print(f"t={model.ticks:06d}  unhappiness={value:.6f}")
    finally:
        signal.signal(signal.SIGINT, previous if previous is not None else signal.SIG_DFL)

    if interrupted:
        print(f"Interrupted after {model.ticks} ticks.")
    return model


def main(argv: List[str] | None = None) -> int:
    try:
        params, args = parse_params(argv)
        validate_params(params)

        try:
            writer = UnhappinessWriter(params.output_filename)
        except OSError as e:
            raise HeatbugsError(ErrorCode.UNABLE_OPEN_FILE, f"Could not open output file: {e}") from e

        start = time.perf_counter()
        with writer:
            try:
                model = run_simulation(params, writer, report_every=args.report_every)
            except MemoryError as e:
                raise HeatbugsError(ErrorCode.MALLOC_FAILURE, "Unable to allocate simulation buffers.") from e
        elapsed = time.perf_counter() - start
    except HeatbugsError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return abs(int(e.code))

    print(f"Simulation finished after {model.ticks} ticks ({elapsed:.2f}s, seed={params.seed}).")
    print(f"Final mean unhappiness: {model.mean_unhappiness():.6f}")
    print(f"Results saved to: {params.output_filename}")

    if args.plot:
        from heatbugs.plot_unhappiness import load_results, plot_unhappiness
        import matplotlib.pyplot as plt

        plot_unhappiness(load_results(params.output_filename), window=max(1, writer.count // 50))
        plt.show()

    return int(ErrorCode.SUCCESS)


if __name__ == "__main__":
    sys.exit(main())
