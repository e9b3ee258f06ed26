"""Command-line driver.

Usage:
    biosim CONFIG [CONFIG ...] [-v] [--seed N] [--years START END]

Each CONFIG (YAML or legacy .sim) is run in the order given. When more
than one is given, each run is introduced by its file name. A failing run
prints ``Error in <file>: <message>`` on stderr and the next one starts;
the exit status is the number of failed runs.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Dict, List, Optional

from biosim.config import load_config
from biosim.errors import BioSimError
from biosim.model import run_simulation

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='biosim',
        description='Run predator/prey simulations on a terrain grid',
    )
    parser.add_argument('configs', nargs='+', metavar='CONFIG',
                        help='simulation configuration (.yaml or .sim)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='log per-year details')
    parser.add_argument('--seed', type=int, default=None,
                        help='override simulation.seed')
    parser.add_argument('--years', type=int, nargs=2, metavar=('START', 'END'),
                        default=None, help='override the simulated years')
    parser.add_argument('--scenario', default=None,
                        help='YAML file merged over every CONFIG')
    parser.add_argument('--quiet', action='store_true',
                        help='suppress the yearly progress line')
    parser.add_argument('--perf', action='store_true',
                        help='time the four passes of the annual cycle')
    parser.add_argument('--plot', action='store_true',
                        help='save <stem>_trajectory.png after each run')
    return parser


def _overrides(args: argparse.Namespace) -> Dict:
    sim: Dict = {}
    if args.seed is not None:
        sim['seed'] = args.seed
    if args.years is not None:
        sim['start_year'], sim['end_year'] = args.years
    if args.quiet:
        sim['progress'] = False
    if args.perf:
        sim['perf'] = True
    return {'simulation': sim} if sim else {}


def run_one(path: str, args: argparse.Namespace) -> None:
    config = load_config(path, args.scenario, _overrides(args))
    result = run_simulation(config)
    logger.info("%s: %d years, %d animals at the end",
                path, result.n_years, result.final_population)
    if args.plot:
        from biosim.viz.maps import plot_population_trajectory
        stem = config.simulation.output_stem
        plot_population_trajectory(result, save_path=f"{stem}_trajectory.png")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )
    logging.captureWarnings(True)

    failures = 0
    for path in args.configs:
        if len(args.configs) > 1:
            print(f"{path}:")
        try:
            run_one(path, args)
        except (BioSimError, OSError) as e:
            print(f"Error in {path}: {e}", file=sys.stderr)
            failures += 1
    return failures


if __name__ == '__main__':
    sys.exit(main())
