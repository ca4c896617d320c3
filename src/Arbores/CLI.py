#! /usr/bin/env python
# -*- coding: utf-8 -*-

##############################################################################
##  -- Arbores --
##  Posterior sampling of ancestral recombination graphs
##
##  Copyright 2025 Mark Kessler, Luay Nakhleh.
##  All rights reserved.
##
##  See "LICENSE.txt" for terms and conditions of usage.
##
##  If you use this work or any portion thereof in published work,
##  please cite it as:
##
##     Mark Kessler, Luay Nakhleh. 2025.
##
##############################################################################

"""
Author : Mark Kessler
Last Stable Edit : 10/18/26
First Included in Version : 1.0.0
Docs   - [x]
Tests  - [x]
Design - [x]

Command line entry point:

    arbores DATA N MU RHO SEED OUTDIR [INITFILE]
"""

from __future__ import annotations
import argparse
import logging
import sys
import numpy as np
from tqdm import tqdm
from . import __version__
from .Data import DataError, read_data
from .Driver import ChainDriver, always_confirm, console_confirm
from .MetropolisHastings import RunAborted
from .Parameters import Parameters, SamplerSettings
from .Path import PathError
from .Results import ResultWriter, read_path

BANNER = f"""\
Arbores {__version__}
Posterior sampling of ancestral recombination graphs
"""

USAGE = """\
usage: arbores DATA N MU RHO SEED OUTDIR [INITFILE] [options]

  DATA      haplotype file (fasta, nexus, phylip, or plain .txt/.dat)
  N         number of chain iterations
  MU        mutation rate per site
  RHO       recombination rate per site
  SEED      seed of the random number generator
  OUTDIR    folder receiving chain.txt, mrca.txt, map.txt, diagnostics.csv
  INITFILE  optional starting path (same format as chain.txt)

options: --segment-length L, --jitter-steps J, --n-eff NE, -v/--verbose,
         --yes
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog = "arbores",
                                     description = BANNER.splitlines()[1])
    parser.add_argument("arguments", nargs = "*")
    parser.add_argument("--segment-length", type = int, default = 5)
    parser.add_argument("--jitter-steps", type = int, default = 1)
    parser.add_argument("--n-eff", type = float, default = 1.0)
    parser.add_argument("-v", "--verbose", action = "count", default = 0)
    parser.add_argument("--yes", action = "store_true",
                        help = "skip the confirmation asked for large data")
    return parser


def configure_logging(verbosity : int) -> None:
    """
    Route the package log to stderr: warnings only by default, info with
    one -v, debug (one line per iteration) with two or more.
    """
    level = logging.WARNING if verbosity <= 0 \
            else logging.INFO if verbosity == 1 else logging.DEBUG
    logger = logging.getLogger("Arbores")
    logger.setLevel(level)
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: \
%(message)s"))
        logger.addHandler(handler)


def main(argv : list[str] | None = None) -> int:
    """
    Run the sampler from the command line.

    Args:
        argv (list[str] | None, optional): Arguments, sys.argv[1:] if None.
    Returns:
        int: Exit status. 0 on success and when only the usage is printed,
             1 on invalid input or when the run is declined.
    """
    print(BANNER)
    args = build_parser().parse_intermixed_args(argv)
    positional = args.arguments

    if len(positional) < 6:
        print(USAGE)
        return 0
    if len(positional) > 7:
        print(f"Error: expected at most 7 arguments, got {len(positional)}",
              file = sys.stderr)
        return 1

    data_file, n_text, mu_text, rho_text, seed_text, out_dir = positional[:6]
    init_file = positional[6] if len(positional) == 7 else None

    try:
        N = int(n_text)
        seed = int(seed_text)
        params = Parameters(float(mu_text), float(rho_text), args.n_eff,
                            args.verbose)
        settings = SamplerSettings(args.segment_length, args.jitter_steps)
        if N < 1:
            raise ValueError(f"N must be at least 1, got {N}")
    except ValueError as err:
        print(f"Error: {err}", file = sys.stderr)
        return 1

    configure_logging(params.verbosity)

    try:
        data = read_data(data_file)
        initial_path = None
        if init_file is not None:
            print("Initialisation read from a file.")
            initial_path = read_path(init_file, data)
        writer = ResultWriter(out_dir)
        confirm = always_confirm if args.yes else console_confirm

        with tqdm(total = N, desc = "MCMC", unit = "it",
                  disable = params.verbosity >= 2) as bar:

            def progress(iteration : int, total : int) -> None:
                bar.update(iteration - bar.n)

            driver = ChainDriver(data, params, settings, writer, confirm,
                                 progress)
            driver.run(N, np.random.default_rng(seed), initial_path)
    except (DataError, PathError, RunAborted) as err:
        print(f"Error: {err.message}", file = sys.stderr)
        return 1
    except OSError as err:
        print(f"Error: {err}", file = sys.stderr)
        return 1

    print(f"Results written to {out_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
