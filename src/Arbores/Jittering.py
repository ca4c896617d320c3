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
Design - [ ]
"""

from __future__ import annotations
import logging
from typing import Callable
import numpy as np
from .Data import GenomeData
from .MetropolisHastings import Chain, metropolis_hastings_step
from .Parameters import Parameters
from .Path import assert_path_invariants
from .PathMoves import SiteShiftMove

logger = logging.getLogger(__name__)


def jittering(chain : Chain, iteration : int, N : int, params : Parameters,
              data : GenomeData, rng : np.random.Generator, steps : int = 1,
              progress : Callable[[int, int], None] | None = None) -> int:
    """
    Run the global site shift kernel for a number of steps, one chain entry
    per step. Capacity is checked before every step, so the chain never grows
    past N.

    Args:
        chain (Chain): The chain; its last entry holds the current path.
        iteration (int): Current iteration (entries recorded so far).
        N (int): Chain capacity.
        params (Parameters): Model parameters.
        data (GenomeData): The run's (augmented) data.
        rng (np.random.Generator): Random source of the run.
        steps (int, optional): Number of steps. Defaults to 1.
        progress (Callable[[int, int], None] | None, optional): Called with
                 (iteration, N) after each appended entry. Defaults to None.
    Raises:
        InvariantViolation: if a recorded path breaks a path invariant.
    Returns:
        int: The new iteration number.
    """
    move = SiteShiftMove()
    for _ in range(steps):
        if iteration >= N:
            return iteration

        previous = chain.last
        entry = metropolis_hastings_step(previous.path, move, data, params,
                                         rng,
                                         previous.diagnostics.jitter_step + 1)
        assert_path_invariants(entry.path, data)
        iteration = chain.append(entry)
        logger.debug("jitter step %d: accept = %d",
                     entry.diagnostics.jitter_step,
                     entry.diagnostics.accept_indicator)
        if progress is not None:
            progress(iteration, N)
    return iteration
