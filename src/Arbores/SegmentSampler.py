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
"""

from __future__ import annotations
import numpy as np
from .BridgePoints import BridgePoints
from .Data import GenomeData
from .MetropolisHastings import ChainEntry, metropolis_hastings_step
from .Parameters import Parameters
from .Path import PathState
from .PathMoves import SEGMENT_MOVES, Move


def choose_segment_move(start : int, end : int,
                        rng : np.random.Generator) -> Move:
    """
    One of the segment moves, uniformly, scoped to the sites [start, end).
    """
    return SEGMENT_MOVES[rng.integers(len(SEGMENT_MOVES))](start, end)


def segment_sampler(path : PathState, segment_index : int, bp : BridgePoints,
                    data : GenomeData, params : Parameters,
                    rng : np.random.Generator) -> ChainEntry:
    """
    One Metropolis-Hastings step local to a bridge segment. Only the
    recombinations sitting in the segment's window may change.

    Args:
        path (PathState): The current path.
        segment_index (int): The segment to resample.
        bp (BridgePoints): The run's segmentation.
        data (GenomeData): The run's (augmented) data.
        params (Parameters): Model parameters.
        rng (np.random.Generator): Random source of the run.
    Returns:
        ChainEntry: The recorded state, with jitter_step 0 and full_scan
                    unset.
    """
    start, end = bp.window(segment_index)
    move = choose_segment_move(start, end, rng)
    return metropolis_hastings_step(path, move, data, params, rng, 0)
