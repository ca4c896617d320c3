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
Docs   - [ ]
Tests  - [x]
Design - [x]
"""

from __future__ import annotations
from dataclasses import dataclass
import numpy as np
from .Path import PathState


@dataclass(frozen = True)
class MRCA:
    """
    Time to the most recent common ancestor along the genome: one record per
    local tree covering at least one site.
    """

    starts : tuple[int, ...]
    ends : tuple[int, ...]
    times : tuple[float, ...]

    def site_times(self) -> np.ndarray:
        """
        TMRCA of every site.
        """
        return np.repeat(np.array(self.times),
                         np.array(self.ends) - np.array(self.starts))


def times_to_mrca(path : PathState, n_sites : int) -> MRCA:
    """
    Root time of every local tree that covers at least one site.

    Args:
        path (PathState): A structurally complete path.
        n_sites (int): Number of sites in the genome.
    Returns:
        MRCA: The snapshot.
    """
    starts, ends, times = [], [], []
    for tree, (start, end) in zip(path.trees, path.tree_ranges(n_sites)):
        if start < end:
            starts.append(start)
            ends.append(end)
            times.append(float(tree.times[tree.root]))
    return MRCA(tuple(starts), tuple(ends), tuple(times))
