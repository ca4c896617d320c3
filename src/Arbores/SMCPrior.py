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

Prior density of a path under the sequentially Markov coalescent (SMC).

The first local tree is a Kingman coalescent tree. Moving along the genome,
each gap of d sites between consecutive segregating sites carries
recombinations at rate rho * d / 2 per unit branch length. A recombination
point is uniform on the current tree, and the floating lineage re-coalesces
into the remaining tree at rate 1 / n_eff per remaining lineage.
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from scipy.special import comb
from .Data import GenomeData
from .Parameters import Parameters
from .Path import PathState
from .Tree import LocalTree
from .utils import log1mexp, safe_log


@dataclass
class SmcPriorData:
    density : float
    tree_density : float
    recombination_density : float
    no_recombination_density : float
    n_recombinations : int


def kingman_log_density(tree : LocalTree, n_eff : float = 1.0) -> float:
    """
    Log density of a tree's coalescence times under Kingman's coalescent.

    While k lineages remain, the next coalescence happens at rate
    C(k, 2) / n_eff.

    Args:
        tree (LocalTree): A valid local tree.
        n_eff (float, optional): Effective population size. Defaults to 1.
    Returns:
        float: The log density.
    """
    n = tree.n_leaves
    internal_times = sorted(float(t) for t in tree.times[n:])

    density = 0.0
    previous = 0.0
    k = n
    for t in internal_times:
        density += -math.log(n_eff) \
                   - comb(k, 2, exact = True) * (t - previous) / n_eff
        previous = t
        k -= 1
    return density


def regraft_log_density(tree : LocalTree, node : int, rec_time : float,
                        coal_time : float, n_eff : float = 1.0) -> float:
    """
    Log density of the floating lineage cut at rec_time above node
    re-coalescing onto one given branch at coal_time.
    """
    exposure = tree.coalescence_exposure(node, rec_time, coal_time)
    return -math.log(n_eff) - exposure / n_eff


def smc_prior(path : PathState, params : Parameters,
              data : GenomeData) -> SmcPriorData:
    """
    Compute the SMC prior density of a path.

    Args:
        path (PathState): A structurally complete path.
        params (Parameters): Model parameters (rho and n_eff are used).
        data (GenomeData): The data, for the gap layout.
    Returns:
        SmcPriorData: The total and its parts. Recombinations placed outside
                      the gap sites give a density of -inf.
    """
    tree_density = kingman_log_density(path.trees[0], params.n_eff)
    rec_density = 0.0
    norec_density = 0.0

    gaps = set(data.gap_sites)
    if any(site not in gaps for site in path.sites):
        rec_density = -math.inf

    for site in data.gap_sites:
        rate = params.rho * data.gap_length(site) / 2
        lo, hi = path.site_bounds(site)
        for j in range(lo, hi):
            tree = path.trees[j]
            op = path.operations[j]
            length = tree.total_length()
            rec_density += log1mexp(rate * length) - safe_log(length) \
                           + regraft_log_density(tree, op.node, op.rec_time,
                                                 op.coal_time, params.n_eff)
        norec_density -= rate * path.trees[hi].total_length()

    return SmcPriorData(tree_density + rec_density + norec_density,
                        tree_density,
                        rec_density,
                        norec_density,
                        path.n_recombinations)
