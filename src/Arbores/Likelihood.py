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

Infinite sites likelihood of binary data given a path of local trees.

Each site evolves on the tree covering it. Mutations fall on the tree as a
Poisson process of rate mu per unit branch length, and at most one mutation
per site is allowed. A monomorphic site therefore has probability
exp(-mu * L), and a polymorphic site whose carriers form the clade below the
branch of length b has density mu * b * exp(-mu * L), L being the total branch
length of the tree.
"""

from __future__ import annotations
import math
from dataclasses import dataclass
import numpy as np
from .Data import GenomeData
from .Parameters import Parameters
from .Path import PathState
from .utils import safe_log


@dataclass
class LikelihoodData:
    log_likelihood : float
    site_log_likelihoods : np.ndarray


def likelihood(path : PathState, data : GenomeData,
               params : Parameters) -> LikelihoodData:
    """
    Compute the log likelihood of the data given a path.

    Args:
        path (PathState): A structurally complete path.
        data (GenomeData): The observed data.
        params (Parameters): Model parameters (mu is used).
    Returns:
        LikelihoodData: The total and the per site log likelihoods. A site
                        whose carriers are not a clade scores -inf.
    """
    site_ll = np.zeros(data.n_sites)

    for tree, (start, end) in zip(path.trees, path.tree_ranges(data.n_sites)):
        if start >= end:
            continue
        no_mutation = -params.mu * tree.total_length()
        site_ll[start:end] = no_mutation

        clades = tree.clade_index()
        root = tree.root
        for site in data.polymorphic_in(start, end):
            node = clades.get(data.derived_mask(site))
            if node is None or node == root:
                site_ll[site] = -math.inf
            else:
                site_ll[site] = safe_log(params.mu * tree.branch_length(node)) \
                                + no_mutation

    return LikelihoodData(float(np.sum(site_ll)), site_ll)
