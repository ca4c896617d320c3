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

Construction of a starting path that is compatible with the data.

The first tree refines the clades of the longest run of pairwise compatible
polymorphic sites. Every later polymorphic site whose carriers are not a clade
of the current tree gets recombinations at a random site between it and the
previous polymorphic site. Each recombination prunes one maximal subtree made
only of carriers and regrafts it just above another one, until the carriers
form a single clade. The recombination sites chosen this way are often
monomorphic, so the data must be augmented with them before sampling.
"""

from __future__ import annotations
import logging
import math
import numpy as np
from .Data import GenomeData
from .Parameters import Parameters
from .Path import PathState
from .Tree import LocalTree, SprOperation

logger = logging.getLogger(__name__)


def _laminar(a : int, b : int) -> bool:
    return a & b == 0 or a & b == a or a & b == b


def compatible_prefix(data : GenomeData) -> list[int]:
    """
    Distinct carrier masks of the longest prefix of polymorphic sites whose
    masks are pairwise nested or disjoint.

    Args:
        data (GenomeData): The observed data.
    Returns:
        list[int]: The masks, in order of first appearance.
    """
    family : list[int] = []
    for site in data.polymorphic_sites:
        mask = data.derived_mask(site)
        if mask in family:
            continue
        if not all(_laminar(mask, other) for other in family):
            break
        family.append(mask)
    return family


def random_refinement(n_leaves : int, clades : list[int],
                      rng : np.random.Generator,
                      n_eff : float = 1.0) -> LocalTree:
    """
    A random binary tree in which every mask of a laminar family is a clade.

    Clades are resolved from the smallest up. The members of each clade are
    joined in random order, and each new node sits an exponential waiting time
    (rate C(m, 2) / n_eff for m members left) above its oldest child.

    Args:
        n_leaves (int): Number of leaves.
        clades (list[int]): Pairwise nested or disjoint leaf masks.
        rng (np.random.Generator): Random source.
        n_eff (float, optional): Effective population size. Defaults to 1.
    Returns:
        LocalTree: The refined tree.
    """
    size = 2 * n_leaves - 1
    parents = np.full(size, -1, dtype = np.int64)
    times = np.zeros(size)
    masks = [1 << v for v in range(n_leaves)] + [0] * (n_leaves - 1)
    tops = list(range(n_leaves))
    next_label = n_leaves

    full = (1 << n_leaves) - 1
    ordered = sorted(set(clades) | {full}, key = lambda m : bin(m).count("1"))
    for clade in ordered:
        members = [v for v in tops if masks[v] & clade == masks[v]]
        tops = [v for v in tops if v not in members]
        while len(members) > 1:
            m = len(members)
            i, j = rng.choice(m, size = 2, replace = False)
            a, b = members[i], members[j]
            node = next_label
            next_label += 1
            parents[a] = parents[b] = node
            times[node] = max(times[a], times[b]) \
                          + rng.exponential(2 * n_eff / (m * (m - 1)))
            masks[node] = masks[a] | masks[b]
            members = [v for v in members if v not in (a, b)] + [node]
        tops.extend(members)

    return LocalTree(parents, times)


def _maximal_pure_ancestor(tree : LocalTree, leaf : int, mask : int) -> int:
    clades = tree.clades()
    node = leaf
    parent = int(tree.parents[node])
    while parent >= 0 and clades[parent] & mask == clades[parent]:
        node = parent
        parent = int(tree.parents[node])
    return node


def gather_clade(tree : LocalTree, mask : int, site : int,
                 rng : np.random.Generator,
                 n_eff : float = 1.0) -> tuple[list[SprOperation], LocalTree]:
    """
    SPR operations at one site that make a leaf set a clade.

    Args:
        tree (LocalTree): The tree in force before the site.
        mask (int): The leaf set to gather (at least two leaves, not all).
        site (int): Site of the produced operations.
        rng (np.random.Generator): Random source.
        n_eff (float, optional): Mean waiting time above the root.
                                 Defaults to 1.
    Returns:
        tuple[list[SprOperation], LocalTree]: The operations and the tree
                                              they produce.
    """
    operations : list[SprOperation] = []
    anchor = (mask & -mask).bit_length() - 1

    while mask not in tree.clade_index():
        gathered = _maximal_pure_ancestor(tree, anchor, mask)
        rest = mask & ~tree.clades()[gathered]
        other = _maximal_pure_ancestor(tree, (rest & -rest).bit_length() - 1,
                                       mask)

        if tree.times[gathered] <= tree.times[other]:
            young, old = gathered, other
        else:
            young, old = other, gathered

        lower = float(tree.times[old])
        top = tree.remaining_top(young, old)
        if math.isinf(top):
            coal_time = lower + rng.exponential(n_eff)
        else:
            coal_time = rng.uniform(lower, top)
        upper = min(float(tree.times[tree.parents[young]]), coal_time)
        rec_time = rng.uniform(float(tree.times[young]), upper)

        op = SprOperation(site, young, rec_time, old, coal_time)
        tree = tree.apply(op)
        operations.append(op)

    return operations, tree


def initialisation(data : GenomeData, params : Parameters,
                   rng : np.random.Generator) -> PathState:
    """
    Build a starting path compatible with the data.

    Args:
        data (GenomeData): The observed data.
        params (Parameters): Model parameters (n_eff sets the time scale).
        rng (np.random.Generator): Random source of the run.
    Returns:
        PathState: A structurally complete path compatible with the data
                   once the data is augmented with its recombination sites.
    """
    first_tree = random_refinement(data.n_samples, compatible_prefix(data),
                                   rng, params.n_eff)

    tree = first_tree
    operations : list[SprOperation] = []
    previous = None
    for site in data.polymorphic_sites:
        mask = data.derived_mask(site)
        if mask not in tree.clade_index():
            rec_site = int(rng.integers(previous + 1, site + 1))
            new_ops, tree = gather_clade(tree, mask, rec_site, rng,
                                         params.n_eff)
            operations.extend(new_ops)
        previous = site

    logger.debug("Initial path: %d recombination(s) over %d site(s)",
                 len(operations), data.n_sites)
    return PathState.from_operations(first_tree, operations)
