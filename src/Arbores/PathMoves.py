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

Proposal moves on a path of local trees.

A move never edits the path it is given. It returns a Proposal holding a new
path (or None when the move has nothing to act on, or the edited operations no
longer replay) together with the terms the Metropolis-Hastings ratio needs:
the ratio of the discrete reverse and forward selection probabilities, and the
log proposal densities of the continuous times removed from the current state
and introduced in the proposed one.

Moves are scoped to a window of sites [start, end). Only operations whose site
lies in the window are touched.
"""

from __future__ import annotations
import bisect
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
import numpy as np
from scipy import stats
from .Data import GenomeData
from .Parameters import Parameters
from .Path import PathError, PathState
from .Tree import LocalTree, SprOperation

logger = logging.getLogger(__name__)


@dataclass
class Proposal:
    """
    Outcome of a move. path is None when the move could not be made, which
    the sampler treats as a rejection.
    """

    path : PathState | None
    cardinality_ratio : float = 1.0
    current_free_time_density : float = 0.0
    proposed_free_time_density : float = 0.0


NULL_PROPOSAL = Proposal(None)


########################
#### TIME PROPOSALS ####
########################

def draw_coalescence_time(lower : float, top : float, n_eff : float,
                          rng : np.random.Generator) -> float:
    """
    Draw a coalescence time on a branch spanning (lower, top): uniform on a
    finite branch, lower plus an exponential of mean n_eff above the root.
    """
    if math.isinf(top):
        return lower + rng.exponential(n_eff)
    return rng.uniform(lower, top)


def coalescence_time_log_density(coal_time : float, lower : float,
                                 top : float, n_eff : float) -> float:
    """
    Log density of draw_coalescence_time.
    """
    if math.isinf(top):
        return float(stats.expon.logpdf(coal_time, loc = lower,
                                        scale = n_eff))
    return float(stats.uniform.logpdf(coal_time, loc = lower,
                                      scale = top - lower))


def _target_interval(tree : LocalTree, node : int, rec_time : float,
                     target : int) -> tuple[int, tuple[float, float] | None]:
    targets = tree.regraft_targets(node, rec_time)
    for candidate, lower, top in targets:
        if candidate == target:
            return len(targets), (lower, top)
    return len(targets), None


###############
#### MOVES ####
###############

class Move(ABC):
    """
    Abstract superclass of every path move.
    """

    name : str = "move"
    irreducibility : int = 0

    def __init__(self, start : int = 0, end : int | None = None) -> None:
        """
        Initialize a move over the sites [start, end).

        Args:
            start (int, optional): First site of the window. Defaults to 0.
            end (int | None, optional): One past the last site. Defaults to
                                        None (end of the genome).
        Returns:
            N/A
        """
        self.start = start
        self.end = end

    def operation_indices(self, path : PathState) -> list[int]:
        """
        Indices of the path operations whose site lies in the window.
        """
        sites = path.sites
        lo = bisect.bisect_left(sites, self.start)
        hi = len(sites) if self.end is None \
             else bisect.bisect_left(sites, self.end)
        return list(range(lo, hi))

    def gap_sites(self, data : GenomeData) -> list[int]:
        """
        Gap sites of the data inside the window.
        """
        end = data.n_sites if self.end is None else self.end
        return [s for s in data.gap_sites if self.start <= s < end]

    def last_at_site(self, path : PathState) -> list[int]:
        """
        For every occupied site of the window, the index of its last
        operation.
        """
        indices = self.operation_indices(path)
        sites = path.sites
        return [j for j in indices
                if j + 1 >= len(sites) or sites[j + 1] != sites[j]]

    def _rebuild(self, path : PathState,
                 operations : list[SprOperation]) -> PathState | None:
        try:
            return path.rebuild(operations)
        except PathError as err:
            logger.debug("%s produced a path that does not replay: %s",
                         self.name, err.message)
            return None

    @abstractmethod
    def propose(self, path : PathState, data : GenomeData,
                params : Parameters, rng : np.random.Generator) -> Proposal:
        """
        *ABSTRACT METHOD*

        Propose a new path from the current one.

        Args:
            path (PathState): The current path (left untouched).
            data (GenomeData): The run's data.
            params (Parameters): Model parameters.
            rng (np.random.Generator): Random source.
        Returns:
            Proposal: The proposed path and its Hastings terms.
        """
        raise NotImplementedError("Calling abstract method from the Move \
                                  superclass. Please implement a subclass \
                                  with a propose method.")


class RecombinationTimeMove(Move):
    """
    Re-draw the recombination time of one operation, uniformly on the part of
    the pruned branch below the coalescence time. The interval does not depend
    on the recombination time, so the move is symmetric.
    """

    name = "recombination_time"

    def propose(self, path : PathState, data : GenomeData,
                params : Parameters, rng : np.random.Generator) -> Proposal:
        indices = self.operation_indices(path)
        if not indices:
            return NULL_PROPOSAL

        j = indices[rng.integers(len(indices))]
        op = path.operations[j]
        tree = path.trees[j]
        lower = float(tree.times[op.node])
        upper = min(float(tree.times[tree.parents[op.node]]), op.coal_time)

        operations = list(path.operations)
        operations[j] = op.replace(rec_time = rng.uniform(lower, upper))
        new_path = self._rebuild(path, operations)
        if new_path is None:
            return NULL_PROPOSAL

        density = -math.log(upper - lower)
        return Proposal(new_path, 1.0, density, density)


class RegraftMove(Move):
    """
    Re-draw where the floating lineage of one operation coalesces: a branch
    chosen uniformly among those alive above the recombination time, then a
    time on it.
    """

    name = "regraft"

    def propose(self, path : PathState, data : GenomeData,
                params : Parameters, rng : np.random.Generator) -> Proposal:
        indices = self.operation_indices(path)
        if not indices:
            return NULL_PROPOSAL

        j = indices[rng.integers(len(indices))]
        op = path.operations[j]
        tree = path.trees[j]

        _, current = _target_interval(tree, op.node, op.rec_time, op.target)
        if current is None:
            return NULL_PROPOSAL
        targets = tree.regraft_targets(op.node, op.rec_time)
        target, lower, top = targets[rng.integers(len(targets))]
        coal_time = draw_coalescence_time(lower, top, params.n_eff, rng)

        operations = list(path.operations)
        operations[j] = op.replace(target = target, coal_time = coal_time)
        new_path = self._rebuild(path, operations)
        if new_path is None:
            return NULL_PROPOSAL

        return Proposal(new_path,
                        1.0,
                        coalescence_time_log_density(op.coal_time, *current,
                                                     params.n_eff),
                        coalescence_time_log_density(coal_time, lower, top,
                                                     params.n_eff))


class BirthMove(Move):
    """
    Add a recombination at a gap site of the window, after the operations
    already there. The pruned node is uniform over the non-root nodes of the
    tree in force, the recombination time uniform on its branch, and the
    regraft drawn as in RegraftMove. Reversed by DeathMove.
    """

    name = "birth"
    irreducibility = 1

    def propose(self, path : PathState, data : GenomeData,
                params : Parameters, rng : np.random.Generator) -> Proposal:
        gaps = self.gap_sites(data)
        if not gaps:
            return NULL_PROPOSAL

        site = gaps[rng.integers(len(gaps))]
        j = bisect.bisect_right(path.sites, site)
        tree = path.trees[j]

        root = tree.root
        nodes = [v for v in range(tree.size) if v != root]
        node = nodes[rng.integers(len(nodes))]
        branch = tree.branch_length(node)
        rec_time = rng.uniform(float(tree.times[node]),
                               float(tree.times[tree.parents[node]]))

        targets = tree.regraft_targets(node, rec_time)
        target, lower, top = targets[rng.integers(len(targets))]
        coal_time = draw_coalescence_time(lower, top, params.n_eff, rng)

        op = SprOperation(site, node, rec_time, target, coal_time)
        operations = path.operations[:j] + [op] + path.operations[j:]
        new_path = self._rebuild(path, operations)
        if new_path is None:
            return NULL_PROPOSAL

        reverse_choices = len(self.last_at_site(new_path))
        cardinality = len(gaps) * len(nodes) * len(targets) / reverse_choices
        density = -math.log(branch) \
                  + coalescence_time_log_density(coal_time, lower, top,
                                                 params.n_eff)
        return Proposal(new_path, cardinality, 0.0, density)


class DeathMove(Move):
    """
    Remove one recombination, chosen uniformly among the last operations of
    the occupied gap sites of the window. Reversed by BirthMove.
    """

    name = "death"
    irreducibility = 1

    def propose(self, path : PathState, data : GenomeData,
                params : Parameters, rng : np.random.Generator) -> Proposal:
        candidates = self.last_at_site(path)
        gaps = self.gap_sites(data)
        if not candidates or not gaps:
            return NULL_PROPOSAL

        j = candidates[rng.integers(len(candidates))]
        op = path.operations[j]
        tree = path.trees[j]

        n_targets, interval = _target_interval(tree, op.node, op.rec_time,
                                               op.target)
        if interval is None:
            return NULL_PROPOSAL

        operations = path.operations[:j] + path.operations[j + 1:]
        new_path = self._rebuild(path, operations)
        if new_path is None:
            return NULL_PROPOSAL

        n_nodes = tree.size - 1
        cardinality = len(candidates) / (len(gaps) * n_nodes * n_targets)
        density = -math.log(tree.branch_length(op.node)) \
                  + coalescence_time_log_density(op.coal_time, *interval,
                                                 params.n_eff)
        return Proposal(new_path, cardinality, density, 0.0)


class SiteShiftMove(Move):
    """
    Move one recombination to the neighbouring gap site, left or right with
    equal probability. Only the first operation of a site may move left and
    only the last may move right, so the order of the operations and the trees
    stay the same; only the site ranges covered by the trees change. The move
    is symmetric.
    """

    name = "site_shift"

    def propose(self, path : PathState, data : GenomeData,
                params : Parameters, rng : np.random.Generator) -> Proposal:
        indices = self.operation_indices(path)
        if not indices:
            return NULL_PROPOSAL

        j = indices[rng.integers(len(indices))]
        step = -1 if rng.random() < 0.5 else 1
        op = path.operations[j]
        lo, hi = path.site_bounds(op.site)
        if (step < 0 and j != lo) or (step > 0 and j != hi - 1):
            return NULL_PROPOSAL

        gaps = data.gap_sites
        k = bisect.bisect_left(gaps, op.site)
        if k >= len(gaps) or gaps[k] != op.site:
            return NULL_PROPOSAL
        k += step
        if not 0 <= k < len(gaps):
            return NULL_PROPOSAL
        new_site = gaps[k]
        end = data.n_sites if self.end is None else self.end
        if not self.start <= new_site < end:
            return NULL_PROPOSAL

        operations = list(path.operations)
        operations[j] = op.replace(site = new_site)
        return Proposal(PathState(list(path.trees), operations))


SEGMENT_MOVES : tuple[type[Move], ...] = (RecombinationTimeMove,
                                          RegraftMove,
                                          BirthMove,
                                          DeathMove)
